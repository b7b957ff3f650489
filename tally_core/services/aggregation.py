"""
Tally Core - Workpaper to Claim Aggregation

Turns each calculator's workpaper into its category claim on the ledger,
and validates a workpaper before its claim is finalized.
"""

import logging
from typing import Union

from tally_core.models.enums import AtoCategoryCode
from tally_core.services import tax_modules
from tally_core.services.records import (
    CategoryRecordStore,
    DonationStore,
    SelfEducationWorkpaper,
    SuperContributionStore,
    UPPStore,
)
from tally_core.services.workpaper import low_value_pool
from tally_core.services.workpaper.claims import ClaimLedger
from tally_core.services.workpaper.models import LowValuePoolWorkpaper, ValidationResult

logger = logging.getLogger(__name__)

ClaimSource = Union[LowValuePoolWorkpaper, SelfEducationWorkpaper, CategoryRecordStore]


def claim_from_low_value_pool(ledger: ClaimLedger, workpaper: LowValuePoolWorkpaper) -> ClaimLedger:
    """D6: the pool's decline in value for the year."""
    current = low_value_pool.recalculate_pool(workpaper)
    return ledger.set_claim(
        AtoCategoryCode.D6,
        current.tax_year,
        current.summary.deductible_amount,
        description=f"Low-value pool: {len(current.assets)} assets",
        receipt_count=len(current.assets),
    )


def claim_from_self_education(ledger: ClaimLedger, workpaper: SelfEducationWorkpaper) -> ClaimLedger:
    """D4: expenses plus depreciation, less the $250 reduction."""
    current = workpaper.recalculate()
    courses = ", ".join(c.name for c in current.courses)
    return ledger.set_claim(
        AtoCategoryCode.D4,
        current.tax_year,
        current.total_deductible,
        description=f"Self-education: {courses}" if courses else "Self-education",
        receipt_count=sum(1 for e in current.expenses if e.receipt_id),
    )


def claim_from_donations(ledger: ClaimLedger, store: DonationStore) -> ClaimLedger:
    """D8: gifts of $2 or more to deductible gift recipients."""
    result = tax_modules.calculate_donations(store.records)
    receipts = sum(
        1 for d in store.records
        if tax_modules.is_deductible_donation(d) and d.receipt_number
    )
    return ledger.set_claim(
        AtoCategoryCode.D8,
        store.tax_year,
        result.deductible_total,
        description=f"{result.deductible_count} deductible gifts",
        receipt_count=receipts,
    )


def claim_from_super_contributions(ledger: ClaimLedger, store: SuperContributionStore) -> ClaimLedger:
    """D10: acknowledged personal contributions only."""
    result = tax_modules.calculate_super_contributions(store.records)
    if result.pending_contribution_ids:
        logger.info(
            f"{len(result.pending_contribution_ids)} super contributions awaiting acknowledgment",
            extra={"pending_total": str(result.pending_total)}
        )
    return ledger.set_claim(
        AtoCategoryCode.D10,
        store.tax_year,
        result.countable_total,
        description="Personal super contributions (acknowledged)",
        receipt_count=len(store.get_valid_contributions()),
    )


def claim_from_upp(ledger: ClaimLedger, store: UPPStore) -> ClaimLedger:
    """D11: sum of the deductible amounts advised by each payer."""
    result = tax_modules.calculate_upp(store.records)
    return ledger.set_claim(
        AtoCategoryCode.D11,
        store.tax_year,
        result.total_deductible,
        description=f"Undeducted purchase price: {len(store.records)} payments",
        receipt_count=len(store.records),
    )


def validate_source(source: ClaimSource) -> ValidationResult:
    """Validation result for any claim source, as passed to finalize_claim."""
    if isinstance(source, LowValuePoolWorkpaper):
        return low_value_pool.validate_workpaper(source)
    if isinstance(source, SelfEducationWorkpaper):
        return source.validate_workpaper()
    if isinstance(source, CategoryRecordStore):
        return source.validate_records()
    raise TypeError(f"Unsupported claim source: {type(source).__name__}")
