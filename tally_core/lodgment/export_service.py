"""
Lodgment - Claims Export Service

Serializes a finalized tax year's category claims into the lodgment
payload:

{
    "tax_year": "2024-25",
    "generated_at": "...",
    "categories": [{"code", "name", "amount", "receipt_count", "description"}],
    "total_amount": ...,
    "totals": {"deductions": ..., "offsets": ...}
}

total_amount always equals the ledger's tax-year summary total.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import Field

from tally_core.models.enums import AtoCategoryCode, CategoryKind
from tally_core.services.ato_categories import get_category_by_code
from tally_core.services.workpaper.claims import ClaimLedger
from tally_core.services.workpaper.models import FrozenModel, utc_now
from tally_core.utils.currency import ZERO, parse_financial_year, round_currency
from tally_core.utils.validation_errors import IncompleteWorkpaperError

logger = logging.getLogger(__name__)

EXPORT_FORMAT = "Tally_Lodgment_v1"
SOURCE_SYSTEM = "Tally_Core"


class LodgmentLine(FrozenModel):
    code: AtoCategoryCode
    name: str
    kind: CategoryKind
    amount: Decimal
    receipt_count: int = 0
    description: Optional[str] = None


class LodgmentExport(FrozenModel):
    tax_year: str
    generated_at: str = Field(default_factory=utc_now)
    categories: List[LodgmentLine] = Field(default_factory=list)
    total_amount: Decimal = ZERO
    total_deductions: Decimal = ZERO
    total_offsets: Decimal = ZERO

    def to_dict(self) -> Dict[str, Any]:
        return {
            "_meta": {
                "format": EXPORT_FORMAT,
                "source_system": SOURCE_SYSTEM,
            },
            "tax_year": self.tax_year,
            "generated_at": self.generated_at,
            "categories": [
                {
                    "code": line.code.value,
                    "name": line.name,
                    "amount": float(line.amount),
                    "receipt_count": line.receipt_count,
                    "description": line.description,
                }
                for line in self.categories
            ],
            "total_amount": float(self.total_amount),
            "totals": {
                "deductions": float(self.total_deductions),
                "offsets": float(self.total_offsets),
            },
        }


class LodgmentExportService:
    """
    Builds lodgment exports from a claims ledger.
    """

    def __init__(self, ledger: ClaimLedger):
        self.ledger = ledger

    def check_ready(self, tax_year: str) -> List[str]:
        """Reasons the year cannot be exported yet (empty when ready)."""
        problems = []
        claims = self.ledger.claims_for_tax_year(tax_year)
        if not claims:
            problems.append(f"No claims recorded for {tax_year}")
        for claim in claims:
            if not claim.is_finalized:
                problems.append(
                    f"{claim.category_code.value} has not passed validation and been finalized"
                )
        return problems

    def export(self, tax_year: str) -> LodgmentExport:
        """
        Export every claim for the tax year.

        Raises:
            IncompleteWorkpaperError: a claim is not finalized, or there are no claims
        """
        parse_financial_year(tax_year)
        problems = self.check_ready(tax_year)
        if problems:
            logger.warning(f"Lodgment export for {tax_year} blocked", extra={"problems": problems})
            raise IncompleteWorkpaperError(f"Tax year {tax_year} is not ready for lodgment", problems)

        lines = []
        for claim in self.ledger.claims_for_tax_year(tax_year):
            category = get_category_by_code(claim.category_code)
            lines.append(LodgmentLine(
                code=claim.category_code,
                name=category.name,
                kind=category.kind,
                amount=claim.amount,
                receipt_count=claim.receipt_count,
                description=claim.description,
            ))

        summary = self.ledger.get_tax_year_summary(tax_year)
        deductions = sum((l.amount for l in lines if l.kind == CategoryKind.DEDUCTION), ZERO)
        offsets = sum((l.amount for l in lines if l.kind == CategoryKind.OFFSET), ZERO)

        export = LodgmentExport(
            tax_year=tax_year,
            categories=lines,
            total_amount=summary.total_amount,
            total_deductions=round_currency(deductions),
            total_offsets=round_currency(offsets),
        )

        logger.info(
            f"Generated lodgment export for {tax_year}",
            extra={"categories": len(lines), "total_amount": str(export.total_amount)}
        )
        return export


def export_claims_for_lodgment(ledger: ClaimLedger, tax_year: str) -> LodgmentExport:
    """Convenience wrapper around LodgmentExportService.export."""
    return LodgmentExportService(ledger).export(tax_year)
