"""
Tally Core Workpaper Engine - Category Claims Ledger

One claim per (ATO category, tax year). set_claim replaces the amount,
add_to_claim accumulates into it. A claim is finalized only after its
workpaper passes validation; finalized claims are read-only until reopened.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, ClassVar, Dict, List, Optional

from pydantic import Field

from tally_core.models.enums import AtoCategoryCode
from tally_core.services.ato_categories import parse_category_code
from tally_core.services.workpaper.models import (
    CategoryClaim,
    FrozenModel,
    ValidationResult,
    utc_now,
)
from tally_core.utils.currency import ZERO, parse_financial_year, round_currency, to_decimal
from tally_core.utils.validation_errors import (
    ClaimFinalizedError,
    IncompleteWorkpaperError,
    UnknownRecordError,
    ValidationError,
)

logger = logging.getLogger(__name__)


@dataclass
class TaxYearSummary:
    """Aggregate of every claim in one tax year."""
    tax_year: str
    total_claims: int
    finalized_count: int
    total_amount: Decimal
    total_receipts: int
    categories_claimed: List[str] = field(default_factory=list)

    @property
    def is_fully_finalized(self) -> bool:
        return self.total_claims > 0 and self.finalized_count == self.total_claims

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tax_year": self.tax_year,
            "total_claims": self.total_claims,
            "finalized_count": self.finalized_count,
            "total_amount": float(self.total_amount),
            "total_receipts": self.total_receipts,
            "categories_claimed": list(self.categories_claimed),
        }


def _check_amount(amount: Any) -> Decimal:
    amount = to_decimal(amount, "amount")
    if amount < 0:
        raise ValidationError("amount", "amount cannot be negative", amount)
    return round_currency(amount)


def _check_receipts(receipt_count: Any) -> int:
    if isinstance(receipt_count, bool) or not isinstance(receipt_count, int) or receipt_count < 0:
        raise ValidationError("receipt_count", "receipt_count must be a whole number of zero or more", receipt_count)
    return receipt_count


class ClaimLedger(FrozenModel):
    """All category claims, across tax years."""

    NAMESPACE: ClassVar[str] = "tally_ato_claims"

    claims: List[CategoryClaim] = Field(default_factory=list)

    def get_claim(self, category_code, tax_year: str) -> Optional[CategoryClaim]:
        code = parse_category_code(category_code)
        for claim in self.claims:
            if claim.category_code == code and claim.tax_year == tax_year:
                return claim
        return None

    def _require_claim(self, code: AtoCategoryCode, tax_year: str) -> CategoryClaim:
        claim = self.get_claim(code, tax_year)
        if claim is None:
            raise UnknownRecordError("CategoryClaim", f"{code.value}/{tax_year}")
        return claim

    def _require_editable(self, claim: Optional[CategoryClaim]) -> None:
        if claim is not None and claim.is_finalized:
            raise ClaimFinalizedError(claim.category_code.value, claim.tax_year)

    def _put(self, claim: CategoryClaim) -> "ClaimLedger":
        others = [
            c for c in self.claims
            if not (c.category_code == claim.category_code and c.tax_year == claim.tax_year)
        ]
        return self.model_copy(update={"claims": others + [claim]})

    def set_claim(
        self,
        category_code,
        tax_year: str,
        amount: Any,
        description: Optional[str] = None,
        receipt_count: int = 0
    ) -> "ClaimLedger":
        """Replace the claim for (category, tax year)."""
        code = parse_category_code(category_code)
        parse_financial_year(tax_year)
        amount = _check_amount(amount)
        receipt_count = _check_receipts(receipt_count)

        existing = self.get_claim(code, tax_year)
        self._require_editable(existing)

        if existing is None:
            claim = CategoryClaim(
                category_code=code,
                tax_year=tax_year,
                amount=amount,
                description=description,
                receipt_count=receipt_count,
            )
        else:
            claim = existing.model_copy(update={
                "amount": amount,
                "description": description if description is not None else existing.description,
                "receipt_count": receipt_count,
                "updated_at": utc_now(),
            })

        logger.info(f"Set claim {code.value} {tax_year} to {amount}")
        return self._put(claim)

    def add_to_claim(
        self,
        category_code,
        tax_year: str,
        amount: Any,
        receipt_count: int = 0,
        description: Optional[str] = None
    ) -> "ClaimLedger":
        """Accumulate into the claim for (category, tax year), creating it if needed."""
        code = parse_category_code(category_code)
        parse_financial_year(tax_year)
        amount = _check_amount(amount)
        receipt_count = _check_receipts(receipt_count)

        existing = self.get_claim(code, tax_year)
        self._require_editable(existing)

        if existing is None:
            return self.set_claim(code, tax_year, amount, description, receipt_count)

        claim = existing.model_copy(update={
            "amount": round_currency(existing.amount + amount),
            "receipt_count": existing.receipt_count + receipt_count,
            "description": description if description is not None else existing.description,
            "updated_at": utc_now(),
        })
        logger.info(f"Added {amount} to claim {code.value} {tax_year}")
        return self._put(claim)

    def finalize_claim(self, category_code, tax_year: str, validation: ValidationResult) -> "ClaimLedger":
        """
        Lock a claim once its workpaper has passed validation.

        Raises:
            UnknownRecordError: no claim for (category, tax year)
            IncompleteWorkpaperError: validation reported errors
        """
        code = parse_category_code(category_code)
        claim = self._require_claim(code, tax_year)

        if not validation.is_valid:
            raise IncompleteWorkpaperError(
                f"Claim {code.value} for {tax_year} cannot be finalized until its workpaper validates",
                validation.errors
            )
        if claim.is_finalized:
            return self

        now = utc_now()
        logger.info(f"Finalized claim {code.value} {tax_year}", extra={"amount": str(claim.amount)})
        return self._put(claim.model_copy(update={
            "is_finalized": True,
            "finalized_at": now,
            "updated_at": now,
        }))

    def reopen_claim(self, category_code, tax_year: str) -> "ClaimLedger":
        code = parse_category_code(category_code)
        claim = self._require_claim(code, tax_year)
        if not claim.is_finalized:
            return self

        logger.info(f"Reopened claim {code.value} {tax_year}")
        return self._put(claim.model_copy(update={
            "is_finalized": False,
            "finalized_at": None,
            "updated_at": utc_now(),
        }))

    def delete_claim(self, category_code, tax_year: str) -> "ClaimLedger":
        """Remove a claim that has not been finalized."""
        code = parse_category_code(category_code)
        claim = self._require_claim(code, tax_year)
        self._require_editable(claim)

        logger.info(f"Deleted claim {code.value} {tax_year}")
        return self.model_copy(update={"claims": [c for c in self.claims if c.id != claim.id]})

    def claims_for_tax_year(self, tax_year: str) -> List[CategoryClaim]:
        """Claims for one year in D1..D15 order."""
        return sorted(
            (c for c in self.claims if c.tax_year == tax_year),
            key=lambda c: c.category_code.number
        )

    def get_tax_year_summary(self, tax_year: str) -> TaxYearSummary:
        claims = self.claims_for_tax_year(tax_year)
        return TaxYearSummary(
            tax_year=tax_year,
            total_claims=len(claims),
            finalized_count=sum(1 for c in claims if c.is_finalized),
            total_amount=round_currency(sum((c.amount for c in claims), ZERO)),
            total_receipts=sum(c.receipt_count for c in claims),
            categories_claimed=[c.category_code.value for c in claims],
        )
