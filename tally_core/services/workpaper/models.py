"""
Tally Core Workpaper Engine - Domain Models

Core entities for the deduction workpapers:
- LowValuePoolAsset + DisposalRecord: an asset tracked in the D6 pool
- PoolSummary: derived pool totals for a tax year
- LowValuePoolWorkpaper: one tax year of the low-value pool
- LowValuePoolExport: lodgment-ready pool figures
- CategoryClaim: the claimed amount for one ATO category in one tax year
- ValidationResult: outcome of validating any workpaper

Models are immutable values. Every operation returns a new model built
with model_copy(update=...), never mutating the input.

Storage: serialized with model_dump(mode="json"); unknown fields are ignored
and missing ones defaulted on load.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Dict, Any

from pydantic import BaseModel, ConfigDict, Field, computed_field

from tally_core.models.enums import AssetStatus, AtoCategoryCode, DisposalType


def _new_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class FrozenModel(BaseModel):
    """Base for immutable workpaper values."""
    model_config = ConfigDict(frozen=True, extra="ignore")


# ==================== LOW-VALUE POOL (D6) ====================

class DisposalRecord(FrozenModel):
    """
    Disposal of a pool asset.
    termination_value is the amount that reduces the pool: the sale price
    when one was given, else the stated termination value, else 0.
    """
    disposal_date: str  # ISO date
    disposal_type: DisposalType = DisposalType.SALE
    sale_price: Optional[Decimal] = None
    termination_value: Decimal = Decimal("0")

    # Termination value minus the written-down value at disposal
    balancing_adjustment: Decimal = Decimal("0")
    notes: Optional[str] = None


class LowValuePoolAsset(FrozenModel):
    """
    An asset in the low-value pool.
    Cost is fixed once added; correct it by removing and re-adding the asset.
    """
    id: str = Field(default_factory=_new_id)
    description: str
    cost: Decimal
    acquisition_date: str  # ISO date
    is_first_year: bool = True

    # Written-down value carried in from a prior year (pooled members only)
    opening_balance: Optional[Decimal] = None

    # Populated by recalculate_pool
    decline_in_value: Decimal = Decimal("0")
    closing_balance: Decimal = Decimal("0")

    disposal: Optional[DisposalRecord] = None
    notes: Optional[str] = None

    created_at: str = Field(default_factory=utc_now)
    updated_at: Optional[str] = None

    @computed_field
    @property
    def status(self) -> AssetStatus:
        if self.disposal is not None:
            return AssetStatus.DISPOSED
        if self.closing_balance <= 0:
            return AssetStatus.FULLY_DEPRECIATED
        return AssetStatus.ACTIVE

    @property
    def is_disposed(self) -> bool:
        return self.disposal is not None

    @property
    def pool_base(self) -> Decimal:
        """Value the asset contributes to the pool at the start of the year."""
        if self.is_first_year:
            return self.cost
        if self.opening_balance is not None:
            return self.opening_balance
        return self.cost


class PoolSummary(FrozenModel):
    """
    Derived totals for one pool year.
    closing_balance is never negative: a negative raw balance is clamped to
    zero and the excess reported as assessable_balancing_adjustment.
    """
    opening_balance: Decimal = Decimal("0")
    additions: Decimal = Decimal("0")
    decline_in_value: Decimal = Decimal("0")
    disposals: Decimal = Decimal("0")
    closing_balance: Decimal = Decimal("0")
    assessable_balancing_adjustment: Decimal = Decimal("0")
    deductible_amount: Decimal = Decimal("0")


class LowValuePoolWorkpaper(FrozenModel):
    """
    One tax year of the low-value pool.
    prior_year_closing_balance is the only value carried across years.
    """
    id: str = Field(default_factory=_new_id)
    tax_year: str  # "2024-25"
    prior_year_closing_balance: Decimal = Decimal("0")
    assets: List[LowValuePoolAsset] = Field(default_factory=list)
    summary: PoolSummary = Field(default_factory=PoolSummary)
    notes: Optional[str] = None

    created_at: str = Field(default_factory=utc_now)
    updated_at: Optional[str] = None

    def find_asset(self, asset_id: str) -> Optional[LowValuePoolAsset]:
        for asset in self.assets:
            if asset.id == asset_id:
                return asset
        return None


class PoolExportLine(FrozenModel):
    asset_id: Optional[str] = None
    description: str
    opening_value: Decimal = Decimal("0")
    decline_in_value: Decimal = Decimal("0")
    termination_value: Decimal = Decimal("0")
    closing_balance: Decimal = Decimal("0")
    status: Optional[AssetStatus] = None


class LowValuePoolExport(FrozenModel):
    """Lodgment-ready D6 figures."""
    tax_year: str
    category: AtoCategoryCode = AtoCategoryCode.D6
    category_name: str = "Low-value pool deduction"
    claim_amount: Decimal
    summary: PoolSummary
    lines: List[PoolExportLine] = Field(default_factory=list)
    asset_count: int = 0
    disposed_asset_count: int = 0
    generated_at: str = Field(default_factory=utc_now)


# ==================== CLAIMS ====================

class CategoryClaim(FrozenModel):
    """
    Claimed amount for one (category, tax year).
    Finalized claims are read-only until reopened.
    """
    id: str = Field(default_factory=_new_id)
    category_code: AtoCategoryCode
    tax_year: str
    amount: Decimal = Decimal("0")
    description: Optional[str] = None
    receipt_count: int = 0
    is_finalized: bool = False
    finalized_at: Optional[str] = None

    created_at: str = Field(default_factory=utc_now)
    updated_at: Optional[str] = None


# ==================== VALIDATION ====================

@dataclass
class ValidationResult:
    """Outcome of validating a workpaper. Errors block export, warnings do not."""
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        return ValidationResult(
            errors=self.errors + other.errors,
            warnings=self.warnings + other.warnings,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }
