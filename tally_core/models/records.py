"""
Tally Core - Category Records

User-entered records feeding the category calculators:
- Donation (D8)
- SuperContribution (D10)
- UPPEntry (D11)
- Course, EducationExpense, DepreciatingAsset (D4)

Records are immutable. Build them with Record.create(...) so malformed
input surfaces as a ValidationError naming the field.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from tally_core.models.enums import (
    CourseType,
    DepreciationMethod,
    DonationType,
    EducationExpenseType,
    StudyMode,
    UPPType,
)
from tally_core.utils.currency import parse_iso_date
from tally_core.utils.validation_errors import (
    ValidationError,
    require_non_negative,
    require_percentage,
    require_positive,
)


class CategoryRecord(BaseModel):
    """Base for all category records."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    created_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    updated_at: Optional[str] = None

    @classmethod
    def create(cls, **data):
        """Build and check a record, reporting bad input as ValidationError."""
        try:
            record = cls(**data)
        except PydanticValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ())) or cls.__name__
            raise ValidationError(field, first.get("msg", "invalid value"), first.get("input"), data.get("id"))
        record.check()
        return record

    def check(self) -> None:
        """Raise ValidationError for values outside the category's rules."""

    def _require_text(self, value: Optional[str], field: str) -> None:
        if not value or not value.strip():
            raise ValidationError(field, f"{field} is required", record_id=self.id)

    def _require_date(self, value: Optional[str], field: str) -> None:
        try:
            parse_iso_date(value, field)
        except ValidationError as e:
            e.record_id = self.id
            raise


# ==================== D8 DONATIONS ====================

class Donation(CategoryRecord):
    type: DonationType = DonationType.CASH
    organization: str
    amount: Decimal
    date: str  # ISO date
    dgr_status: bool = False  # Deductible gift recipient
    receipt_number: Optional[str] = None
    description: Optional[str] = None

    def check(self) -> None:
        self._require_text(self.organization, "organization")
        require_non_negative(self.amount, "amount", self.id)
        self._require_date(self.date, "date")


# ==================== D10 SUPER CONTRIBUTIONS ====================

class SuperContribution(CategoryRecord):
    """
    Personal contribution to a super fund.
    Only deductible once the fund acknowledges the notice of intent.
    """
    fund_name: str
    abn: Optional[str] = None
    amount: Decimal
    date: str  # ISO date
    notice_submitted: bool = False
    notice_date: Optional[str] = None
    acknowledgment_received: bool = False

    def check(self) -> None:
        self._require_text(self.fund_name, "fund_name")
        require_non_negative(self.amount, "amount", self.id)
        self._require_date(self.date, "date")
        if self.notice_date:
            self._require_date(self.notice_date, "notice_date")
        if self.acknowledgment_received and not self.notice_submitted:
            raise ValidationError(
                "acknowledgment_received",
                "an acknowledgment requires a submitted notice of intent",
                record_id=self.id
            )


# ==================== D11 UNDEDUCTED PURCHASE PRICE ====================

class UPPEntry(CategoryRecord):
    type: UPPType = UPPType.FOREIGN_PENSION
    description: str
    payer_name: str
    gross_payment: Decimal
    deductible_amount: Decimal  # Pre-computed by the payer or fund
    date: str  # ISO date
    tax_withheld: Optional[Decimal] = None

    def check(self) -> None:
        self._require_text(self.payer_name, "payer_name")
        require_non_negative(self.gross_payment, "gross_payment", self.id)
        require_non_negative(self.deductible_amount, "deductible_amount", self.id)
        if self.deductible_amount > self.gross_payment:
            raise ValidationError(
                "deductible_amount",
                "deductible_amount cannot exceed gross_payment",
                self.deductible_amount,
                self.id
            )
        if self.tax_withheld is not None:
            require_non_negative(self.tax_withheld, "tax_withheld", self.id)
        self._require_date(self.date, "date")


# ==================== D4 SELF-EDUCATION ====================

class Course(CategoryRecord):
    name: str
    provider: str = ""
    course_type: CourseType = CourseType.OTHER
    study_mode: StudyMode = StudyMode.PART_TIME
    start_date: str  # ISO date
    end_date: Optional[str] = None
    is_work_related: bool = True
    leads_to_qualification: bool = False
    maintains_improves_skills: bool = True
    results_in_income_increase: bool = False

    def check(self) -> None:
        self._require_text(self.name, "name")
        self._require_date(self.start_date, "start_date")
        if self.end_date:
            self._require_date(self.end_date, "end_date")
            if parse_iso_date(self.end_date) < parse_iso_date(self.start_date):
                raise ValidationError("end_date", "end_date is before start_date", self.end_date, self.id)


class EducationExpense(CategoryRecord):
    type: EducationExpenseType = EducationExpenseType.COURSE_FEES
    description: str
    amount: Decimal
    date: str  # ISO date
    course_id: Optional[str] = None
    provider: Optional[str] = None
    receipt_id: Optional[str] = None

    # Apportionment
    work_related_percentage: Decimal = Decimal("100")
    is_apportioned: bool = False
    private_use_percentage: Decimal = Decimal("0")

    # Informational link; the asset's decline is claimed separately
    depreciating_asset_id: Optional[str] = None

    def check(self) -> None:
        require_non_negative(self.amount, "amount", self.id)
        require_percentage(self.work_related_percentage, "work_related_percentage", self.id)
        require_percentage(self.private_use_percentage, "private_use_percentage", self.id)
        self._require_date(self.date, "date")


class DepreciatingAsset(CategoryRecord):
    """Study equipment costing more than $300, depreciated over its effective life."""
    name: str
    cost: Decimal
    purchase_date: str  # ISO date
    effective_life_years: Decimal
    business_use_percentage: Decimal = Decimal("100")
    method: DepreciationMethod = DepreciationMethod.DIMINISHING_VALUE

    # Written-down value carried in from the prior year
    opening_balance: Optional[Decimal] = None

    # Populated by depreciate_asset
    decline_in_value: Optional[Decimal] = None
    closing_balance: Optional[Decimal] = None

    def check(self) -> None:
        self._require_text(self.name, "name")
        require_positive(self.cost, "cost", self.id)
        require_positive(self.effective_life_years, "effective_life_years", self.id)
        require_percentage(self.business_use_percentage, "business_use_percentage", self.id)
        if self.opening_balance is not None:
            require_non_negative(self.opening_balance, "opening_balance", self.id)
        self._require_date(self.purchase_date, "purchase_date")
