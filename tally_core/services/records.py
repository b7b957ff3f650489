"""
Tally Core - Category Record Stores

Per-category, per-tax-year collections of user-entered records:
- DonationStore (D8)
- SuperContributionStore (D10)
- UPPStore (D11)
- SelfEducationWorkpaper (D4 courses, expenses, depreciating assets)

Stores are immutable values: add / update / delete return a new store.
Each store type has its own persistence namespace.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import ClassVar, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from tally_core.models.enums import DonationType, UPPType
from tally_core.models.records import (
    CategoryRecord,
    Course,
    DepreciatingAsset,
    Donation,
    EducationExpense,
    SuperContribution,
    UPPEntry,
)
from tally_core.services import tax_modules
from tally_core.services.workpaper.models import ValidationResult
from tally_core.utils.currency import ZERO
from tally_core.utils.validation_errors import UnknownRecordError, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=CategoryRecord)

# Fields a record keeps for life
_FIXED_RECORD_FIELDS = ("id", "created_at")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ==================== RECORD LIST HELPERS ====================

def _add_record(records: List[T], record: T) -> List[T]:
    if any(r.id == record.id for r in records):
        raise ValidationError("id", f"a record with id {record.id} already exists", record.id)
    record.check()
    return records + [record]


def _update_record(records: List[T], record_id: str, record_type: str, changes: dict) -> List[T]:
    existing = next((r for r in records if r.id == record_id), None)
    if existing is None:
        raise UnknownRecordError(record_type, record_id)
    for name in _FIXED_RECORD_FIELDS:
        if name in changes:
            raise ValidationError(name, f"{name} cannot be changed", changes[name], record_id)
    known = type(existing).model_fields
    for name in changes:
        if name not in known:
            raise ValidationError(name, f"{name} is not a {record_type} field", changes[name], record_id)

    merged = existing.model_dump()
    merged.update(changes)
    merged["updated_at"] = _now()
    updated = type(existing).create(**merged)
    return [updated if r.id == record_id else r for r in records]


def _remove_record(records: List[T], record_id: str, record_type: str) -> List[T]:
    if not any(r.id == record_id for r in records):
        raise UnknownRecordError(record_type, record_id)
    return [r for r in records if r.id != record_id]


# ==================== GENERIC STORE ====================

class CategoryRecordStore(BaseModel, Generic[T]):
    """Base class for a tax year's records in one category"""
    model_config = ConfigDict(frozen=True, extra="ignore")

    NAMESPACE: ClassVar[str] = "tally_records"
    RECORD_TYPE: ClassVar[Type[CategoryRecord]] = CategoryRecord

    tax_year: str
    records: List[T] = Field(default_factory=list)
    updated_at: Optional[str] = None

    @property
    def record_type_name(self) -> str:
        return self.RECORD_TYPE.__name__

    def add(self, record: T):
        """Add a record built with Record.create(...)"""
        records = _add_record(self.records, record)
        logger.info(f"Added {self.record_type_name} {record.id} to {self.NAMESPACE} {self.tax_year}")
        return self.model_copy(update={"records": records, "updated_at": _now()})

    def update(self, record_id: str, **changes):
        """Update a record; the merged record is re-checked"""
        records = _update_record(self.records, record_id, self.record_type_name, changes)
        logger.info(f"Updated {self.record_type_name} {record_id}", extra={"fields": sorted(changes)})
        return self.model_copy(update={"records": records, "updated_at": _now()})

    def delete(self, record_id: str):
        records = _remove_record(self.records, record_id, self.record_type_name)
        logger.info(f"Deleted {self.record_type_name} {record_id} from {self.NAMESPACE} {self.tax_year}")
        return self.model_copy(update={"records": records, "updated_at": _now()})

    def get(self, record_id: str) -> Optional[T]:
        for record in self.records:
            if record.id == record_id:
                return record
        return None

    def list_all(self) -> List[T]:
        return list(self.records)

    def filter(self, **kwargs) -> List[T]:
        """Filter records by field values"""
        filtered = self.records
        for key, value in kwargs.items():
            filtered = [r for r in filtered if getattr(r, key, None) == value]
        return list(filtered)

    def validate_records(self) -> ValidationResult:
        result = ValidationResult()
        for record in self.records:
            try:
                record.check()
            except ValidationError as e:
                result.errors.append(f"{self.record_type_name} {record.id}: {e}")
        return result


# ==================== SPECIFIC STORES ====================

class DonationStore(CategoryRecordStore[Donation]):
    NAMESPACE: ClassVar[str] = "tally_d8_donations"
    RECORD_TYPE: ClassVar[Type[CategoryRecord]] = Donation

    def get_total_donations(self) -> Decimal:
        return tax_modules.calculate_donations(self.records).total_donations

    def get_deductible_total(self) -> Decimal:
        """Gifts to a DGR of $2 or more"""
        return tax_modules.calculate_donations(self.records).deductible_total

    def get_donations_by_type(self, donation_type: DonationType) -> List[Donation]:
        return self.filter(type=DonationType(donation_type))

    def validate_records(self) -> ValidationResult:
        return tax_modules.validate_donations(self.records)


class SuperContributionStore(CategoryRecordStore[SuperContribution]):
    NAMESPACE: ClassVar[str] = "tally_d10_super_contributions"
    RECORD_TYPE: ClassVar[Type[CategoryRecord]] = SuperContribution

    def get_total_contributions(self) -> Decimal:
        """Acknowledged contributions only"""
        return tax_modules.calculate_super_contributions(self.records).countable_total

    def get_all_contributions_total(self) -> Decimal:
        return tax_modules.calculate_super_contributions(self.records).total_contributions

    def get_valid_contributions(self) -> List[SuperContribution]:
        return [c for c in self.records if c.acknowledgment_received]

    def get_pending_contributions(self) -> List[SuperContribution]:
        """Contributions still waiting on the fund's acknowledgment"""
        return [c for c in self.records if not c.acknowledgment_received]

    def validate_records(self) -> ValidationResult:
        return tax_modules.validate_super_contributions(self.records)


class UPPStore(CategoryRecordStore[UPPEntry]):
    NAMESPACE: ClassVar[str] = "tally_d11_upp_deductions"
    RECORD_TYPE: ClassVar[Type[CategoryRecord]] = UPPEntry

    def get_total_deductible(self) -> Decimal:
        return tax_modules.calculate_upp(self.records).total_deductible

    def get_total_gross(self) -> Decimal:
        return tax_modules.calculate_upp(self.records).total_gross

    def get_entries_by_type(self, entry_type: UPPType) -> List[UPPEntry]:
        return self.filter(type=UPPType(entry_type))

    def validate_records(self) -> ValidationResult:
        return tax_modules.validate_upp(self.records)


# ==================== D4 SELF-EDUCATION WORKPAPER ====================

class SelfEducationWorkpaper(BaseModel):
    """
    A tax year of D4 records.
    taxable_income_reduction and total_deductible are derived by recalculate().
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    NAMESPACE: ClassVar[str] = "tally_self_education_workpaper"

    tax_year: str
    courses: List[Course] = Field(default_factory=list)
    expenses: List[EducationExpense] = Field(default_factory=list)
    depreciating_assets: List[DepreciatingAsset] = Field(default_factory=list)
    taxable_income_reduction: Decimal = ZERO
    total_deductible: Decimal = ZERO
    created_at: str = Field(default_factory=_now)
    updated_at: Optional[str] = None

    def recalculate(self) -> "SelfEducationWorkpaper":
        """Depreciate assets and refresh the reduction and deductible totals"""
        assets = [tax_modules.depreciate_asset(a) for a in self.depreciating_assets]
        reduction = tax_modules.calculate_taxable_income_reduction(self.expenses)
        deductible = tax_modules.calculate_self_education_deduction(self.expenses, assets, reduction)
        return self.model_copy(update={
            "depreciating_assets": assets,
            "taxable_income_reduction": reduction,
            "total_deductible": deductible,
        })

    def _touch(self, **changes) -> "SelfEducationWorkpaper":
        changes["updated_at"] = _now()
        return self.model_copy(update=changes).recalculate()

    # Courses
    def add_course(self, course: Course) -> "SelfEducationWorkpaper":
        logger.info(f"Added course {course.id} to D4 {self.tax_year}")
        return self._touch(courses=_add_record(self.courses, course))

    def update_course(self, course_id: str, **changes) -> "SelfEducationWorkpaper":
        return self._touch(courses=_update_record(self.courses, course_id, "Course", changes))

    def remove_course(self, course_id: str) -> "SelfEducationWorkpaper":
        logger.info(f"Removed course {course_id} from D4 {self.tax_year}")
        return self._touch(courses=_remove_record(self.courses, course_id, "Course"))

    # Expenses
    def add_expense(self, expense: EducationExpense) -> "SelfEducationWorkpaper":
        logger.info(f"Added D4 expense {expense.id}", extra={"expense_type": expense.type.value})
        return self._touch(expenses=_add_record(self.expenses, expense))

    def update_expense(self, expense_id: str, **changes) -> "SelfEducationWorkpaper":
        return self._touch(expenses=_update_record(self.expenses, expense_id, "EducationExpense", changes))

    def remove_expense(self, expense_id: str) -> "SelfEducationWorkpaper":
        logger.info(f"Removed D4 expense {expense_id}")
        return self._touch(expenses=_remove_record(self.expenses, expense_id, "EducationExpense"))

    # Depreciating assets
    def add_asset(self, asset: DepreciatingAsset) -> "SelfEducationWorkpaper":
        logger.info(f"Added D4 depreciating asset {asset.id}")
        return self._touch(depreciating_assets=_add_record(self.depreciating_assets, asset))

    def update_asset(self, asset_id: str, **changes) -> "SelfEducationWorkpaper":
        return self._touch(
            depreciating_assets=_update_record(self.depreciating_assets, asset_id, "DepreciatingAsset", changes)
        )

    def remove_asset(self, asset_id: str) -> "SelfEducationWorkpaper":
        logger.info(f"Removed D4 depreciating asset {asset_id}")
        return self._touch(
            depreciating_assets=_remove_record(self.depreciating_assets, asset_id, "DepreciatingAsset")
        )

    def validate_workpaper(self) -> ValidationResult:
        return tax_modules.validate_self_education(self.courses, self.expenses, self.depreciating_assets)

    def summary(self) -> dict:
        return tax_modules.generate_d4_workpaper_summary(self)

    def carry_forward(self, next_tax_year: str) -> "SelfEducationWorkpaper":
        """Start next year's workpaper with this year's assets at their closing balances"""
        current = self.recalculate()
        return SelfEducationWorkpaper(
            tax_year=next_tax_year,
            depreciating_assets=tax_modules.carry_forward_assets(current.depreciating_assets),
        ).recalculate()
