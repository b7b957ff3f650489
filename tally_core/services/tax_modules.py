"""
Tally Core - Category Deduction Calculators

Implements the ATO deduction rules for:
- D4 Self-education (the $250 reduction, apportionment, depreciation)
- D8 Gifts and donations
- D10 Personal super contributions
- D11 Undeducted purchase price of a pension or annuity

Calculators are pure functions over category records. They never modify
their inputs, never swallow errors, and return result objects with a
to_dict() for JSON output.

Tax Year: 2024-25
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from tally_core.models.enums import (
    DepreciationMethod,
    DonationType,
    EducationExpenseType,
    UPPType,
)
from tally_core.models.records import (
    CategoryRecord,
    Course,
    DepreciatingAsset,
    Donation,
    EducationExpense,
    SuperContribution,
    UPPEntry,
)
from tally_core.services.workpaper.models import ValidationResult
from tally_core.utils.currency import ZERO, round_currency, to_decimal
from tally_core.utils.validation_errors import ValidationError, require_percentage

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


def _check_all(records: Iterable[CategoryRecord]) -> None:
    for record in records:
        record.check()


# ==================== D4 SELF-EDUCATION ====================

# ATO reduction applied to the first $250 of category A expenses
TAXABLE_INCOME_REDUCTION_CAP = Decimal("250")

# Expense types that do not count towards the $250 reduction
REDUCTION_EXCLUDED_TYPES = (EducationExpenseType.TRAVEL, EducationExpenseType.OTHER)

EDUCATION_EXPENSE_TYPES = {
    EducationExpenseType.COURSE_FEES: {
        "label": "Course Fees",
        "description": "Tuition fees, enrollment fees, student union fees",
        "requires_apportionment": False,
    },
    EducationExpenseType.TEXTBOOKS: {
        "label": "Textbooks & Materials",
        "description": "Required textbooks, study guides, course materials",
        "requires_apportionment": False,
    },
    EducationExpenseType.STATIONERY: {
        "label": "Stationery",
        "description": "Notebooks, pens, printing, photocopying",
        "requires_apportionment": True,
    },
    EducationExpenseType.TRAVEL: {
        "label": "Travel Expenses",
        "description": "Travel between home and place of education, or work and education",
        "requires_apportionment": False,
    },
    EducationExpenseType.EQUIPMENT: {
        "label": "Equipment ($300 or less)",
        "description": "Computers, tablets, calculators costing $300 or less",
        "requires_apportionment": True,
    },
    EducationExpenseType.DEPRECIATION: {
        "label": "Depreciation (over $300)",
        "description": "Equipment costing more than $300 (depreciated over effective life)",
        "requires_apportionment": True,
    },
    EducationExpenseType.INTERNET: {
        "label": "Internet & Phone",
        "description": "Internet access and phone calls related to study",
        "requires_apportionment": True,
    },
    EducationExpenseType.OTHER: {
        "label": "Other Expenses",
        "description": "Accommodation, meals (if required to be away from home), childcare",
        "requires_apportionment": False,
    },
}


def _work_related_amount(expense: EducationExpense) -> Decimal:
    return expense.amount * expense.work_related_percentage / HUNDRED


def calculate_expense_deduction(expense: EducationExpense) -> Decimal:
    """
    Deductible part of one expense.
    amount x work-related %, then x (100 - private use %) when apportioned.
    """
    expense.check()
    amount = _work_related_amount(expense)
    if expense.is_apportioned and expense.private_use_percentage:
        amount = amount * (HUNDRED - expense.private_use_percentage) / HUNDRED
    return round_currency(amount)


def calculate_taxable_income_reduction(expenses: List[EducationExpense]) -> Decimal:
    """
    The $250 reduction: work-related amounts of every expense other than
    travel and other, capped at $250.
    """
    _check_all(expenses)
    counted = sum(
        (_work_related_amount(e) for e in expenses if e.type not in REDUCTION_EXCLUDED_TYPES),
        ZERO
    )
    return round_currency(min(TAXABLE_INCOME_REDUCTION_CAP, counted))


def calculate_decline_in_value(
    cost: Any,
    business_use_percentage: Any,
    effective_life_years: Any,
    method: Any = DepreciationMethod.DIMINISHING_VALUE,
    opening_balance: Any = None
) -> Decimal:
    """
    Business portion of one year's decline in value.

    Diminishing value: base x 2 / effective life x business use %
    Prime cost: base / effective life x business use %
    base is the opening balance when carried forward, else cost.
    """
    return _asset_decline(cost, business_use_percentage, effective_life_years, method, opening_balance)[0]


def _asset_decline(cost, business_use_percentage, effective_life_years, method, opening_balance):
    cost = to_decimal(cost, "cost")
    life = to_decimal(effective_life_years, "effective_life_years")
    business_use = to_decimal(business_use_percentage, "business_use_percentage")
    if life <= 0:
        raise ValidationError("effective_life_years", "effective_life_years must be greater than zero", life)
    require_percentage(business_use, "business_use_percentage")
    try:
        method = DepreciationMethod(method)
    except ValueError:
        raise ValidationError("method", "unknown depreciation method", method)

    base = cost if opening_balance is None else to_decimal(opening_balance, "opening_balance")
    if base < 0:
        raise ValidationError("opening_balance", "opening_balance cannot be negative", base)

    if method == DepreciationMethod.PRIME_COST:
        full_year = base / life
    else:
        full_year = base * 2 / life
    full_year = min(base, full_year)

    business_portion = round_currency(full_year * business_use / HUNDRED)
    closing = round_currency(max(ZERO, base - full_year))
    return business_portion, closing


def depreciate_asset(asset: DepreciatingAsset) -> DepreciatingAsset:
    """Compute this year's decline and closing balance for an asset."""
    asset.check()
    decline, closing = _asset_decline(
        asset.cost,
        asset.business_use_percentage,
        asset.effective_life_years,
        asset.method,
        asset.opening_balance,
    )
    return asset.model_copy(update={"decline_in_value": decline, "closing_balance": closing})


def carry_forward_assets(assets: List[DepreciatingAsset]) -> List[DepreciatingAsset]:
    """Next year's assets: closing balance becomes the opening balance."""
    carried = []
    for asset in assets:
        current = asset if asset.closing_balance is not None else depreciate_asset(asset)
        if current.closing_balance <= 0:
            continue
        carried.append(current.model_copy(update={
            "opening_balance": current.closing_balance,
            "decline_in_value": None,
            "closing_balance": None,
            "updated_at": None,
        }))

    if len(carried) < len(assets):
        logger.debug(f"Dropped {len(assets) - len(carried)} fully depreciated D4 assets on carry forward")
    return carried


def calculate_self_education_deduction(
    expenses: List[EducationExpense],
    depreciating_assets: List[DepreciatingAsset],
    taxable_income_reduction: Optional[Decimal] = None
) -> Decimal:
    """max(0, expense deductions + asset decline - reduction)"""
    if taxable_income_reduction is None:
        taxable_income_reduction = calculate_taxable_income_reduction(expenses)
    expense_total = sum((calculate_expense_deduction(e) for e in expenses), ZERO)
    depreciation_total = sum((_stored_or_computed_decline(a) for a in depreciating_assets), ZERO)
    return round_currency(max(ZERO, expense_total + depreciation_total - taxable_income_reduction))


def _stored_or_computed_decline(asset: DepreciatingAsset) -> Decimal:
    if asset.decline_in_value is not None:
        return asset.decline_in_value
    return depreciate_asset(asset).decline_in_value


@dataclass
class SelfEducationResult:
    """Result of the D4 calculation."""
    total_expenses: Decimal
    total_depreciation: Decimal
    taxable_income_reduction: Decimal
    deductible_amount: Decimal
    expenses_by_type: Dict[str, Decimal] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_expenses": float(self.total_expenses),
            "total_depreciation": float(self.total_depreciation),
            "taxable_income_reduction": float(self.taxable_income_reduction),
            "deductible_amount": float(self.deductible_amount),
            "expenses_by_type": {k: float(v) for k, v in self.expenses_by_type.items()},
        }


def calculate_self_education(
    expenses: List[EducationExpense],
    depreciating_assets: List[DepreciatingAsset]
) -> SelfEducationResult:
    reduction = calculate_taxable_income_reduction(expenses)
    total_expenses = sum((calculate_expense_deduction(e) for e in expenses), ZERO)
    total_depreciation = sum((_stored_or_computed_decline(a) for a in depreciating_assets), ZERO)

    by_type: Dict[str, Decimal] = {}
    for expense in expenses:
        key = expense.type.value
        by_type[key] = round_currency(by_type.get(key, ZERO) + _work_related_amount(expense))

    return SelfEducationResult(
        total_expenses=round_currency(total_expenses),
        total_depreciation=round_currency(total_depreciation),
        taxable_income_reduction=reduction,
        deductible_amount=round_currency(max(ZERO, total_expenses + total_depreciation - reduction)),
        expenses_by_type=by_type,
    )


def generate_d4_workpaper_summary(workpaper) -> Dict[str, Any]:
    """Course count, totals and work-related expenses by type for a D4 workpaper."""
    result = calculate_self_education(workpaper.expenses, workpaper.depreciating_assets)
    return {
        "tax_year": workpaper.tax_year,
        "course_count": len(workpaper.courses),
        "expense_count": len(workpaper.expenses),
        "asset_count": len(workpaper.depreciating_assets),
        "total_expenses": result.total_expenses,
        "total_depreciation": result.total_depreciation,
        "taxable_income_reduction": result.taxable_income_reduction,
        "deductible_amount": result.deductible_amount,
        "expenses_by_type": result.expenses_by_type,
    }


def validate_self_education(
    courses: List[Course],
    expenses: List[EducationExpense],
    depreciating_assets: List[DepreciatingAsset]
) -> ValidationResult:
    """
    Errors: malformed records, links to courses or assets that do not exist.
    Warnings: courses that do not look work-related, expenses with no course.
    """
    result = ValidationResult()

    for record in list(courses) + list(expenses) + list(depreciating_assets):
        try:
            record.check()
        except ValidationError as e:
            result.errors.append(f"{type(record).__name__} {record.id}: {e}")

    course_ids = {c.id for c in courses}
    asset_ids = {a.id for a in depreciating_assets}

    for expense in expenses:
        if expense.depreciating_asset_id and expense.depreciating_asset_id not in asset_ids:
            result.errors.append(
                f'Expense "{expense.description}" links to unknown depreciating asset '
                f"{expense.depreciating_asset_id}."
            )
        if expense.course_id and expense.course_id not in course_ids:
            result.errors.append(
                f'Expense "{expense.description}" links to unknown course {expense.course_id}.'
            )

    for course in courses:
        if not course.is_work_related:
            result.warnings.append(
                f'Course "{course.name}" is not marked as related to your current employment.'
            )
        elif not (course.maintains_improves_skills or course.results_in_income_increase):
            result.warnings.append(
                f'Course "{course.name}" must maintain or improve your work skills '
                f"or be likely to increase your income."
            )

    if expenses and not courses:
        result.warnings.append("Expenses are recorded but no course has been entered.")

    return result


ATO_D4_GUIDANCE = {
    "title": "D4 Self-Education Expenses",
    "description": (
        "You can claim a deduction for self-education expenses if your study relates to "
        "your current employment and maintains or improves the specific skills or knowledge "
        "you need, or is likely to result in an increase in your income from that employment."
    ),
    "eligible_if": [
        "The course maintains or improves specific skills/knowledge required for your current employment",
        "The course is likely to result in an increase in income from your current employment",
        "You can show the connection between the course and your current work activities",
    ],
    "not_eligible_if": [
        "The course is only generally related to your current field",
        "The course enables you to get new employment (different occupation)",
        "The study is taken for personal reasons or hobbies",
        "You received government assistance or employer reimbursement for the expenses",
    ],
    "reference": "https://www.ato.gov.au/Individuals/Tax-return/2024/In-detail/Deductions-you-can-claim/D4-Self-education-expenses",
}


# ==================== D8 GIFTS AND DONATIONS ====================

# Gifts to a DGR must be $2 or more
MINIMUM_DEDUCTIBLE_DONATION = Decimal("2")


def is_deductible_donation(donation: Donation) -> bool:
    return donation.dgr_status and donation.amount >= MINIMUM_DEDUCTIBLE_DONATION


@dataclass
class DonationsResult:
    total_donations: Decimal
    deductible_total: Decimal
    deductible_count: int
    excluded_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_donations": float(self.total_donations),
            "deductible_total": float(self.deductible_total),
            "deductible_count": self.deductible_count,
            "excluded_count": self.excluded_count,
        }


def calculate_donations(donations: List[Donation]) -> DonationsResult:
    """Only gifts to a DGR of $2 or more count; the rest are tracked but excluded."""
    _check_all(donations)
    deductible = [d for d in donations if is_deductible_donation(d)]
    if len(deductible) < len(donations):
        logger.debug(
            f"Excluded {len(donations) - len(deductible)} donations without DGR status or under "
            f"${MINIMUM_DEDUCTIBLE_DONATION}"
        )
    return DonationsResult(
        total_donations=round_currency(sum((d.amount for d in donations), ZERO)),
        deductible_total=round_currency(sum((d.amount for d in deductible), ZERO)),
        deductible_count=len(deductible),
        excluded_count=len(donations) - len(deductible),
    )


def validate_donations(donations: List[Donation]) -> ValidationResult:
    result = ValidationResult()
    for donation in donations:
        try:
            donation.check()
        except ValidationError as e:
            result.errors.append(f"Donation {donation.id}: {e}")
            continue
        if donation.type == DonationType.POLITICAL:
            result.warnings.append(
                f"Donation to {donation.organization} is political; "
                f"separate limits apply to political gifts."
            )
        if not donation.dgr_status:
            result.warnings.append(f"Donation to {donation.organization} is not to a DGR and is excluded.")
        elif donation.amount < MINIMUM_DEDUCTIBLE_DONATION:
            result.warnings.append(f"Donation to {donation.organization} is under $2 and is excluded.")
        if donation.dgr_status and not donation.receipt_number:
            result.warnings.append(f"Donation to {donation.organization} has no receipt number.")
    return result


# ==================== D10 PERSONAL SUPER CONTRIBUTIONS ====================

@dataclass
class SuperContributionResult:
    countable_total: Decimal
    total_contributions: Decimal
    pending_total: Decimal
    pending_contribution_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "countable_total": float(self.countable_total),
            "total_contributions": float(self.total_contributions),
            "pending_total": float(self.pending_total),
            "pending_contribution_ids": list(self.pending_contribution_ids),
        }


def calculate_super_contributions(contributions: List[SuperContribution]) -> SuperContributionResult:
    """Only acknowledged contributions count; pending ones are returned as reminders."""
    _check_all(contributions)
    valid = [c for c in contributions if c.acknowledgment_received]
    pending = [c for c in contributions if not c.acknowledgment_received]
    return SuperContributionResult(
        countable_total=round_currency(sum((c.amount for c in valid), ZERO)),
        total_contributions=round_currency(sum((c.amount for c in contributions), ZERO)),
        pending_total=round_currency(sum((c.amount for c in pending), ZERO)),
        pending_contribution_ids=[c.id for c in pending],
    )


def validate_super_contributions(contributions: List[SuperContribution]) -> ValidationResult:
    result = ValidationResult()
    for contribution in contributions:
        try:
            contribution.check()
        except ValidationError as e:
            result.errors.append(f"Contribution {contribution.id}: {e}")
            continue
        if not contribution.notice_submitted:
            result.warnings.append(
                f"Lodge a notice of intent with {contribution.fund_name} before claiming this contribution."
            )
        elif not contribution.acknowledgment_received:
            result.warnings.append(
                f"Waiting on acknowledgment from {contribution.fund_name}; the contribution is excluded until it arrives."
            )
    return result


# ==================== D11 UNDEDUCTED PURCHASE PRICE ====================

@dataclass
class UPPResult:
    total_deductible: Decimal
    total_gross: Decimal
    by_type: Dict[str, Decimal] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_deductible": float(self.total_deductible),
            "total_gross": float(self.total_gross),
            "by_type": {k: float(v) for k, v in self.by_type.items()},
        }


def calculate_upp(entries: List[UPPEntry]) -> UPPResult:
    """Sum of each entry's pre-computed deductible amount."""
    _check_all(entries)
    by_type: Dict[str, Decimal] = {}
    for entry in entries:
        by_type[entry.type.value] = by_type.get(entry.type.value, ZERO) + entry.deductible_amount
    return UPPResult(
        total_deductible=round_currency(sum((e.deductible_amount for e in entries), ZERO)),
        total_gross=round_currency(sum((e.gross_payment for e in entries), ZERO)),
        by_type={k: round_currency(v) for k, v in by_type.items()},
    )


def validate_upp(entries: List[UPPEntry]) -> ValidationResult:
    result = ValidationResult()
    for entry in entries:
        try:
            entry.check()
        except ValidationError as e:
            result.errors.append(f"UPP entry {entry.id}: {e}")
    return result


def get_tax_modules_status() -> Dict[str, Any]:
    """Return status of all category calculators."""
    return {
        "modules": {
            "self_education": {
                "name": "D4 Self-education",
                "expense_types": [t.value for t in EducationExpenseType],
                "depreciation_methods": [m.value for m in DepreciationMethod],
                "reduction_cap": float(TAXABLE_INCOME_REDUCTION_CAP),
                "status": "active"
            },
            "donations": {
                "name": "D8 Gifts and donations",
                "donation_types": [t.value for t in DonationType],
                "minimum_amount": float(MINIMUM_DEDUCTIBLE_DONATION),
                "status": "active"
            },
            "super_contributions": {
                "name": "D10 Personal super contributions",
                "requires": "acknowledgment_received",
                "status": "active"
            },
            "upp": {
                "name": "D11 Undeducted purchase price",
                "entry_types": [t.value for t in UPPType],
                "status": "active"
            }
        },
        "tax_year": "2024-25",
    }
