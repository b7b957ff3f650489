"""
Tally Core - ATO Deduction Category Catalogue

Static reference data for the ATO individual tax return deduction and
offset labels D1-D15, lookup helpers, and a keyword table used to suggest
categories for a free-text expense description.

Tax Year: 2024-25
"""

import logging
import re
from decimal import Decimal
from typing import Dict, FrozenSet, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from tally_core.models.enums import (
    AtoCategoryCode,
    CategoryKind,
    CategoryPriority,
    ReceiptRequirement,
)
from tally_core.utils.validation_errors import ValidationError

logger = logging.getLogger(__name__)

ATO_DEDUCTIONS_URL = "https://www.ato.gov.au/individuals-and-families/income-deductions-offsets-and-records/deductions-you-can-claim"
ATO_OFFSETS_URL = "https://www.ato.gov.au/individuals-and-families/income-deductions-offsets-and-records/offsets-and-rebates"


class AtoCategory(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: AtoCategoryCode
    name: str
    short_description: str
    description: str
    kind: CategoryKind = CategoryKind.DEDUCTION
    priority: CategoryPriority = CategoryPriority.MEDIUM
    estimated_users_percentage: float = 0
    receipt_requirement: ReceiptRequirement = ReceiptRequirement.REQUIRED
    receipt_threshold: Optional[Decimal] = None
    receipt_description: str = ""
    related_codes: Tuple[AtoCategoryCode, ...] = ()
    ato_reference: str = ATO_DEDUCTIONS_URL


def _codes(*codes: str) -> Tuple[AtoCategoryCode, ...]:
    return tuple(AtoCategoryCode(c) for c in codes)


# ==================== CATALOGUE ====================

ATO_CATEGORIES: Tuple[AtoCategory, ...] = (
    AtoCategory(
        code=AtoCategoryCode.D1,
        name="Work-related car expenses",
        short_description="Car expenses for work-related travel",
        description=(
            "Costs of using your own car for work, including travel between workplaces, "
            "to meetings, or to alternate job sites. The normal commute between home and "
            "work is not claimable unless you carry bulky tools that cannot be left at work."
        ),
        priority=CategoryPriority.HIGH,
        estimated_users_percentage=35,
        receipt_requirement=ReceiptRequirement.DEPENDS,
        receipt_threshold=Decimal("0"),
        receipt_description=(
            "Cents per km: no receipts but keep a record of work trips. "
            "Logbook: a 12 week logbook plus receipts for all car expenses."
        ),
        related_codes=_codes("D2", "D5"),
        ato_reference=f"{ATO_DEDUCTIONS_URL}/cars-transport-and-travel",
    ),
    AtoCategory(
        code=AtoCategoryCode.D2,
        name="Work-related travel expenses",
        short_description="Travel expenses excluding car expenses",
        description=(
            "Flights, accommodation, meals and incidentals when travelling overnight for "
            "work, plus public transport, taxis, rideshare, tolls and parking for work trips."
        ),
        priority=CategoryPriority.HIGH,
        estimated_users_percentage=15,
        receipt_requirement=ReceiptRequirement.REQUIRED,
        receipt_threshold=Decimal("300"),
        receipt_description="Receipts required for all expenses once a trip totals more than $300.",
        related_codes=_codes("D1", "D5"),
        ato_reference=f"{ATO_DEDUCTIONS_URL}/cars-transport-and-travel",
    ),
    AtoCategory(
        code=AtoCategoryCode.D3,
        name="Work-related clothing, laundry and dry-cleaning",
        short_description="Occupation-specific and protective clothing",
        description=(
            "Compulsory uniforms, occupation-specific and protective clothing, and the cost "
            "of washing, drying, ironing and dry-cleaning them. Conventional clothing is not claimable."
        ),
        priority=CategoryPriority.MEDIUM,
        estimated_users_percentage=25,
        receipt_requirement=ReceiptRequirement.DEPENDS,
        receipt_threshold=Decimal("150"),
        receipt_description="Laundry up to $150 can be claimed on a reasonable basis; keep receipts for clothing and dry-cleaning.",
        related_codes=_codes("D5"),
        ato_reference=f"{ATO_DEDUCTIONS_URL}/clothing-and-laundry",
    ),
    AtoCategory(
        code=AtoCategoryCode.D4,
        name="Work-related self-education expenses",
        short_description="Education directly related to current employment",
        description=(
            "Course fees, textbooks, stationery, travel and depreciation for study that "
            "maintains or improves the skills of your current employment. The first $250 "
            "of certain expenses reduces the deductible amount."
        ),
        priority=CategoryPriority.MEDIUM,
        estimated_users_percentage=10,
        receipt_requirement=ReceiptRequirement.REQUIRED,
        receipt_threshold=Decimal("0"),
        receipt_description="Receipts required for all expenses including course fees, textbooks, stationery and travel.",
        related_codes=_codes("D5"),
        ato_reference=f"{ATO_DEDUCTIONS_URL}/self-education-expenses",
    ),
    AtoCategory(
        code=AtoCategoryCode.D5,
        name="Other work-related expenses",
        short_description="Other expenses related to earning income",
        description=(
            "Home office running costs, phone and internet, tools and equipment, union fees, "
            "subscriptions and other costs of earning your salary or wages. Items over $300 "
            "are depreciated."
        ),
        priority=CategoryPriority.HIGH,
        estimated_users_percentage=40,
        receipt_requirement=ReceiptRequirement.DEPENDS,
        receipt_threshold=Decimal("300"),
        receipt_description="Receipts required for items over $300; phone and internet need bills and a 4 week diary.",
        related_codes=_codes("D1", "D2", "D3", "D4", "D6"),
        ato_reference=f"{ATO_DEDUCTIONS_URL}/home-office-expenses",
    ),
    AtoCategory(
        code=AtoCategoryCode.D6,
        name="Low-value pool deduction",
        short_description="Decline in value of low-cost and low-value assets",
        description=(
            "Decline in value of assets allocated to a low-value pool: 18.75% of cost in the "
            "first year and 37.5% of the pool balance in later years."
        ),
        priority=CategoryPriority.LOW,
        estimated_users_percentage=5,
        receipt_requirement=ReceiptRequirement.REQUIRED,
        receipt_threshold=Decimal("0"),
        receipt_description="Keep receipts showing the cost of each pooled asset and records of disposals.",
        related_codes=_codes("D5"),
        ato_reference="https://www.ato.gov.au/businesses-and-organisations/depreciation-and-capital-expenses-and-allowances/depreciation-of-assets/low-value-pools",
    ),
    AtoCategory(
        code=AtoCategoryCode.D7,
        name="Interest, dividend and other investment income deductions",
        short_description="Costs to earn interest, dividends or investment income",
        description=(
            "Account fees, investment advice, interest on investment loans and management "
            "fees incurred to earn interest, dividends or other investment income."
        ),
        priority=CategoryPriority.MEDIUM,
        estimated_users_percentage=20,
        receipt_requirement=ReceiptRequirement.REQUIRED,
        receipt_description="Keep statements and invoices for every investment expense.",
        related_codes=_codes("D8"),
        ato_reference=f"{ATO_DEDUCTIONS_URL}/investments",
    ),
    AtoCategory(
        code=AtoCategoryCode.D8,
        name="Gifts and donations",
        short_description="Donations to deductible gift recipients",
        description=(
            "Gifts of $2 or more to deductible gift recipients (DGRs). The gift must be "
            "genuine with nothing received in return, and can be money, property, shares, "
            "cultural gifts or bequests."
        ),
        priority=CategoryPriority.MEDIUM,
        estimated_users_percentage=30,
        receipt_requirement=ReceiptRequirement.REQUIRED,
        receipt_threshold=Decimal("2"),
        receipt_description="Keep a receipt from the DGR for each gift of $2 or more.",
        ato_reference=f"{ATO_DEDUCTIONS_URL}/gifts-and-donations",
    ),
    AtoCategory(
        code=AtoCategoryCode.D9,
        name="Cost of managing tax affairs",
        short_description="Costs to prepare and lodge your tax return",
        description=(
            "Tax agent fees, tax reference materials, and travel to obtain tax advice "
            "paid during the income year."
        ),
        priority=CategoryPriority.HIGH,
        estimated_users_percentage=45,
        receipt_requirement=ReceiptRequirement.REQUIRED,
        receipt_description="Keep the tax agent's invoice and receipts for other tax management costs.",
        ato_reference=f"{ATO_DEDUCTIONS_URL}/cost-of-managing-tax-affairs",
    ),
    AtoCategory(
        code=AtoCategoryCode.D10,
        name="Personal superannuation contributions",
        short_description="Voluntary contributions to superannuation",
        description=(
            "Personal contributions to a complying super fund or RSA. You must give the fund "
            "a notice of intent to claim and receive its acknowledgment before claiming."
        ),
        priority=CategoryPriority.MEDIUM,
        estimated_users_percentage=10,
        receipt_requirement=ReceiptRequirement.REQUIRED,
        receipt_description="Keep the fund's acknowledgment of your notice of intent.",
        ato_reference="https://www.ato.gov.au/individuals-and-families/super-for-individuals",
    ),
    AtoCategory(
        code=AtoCategoryCode.D11,
        name="Deductible amount of undeducted purchase price of a foreign pension or annuity",
        short_description="Return of capital in a foreign pension or annuity",
        description=(
            "The portion of a foreign pension or annuity that returns the undeducted "
            "purchase price you paid, as advised by the payer or fund."
        ),
        priority=CategoryPriority.LOW,
        estimated_users_percentage=3,
        receipt_requirement=ReceiptRequirement.REQUIRED,
        receipt_description="Keep the payer's statement of the deductible amount.",
        ato_reference=ATO_DEDUCTIONS_URL,
    ),
    AtoCategory(
        code=AtoCategoryCode.D12,
        name="National Rental Affordability Scheme (NRAS) tax offset",
        short_description="NRAS tax offset for affordable housing investment",
        description=(
            "Refundable offset for investing in approved NRAS dwellings that provide "
            "affordable rental accommodation."
        ),
        kind=CategoryKind.OFFSET,
        priority=CategoryPriority.LOW,
        estimated_users_percentage=1,
        receipt_requirement=ReceiptRequirement.REQUIRED,
        receipt_description="Keep the NRAS certificate issued for the dwelling.",
        ato_reference=f"{ATO_OFFSETS_URL}/national-rental-affordability-scheme-tax-offset",
    ),
    AtoCategory(
        code=AtoCategoryCode.D13,
        name="Early stage venture capital limited partnership tax offset",
        short_description="ESVCLP investment tax offset",
        description="Offset of 10% of contributions to Early Stage Venture Capital Limited Partnerships.",
        kind=CategoryKind.OFFSET,
        priority=CategoryPriority.LOW,
        estimated_users_percentage=0.5,
        receipt_requirement=ReceiptRequirement.REQUIRED,
        receipt_description="Keep the partnership's statement of your contributions.",
        ato_reference="https://www.ato.gov.au/businesses-and-organisations/income-deductions-offsets-and-records/tax-offsets/early-stage-venture-capital-limited-partnerships",
    ),
    AtoCategory(
        code=AtoCategoryCode.D14,
        name="Early stage investor tax offset",
        short_description="Tax offset for early stage innovation company investments",
        description="Offset of 20% of investments in qualifying early stage innovation companies, subject to a cap.",
        kind=CategoryKind.OFFSET,
        priority=CategoryPriority.LOW,
        estimated_users_percentage=0.5,
        receipt_requirement=ReceiptRequirement.REQUIRED,
        receipt_description="Keep share issue records and evidence the company qualifies.",
        ato_reference="https://www.ato.gov.au/businesses-and-organisations/tax-incentives-for-innovation/early-stage-investors",
    ),
    AtoCategory(
        code=AtoCategoryCode.D15,
        name="Exploration credit tax offset",
        short_description="Greenfields minerals exploration credit",
        description="Credits distributed by junior minerals exploration companies for greenfields exploration.",
        kind=CategoryKind.OFFSET,
        priority=CategoryPriority.LOW,
        estimated_users_percentage=0.1,
        receipt_requirement=ReceiptRequirement.REQUIRED,
        receipt_description="Keep the exploration credit statement from the company.",
        ato_reference="https://www.ato.gov.au/businesses-and-organisations/income-deductions-offsets-and-records/tax-offsets/exploration-credits",
    ),
)

_BY_CODE: Dict[AtoCategoryCode, AtoCategory] = {c.code: c for c in ATO_CATEGORIES}


# ==================== LOOKUPS ====================

def parse_category_code(code) -> AtoCategoryCode:
    """Accept "d5", "D5" or AtoCategoryCode.D5."""
    try:
        return AtoCategoryCode(str(code.value if isinstance(code, AtoCategoryCode) else code).upper())
    except ValueError:
        raise ValidationError("category_code", "unknown ATO category code", code)


def get_category_by_code(code) -> Optional[AtoCategory]:
    try:
        return _BY_CODE.get(parse_category_code(code))
    except ValidationError:
        return None


def get_all_categories() -> List[AtoCategory]:
    return list(ATO_CATEGORIES)


def get_categories_by_priority(priority) -> List[AtoCategory]:
    priority = CategoryPriority(priority)
    return [c for c in ATO_CATEGORIES if c.priority == priority]


def get_related_categories(code) -> List[AtoCategory]:
    category = get_category_by_code(code)
    if category is None:
        return []
    return [_BY_CODE[c] for c in category.related_codes]


def search_categories(keyword: str) -> List[AtoCategory]:
    """Substring match over name and descriptions, or an exact code."""
    needle = keyword.strip().lower()
    if not needle:
        return []
    return [
        c for c in ATO_CATEGORIES
        if needle in c.name.lower()
        or needle in c.short_description.lower()
        or needle in c.description.lower()
        or needle == c.code.value.lower()
    ]


def get_categories_by_usage() -> List[AtoCategory]:
    """Most commonly claimed first"""
    return sorted(ATO_CATEGORIES, key=lambda c: c.estimated_users_percentage, reverse=True)


def requires_receipts(code) -> Dict[str, object]:
    category = get_category_by_code(code)
    if category is None:
        return {"required": True, "threshold": None, "description": "Unknown category"}
    return {
        "required": category.receipt_requirement in (ReceiptRequirement.REQUIRED, ReceiptRequirement.DEPENDS),
        "threshold": category.receipt_threshold,
        "description": category.receipt_description,
    }


def get_category_stats() -> Dict[str, int]:
    return {
        "total": len(ATO_CATEGORIES),
        "deductions": sum(1 for c in ATO_CATEGORIES if c.kind == CategoryKind.DEDUCTION),
        "offsets": sum(1 for c in ATO_CATEGORIES if c.kind == CategoryKind.OFFSET),
        "high_priority": len(get_categories_by_priority(CategoryPriority.HIGH)),
        "medium_priority": len(get_categories_by_priority(CategoryPriority.MEDIUM)),
        "low_priority": len(get_categories_by_priority(CategoryPriority.LOW)),
        "high_usage": sum(1 for c in ATO_CATEGORIES if c.estimated_users_percentage > 20),
    }


# ==================== EXPENSE SUGGESTIONS ====================

# Multi-word keywords are matched as whole phrases
CATEGORY_KEYWORDS: Dict[AtoCategoryCode, FrozenSet[str]] = {
    AtoCategoryCode.D1: frozenset({
        "car", "fuel", "petrol", "diesel", "logbook", "kilometres", "km", "rego",
        "registration", "car insurance", "car service", "tyres", "car repairs",
    }),
    AtoCategoryCode.D2: frozenset({
        "flight", "flights", "airfare", "hotel", "accommodation", "taxi", "uber",
        "rideshare", "train", "bus", "toll", "tolls", "parking", "travel",
        "conference travel", "overnight",
    }),
    AtoCategoryCode.D3: frozenset({
        "uniform", "laundry", "dry cleaning", "protective",
        "safety boots", "hi vis", "high visibility", "work boots", "clothing",
    }),
    AtoCategoryCode.D4: frozenset({
        "course", "tuition", "textbook", "textbooks", "university", "tafe",
        "degree", "diploma", "certificate", "seminar", "workshop", "training",
        "course fees", "self education", "study",
    }),
    AtoCategoryCode.D5: frozenset({
        "phone", "mobile", "internet", "home office", "stationery", "tools",
        "equipment", "union fees", "subscription", "subscriptions", "software",
        "computer", "laptop", "desk", "chair", "professional membership",
    }),
    AtoCategoryCode.D6: frozenset({
        "low value pool", "pooled asset", "depreciation pool",
    }),
    AtoCategoryCode.D7: frozenset({
        "investment", "dividend", "dividends", "brokerage", "margin loan",
        "investment loan", "interest", "financial advice", "share portfolio",
        "account fees", "management fees",
    }),
    AtoCategoryCode.D8: frozenset({
        "donation", "donations", "charity", "gift", "dgr", "red cross",
        "salvation army", "fundraiser", "appeal",
    }),
    AtoCategoryCode.D9: frozenset({
        "tax agent", "accountant", "tax return", "tax advice", "tax preparation",
        "bookkeeping", "lodgment", "lodgement",
    }),
    AtoCategoryCode.D10: frozenset({
        "super", "superannuation", "super fund", "personal contribution",
        "notice of intent", "concessional contribution",
    }),
    AtoCategoryCode.D11: frozenset({
        "annuity", "foreign pension", "pension", "undeducted purchase price", "upp",
    }),
    AtoCategoryCode.D12: frozenset({
        "nras", "rental affordability", "affordable housing",
    }),
    AtoCategoryCode.D13: frozenset({
        "esvclp", "venture capital", "limited partnership",
    }),
    AtoCategoryCode.D14: frozenset({
        "esic", "early stage investor", "innovation company", "startup investment",
    }),
    AtoCategoryCode.D15: frozenset({
        "exploration credit", "exploration credits", "minerals exploration", "ajmec",
    }),
}

# Score for naming the category code itself, e.g. "D5 expense"
CODE_MENTION_SCORE = 5
DEFAULT_SUGGESTION_LIMIT = 3

_TOKEN_RE = re.compile(r"[a-z0-9]+")


def _tokenize(text: str) -> List[str]:
    return _TOKEN_RE.findall(text.lower())


def _contains_phrase(tokens: List[str], phrase: List[str]) -> bool:
    size = len(phrase)
    return any(tokens[i:i + size] == phrase for i in range(len(tokens) - size + 1))


def score_expense_description(description: str) -> Dict[AtoCategoryCode, int]:
    """
    Keyword score per category.
    A matched keyword scores its word count, so longer phrases rank as more
    specific; naming the code scores CODE_MENTION_SCORE.
    """
    tokens = _tokenize(description or "")
    scores: Dict[AtoCategoryCode, int] = {}
    if not tokens:
        return scores

    token_set = set(tokens)
    for code, keywords in CATEGORY_KEYWORDS.items():
        score = 0
        for keyword in keywords:
            phrase = _tokenize(keyword)
            if not phrase:
                continue
            if len(phrase) == 1:
                if phrase[0] in token_set:
                    score += 1
            elif _contains_phrase(tokens, phrase):
                score += len(phrase)
        if code.value.lower() in token_set:
            score += CODE_MENTION_SCORE
        if score:
            scores[code] = score
    return scores


def suggest_categories_for_expense(description: str, limit: int = DEFAULT_SUGGESTION_LIMIT) -> List[AtoCategory]:
    """
    Suggest categories for an expense description.
    Ranked by score, ties broken by catalogue order; empty when nothing matches.
    """
    scores = score_expense_description(description)
    order = {c.code: i for i, c in enumerate(ATO_CATEGORIES)}
    ranked = sorted(scores, key=lambda code: (-scores[code], order[code]))
    if not ranked:
        logger.debug(f"No category suggestions for expense: {description!r}")
    return [_BY_CODE[code] for code in ranked[:limit]]
