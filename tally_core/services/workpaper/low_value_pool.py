"""
Tally Core - D6 Low-Value Pool Ledger

ATO rules encoded here:
- Eligibility: assets costing no more than $1,000, or assets already pooled
  in a prior year and carried in at their written-down value
- First year: 18.75% of cost (half the pool rate, regardless of purchase date)
- Pooled members: 37.5% of the opening balance
- Disposal: the termination value reduces the pool; a disposed asset stops
  declining in value
- Closing balance = opening + additions - decline in value - disposals,
  floored at zero with any excess assessable

Every function takes a LowValuePoolWorkpaper and returns a new one. Inputs
are never mutated and errors are raised before anything is built.

Reference: https://www.ato.gov.au/individuals/income-and-deductions/deductions-you-can-claim/other-deductions/low-value-pool
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from tally_core.models.enums import AssetStatus, DisposalType
from tally_core.services.workpaper.models import (
    DisposalRecord,
    LowValuePoolAsset,
    LowValuePoolExport,
    LowValuePoolWorkpaper,
    PoolExportLine,
    PoolSummary,
    ValidationResult,
    utc_now,
)
from tally_core.utils.currency import (
    ZERO,
    financial_year_bounds,
    financial_year_of,
    get_current_fy,
    next_financial_year,
    optional_decimal,
    parse_financial_year,
    parse_iso_date,
    round_currency,
    to_decimal,
)
from tally_core.utils.validation_errors import (
    AlreadyDisposedError,
    ImmutableFieldError,
    IncompleteWorkpaperError,
    IneligibleAssetError,
    UnknownAssetError,
    ValidationError,
)

logger = logging.getLogger(__name__)


# ==================== ATO RATES (2024-25) ====================

LOW_VALUE_POOL_THRESHOLD = Decimal("1000")
LOW_VALUE_POOL_RATE = Decimal("0.375")  # 37.5%
LOW_VALUE_POOL_FIRST_YEAR_RATE = LOW_VALUE_POOL_RATE / 2  # 18.75%

# Closing balances below this are flagged as worth writing off
NEAR_ZERO_BALANCE = Decimal("1.00")

# Fields fixed once an asset is in the pool
IMMUTABLE_ASSET_FIELDS = ("cost", "is_first_year", "opening_balance")
EDITABLE_ASSET_FIELDS = ("description", "acquisition_date", "notes")


def is_eligible(cost: Any) -> bool:
    """Check if a cost qualifies for the low-value pool."""
    cost = to_decimal(cost, "cost")
    return ZERO < cost <= LOW_VALUE_POOL_THRESHOLD


# ==================== CALCULATIONS ====================

def calculate_asset_decline_in_value(asset: LowValuePoolAsset) -> Decimal:
    """
    Decline in value for a single asset.

    First year: cost x 18.75%
    Pooled: opening balance x 37.5%
    Disposed: nothing further
    """
    if asset.is_disposed:
        return ZERO
    if asset.is_first_year:
        return round_currency(asset.cost * LOW_VALUE_POOL_FIRST_YEAR_RATE)
    return round_currency(asset.pool_base * LOW_VALUE_POOL_RATE)


def calculate_balancing_adjustment(written_down_value: Decimal, termination_value: Decimal) -> Decimal:
    """Positive = termination value above written-down value."""
    return round_currency(termination_value - written_down_value)


def calculate_prior_balance_decline(prior_year_closing_balance: Decimal) -> Decimal:
    return round_currency(prior_year_closing_balance * LOW_VALUE_POOL_RATE)


def calculate_pool_summary(
    assets: List[LowValuePoolAsset],
    prior_year_closing_balance: Decimal = ZERO
) -> PoolSummary:
    """
    Derive the pool totals for a year.

    Disposed assets still count towards the opening balance or additions
    of the year they were disposed in; their termination value then comes
    off as a disposal.
    """
    opening = prior_year_closing_balance + sum(
        (a.pool_base for a in assets if not a.is_first_year), ZERO
    )
    additions = sum((a.cost for a in assets if a.is_first_year), ZERO)
    decline = calculate_prior_balance_decline(prior_year_closing_balance) + sum(
        (calculate_asset_decline_in_value(a) for a in assets), ZERO
    )
    disposals = sum(
        (a.disposal.termination_value for a in assets if a.disposal is not None), ZERO
    )

    raw_closing = opening + additions - decline - disposals
    closing = max(ZERO, raw_closing)
    assessable = max(ZERO, -raw_closing)

    return PoolSummary(
        opening_balance=round_currency(opening),
        additions=round_currency(additions),
        decline_in_value=round_currency(decline),
        disposals=round_currency(disposals),
        closing_balance=round_currency(closing),
        assessable_balancing_adjustment=round_currency(assessable),
        deductible_amount=round_currency(decline),
    )


def _recalculate_asset(asset: LowValuePoolAsset) -> LowValuePoolAsset:
    decline = calculate_asset_decline_in_value(asset)
    if asset.is_disposed:
        closing = ZERO
    else:
        closing = max(ZERO, asset.pool_base - decline)
    return asset.model_copy(update={
        "decline_in_value": decline,
        "closing_balance": round_currency(closing),
    })


def recalculate_pool(workpaper: LowValuePoolWorkpaper) -> LowValuePoolWorkpaper:
    """
    Refresh every asset's decline and closing balance and the pool summary.
    Deterministic and idempotent; timestamps are left alone.
    """
    assets = [_recalculate_asset(a) for a in workpaper.assets]
    summary = calculate_pool_summary(assets, workpaper.prior_year_closing_balance)

    logger.debug(
        f"Recalculated low-value pool {workpaper.tax_year}: "
        f"decline={summary.decline_in_value} closing={summary.closing_balance}"
    )

    return workpaper.model_copy(update={"assets": assets, "summary": summary})


def _touch(workpaper: LowValuePoolWorkpaper, **changes) -> LowValuePoolWorkpaper:
    changes["updated_at"] = utc_now()
    return recalculate_pool(workpaper.model_copy(update=changes))


def _require_asset(workpaper: LowValuePoolWorkpaper, asset_id: str) -> LowValuePoolAsset:
    asset = workpaper.find_asset(asset_id)
    if asset is None:
        raise UnknownAssetError(asset_id)
    return asset


# ==================== WORKPAPER OPERATIONS ====================

def create_empty_workpaper(tax_year: Optional[str] = None) -> LowValuePoolWorkpaper:
    """Create a new pool workpaper (current financial year by default)."""
    tax_year = tax_year or get_current_fy()
    parse_financial_year(tax_year)
    return recalculate_pool(LowValuePoolWorkpaper(tax_year=tax_year))


def add_asset(
    workpaper: LowValuePoolWorkpaper,
    description: str,
    cost: Any,
    acquisition_date: Any,
    is_first_year: bool = True,
    opening_balance: Any = None,
    notes: Optional[str] = None
) -> LowValuePoolWorkpaper:
    """
    Add an asset to the pool.

    Raises:
        ValidationError: blank description, non-positive cost, bad date,
            negative opening balance, an opening balance above cost, or an
            opening balance on a first-year asset
        IneligibleAssetError: cost above the threshold, or for an existing
            pool member re-entered with its opening balance, an opening
            balance above the threshold
    """
    if not description or not description.strip():
        raise ValidationError("description", "description is required")

    cost = to_decimal(cost, "cost")
    if cost <= 0:
        raise ValidationError("cost", "cost must be greater than zero", cost)

    acquired = parse_iso_date(acquisition_date, "acquisition_date")

    opening = optional_decimal(opening_balance, "opening_balance")
    if opening is not None:
        if opening < 0:
            raise ValidationError("opening_balance", "opening_balance cannot be negative", opening)
        if is_first_year:
            raise ValidationError(
                "opening_balance",
                "first-year assets enter the pool at cost and cannot carry an opening balance",
                opening
            )
        if opening > cost:
            raise ValidationError(
                "opening_balance",
                "opening_balance cannot exceed the asset's cost",
                opening
            )

    is_reentered_member = not is_first_year and opening is not None
    if is_reentered_member:
        if opening > LOW_VALUE_POOL_THRESHOLD:
            raise IneligibleAssetError(opening, LOW_VALUE_POOL_THRESHOLD)
    elif cost > LOW_VALUE_POOL_THRESHOLD:
        raise IneligibleAssetError(cost, LOW_VALUE_POOL_THRESHOLD)

    asset = LowValuePoolAsset(
        description=description.strip(),
        cost=cost,
        acquisition_date=acquired.isoformat(),
        is_first_year=is_first_year,
        opening_balance=opening,
        notes=notes,
    )

    logger.info(
        f"Added asset to low-value pool {workpaper.tax_year}",
        extra={"asset_id": asset.id, "cost": str(cost), "is_first_year": is_first_year}
    )

    return _touch(workpaper, assets=workpaper.assets + [asset])


def update_asset(workpaper: LowValuePoolWorkpaper, asset_id: str, **changes) -> LowValuePoolWorkpaper:
    """
    Edit an asset's descriptive fields.
    Cost and pool membership are fixed; remove and re-add the asset instead.
    """
    asset = _require_asset(workpaper, asset_id)

    for name in changes:
        if name in IMMUTABLE_ASSET_FIELDS:
            raise ImmutableFieldError(name, "remove the asset and add it again")
        if name not in EDITABLE_ASSET_FIELDS:
            raise ValidationError(name, f"{name} is not an editable asset field")

    update: Dict[str, Any] = {}
    if "description" in changes:
        description = changes["description"]
        if not description or not str(description).strip():
            raise ValidationError("description", "description is required", record_id=asset_id)
        update["description"] = str(description).strip()
    if "acquisition_date" in changes:
        update["acquisition_date"] = parse_iso_date(
            changes["acquisition_date"], "acquisition_date"
        ).isoformat()
    if "notes" in changes:
        update["notes"] = changes["notes"]

    update["updated_at"] = utc_now()
    updated = asset.model_copy(update=update)
    assets = [updated if a.id == asset_id else a for a in workpaper.assets]

    logger.info(f"Updated pool asset {asset_id}", extra={"fields": sorted(changes)})
    return _touch(workpaper, assets=assets)


def remove_asset(workpaper: LowValuePoolWorkpaper, asset_id: str) -> LowValuePoolWorkpaper:
    _require_asset(workpaper, asset_id)
    assets = [a for a in workpaper.assets if a.id != asset_id]

    logger.info(f"Removed asset {asset_id} from low-value pool {workpaper.tax_year}")
    return _touch(workpaper, assets=assets)


def dispose_asset(
    workpaper: LowValuePoolWorkpaper,
    asset_id: str,
    disposal_date: Any,
    disposal_type: Any = DisposalType.SALE,
    sale_price: Any = None,
    termination_value: Any = None,
    notes: Optional[str] = None
) -> LowValuePoolWorkpaper:
    """
    Record the disposal of a pool asset.

    Termination value = sale price if given, else termination value, else 0.
    The asset stops declining from the year of disposal and the termination
    value is deducted from the pool. The disposal must fall within the
    workpaper's tax year; later disposals belong after roll_forward.

    Raises:
        UnknownAssetError: no asset with that id
        AlreadyDisposedError: asset already has a disposal
        ValidationError: bad date, a date outside the tax year, bad type,
            or a negative amount
    """
    asset = _require_asset(workpaper, asset_id)
    if asset.is_disposed:
        raise AlreadyDisposedError(asset_id)

    disposed_on = parse_iso_date(disposal_date, "disposal_date")
    year_start, year_end = financial_year_bounds(workpaper.tax_year)
    if not year_start <= disposed_on <= year_end:
        raise ValidationError(
            "disposal_date",
            f"disposal_date must fall within the {workpaper.tax_year} financial year",
            disposed_on.isoformat(),
            asset_id
        )
    try:
        disposal_type = DisposalType(disposal_type)
    except ValueError:
        raise ValidationError("disposal_type", "unknown disposal type", disposal_type, asset_id)

    price = optional_decimal(sale_price, "sale_price")
    stated = optional_decimal(termination_value, "termination_value")
    for name, value in (("sale_price", price), ("termination_value", stated)):
        if value is not None and value < 0:
            raise ValidationError(name, f"{name} cannot be negative", value, asset_id)

    if price is not None:
        value = price
    elif stated is not None:
        value = stated
    else:
        value = ZERO

    disposal = DisposalRecord(
        disposal_date=disposed_on.isoformat(),
        disposal_type=disposal_type,
        sale_price=price,
        termination_value=round_currency(value),
        balancing_adjustment=calculate_balancing_adjustment(asset.pool_base, value),
        notes=notes,
    )
    updated = asset.model_copy(update={"disposal": disposal, "updated_at": utc_now()})
    assets = [updated if a.id == asset_id else a for a in workpaper.assets]

    logger.info(
        f"Disposed pool asset {asset_id}",
        extra={"disposal_type": disposal_type.value, "termination_value": str(disposal.termination_value)}
    )
    return _touch(workpaper, assets=assets)


def set_opening_balance(workpaper: LowValuePoolWorkpaper, balance: Any) -> LowValuePoolWorkpaper:
    """Set the closing balance carried in from the prior year."""
    balance = to_decimal(balance, "prior_year_closing_balance")
    if balance < 0:
        raise ValidationError("prior_year_closing_balance", "opening balance cannot be negative", balance)

    logger.info(f"Set low-value pool {workpaper.tax_year} opening balance to {balance}")
    return _touch(workpaper, prior_year_closing_balance=round_currency(balance))


def roll_forward(workpaper: LowValuePoolWorkpaper, next_tax_year: Optional[str] = None) -> LowValuePoolWorkpaper:
    """
    Start the next tax year's pool from this one.

    Disposed assets drop out. Every surviving asset becomes a pooled member
    whose opening balance is its closing balance. Whatever part of the
    closing balance is not attributable to an itemised asset is carried as
    the new prior-year closing balance, so the new opening balance always
    equals this year's closing balance.
    """
    current = recalculate_pool(workpaper)
    next_tax_year = next_tax_year or next_financial_year(current.tax_year)
    if parse_financial_year(next_tax_year) <= parse_financial_year(current.tax_year):
        raise ValidationError("next_tax_year", "must be after the workpaper's tax year", next_tax_year)

    closing_total = current.summary.closing_balance
    survivors = [a for a in current.assets if not a.is_disposed]
    itemised = sum((a.closing_balance for a in survivors), ZERO)

    openings = [a.closing_balance for a in survivors]
    if itemised > closing_total:
        # Disposals took the pool below its itemised assets: scale them down
        openings = [round_currency(o * closing_total / itemised) for o in openings]
        drift = closing_total - sum(openings, ZERO)
        if drift and openings:
            largest = openings.index(max(openings))
            openings[largest] += drift
        remainder = ZERO
    else:
        remainder = closing_total - itemised

    assets = [
        asset.model_copy(update={
            "is_first_year": False,
            "opening_balance": opening,
            "decline_in_value": ZERO,
            "closing_balance": ZERO,
            "updated_at": None,
        })
        for asset, opening in zip(survivors, openings)
    ]

    rolled = LowValuePoolWorkpaper(
        tax_year=next_tax_year,
        prior_year_closing_balance=round_currency(remainder),
        assets=assets,
        notes=current.notes,
    )

    logger.info(
        f"Rolled low-value pool forward {current.tax_year} -> {next_tax_year}",
        extra={
            "carried_assets": len(assets),
            "dropped_assets": len(current.assets) - len(assets),
            "opening_balance": str(closing_total),
        }
    )
    return recalculate_pool(rolled)


# ==================== VALIDATION & EXPORT ====================

def validate_workpaper(workpaper: LowValuePoolWorkpaper) -> ValidationResult:
    """
    Check the workpaper before export.

    Errors: non-positive cost, first-year assets above the threshold,
    pooled members entered above their cost or the threshold, disposal
    before acquisition or outside the tax year, negative termination
    values, bad dates.
    Warnings: first-year assets acquired outside the tax year, disposals in
    the year of acquisition, sales with no price,
    an empty pool, a near-zero closing balance, an assessable excess.
    """
    current = recalculate_pool(workpaper)
    result = ValidationResult()
    year_start, year_end = financial_year_bounds(current.tax_year)

    for asset in current.assets:
        label = f'Asset "{asset.description}"'

        if asset.cost <= 0:
            result.errors.append(f"{label} must have a cost greater than zero.")
        elif asset.is_first_year and asset.cost > LOW_VALUE_POOL_THRESHOLD:
            result.errors.append(
                f"{label} costs ${asset.cost:.2f}, which exceeds the "
                f"${LOW_VALUE_POOL_THRESHOLD} threshold."
            )
        elif not asset.is_first_year:
            if asset.opening_balance is not None and asset.opening_balance > asset.cost:
                result.errors.append(f"{label} has an opening balance above its cost.")
            elif asset.pool_base > LOW_VALUE_POOL_THRESHOLD:
                result.errors.append(
                    f"{label} enters the pool at ${asset.pool_base:.2f}, which exceeds the "
                    f"${LOW_VALUE_POOL_THRESHOLD} threshold."
                )

        try:
            acquired = parse_iso_date(asset.acquisition_date, "acquisition_date")
        except ValidationError as e:
            result.errors.append(f"{label}: {e.message}.")
            continue

        if asset.is_first_year and not year_start <= acquired <= year_end:
            result.warnings.append(
                f"{label} is a first-year asset but was acquired outside {current.tax_year}."
            )

        if asset.disposal is None:
            continue

        disposal = asset.disposal
        if disposal.termination_value < 0:
            result.errors.append(f"{label} has a negative termination value.")

        try:
            disposed = parse_iso_date(disposal.disposal_date, "disposal_date")
        except ValidationError as e:
            result.errors.append(f"{label}: {e.message}.")
            continue

        if disposed < acquired:
            result.errors.append(f"{label} was disposed before it was acquired.")
        elif not year_start <= disposed <= year_end:
            result.errors.append(
                f"{label} was disposed outside {current.tax_year}; "
                f"record the disposal in that year's workpaper."
            )
        elif financial_year_of(disposed) == financial_year_of(acquired):
            result.warnings.append(
                f"{label} was acquired and disposed in the same financial year."
            )

        if disposal.disposal_type == DisposalType.SALE and not disposal.sale_price:
            result.warnings.append(f"{label} was sold but no sale price was provided.")

    if not current.assets:
        result.warnings.append("No assets in the pool. Add assets to calculate your deduction.")

    closing = current.summary.closing_balance
    if ZERO < closing < NEAR_ZERO_BALANCE:
        result.warnings.append(
            f"Closing balance of ${closing:.2f} is very small. Consider writing it off."
        )

    if current.summary.assessable_balancing_adjustment > 0:
        result.warnings.append(
            f"Disposals exceed the pool balance; "
            f"${current.summary.assessable_balancing_adjustment:.2f} is assessable income."
        )

    return result


def export_workpaper(workpaper: LowValuePoolWorkpaper) -> LowValuePoolExport:
    """
    Produce the D6 export. Only allowed once validation passes.

    Raises:
        IncompleteWorkpaperError: validation reported errors
    """
    current = recalculate_pool(workpaper)
    validation = validate_workpaper(current)
    if not validation.is_valid:
        raise IncompleteWorkpaperError(
            f"Low-value pool {current.tax_year} has validation errors",
            validation.errors
        )

    lines = []
    if current.prior_year_closing_balance > 0:
        prior = current.prior_year_closing_balance
        prior_decline = calculate_prior_balance_decline(prior)
        lines.append(PoolExportLine(
            description="Pool balance carried from prior year",
            opening_value=prior,
            decline_in_value=prior_decline,
            closing_balance=round_currency(prior - prior_decline),
        ))

    for asset in current.assets:
        lines.append(PoolExportLine(
            asset_id=asset.id,
            description=asset.description,
            opening_value=asset.pool_base,
            decline_in_value=asset.decline_in_value,
            termination_value=asset.disposal.termination_value if asset.disposal else ZERO,
            closing_balance=asset.closing_balance,
            status=asset.status,
        ))

    logger.info(
        f"Exported low-value pool {current.tax_year}",
        extra={"claim_amount": str(current.summary.deductible_amount)}
    )

    return LowValuePoolExport(
        tax_year=current.tax_year,
        claim_amount=current.summary.deductible_amount,
        summary=current.summary,
        lines=lines,
        asset_count=sum(1 for a in current.assets if not a.is_disposed),
        disposed_asset_count=sum(1 for a in current.assets if a.is_disposed),
    )


def get_workpaper_stats(workpaper: LowValuePoolWorkpaper) -> Dict[str, Any]:
    """Counts and totals for a pool; can_export gates the export step."""
    current = recalculate_pool(workpaper)
    active = [a for a in current.assets if not a.is_disposed]
    validation = validate_workpaper(current)
    is_complete = bool(active) or current.summary.opening_balance > 0

    return {
        "tax_year": current.tax_year,
        "total_assets": len(current.assets),
        "active_assets": len(active),
        "first_year_assets": sum(1 for a in active if a.is_first_year),
        "pooled_assets": sum(1 for a in active if not a.is_first_year),
        "disposed_assets": len(current.assets) - len(active),
        "fully_depreciated_assets": sum(
            1 for a in current.assets if a.status == AssetStatus.FULLY_DEPRECIATED
        ),
        "total_cost": sum((a.cost for a in active), ZERO),
        "total_decline_in_value": current.summary.decline_in_value,
        "closing_balance": current.summary.closing_balance,
        "is_complete": is_complete,
        "is_valid": validation.is_valid,
        "can_export": is_complete and validation.is_valid,
    }


# ==================== ATO GUIDANCE ====================

ATO_D6_GUIDANCE = {
    "title": "D6 Low-Value Pool",
    "description": (
        "You can allocate low-cost and low-value assets to a low-value pool "
        "and claim a deduction for their decline in value at a set rate."
    ),
    "eligible_assets": [
        "Cost $1,000 or less (low-cost assets)",
        "Already written down to $1,000 or less under the diminishing value method (low-value assets)",
        "Used for work-related or income-producing purposes",
    ],
    "ineligible_assets": [
        "Cost more than $1,000",
        "Assets you use for personal purposes only",
        "Horticultural plants",
        "Assets for which you have claimed an immediate deduction",
    ],
    "rates": {
        "first_year": "18.75% for assets acquired during the year",
        "subsequent": "37.5% for assets held at the start of the year",
    },
    "record_keeping": [
        "Keep receipts showing the cost of each asset",
        "Record the date you acquired each asset",
        "Keep records of any disposals (sale receipts, etc.)",
        "Maintain pool balance calculations year to year",
    ],
    "reference": "https://www.ato.gov.au/individuals/income-and-deductions/deductions-you-can-claim/other-deductions/low-value-pool",
}
