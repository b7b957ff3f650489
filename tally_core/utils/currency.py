"""
Tally Core - Money and Financial Year Helpers

Currency amounts are Decimal, rounded half-up to cents. Financial years use
the ATO "2024-25" form and run 1 July to 30 June.
"""

from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Optional, Tuple

from tally_core.utils.validation_errors import ValidationError


ZERO = Decimal("0")
CENT = Decimal("0.01")


def round_currency(amount: Decimal) -> Decimal:
    """Round to 2 decimal places for currency."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value: Any, field: str = "amount") -> Decimal:
    """Coerce a user-entered number to Decimal, going through str for floats."""
    if isinstance(value, Decimal):
        return value
    if value is None or isinstance(value, bool):
        raise ValidationError(field, f"{field} must be a number", value)
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(field, f"{field} must be a number", value)


def optional_decimal(value: Any, field: str = "amount") -> Optional[Decimal]:
    if value is None:
        return None
    return to_decimal(value, field)


# ==================== FINANCIAL YEAR ====================

def get_current_fy(today: Optional[date] = None) -> str:
    """Get current financial year in format '2024-25'"""
    today = today or date.today()
    if today.month >= 7:  # July onwards = new FY
        return f"{today.year}-{str(today.year + 1)[-2:]}"
    return f"{today.year - 1}-{str(today.year)[-2:]}"


def parse_financial_year(tax_year: str) -> int:
    """Return the starting calendar year of a '2024-25' financial year."""
    try:
        start, end = tax_year.split("-")
        start_year = int(start)
        if len(start) != 4 or len(end) != 2 or int(end) != (start_year + 1) % 100:
            raise ValueError(tax_year)
    except (AttributeError, ValueError):
        raise ValidationError("tax_year", "tax_year must look like '2024-25'", tax_year)
    return start_year


def next_financial_year(tax_year: str) -> str:
    start_year = parse_financial_year(tax_year) + 1
    return f"{start_year}-{str(start_year + 1)[-2:]}"


def financial_year_bounds(tax_year: str) -> Tuple[date, date]:
    """1 July to 30 June inclusive."""
    start_year = parse_financial_year(tax_year)
    return date(start_year, 7, 1), date(start_year + 1, 6, 30)


def financial_year_of(day: date) -> str:
    return get_current_fy(day)


def parse_iso_date(value: Any, field: str = "date") -> date:
    """Parse a YYYY-MM-DD string (or pass through a date)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value)[:10], "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise ValidationError(field, f"{field} must be an ISO date (YYYY-MM-DD)", value)
