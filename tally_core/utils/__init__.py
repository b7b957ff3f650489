"""
Utils Package

Provides utility modules for:
- validation_errors: the workpaper error taxonomy and field checks
- currency: Decimal rounding and financial year helpers
"""

from .validation_errors import (
    ValidationErrorResponse,
    WorkpaperError,
    ValidationError,
    RuleViolationError,
    IneligibleAssetError,
    UnknownAssetError,
    AlreadyDisposedError,
    ImmutableFieldError,
    ClaimFinalizedError,
    UnknownRecordError,
    IncompleteDataError,
    IncompleteWorkpaperError,
    PersistenceError,
    ExtractionError,
)
from .currency import (
    round_currency,
    to_decimal,
    get_current_fy,
    next_financial_year,
    financial_year_bounds,
)

__all__ = [
    'ValidationErrorResponse',
    'WorkpaperError',
    'ValidationError',
    'RuleViolationError',
    'IneligibleAssetError',
    'UnknownAssetError',
    'AlreadyDisposedError',
    'ImmutableFieldError',
    'ClaimFinalizedError',
    'UnknownRecordError',
    'IncompleteDataError',
    'IncompleteWorkpaperError',
    'PersistenceError',
    'ExtractionError',
    'round_currency',
    'to_decimal',
    'get_current_fy',
    'next_financial_year',
    'financial_year_bounds',
]
