"""
Tally Core - Workpaper Error Taxonomy

Structured errors raised by the workpaper engine. Every error can be
rendered into the user-facing shape:

{
    "error": "invalid_parameter" | "rule_violation" | "incomplete_data" | ...,
    "parameter": "cost",
    "message": "cost must be greater than zero"
}

Errors are raised before any state is produced, so the caller's prior
workpaper value is always left untouched.
"""

from typing import Optional, Any


class ValidationErrorResponse:
    """Structured error response builder."""

    @staticmethod
    def missing_parameter(parameter: str, message: Optional[str] = None) -> dict:
        return {
            "error": "missing_parameter",
            "parameter": parameter,
            "message": message or f"{parameter} is required"
        }

    @staticmethod
    def invalid_parameter(parameter: str, message: str, value: Optional[Any] = None) -> dict:
        """
        Create an invalid parameter error response.

        Args:
            parameter: Name of the invalid field
            message: Description of the validation error
            value: The invalid value (optional, truncated)

        Returns:
            Structured error dict
        """
        response = {
            "error": "invalid_parameter",
            "parameter": parameter,
            "message": message
        }
        if value is not None:
            response["received_value"] = str(value)[:100]
        return response

    @staticmethod
    def rule_violation(rule: str, message: str, parameter: Optional[str] = None) -> dict:
        return {
            "error": rule,
            "parameter": parameter,
            "message": message
        }

    @staticmethod
    def validation_error(message: str, details: Optional[dict] = None) -> dict:
        response = {
            "error": "validation_error",
            "parameter": None,
            "message": message
        }
        if details:
            response["details"] = details
        return response


# ==================== BASE ====================

class WorkpaperError(Exception):
    """Root of every error raised by the workpaper engine."""

    error_code = "workpaper_error"

    def __init__(self, message: str, parameter: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.parameter = parameter

    def to_dict(self) -> dict:
        return ValidationErrorResponse.rule_violation(
            self.error_code, self.message, self.parameter
        )


# ==================== MALFORMED INPUT ====================

class ValidationError(WorkpaperError):
    """
    Malformed input: negative amounts, percentages outside [0, 100],
    missing required fields.

    Args:
        field: Name of the offending field
        message: Human readable description
        value: The rejected value (optional)
        record_id: Id of the record being validated (optional)
    """

    error_code = "invalid_parameter"

    def __init__(
        self,
        field: str,
        message: str,
        value: Optional[Any] = None,
        record_id: Optional[str] = None
    ):
        super().__init__(message, parameter=field)
        self.field = field
        self.value = value
        self.record_id = record_id

    def to_dict(self) -> dict:
        response = ValidationErrorResponse.invalid_parameter(self.field, self.message, self.value)
        if self.record_id:
            response["record_id"] = self.record_id
        return response

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


# ==================== RULE VIOLATIONS ====================

class RuleViolationError(WorkpaperError):
    """Well-formed input that breaks a ledger rule."""

    error_code = "rule_violation"


class IneligibleAssetError(RuleViolationError):
    error_code = "ineligible_asset"

    def __init__(self, cost: Any, threshold: Any):
        super().__init__(
            f"Asset cost ${cost} exceeds the low-value pool threshold of ${threshold}",
            parameter="cost"
        )
        self.cost = cost
        self.threshold = threshold


class UnknownAssetError(RuleViolationError):
    error_code = "unknown_asset"

    def __init__(self, asset_id: str):
        super().__init__(f"Asset {asset_id} not found", parameter="asset_id")
        self.asset_id = asset_id


class AlreadyDisposedError(RuleViolationError):
    error_code = "already_disposed"

    def __init__(self, asset_id: str):
        super().__init__(f"Asset {asset_id} has already been disposed", parameter="asset_id")
        self.asset_id = asset_id


class ImmutableFieldError(RuleViolationError):
    """Raised on an attempt to change a field that is fixed once recorded."""

    error_code = "immutable_field"

    def __init__(self, field: str, hint: Optional[str] = None):
        message = f"{field} cannot be changed once recorded"
        if hint:
            message = f"{message}; {hint}"
        super().__init__(message, parameter=field)
        self.field = field


class ClaimFinalizedError(RuleViolationError):
    error_code = "claim_finalized"

    def __init__(self, category_code: str, tax_year: str):
        super().__init__(
            f"Claim {category_code} for {tax_year} is finalized; reopen it before editing",
            parameter="category_code"
        )
        self.category_code = category_code
        self.tax_year = tax_year


class UnknownRecordError(RuleViolationError):
    error_code = "unknown_record"

    def __init__(self, record_type: str, record_id: str):
        super().__init__(f"{record_type} {record_id} not found", parameter="id")
        self.record_type = record_type
        self.record_id = record_id


# ==================== INCOMPLETE DATA ====================

class IncompleteDataError(WorkpaperError):
    """An operation needs data that has not been supplied or validated yet."""

    error_code = "incomplete_data"


class IncompleteWorkpaperError(IncompleteDataError):
    error_code = "incomplete_workpaper"

    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(message)
        self.errors = list(errors or [])

    def to_dict(self) -> dict:
        details = {"errors": self.errors} if self.errors else None
        response = ValidationErrorResponse.validation_error(self.message, details)
        response["error"] = self.error_code
        return response


# ==================== COLLABORATOR FAILURES ====================

class PersistenceError(IOError):
    """The persistence port failed to load or save a workpaper."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.key = key

    def to_dict(self) -> dict:
        return ValidationErrorResponse.rule_violation("persistence_error", self.message, self.key)


class ExtractionError(IOError):
    """The document extraction collaborator failed."""

    def __init__(self, message: str, document_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.document_id = document_id

    def to_dict(self) -> dict:
        return ValidationErrorResponse.rule_violation("extraction_error", self.message, self.document_id)


# ==================== FIELD CHECKS ====================

def require_non_negative(value, field: str, record_id: Optional[str] = None):
    """Raise ValidationError when an amount is below zero."""
    if value is None:
        raise ValidationError(field, f"{field} is required", record_id=record_id)
    if value < 0:
        raise ValidationError(field, f"{field} cannot be negative", value, record_id)
    return value


def require_positive(value, field: str, record_id: Optional[str] = None):
    if value is None:
        raise ValidationError(field, f"{field} is required", record_id=record_id)
    if value <= 0:
        raise ValidationError(field, f"{field} must be greater than zero", value, record_id)
    return value


def require_percentage(value, field: str, record_id: Optional[str] = None):
    """Raise ValidationError unless 0 <= value <= 100."""
    if value is None:
        raise ValidationError(field, f"{field} is required", record_id=record_id)
    if value < 0 or value > 100:
        raise ValidationError(field, f"{field} must be between 0 and 100", value, record_id)
    return value
