"""
Tally Core - Document Extraction Port

Receipts and statements are parsed by an external extraction service.
The engine only sees its output: per-field values with a confidence in
[0, 1] and the source they were read from. assess_extraction() turns that
output into a verdict:

- accept: every required field present, lowest confidence >= accept threshold
- review: every required field present, lowest confidence >= review threshold
- reject: a required field is missing, confidence is below review, or the
  extraction failed
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from tally_core.models.enums import SuggestedAction
from tally_core.utils.validation_errors import ExtractionError, ValidationError

logger = logging.getLogger(__name__)


class ExtractedField(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: Any = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    source: Optional[str] = None  # e.g. "ocr", "pdf_text", "manual"

    @property
    def is_present(self) -> bool:
        return self.value is not None and self.value != ""


class ExtractionResult(BaseModel):
    """Output of the extraction service for one document."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    document_id: str
    document_type: Optional[str] = None
    success: bool = True
    fields: Dict[str, ExtractedField] = Field(default_factory=dict)
    error_message: Optional[str] = None

    def value(self, name: str, default: Any = None) -> Any:
        extracted = self.fields.get(name)
        return extracted.value if extracted is not None and extracted.is_present else default


@dataclass
class ExtractionVerdict:
    suggested_action: SuggestedAction
    missing_fields: List[str] = field(default_factory=list)
    low_confidence_fields: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    confidence: float = 0.0

    @property
    def is_valid(self) -> bool:
        return self.suggested_action != SuggestedAction.REJECT

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "missing_fields": list(self.missing_fields),
            "low_confidence_fields": list(self.low_confidence_fields),
            "warnings": list(self.warnings),
            "suggested_action": self.suggested_action.value,
            "confidence": round(self.confidence, 4),
        }


class ExtractionClient(ABC):
    """Asynchronous extraction service interface."""

    @abstractmethod
    async def extract(self, document_id: str, content: bytes, content_type: str) -> ExtractionResult:
        """
        Extract fields from a document.

        Raises:
            ExtractionError: the service could not be reached or failed
        """


def _thresholds(accept_threshold: Optional[float], review_threshold: Optional[float]):
    if accept_threshold is None or review_threshold is None:
        from tally_core.config import get_settings
        settings = get_settings()
        if accept_threshold is None:
            accept_threshold = settings.EXTRACTION_ACCEPT_CONFIDENCE
        if review_threshold is None:
            review_threshold = settings.EXTRACTION_REVIEW_CONFIDENCE
    if review_threshold > accept_threshold:
        raise ValidationError("review_threshold", "review threshold cannot exceed accept threshold", review_threshold)
    return accept_threshold, review_threshold


def assess_extraction(
    result: ExtractionResult,
    required_fields: Iterable[str],
    accept_threshold: Optional[float] = None,
    review_threshold: Optional[float] = None
) -> ExtractionVerdict:
    """
    Decide whether extracted fields can be used as-is, need review, or are
    unusable. Thresholds default to the configured extraction confidences.
    """
    accept_threshold, review_threshold = _thresholds(accept_threshold, review_threshold)
    required = list(required_fields)

    if not result.success:
        return ExtractionVerdict(
            suggested_action=SuggestedAction.REJECT,
            missing_fields=required,
            warnings=[result.error_message or "Extraction failed"],
        )

    missing = [
        name for name in required
        if name not in result.fields or not result.fields[name].is_present
    ]

    scored = [name for name in (required or list(result.fields)) if name not in missing and name in result.fields]
    confidence = min((result.fields[name].confidence for name in scored), default=0.0)
    low = [name for name in scored if result.fields[name].confidence < accept_threshold]

    warnings = []
    for name in missing:
        warnings.append(f"Required field '{name}' was not found")
    for name in low:
        warnings.append(f"Field '{name}' has low confidence ({result.fields[name].confidence:.2f})")

    if missing or not scored or confidence < review_threshold:
        action = SuggestedAction.REJECT
    elif confidence < accept_threshold:
        action = SuggestedAction.REVIEW
    else:
        action = SuggestedAction.ACCEPT

    logger.debug(
        f"Assessed extraction {result.document_id}: {action.value}",
        extra={"missing_fields": missing, "confidence": confidence}
    )

    return ExtractionVerdict(
        suggested_action=action,
        missing_fields=missing,
        low_confidence_fields=low,
        warnings=warnings,
        confidence=confidence,
    )


async def extract_and_assess(
    client: ExtractionClient,
    document_id: str,
    content: bytes,
    content_type: str,
    required_fields: Iterable[str],
    accept_threshold: Optional[float] = None,
    review_threshold: Optional[float] = None
) -> ExtractionVerdict:
    """
    Run the extraction client and assess its output.
    A failing client surfaces as ExtractionError; nothing is retried here.
    """
    try:
        result = await client.extract(document_id, content, content_type)
    except ExtractionError:
        logger.error(f"Extraction failed for document {document_id}")
        raise
    return assess_extraction(result, required_fields, accept_threshold, review_threshold)
