"""
Unit Tests for the Document Extraction Port

Run with: pytest tests/test_extraction.py -v
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from tally_core.config import get_settings
from tally_core.models.enums import SuggestedAction
from tally_core.services.extraction import (
    ExtractedField,
    ExtractionClient,
    ExtractionResult,
    assess_extraction,
    extract_and_assess,
)
from tally_core.utils.validation_errors import ExtractionError, ValidationError


REQUIRED = ["amount", "date"]


def receipt(amount_confidence=0.95, date_confidence=0.9, **fields):
    data = {
        "amount": ExtractedField(value="42.00", confidence=amount_confidence, source="ocr"),
        "date": ExtractedField(value="2024-09-01", confidence=date_confidence, source="ocr"),
    }
    data.update(fields)
    return ExtractionResult(document_id="doc-1", document_type="receipt", fields=data)


class StaticClient(ExtractionClient):

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error

    async def extract(self, document_id, content, content_type):
        if self.error:
            raise self.error
        return self.result


class TestAssessExtraction:

    def test_accept(self):
        verdict = assess_extraction(receipt(), REQUIRED, 0.8, 0.5)
        assert verdict.suggested_action == SuggestedAction.ACCEPT
        assert verdict.is_valid
        assert verdict.confidence == 0.9

    def test_review_on_low_confidence(self):
        verdict = assess_extraction(receipt(date_confidence=0.6), REQUIRED, 0.8, 0.5)
        assert verdict.suggested_action == SuggestedAction.REVIEW
        assert verdict.low_confidence_fields == ["date"]
        assert verdict.warnings

    def test_reject_below_review_threshold(self):
        verdict = assess_extraction(receipt(amount_confidence=0.3), REQUIRED, 0.8, 0.5)
        assert verdict.suggested_action == SuggestedAction.REJECT
        assert not verdict.is_valid

    def test_reject_missing_field(self):
        verdict = assess_extraction(receipt(), REQUIRED + ["supplier"], 0.8, 0.5)
        assert verdict.suggested_action == SuggestedAction.REJECT
        assert verdict.missing_fields == ["supplier"]

    def test_empty_value_counts_as_missing(self):
        result = receipt(date=ExtractedField(value="", confidence=0.99))
        verdict = assess_extraction(result, REQUIRED, 0.8, 0.5)
        assert verdict.missing_fields == ["date"]

    def test_failed_extraction(self):
        result = ExtractionResult(document_id="doc-2", success=False, error_message="unreadable scan")
        verdict = assess_extraction(result, REQUIRED, 0.8, 0.5)

        assert verdict.suggested_action == SuggestedAction.REJECT
        assert verdict.missing_fields == REQUIRED
        assert verdict.warnings == ["unreadable scan"]

    def test_thresholds_out_of_order(self):
        with pytest.raises(ValidationError):
            assess_extraction(receipt(), REQUIRED, 0.5, 0.8)

    def test_default_thresholds_from_settings(self):
        get_settings.cache_clear()
        try:
            verdict = assess_extraction(receipt(date_confidence=0.7), REQUIRED)
        finally:
            get_settings.cache_clear()
        assert verdict.suggested_action == SuggestedAction.REVIEW

    def test_confidence_bounds(self):
        with pytest.raises(PydanticValidationError):
            ExtractedField(value="x", confidence=1.5)

    def test_to_dict(self):
        data = assess_extraction(receipt(), REQUIRED, 0.8, 0.5).to_dict()
        assert data["suggested_action"] == "accept"
        assert data["is_valid"] is True

    def test_value_lookup(self):
        result = receipt()
        assert result.value("amount") == "42.00"
        assert result.value("supplier", "unknown") == "unknown"


class TestExtractAndAssess:

    @pytest.mark.asyncio
    async def test_runs_client(self):
        client = StaticClient(result=receipt())
        verdict = await extract_and_assess(client, "doc-1", b"%PDF", "application/pdf", REQUIRED, 0.8, 0.5)
        assert verdict.suggested_action == SuggestedAction.ACCEPT

    @pytest.mark.asyncio
    async def test_low_confidence_result_needs_review(self):
        client = StaticClient(result=receipt(amount_confidence=0.6))
        verdict = await extract_and_assess(client, "doc-1", b"%PDF", "application/pdf", REQUIRED, 0.8, 0.5)
        assert verdict.suggested_action == SuggestedAction.REVIEW

    @pytest.mark.asyncio
    async def test_client_failure_propagates(self):
        client = StaticClient(error=ExtractionError("service unavailable", "doc-1"))
        with pytest.raises(ExtractionError):
            await extract_and_assess(client, "doc-1", b"", "image/png", REQUIRED, 0.8, 0.5)
