"""
Unit Tests for the ATO Category Catalogue and Expense Suggestions

Run with: pytest tests/test_ato_categories.py -v
"""

import logging
from decimal import Decimal

import pytest

from tally_core.models.enums import AtoCategoryCode, CategoryKind
from tally_core.services import ato_categories
from tally_core.utils.validation_errors import ValidationError


class TestCatalogue:

    def test_fifteen_categories_in_order(self):
        codes = [c.code for c in ato_categories.get_all_categories()]
        assert codes == list(AtoCategoryCode)
        assert len(codes) == 15

    def test_offsets(self):
        offsets = [c.code.value for c in ato_categories.ATO_CATEGORIES if c.kind == CategoryKind.OFFSET]
        assert offsets == ["D12", "D13", "D14", "D15"]

    def test_stats(self):
        stats = ato_categories.get_category_stats()
        assert stats["total"] == 15
        assert stats["deductions"] == 11
        assert stats["offsets"] == 4

    def test_lookup_is_case_insensitive(self):
        assert ato_categories.get_category_by_code("d6").code == AtoCategoryCode.D6
        assert ato_categories.get_category_by_code(AtoCategoryCode.D6).code == AtoCategoryCode.D6

    def test_unknown_code(self):
        assert ato_categories.get_category_by_code("D99") is None
        with pytest.raises(ValidationError):
            ato_categories.parse_category_code("D99")

    def test_related_categories(self):
        related = [c.code.value for c in ato_categories.get_related_categories("D1")]
        assert related == ["D2", "D5"]
        assert ato_categories.get_related_categories("D99") == []

    def test_requires_receipts(self):
        receipts = ato_categories.requires_receipts("D2")
        assert receipts["required"] is True
        assert receipts["threshold"] == Decimal("300")

    def test_search(self):
        results = ato_categories.search_categories("self-education")
        assert AtoCategoryCode.D4 in [c.code for c in results]
        assert ato_categories.search_categories("   ") == []

    def test_priority(self):
        high = [c.code.value for c in ato_categories.get_categories_by_priority("high")]
        assert high == ["D1", "D2", "D5", "D9"]
        with pytest.raises(ValueError):
            ato_categories.get_categories_by_priority("urgent")

    def test_usage_ordering(self):
        by_usage = ato_categories.get_categories_by_usage()
        percentages = [c.estimated_users_percentage for c in by_usage]
        assert percentages == sorted(percentages, reverse=True)


class TestExpenseSuggestions:
    """Keyword scoring for free-text expense descriptions"""

    def test_travel(self):
        suggestions = ato_categories.suggest_categories_for_expense("Uber to client meeting")
        assert suggestions[0].code == AtoCategoryCode.D2

    def test_self_education(self):
        suggestions = ato_categories.suggest_categories_for_expense("Textbooks for university course")
        assert suggestions[0].code == AtoCategoryCode.D4

    def test_phrase_scores_word_count(self):
        scores = ato_categories.score_expense_description("Car insurance renewal")
        assert scores == {AtoCategoryCode.D1: 3}

    def test_code_mention(self):
        scores = ato_categories.score_expense_description("D8 receipt")
        assert scores[AtoCategoryCode.D8] == ato_categories.CODE_MENTION_SCORE

    def test_limit(self):
        suggestions = ato_categories.suggest_categories_for_expense(
            "laptop and phone for course, uber to campus", limit=1
        )
        assert len(suggestions) == 1

    @pytest.mark.parametrize("description", ["", "zzz qqq", None])
    def test_no_match(self, description):
        assert ato_categories.suggest_categories_for_expense(description) == []

    def test_no_match_logged(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="tally_core.services.ato_categories"):
            ato_categories.suggest_categories_for_expense("zzz qqq")
        assert "No category suggestions" in caplog.text
