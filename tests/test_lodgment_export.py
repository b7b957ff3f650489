"""
Unit Tests for the Lodgment Export

Run with: pytest tests/test_lodgment_export.py -v
"""

from decimal import Decimal

import pytest

from tally_core.lodgment import LodgmentExportService, export_claims_for_lodgment
from tally_core.models.enums import CategoryKind
from tally_core.services.workpaper.claims import ClaimLedger
from tally_core.services.workpaper.models import ValidationResult
from tally_core.utils.validation_errors import IncompleteWorkpaperError


TAX_YEAR = "2024-25"


def finalized_ledger():
    ledger = ClaimLedger()
    ledger = ledger.set_claim("D8", TAX_YEAR, 50, receipt_count=2, description="Gifts")
    ledger = ledger.set_claim("D5", TAX_YEAR, "100.25", receipt_count=4)
    ledger = ledger.set_claim("D12", TAX_YEAR, 20)
    for code in ("D5", "D8", "D12"):
        ledger = ledger.finalize_claim(code, TAX_YEAR, ValidationResult())
    return ledger


class TestLodgmentExport:

    def test_totals_match_summary(self):
        ledger = finalized_ledger()
        export = export_claims_for_lodgment(ledger, TAX_YEAR)

        assert export.total_amount == ledger.get_tax_year_summary(TAX_YEAR).total_amount
        assert export.total_amount == Decimal("170.25")
        assert export.total_deductions == Decimal("150.25")
        assert export.total_offsets == Decimal("20.00")

    def test_categories_in_code_order(self):
        export = export_claims_for_lodgment(finalized_ledger(), TAX_YEAR)

        assert [line.code.value for line in export.categories] == ["D5", "D8", "D12"]
        assert export.categories[2].kind == CategoryKind.OFFSET
        assert export.categories[1].description == "Gifts"
        assert export.categories[0].receipt_count == 4

    def test_to_dict(self):
        data = export_claims_for_lodgment(finalized_ledger(), TAX_YEAR).to_dict()

        assert data["_meta"]["format"] == "Tally_Lodgment_v1"
        assert data["tax_year"] == TAX_YEAR
        assert data["total_amount"] == 170.25
        assert data["totals"] == {"deductions": 150.25, "offsets": 20.0}
        assert data["categories"][0]["code"] == "D5"
        assert data["categories"][0]["amount"] == 100.25

    def test_other_years_excluded(self):
        ledger = finalized_ledger().set_claim("D5", "2025-26", 999)
        export = export_claims_for_lodgment(ledger, TAX_YEAR)
        assert export.total_amount == Decimal("170.25")

    def test_unfinalized_claim_blocks_export(self):
        ledger = finalized_ledger().reopen_claim("D5", TAX_YEAR)
        service = LodgmentExportService(ledger)

        problems = service.check_ready(TAX_YEAR)
        assert len(problems) == 1
        assert "D5" in problems[0]

        with pytest.raises(IncompleteWorkpaperError) as exc:
            service.export(TAX_YEAR)
        assert exc.value.errors == problems

    def test_no_claims_blocks_export(self):
        with pytest.raises(IncompleteWorkpaperError):
            export_claims_for_lodgment(ClaimLedger(), TAX_YEAR)


CLAIM_SETS = {
    "deductions_only": [("D1", "45.10"), ("D6", "187.50")],
    "offsets_only": [("D12", "20"), ("D15", "310.05")],
    "mixed": [("D2", "300"), ("D4", "650"), ("D8", "2"), ("D13", "99.99")],
    "every_category": [(f"D{n}", f"{n}.{n:02d}") for n in range(1, 16)],
}


class TestExportConservation:
    """The export total always equals the tax year summary total"""

    @pytest.mark.parametrize("claims", list(CLAIM_SETS.values()), ids=list(CLAIM_SETS))
    def test_total_equals_summary(self, claims):
        ledger = ClaimLedger()
        for code, amount in claims:
            ledger = ledger.set_claim(code, TAX_YEAR, amount)
            ledger = ledger.finalize_claim(code, TAX_YEAR, ValidationResult())

        export = export_claims_for_lodgment(ledger, TAX_YEAR)
        summary = ledger.get_tax_year_summary(TAX_YEAR)

        assert export.total_amount == summary.total_amount
        assert export.total_amount == sum((Decimal(a) for _, a in claims), Decimal("0"))
        assert export.total_deductions + export.total_offsets == export.total_amount
        assert len(export.categories) == len(claims)
