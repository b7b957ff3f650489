"""
Unit Tests for Category Records and Record Stores

Run with: pytest tests/test_records.py -v
"""

from decimal import Decimal

import pytest

from tally_core.models.enums import DonationType
from tally_core.models.records import (
    Course,
    DepreciatingAsset,
    Donation,
    EducationExpense,
    SuperContribution,
    UPPEntry,
)
from tally_core.services.records import (
    DonationStore,
    SelfEducationWorkpaper,
    SuperContributionStore,
    UPPStore,
)
from tally_core.utils.validation_errors import UnknownRecordError, ValidationError


TAX_YEAR = "2024-25"


def make_donation(amount=100, **kwargs):
    return Donation.create(
        organization=kwargs.pop("organization", "Salvation Army"),
        amount=amount,
        date="2024-11-20",
        dgr_status=kwargs.pop("dgr_status", True),
        **kwargs
    )


class TestRecordChecks:
    """Record.create() reports malformed input as ValidationError"""

    def test_blank_organization(self):
        with pytest.raises(ValidationError) as exc:
            make_donation(organization="  ")
        assert exc.value.field == "organization"

    def test_bad_date(self):
        with pytest.raises(ValidationError) as exc:
            Donation.create(organization="Red Cross", amount=10, date="20/11/2024")
        assert exc.value.field == "date"

    def test_acknowledgment_requires_notice(self):
        with pytest.raises(ValidationError) as exc:
            SuperContribution.create(
                fund_name="Industry Super",
                amount=1000,
                date="2025-05-01",
                acknowledgment_received=True,
            )
        assert exc.value.field == "acknowledgment_received"

    def test_upp_tax_withheld_non_negative(self):
        with pytest.raises(ValidationError):
            UPPEntry.create(
                description="Annuity",
                payer_name="Insurer",
                gross_payment=1000,
                deductible_amount=100,
                date="2025-01-01",
                tax_withheld=-1,
            )

    def test_course_end_before_start(self):
        with pytest.raises(ValidationError) as exc:
            Course.create(name="MBA", start_date="2024-07-01", end_date="2024-06-01")
        assert exc.value.field == "end_date"

    def test_asset_needs_positive_life(self):
        with pytest.raises(ValidationError):
            DepreciatingAsset.create(
                name="Laptop", cost=1500, purchase_date="2024-08-01", effective_life_years=0
            )

    def test_unknown_fields_ignored(self):
        donation = make_donation(legacy_flag=True)
        assert not hasattr(donation, "legacy_flag")

    def test_error_to_dict(self):
        with pytest.raises(ValidationError) as exc:
            make_donation(amount=-1)
        data = exc.value.to_dict()
        assert data["error"] == "invalid_parameter"
        assert data["parameter"] == "amount"
        assert data["record_id"]


class TestDonationStore:

    @pytest.fixture
    def store(self):
        return DonationStore(tax_year=TAX_YEAR)

    def test_add_returns_new_store(self, store):
        donation = make_donation()
        updated = store.add(donation)

        assert store.records == []
        assert updated.get(donation.id) == donation
        assert updated.updated_at is not None

    def test_duplicate_id_rejected(self, store):
        donation = make_donation()
        updated = store.add(donation)
        with pytest.raises(ValidationError):
            updated.add(donation)

    def test_update_rechecks_record(self, store):
        donation = make_donation()
        updated = store.add(donation).update(donation.id, amount=250)

        assert updated.get(donation.id).amount == Decimal("250")
        assert updated.get(donation.id).created_at == donation.created_at

        with pytest.raises(ValidationError):
            updated.update(donation.id, amount=-1)

    def test_id_cannot_change(self, store):
        donation = make_donation()
        with pytest.raises(ValidationError):
            store.add(donation).update(donation.id, id="other")

    def test_unknown_field_rejected(self, store):
        donation = make_donation()
        with pytest.raises(ValidationError) as exc:
            store.add(donation).update(donation.id, ammount=250)
        assert exc.value.field == "ammount"

    def test_unknown_record(self, store):
        with pytest.raises(UnknownRecordError):
            store.delete("missing")
        with pytest.raises(UnknownRecordError):
            store.update("missing", amount=1)

    def test_totals(self, store):
        store = store.add(make_donation(100))
        store = store.add(make_donation(50, dgr_status=False))
        store = store.add(make_donation(20, type=DonationType.WORKPLACE))

        assert store.get_total_donations() == Decimal("170.00")
        assert store.get_deductible_total() == Decimal("120.00")
        assert len(store.get_donations_by_type("workplace")) == 1
        assert len(store.filter(dgr_status=False)) == 1

    def test_delete(self, store):
        donation = make_donation()
        updated = store.add(donation).delete(donation.id)
        assert updated.list_all() == []


class TestSuperAndUPPStores:

    def test_super_store_splits_pending(self):
        store = SuperContributionStore(tax_year=TAX_YEAR)
        store = store.add(SuperContribution.create(
            fund_name="Fund A", amount=1000, date="2025-05-01",
            notice_submitted=True, acknowledgment_received=True,
        ))
        store = store.add(SuperContribution.create(
            fund_name="Fund A", amount=500, date="2025-06-01", notice_submitted=True,
        ))

        assert store.get_total_contributions() == Decimal("1000.00")
        assert store.get_all_contributions_total() == Decimal("1500.00")
        assert len(store.get_valid_contributions()) == 1
        assert len(store.get_pending_contributions()) == 1
        assert store.validate_records().is_valid

    def test_upp_store_totals(self):
        store = UPPStore(tax_year=TAX_YEAR)
        for deductible in (300, 450):
            store = store.add(UPPEntry.create(
                description="Pension",
                payer_name="Payer",
                gross_payment=5000,
                deductible_amount=deductible,
                date="2025-01-01",
            ))

        assert store.get_total_deductible() == Decimal("750.00")
        assert store.get_total_gross() == Decimal("10000.00")
        assert len(store.get_entries_by_type("foreign_pension")) == 2


class TestSelfEducationWorkpaper:

    @pytest.fixture
    def workpaper(self):
        course = Course.create(name="Graduate Certificate", provider="UNSW", start_date="2024-07-15")
        wp = SelfEducationWorkpaper(tax_year=TAX_YEAR).add_course(course)
        return wp.add_expense(EducationExpense.create(
            description="Tuition", amount=500, date="2024-08-01", course_id=course.id
        ))

    def test_totals_recalculated_on_change(self, workpaper):
        assert workpaper.taxable_income_reduction == Decimal("250.00")
        assert workpaper.total_deductible == Decimal("250.00")

        expense_id = workpaper.expenses[0].id
        updated = workpaper.update_expense(expense_id, amount=1000)
        assert updated.total_deductible == Decimal("750.00")

        removed = updated.remove_expense(expense_id)
        assert removed.total_deductible == Decimal("0.00")

    def test_misspelled_expense_field_rejected(self, workpaper):
        with pytest.raises(ValidationError):
            workpaper.update_expense(workpaper.expenses[0].id, work_related_pct=50)

    def test_asset_depreciated_on_add(self, workpaper):
        wp = workpaper.add_asset(DepreciatingAsset.create(
            name="Laptop", cost=1500, purchase_date="2024-08-01", effective_life_years=3
        ))
        assert wp.depreciating_assets[0].decline_in_value == Decimal("1000.00")
        assert wp.total_deductible == Decimal("1250.00")

    def test_summary(self, workpaper):
        summary = workpaper.summary()
        assert summary["course_count"] == 1
        assert summary["expense_count"] == 1
        assert summary["deductible_amount"] == Decimal("250.00")

    def test_validate(self, workpaper):
        assert workpaper.validate_workpaper().is_valid

    def test_carry_forward_keeps_assets_only(self, workpaper):
        wp = workpaper.add_asset(DepreciatingAsset.create(
            name="Laptop", cost=1500, purchase_date="2024-08-01", effective_life_years=3
        ))
        next_year = wp.carry_forward("2025-26")

        assert next_year.tax_year == "2025-26"
        assert next_year.courses == []
        assert next_year.expenses == []
        assert next_year.depreciating_assets[0].opening_balance == Decimal("500.00")
        assert next_year.depreciating_assets[0].decline_in_value == Decimal("333.33")
