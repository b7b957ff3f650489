"""
Unit Tests for Workpaper Persistence and Sessions

Tests:
- In-memory and JSON file stores
- Tolerant loading (unknown fields dropped, missing fields defaulted)
- WorkpaperSession apply / flush / reload, including failing stores

Run with: pytest tests/test_storage_sync.py -v
"""

from decimal import Decimal

import pytest

from tally_core.models.records import Donation, EducationExpense
from tally_core.services.records import DonationStore, SelfEducationWorkpaper
from tally_core.services.workpaper import low_value_pool
from tally_core.services.workpaper.models import LowValuePoolWorkpaper
from tally_core.services.workpaper.storage import (
    InMemoryWorkpaperStore,
    JsonFileWorkpaperStore,
    dump_model,
    load_model,
    workpaper_key,
)
from tally_core.services.workpaper.sync import WorkpaperSession
from tally_core.utils.validation_errors import PersistenceError, ValidationError


TAX_YEAR = "2024-25"
POOL_KEY = "tally-low-value-pool-2024-25"


class FlakyStore(InMemoryWorkpaperStore):
    """In-memory store that can be told to fail."""

    def __init__(self):
        super().__init__()
        self.fail_save = False
        self.fail_load = False

    def load(self, key):
        if self.fail_load:
            raise PersistenceError("store offline", key)
        return super().load(key)

    def save(self, key, data):
        if self.fail_save:
            raise PersistenceError("store offline", key)
        super().save(key, data)


# ==================== STORES ====================

class TestStores:

    def test_key_format(self):
        assert workpaper_key("tally-low-value-pool", TAX_YEAR) == POOL_KEY

    def test_in_memory_round_trip(self):
        store = InMemoryWorkpaperStore()
        store.save("a-2024-25", {"value": 1})

        assert store.load("a-2024-25") == {"value": 1}
        assert store.load("missing") is None
        assert store.keys() == ["a-2024-25"]
        assert store.delete("a-2024-25") is True
        assert store.delete("a-2024-25") is False

    def test_json_file_store(self, tmp_path):
        store = JsonFileWorkpaperStore(tmp_path / "workpapers")
        store.save(POOL_KEY, {"tax_year": TAX_YEAR})

        assert (tmp_path / "workpapers" / f"{POOL_KEY}.json").exists()
        assert store.load(POOL_KEY) == {"tax_year": TAX_YEAR}
        assert store.keys() == [POOL_KEY]
        assert store.delete(POOL_KEY) is True
        assert store.keys() == []

    def test_json_file_store_rejects_unsafe_keys(self, tmp_path):
        store = JsonFileWorkpaperStore(tmp_path)
        with pytest.raises(PersistenceError):
            store.save("../escape", {})

    def test_corrupt_file(self, tmp_path):
        store = JsonFileWorkpaperStore(tmp_path)
        (tmp_path / f"{POOL_KEY}.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(PersistenceError):
            store.load(POOL_KEY)

    def test_workpaper_survives_storage(self, tmp_path):
        store = JsonFileWorkpaperStore(tmp_path)
        wp = low_value_pool.create_empty_workpaper(TAX_YEAR)
        wp = low_value_pool.add_asset(wp, "Laptop", 1000, "2024-08-01")
        store.save(POOL_KEY, dump_model(wp))

        loaded = load_model(store, POOL_KEY, LowValuePoolWorkpaper)
        assert loaded.assets[0].cost == Decimal("1000")
        assert loaded.summary == wp.summary

    def test_unknown_fields_ignored_and_missing_defaulted(self):
        store = InMemoryWorkpaperStore()
        store.save(POOL_KEY, {"tax_year": TAX_YEAR, "legacy_field": True})

        loaded = load_model(store, POOL_KEY, LowValuePoolWorkpaper)
        assert loaded.assets == []
        assert loaded.prior_year_closing_balance == Decimal("0")

    def test_invalid_document(self):
        store = InMemoryWorkpaperStore()
        store.save(POOL_KEY, {"tax_year": TAX_YEAR, "assets": "not-a-list"})
        with pytest.raises(PersistenceError):
            load_model(store, POOL_KEY, LowValuePoolWorkpaper)


# ==================== SESSIONS ====================

class TestWorkpaperSession:

    @pytest.fixture
    def store(self):
        return FlakyStore()

    def test_new_session_starts_empty(self, store):
        session = WorkpaperSession.for_low_value_pool(store, TAX_YEAR)

        assert session.key == POOL_KEY
        assert session.snapshot.tax_year == TAX_YEAR
        assert session.snapshot.assets == []
        assert not session.is_dirty

    def test_apply_persists(self, store):
        session = WorkpaperSession.for_low_value_pool(store, TAX_YEAR)
        session.apply(low_value_pool.add_asset, "Chair", 400, "2024-09-01")

        assert store.keys() == [POOL_KEY]
        reopened = WorkpaperSession.for_low_value_pool(store, TAX_YEAR)
        assert reopened.snapshot.assets[0].description == "Chair"
        assert reopened.snapshot.summary.decline_in_value == Decimal("75.00")

    def test_failed_operation_leaves_snapshot(self, store):
        session = WorkpaperSession.for_low_value_pool(store, TAX_YEAR)
        before = session.snapshot

        with pytest.raises(ValidationError):
            session.apply(low_value_pool.add_asset, "", 400, "2024-09-01")
        assert session.snapshot is before
        assert not session.is_dirty

    def test_failed_save_keeps_work(self, store):
        session = WorkpaperSession.for_low_value_pool(store, TAX_YEAR)
        store.fail_save = True

        updated = session.apply(low_value_pool.add_asset, "Chair", 400, "2024-09-01")

        assert session.snapshot is updated
        assert session.is_dirty
        assert isinstance(session.last_error, PersistenceError)
        assert store.keys() == []

        store.fail_save = False
        assert session.flush() is True
        assert not session.is_dirty
        assert session.last_error is None
        assert store.keys() == [POOL_KEY]

    def test_failed_reload_keeps_snapshot(self, store):
        session = WorkpaperSession.for_low_value_pool(store, TAX_YEAR)
        updated = session.apply(low_value_pool.add_asset, "Chair", 400, "2024-09-01")
        store.fail_load = True

        assert session.reload() is updated
        assert isinstance(session.last_error, PersistenceError)

    def test_failed_initial_load_starts_empty(self, store):
        store.fail_load = True
        session = WorkpaperSession.for_low_value_pool(store, TAX_YEAR)

        assert session.snapshot.assets == []
        assert session.last_error is not None

    def test_discard(self, store):
        session = WorkpaperSession.for_low_value_pool(store, TAX_YEAR)
        session.apply(low_value_pool.add_asset, "Chair", 400, "2024-09-01")

        assert session.discard() is True
        assert session.snapshot.assets == []
        assert store.keys() == []

    def test_record_store_session(self, store):
        session = WorkpaperSession.for_model(store, DonationStore, TAX_YEAR)
        donation = Donation.create(organization="Red Cross", amount=25, date="2024-12-01", dgr_status=True)

        session.apply(DonationStore.add, donation)

        assert session.key == "tally_d8_donations-2024-25"
        reopened = WorkpaperSession.for_model(store, DonationStore, TAX_YEAR)
        assert reopened.snapshot.get_deductible_total() == Decimal("25.00")

    def test_self_education_session_recalculates(self, store):
        session = WorkpaperSession.for_model(store, SelfEducationWorkpaper, TAX_YEAR)
        expense = EducationExpense.create(description="Tuition", amount=500, date="2024-08-01")

        session.apply(SelfEducationWorkpaper.add_expense, expense)

        reopened = WorkpaperSession.for_model(store, SelfEducationWorkpaper, TAX_YEAR)
        assert reopened.snapshot.total_deductible == Decimal("250.00")
