"""
Unit Tests for Configuration and Structured Logging

Run with: pytest tests/test_config_logging.py -v
"""

import json
import logging

import pytest

from tally_core.config import Settings, get_settings
from tally_core.logging_config import (
    JSONFormatter,
    WorkpaperContextFilter,
    clear_workpaper_context,
    get_workpaper_context_filter,
    set_workpaper_context,
    setup_logging,
    setup_logging_from_settings,
)


class TestSettings:

    def test_defaults(self):
        settings = Settings()
        assert settings.SERVICE_NAME == "tally-core"
        assert settings.EXTRACTION_ACCEPT_CONFIDENCE == 0.8
        assert settings.EXTRACTION_REVIEW_CONFIDENCE == 0.5
        assert settings.validate_config() == []

    def test_namespace_prefix(self):
        settings = Settings(STORAGE_NAMESPACE_PREFIX="test_")
        assert settings.namespace("tally_ato_claims") == "test_tally_ato_claims"

    def test_invalid_values(self):
        settings = Settings(
            LOG_LEVEL="LOUD",
            EXTRACTION_ACCEPT_CONFIDENCE=0.4,
            EXTRACTION_REVIEW_CONFIDENCE=0.6,
        )
        errors = settings.validate_config()
        assert any("LOG_LEVEL" in e for e in errors)
        assert any("cannot exceed" in e for e in errors)

    def test_environment_properties(self):
        settings = Settings(ENVIRONMENT="Production")
        assert settings.is_production
        assert not settings.debug_enabled

    def test_invalid_production_config_raises(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("DEBUG", "true")
        get_settings.cache_clear()
        try:
            with pytest.raises(ValueError):
                get_settings()
        finally:
            get_settings.cache_clear()


class TestJSONFormatter:

    def make_record(self, **extra):
        logger = logging.getLogger("tally_core.test")
        return logger.makeRecord(
            "tally_core.test", logging.INFO, __file__, 10, "Added asset", (), None, extra=extra
        )

    def test_basic_fields(self):
        data = json.loads(JSONFormatter(service_name="tally-test").format(self.make_record()))

        assert data["level"] == "INFO"
        assert data["message"] == "Added asset"
        assert data["service"] == "tally-test"
        assert "workpaper" not in data

    def test_workpaper_context_and_extra(self):
        record = self.make_record(asset_id="a-1")
        context = WorkpaperContextFilter()
        context.set_workpaper_context("2024-25", "tally-low-value-pool-2024-25")
        context.filter(record)

        data = json.loads(JSONFormatter().format(record))
        assert data["workpaper"] == {"tax_year": "2024-25", "key": "tally-low-value-pool-2024-25"}
        assert data["extra"] == {"asset_id": "a-1"}


class TestSetupLogging:

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers = root.handlers[:]
        level = root.level
        yield
        root.handlers = handlers
        root.setLevel(level)

    def test_setup_installs_single_handler(self):
        root = setup_logging(level="DEBUG", json_format=False)

        assert len(root.handlers) == 1
        assert root.level == logging.DEBUG
        assert get_workpaper_context_filter() is not None

    def test_context_helpers(self):
        setup_logging()
        context = get_workpaper_context_filter()

        set_workpaper_context("2024-25", "key-2024-25")
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", (), None)
        context.filter(record)
        assert record.tax_year == "2024-25"

        clear_workpaper_context()
        context.filter(record)
        assert record.workpaper_key is None

    def test_from_settings(self):
        root = setup_logging_from_settings(Settings(LOG_LEVEL="WARNING", LOG_JSON=True))
        assert root.level == logging.WARNING
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
