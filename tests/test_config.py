"""Tests for settings and logging configuration."""

import logging
from decimal import Decimal
from pathlib import Path

import pytest
import structlog
from pydantic import ValidationError

from rate_ledger.config import DatabaseType, Environment, LogLevel, Settings, get_settings
from rate_ledger.logging_config import (
    LogContext,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)


class TestSettings:
    def test_defaults(self) -> None:
        settings = Settings(_env_file=None)

        assert settings.database_type == DatabaseType.SQLITE
        assert settings.default_pair.key == "USD/LBP"
        assert settings.history_default_limit == 5
        assert settings.max_rate == Decimal("1000000")
        assert settings.rate_manager_roles == ["admin", "manager"]
        assert settings.is_development

    def test_environment_variables(self, monkeypatch) -> None:
        monkeypatch.setenv("RATE_LEDGER_ENVIRONMENT", "production")
        monkeypatch.setenv("RATE_LEDGER_DEFAULT_FROM_CURRENCY", " eur ")
        monkeypatch.setenv("RATE_LEDGER_LOG_LEVEL", "WARNING")
        monkeypatch.setenv("RATE_LEDGER_RATE_MANAGER_ROLES", '["owner"]')

        settings = get_settings()

        assert settings.is_production
        assert settings.debug is False
        assert settings.default_pair.key == "EUR/LBP"
        assert settings.log_level == LogLevel.WARNING
        assert settings.rate_manager_roles == ["owner"]

    def test_settings_are_cached(self) -> None:
        assert get_settings() is get_settings()

    def test_empty_currency_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, default_to_currency="  ")

    def test_effective_database_url(self, tmp_path: Path) -> None:
        sqlite = Settings(_env_file=None, sqlite_path=tmp_path / "pos.db")
        postgres = Settings(
            _env_file=None,
            database_type=DatabaseType.POSTGRES,
            database_url="postgresql://pos@db/pos",
        )

        assert sqlite.effective_database_url == f"sqlite:///{tmp_path / 'pos.db'}"
        assert postgres.effective_database_url == "postgresql://pos@db/pos"


class TestLogging:
    @pytest.fixture
    def json_log_file(self, tmp_path: Path):
        log_file = tmp_path / "logs" / "rates.log"
        settings = Settings(
            _env_file=None,
            environment=Environment.TESTING,
            log_format="json",
            log_file=log_file,
        )
        configure_logging(settings)
        yield log_file
        root = logging.getLogger()
        for handler in list(root.handlers):
            if isinstance(handler, logging.FileHandler):
                root.removeHandler(handler)
                handler.close()
        structlog.reset_defaults()

    def test_json_events_reach_log_file(self, json_log_file: Path) -> None:
        logger = get_logger("rate_ledger.tests")

        logger.warning("rate_feed_stale", pair="USD/LBP")

        content = json_log_file.read_text()
        assert '"event": "rate_feed_stale"' in content
        assert '"pair": "USD/LBP"' in content
        assert '"level": "WARNING"' in content

    def test_log_context_binds_and_unbinds(self) -> None:
        bind_context(request_id="abc123")
        try:
            with LogContext(pair="USD/LBP"):
                bound = structlog.contextvars.get_contextvars()
                assert bound == {"request_id": "abc123", "pair": "USD/LBP"}
            assert structlog.contextvars.get_contextvars() == {"request_id": "abc123"}
        finally:
            clear_context()

        assert structlog.contextvars.get_contextvars() == {}
