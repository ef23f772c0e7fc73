"""Tests for the dependency container."""

import pytest

from rate_ledger.config import DatabaseType, Settings
from rate_ledger.container import (
    Container,
    get_app_settings,
    get_container,
    get_ledger_service,
    reset_container,
)
from rate_ledger.repositories.sqlite import SQLiteRateStore
from rate_ledger.services.ledger import RateLedgerServiceImpl


class TestContainer:
    def test_builds_sqlite_store(self, test_settings: Settings) -> None:
        with Container(settings=test_settings) as container:
            store = container.rate_store

            assert isinstance(store, SQLiteRateStore)
            assert container.rate_store is store
            assert test_settings.sqlite_path.exists()

    def test_service_uses_settings(self, test_settings: Settings) -> None:
        settings = test_settings.model_copy(update={"default_to_currency": "EUR"})

        with Container(settings=settings) as container:
            service = container.ledger_service

            assert isinstance(service, RateLedgerServiceImpl)
            assert service.default_pair.key == "USD/EUR"
            assert service.get_current() is None

    def test_close_drops_cached_services(self, test_settings: Settings) -> None:
        container = Container(settings=test_settings)
        first = container.ledger_service

        container.close()

        assert container.ledger_service is not first
        container.close()

    def test_postgres_requires_url(self, test_settings: Settings) -> None:
        settings = test_settings.model_copy(update={"database_type": DatabaseType.POSTGRES})
        container = Container(settings=settings)

        with pytest.raises(ValueError, match="database_url"):
            _ = container.rate_store


class TestGlobalContainer:
    def test_reads_environment(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setenv("RATE_LEDGER_SQLITE_PATH", str(tmp_path / "env.db"))
        monkeypatch.setenv("RATE_LEDGER_DEFAULT_TO_CURRENCY", "eur")

        service = get_ledger_service()

        assert get_container() is get_container()
        assert service.default_pair.key == "USD/EUR"
        assert get_app_settings().sqlite_path == tmp_path / "env.db"
        assert (tmp_path / "env.db").exists()

    def test_reset_creates_new_container(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setenv("RATE_LEDGER_SQLITE_PATH", str(tmp_path / "env.db"))
        first = get_container()

        reset_container()

        assert get_container() is not first
