"""Dependency injection container for Rate Ledger.

Builds the rate store and ledger service from settings, lazily, once per
container. Tests create a Container with their own Settings instead of
using the global one.

Usage:
    from rate_ledger.container import get_container

    service = get_container().ledger_service
    service.get_current()
"""

from functools import cached_property, lru_cache

from rate_ledger.config import DatabaseType, Settings, get_settings
from rate_ledger.logging_config import get_logger
from rate_ledger.repositories.interfaces import RateStore
from rate_ledger.services.interfaces import RateLedgerService

logger = get_logger(__name__)


class Container:
    """Lazily constructed application services.

        test_settings = Settings(sqlite_path=tmp_path / "rates.db")
        container = Container(settings=test_settings)
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        logger.debug(
            "container_created",
            database_type=self._settings.database_type.value,
            environment=self._settings.environment.value,
        )

    @property
    def settings(self) -> Settings:
        return self._settings

    @cached_property
    def rate_store(self) -> RateStore:
        """The configured store, initialized on first access."""
        if self._settings.database_type == DatabaseType.POSTGRES:
            store = self._create_postgres_store()
        else:
            store = self._create_sqlite_store()
        store.initialize()
        return store

    def _create_sqlite_store(self) -> RateStore:
        from rate_ledger.repositories.sqlite import SQLiteDatabase, SQLiteRateStore

        db_path = str(self._settings.sqlite_path)
        logger.info("initializing_sqlite_database", path=db_path)
        return SQLiteRateStore(SQLiteDatabase(db_path, timeout=self._settings.sqlite_timeout))

    def _create_postgres_store(self) -> RateStore:
        from rate_ledger.repositories.postgres import PostgresDatabase, PostgresRateStore

        url = self._settings.database_url
        if not url:
            raise ValueError("database_url must be set when database_type is postgres")

        logger.info(
            "initializing_postgres_database",
            # Host only; the URL may carry credentials.
            host=url.split("@")[-1].split("/")[0] if "@" in url else "localhost",
        )
        return PostgresRateStore(PostgresDatabase(url))

    @cached_property
    def ledger_service(self) -> RateLedgerService:
        from rate_ledger.services.ledger import RateLedgerServiceImpl

        return RateLedgerServiceImpl(
            self.rate_store,
            self._settings.default_pair,
            max_rate=self._settings.max_rate,
            history_default_limit=self._settings.history_default_limit,
            history_max_limit=self._settings.history_max_limit,
        )

    def close(self) -> None:
        """Close the store if it was ever opened."""
        store = self.__dict__.pop("rate_store", None)
        self.__dict__.pop("ledger_service", None)
        if store is not None:
            logger.info("closing_database_connection")
            store.close()

    def __enter__(self) -> "Container":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


_container: Container | None = None


@lru_cache
def get_container() -> Container:
    """Get the global container, created from environment settings on first use."""
    global _container
    if _container is None:
        _container = Container()
    return _container


def reset_container() -> None:
    """Close and drop the global container."""
    global _container
    if _container is not None:
        _container.close()
        _container = None
    get_container.cache_clear()


def get_ledger_service() -> RateLedgerService:
    """FastAPI dependency for the rate ledger service."""
    return get_container().ledger_service


def get_app_settings() -> Settings:
    """FastAPI dependency for settings; overridable in tests."""
    return get_container().settings
