from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from rate_ledger.config import Environment, Settings, get_settings
from rate_ledger.container import reset_container
from rate_ledger.domain.rates import CurrencyPair
from rate_ledger.repositories.sqlite import SQLiteDatabase, SQLiteRateStore
from rate_ledger.services.ledger import RateLedgerServiceImpl


class SteppingClock:
    """Deterministic clock that advances by `step` on every call."""

    def __init__(self, start: datetime, step: timedelta = timedelta(seconds=1)) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


@pytest.fixture(autouse=True)
def _fresh_settings() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    reset_container()
    get_settings.cache_clear()


@pytest.fixture
def usd_lbp() -> CurrencyPair:
    return CurrencyPair("USD", "LBP")


@pytest.fixture
def usd_eur() -> CurrencyPair:
    return CurrencyPair("USD", "EUR")


@pytest.fixture
def db() -> Iterator[SQLiteDatabase]:
    database = SQLiteDatabase(":memory:")
    database.initialize()
    yield database
    database.close()


@pytest.fixture
def store(db: SQLiteDatabase) -> SQLiteRateStore:
    return SQLiteRateStore(db)


@pytest.fixture
def file_store(tmp_path: Path) -> Iterator[SQLiteRateStore]:
    database = SQLiteDatabase(tmp_path / "rates.db", timeout=30.0)
    database.initialize()
    yield SQLiteRateStore(database)
    database.close()


@pytest.fixture
def clock() -> SteppingClock:
    return SteppingClock(datetime(2025, 6, 1, 9, 0, tzinfo=UTC))


@pytest.fixture
def make_clock() -> type[SteppingClock]:
    return SteppingClock


@pytest.fixture
def service(
    store: SQLiteRateStore, usd_lbp: CurrencyPair, clock: SteppingClock
) -> RateLedgerServiceImpl:
    return RateLedgerServiceImpl(store, usd_lbp, clock=clock)


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        environment=Environment.TESTING,
        sqlite_path=tmp_path / "rates.db",
    )
