from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import UTC, datetime
from uuid import UUID

from rate_ledger.domain.rates import CurrencyPair, RateRecord

# Activation ordering: the first row under this ordering is the active one.
RECENCY_ORDER = "updated_at DESC, created_at DESC, id DESC"


class RateStoreTransaction(ABC):
    """Operations available inside one atomic store transaction."""

    @abstractmethod
    def insert(self, record: RateRecord) -> RateRecord:
        pass

    @abstractmethod
    def deactivate(self, pair: CurrencyPair, at: datetime) -> int:
        pass

    @abstractmethod
    def query_active(self, pair: CurrencyPair) -> RateRecord | None:
        pass

    @abstractmethod
    def latest_update(self, pair: CurrencyPair) -> datetime | None:
        """Greatest updated_at among the pair's records, if any."""
        pass


class RateStore(ABC):
    """Append-only storage of rate records.

    Owns the invariant that each pair with records has exactly one
    active record: the first under RECENCY_ORDER.
    """

    @abstractmethod
    def initialize(self) -> None:
        """Create or upgrade the schema. Idempotent."""
        pass

    @abstractmethod
    def transaction(
        self, pair: CurrencyPair
    ) -> AbstractContextManager[RateStoreTransaction]:
        """Open a transaction serialized against other writers of `pair`.

        Commits when the block exits normally and rolls back otherwise.
        """
        pass

    def insert(self, record: RateRecord) -> RateRecord:
        with self.transaction(record.pair) as tx:
            return tx.insert(record)

    def deactivate(self, pair: CurrencyPair, at: datetime | None = None) -> int:
        with self.transaction(pair) as tx:
            return tx.deactivate(pair, at or datetime.now(UTC))

    @abstractmethod
    def get(self, record_id: UUID) -> RateRecord | None:
        pass

    @abstractmethod
    def query_active(self, pair: CurrencyPair) -> RateRecord | None:
        pass

    @abstractmethod
    def query_history(self, pair: CurrencyPair, limit: int) -> list[RateRecord]:
        pass

    @abstractmethod
    def normalize(self, pair: CurrencyPair) -> int:
        """Recompute is_active for the pair; return the number of rows changed."""
        pass

    @abstractmethod
    def list_pairs(self) -> list[CurrencyPair]:
        pass

    @abstractmethod
    def list_active(self) -> list[RateRecord]:
        pass

    @abstractmethod
    def count(self, pair: CurrencyPair) -> int:
        pass

    def normalize_all(self) -> int:
        return sum(self.normalize(pair) for pair in self.list_pairs())

    @abstractmethod
    def close(self) -> None:
        pass
