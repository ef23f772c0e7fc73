"""PostgreSQL implementation of the rate store."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

import psycopg2
import psycopg2.extras
import psycopg2.pool

from rate_ledger.domain.rates import CurrencyPair, RateRecord, as_utc
from rate_ledger.exceptions import ConstraintViolationError, StorageError
from rate_ledger.repositories.interfaces import (
    RECENCY_ORDER,
    RateStore,
    RateStoreTransaction,
)

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS rate_records (
        id TEXT COLLATE "C" PRIMARY KEY,
        from_currency VARCHAR(10) NOT NULL,
        to_currency VARCHAR(10) NOT NULL,
        rate NUMERIC(15, 6) NOT NULL CHECK (rate > 0),
        updated_by TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        CHECK (from_currency <> to_currency)
    );

    -- Tables created before is_active existed get it here; backfill runs after.
    ALTER TABLE rate_records ADD COLUMN IF NOT EXISTS is_active BOOLEAN NOT NULL DEFAULT FALSE;

    CREATE INDEX IF NOT EXISTS idx_rate_records_active
        ON rate_records (from_currency, to_currency, is_active, updated_at);

    COMMENT ON COLUMN rate_records.is_active
        IS 'True marks the current rate of its currency pair';

    CREATE OR REPLACE FUNCTION rate_records_guard() RETURNS trigger AS $$
    BEGIN
        IF TG_OP = 'DELETE' THEN
            RAISE EXCEPTION 'rate records are append-only'
                USING ERRCODE = 'integrity_constraint_violation';
        END IF;
        IF NEW.id <> OLD.id
           OR NEW.from_currency <> OLD.from_currency
           OR NEW.to_currency <> OLD.to_currency
           OR NEW.rate <> OLD.rate
           OR NEW.created_at <> OLD.created_at THEN
            RAISE EXCEPTION 'rate records only allow is_active and updated_at to change'
                USING ERRCODE = 'integrity_constraint_violation';
        END IF;
        RETURN NEW;
    END;
    $$ LANGUAGE plpgsql;

    DROP TRIGGER IF EXISTS trg_rate_records_guard ON rate_records;
    CREATE TRIGGER trg_rate_records_guard
        BEFORE UPDATE OR DELETE ON rate_records
        FOR EACH ROW EXECUTE FUNCTION rate_records_guard();
"""

_HAS_IS_ACTIVE = """
    SELECT 1 FROM information_schema.columns
    WHERE table_name = 'rate_records' AND column_name = 'is_active'
"""

# One statement: rank each pair's rows and flip only the flags that disagree.
_NORMALIZE = f"""
    WITH ranked AS (
        SELECT id, ROW_NUMBER() OVER (
            PARTITION BY from_currency, to_currency
            ORDER BY {RECENCY_ORDER}
        ) AS rn
        FROM rate_records
        WHERE {{scope}}
    )
    UPDATE rate_records AS r
    SET is_active = (ranked.rn = 1)
    FROM ranked
    WHERE ranked.id = r.id AND r.is_active IS DISTINCT FROM (ranked.rn = 1)
"""

_PAIR_SCOPE = "from_currency = %s AND to_currency = %s"


def _row_to_record(row: dict[str, Any]) -> RateRecord:
    return RateRecord(
        pair=CurrencyPair(row["from_currency"], row["to_currency"]),
        rate=Decimal(row["rate"]),
        id=UUID(row["id"]),
        is_active=bool(row["is_active"]),
        updated_by=row["updated_by"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except psycopg2.IntegrityError as e:
        raise ConstraintViolationError(str(e).strip(), operation=operation) from e
    except psycopg2.Error as e:
        raise StorageError(operation, str(e).strip()) from e


class PostgresDatabase:
    """PostgreSQL connection manager backed by a thread-safe pool."""

    def __init__(
        self, connection_string: str, min_connections: int = 1, max_connections: int = 10
    ) -> None:
        self._connection_string = connection_string
        self._min_connections = min_connections
        self._max_connections = max_connections
        self._pool: psycopg2.pool.ThreadedConnectionPool | None = None
        self._pool_lock = threading.Lock()

    def _get_pool(self) -> psycopg2.pool.ThreadedConnectionPool:
        with self._pool_lock:
            if self._pool is None or self._pool.closed:
                self._pool = psycopg2.pool.ThreadedConnectionPool(
                    self._min_connections,
                    self._max_connections,
                    self._connection_string,
                    cursor_factory=psycopg2.extras.RealDictCursor,
                )
            return self._pool

    @contextmanager
    def transaction(self) -> Iterator[Any]:
        """Borrow a connection and run the block in one transaction."""
        pool = self._get_pool()
        conn = pool.getconn()
        try:
            with conn:
                with conn.cursor() as cur:
                    yield cur
        finally:
            pool.putconn(conn)

    def initialize(self) -> None:
        """Create the schema, upgrading and backfilling a legacy table."""
        with _storage_errors("initialize"), self.transaction() as cur:
            cur.execute("SELECT to_regclass('rate_records') IS NOT NULL AS present")
            existed = cur.fetchone()["present"]
            cur.execute(_HAS_IS_ACTIVE)
            had_flag = cur.fetchone() is not None
            cur.execute(_SCHEMA)
            if existed and not had_flag:
                cur.execute(_NORMALIZE.format(scope="TRUE"))

    def close(self) -> None:
        with self._pool_lock:
            if self._pool is not None and not self._pool.closed:
                self._pool.closeall()
            self._pool = None


class PostgresRateTransaction(RateStoreTransaction):
    def __init__(self, cursor: Any) -> None:
        self._cur = cursor

    def insert(self, record: RateRecord) -> RateRecord:
        if not record.rate.is_finite() or record.rate <= 0:
            raise ConstraintViolationError(
                "rate must be positive", record_id=str(record.id), rate=str(record.rate)
            )
        self._cur.execute(
            """
            INSERT INTO rate_records (id, from_currency, to_currency, rate,
                                      is_active, updated_by, created_at, updated_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (
                str(record.id),
                record.from_currency,
                record.to_currency,
                record.rate,
                record.is_active,
                record.updated_by,
                record.created_at,
                record.updated_at,
            ),
        )
        return record

    def deactivate(self, pair: CurrencyPair, at: datetime) -> int:
        self._cur.execute(
            """
            UPDATE rate_records SET is_active = FALSE, updated_at = %s
            WHERE from_currency = %s AND to_currency = %s AND is_active
            """,
            (as_utc(at), pair.from_currency, pair.to_currency),
        )
        return self._cur.rowcount

    def query_active(self, pair: CurrencyPair) -> RateRecord | None:
        return _fetch_active(self._cur, pair)

    def latest_update(self, pair: CurrencyPair) -> datetime | None:
        self._cur.execute(
            """
            SELECT MAX(updated_at) AS latest FROM rate_records
            WHERE from_currency = %s AND to_currency = %s
            """,
            (pair.from_currency, pair.to_currency),
        )
        row = self._cur.fetchone()
        if row is None or row["latest"] is None:
            return None
        return as_utc(row["latest"])


def _fetch_active(cur: Any, pair: CurrencyPair) -> RateRecord | None:
    cur.execute(
        f"""
        SELECT * FROM rate_records
        WHERE from_currency = %s AND to_currency = %s AND is_active
        ORDER BY {RECENCY_ORDER}
        LIMIT 1
        """,
        (pair.from_currency, pair.to_currency),
    )
    row = cur.fetchone()
    if row is None:
        return None
    return _row_to_record(row)


def _lock_pair(cur: Any, pair: CurrencyPair) -> None:
    # Transaction-scoped advisory lock keyed on the pair: writers of the same
    # pair queue here, writers of other pairs never touch it.
    cur.execute("SELECT pg_advisory_xact_lock(hashtext(%s))", (pair.key,))


class PostgresRateStore(RateStore):
    """PostgreSQL implementation of RateStore."""

    def __init__(self, database: PostgresDatabase) -> None:
        self._db = database

    def initialize(self) -> None:
        self._db.initialize()

    @contextmanager
    def transaction(self, pair: CurrencyPair) -> Iterator[PostgresRateTransaction]:
        with _storage_errors("transaction"), self._db.transaction() as cur:
            _lock_pair(cur, pair)
            yield PostgresRateTransaction(cur)

    def get(self, record_id: UUID) -> RateRecord | None:
        with _storage_errors("get"), self._db.transaction() as cur:
            cur.execute("SELECT * FROM rate_records WHERE id = %s", (str(record_id),))
            row = cur.fetchone()
        if row is None:
            return None
        return _row_to_record(row)

    def query_active(self, pair: CurrencyPair) -> RateRecord | None:
        with _storage_errors("query_active"), self._db.transaction() as cur:
            return _fetch_active(cur, pair)

    def query_history(self, pair: CurrencyPair, limit: int) -> list[RateRecord]:
        with _storage_errors("query_history"), self._db.transaction() as cur:
            cur.execute(
                f"""
                SELECT * FROM rate_records
                WHERE from_currency = %s AND to_currency = %s
                ORDER BY {RECENCY_ORDER}
                LIMIT %s
                """,
                (pair.from_currency, pair.to_currency, limit),
            )
            rows = cur.fetchall()
        return [_row_to_record(row) for row in rows]

    def normalize(self, pair: CurrencyPair) -> int:
        with _storage_errors("normalize"), self._db.transaction() as cur:
            _lock_pair(cur, pair)
            cur.execute(
                _NORMALIZE.format(scope=_PAIR_SCOPE),
                (pair.from_currency, pair.to_currency),
            )
            return cur.rowcount

    def list_pairs(self) -> list[CurrencyPair]:
        with _storage_errors("list_pairs"), self._db.transaction() as cur:
            cur.execute(
                """
                SELECT DISTINCT from_currency, to_currency FROM rate_records
                ORDER BY from_currency, to_currency
                """
            )
            rows = cur.fetchall()
        return [CurrencyPair(row["from_currency"], row["to_currency"]) for row in rows]

    def list_active(self) -> list[RateRecord]:
        with _storage_errors("list_active"), self._db.transaction() as cur:
            cur.execute(
                f"""
                SELECT * FROM rate_records WHERE is_active
                ORDER BY from_currency, to_currency, {RECENCY_ORDER}
                """
            )
            rows = cur.fetchall()
        return [_row_to_record(row) for row in rows]

    def count(self, pair: CurrencyPair) -> int:
        with _storage_errors("count"), self._db.transaction() as cur:
            cur.execute(
                """
                SELECT COUNT(*) AS n FROM rate_records
                WHERE from_currency = %s AND to_currency = %s
                """,
                (pair.from_currency, pair.to_currency),
            )
            row = cur.fetchone()
        return int(row["n"])

    def close(self) -> None:
        self._db.close()
