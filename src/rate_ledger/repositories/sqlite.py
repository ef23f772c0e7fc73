"""SQLite implementation of the rate store."""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from uuid import UUID

from rate_ledger.domain.rates import CurrencyPair, RateRecord, as_utc
from rate_ledger.exceptions import ConstraintViolationError, StorageError
from rate_ledger.repositories.interfaces import (
    RECENCY_ORDER,
    RateStore,
    RateStoreTransaction,
)

_SCHEMA = """
    -- Rate records table (append-only ledger)
    CREATE TABLE IF NOT EXISTS rate_records (
        id TEXT PRIMARY KEY,
        from_currency TEXT NOT NULL,
        to_currency TEXT NOT NULL,
        rate TEXT NOT NULL CHECK (CAST(rate AS REAL) > 0),
        is_active INTEGER NOT NULL DEFAULT 0,
        updated_by TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        CHECK (from_currency <> to_currency)
    );
"""

_INDEXES_AND_TRIGGERS = """
    CREATE INDEX IF NOT EXISTS idx_rate_records_active
        ON rate_records(from_currency, to_currency, is_active, updated_at);

    CREATE TRIGGER IF NOT EXISTS trg_rate_records_immutable
    BEFORE UPDATE OF id, from_currency, to_currency, rate, created_at ON rate_records
    BEGIN
        SELECT RAISE(ABORT, 'rate records only allow is_active and updated_at to change');
    END;

    CREATE TRIGGER IF NOT EXISTS trg_rate_records_append_only
    BEFORE DELETE ON rate_records
    BEGIN
        SELECT RAISE(ABORT, 'rate records are append-only');
    END;
"""

# Flips is_active on every row whose flag disagrees with the activation
# ordering. Only is_active changes, so the ordering is stable while it runs.
_NORMALIZE = f"""
    UPDATE rate_records
    SET is_active = CASE WHEN is_active = 1 THEN 0 ELSE 1 END
    WHERE {{scope}}
      AND is_active <> (
        id = (
            SELECT newest.id FROM rate_records AS newest
            WHERE newest.from_currency = rate_records.from_currency
              AND newest.to_currency = rate_records.to_currency
            ORDER BY {RECENCY_ORDER}
            LIMIT 1
        )
      )
"""

_PAIR_SCOPE = "from_currency = ? AND to_currency = ?"


def _ts(value: datetime) -> str:
    # Fixed-width UTC text so lexicographic order matches time order.
    return as_utc(value).isoformat(timespec="microseconds")


def _row_to_record(row: sqlite3.Row) -> RateRecord:
    return RateRecord(
        pair=CurrencyPair(row["from_currency"], row["to_currency"]),
        rate=Decimal(row["rate"]),
        id=UUID(row["id"]),
        is_active=bool(row["is_active"]),
        updated_by=row["updated_by"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _fetch_active(conn: sqlite3.Connection, pair: CurrencyPair) -> RateRecord | None:
    row = conn.execute(
        f"""
        SELECT * FROM rate_records
        WHERE from_currency = ? AND to_currency = ? AND is_active = 1
        ORDER BY {RECENCY_ORDER}
        LIMIT 1
        """,
        (pair.from_currency, pair.to_currency),
    ).fetchone()
    if row is None:
        return None
    return _row_to_record(row)


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except sqlite3.IntegrityError as e:
        raise ConstraintViolationError(str(e), operation=operation) from e
    except sqlite3.Error as e:
        raise StorageError(operation, str(e)) from e


class SQLiteDatabase:
    """SQLite connection manager.

    File databases get one connection per thread and run in WAL mode, so
    readers never wait on writers and writers queue on BEGIN IMMEDIATE.
    An in-memory database exists only on its one connection, which is
    shared and serialized with a lock.
    """

    def __init__(self, path: str | Path = ":memory:", timeout: float = 30.0) -> None:
        self._path = str(path)
        self._timeout = timeout
        self._local = threading.local()
        self._shared: sqlite3.Connection | None = None
        self._memory_lock = threading.RLock()
        self._registry_lock = threading.Lock()
        self._connections: list[sqlite3.Connection] = []

    @property
    def path(self) -> str:
        return self._path

    @property
    def is_memory(self) -> bool:
        return self._path == ":memory:"

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            self._path,
            timeout=self._timeout,
            isolation_level=None,
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        with self._registry_lock:
            self._connections.append(conn)
        return conn

    def get_connection(self) -> sqlite3.Connection:
        """Get or create the calling thread's connection."""
        if self.is_memory:
            if self._shared is None:
                self._shared = self._connect()
            return self._shared
        conn = getattr(self._local, "connection", None)
        if conn is None:
            conn = self._connect()
            self._local.connection = conn
        return conn

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection for reads outside a transaction."""
        if self.is_memory:
            with self._memory_lock:
                yield self.get_connection()
        else:
            yield self.get_connection()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the block in one write transaction, rolling back on any exception."""
        with self.connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
                conn.execute("COMMIT")
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise

    def initialize(self) -> None:
        """Create the schema, upgrading and backfilling a legacy table."""
        with _storage_errors("initialize"), self.connection() as conn:
            if not self.is_memory:
                conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(_SCHEMA)
            added = self._add_migration_columns(conn)
            conn.executescript(_INDEXES_AND_TRIGGERS)
        if added:
            with _storage_errors("backfill"), self.transaction() as conn:
                conn.execute(_NORMALIZE.format(scope="1 = 1"))

    def _add_migration_columns(self, conn: sqlite3.Connection) -> bool:
        """Add is_active to tables created before it existed; True if added."""
        columns = {row["name"] for row in conn.execute("PRAGMA table_info(rate_records)")}
        if "is_active" in columns:
            return False
        conn.execute(
            "ALTER TABLE rate_records ADD COLUMN is_active INTEGER NOT NULL DEFAULT 0"
        )
        return True

    def close(self) -> None:
        """Close every connection opened by this manager."""
        with self._registry_lock:
            connections, self._connections = self._connections, []
        for conn in connections:
            conn.close()
        self._shared = None
        self._local = threading.local()


class SQLiteRateTransaction(RateStoreTransaction):
    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def insert(self, record: RateRecord) -> RateRecord:
        if not record.rate.is_finite() or record.rate <= 0:
            raise ConstraintViolationError(
                "rate must be positive", record_id=str(record.id), rate=str(record.rate)
            )
        assert record.updated_at is not None
        self._conn.execute(
            """
            INSERT INTO rate_records (id, from_currency, to_currency, rate,
                                      is_active, updated_by, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(record.id),
                record.from_currency,
                record.to_currency,
                format(record.rate, "f"),
                1 if record.is_active else 0,
                record.updated_by,
                _ts(record.created_at),
                _ts(record.updated_at),
            ),
        )
        return record

    def deactivate(self, pair: CurrencyPair, at: datetime) -> int:
        cursor = self._conn.execute(
            """
            UPDATE rate_records SET is_active = 0, updated_at = ?
            WHERE from_currency = ? AND to_currency = ? AND is_active = 1
            """,
            (_ts(at), pair.from_currency, pair.to_currency),
        )
        return cursor.rowcount

    def query_active(self, pair: CurrencyPair) -> RateRecord | None:
        return _fetch_active(self._conn, pair)

    def latest_update(self, pair: CurrencyPair) -> datetime | None:
        row = self._conn.execute(
            """
            SELECT MAX(updated_at) AS latest FROM rate_records
            WHERE from_currency = ? AND to_currency = ?
            """,
            (pair.from_currency, pair.to_currency),
        ).fetchone()
        if row is None or row["latest"] is None:
            return None
        return as_utc(datetime.fromisoformat(row["latest"]))


class SQLiteRateStore(RateStore):
    """SQLite implementation of RateStore.

    SQLite allows one writer per database file, so `transaction()` holds the
    whole-file write lock (BEGIN IMMEDIATE) and writers of different pairs
    serialize behind each other. PostgresRateStore locks per pair instead.
    Readers in WAL mode are not blocked by a writer and see the last
    committed state.
    """

    def __init__(self, db: SQLiteDatabase) -> None:
        self._db = db

    @property
    def database(self) -> SQLiteDatabase:
        return self._db

    def initialize(self) -> None:
        self._db.initialize()

    @contextmanager
    def transaction(self, pair: CurrencyPair) -> Iterator[SQLiteRateTransaction]:
        # SQLite has a single writer per database; BEGIN IMMEDIATE takes it
        # up front so a transaction never fails half-way on lock upgrade.
        with _storage_errors("transaction"), self._db.transaction() as conn:
            yield SQLiteRateTransaction(conn)

    def get(self, record_id: UUID) -> RateRecord | None:
        with _storage_errors("get"), self._db.connection() as conn:
            row = conn.execute(
                "SELECT * FROM rate_records WHERE id = ?", (str(record_id),)
            ).fetchone()
        if row is None:
            return None
        return _row_to_record(row)

    def query_active(self, pair: CurrencyPair) -> RateRecord | None:
        with _storage_errors("query_active"), self._db.connection() as conn:
            return _fetch_active(conn, pair)

    def query_history(self, pair: CurrencyPair, limit: int) -> list[RateRecord]:
        with _storage_errors("query_history"), self._db.connection() as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM rate_records
                WHERE from_currency = ? AND to_currency = ?
                ORDER BY {RECENCY_ORDER}
                LIMIT ?
                """,
                (pair.from_currency, pair.to_currency, limit),
            ).fetchall()
        return [_row_to_record(row) for row in rows]

    def normalize(self, pair: CurrencyPair) -> int:
        with _storage_errors("normalize"), self._db.transaction() as conn:
            cursor = conn.execute(
                _NORMALIZE.format(scope=_PAIR_SCOPE),
                (pair.from_currency, pair.to_currency),
            )
            return cursor.rowcount

    def normalize_all(self) -> int:
        with _storage_errors("normalize_all"), self._db.transaction() as conn:
            cursor = conn.execute(_NORMALIZE.format(scope="1 = 1"))
            return cursor.rowcount

    def list_pairs(self) -> list[CurrencyPair]:
        with _storage_errors("list_pairs"), self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT DISTINCT from_currency, to_currency FROM rate_records
                ORDER BY from_currency, to_currency
                """
            ).fetchall()
        return [CurrencyPair(row["from_currency"], row["to_currency"]) for row in rows]

    def list_active(self) -> list[RateRecord]:
        with _storage_errors("list_active"), self._db.connection() as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM rate_records WHERE is_active = 1
                ORDER BY from_currency, to_currency, {RECENCY_ORDER}
                """
            ).fetchall()
        return [_row_to_record(row) for row in rows]

    def count(self, pair: CurrencyPair) -> int:
        with _storage_errors("count"), self._db.connection() as conn:
            row = conn.execute(
                """
                SELECT COUNT(*) AS n FROM rate_records
                WHERE from_currency = ? AND to_currency = ?
                """,
                (pair.from_currency, pair.to_currency),
            ).fetchone()
        return int(row["n"])

    def close(self) -> None:
        self._db.close()
