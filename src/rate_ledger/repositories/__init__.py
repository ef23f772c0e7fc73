from rate_ledger.repositories.interfaces import (
    RECENCY_ORDER,
    RateStore,
    RateStoreTransaction,
)
from rate_ledger.repositories.postgres import PostgresDatabase, PostgresRateStore
from rate_ledger.repositories.sqlite import SQLiteDatabase, SQLiteRateStore

__all__ = [
    "RECENCY_ORDER",
    "PostgresDatabase",
    "PostgresRateStore",
    "RateStore",
    "RateStoreTransaction",
    "SQLiteDatabase",
    "SQLiteRateStore",
]
