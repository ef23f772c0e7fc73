"""Database selection shared by the CLI commands."""

import argparse
from pathlib import Path

from rate_ledger.config import DatabaseType, Settings, get_settings
from rate_ledger.container import Container


def get_default_db_path() -> Path:
    """Get the SQLite file the API server uses too (RATE_LEDGER_SQLITE_PATH)."""
    return Path(get_settings().sqlite_path)


def command_settings(args: argparse.Namespace) -> Settings:
    """Settings for a command; --database forces a SQLite file."""
    settings = get_settings()
    if args.database:
        return settings.model_copy(
            update={
                "database_type": DatabaseType.SQLITE,
                "sqlite_path": Path(args.database),
            }
        )
    return settings


def describe_database(settings: Settings) -> str:
    if settings.database_type == DatabaseType.POSTGRES:
        url = settings.database_url or ""
        return f"postgres ({url.split('@')[-1]})"
    return str(settings.sqlite_path)


def open_container(args: argparse.Namespace) -> Container | None:
    """Container for an existing database, or None after printing why not."""
    settings = command_settings(args)
    if settings.database_type == DatabaseType.SQLITE and not Path(settings.sqlite_path).exists():
        print(f"Database not found: {settings.sqlite_path}")
        print("Run 'rate-ledger init' to create a new database")
        return None
    return Container(settings=settings)
