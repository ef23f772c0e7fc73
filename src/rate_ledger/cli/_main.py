"""Command-line interface for Rate Ledger."""

import argparse
import sys
from pathlib import Path

from rate_ledger import __version__
from rate_ledger.cli._context import (
    command_settings,
    describe_database,
    get_default_db_path,
    open_container,
)
from rate_ledger.cli.currency_commands import (
    cmd_currency_convert,
    cmd_currency_current,
    cmd_currency_history,
    cmd_currency_rates,
    cmd_currency_repair,
    cmd_currency_set,
)
from rate_ledger.config import DatabaseType, get_settings
from rate_ledger.container import Container
from rate_ledger.exceptions import RateLedgerError

# SQLite keeps WAL-mode state next to the database file.
_SQLITE_SIDECARS = ("-wal", "-shm")


def cmd_init(args: argparse.Namespace) -> int:
    """Initialize a new database."""
    settings = command_settings(args)

    if settings.database_type == DatabaseType.SQLITE:
        db_path = Path(settings.sqlite_path)
        if db_path.exists() and not args.force:
            print(f"Database already exists at {db_path}")
            print("Use --force to reinitialize (WARNING: will delete existing data)")
            return 1

        if db_path.exists() and args.force:
            db_path.unlink()
            for suffix in _SQLITE_SIDECARS:
                Path(f"{db_path}{suffix}").unlink(missing_ok=True)

        db_path.parent.mkdir(parents=True, exist_ok=True)
    elif args.force:
        print("--force is only supported for SQLite databases")
        return 1

    try:
        with Container(settings=settings) as container:
            _ = container.rate_store
    except RateLedgerError as e:
        print(f"Error: {e.message}")
        return 1

    print(f"Initialized database at {describe_database(settings)}")
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    """Show database status."""
    container = open_container(args)
    if container is None:
        return 1

    try:
        with container:
            store = container.rate_store
            pairs = store.list_pairs()
            current = {record.pair: record for record in store.list_active()}

            print(f"Database: {describe_database(container.settings)}")
            print(f"Currency pairs: {len(pairs)}")
            for pair in pairs:
                record = current.get(pair)
                rate = record.rate if record is not None else "no active rate"
                print(f"  - {pair}: {rate} ({store.count(pair)} records)")
    except RateLedgerError as e:
        print(f"Error: {e.message}")
        return 1

    return 0


def cmd_version(args: argparse.Namespace) -> int:
    """Show version information."""
    print(f"Rate Ledger v{__version__}")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the HTTP API with uvicorn."""
    import os

    import uvicorn

    settings = command_settings(args)
    if args.database:
        # The server process reads its database from the environment.
        os.environ["RATE_LEDGER_DATABASE_TYPE"] = DatabaseType.SQLITE.value
        os.environ["RATE_LEDGER_SQLITE_PATH"] = str(settings.sqlite_path)
        get_settings.cache_clear()

    host = args.host or settings.api_host
    port = int(args.port or settings.api_port)
    print(f"Serving Rate Ledger API on http://{host}:{port} ({describe_database(settings)})")
    uvicorn.run(
        "rate_ledger.api.app:app",
        host=host,
        port=port,
        reload=settings.api_reload,
        log_config=None,
    )
    return 0


def _add_pair_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--from", dest="from_currency", default=None, help="Source currency (default: USD)"
    )
    parser.add_argument(
        "--to", dest="to_currency", default=None, help="Target currency (default: LBP)"
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="rate-ledger",
        description="Rate Ledger - current exchange rates and their audit history",
    )
    parser.add_argument(
        "--database",
        "-d",
        help=f"Path to SQLite database file (default: {get_default_db_path()})",
        default=None,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # init command
    init_parser = subparsers.add_parser("init", help="Initialize a new database")
    init_parser.add_argument(
        "--force",
        "-f",
        action="store_true",
        help="Force reinitialization (deletes existing data)",
    )
    init_parser.set_defaults(func=cmd_init)

    # status command
    status_parser = subparsers.add_parser("status", help="Show database status")
    status_parser.set_defaults(func=cmd_status)

    # version command
    version_parser = subparsers.add_parser("version", help="Show version")
    version_parser.set_defaults(func=cmd_version)

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default=None, help="Bind address (default: settings)")
    serve_parser.add_argument("--port", type=int, default=None, help="Port (default: 8000)")
    serve_parser.set_defaults(func=cmd_serve)

    # currency command group
    currency_parser = subparsers.add_parser("currency", help="Exchange rate management")
    currency_subparsers = currency_parser.add_subparsers(
        dest="currency_command", help="Currency subcommands"
    )

    # currency current
    current_parser = currency_subparsers.add_parser(
        "current", help="Show the current rate of a pair"
    )
    _add_pair_arguments(current_parser)
    current_parser.set_defaults(func=cmd_currency_current)

    # currency history
    history_parser = currency_subparsers.add_parser(
        "history", help="Show the most recent rates of a pair"
    )
    _add_pair_arguments(history_parser)
    history_parser.add_argument(
        "--limit", type=int, default=None, help="Number of records (default: 5)"
    )
    history_parser.set_defaults(func=cmd_currency_history)

    # currency set
    set_parser = currency_subparsers.add_parser("set", help="Set the current rate of a pair")
    _add_pair_arguments(set_parser)
    set_parser.add_argument("--rate", required=True, help="Units of target per source unit")
    set_parser.add_argument("--actor", required=True, help="Who is setting the rate")
    set_parser.set_defaults(func=cmd_currency_set)

    # currency rates
    rates_parser = currency_subparsers.add_parser(
        "rates", help="List the current rate of every pair"
    )
    rates_parser.set_defaults(func=cmd_currency_rates)

    # currency convert
    convert_parser = currency_subparsers.add_parser(
        "convert", help="Convert an amount with the current rate"
    )
    _add_pair_arguments(convert_parser)
    convert_parser.add_argument("--amount", required=True, help="Amount to convert")
    convert_parser.add_argument(
        "--round-up-to",
        dest="round_up_to",
        default=None,
        help="Round the result up to a multiple of this (e.g. 5000)",
    )
    convert_parser.set_defaults(func=cmd_currency_convert)

    # currency repair
    repair_parser = currency_subparsers.add_parser(
        "repair", help="Recompute which record of a pair is active"
    )
    _add_pair_arguments(repair_parser)
    repair_parser.add_argument(
        "--all", dest="all_pairs", action="store_true", help="Repair every pair"
    )
    repair_parser.set_defaults(func=cmd_currency_repair)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "currency" and (
        not hasattr(args, "currency_command") or args.currency_command is None
    ):
        currency_parser.print_help()
        return 0

    result: int = args.func(args)
    return result


if __name__ == "__main__":
    sys.exit(main())
