"""Exchange rate CLI commands for Rate Ledger."""

import argparse
from decimal import Decimal, InvalidOperation

from rate_ledger.cli._context import open_container
from rate_ledger.domain.conversion import format_dual
from rate_ledger.domain.rates import RateRecord, resolve_pair
from rate_ledger.exceptions import RateLedgerError


def _describe(record: RateRecord) -> str:
    actor = record.updated_by or "system"
    return f"{record.rate} (set by {actor} at {record.created_at:%Y-%m-%d %H:%M:%S} UTC)"


def _decimal_arg(value: str | None, name: str) -> Decimal | None:
    if value is None:
        return None
    try:
        return Decimal(value)
    except InvalidOperation:
        raise ValueError(f"{name} must be a number, got '{value}'") from None


def cmd_currency_current(args: argparse.Namespace) -> int:
    """Show the current rate of a pair."""
    container = open_container(args)
    if container is None:
        return 1

    try:
        with container:
            service = container.ledger_service
            pair = resolve_pair(service.default_pair, args.from_currency, args.to_currency)
            record = service.get_current(pair)
            if record is None:
                print(f"No rate set for {pair} (conversions use 1)")
                return 0
            print(f"Current {pair}: {_describe(record)}")
            return 0

    except RateLedgerError as e:
        print(f"Error: {e.message}")
        return 1


def cmd_currency_history(args: argparse.Namespace) -> int:
    """Show the most recent rates of a pair, newest first."""
    container = open_container(args)
    if container is None:
        return 1

    try:
        with container:
            service = container.ledger_service
            pair = resolve_pair(service.default_pair, args.from_currency, args.to_currency)
            records = service.get_history(pair, args.limit)
            if not records:
                print(f"No rates found for {pair}")
                return 0

            print(f"Rate history for {pair}:")
            print("-" * 60)
            for record in records:
                marker = "*" if record.is_active else " "
                print(f" {marker} {_describe(record)}")
            return 0

    except RateLedgerError as e:
        print(f"Error: {e.message}")
        return 1


def cmd_currency_set(args: argparse.Namespace) -> int:
    """Set the current rate of a pair."""
    container = open_container(args)
    if container is None:
        return 1

    try:
        with container:
            service = container.ledger_service
            pair = resolve_pair(service.default_pair, args.from_currency, args.to_currency)
            record = service.set_rate(pair, args.rate, actor=args.actor)
            print(f"Set {pair} = {record.rate} (record {record.id})")
            return 0

    except RateLedgerError as e:
        print(f"Error: {e.message}")
        return 1


def cmd_currency_rates(args: argparse.Namespace) -> int:
    """List the current rate of every pair."""
    container = open_container(args)
    if container is None:
        return 1

    try:
        with container:
            records = container.ledger_service.list_current()
            if not records:
                print("No rates set")
                return 0

            print("Current exchange rates:")
            print("-" * 60)
            for record in records:
                print(f"  {record.pair}: {_describe(record)}")
            return 0

    except RateLedgerError as e:
        print(f"Error: {e.message}")
        return 1


def cmd_currency_convert(args: argparse.Namespace) -> int:
    """Convert an amount with the current rate of a pair."""
    container = open_container(args)
    if container is None:
        return 1

    try:
        amount = _decimal_arg(args.amount, "--amount")
        round_up_to = _decimal_arg(args.round_up_to, "--round-up-to")
    except ValueError as e:
        print(f"Error: {e}")
        return 1
    assert amount is not None

    try:
        with container:
            service = container.ledger_service
            pair = resolve_pair(service.default_pair, args.from_currency, args.to_currency)
            result = service.convert(amount, pair, round_up_to=round_up_to)
            print(format_dual(result.amount, pair, result.rate, round_up_to=round_up_to))
            if result.rate_is_default:
                print(f"  (no rate set for {pair}; used 1)")
            return 0

    except RateLedgerError as e:
        print(f"Error: {e.message}")
        return 1


def cmd_currency_repair(args: argparse.Namespace) -> int:
    """Recompute which record of a pair, or of every pair, is active."""
    if args.all_pairs and (args.from_currency or args.to_currency):
        print("Error: use either --all or --from/--to, not both")
        return 1

    container = open_container(args)
    if container is None:
        return 1

    try:
        with container:
            service = container.ledger_service
            if args.all_pairs:
                changed = service.repair_all()
                print(f"Repaired all pairs: {changed} records changed")
                return 0

            pair = resolve_pair(service.default_pair, args.from_currency, args.to_currency)
            if service.repair_invariant(pair):
                print(f"Repaired {pair}: active record corrected")
            else:
                print(f"{pair} is consistent; nothing to repair")
            return 0

    except RateLedgerError as e:
        print(f"Error: {e.message}")
        return 1
