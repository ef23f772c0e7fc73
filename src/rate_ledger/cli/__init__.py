"""Command-line interface package for Rate Ledger.

- _main: entry point, init/status/version/serve
- currency_commands: exchange rate commands
"""

from rate_ledger.cli._context import get_default_db_path
from rate_ledger.cli._main import cmd_init, cmd_serve, cmd_status, cmd_version, main
from rate_ledger.cli.currency_commands import (
    cmd_currency_convert,
    cmd_currency_current,
    cmd_currency_history,
    cmd_currency_rates,
    cmd_currency_repair,
    cmd_currency_set,
)

__all__ = [
    "cmd_currency_convert",
    "cmd_currency_current",
    "cmd_currency_history",
    "cmd_currency_rates",
    "cmd_currency_repair",
    "cmd_currency_set",
    "cmd_init",
    "cmd_serve",
    "cmd_status",
    "cmd_version",
    "get_default_db_path",
    "main",
]
