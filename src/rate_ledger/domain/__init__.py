from rate_ledger.domain.conversion import (
    ConversionResult,
    convert,
    convert_back,
    format_amount,
    format_dual,
)
from rate_ledger.domain.rates import CurrencyPair, RateRecord, parse_rate, resolve_pair

__all__ = [
    "ConversionResult",
    "CurrencyPair",
    "RateRecord",
    "convert",
    "convert_back",
    "format_amount",
    "format_dual",
    "parse_rate",
    "resolve_pair",
]
