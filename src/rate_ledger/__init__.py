from rate_ledger.domain.conversion import ConversionResult
from rate_ledger.domain.rates import CurrencyPair, RateRecord

__version__ = "0.1.0"

__all__ = [
    "ConversionResult",
    "CurrencyPair",
    "RateRecord",
    "__version__",
]
