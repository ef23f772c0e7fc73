from rate_ledger.services.interfaces import PairArg, RateLedgerService
from rate_ledger.services.ledger import IDENTITY_RATE, RateLedgerServiceImpl

__all__ = [
    "IDENTITY_RATE",
    "PairArg",
    "RateLedgerService",
    "RateLedgerServiceImpl",
]
