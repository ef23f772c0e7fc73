from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal

from rate_ledger.domain.conversion import ConversionResult
from rate_ledger.domain.rates import CurrencyPair, RateRecord

PairArg = CurrencyPair | tuple[str, str] | str | None


class RateLedgerService(ABC):
    """Current rate and audit history per currency pair.

    Every pair argument accepts a CurrencyPair, a (from, to) tuple or a
    'FROM/TO' string; None means the configured default pair.
    """

    @property
    @abstractmethod
    def default_pair(self) -> CurrencyPair:
        pass

    @abstractmethod
    def get_current(self, pair: PairArg = None) -> RateRecord | None:
        pass

    @abstractmethod
    def get_history(self, pair: PairArg = None, limit: int | None = None) -> list[RateRecord]:
        pass

    @abstractmethod
    def set_rate(self, pair: PairArg, rate: object, actor: str | None = None) -> RateRecord:
        pass

    @abstractmethod
    def repair_invariant(self, pair: PairArg = None) -> bool:
        pass

    @abstractmethod
    def repair_all(self) -> int:
        pass

    @abstractmethod
    def list_current(self) -> list[RateRecord]:
        pass

    @abstractmethod
    def convert(
        self,
        amount: Decimal,
        pair: PairArg = None,
        round_up_to: Decimal | None = None,
    ) -> ConversionResult:
        pass
