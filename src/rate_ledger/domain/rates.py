"""Exchange rate ledger domain model."""

import math
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from uuid import UUID, uuid4

from rate_ledger.exceptions import InvalidPairError, InvalidRateError

MAX_CODE_LENGTH = 10

# Storage is numeric(15, 6): 9 integer digits, 6 fractional digits.
RATE_QUANTUM = Decimal("0.000001")
RATE_LIMIT = Decimal("1000000000")


def _utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Return value as an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def canonical_rate(value: Decimal) -> Decimal:
    """Drop exponent notation and trailing zeros: 8.9E+4 -> 89000, 0.920 -> 0.92."""
    if value == value.to_integral_value():
        return value.quantize(Decimal(1))
    return value.normalize()


def parse_rate(value: object, max_rate: Decimal | None = None) -> Decimal:
    """Parse a rate given as a number or numeric string.

    Raises:
        InvalidRateError: if the value is not numeric, not finite, not
            positive, has more precision than storage keeps, or exceeds
            max_rate.
    """
    if isinstance(value, bool):
        raise InvalidRateError(value, "must be a number")
    if isinstance(value, Decimal):
        rate = value
    elif isinstance(value, int):
        rate = Decimal(value)
    elif isinstance(value, float):
        if not math.isfinite(value):
            raise InvalidRateError(value, "must be finite")
        rate = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            raise InvalidRateError(value, "must not be empty")
        try:
            rate = Decimal(text)
        except InvalidOperation as e:
            raise InvalidRateError(value, "must be a number") from e
    else:
        raise InvalidRateError(value, "must be a number")

    if not rate.is_finite():
        raise InvalidRateError(value, "must be finite")
    if rate <= 0:
        raise InvalidRateError(value, "must be greater than 0")
    if rate >= RATE_LIMIT:
        raise InvalidRateError(value, "has more than 9 integer digits")
    if rate != rate.quantize(RATE_QUANTUM):
        raise InvalidRateError(value, "has more than 6 decimal places")
    if max_rate is not None and rate > max_rate:
        raise InvalidRateError(value, f"exceeds the maximum of {max_rate}")
    return canonical_rate(rate)


@dataclass(frozen=True, slots=True)
class CurrencyPair:
    """Ordered conversion direction, e.g. USD -> LBP.

    Codes are free-form short strings, upper-cased on construction.
    """

    from_currency: str
    to_currency: str

    def __post_init__(self) -> None:
        from_code = str(self.from_currency or "").strip().upper()
        to_code = str(self.to_currency or "").strip().upper()
        for code in (from_code, to_code):
            if not code:
                raise InvalidPairError(from_code, to_code, "currency code is empty")
            if len(code) > MAX_CODE_LENGTH:
                raise InvalidPairError(
                    from_code,
                    to_code,
                    f"currency code longer than {MAX_CODE_LENGTH} characters",
                )
            if any(ch.isspace() or ch == "/" for ch in code):
                raise InvalidPairError(
                    from_code, to_code, "currency code contains invalid characters"
                )
        if from_code == to_code:
            raise InvalidPairError(
                from_code, to_code, "a currency cannot be converted to itself"
            )
        object.__setattr__(self, "from_currency", from_code)
        object.__setattr__(self, "to_currency", to_code)

    @classmethod
    def parse(cls, text: str) -> "CurrencyPair":
        """Parse 'USD/LBP' into a pair."""
        from_code, sep, to_code = text.partition("/")
        if not sep:
            raise InvalidPairError(text, "", "expected FROM/TO")
        return cls(from_code, to_code)

    @property
    def key(self) -> str:
        """Stable string identifying the pair, e.g. 'USD/LBP'."""
        return f"{self.from_currency}/{self.to_currency}"

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True, slots=True)
class RateRecord:
    """One entry of the rate ledger.

    Records are append-only. Superseding a rate produces a copy with
    is_active cleared and updated_at refreshed; pair and rate never change.
    """

    pair: CurrencyPair
    rate: Decimal
    id: UUID = field(default_factory=uuid4)
    is_active: bool = True
    updated_by: str | None = None
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.rate, Decimal):
            object.__setattr__(self, "rate", Decimal(str(self.rate)))
        if self.rate.is_finite():
            object.__setattr__(self, "rate", canonical_rate(self.rate))
        object.__setattr__(self, "created_at", as_utc(self.created_at))
        if self.updated_at is None:
            object.__setattr__(self, "updated_at", self.created_at)
        else:
            object.__setattr__(self, "updated_at", as_utc(self.updated_at))

    @property
    def from_currency(self) -> str:
        return self.pair.from_currency

    @property
    def to_currency(self) -> str:
        return self.pair.to_currency

    @property
    def recency_key(self) -> tuple[datetime, datetime, str]:
        """Sort key of the activation ordering; the greatest key is the active one."""
        assert self.updated_at is not None
        return (self.updated_at, self.created_at, str(self.id))

    def deactivated(self, at: datetime) -> "RateRecord":
        """Return this record as it looks after being superseded at `at`."""
        return replace(self, is_active=False, updated_at=as_utc(at))


def resolve_pair(
    default: CurrencyPair, from_currency: str | None, to_currency: str | None
) -> CurrencyPair:
    """Fill whichever side of a pair the caller left out from `default`."""
    if from_currency is None and to_currency is None:
        return default
    return CurrencyPair(
        from_currency if from_currency is not None else default.from_currency,
        to_currency if to_currency is not None else default.to_currency,
    )
