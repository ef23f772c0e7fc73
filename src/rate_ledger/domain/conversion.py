"""Single-pair conversion and display helpers for till and receipt amounts."""

from dataclasses import dataclass
from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal

from rate_ledger.domain.rates import CurrencyPair
from rate_ledger.exceptions import InvalidRateError, ValidationError

CENT = Decimal("0.01")

# Currencies shown with a leading symbol instead of a trailing code.
CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
}

# Currencies without minor units on receipts.
ZERO_DECIMAL_CURRENCIES = frozenset({"LBP", "JPY", "KRW", "IQD", "SYP"})


@dataclass(frozen=True, slots=True)
class ConversionResult:
    pair: CurrencyPair
    amount: Decimal
    converted_amount: Decimal
    rate: Decimal
    rate_is_default: bool = False


def _check_rate(rate: Decimal) -> None:
    if not rate.is_finite() or rate <= 0:
        raise InvalidRateError(rate, "must be greater than 0")


def convert(amount: Decimal, rate: Decimal, round_up_to: Decimal | None = None) -> Decimal:
    """Convert `amount` of the from-currency into the to-currency.

    With `round_up_to`, the result is rounded up to the next multiple of it
    (cash tills round LBP up to 5000). Otherwise it is rounded half-up to a
    whole unit.
    """
    _check_rate(rate)
    converted = amount * rate
    if round_up_to is not None:
        if not round_up_to.is_finite() or round_up_to <= 0:
            raise ValidationError(
                f"round_up_to must be a positive finite number, got {round_up_to}",
                context={"round_up_to": str(round_up_to)},
            )
        steps = (converted / round_up_to).to_integral_value(rounding=ROUND_CEILING)
        return steps * round_up_to
    return converted.quantize(Decimal(1), rounding=ROUND_HALF_UP)


def convert_back(amount: Decimal, rate: Decimal) -> Decimal:
    """Convert `amount` of the to-currency back into the from-currency, to the cent."""
    _check_rate(rate)
    return (amount / rate).quantize(CENT, rounding=ROUND_HALF_UP)


def format_amount(amount: Decimal, currency: str, show_symbol: bool = True) -> str:
    """Format an amount for display: '$12.50', '1,115,000 LBP'."""
    code = currency.upper()
    if code in ZERO_DECIMAL_CURRENCIES:
        text = f"{amount.quantize(Decimal(1), rounding=ROUND_HALF_UP):,}"
    else:
        text = f"{amount.quantize(CENT, rounding=ROUND_HALF_UP):,}"
    if not show_symbol:
        return text
    symbol = CURRENCY_SYMBOLS.get(code)
    if symbol:
        return f"{symbol}{text}"
    return f"{text} {code}"


def format_dual(
    amount: Decimal,
    pair: CurrencyPair,
    rate: Decimal,
    round_up_to: Decimal | None = None,
    show_symbol: bool = True,
) -> str:
    """Format an amount in both currencies of the pair: '$12.50 (1,115,000 LBP)'."""
    converted = convert(amount, rate, round_up_to=round_up_to)
    primary = format_amount(amount, pair.from_currency, show_symbol=show_symbol)
    secondary = format_amount(converted, pair.to_currency, show_symbol=show_symbol)
    return f"{primary} ({secondary})"
