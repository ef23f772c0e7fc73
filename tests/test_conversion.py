"""Tests for single-pair conversion and display helpers."""

from decimal import Decimal

import pytest

from rate_ledger.domain.conversion import convert, convert_back, format_amount, format_dual
from rate_ledger.domain.rates import CurrencyPair
from rate_ledger.exceptions import InvalidRateError, ValidationError


class TestConvert:
    def test_rounds_half_up_to_whole_units(self) -> None:
        assert convert(Decimal("12.5"), Decimal("89200")) == Decimal("1115000")
        assert convert(Decimal("0.5"), Decimal("3")) == Decimal("2")

    def test_rounds_up_to_multiple(self) -> None:
        assert convert(Decimal("1.01"), Decimal("89000"), round_up_to=Decimal("5000")) == Decimal("90000")

    def test_exact_multiple_is_unchanged(self) -> None:
        assert convert(Decimal("1"), Decimal("90000"), round_up_to=Decimal("5000")) == Decimal("90000")

    def test_non_positive_round_up_rejected(self) -> None:
        with pytest.raises(ValidationError):
            convert(Decimal("1"), Decimal("89000"), round_up_to=Decimal("0"))

    @pytest.mark.parametrize("round_up_to", ["NaN", "Infinity"])
    def test_non_finite_round_up_rejected(self, round_up_to: str) -> None:
        with pytest.raises(ValidationError, match="positive finite number"):
            convert(Decimal("10"), Decimal("89000"), round_up_to=Decimal(round_up_to))

    def test_non_positive_rate_rejected(self) -> None:
        with pytest.raises(InvalidRateError):
            convert(Decimal("1"), Decimal("0"))


class TestConvertBack:
    def test_rounds_to_the_cent(self) -> None:
        assert convert_back(Decimal("1115000"), Decimal("89200")) == Decimal("12.50")
        assert convert_back(Decimal("100000"), Decimal("89000")) == Decimal("1.12")


class TestFormatting:
    def test_symbol_currency(self) -> None:
        assert format_amount(Decimal("12.5"), "USD") == "$12.50"
        assert format_amount(Decimal("1234.5"), "eur") == "€1,234.50"

    def test_zero_decimal_currency(self) -> None:
        assert format_amount(Decimal("1115000"), "LBP") == "1,115,000 LBP"

    def test_other_currency_shows_code(self) -> None:
        assert format_amount(Decimal("10"), "CHF") == "10.00 CHF"

    def test_without_symbol(self) -> None:
        assert format_amount(Decimal("12.5"), "USD", show_symbol=False) == "12.50"

    def test_dual_display(self) -> None:
        pair = CurrencyPair("USD", "LBP")

        assert format_dual(Decimal("12.5"), pair, Decimal("89200")) == "$12.50 (1,115,000 LBP)"

    def test_dual_display_rounds_up(self) -> None:
        pair = CurrencyPair("USD", "LBP")

        text = format_dual(Decimal("1.01"), pair, Decimal("89000"), round_up_to=Decimal("5000"))

        assert text == "$1.01 (90,000 LBP)"
