"""Tests for the rate ledger domain model."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from rate_ledger.domain.rates import CurrencyPair, RateRecord, parse_rate, resolve_pair
from rate_ledger.exceptions import InvalidPairError, InvalidRateError, ValidationError


class TestCurrencyPair:
    def test_codes_are_normalized(self) -> None:
        pair = CurrencyPair(" usd", "lbp ")

        assert pair.from_currency == "USD"
        assert pair.to_currency == "LBP"

    def test_pairs_are_directional(self) -> None:
        assert CurrencyPair("USD", "LBP") != CurrencyPair("LBP", "USD")

    def test_equal_pairs_hash_alike(self) -> None:
        assert {CurrencyPair("usd", "lbp"): 1}[CurrencyPair("USD", "LBP")] == 1

    def test_same_currency_rejected(self) -> None:
        with pytest.raises(InvalidPairError):
            CurrencyPair("USD", "usd")

    @pytest.mark.parametrize(
        ("from_currency", "to_currency"),
        [("", "LBP"), ("USD", "  "), ("US D", "LBP"), ("USD", "L/BP"), ("X" * 11, "LBP")],
    )
    def test_malformed_codes_rejected(self, from_currency: str, to_currency: str) -> None:
        with pytest.raises(InvalidPairError):
            CurrencyPair(from_currency, to_currency)

    def test_invalid_pair_is_a_validation_error(self) -> None:
        with pytest.raises(ValidationError) as exc:
            CurrencyPair("USD", "USD")

        assert exc.value.status_code == 400
        assert exc.value.error_code == "INVALID_PAIR"

    def test_parse_and_key(self) -> None:
        pair = CurrencyPair.parse("usd/lbp")

        assert pair == CurrencyPair("USD", "LBP")
        assert pair.key == "USD/LBP"
        assert str(pair) == "USD/LBP"

    def test_parse_requires_separator(self) -> None:
        with pytest.raises(InvalidPairError):
            CurrencyPair.parse("USDLBP")

    def test_free_form_codes_allowed(self) -> None:
        pair = CurrencyPair("USDT", "LBP")

        assert pair.key == "USDT/LBP"


class TestResolvePair:
    def test_no_codes_returns_default(self) -> None:
        default = CurrencyPair("USD", "LBP")

        assert resolve_pair(default, None, None) is default

    def test_missing_side_comes_from_default(self) -> None:
        default = CurrencyPair("USD", "LBP")

        assert resolve_pair(default, None, "EUR") == CurrencyPair("USD", "EUR")
        assert resolve_pair(default, "EUR", None) == CurrencyPair("EUR", "LBP")


class TestParseRate:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("89000", "89000"),
            (89000, "89000"),
            ("0.920", "0.92"),
            (0.1, "0.1"),
            (Decimal("8.9E+4"), "89000"),
            (" 89500.25 ", "89500.25"),
            ("0.000001", "0.000001"),
        ],
    )
    def test_valid_rates_are_canonical(self, value: object, expected: str) -> None:
        rate = parse_rate(value)

        assert rate == Decimal(expected)
        assert str(rate) == expected

    @pytest.mark.parametrize(
        "value",
        [0, -5, "0", "-0.5", "", "abc", "NaN", "Infinity", float("inf"), True, None, "1.1234567"],
    )
    def test_invalid_rates_rejected(self, value: object) -> None:
        with pytest.raises(InvalidRateError):
            parse_rate(value)

    def test_more_than_nine_integer_digits_rejected(self) -> None:
        with pytest.raises(InvalidRateError):
            parse_rate("1000000000")

    def test_max_rate_is_inclusive(self) -> None:
        assert parse_rate("1000000", Decimal("1000000")) == Decimal("1000000")

        with pytest.raises(InvalidRateError) as exc:
            parse_rate("1000000.5", Decimal("1000000"))

        assert "exceeds the maximum" in exc.value.message

    def test_error_carries_context(self) -> None:
        with pytest.raises(InvalidRateError) as exc:
            parse_rate("-5")

        assert exc.value.context["rate"] == "-5"
        assert exc.value.error_code == "INVALID_RATE"
        assert exc.value.status_code == 400


class TestRateRecord:
    def test_updated_at_defaults_to_created_at(self) -> None:
        created = datetime(2025, 6, 1, 9, 0, tzinfo=UTC)
        record = RateRecord(pair=CurrencyPair("USD", "LBP"), rate=Decimal("89000"), created_at=created)

        assert record.updated_at == created
        assert record.is_active is True
        assert record.updated_by is None

    def test_naive_timestamps_are_utc(self) -> None:
        record = RateRecord(
            pair=CurrencyPair("USD", "LBP"),
            rate=Decimal("89000"),
            created_at=datetime(2025, 6, 1, 9, 0),
        )

        assert record.created_at.tzinfo is UTC

    def test_rate_is_coerced_to_decimal(self) -> None:
        record = RateRecord(pair=CurrencyPair("USD", "LBP"), rate="89000.50")  # type: ignore[arg-type]

        assert record.rate == Decimal("89000.5")
        assert str(record.rate) == "89000.5"

    def test_currency_properties(self) -> None:
        record = RateRecord(pair=CurrencyPair("USD", "LBP"), rate=Decimal("89000"))

        assert record.from_currency == "USD"
        assert record.to_currency == "LBP"

    def test_deactivated_keeps_identity(self) -> None:
        record = RateRecord(pair=CurrencyPair("USD", "LBP"), rate=Decimal("89000"))
        later = record.created_at + timedelta(minutes=5)

        superseded = record.deactivated(later)

        assert superseded.id == record.id
        assert superseded.rate == record.rate
        assert superseded.created_at == record.created_at
        assert superseded.is_active is False
        assert superseded.updated_at == later
        assert record.is_active is True

    def test_recency_key_orders_by_update_then_creation(self) -> None:
        base = datetime(2025, 6, 1, tzinfo=UTC)
        pair = CurrencyPair("USD", "LBP")
        older = RateRecord(pair=pair, rate=Decimal(1), created_at=base, updated_at=base + timedelta(seconds=5))
        newer = RateRecord(pair=pair, rate=Decimal(2), created_at=base + timedelta(seconds=5))

        assert max([older, newer], key=lambda r: r.recency_key) is newer
