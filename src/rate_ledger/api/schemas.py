"""Pydantic v2 schemas for API request/response models.

JSON field names are camelCase (fromCurrency, isActive, ...) to match the
point-of-sale client; Python attribute names stay snake_case.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from rate_ledger.domain.conversion import ConversionResult, format_dual
from rate_ledger.domain.rates import CurrencyPair, RateRecord


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HealthResponse(BaseModel):
    status: str


class RateUpdateRequest(CamelModel):
    """Schema for setting a new current rate.

    The rate is accepted as a JSON number or numeric string and validated by
    the service; numbers are read from their shortest decimal form.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True
    )

    # Any: the service rejects booleans and other non-numeric values itself.
    rate: Any
    from_currency: str | None = None
    to_currency: str | None = None


class RateRecordResponse(CamelModel):
    """A ledger record; `id` is null for the implicit rate of an unset pair."""

    id: UUID | None
    from_currency: str
    to_currency: str
    rate: str
    is_active: bool
    updated_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_record(cls, record: RateRecord) -> "RateRecordResponse":
        return cls(
            id=record.id,
            from_currency=record.from_currency,
            to_currency=record.to_currency,
            rate=str(record.rate),
            is_active=record.is_active,
            updated_by=record.updated_by,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    @classmethod
    def unset(cls, pair: CurrencyPair) -> "RateRecordResponse":
        return cls(
            id=None,
            from_currency=pair.from_currency,
            to_currency=pair.to_currency,
            rate="1",
            is_active=False,
        )


class ConversionResponse(CamelModel):
    from_currency: str
    to_currency: str
    amount: str
    converted_amount: str
    rate: str
    rate_is_default: bool
    formatted: str

    @classmethod
    def from_result(
        cls, result: ConversionResult, round_up_to: Decimal | None = None
    ) -> "ConversionResponse":
        return cls(
            from_currency=result.pair.from_currency,
            to_currency=result.pair.to_currency,
            amount=str(result.amount),
            converted_amount=str(result.converted_amount),
            rate=str(result.rate),
            rate_is_default=result.rate_is_default,
            formatted=format_dual(
                result.amount, result.pair, result.rate, round_up_to=round_up_to
            ),
        )


class RepairResponse(CamelModel):
    """Outcome of an invariant repair; rows_changed is reported for all-pair repairs."""

    corrected: bool
    rows_changed: int | None = None
