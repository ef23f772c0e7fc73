"""Client-side view of a pair's exchange rate for till and receipt screens."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from rate_ledger.client.api_client import APIError, RateAPIClient
from rate_ledger.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_HISTORY_LIMIT = 5


class RateHook:
    """Current rate and recent history of one pair, as the point-of-sale UI sees it.

    Failed reads leave `current` unset and `history` empty, so screens keep
    working at rate 1 until a rate is set. Every update attempt, successful
    or not, is followed by a re-fetch of both.
    """

    def __init__(
        self,
        client: RateAPIClient,
        from_currency: str = "USD",
        to_currency: str = "LBP",
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> None:
        self._client = client
        self._from_currency = from_currency
        self._to_currency = to_currency
        self._history_limit = history_limit
        self.current: dict[str, Any] | None = None
        self.history: list[dict[str, Any]] = []
        self.updating = False
        self.update_error: APIError | httpx.HTTPError | None = None

    @property
    def rate(self) -> Decimal:
        """The current rate, or 1 when no rate is known."""
        raw = (self.current or {}).get("rate")
        if not raw:
            return Decimal(1)
        try:
            value = Decimal(str(raw))
        except InvalidOperation:
            return Decimal(1)
        if not value.is_finite() or value <= 0:
            return Decimal(1)
        return value

    @property
    def primary_currency(self) -> str:
        return (self.current or {}).get("fromCurrency") or self._from_currency

    @property
    def secondary_currency(self) -> str:
        return (self.current or {}).get("toCurrency") or self._to_currency

    async def refresh(self) -> None:
        """Re-fetch the current rate and history."""
        try:
            self.current = await self._client.get_current(
                self._from_currency, self._to_currency
            )
        except (APIError, httpx.HTTPError) as e:
            logger.warning("current_rate_fetch_failed", error=str(e))
            self.current = None

        try:
            self.history = await self._client.get_history(
                self._from_currency, self._to_currency, limit=self._history_limit
            )
        except (APIError, httpx.HTTPError) as e:
            logger.warning("rate_history_fetch_failed", error=str(e))
            self.history = []

    async def update_rate(self, rate: Decimal | str) -> dict[str, Any]:
        """Set a new rate for the pair; re-fetches whether or not it succeeded.

        Raises:
            APIError: the server rejected the update.
            httpx.HTTPError: the server could not be reached.
            Either way the error is also kept in update_error.
        """
        self.updating = True
        self.update_error = None
        try:
            return await self._client.update_rate(
                rate, self._from_currency, self._to_currency
            )
        except (APIError, httpx.HTTPError) as e:
            self.update_error = e
            raise
        finally:
            self.updating = False
            await self.refresh()
