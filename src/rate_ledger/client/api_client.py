"""Async HTTP client for the rate ledger API."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

import httpx


@dataclass(frozen=True, slots=True)
class APIError(Exception):
    status_code: int
    detail: str
    error_code: str | None = None

    def __str__(self) -> str:
        return f"APIError({self.status_code}): {self.detail}"


def _pair_params(from_currency: str | None, to_currency: str | None) -> dict[str, Any]:
    params: dict[str, Any] = {}
    if from_currency is not None:
        params["fromCurrency"] = from_currency
    if to_currency is not None:
        params["toCurrency"] = to_currency
    return params


class RateAPIClient:
    """Thin wrapper over the /currency endpoints.

    Requests that change rates send the actor headers the upstream auth
    layer would normally set.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        actor_id: str | None = None,
        actor_role: str | None = None,
    ) -> None:
        self._client = (
            client
            if client is not None
            else httpx.AsyncClient(base_url=base_url, timeout=timeout)
        )
        self._base_url = base_url
        self._actor_id = actor_id
        self._actor_role = actor_role

    @property
    def base_url(self) -> str:
        return self._base_url

    def set_actor(self, actor_id: str | None, actor_role: str | None = None) -> None:
        self._actor_id = actor_id
        self._actor_role = actor_role

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> RateAPIClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    def _actor_headers(self) -> dict[str, str]:
        headers = {}
        if self._actor_id is not None:
            headers["X-Actor-Id"] = self._actor_id
        if self._actor_role is not None:
            headers["X-Actor-Role"] = self._actor_role
        return headers

    async def _request_json(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        r = await self._client.request(
            method, path, params=params, json=json, headers=headers
        )
        if 200 <= r.status_code < 300:
            if r.status_code == 204:
                return None
            return r.json()

        # Errors come back as plain text with the code in a header.
        raise APIError(
            status_code=r.status_code,
            detail=r.text,
            error_code=r.headers.get("X-Error-Code"),
        )

    async def get_current(
        self, from_currency: str | None = None, to_currency: str | None = None
    ) -> dict[str, Any]:
        return await self._request_json(
            "GET", "/currency/current", params=_pair_params(from_currency, to_currency)
        )

    async def get_history(
        self,
        from_currency: str | None = None,
        to_currency: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        params = _pair_params(from_currency, to_currency)
        if limit is not None:
            params["limit"] = limit
        return await self._request_json("GET", "/currency/history", params=params)

    async def update_rate(
        self,
        rate: Decimal | str,
        from_currency: str | None = None,
        to_currency: str | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"rate": str(rate)}
        if from_currency is not None:
            payload["fromCurrency"] = from_currency
        if to_currency is not None:
            payload["toCurrency"] = to_currency
        return await self._request_json(
            "POST", "/currency/update", json=payload, headers=self._actor_headers()
        )

    async def list_rates(self) -> list[dict[str, Any]]:
        return await self._request_json("GET", "/currency/rates")

    async def convert(
        self,
        amount: Decimal | str,
        from_currency: str | None = None,
        to_currency: str | None = None,
        round_up_to: Decimal | str | None = None,
    ) -> dict[str, Any]:
        params = _pair_params(from_currency, to_currency)
        params["amount"] = str(amount)
        if round_up_to is not None:
            params["roundUpTo"] = str(round_up_to)
        return await self._request_json("GET", "/currency/convert", params=params)

    async def repair(
        self,
        from_currency: str | None = None,
        to_currency: str | None = None,
        all_pairs: bool = False,
    ) -> dict[str, Any]:
        params = _pair_params(from_currency, to_currency)
        if all_pairs:
            params["all"] = "true"
        return await self._request_json(
            "POST", "/currency/repair", params=params, headers=self._actor_headers()
        )
