from __future__ import annotations

from decimal import Decimal

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from rate_ledger.api.app import create_app
from rate_ledger.client import APIError, RateAPIClient, RateHook
from rate_ledger.container import get_app_settings, get_ledger_service


@pytest.fixture
def api_app(service, test_settings):
    """The API wired to an in-memory ledger."""
    app = create_app(initialize_store=False)
    app.dependency_overrides[get_ledger_service] = lambda: service
    app.dependency_overrides[get_app_settings] = lambda: test_settings
    return app


@pytest.fixture
async def api_client(api_app):
    """RateAPIClient talking to the in-process app as a manager."""
    async with AsyncClient(
        transport=ASGITransport(app=api_app), base_url="http://test"
    ) as c:
        yield RateAPIClient(
            base_url="http://test", client=c, actor_id="alice", actor_role="manager"
        )


@pytest.fixture
async def offline_client():
    """RateAPIClient whose every request fails to connect."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with AsyncClient(
        transport=httpx.MockTransport(handler), base_url="http://test"
    ) as c:
        yield RateAPIClient(base_url="http://test", client=c)


class TestRateAPIClient:
    async def test_current_rate_when_unset(self, api_client) -> None:
        current = await api_client.get_current()

        assert current["rate"] == "1"
        assert current["id"] is None

    async def test_update_and_read_back(self, api_client) -> None:
        created = await api_client.update_rate(Decimal("89000"))

        current = await api_client.get_current("USD", "LBP")
        assert current["id"] == created["id"]
        assert current["updatedBy"] == "alice"

        history = await api_client.get_history(limit=1)
        assert [r["id"] for r in history] == [created["id"]]

    async def test_other_pair(self, api_client) -> None:
        await api_client.update_rate("0.92", to_currency="EUR")

        rates = await api_client.list_rates()

        assert [(r["fromCurrency"], r["toCurrency"]) for r in rates] == [("USD", "EUR")]

    async def test_convert(self, api_client) -> None:
        await api_client.update_rate("89000")

        result = await api_client.convert("1.01", round_up_to="5000")

        assert Decimal(result["convertedAmount"]) == Decimal("90000")
        assert result["rateIsDefault"] is False

    async def test_repair(self, api_client) -> None:
        await api_client.update_rate("89000")

        assert await api_client.repair() == {"corrected": False, "rowsChanged": None}
        assert await api_client.repair(all_pairs=True) == {"corrected": False, "rowsChanged": 0}

    async def test_rejected_rate_raises_api_error(self, api_client) -> None:
        with pytest.raises(APIError) as exc:
            await api_client.update_rate("-1")

        assert exc.value.status_code == 400
        assert exc.value.error_code == "INVALID_RATE"
        assert "greater than 0" in exc.value.detail

    async def test_update_without_actor_is_rejected(self, api_client) -> None:
        api_client.set_actor(None)

        with pytest.raises(APIError) as exc:
            await api_client.update_rate("89000")

        assert exc.value.status_code == 401

    async def test_update_with_cashier_role_is_rejected(self, api_client) -> None:
        api_client.set_actor("carol", "cashier")

        with pytest.raises(APIError) as exc:
            await api_client.update_rate("89000")

        assert exc.value.status_code == 403
        assert exc.value.error_code == "PERMISSION_DENIED"


class TestRateHook:
    async def test_refresh_without_rate(self, api_client) -> None:
        hook = RateHook(api_client)

        await hook.refresh()

        assert hook.rate == Decimal(1)
        assert hook.history == []
        assert hook.primary_currency == "USD"
        assert hook.secondary_currency == "LBP"

    async def test_update_refreshes(self, api_client) -> None:
        hook = RateHook(api_client)

        created = await hook.update_rate("89000")

        assert hook.rate == Decimal("89000")
        assert hook.current["id"] == created["id"]
        assert [r["id"] for r in hook.history] == [created["id"]]
        assert hook.updating is False
        assert hook.update_error is None

    async def test_history_limit(self, api_client) -> None:
        hook = RateHook(api_client, history_limit=2)
        for rate in ("89000", "89500", "90000"):
            await hook.update_rate(rate)

        assert [r["rate"] for r in hook.history] == ["90000", "89500"]

    async def test_failed_update_keeps_error_and_refreshes(self, api_client) -> None:
        hook = RateHook(api_client)
        await hook.update_rate("89000")

        with pytest.raises(APIError):
            await hook.update_rate("abc")

        assert hook.update_error is not None
        assert hook.update_error.error_code == "INVALID_RATE"
        assert hook.updating is False
        assert hook.rate == Decimal("89000")

    async def test_other_pair(self, api_client) -> None:
        hook = RateHook(api_client, to_currency="EUR")

        await hook.update_rate("0.92")

        assert hook.rate == Decimal("0.92")
        assert hook.secondary_currency == "EUR"

    async def test_unreachable_server_on_update_keeps_error(self) -> None:
        current = {"id": None, "fromCurrency": "USD", "toCurrency": "LBP", "rate": "89000"}

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                raise httpx.ConnectError("connection refused", request=request)
            if request.url.path == "/currency/history":
                return httpx.Response(200, json=[current])
            return httpx.Response(200, json=current)

        async with AsyncClient(
            transport=httpx.MockTransport(handler), base_url="http://test"
        ) as c:
            hook = RateHook(RateAPIClient(base_url="http://test", client=c, actor_id="alice"))

            with pytest.raises(httpx.ConnectError):
                await hook.update_rate("90000")

        assert isinstance(hook.update_error, httpx.ConnectError)
        assert hook.updating is False
        assert hook.rate == Decimal("89000")
        assert hook.history == [current]

    async def test_successful_update_clears_previous_error(self, api_client) -> None:
        hook = RateHook(api_client)
        with pytest.raises(APIError):
            await hook.update_rate("abc")

        await hook.update_rate("89000")

        assert hook.update_error is None

    async def test_unreachable_server_falls_back(self, offline_client) -> None:
        hook = RateHook(offline_client)
        hook.current = {"rate": "89000"}

        await hook.refresh()

        assert hook.current is None
        assert hook.history == []
        assert hook.rate == Decimal(1)

    async def test_invalid_rate_reads_as_one(self, offline_client) -> None:
        hook = RateHook(offline_client)

        hook.current = {"rate": "not-a-number"}
        assert hook.rate == Decimal(1)

        hook.current = {"rate": "0"}
        assert hook.rate == Decimal(1)
