"""Unit tests for downstream clients and bounded retries"""

import asyncio
import httpx
import pytest
from unittest.mock import AsyncMock, patch
from payment_gateway.domain.cop import LookupStatus
from payment_gateway.domain.exceptions import DependencyRejected, DependencyUnavailable
from payment_gateway.infrastructure.clients.cop import CopClient
from payment_gateway.infrastructure.clients.ledger import LedgerClient
from payment_gateway.infrastructure.clients.watchlist import WatchlistClient
from payment_gateway.infrastructure.resilience import fetch_with_retry

LEDGER_URL = "http://ledger.test/ledger/transfers"


def response(status_code: int, method: str = "GET", url: str = "http://test", **kwargs) -> httpx.Response:
    return httpx.Response(status_code, request=httpx.Request(method, url), **kwargs)


def status_error(status_code: int) -> httpx.HTTPStatusError:
    failed = response(status_code)
    return httpx.HTTPStatusError(f"status {status_code}", request=failed.request, response=failed)


async def test_fetch_with_retry_recovers_from_transient_errors():
    fetch = AsyncMock(side_effect=[httpx.ConnectError("reset"), "ok"])

    result = await fetch_with_retry(fetch, source="test", timeout=1.0, max_attempts=3, backoff_base=0.0)

    assert result == "ok"
    assert fetch.await_count == 2


async def test_fetch_with_retry_gives_up_after_max_attempts():
    fetch = AsyncMock(side_effect=httpx.ConnectError("reset"))

    with pytest.raises(DependencyUnavailable) as exc_info:
        await fetch_with_retry(fetch, source="watchlist", timeout=1.0, max_attempts=3, backoff_base=0.0)

    assert exc_info.value.source == "watchlist"
    assert fetch.await_count == 3


async def test_fetch_with_retry_does_not_retry_timeouts():
    calls = []

    async def slow():
        calls.append(1)
        await asyncio.sleep(1)

    with pytest.raises(DependencyUnavailable, match="timed out"):
        await fetch_with_retry(slow, source="cop", timeout=0.01, max_attempts=3, backoff_base=0.0)

    assert len(calls) == 1


async def test_fetch_with_retry_retries_server_errors():
    fetch = AsyncMock(side_effect=[status_error(503), "ok"])

    result = await fetch_with_retry(fetch, source="cop", timeout=1.0, max_attempts=3, backoff_base=0.0)

    assert result == "ok"
    assert fetch.await_count == 2


@pytest.mark.parametrize("status_code", [400, 401, 403, 404])
async def test_fetch_with_retry_rejects_client_errors_without_retry(status_code):
    fetch = AsyncMock(side_effect=status_error(status_code))

    with pytest.raises(DependencyRejected) as exc_info:
        await fetch_with_retry(fetch, source="cop", timeout=1.0, max_attempts=3, backoff_base=0.0)

    assert exc_info.value.status_code == status_code
    assert exc_info.value.source == "cop"
    assert fetch.await_count == 1


async def test_fetch_with_retry_propagates_business_errors():
    fetch = AsyncMock(side_effect=KeyError("name"))

    with pytest.raises(KeyError):
        await fetch_with_retry(fetch, source="cop", timeout=1.0, max_attempts=3, backoff_base=0.0)
    assert fetch.await_count == 1


@patch("httpx.AsyncClient.get", new_callable=AsyncMock)
async def test_cop_client_found(mock_get: AsyncMock):
    mock_get.return_value = response(200, json={"name": "Jane Doe"})

    lookup = await CopClient(base_url="http://cop.test").lookup_holder("089999", "66374958")

    assert lookup.status == LookupStatus.FOUND
    assert lookup.name == "Jane Doe"
    mock_get.assert_awaited_once_with(
        "http://cop.test/cop/accounts",
        params={"sort_code": "089999", "account_number": "66374958"},
    )


@patch("httpx.AsyncClient.get", new_callable=AsyncMock)
async def test_cop_client_not_found(mock_get: AsyncMock):
    mock_get.return_value = response(404)

    lookup = await CopClient(base_url="http://cop.test").lookup_holder("089999", "66374958")

    assert lookup.status == LookupStatus.NOT_FOUND


@patch("httpx.AsyncClient.get", new_callable=AsyncMock)
async def test_cop_client_raises_on_server_error(mock_get: AsyncMock):
    mock_get.return_value = response(503)

    with pytest.raises(httpx.HTTPStatusError):
        await CopClient(base_url="http://cop.test").lookup_holder("089999", "66374958")


@patch("httpx.AsyncClient.get", new_callable=AsyncMock)
async def test_watchlist_client_parses_entries(mock_get: AsyncMock):
    mock_get.return_value = response(200, json={"entries": [{"name": "Global Shell Trading"}]})

    entries = await WatchlistClient(url="http://watchlist.test").get_entries()

    assert entries == ("Global Shell Trading",)


@patch("httpx.AsyncClient.get", new_callable=AsyncMock)
async def test_watchlist_client_rejects_malformed_body(mock_get: AsyncMock):
    mock_get.return_value = response(200, json={"unexpected": []})

    with pytest.raises(DependencyUnavailable):
        await WatchlistClient(url="http://watchlist.test").get_entries()


def ledger_client() -> LedgerClient:
    client = LedgerClient(transfer_url=LEDGER_URL)
    client.backoff_base = 0.0
    client.max_retries = 3
    return client


async def transfer(client: LedgerClient):
    return await client.transfer(
        source_account_id="acc_alice",
        sort_code="089999",
        account_number="66374958",
        amount_minor=5_000,
        reference="RENT",
        idempotency_key="req-123",
    )


@patch("httpx.AsyncClient.post", new_callable=AsyncMock)
async def test_ledger_transfer_retries_server_errors(mock_post: AsyncMock):
    mock_post.side_effect = [
        response(502, "POST", LEDGER_URL),
        response(201, "POST", LEDGER_URL, json={"transfer_id": "tr_1"}),
    ]

    result = await transfer(ledger_client())

    assert result.ok is True
    assert result.transfer_id == "tr_1"
    assert mock_post.await_count == 2
    # Same idempotency key on every attempt
    for call in mock_post.await_args_list:
        assert call.kwargs["headers"] == {"Idempotency-Key": "req-123"}
        assert call.kwargs["json"]["amount_minor"] == 5_000


@patch("httpx.AsyncClient.post", new_callable=AsyncMock)
async def test_ledger_rejection_is_not_retried(mock_post: AsyncMock):
    mock_post.return_value = response(422, "POST", LEDGER_URL)

    result = await transfer(ledger_client())

    assert result.ok is False
    assert "422" in result.error
    assert mock_post.await_count == 1


@patch("httpx.AsyncClient.post", new_callable=AsyncMock)
async def test_ledger_gives_up_after_max_retries(mock_post: AsyncMock):
    mock_post.side_effect = httpx.ConnectError("refused")

    result = await transfer(ledger_client())

    assert result.ok is False
    assert result.error == "ledger unavailable"
    assert mock_post.await_count == 3
