"""Ledger transfer client with exponential backoff retry logic"""

import asyncio
import logging

import httpx
from payment_gateway.config import settings
from payment_gateway.domain.models import TransferResult
from payment_gateway.infrastructure.observability.metrics import ledger_latency_histogram, ledger_failure_counter


class LedgerClient:
    """Client for the ledger service that moves funds"""

    def __init__(self, transfer_url: str | None = None, timeout: float | None = None):
        self.transfer_url = transfer_url or settings.ledger_api_url
        self.timeout = timeout or settings.http_timeout_seconds
        self.max_retries = settings.ledger_max_retries
        self.backoff_base = settings.ledger_backoff_base

    async def transfer(
        self,
        source_account_id: str,
        sort_code: str,
        account_number: str,
        amount_minor: int,
        reference: str | None,
        idempotency_key: str,
    ) -> TransferResult:
        """
        Request a transfer from the ledger.

        Retry strategy:
        - Exponential backoff: 1s, 2s, 4s, 8s (base * 2^attempt)
        - Retries on 5xx errors and network failures; the idempotency key
          makes a repeated request safe
        - 4xx responses are rejections and are returned without retrying
        """
        payload = {
            "source_account_id": source_account_id,
            "sort_code": sort_code,
            "account_number": account_number,
            "amount_minor": amount_minor,
            "reference": reference,
        }
        headers = {"Idempotency-Key": idempotency_key}

        attempt = 0
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            while True:
                try:
                    with ledger_latency_histogram.time():
                        response = await client.post(self.transfer_url, json=payload, headers=headers)

                    if 400 <= response.status_code < 500:
                        ledger_failure_counter.inc()
                        return TransferResult(ok=False, error=f"ledger rejected transfer: {response.status_code}")

                    response.raise_for_status()
                    return TransferResult(ok=True, transfer_id=response.json().get("transfer_id"))

                except (httpx.HTTPStatusError, httpx.RequestError) as e:
                    attempt += 1
                    ledger_failure_counter.inc()

                    if attempt >= self.max_retries:
                        logging.error(
                            f"Ledger transfer failed after {attempt} attempts: {e}",
                            extra={"idempotency_key": idempotency_key},
                        )
                        return TransferResult(ok=False, error="ledger unavailable")

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    await asyncio.sleep(backoff)
