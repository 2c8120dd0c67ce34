"""Confirmation of Payee HTTP client for account holder lookups"""

import httpx
from payment_gateway.domain.cop import HolderLookup
from payment_gateway.config import settings


class CopClient:
    """Client for the receiving-bank Confirmation of Payee directory"""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = base_url or settings.cop_api_base
        self.timeout = timeout or settings.http_timeout_seconds

    async def lookup_holder(self, sort_code: str, account_number: str) -> HolderLookup:
        """
        Fetch the account holder name registered at the receiving bank.

        A 404 means the receiving bank has no such account. Network errors
        and 5xx responses are raised so the caller can retry them.

        Raises:
            httpx.RequestError, httpx.HTTPStatusError: On transport errors or error statuses
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(
                f"{self.base_url}/cop/accounts",
                params={"sort_code": sort_code, "account_number": account_number},
            )
            if response.status_code == 404:
                return HolderLookup.not_found()
            response.raise_for_status()

            name = response.json().get("name")
            if not name:
                return HolderLookup.not_found()
            return HolderLookup.found(name)
