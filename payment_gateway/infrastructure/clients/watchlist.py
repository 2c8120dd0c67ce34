"""Sanctions watch-list HTTP client"""

from typing import Tuple

import httpx
from payment_gateway.domain.exceptions import DependencyUnavailable
from payment_gateway.config import settings


class WatchlistClient:
    """Client for the sanctions/PEP watch-list service"""

    def __init__(self, url: str | None = None, timeout: float | None = None):
        self.url = url or settings.watchlist_url
        self.timeout = timeout or settings.http_timeout_seconds

    async def get_entries(self) -> Tuple[str, ...]:
        """
        Fetch the current watch-list entity names.

        Raises:
            httpx.RequestError, httpx.HTTPStatusError: On transport errors or error statuses
            DependencyUnavailable: On a malformed response body
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(self.url)
            response.raise_for_status()

            try:
                entries = response.json()["entries"]
                return tuple(str(entry["name"]) for entry in entries)
            except (KeyError, ValueError, TypeError) as e:
                raise DependencyUnavailable("watchlist", f"invalid watch-list data: {e}") from e
