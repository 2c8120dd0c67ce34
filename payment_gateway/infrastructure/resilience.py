"""Bounded timeouts and retries for external data reads"""

import asyncio
import logging
from typing import Awaitable, Callable, Tuple, Type, TypeVar

import httpx
from sqlalchemy.exc import OperationalError

from payment_gateway.domain.exceptions import DependencyRejected, DependencyUnavailable
from payment_gateway.infrastructure.observability.metrics import dependency_failure_counter

T = TypeVar("T")

# Transport failures and error statuses; is_client_error filters out 4xx
TRANSIENT_ERRORS: Tuple[Type[BaseException], ...] = (
    httpx.RequestError,
    httpx.HTTPStatusError,
    OperationalError,
)


def is_client_error(error: BaseException) -> bool:
    return isinstance(error, httpx.HTTPStatusError) and error.response.status_code < 500


async def fetch_with_retry(
    fetch: Callable[[], Awaitable[T]],
    *,
    source: str,
    timeout: float,
    max_attempts: int,
    backoff_base: float,
    retry_on: Tuple[Type[BaseException], ...] = TRANSIENT_ERRORS,
) -> T:
    """
    Run an external read with a bounded timeout and bounded retries.

    Retry strategy:
    - A timeout is not retried: it is classified as unavailable immediately
    - A 4xx response is not retried: it is classified as DependencyRejected
    - Transient I/O errors are retried with exponential backoff (base * 2^n)
    - After max_attempts the failure is classified as DependencyUnavailable
    """
    attempt = 0
    while True:
        try:
            return await asyncio.wait_for(fetch(), timeout=timeout)
        except asyncio.TimeoutError as e:
            dependency_failure_counter.labels(source=source).inc()
            raise DependencyUnavailable(source, f"timed out after {timeout}s") from e
        except retry_on as e:
            attempt += 1
            dependency_failure_counter.labels(source=source).inc()
            if is_client_error(e):
                raise DependencyRejected(source, e.response.status_code) from e
            if attempt >= max_attempts:
                raise DependencyUnavailable(source, f"failed after {attempt} attempts: {e}") from e

            backoff = backoff_base * (2 ** (attempt - 1))
            logging.warning(
                f"{source} read failed, retrying in {backoff}s",
                extra={"source": source, "attempt": attempt},
            )
            await asyncio.sleep(backoff)
