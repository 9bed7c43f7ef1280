"""
HTTP Client Module

Builds the pooled httpx.AsyncClient used by the progress store client:
- Connection pooling for efficient reuse
- Optional retries with exponential backoff
- Configurable timeouts

The client is created once per application session and passed to the
services that need it; there is no module-level instance.
"""

import asyncio
import logging
from typing import Optional, Any

import httpx

from lessonsync.core.config import settings


logger = logging.getLogger(__name__)


# ============== Configuration ==============

# Connection pool limits
MAX_CONNECTIONS = 20
MAX_KEEPALIVE_CONNECTIONS = 10
KEEPALIVE_EXPIRY = 30  # seconds

# Retry configuration
RETRY_BACKOFF_BASE = 0.5  # seconds

# Errors worth another attempt when retries are enabled
RETRYABLE_ERRORS = (httpx.ConnectError, httpx.TimeoutException)


def create_http_client(
    timeout: Optional[float] = None,
    **kwargs: Any,
) -> httpx.AsyncClient:
    """
    Create a pooled async HTTP client.

    Args:
        timeout: Request timeout in seconds (defaults to REQUEST_TIMEOUT).
        **kwargs: Extra arguments forwarded to httpx.AsyncClient.

    Returns:
        httpx.AsyncClient: New client; the caller owns its lifecycle.
    """
    limits = httpx.Limits(
        max_connections=MAX_CONNECTIONS,
        max_keepalive_connections=MAX_KEEPALIVE_CONNECTIONS,
        keepalive_expiry=KEEPALIVE_EXPIRY,
    )
    return httpx.AsyncClient(
        limits=limits,
        timeout=httpx.Timeout(timeout or settings.REQUEST_TIMEOUT),
        http2=True,
        **kwargs,
    )


async def close_http_client(client: Optional[httpx.AsyncClient]) -> None:
    """
    Close an HTTP client if it is still open.

    Should be called during application shutdown.
    """
    if client is not None and not client.is_closed:
        await client.aclose()


# ============== Request Helper ==============

async def request_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    max_retries: int = 0,
    **kwargs: Any,
) -> httpx.Response:
    """
    Make an HTTP request, optionally retrying on failure.

    With the default ``max_retries=0`` exactly one attempt is made.

    Args:
        client: Pooled client to send the request with.
        method: HTTP method (GET, POST, etc.)
        url: Request URL
        max_retries: Maximum number of retry attempts
        **kwargs: Additional arguments passed to httpx request

    Returns:
        httpx.Response: The response object (possibly a 5xx after the
        last attempt).

    Raises:
        httpx.HTTPError: If the final attempt fails at the transport level.
    """
    for attempt in range(max_retries + 1):
        is_last = attempt >= max_retries
        try:
            response = await client.request(method, url, **kwargs)
        except RETRYABLE_ERRORS as e:
            if is_last:
                raise
            wait_time = RETRY_BACKOFF_BASE * (2 ** attempt)
            logger.info("Connection error on %s %s, retrying in %ss: %s", method, url, wait_time, e)
            await asyncio.sleep(wait_time)
            continue

        # Retry on 5xx server errors
        if response.status_code >= 500 and not is_last:
            wait_time = RETRY_BACKOFF_BASE * (2 ** attempt)
            logger.info(
                "Server error %s on %s %s, retrying in %ss",
                response.status_code, method, url, wait_time,
            )
            await asyncio.sleep(wait_time)
            continue

        return response

    raise httpx.HTTPError(f"Request to {url} failed after {max_retries} retries")
