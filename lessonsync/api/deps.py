"""
API Dependencies

Reusable dependencies for API routes.
"""

from typing import Annotated, Optional

import httpx
from fastapi import Depends, Header, Request

from lessonsync.services.store_client import ProgressStoreClient


def get_http_client(request: Request) -> httpx.AsyncClient:
    """
    Pooled HTTP client created in the application lifespan.

    Returns:
        httpx.AsyncClient: Shared client instance.
    """
    return request.app.state.http_client


def get_store_client(
    http_client: Annotated[httpx.AsyncClient, Depends(get_http_client)],
    authorization: Annotated[Optional[str], Header()] = None,
) -> ProgressStoreClient:
    """
    Build a store client for the current request.

    The caller's Authorization header is forwarded to the progress store;
    without one, the configured API_TOKEN is used.

    Args:
        http_client: Shared pooled client (auto-injected).
        authorization: Incoming Authorization header, if any.

    Returns:
        ProgressStoreClient: Client bound to the caller's credentials.
    """
    return ProgressStoreClient(http_client, auth_token=authorization)
