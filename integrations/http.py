"""
Shared httpx plumbing for the REST fetchers.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx

from integrations.errors import AuthExpiredError, IntegrationError


@asynccontextmanager
async def http_client(client: Optional[httpx.AsyncClient] = None) -> AsyncIterator[httpx.AsyncClient]:
    """Use the caller's client if given, else a short-lived one."""
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient() as owned:
        yield owned


def raise_for_provider(resp: httpx.Response, provider: str) -> None:
    """Map HTTP failures onto the integration error taxonomy."""
    if resp.status_code == 401:
        raise AuthExpiredError(provider, f"{provider} rejected the access token")
    if resp.is_error:
        raise IntegrationError(provider, f"{provider} answered HTTP {resp.status_code}")
