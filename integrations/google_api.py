"""
googleapiclient plumbing shared by the Gmail and Calendar fetchers.

``googleapiclient`` is synchronous; every call is offloaded to a thread via
``asyncio.to_thread()`` so it never blocks the event loop.

A service object hands the same ``httplib2.Http`` to every request it
builds, and ``httplib2`` is not thread-safe.  ``execute`` therefore runs
each request over its own ``AuthorizedHttp`` built from the request's
credentials, so concurrent calls on one service never share a connection.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

import httplib2
from google.auth.exceptions import RefreshError
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from integrations.errors import AuthExpiredError, IntegrationError

logger = logging.getLogger(__name__)


async def build_service(api: str, version: str, token: str) -> Any:
    """Build an authorised API resource for a stored access token."""
    creds = Credentials(token=token)
    return await asyncio.to_thread(
        build, api, version, credentials=creds, cache_discovery=False
    )


def own_transport(request: Any) -> Optional[AuthorizedHttp]:
    """A private authorised transport carrying ``request``'s credentials."""
    credentials = getattr(getattr(request, "http", None), "credentials", None)
    if credentials is None:
        return None
    return AuthorizedHttp(credentials, http=httplib2.Http())


def _run(request_factory: Callable[[], Any]) -> Any:
    request = request_factory()
    http = own_transport(request)
    if http is None:
        return request.execute()
    return request.execute(http=http)


async def execute(provider: str, request_factory: Callable[[], Any]) -> Any:
    """
    Run ``request_factory().execute()`` in a thread, translating Google
    client errors into the integration error taxonomy.
    """
    try:
        return await asyncio.to_thread(_run, request_factory)
    except HttpError as exc:
        status = getattr(exc.resp, "status", None)
        if status == 401:
            raise AuthExpiredError(provider, "Google rejected the access token") from exc
        raise IntegrationError(provider, f"Google API answered HTTP {status}") from exc
    except RefreshError as exc:
        raise AuthExpiredError(provider, "Google credentials expired") from exc
