"""
Connector API routes — link status, connect, callback, disconnect.

Route prefix: /api

Pending links live server-side in ``pending_links``, keyed by an opaque
browser-session id kept in the signed session cookie; each request builds
a ``PendingLinkStash`` for that id and hands it to the ``AccountLinker``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from auth.dependencies import db_session, get_current_user, get_current_user_id
from config.settings import config
from connectors.base import BaseConnector
from connectors.linking import AccountLinker, PendingLinkStash, browser_session_id
from connectors.registry import ConnectorRegistry
from connectors.token_manager import connection_summary, get_connection, github_access
from database.models import User

logger = logging.getLogger(__name__)

router = APIRouter(tags=["connectors"])


def get_connector(provider: str) -> BaseConnector:
    """Resolve a registered connector or 404."""
    connector = ConnectorRegistry().get(provider)
    if connector is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Provider '{provider}' not found or not configured",
        )
    return connector


def _linker(request: Request, connector: BaseConnector, session: AsyncSession) -> AccountLinker:
    stash = PendingLinkStash(browser_session_id(request.session), session)
    return AccountLinker(connector, stash, session)


# ── Routes ─────────────────────────────────────────────────────────────


@router.get("/integrations")
async def list_integrations() -> List[Dict[str, Any]]:
    """
    List all known providers and whether they are configured.
    No auth required — used by the front end to decide which cards to show.
    """
    return ConnectorRegistry().list_providers()


@router.get("/{provider}/status")
async def link_status(
    provider: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    """Whether ``provider`` is linked to the logged-in account."""
    connector = get_connector(provider)
    conn = await get_connection(str(user.user_id), connector.provider_name, db_session=session)
    summary = connection_summary(conn)
    meta = summary["provider_meta"]

    if provider == "github":
        # The login token grants GitHub access until GitHub is disconnected
        return {
            "connected": github_access(user, conn) is not None,
            "username": meta.get("login") or user.username,
            "email": summary["email"] or user.email,
            "avatarUrl": meta.get("avatar_url") or user.avatar_url,
        }
    if provider == "slack":
        return {
            "connected": summary["connected"],
            "teamName": meta.get("team_name"),
            "username": meta.get("username"),
        }
    return {"connected": summary["connected"], "email": summary["email"]}


@router.get("/{provider}/connect")
async def connect(
    provider: str,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> RedirectResponse:
    """Open a pending link and redirect the browser to the provider's consent page."""
    connector = get_connector(provider)
    auth_url = await _linker(request, connector, session).connect(user_id)
    await session.commit()
    return RedirectResponse(auth_url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)


@router.get("/{provider}/callback")
async def oauth_callback(
    provider: str,
    request: Request,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    session: AsyncSession = Depends(db_session),
) -> RedirectResponse:
    """
    OAuth callback — the provider redirects here after consent.

    Always answers with a redirect to the dashboard carrying either
    ``connected=<provider>`` or ``error=<reason>``.
    """
    connector = get_connector(provider)
    outcome = await _linker(request, connector, session).callback(
        code=code, state=state, error=error
    )
    # The pending link is consumed whatever the outcome
    await session.commit()
    if outcome.ok:
        target = config.dashboard_url(connected=provider)
    else:
        target = config.dashboard_url(error=outcome.error.value)
    return RedirectResponse(target, status_code=status.HTTP_302_FOUND)


@router.post("/{provider}/disconnect")
async def disconnect(
    provider: str,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    """Clear the stored credential for ``provider``."""
    connector = get_connector(provider)
    await _linker(request, connector, session).disconnect(user_id)
    await session.commit()
    return {"success": True, "message": f"{connector.display_name} disconnected"}
