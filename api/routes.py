"""
Resource routes — read-only listings proxied from the linked providers.

Mounted at the root: /health and /api/<provider>/<resource>.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from auth.dependencies import db_session, get_current_user, get_current_user_id
from connectors.token_manager import get_active_token, get_connection, github_access
from database.models import User
from integrations import github as github_api
from integrations import gmail as gmail_api
from integrations import google_calendar as calendar_api
from integrations import slack as slack_api
from integrations.errors import (
    AuthExpiredError,
    IntegrationError,
    NotConnectedError,
    ProviderAPIError,
)
from integrations.google_api import build_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["resources"])

_DISPLAY = {
    "github": "GitHub",
    "gmail": "Gmail",
    "google-calendar": "Google Calendar",
    "slack": "Slack",
}


# ── Helpers ────────────────────────────────────────────────────────────


async def _require_token(user_id: str, provider: str, session: AsyncSession) -> str:
    token = await get_active_token(user_id, provider, db_session=session)
    if not token:
        raise NotConnectedError(provider)
    return token


def _to_http(exc: IntegrationError, what: str) -> HTTPException:
    """Translate an integration failure into the client-facing error."""
    name = _DISPLAY.get(exc.provider, exc.provider)
    if isinstance(exc, NotConnectedError):
        return HTTPException(status.HTTP_400_BAD_REQUEST, f"{name} not connected")
    if isinstance(exc, AuthExpiredError):
        return HTTPException(status.HTTP_401_UNAUTHORIZED, f"{name} authentication expired")
    if isinstance(exc, ProviderAPIError):
        return HTTPException(status.HTTP_400_BAD_REQUEST, exc.code)
    logger.error("Failed to fetch %s from %s: %s", what, exc.provider, exc)
    return HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, f"Failed to fetch {what}")


async def _github_identity(user: User, session: AsyncSession) -> tuple[str, str]:
    """Token and login for GitHub calls; see ``github_access``."""
    conn = await get_connection(str(user.user_id), "github", db_session=session)
    access = github_access(user, conn)
    if access is None:
        raise NotConnectedError("github")
    return access


# ── Health ─────────────────────────────────────────────────────────────


@router.get("/health", include_in_schema=False)
async def health(session: AsyncSession = Depends(db_session)) -> Dict[str, str]:
    try:
        await session.execute(text("SELECT 1"))
        database = "Connected"
    except Exception as exc:
        logger.warning("Health check database probe failed: %s", exc)
        database = "Disconnected"
    return {"status": "OK", "message": "Server is running", "database": database}


# ── GitHub ─────────────────────────────────────────────────────────────


@router.get("/api/github/repos")
async def github_repos(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    try:
        token, _ = await _github_identity(user, session)
        return {"repos": await github_api.list_repos(token)}
    except IntegrationError as exc:
        raise _to_http(exc, "repositories") from exc


@router.get("/api/github/issues")
async def github_issues(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    try:
        token, _ = await _github_identity(user, session)
        return {"issues": await github_api.list_assigned_issues(token)}
    except IntegrationError as exc:
        raise _to_http(exc, "issues") from exc


@router.get("/api/github/pull-requests")
async def github_pull_requests(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    try:
        token, login = await _github_identity(user, session)
        return {"pullRequests": await github_api.list_pull_requests(token, login)}
    except IntegrationError as exc:
        raise _to_http(exc, "pull requests") from exc


# ── Gmail ──────────────────────────────────────────────────────────────


@router.get("/api/gmail/emails")
async def gmail_emails(
    limit: int = Query(10, ge=1, le=50),
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    try:
        token = await _require_token(user_id, "gmail", session)
        service = await build_service("gmail", "v1", token)
        return {"emails": await gmail_api.list_inbox(service, limit=limit)}
    except IntegrationError as exc:
        raise _to_http(exc, "emails") from exc


# ── Google Calendar ────────────────────────────────────────────────────


@router.get("/api/google-calendar/events")
async def calendar_events(
    day: Optional[date] = Query(None, alias="date"),
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    """Events of one day (``?date=YYYY-MM-DD``, default today UTC) from all calendars."""
    target = day or datetime.now(timezone.utc).date()
    try:
        token = await _require_token(user_id, "google-calendar", session)
        service = await build_service("calendar", "v3", token)
        events = await calendar_api.list_events_for_day(service, target)
    except IntegrationError as exc:
        raise _to_http(exc, "calendar events") from exc
    return {"date": target.isoformat(), "events": events}


# ── Slack ──────────────────────────────────────────────────────────────


@router.get("/api/slack/channels")
async def slack_channels(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    try:
        token = await _require_token(user_id, "slack", session)
        return {"channels": await slack_api.list_channels(token)}
    except IntegrationError as exc:
        raise _to_http(exc, "channels") from exc


@router.get("/api/slack/messages/{channel_id}")
async def slack_messages(
    channel_id: str,
    limit: int = Query(10, ge=1, le=200),
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    try:
        token = await _require_token(user_id, "slack", session)
        return {"messages": await slack_api.list_messages(token, channel_id, limit=limit)}
    except IntegrationError as exc:
        raise _to_http(exc, "messages") from exc
