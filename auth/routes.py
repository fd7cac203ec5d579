"""
Auth API routes — primary login through GitHub, current user, logout.

Route prefix: /auth
"""

from __future__ import annotations

import logging
import secrets
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from auth.dependencies import SESSION_USER_KEY, db_session, get_current_user
from config.settings import config
from connectors.github import LOGIN_SCOPES, GitHubConnector
from connectors.linking import SESSION_ID_KEY, PendingLinkStash
from connectors.registry import ConnectorRegistry
from database.helpers import upsert_login_user
from database.models import User

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

_LOGIN_STATE_KEY = "login_state"


def _github() -> GitHubConnector:
    connector = ConnectorRegistry().get("github")
    if connector is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="GitHub login is not configured",
        )
    return connector


@router.get("/github")
async def github_login(request: Request) -> RedirectResponse:
    """Redirect the browser to GitHub's consent page."""
    connector = _github()
    state = secrets.token_urlsafe(24)
    request.session[_LOGIN_STATE_KEY] = state
    auth_url = connector.get_auth_url(
        state,
        redirect_uri=connector.login_redirect_uri(),
        scopes=LOGIN_SCOPES,
    )
    return RedirectResponse(auth_url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)


@router.get("/github/callback")
async def github_login_callback(
    request: Request,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    session: AsyncSession = Depends(db_session),
) -> RedirectResponse:
    """
    GitHub redirects here after consent.

    Creates the account on first login, refreshes profile and token on
    later ones, then marks the browser session as logged in.
    """
    connector = _github()
    expected_state = request.session.pop(_LOGIN_STATE_KEY, None)

    if error or not code:
        logger.error("GitHub login failed: %s", error or "no code")
        return _login_failed("oauth_error")
    if not expected_state or not state or not secrets.compare_digest(state, expected_state):
        logger.warning("GitHub login state mismatch")
        return _login_failed("state_mismatch")

    try:
        token_data = await connector.handle_callback(
            code, redirect_uri=connector.login_redirect_uri()
        )
    except Exception as exc:
        logger.error("GitHub login token exchange failed: %s", exc)
        return _login_failed("oauth_error")

    user = await upsert_login_user(session, token_data)
    request.session[SESSION_USER_KEY] = str(user.user_id)
    logger.info("Login: %s (%s)", user.username, user.user_id)

    return RedirectResponse(config.dashboard_url(), status_code=status.HTTP_302_FOUND)


@router.get("/user")
async def current_user(user: User = Depends(get_current_user)) -> Dict[str, Any]:
    """Profile of the logged-in account."""
    return {
        "success": True,
        "user": {
            "id": str(user.user_id),
            "githubId": user.github_id,
            "username": user.username,
            "displayName": user.display_name,
            "email": user.email,
            "avatarUrl": user.avatar_url,
            "profileUrl": user.profile_url,
        },
    }


@router.get("/logout")
async def logout(
    request: Request,
    session: AsyncSession = Depends(db_session),
) -> RedirectResponse:
    """Drop the session, pending links included."""
    user_id = request.session.get(SESSION_USER_KEY)
    sid = request.session.get(SESSION_ID_KEY)
    if sid:
        await PendingLinkStash(sid, session).clear()
        await session.commit()
    request.session.clear()
    if user_id:
        logger.info("Logout: %s", user_id)
    return RedirectResponse(config.login_url(), status_code=status.HTTP_302_FOUND)


def _login_failed(reason: str) -> RedirectResponse:
    return RedirectResponse(config.login_url(error=reason), status_code=status.HTTP_302_FOUND)
