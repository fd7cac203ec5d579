"""
Token manager — store / clear / read per-user integration credentials.

This is the single interface the linking flow and the resource routes use
to touch ``user_connections``.  Access tokens are returned as stored:
``expires_at`` is recorded but not checked, and nothing is refreshed.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import User, UserConnection
from database.session import async_session_factory

logger = logging.getLogger(__name__)


def _to_uuid(value: str | uuid.UUID) -> uuid.UUID:
    return uuid.UUID(value) if isinstance(value, str) else value


async def _find(session: AsyncSession, user_id: str, provider: str) -> Optional[UserConnection]:
    result = await session.execute(
        select(UserConnection).where(
            UserConnection.user_id == _to_uuid(user_id),
            UserConnection.provider == provider,
        )
    )
    return result.scalar_one_or_none()


async def get_connection(
    user_id: str,
    provider: str,
    *,
    db_session: Optional[AsyncSession] = None,
) -> Optional[UserConnection]:
    """Return the credential row for user + provider, connected or not."""
    own_session = db_session is None
    session = db_session or async_session_factory()
    try:
        return await _find(session, user_id, provider)
    finally:
        if own_session:
            await session.close()


async def get_active_token(
    user_id: str,
    provider: str,
    *,
    db_session: Optional[AsyncSession] = None,
) -> Optional[str]:
    """Return the stored access token, or None if the provider is not connected."""
    conn = await get_connection(user_id, provider, db_session=db_session)
    if conn is None or not conn.connected or not conn.access_token:
        return None
    return conn.access_token


async def store_connection(
    user_id: str,
    provider: str,
    token_data: Dict[str, Any],
    *,
    default_expires_in: Optional[int] = 3600,
    db_session: Optional[AsyncSession] = None,
) -> str:
    """
    Attach a credential to the account, replacing any previous one.

    Parameters
    ----------
    token_data : dict
        Output from ``connector.handle_callback()``: access_token,
        refresh_token, expires_in, scopes, account_id, account_label,
        email, provider_meta
    default_expires_in : int or None
        Lifetime used when ``token_data`` carries no ``expires_in``.

    Returns
    -------
    connection_id as string
    """
    own_session = db_session is None
    session = db_session or async_session_factory()
    try:
        now = datetime.now(timezone.utc)
        expires_in = token_data.get("expires_in") or default_expires_in
        expires_at = now + timedelta(seconds=int(expires_in)) if expires_in else None

        conn = await _find(session, user_id, provider)
        if conn is None:
            conn = UserConnection(
                connection_id=uuid.uuid4(),
                user_id=_to_uuid(user_id),
                provider=provider,
            )
            session.add(conn)
            logger.info("Created %s connection for user %s", provider, user_id)
        else:
            logger.info("Updated %s connection for user %s", provider, user_id)

        conn.connected = True
        conn.access_token = token_data["access_token"]
        conn.refresh_token = token_data.get("refresh_token")
        conn.email = token_data.get("email") or None
        conn.account_id = token_data.get("account_id") or None
        conn.account_label = token_data.get("account_label") or None
        conn.scopes = list(token_data.get("scopes") or [])
        conn.provider_meta = dict(token_data.get("provider_meta") or {})
        conn.expires_at = expires_at
        conn.connected_at = now

        if own_session:
            await session.commit()
        else:
            await session.flush()

        return str(conn.connection_id)

    except Exception as exc:
        logger.error("store_connection error: %s", exc)
        if own_session:
            await session.rollback()
        raise
    finally:
        if own_session:
            await session.close()


async def clear_connection(
    user_id: str,
    provider: str,
    *,
    db_session: Optional[AsyncSession] = None,
) -> bool:
    """
    Clear the stored credential for user + provider.

    The row is kept with ``connected=False`` and every token field nulled.
    Returns True if a connected credential was cleared, False if there was
    nothing to clear.  Both outcomes leave the same state.
    """
    own_session = db_session is None
    session = db_session or async_session_factory()
    try:
        conn = await _find(session, user_id, provider)
        if conn is None:
            return False

        was_connected = bool(conn.connected)
        conn.connected = False
        conn.access_token = None
        conn.refresh_token = None
        conn.email = None
        conn.account_id = None
        conn.account_label = None
        conn.scopes = []
        conn.provider_meta = {}
        conn.expires_at = None
        conn.connected_at = None

        if own_session:
            await session.commit()
        else:
            await session.flush()

        logger.info("Disconnected %s for user %s", provider, user_id)
        return was_connected

    except Exception as exc:
        logger.error("clear_connection error: %s", exc)
        if own_session:
            await session.rollback()
        raise
    finally:
        if own_session:
            await session.close()


def connection_summary(conn: Optional[UserConnection]) -> Dict[str, Any]:
    """Token-free view of a credential row."""
    if conn is None or not conn.connected:
        return {"connected": False, "email": None, "provider_meta": {}}
    return {
        "connected": True,
        "email": conn.email,
        "account_label": conn.account_label,
        "provider_meta": conn.provider_meta or {},
        "expires_at": conn.expires_at.isoformat() if conn.expires_at else None,
    }


def github_access(user: User, conn: Optional[UserConnection]) -> Optional[Tuple[str, str]]:
    """
    Token and login to call GitHub with for ``user``.

    A linked GitHub credential wins.  Without one the login token stands
    in, unless GitHub was disconnected: the cleared row (``connected=False``)
    switches the fallback off until the account is linked again.
    """
    if conn is not None:
        if conn.connected and conn.access_token:
            login = (conn.provider_meta or {}).get("login") or conn.account_label or user.username
            return conn.access_token, login
        return None
    if user.access_token:
        return user.access_token, user.username
    return None
