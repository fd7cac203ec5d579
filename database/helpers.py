"""
Database helper functions — account lookup and first-login creation.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import User

logger = logging.getLogger(__name__)


def _to_uuid(value: str | uuid.UUID) -> uuid.UUID:
    return uuid.UUID(value) if isinstance(value, str) else value


async def get_user(session: AsyncSession, user_id: str | uuid.UUID) -> Optional[User]:
    """Return the ``User`` row for ``user_id`` or ``None`` (also for malformed ids)."""
    try:
        uid = _to_uuid(user_id)
    except ValueError:
        return None
    result = await session.execute(select(User).where(User.user_id == uid))
    return result.scalar_one_or_none()


async def upsert_login_user(session: AsyncSession, token_data: Dict[str, Any]) -> User:
    """
    Create or update the account for a primary (GitHub) login.

    ``token_data`` is the output of ``GitHubConnector.handle_callback``.
    Existing accounts keep their ``user_id``; profile fields and the primary
    tokens are replaced.
    """
    meta = token_data.get("provider_meta", {})
    github_id = str(token_data["account_id"])
    username = meta.get("login") or token_data.get("account_label", "")

    result = await session.execute(select(User).where(User.github_id == github_id))
    user = result.scalar_one_or_none()

    if user is None:
        user = User(
            user_id=uuid.uuid4(),
            github_id=github_id,
            username=username,
            display_name=meta.get("name") or username,
            email=token_data.get("email") or "",
            avatar_url=meta.get("avatar_url"),
            profile_url=meta.get("html_url"),
            access_token=token_data["access_token"],
            refresh_token=token_data.get("refresh_token"),
        )
        session.add(user)
        logger.info("Created account %s for GitHub user %s", user.user_id, username)
    else:
        user.username = username or user.username
        user.display_name = meta.get("name") or user.display_name
        user.email = token_data.get("email") or user.email
        user.avatar_url = meta.get("avatar_url") or user.avatar_url
        user.profile_url = meta.get("html_url") or user.profile_url
        user.access_token = token_data["access_token"]
        user.refresh_token = token_data.get("refresh_token")
        logger.info("Updated account %s for GitHub user %s", user.user_id, username)

    await session.flush()
    return user
