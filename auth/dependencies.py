"""
FastAPI dependencies for authentication.

Provides ``db_session``, ``get_current_user_id`` and ``get_current_user``,
used across all protected routes.  The logged-in account id lives in the
signed session cookie under ``SESSION_USER_KEY``.
"""

from __future__ import annotations

from typing import AsyncGenerator

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from database.helpers import get_user
from database.models import User
from database.session import get_db_session

SESSION_USER_KEY = "user_id"


async def db_session(
    session: AsyncSession = Depends(get_db_session),
) -> AsyncGenerator[AsyncSession, None]:
    """Yield a DB session for route handlers."""
    yield session


async def get_current_user_id(request: Request) -> str:
    """Return the logged-in ``user_id`` (UUID string) or raise 401."""
    user_id = request.session.get(SESSION_USER_KEY)
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not authenticated",
        )
    return user_id


async def get_current_user(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> User:
    """
    Load the logged-in account.

    A session pointing at a vanished account is cleared and treated as
    unauthenticated.
    """
    user = await get_user(session, user_id)
    if user is None:
        request.session.clear()
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not authenticated",
        )
    return user
