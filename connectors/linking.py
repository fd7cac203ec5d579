"""
Account linking — attach a provider credential to the logged-in account.

Per (browser session, provider) the flow is a small state machine::

    idle ──connect──▶ pending ──callback──▶ linked | failed ──▶ idle

``connect`` records the initiating account id (plus a state nonce) in the
``pending_links`` table under the browser session's id and hands back the
consent URL.  The provider's callback carries no caller identity of its
own, so that record is the only link between the redirect and the account
that started it.  The record is deleted by the first callback that reads
it whatever the outcome, which makes a replayed or foreign callback land in
``failed`` even when the client re-sends an old session cookie.
"""

from __future__ import annotations

import enum
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, MutableMapping, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import config
from connectors.base import BaseConnector
from connectors.token_manager import clear_connection, store_connection
from database.helpers import get_user
from database.models import PendingLinkRecord

logger = logging.getLogger(__name__)

SESSION_ID_KEY = "sid"


class LinkState(str, enum.Enum):
    IDLE = "idle"
    PENDING = "pending"
    LINKED = "linked"
    FAILED = "failed"


class LinkError(str, enum.Enum):
    """Reason codes surfaced to the front end as ``?error=<code>``."""

    OAUTH_ERROR = "oauth_error"
    NO_AUTH_DATA = "no_auth_data"
    NO_USER = "no_user"
    STATE_MISMATCH = "state_mismatch"


@dataclass(frozen=True)
class PendingLink:
    user_id: str
    state: str


@dataclass(frozen=True)
class LinkOutcome:
    provider: str
    state: LinkState
    user_id: Optional[str] = None
    error: Optional[LinkError] = None

    @property
    def ok(self) -> bool:
        return self.state is LinkState.LINKED


def browser_session_id(session: MutableMapping[str, Any]) -> str:
    """Opaque id of the browser session, issued on first use."""
    sid = session.get(SESSION_ID_KEY)
    if not sid:
        sid = secrets.token_urlsafe(32)
        session[SESSION_ID_KEY] = sid
    return sid


class PendingLinkStash:
    """
    One pending-link slot per provider for a browser session, kept on the
    server in ``pending_links``.

    Slots older than the session lifetime are treated as gone and swept on
    the next write.
    """

    def __init__(self, session_id: str, db_session: AsyncSession) -> None:
        self.session_id = session_id
        self._db = db_session

    def _cutoff(self) -> datetime:
        return datetime.now(timezone.utc) - timedelta(seconds=config.session_max_age)

    async def _sweep(self) -> None:
        await self._db.execute(
            delete(PendingLinkRecord)
            .where(PendingLinkRecord.created_at < self._cutoff())
            .execution_options(synchronize_session=False)
        )

    async def put(self, provider: str, user_id: str) -> PendingLink:
        """Open (or overwrite) the slot for ``provider``."""
        await self._sweep()
        await self._db.execute(
            delete(PendingLinkRecord)
            .where(
                PendingLinkRecord.session_id == self.session_id,
                PendingLinkRecord.provider == provider,
            )
            .execution_options(synchronize_session=False)
        )
        link = PendingLink(user_id=str(user_id), state=secrets.token_urlsafe(24))
        self._db.add(
            PendingLinkRecord(
                state=link.state,
                session_id=self.session_id,
                provider=provider,
                user_id=link.user_id,
            )
        )
        await self._db.flush()
        return link

    async def pop(self, provider: str) -> Optional[PendingLink]:
        """
        Remove and return the slot for ``provider``.

        Only the caller whose delete actually removed the row gets it back,
        so two callbacks racing on one slot cannot both proceed.
        """
        result = await self._db.execute(
            select(PendingLinkRecord.state, PendingLinkRecord.user_id).where(
                PendingLinkRecord.session_id == self.session_id,
                PendingLinkRecord.provider == provider,
                PendingLinkRecord.created_at >= self._cutoff(),
            )
        )
        row = result.first()
        if row is None:
            return None

        deleted = await self._db.execute(
            delete(PendingLinkRecord)
            .where(PendingLinkRecord.state == row.state)
            .execution_options(synchronize_session=False)
        )
        if deleted.rowcount != 1:
            return None
        return PendingLink(user_id=row.user_id, state=row.state)

    async def clear(self) -> int:
        """Drop every slot of this browser session."""
        result = await self._db.execute(
            delete(PendingLinkRecord)
            .where(PendingLinkRecord.session_id == self.session_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount


class AccountLinker:
    """Runs connect / callback / disconnect for one provider."""

    def __init__(
        self,
        connector: BaseConnector,
        stash: PendingLinkStash,
        db_session: AsyncSession,
    ) -> None:
        self.connector = connector
        self.stash = stash
        self.db_session = db_session

    @property
    def provider(self) -> str:
        return self.connector.provider_name

    async def connect(self, user_id: str) -> str:
        """Record the pending link for this provider and return the consent URL."""
        link = await self.stash.put(self.provider, user_id)
        logger.info("Link pending: user=%s provider=%s", user_id, self.provider)
        return self.connector.get_auth_url(link.state)

    async def callback(
        self,
        *,
        code: Optional[str],
        state: Optional[str],
        error: Optional[str] = None,
    ) -> LinkOutcome:
        """
        Complete a linking attempt from the provider's redirect.

        Never raises for provider or correlation failures; those come back
        as a ``failed`` outcome and nothing is persisted.
        """
        pending = await self.stash.pop(self.provider)

        if error:
            logger.error("OAuth error from %s: %s", self.provider, error)
            return self._failed(LinkError.OAUTH_ERROR, pending)

        if not code:
            logger.error("No auth data received from %s", self.provider)
            return self._failed(LinkError.NO_AUTH_DATA, pending)

        if pending is None:
            logger.warning("Callback for %s without a pending link for this session", self.provider)
            return self._failed(LinkError.NO_USER, None)

        if not state or not secrets.compare_digest(state, pending.state):
            logger.warning("State mismatch on %s callback for user %s", self.provider, pending.user_id)
            return self._failed(LinkError.STATE_MISMATCH, pending)

        try:
            token_data = await self.connector.handle_callback(code)
        except Exception as exc:
            logger.error("OAuth callback failed for %s: %s", self.provider, exc)
            return self._failed(LinkError.OAUTH_ERROR, pending)

        user = await get_user(self.db_session, pending.user_id)
        if user is None:
            logger.warning("Pending %s link points at missing user %s", self.provider, pending.user_id)
            return self._failed(LinkError.NO_USER, pending)

        await store_connection(
            pending.user_id,
            self.provider,
            token_data,
            default_expires_in=self.connector.default_expires_in,
            db_session=self.db_session,
        )
        logger.info(
            "OAuth connected: user=%s provider=%s account=%s",
            pending.user_id,
            self.provider,
            token_data.get("account_label") or self.provider,
        )
        return LinkOutcome(provider=self.provider, state=LinkState.LINKED, user_id=pending.user_id)

    async def disconnect(self, user_id: str) -> None:
        """Clear the provider credential; a no-op if nothing is linked."""
        await clear_connection(user_id, self.provider, db_session=self.db_session)

    def _failed(self, reason: LinkError, pending: Optional[PendingLink]) -> LinkOutcome:
        return LinkOutcome(
            provider=self.provider,
            state=LinkState.FAILED,
            user_id=pending.user_id if pending else None,
            error=reason,
        )
