"""
SQLAlchemy ORM models: the account, its per-provider credentials and the
pending links of in-flight OAuth flows.

Column types are kept portable (``Uuid``, ``JSON``) so the same models run
on PostgreSQL in production and on SQLite in tests.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, relationship


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class User(Base):
    """Account anchored to the primary (GitHub) login identity."""

    __tablename__ = "users"

    user_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    github_id = Column(String(64), unique=True, nullable=False)
    username = Column(String(128), nullable=False)
    display_name = Column(String(256), nullable=False)
    email = Column(String(255), nullable=False, default="")
    avatar_url = Column(Text)
    profile_url = Column(Text)
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    connections = relationship(
        "UserConnection", back_populates="user", cascade="all, delete-orphan"
    )


class UserConnection(Base):
    """Secondary integration credential, one row per (user, provider)."""

    __tablename__ = "user_connections"
    __table_args__ = (
        UniqueConstraint("user_id", "provider", name="uq_user_connections_user_provider"),
    )

    connection_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Uuid(as_uuid=True), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False
    )
    provider = Column(String(32), nullable=False)
    connected = Column(Boolean, nullable=False, default=False)
    access_token = Column(Text)
    refresh_token = Column(Text)
    email = Column(String(255))
    account_id = Column(String(256))
    account_label = Column(String(256))
    scopes = Column(JSON, default=list)
    provider_meta = Column(JSON, default=dict)
    expires_at = Column(DateTime(timezone=True))
    connected_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    user = relationship("User", back_populates="connections")


class PendingLinkRecord(Base):
    """
    Server-side half of an in-flight linking flow.

    One row per (browser session, provider); ``state`` is the OAuth state
    nonce sent to the provider.  The row is deleted by the first callback
    that reads it.
    """

    __tablename__ = "pending_links"
    __table_args__ = (
        UniqueConstraint("session_id", "provider", name="uq_pending_links_session_provider"),
    )

    state = Column(String(64), primary_key=True)
    session_id = Column(String(64), nullable=False, index=True)
    provider = Column(String(32), nullable=False)
    # Not a foreign key: a link may outlive its account and must then fail as no_user
    user_id = Column(String(64), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
