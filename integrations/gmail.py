"""
Gmail fetcher — latest inbox messages as dashboard cards.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional

from integrations.errors import AuthExpiredError, IntegrationError
from integrations.google_api import execute

logger = logging.getLogger(__name__)

_PROVIDER = "gmail"

_FROM_RE = re.compile(r"^(.*?)\s*<(.+?)>$")


def parse_sender(raw: str) -> Dict[str, str]:
    """Split a ``From`` header into display name and address."""
    raw = raw.strip()
    match = _FROM_RE.match(raw)
    if match:
        name = match.group(1).replace('"', "").strip()
        address = match.group(2).strip()
        return {"name": name or address, "email": address}
    return {"name": raw, "email": raw}


def _parse_date(header: str, internal_date: Optional[str]) -> Optional[str]:
    if header:
        try:
            parsed = parsedate_to_datetime(header)
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed.astimezone(timezone.utc).isoformat()
        except (TypeError, ValueError):
            pass
    if internal_date:
        return datetime.fromtimestamp(int(internal_date) / 1000, tz=timezone.utc).isoformat()
    return None


def shape_message(msg: Dict[str, Any]) -> Dict[str, Any]:
    """Extract the card fields from a Gmail API message resource."""
    headers = {h["name"].lower(): h["value"] for h in msg.get("payload", {}).get("headers", [])}
    labels = msg.get("labelIds") or []
    return {
        "id": msg.get("id"),
        "subject": headers.get("subject", ""),
        "from": parse_sender(headers.get("from", "")),
        "snippet": msg.get("snippet", ""),
        "date": _parse_date(headers.get("date", ""), msg.get("internalDate")),
        "isRead": "UNREAD" not in labels,
        "isImportant": "IMPORTANT" in labels,
    }


async def list_inbox(service: Any, limit: int = 10) -> List[Dict[str, Any]]:
    """
    Latest ``limit`` inbox messages.

    A message that fails to load is skipped; an expired token on any call
    propagates.
    """
    listing = await execute(
        _PROVIDER,
        lambda: service.users().messages().list(userId="me", maxResults=limit, q="in:inbox"),
    )

    emails: List[Dict[str, Any]] = []
    for meta in listing.get("messages", []):
        try:
            msg = await execute(
                _PROVIDER,
                lambda: service.users().messages().get(
                    userId="me",
                    id=meta["id"],
                    format="metadata",
                    metadataHeaders=["Subject", "From", "Date"],
                ),
            )
        except AuthExpiredError:
            raise
        except IntegrationError as exc:
            logger.warning("Skipping Gmail message %s: %s", meta.get("id"), exc)
            continue
        emails.append(shape_message(msg))

    logger.info("list_inbox → %d messages", len(emails))
    return emails
