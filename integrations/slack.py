"""
Slack fetchers — channel list and recent channel history.

Slack answers most failures with HTTP 200 and ``{"ok": false, "error": ...}``;
token-related codes map to ``AuthExpiredError``, the rest to
``ProviderAPIError``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from integrations.errors import AuthExpiredError, IntegrationError, ProviderAPIError
from integrations.http import http_client, raise_for_provider

logger = logging.getLogger(__name__)

_SLACK_API = "https://slack.com/api"
_PROVIDER = "slack"

_AUTH_ERRORS = {
    "invalid_auth",
    "not_authed",
    "token_revoked",
    "token_expired",
    "account_inactive",
}


async def _call(
    client: httpx.AsyncClient, token: str, method: str, params: Dict[str, Any]
) -> Dict[str, Any]:
    try:
        resp = await client.get(
            f"{_SLACK_API}/{method}",
            headers={"Authorization": f"Bearer {token}"},
            params=params,
        )
    except httpx.HTTPError as exc:
        raise IntegrationError(_PROVIDER, f"Slack request failed: {exc}") from exc
    raise_for_provider(resp, _PROVIDER)

    data = resp.json()
    if not data.get("ok"):
        code = data.get("error", "unknown_error")
        logger.error("Slack API error on %s: %s", method, code)
        if code in _AUTH_ERRORS:
            raise AuthExpiredError(_PROVIDER, code)
        raise ProviderAPIError(_PROVIDER, code)
    return data


def shape_channel(channel: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": channel.get("id"),
        "name": channel.get("name"),
        "isPrivate": channel.get("is_private", False),
        "isMember": channel.get("is_member", False),
        "memberCount": channel.get("num_members"),
        "topic": (channel.get("topic") or {}).get("value", ""),
        "purpose": (channel.get("purpose") or {}).get("value", ""),
    }


def shape_message(message: Dict[str, Any]) -> Dict[str, Any]:
    ts = message.get("ts", "0")
    return {
        "id": ts,
        "text": message.get("text", ""),
        "user": message.get("user"),
        "timestamp": datetime.fromtimestamp(float(ts), tz=timezone.utc).isoformat(),
        "type": message.get("type"),
    }


async def list_channels(
    token: str,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> List[Dict[str, Any]]:
    """Public and private channels visible to the user."""
    async with http_client(client) as c:
        data = await _call(
            c, token, "conversations.list",
            {"types": "public_channel,private_channel", "exclude_archived": "true", "limit": 200},
        )
    return [shape_channel(ch) for ch in data.get("channels", [])]


async def list_messages(
    token: str,
    channel_id: str,
    limit: int = 10,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> List[Dict[str, Any]]:
    """Most recent messages of one channel, newest first."""
    async with http_client(client) as c:
        data = await _call(
            c, token, "conversations.history",
            {"channel": channel_id, "limit": max(1, min(limit, 200))},
        )
    return [shape_message(m) for m in data.get("messages", [])]
