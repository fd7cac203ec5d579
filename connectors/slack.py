"""
SlackConnector — OAuth v2 for Slack user tokens.

Requests *user* scopes so the dashboard reads channels and history as the
person who linked the workspace, not as a bot.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx

from config.settings import config
from connectors.base import BaseConnector

logger = logging.getLogger(__name__)

# Slack OAuth v2 endpoints
_SLACK_AUTH_URL = "https://slack.com/oauth/v2/authorize"
_SLACK_TOKEN_URL = "https://slack.com/api/oauth.v2.access"
_SLACK_AUTH_TEST_URL = "https://slack.com/api/auth.test"


class SlackConnector(BaseConnector):
    """OAuth2 connector for Slack."""

    default_expires_in = 86400

    @property
    def provider_name(self) -> str:
        return "slack"

    @property
    def display_name(self) -> str:
        return "Slack"

    @property
    def scopes(self) -> List[str]:
        return [
            "channels:read",
            "channels:history",
            "groups:read",
            "users:read",
            "team:read",
        ]

    def is_configured(self) -> bool:
        return bool(config.slack_client_id and config.slack_client_secret)

    def get_auth_url(
        self,
        state: str,
        *,
        redirect_uri: Optional[str] = None,
        scopes: Optional[List[str]] = None,
    ) -> str:
        params = {
            "client_id": config.slack_client_id,
            "redirect_uri": redirect_uri or self.redirect_uri(),
            "user_scope": ",".join(scopes if scopes is not None else self.scopes),
            "state": state,
        }
        return f"{_SLACK_AUTH_URL}?{urlencode(params)}"

    async def handle_callback(
        self,
        code: str,
        *,
        redirect_uri: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Exchange auth code for a user token and resolve the identity."""
        async with httpx.AsyncClient() as client:
            # 1. Exchange code for token
            token_resp = await client.post(
                _SLACK_TOKEN_URL,
                data={
                    "client_id": config.slack_client_id,
                    "client_secret": config.slack_client_secret,
                    "code": code,
                    "redirect_uri": redirect_uri or self.redirect_uri(),
                },
            )
            token_resp.raise_for_status()
            data = token_resp.json()

            # Slack reports failures with HTTP 200 and ok=false
            if not data.get("ok"):
                raise ValueError(f"Slack OAuth error: {data.get('error', 'unknown')}")

            authed_user = data.get("authed_user") or {}
            access_token = authed_user.get("access_token")
            if not access_token:
                raise ValueError("Slack OAuth error: no user token granted")

            # 2. Resolve user + team names
            ident_resp = await client.post(
                _SLACK_AUTH_TEST_URL,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            ident_resp.raise_for_status()
            ident = ident_resp.json()
            if not ident.get("ok"):
                raise ValueError(f"Slack auth.test error: {ident.get('error', 'unknown')}")

        team = data.get("team") or {}
        return {
            "access_token": access_token,
            "refresh_token": authed_user.get("refresh_token"),
            "expires_in": authed_user.get("expires_in"),
            "scopes": [s for s in authed_user.get("scope", "").split(",") if s],
            "account_id": authed_user.get("id") or ident.get("user_id", ""),
            "account_label": ident.get("user", ""),
            "email": "",
            "provider_meta": {
                "team_id": team.get("id") or ident.get("team_id"),
                "team_name": team.get("name") or ident.get("team"),
                "user_id": ident.get("user_id"),
                "username": ident.get("user"),
            },
        }
