"""
Google OAuth2 web flow shared by the Gmail and Google Calendar connectors.

Both products use the same consent and token endpoints and the same client
credentials; they differ only in slug, display name and scopes.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx

from config.settings import config
from connectors.base import BaseConnector

logger = logging.getLogger(__name__)

# Google OAuth2 endpoints
_GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
_GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
_GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

PROFILE_SCOPES = [
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
]


class GoogleConnector(BaseConnector):
    """Base for Google products linked through Google's OAuth2."""

    default_expires_in = 3600

    def is_configured(self) -> bool:
        return bool(config.google_client_id and config.google_client_secret)

    def get_auth_url(
        self,
        state: str,
        *,
        redirect_uri: Optional[str] = None,
        scopes: Optional[List[str]] = None,
    ) -> str:
        params = {
            "client_id": config.google_client_id,
            "redirect_uri": redirect_uri or self.redirect_uri(),
            "response_type": "code",
            "scope": " ".join(scopes if scopes is not None else self.scopes),
            "access_type": "offline",       # gets refresh_token
            "prompt": "consent",            # force consent to always get refresh_token
            "include_granted_scopes": "true",
            "state": state,
        }
        return f"{_GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def handle_callback(
        self,
        code: str,
        *,
        redirect_uri: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Exchange auth code for tokens."""
        async with httpx.AsyncClient() as client:
            # 1. Exchange code for tokens
            token_resp = await client.post(
                _GOOGLE_TOKEN_URL,
                data={
                    "code": code,
                    "client_id": config.google_client_id,
                    "client_secret": config.google_client_secret,
                    "redirect_uri": redirect_uri or self.redirect_uri(),
                    "grant_type": "authorization_code",
                },
            )
            token_resp.raise_for_status()
            token_data = token_resp.json()

            # 2. Fetch user info to get email (account_label)
            headers = {"Authorization": f"Bearer {token_data['access_token']}"}
            user_resp = await client.get(_GOOGLE_USERINFO_URL, headers=headers)
            user_resp.raise_for_status()
            user_info = user_resp.json()

        return {
            "access_token": token_data["access_token"],
            "refresh_token": token_data.get("refresh_token"),
            "expires_in": token_data.get("expires_in"),
            "scopes": token_data.get("scope", "").split(),
            "account_id": user_info.get("id", user_info.get("email", "")),
            "account_label": user_info.get("email", ""),
            "email": user_info.get("email", ""),
            "provider_meta": {
                "name": user_info.get("name"),
                "picture": user_info.get("picture"),
            },
        }


class GmailConnector(GoogleConnector):
    """OAuth2 connector for Gmail (read-only inbox access)."""

    @property
    def provider_name(self) -> str:
        return "gmail"

    @property
    def display_name(self) -> str:
        return "Gmail"

    @property
    def scopes(self) -> List[str]:
        return ["https://www.googleapis.com/auth/gmail.readonly", *PROFILE_SCOPES]


class GoogleCalendarConnector(GoogleConnector):
    """OAuth2 connector for Google Calendar."""

    @property
    def provider_name(self) -> str:
        return "google-calendar"

    @property
    def display_name(self) -> str:
        return "Google Calendar"

    @property
    def scopes(self) -> List[str]:
        return [
            "https://www.googleapis.com/auth/calendar.readonly",
            "https://www.googleapis.com/auth/calendar.events",
            *PROFILE_SCOPES,
        ]
