"""
GitHubConnector — OAuth2 for GitHub.

Serves two flows: the primary login (identity provider, narrow scopes) and
account linking with repository access.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx

from config.settings import config
from connectors.base import BaseConnector

logger = logging.getLogger(__name__)

# GitHub OAuth2 endpoints
_GH_AUTH_URL = "https://github.com/login/oauth/authorize"
_GH_TOKEN_URL = "https://github.com/login/oauth/access_token"
_GH_API = "https://api.github.com"

LOGIN_SCOPES = ["user:email"]


class GitHubConnector(BaseConnector):
    """OAuth2 connector for GitHub."""

    # Classic OAuth app tokens do not expire
    default_expires_in = None

    @property
    def provider_name(self) -> str:
        return "github"

    @property
    def display_name(self) -> str:
        return "GitHub"

    @property
    def scopes(self) -> List[str]:
        return ["repo", "read:user", "user:email"]

    def is_configured(self) -> bool:
        return bool(config.github_client_id and config.github_client_secret)

    def login_redirect_uri(self) -> str:
        return f"{config.oauth_redirect_base}/auth/github/callback"

    def get_auth_url(
        self,
        state: str,
        *,
        redirect_uri: Optional[str] = None,
        scopes: Optional[List[str]] = None,
    ) -> str:
        params = {
            "client_id": config.github_client_id,
            "redirect_uri": redirect_uri or self.redirect_uri(),
            "scope": " ".join(scopes if scopes is not None else self.scopes),
            "state": state,
        }
        return f"{_GH_AUTH_URL}?{urlencode(params)}"

    async def handle_callback(
        self,
        code: str,
        *,
        redirect_uri: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Exchange auth code for a token and fetch the user profile."""
        async with httpx.AsyncClient() as client:
            # 1. Exchange code for token
            token_resp = await client.post(
                _GH_TOKEN_URL,
                data={
                    "client_id": config.github_client_id,
                    "client_secret": config.github_client_secret,
                    "code": code,
                    "redirect_uri": redirect_uri or self.redirect_uri(),
                },
                headers={"Accept": "application/json"},
            )
            token_resp.raise_for_status()
            token_data = token_resp.json()

            if "error" in token_data:
                raise ValueError(
                    f"GitHub OAuth error: {token_data.get('error_description', token_data['error'])}"
                )

            headers = {
                "Authorization": f"Bearer {token_data['access_token']}",
                "Accept": "application/vnd.github+json",
            }

            # 2. Fetch user profile
            user_resp = await client.get(f"{_GH_API}/user", headers=headers)
            user_resp.raise_for_status()
            user = user_resp.json()

            # 3. Private primary emails are only visible via /user/emails
            email = user.get("email")
            if not email:
                email = await self._primary_email(client, headers)

        return {
            "access_token": token_data["access_token"],
            "refresh_token": token_data.get("refresh_token"),
            "expires_in": token_data.get("expires_in"),
            "scopes": [s for s in token_data.get("scope", "").split(",") if s],
            "account_id": str(user.get("id", "")),
            "account_label": user.get("login", ""),
            "email": email or "",
            "provider_meta": {
                "login": user.get("login"),
                "name": user.get("name"),
                "avatar_url": user.get("avatar_url"),
                "html_url": user.get("html_url"),
            },
        }

    async def _primary_email(
        self, client: httpx.AsyncClient, headers: Dict[str, str]
    ) -> Optional[str]:
        try:
            resp = await client.get(f"{_GH_API}/user/emails", headers=headers)
            resp.raise_for_status()
        except httpx.HTTPError:
            logger.warning("Could not read GitHub user emails", exc_info=True)
            return None
        emails = resp.json()
        for entry in emails:
            if entry.get("primary"):
                return entry.get("email")
        return emails[0].get("email") if emails else None
