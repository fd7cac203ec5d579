"""
Test helpers: fake OAuth connectors, canned provider profiles, login.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, urlencode, urlparse

from httpx import AsyncClient

from connectors.base import BaseConnector


class FakeConnector(BaseConnector):
    """Connector that never leaves the process."""

    def __init__(
        self,
        slug: str,
        display: str,
        token_data: Dict[str, Any],
        *,
        default_expires_in: Optional[int] = 3600,
    ) -> None:
        self._slug = slug
        self._display = display
        self.token_data = token_data
        self.default_expires_in = default_expires_in
        self.fail_with: Optional[Exception] = None
        self.codes: List[str] = []

    @property
    def provider_name(self) -> str:
        return self._slug

    @property
    def display_name(self) -> str:
        return self._display

    @property
    def scopes(self) -> List[str]:
        return [f"{self._slug}.read"]

    def login_redirect_uri(self) -> str:
        return "http://test/auth/github/callback"

    def get_auth_url(self, state, *, redirect_uri=None, scopes=None) -> str:
        params = {
            "state": state,
            "redirect_uri": redirect_uri or self.redirect_uri(),
            "scope": " ".join(scopes if scopes is not None else self.scopes),
        }
        return f"https://auth.example/{self._slug}/authorize?{urlencode(params)}"

    async def handle_callback(self, code, *, redirect_uri=None) -> Dict[str, Any]:
        self.codes.append(code)
        if self.fail_with is not None:
            raise self.fail_with
        return dict(self.token_data)


def github_profile(github_id: str = "gh-1", login: str = "octocat") -> Dict[str, Any]:
    return {
        "access_token": f"login-token-{github_id}",
        "refresh_token": None,
        "expires_in": None,
        "scopes": ["user:email"],
        "account_id": github_id,
        "account_label": login,
        "email": f"{login}@example.com",
        "provider_meta": {
            "login": login,
            "name": "The Octocat",
            "avatar_url": "https://avatars.example/octocat.png",
            "html_url": f"https://github.com/{login}",
        },
    }


def google_token(email: str = "octo@gmail.com") -> Dict[str, Any]:
    return {
        "access_token": "google-access",
        "refresh_token": "google-refresh",
        "expires_in": None,
        "scopes": ["calendar.readonly"],
        "account_id": "g-123",
        "account_label": email,
        "email": email,
        "provider_meta": {"name": "Octo"},
    }


def slack_token() -> Dict[str, Any]:
    return {
        "access_token": "xoxp-slack",
        "refresh_token": None,
        "expires_in": None,
        "scopes": ["channels:read"],
        "account_id": "U123",
        "account_label": "octo",
        "email": "",
        "provider_meta": {"team_id": "T1", "team_name": "Octo Inc", "user_id": "U123", "username": "octo"},
    }


def query_param(url: str, name: str) -> Optional[str]:
    values = parse_qs(urlparse(url).query).get(name)
    return values[0] if values else None



async def login(client: AsyncClient) -> None:
    """Run the GitHub login round-trip so the client's cookie is logged in."""
    resp = await client.get("/auth/github")
    assert resp.status_code == 307
    state = query_param(resp.headers["location"], "state")
    resp = await client.get("/auth/github/callback", params={"code": "login-code", "state": state})
    assert resp.status_code == 302
    assert resp.headers["location"].endswith("/dashboard")


