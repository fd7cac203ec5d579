"""
BaseConnector — abstract interface for all OAuth2 connectors.

Every provider (GitHub, Gmail, Google Calendar, Slack) subclasses this and
supplies its endpoints, scopes and the code → token exchange.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from config.settings import config


class BaseConnector(ABC):
    """Abstract base for all OAuth2 connectors."""

    # Seconds until an access token expires when the token response omits
    # ``expires_in``.  ``None`` means the provider's tokens do not expire.
    default_expires_in: Optional[int] = 3600

    # ── Identity ────────────────────────────────────────────────────────
    @property
    @abstractmethod
    def provider_name(self) -> str:
        """URL slug: 'github', 'gmail', 'google-calendar', 'slack'."""
        ...

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Human-readable: 'GitHub', 'Gmail', 'Google Calendar', 'Slack'."""
        ...

    @property
    @abstractmethod
    def scopes(self) -> List[str]:
        """OAuth scopes requested when linking this provider."""
        ...

    # ── OAuth flow ──────────────────────────────────────────────────────

    def redirect_uri(self) -> str:
        """Callback URL registered with the provider for account linking."""
        return f"{config.oauth_redirect_base}/api/{self.provider_name}/callback"

    @abstractmethod
    def get_auth_url(
        self,
        state: str,
        *,
        redirect_uri: Optional[str] = None,
        scopes: Optional[List[str]] = None,
    ) -> str:
        """
        Build the provider's OAuth2 authorization URL.

        Parameters
        ----------
        state : str
            Opaque nonce echoed back on the callback.
        redirect_uri : str, optional
            Overrides :meth:`redirect_uri` (the login flow uses its own).
        scopes : list of str, optional
            Overrides :attr:`scopes`.

        Returns
        -------
        The full URL to redirect the browser to.
        """
        ...

    @abstractmethod
    async def handle_callback(
        self,
        code: str,
        *,
        redirect_uri: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Exchange the authorization code for tokens and fetch the profile.

        Returns
        -------
        dict with keys:
            access_token, refresh_token, expires_in, scopes,
            account_id, account_label, email, provider_meta

        Raises
        ------
        httpx.HTTPError or ValueError
            When the exchange fails for any reason.
        """
        ...

    # ── Helpers ─────────────────────────────────────────────────────────

    def is_configured(self) -> bool:
        """
        Return True if this connector has all required config
        (client id and secret).
        """
        return True
