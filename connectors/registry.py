"""
ConnectorRegistry — discovers and provides access to all connectors.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from connectors.base import BaseConnector
from connectors.github import GitHubConnector
from connectors.google import GmailConnector, GoogleCalendarConnector
from connectors.slack import SlackConnector

logger = logging.getLogger(__name__)

# ── All known connectors: add new ones here ──────────────────────────


def _all_connectors() -> List[BaseConnector]:
    return [
        GitHubConnector(),
        GmailConnector(),
        GoogleCalendarConnector(),
        SlackConnector(),
    ]


class ConnectorRegistry:
    """Singleton registry for all OAuth connectors."""

    _instance: Optional["ConnectorRegistry"] = None

    def __new__(cls) -> "ConnectorRegistry":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._connectors = {}
            cls._instance._discovered = False
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Destroy singleton — only useful in test teardown."""
        cls._instance = None

    def discover(self) -> None:
        """Register all configured connectors."""
        if self._discovered:
            return
        for conn in _all_connectors():
            if conn.is_configured():
                self.register(conn)
            else:
                logger.warning(
                    "Connector %s skipped — not configured (missing client_id/secret)",
                    conn.provider_name,
                )
        self._discovered = True

    def register(self, connector: BaseConnector) -> None:
        self._connectors[connector.provider_name] = connector
        logger.info(
            "Connector registered: %s (%s)",
            connector.display_name,
            connector.provider_name,
        )

    def get(self, provider: str) -> Optional[BaseConnector]:
        """Get a connector by provider slug."""
        return self._connectors.get(provider)

    def list_providers(self) -> List[Dict[str, object]]:
        """Return info about every known provider and whether it is usable."""
        return [
            {
                "provider": c.provider_name,
                "displayName": c.display_name,
                "configured": c.provider_name in self._connectors,
            }
            for c in _all_connectors()
        ]
