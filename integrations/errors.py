"""
Errors raised by the provider REST fetchers.

Routes translate these into HTTP responses; the fetchers never build
responses themselves.
"""

from __future__ import annotations


class IntegrationError(Exception):
    """A provider call failed in a way the user cannot fix by re-linking."""

    def __init__(self, provider: str, message: str = "") -> None:
        super().__init__(message or f"{provider} request failed")
        self.provider = provider


class NotConnectedError(IntegrationError):
    """No usable credential is stored for the provider."""


class AuthExpiredError(IntegrationError):
    """The provider rejected the stored credential; the user must re-link."""


class ProviderAPIError(IntegrationError):
    """The provider answered with an application-level error code."""

    def __init__(self, provider: str, code: str) -> None:
        super().__init__(provider, code)
        self.code = code
