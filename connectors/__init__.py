"""
connectors — OAuth integration module for external services.

Provides a generic connector framework that handles:
  • OAuth2 auth-URL generation
  • Callback handling (code → token exchange)
  • Session-scoped pending-link correlation (connect → callback)
  • Per-user credential storage and disconnect

Each provider (GitHub, Gmail, Google Calendar, Slack) is a subclass of
BaseConnector.
"""
