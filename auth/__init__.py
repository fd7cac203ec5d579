"""
auth — primary login and session identity.

Provides:
  • GitHub login routes (``/auth/github``, callback, current user, logout)
  • ``get_current_user_id`` / ``get_current_user`` FastAPI dependencies
    reading the signed session cookie
"""
