"""Database models."""

from app.models.account_deletion import account_deletion_requests
from app.models.sessions import remember_tokens, user_sessions
from app.models.users import metadata, users

__all__ = [
    "account_deletion_requests",
    "metadata",
    "remember_tokens",
    "user_sessions",
    "users",
]
