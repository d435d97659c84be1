"""
Error taxonomy for the chat relay.

Each error carries the HTTP status it maps to when it is raised before
the response stream has started.
"""
from typing import Optional


class RelayError(Exception):
    """Base class for failures surfaced by the relay and the store."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class AuthError(RelayError):
    """No valid caller identity is attached to the request."""

    status_code = 401


class PersistenceError(RelayError):
    """The store is unavailable or rejected a read or write."""


class ConversationNotFoundError(PersistenceError):
    """The conversation does not exist or belongs to another user."""

    status_code = 404


class UpstreamError(RelayError):
    """The completion source failed to open or failed mid-stream."""
