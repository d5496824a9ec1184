"""Service-layer exceptions.

Routes translate these to HTTP status codes; services never import FastAPI.
"""


class NotFoundError(Exception):
    """The entity does not exist (or is invisible to the caller)."""


class PermissionDeniedError(Exception):
    """The caller may see the entity but not perform this action."""


class ConflictError(Exception):
    """The request collides with existing state (duplicates etc.)."""


class InvalidRequestError(Exception):
    """Well-formed but semantically invalid request."""


class AccountStatusError(Exception):
    """Login refused because the account is pending or rejected."""

    def __init__(self, message: str, reason: str | None = None):
        super().__init__(message)
        self.reason = reason


class AuthenticationError(Exception):
    """Credentials did not match an account."""
