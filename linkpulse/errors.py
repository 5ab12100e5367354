"""Error taxonomy shared by the view controller and the backend client."""

from __future__ import annotations


class LinkPulseError(Exception):
    pass


class ValidationError(LinkPulseError):
    """A required form field is missing. Detected locally, never sent."""


class RemoteError(LinkPulseError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class RemoteReadError(RemoteError):
    """The data store rejected or failed a query."""


class RemoteWriteError(RemoteError):
    """The data store rejected an insert, update or delete."""


class AuthError(RemoteError):
    """The auth provider rejected a sign-in, sign-out or session lookup."""
