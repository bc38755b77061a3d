from __future__ import annotations


class SessionError(Exception):
    """Base class for every error the session core returns to callers."""


class UpstreamUnavailable(SessionError):
    """A price or quote source failed (timeout, HTTP error, malformed payload)."""

    def __init__(self, source: str, message: str = ""):
        self.source = source
        super().__init__(f"{source}: {message}" if message else source)


class InvalidStateTransition(SessionError):
    """Command not allowed in the current session state; the session is unchanged."""


class ValidationError(SessionError):
    """Caller supplied an out-of-range or malformed value."""


class PersistenceFailure(SessionError):
    """Snapshot read or write failed."""
