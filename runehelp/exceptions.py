# runehelp/exceptions.py
"""
Failure kinds surfaced by the report pipeline.

Each carries a short user_message that is safe to show to callers; the
full message is for logs only.
"""


class RuneHelpError(Exception):
    """Base class for all report pipeline failures."""

    user_message = "Server error"

    def __init__(self, message: str, user_message: str = None):
        super().__init__(message)
        if user_message is not None:
            self.user_message = user_message


class ValidationError(RuneHelpError):
    """Raised when a lookup is rejected before any I/O (blank username)."""

    user_message = "Username is required"


class PlayerNotFoundError(RuneHelpError):
    """Raised when the hiscores service does not know the username."""

    user_message = "Player not found"


class UpstreamError(RuneHelpError):
    """Raised when the hiscores service is unreachable or returns unusable data."""


class PersistenceError(RuneHelpError, RuntimeError):
    """Raised when a snapshot store operation fails."""
