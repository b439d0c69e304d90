"""
Exception types shared across TalkItOut.

Provider failures never surface as these: the gateways catch them and fall
back to canned content. These are raised at the client/session boundary.
"""

from typing import Optional


class TalkItOutError(Exception):
    """Base class for TalkItOut errors."""


class DialogueError(TalkItOutError):
    """A dialogue request could not be completed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SessionStateError(TalkItOutError):
    """An operation was attempted in a session state that does not allow it."""
