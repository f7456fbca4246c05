"""Exception hierarchy for the migration client.

All client exceptions inherit from StozError so callers can catch broadly.
"""

from __future__ import annotations

from typing import Optional


class StozError(Exception):
    """Base exception for all migration client errors."""


class ConfigError(StozError):
    """Unreadable or invalid client configuration."""


class ValidationError(StozError):
    """A local precondition is not met. Never sent to the server."""


class RequestFailed(StozError):
    """A backend call failed, either in the envelope or in transport."""

    def __init__(self, message: str, code: Optional[int] = None, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
