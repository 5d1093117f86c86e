"""Exceptions raised by pihole-listsync."""

from typing import Optional


class ListSyncError(Exception):
    """Base class for all pihole-listsync errors."""


class ConfigError(ListSyncError):
    """Configuration file is missing, unreadable or invalid."""


class LockError(ListSyncError):
    """The process lock could not be acquired.

    ``held`` is True when another instance already holds it.
    """

    def __init__(self, message: str, held: bool = False):
        super().__init__(message)
        self.held = held


class FetchError(ListSyncError):
    """A remote or local list could not be retrieved.

    ``status`` carries the HTTP status code when the server answered with an
    error, and is ``None`` for transport or file system failures.
    """

    def __init__(self, source: str, reason: str, status: Optional[int] = None):
        super().__init__(f"{source}: {reason}")
        self.source = source
        self.reason = reason
        self.status = status
