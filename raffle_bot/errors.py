from __future__ import annotations


class RaffleBotError(Exception):
    """Base class for every domain error surfaced to a command invoker."""


class InvalidValueError(RaffleBotError, ValueError):
    """Base exception for validation failures."""


class InvalidCapacityError(InvalidValueError):
    """Raised when a raffle capacity falls outside the supported range."""


class InvalidDurationError(InvalidValueError):
    """Raised when a duration string cannot be parsed."""


class NotFoundError(RaffleBotError):
    pass


class ForbiddenError(RaffleBotError):
    pass


class LockedError(RaffleBotError):
    """Another holder's claim window currently blocks the action."""


class AlreadySplitError(RaffleBotError):
    pass


class FreeRaffleNoSplitError(RaffleBotError):
    pass


class RaffleClosedError(RaffleBotError):
    pass


class NoEntriesError(RaffleBotError):
    pass


class AlreadyDrawnError(RaffleBotError):
    pass


class AlreadyEndedError(RaffleBotError):
    pass


class NotEndedError(RaffleBotError):
    pass


class StorageError(RaffleBotError):
    """Raised when the persisted document cannot be read or written."""


__all__ = [
    "RaffleBotError",
    "InvalidValueError",
    "InvalidCapacityError",
    "InvalidDurationError",
    "NotFoundError",
    "ForbiddenError",
    "LockedError",
    "AlreadySplitError",
    "FreeRaffleNoSplitError",
    "RaffleClosedError",
    "NoEntriesError",
    "AlreadyDrawnError",
    "AlreadyEndedError",
    "NotEndedError",
    "StorageError",
]
