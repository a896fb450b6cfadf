"""Raffle and giveaway core: state, slot allocation, minis and timers."""

from .engine import ClaimResult, CloseOutcome, RaffleEngine, RejectReason, Totals
from .errors import (
    AlreadyDrawnError,
    AlreadyEndedError,
    AlreadySplitError,
    ForbiddenError,
    FreeRaffleNoSplitError,
    InvalidCapacityError,
    InvalidDurationError,
    InvalidValueError,
    LockedError,
    NoEntriesError,
    NotEndedError,
    NotFoundError,
    RaffleBotError,
    RaffleClosedError,
    StorageError,
)
from .giveaways import GiveawayService, JoinOutcome, JoinStatus
from .minis import DrawResult, MiniRaffleOrchestrator
from .models import Giveaway, MiniLink, Raffle, Reservation, SingleHolder, SplitHolders
from .reservations import ReservationLedger
from .scheduler import TimerScheduler
from .storage import (
    DocumentStore,
    DynamoDocumentBackend,
    GiveawayRepository,
    JsonFileBackend,
    MiniRepository,
    RaffleRepository,
)

__all__ = [
    "ClaimResult",
    "CloseOutcome",
    "RaffleEngine",
    "RejectReason",
    "Totals",
    "AlreadyDrawnError",
    "AlreadyEndedError",
    "AlreadySplitError",
    "ForbiddenError",
    "FreeRaffleNoSplitError",
    "InvalidCapacityError",
    "InvalidDurationError",
    "InvalidValueError",
    "LockedError",
    "NoEntriesError",
    "NotEndedError",
    "NotFoundError",
    "RaffleBotError",
    "RaffleClosedError",
    "StorageError",
    "GiveawayService",
    "JoinOutcome",
    "JoinStatus",
    "DrawResult",
    "MiniRaffleOrchestrator",
    "Giveaway",
    "MiniLink",
    "Raffle",
    "Reservation",
    "SingleHolder",
    "SplitHolders",
    "ReservationLedger",
    "TimerScheduler",
    "DocumentStore",
    "DynamoDocumentBackend",
    "GiveawayRepository",
    "JsonFileBackend",
    "MiniRepository",
    "RaffleRepository",
]
