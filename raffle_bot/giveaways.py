from __future__ import annotations

import logging
import random
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from .errors import AlreadyEndedError, InvalidValueError, NotEndedError, NotFoundError
from .models import Giveaway, now_ms
from .storage import DocumentStore, GiveawayRepository
from .validation import parse_duration, validate_winner_count

log = logging.getLogger(__name__)

MAX_PRIZE_LENGTH = 200


class JoinStatus(str, Enum):
    JOINED = "joined"
    ALREADY_ENTERED = "already_entered"
    ENDED = "ended"
    NOT_FOUND = "not_found"


@dataclass(slots=True, frozen=True)
class JoinOutcome:
    status: JoinStatus
    entries: int = 0

    @property
    def ok(self) -> bool:
        return self.status is JoinStatus.JOINED


@dataclass(slots=True, frozen=True)
class GiveawayDraft:
    prize: str
    duration_ms: int
    winner_count: int


class GiveawayService:
    """Giveaway lifecycle: entries, the one-time end and rerolls.

    Every method runs synchronously from read to persist, so a manual end
    racing the timer sees ``AlreadyEndedError`` instead of drawing twice.
    """

    def __init__(
        self,
        store: DocumentStore,
        giveaways: GiveawayRepository,
        *,
        clock: Callable[[], int] = now_ms,
        rng: random.Random | None = None,
    ) -> None:
        self._store = store
        self._giveaways = giveaways
        self._clock = clock
        self._rng = rng or random.Random()

    def now(self) -> int:
        return self._clock()

    def get(self, message_id: str) -> Giveaway | None:
        return self._giveaways.get(str(message_id))

    def prepare(self, prize: str, duration_spec: str, winner_count: int) -> GiveawayDraft:
        prize = (prize or "").strip()
        if not prize:
            raise InvalidValueError("Give the giveaway a prize.")
        if len(prize) > MAX_PRIZE_LENGTH:
            raise InvalidValueError(
                f"Prize must be at most {MAX_PRIZE_LENGTH} characters."
            )
        return GiveawayDraft(
            prize=prize,
            duration_ms=parse_duration(duration_spec),
            winner_count=validate_winner_count(winner_count),
        )

    def create(
        self,
        draft: GiveawayDraft,
        *,
        message_id: int | str,
        guild_id: int | str,
        channel_id: int | str,
        host_id: int | str,
        sponsor_id: int | str | None = None,
        started_at: int | None = None,
    ) -> Giveaway:
        started = started_at if started_at is not None else self._clock()
        giveaway = Giveaway(
            message_id=str(message_id),
            guild_id=str(guild_id),
            channel_id=str(channel_id),
            prize=draft.prize,
            winner_count=draft.winner_count,
            ends_at=started + draft.duration_ms,
            started_at=started,
            host_id=str(host_id),
            sponsor_id=str(sponsor_id) if sponsor_id else None,
        )
        self._giveaways.save(giveaway)
        log.info(
            "Giveaway %s created for %r (%s winner(s))",
            giveaway.message_id,
            giveaway.prize,
            giveaway.winner_count,
        )
        return giveaway

    def join(self, message_id: int | str, participant_id: int | str) -> JoinOutcome:
        giveaway = self._giveaways.get(str(message_id))
        if giveaway is None:
            return JoinOutcome(JoinStatus.NOT_FOUND)
        entries = len(giveaway.participants)
        if giveaway.ended or self._clock() >= giveaway.ends_at:
            return JoinOutcome(JoinStatus.ENDED, entries)
        if not giveaway.add_participant(str(participant_id)):
            return JoinOutcome(JoinStatus.ALREADY_ENTERED, entries)
        self._giveaways.save(giveaway)
        return JoinOutcome(JoinStatus.JOINED, len(giveaway.participants))

    def end(self, message_id: int | str, *, reroll: bool = False) -> Giveaway:
        giveaway = self._giveaways.get(str(message_id))
        if giveaway is None:
            raise NotFoundError("Giveaway not found.")
        if reroll and not giveaway.ended:
            raise NotEndedError("That giveaway hasn't ended yet; end it first.")
        if not reroll and giveaway.ended:
            raise AlreadyEndedError("That giveaway already ended.")

        pool = list(dict.fromkeys(giveaway.participants))
        count = min(giveaway.winner_count, len(pool))
        giveaway.last_winners = self._rng.sample(pool, count)
        if not reroll:
            giveaway.ended = True
            giveaway.ended_at = self._clock()
        self._giveaways.save(giveaway)
        log.info(
            "Giveaway %s %s with %s winner(s) from %s entries",
            giveaway.message_id,
            "rerolled" if reroll else "ended",
            count,
            len(pool),
        )
        return giveaway

    def list_open(self) -> list[Giveaway]:
        return self._giveaways.list_open()

    def due(self, now: int | None = None) -> list[Giveaway]:
        current = self._clock() if now is None else now
        return [giveaway for giveaway in self.list_open() if giveaway.ends_at <= current]


__all__ = [
    "MAX_PRIZE_LENGTH",
    "JoinStatus",
    "JoinOutcome",
    "GiveawayDraft",
    "GiveawayService",
]
