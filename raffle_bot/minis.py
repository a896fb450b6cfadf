"""Mini raffles: child raffles whose winner earns slots in the parent raffle."""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from dataclasses import dataclass

from .engine import ClaimResult, CloseOutcome, RaffleEngine
from .errors import (
    AlreadyDrawnError,
    InvalidValueError,
    NoEntriesError,
    NotFoundError,
    RaffleClosedError,
)
from .models import MiniLink, Raffle, Reservation, now_ms
from .reservations import ReservationLedger
from .storage import DocumentStore, MiniRepository, RaffleRepository
from .validation import (
    round_half_up,
    validate_mini_capacity,
    validate_ticket_count,
    validate_unit_price,
)

log = logging.getLogger(__name__)

DEFAULT_MINI_SLOTS = 6
DEFAULT_CLAIM_WINDOW_MINUTES = 10
# Undrawn minis hold their parent capacity until drawn.
PLACEHOLDER_MINUTES = 30 * 24 * 60


def mini_price_label(ticket_count: int, unit_price: int, pot: int, per_slot: int) -> str:
    return f"{ticket_count}x main @ {unit_price}c = {pot}c pot • {per_slot}c/slot"


@dataclass(slots=True, frozen=True)
class MiniPlan:
    parent_key: str
    ticket_count: int
    capacity: int
    unit_price: int
    pot: int
    per_slot: int

    @property
    def label(self) -> str:
        return mini_price_label(self.ticket_count, self.unit_price, self.pot, self.per_slot)


@dataclass(slots=True, frozen=True)
class DrawPick:
    winner_id: str
    winning_slot: int


@dataclass(slots=True)
class DrawResult:
    mini_key: str
    parent_key: str
    winner_id: str
    winning_slot: int
    ticket_count: int
    reservation: Reservation | None
    auto_fill: ClaimResult | None = None
    mini_close: CloseOutcome | None = None

    @property
    def parent_full(self) -> bool:
        return self.auto_fill is not None and self.auto_fill.became_full


class MiniRaffleOrchestrator:
    def __init__(
        self,
        store: DocumentStore,
        engine: RaffleEngine,
        raffles: RaffleRepository,
        ledger: ReservationLedger,
        minis: MiniRepository,
        *,
        clock: Callable[[], int] = now_ms,
        rng: random.Random | None = None,
        claim_window_minutes: float = DEFAULT_CLAIM_WINDOW_MINUTES,
    ) -> None:
        self._store = store
        self._engine = engine
        self._raffles = raffles
        self._ledger = ledger
        self._minis = minis
        self._clock = clock
        self._rng = rng or random.Random()
        self.claim_window_minutes = claim_window_minutes

    def link_for(self, mini_key: str) -> MiniLink | None:
        return self._minis.get(mini_key)

    def unclaimed_tickets(self, parent_key: str, holder_id: str) -> int:
        """Main slots a mini winner has won but not claimed yet."""
        return self._minis.get_entitlement(parent_key, holder_id).remaining

    def plan(
        self,
        parent: Raffle | None,
        ticket_count: int,
        mini_capacity: int,
        unit_price: int,
    ) -> MiniPlan:
        """Validate a mini request against its parent without changing anything."""
        validate_ticket_count(ticket_count)
        validate_mini_capacity(mini_capacity)
        validate_unit_price(unit_price)
        if parent is None or parent.capacity <= 0:
            raise NotFoundError("Start a main raffle in this thread first.")
        if self._minis.is_mini(parent.key):
            raise InvalidValueError("Run /raffle mini inside the main raffle thread.")
        if not parent.active:
            raise RaffleClosedError("The main raffle is closed.")
        mains_left = self._engine.compute_mains_left(parent)
        if ticket_count > mains_left:
            raise InvalidValueError(
                f"Only {mains_left} main slot(s) left; can't reserve {ticket_count}."
            )
        pot = ticket_count * unit_price
        return MiniPlan(
            parent_key=parent.key,
            ticket_count=ticket_count,
            capacity=mini_capacity,
            unit_price=unit_price,
            pot=pot,
            per_slot=round_half_up(pot, mini_capacity),
        )

    def create_mini(
        self,
        parent: Raffle,
        mini_scope_id: int | str,
        mini_channel_id: int | str,
        ticket_count: int,
        mini_capacity: int = DEFAULT_MINI_SLOTS,
        unit_price: int = 0,
        *,
        host_id: str | None = None,
    ) -> tuple[Raffle, MiniLink]:
        plan = self.plan(parent, ticket_count, mini_capacity, unit_price)
        now = self._clock()
        with self._store.transaction():
            mini = self._raffles.get_or_create(mini_scope_id, mini_channel_id)
            mini.reset(
                capacity=plan.capacity,
                price_text=plan.label,
                slot_price=plan.per_slot,
                host_id=host_id,
                ends_at=None,
                created_at=now,
            )
            self._raffles.save(mini)
            link = MiniLink(
                mini_key=mini.key,
                parent_key=parent.key,
                ticket_count=plan.ticket_count,
                created_at=now,
            )
            self._minis.save(link)
            self._ledger.set(
                parent.key, link.placeholder, plan.ticket_count, PLACEHOLDER_MINUTES
            )
        log.info(
            "Mini %s created for %s (%s ticket(s), %s slots)",
            mini.key,
            parent.key,
            plan.ticket_count,
            plan.capacity,
        )
        return mini, link

    def draw(self, mini: Raffle) -> DrawPick:
        pool = [
            (number, holder)
            for number, holders in sorted(mini.claims.items())
            for holder in holders.holders
        ]
        if not pool:
            raise NoEntriesError("No entries in this mini raffle yet.")
        number, holder = self._rng.choice(pool)
        return DrawPick(winner_id=holder, winning_slot=number)

    def complete_draw(self, mini: Raffle) -> DrawResult:
        link = self._minis.get(mini.key)
        if link is None:
            raise NotFoundError("This thread is not a mini raffle.")
        if link.drawn:
            raise AlreadyDrawnError(
                f"This mini was already drawn: <@{link.winner_id}> won."
            )
        if link.cancelled:
            raise RaffleClosedError(
                "The main raffle was restarted, so this mini no longer counts."
            )
        parent = self._raffles.get(link.parent_key)
        if parent is None:
            raise NotFoundError("The main raffle for this mini no longer exists.")
        pick = self.draw(mini)

        with self._store.transaction():
            link.winner_id = pick.winner_id
            link.winning_slot = pick.winning_slot
            self._minis.save(link)
            mini_close = (
                self._engine.close(mini, reason="draw") if mini.active else None
            )

            self._minis.mark_winner(parent.key, pick.winner_id)
            entitlement = self._minis.get_entitlement(parent.key, pick.winner_id)
            entitlement.remaining += link.ticket_count
            self._minis.save_entitlement(parent.key, pick.winner_id, entitlement)

            self._ledger.delete(parent.key, link.placeholder)
            reservation = self._ledger.set(
                parent.key,
                pick.winner_id,
                link.ticket_count,
                self.claim_window_minutes,
            )

            auto_fill = None
            if parent.active and len(parent.open_slots()) <= link.ticket_count:
                auto_fill = self._engine.fill_for_holder(parent, pick.winner_id)
                reservation = auto_fill.reservation

        log.info(
            "Mini %s drawn: %s won on #%s (%s main slot(s))",
            mini.key,
            pick.winner_id,
            pick.winning_slot,
            link.ticket_count,
        )
        return DrawResult(
            mini_key=mini.key,
            parent_key=parent.key,
            winner_id=pick.winner_id,
            winning_slot=pick.winning_slot,
            ticket_count=link.ticket_count,
            reservation=reservation,
            auto_fill=auto_fill,
            mini_close=mini_close,
        )


__all__ = [
    "DEFAULT_MINI_SLOTS",
    "DEFAULT_CLAIM_WINDOW_MINUTES",
    "PLACEHOLDER_MINUTES",
    "mini_price_label",
    "MiniPlan",
    "DrawPick",
    "DrawResult",
    "MiniRaffleOrchestrator",
]
