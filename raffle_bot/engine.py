from __future__ import annotations

import logging
import random
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum

from .errors import (
    AlreadySplitError,
    ForbiddenError,
    FreeRaffleNoSplitError,
    InvalidValueError,
    LockedError,
    NotFoundError,
    RaffleClosedError,
)
from .models import (
    Raffle,
    Reservation,
    SingleHolder,
    SlotHolders,
    SplitHolders,
    now_ms,
    remove_holder,
)
from .reservations import ReservationLedger
from .storage import DocumentStore, MiniRepository, RaffleRepository
from .validation import dedupe_numbers, parse_slot_price, validate_capacity

log = logging.getLogger(__name__)


class RejectReason(str, Enum):
    OUT_OF_RANGE = "out_of_range"
    LOCKED = "locked"
    TAKEN = "taken"
    LIMIT = "limit"


@dataclass(slots=True)
class HolderCharge:
    holder_id: str
    amount: int
    slots: int


@dataclass(slots=True)
class Totals:
    capacity: int
    claimed_count: int
    participant_count: int
    charged_slot_count: int
    slot_price: int
    per_holder: list[HolderCharge]
    grand_total: int

    def amount_for(self, holder_id: str) -> int:
        for charge in self.per_holder:
            if charge.holder_id == holder_id:
                return charge.amount
        return 0


@dataclass(slots=True)
class CloseOutcome:
    raffle_key: str
    reason: str
    is_mini: bool
    host_id: str | None = None
    totals: Totals | None = None
    totals_due: bool = False


@dataclass(slots=True)
class ClaimResult:
    claimed: list[int] = field(default_factory=list)
    added: list[int] = field(default_factory=list)
    rejected: list[tuple[int, RejectReason]] = field(default_factory=list)
    reservation: Reservation | None = None
    lock: Reservation | None = None
    close: CloseOutcome | None = None

    @property
    def became_full(self) -> bool:
        return self.close is not None

    def rejected_for(self, reason: RejectReason) -> list[int]:
        return [number for number, why in self.rejected if why is reason]


@dataclass(slots=True)
class AssignResult:
    holders: SlotHolders
    previous: SlotHolders | None
    close: CloseOutcome | None = None


@dataclass(slots=True)
class RollResult:
    sides: int
    number: int
    raffle_draw: bool
    holders: tuple[str, ...] = ()

    @property
    def winner_id(self) -> str | None:
        return self.holders[0] if self.holders else None


class RaffleEngine:
    """Slot claims, splits, capacity math and the FULL/close transition."""

    def __init__(
        self,
        store: DocumentStore,
        raffles: RaffleRepository,
        ledger: ReservationLedger,
        minis: MiniRepository,
        *,
        clock: Callable[[], int] = now_ms,
        rng: random.Random | None = None,
    ) -> None:
        self._store = store
        self._raffles = raffles
        self._ledger = ledger
        self._minis = minis
        self._clock = clock
        self._rng = rng or random.Random()

    # ----- Lookup -----
    def get_raffle(self, key: str) -> Raffle | None:
        return self._raffles.get(key)

    def is_mini(self, raffle: Raffle) -> bool:
        return self._minis.is_mini(raffle.key)

    def mini_winners(self, raffle: Raffle) -> set[str]:
        return self._minis.winners(raffle.key)

    def timed_raffles(self) -> list[Raffle]:
        return self._raffles.list_timed()

    # ----- Lifecycle -----
    def start_raffle(
        self,
        scope_id: int | str,
        channel_id: int | str,
        capacity: int,
        price_text: str = "",
        *,
        duration_ms: int | None = None,
        host_id: str | None = None,
    ) -> Raffle:
        validate_capacity(capacity)
        if duration_ms is not None and duration_ms <= 0:
            raise InvalidValueError("Duration must be positive.")
        price_text = (price_text or "").strip()
        now = self._clock()
        with self._store.transaction():
            raffle = self._raffles.get_or_create(scope_id, channel_id)
            raffle.reset(
                capacity=capacity,
                price_text=price_text,
                slot_price=parse_slot_price(price_text),
                host_id=host_id,
                ends_at=now + duration_ms if duration_ms else None,
                created_at=now,
            )
            self._raffles.save(raffle)
            self._minis.clear_parent(raffle.key)
            self._ledger.clear(raffle.key)
            for link in self._minis.cancel_pending(raffle.key):
                mini = self._raffles.get(link.mini_key)
                if mini is not None and mini.active:
                    mini.active = False
                    self._raffles.save(mini)
                log.info("Mini %s voided by restart of %s", link.mini_key, raffle.key)
        log.info(
            "Raffle %s started with %s slots (%s)",
            raffle.key,
            capacity,
            price_text or "no price",
        )
        return raffle

    def close(self, raffle: Raffle, *, reason: str = "full") -> CloseOutcome:
        is_mini = self.is_mini(raffle)
        outcome = CloseOutcome(raffle_key=raffle.key, reason=reason, is_mini=is_mini)
        with self._store.transaction():
            raffle.active = False
            if not is_mini and raffle.host_id and not raffle.full_notified:
                raffle.full_notified = True
                outcome.host_id = raffle.host_id
            if not raffle.totals_posted:
                raffle.totals_posted = True
                outcome.totals_due = True
                outcome.totals = self.compute_totals(raffle)
            self._raffles.save(raffle)
        log.info("Raffle %s closed (%s)", raffle.key, reason)
        return outcome

    def expire(self, key: str) -> CloseOutcome | None:
        raffle = self._raffles.get(key)
        if raffle is None or not raffle.active:
            return None
        return self.close(raffle, reason="timer")

    def _check_full(self, raffle: Raffle) -> CloseOutcome | None:
        if raffle.active and raffle.is_full():
            return self.close(raffle, reason="full")
        return None

    # ----- Capacity -----
    def compute_mains_left(self, raffle: Raffle) -> int:
        reserved = self._ledger.total_active(raffle.key)
        return max(0, raffle.capacity - raffle.claimed_count - reserved)

    def is_full(self, raffle: Raffle) -> bool:
        return raffle.is_full()

    def note_mains_left(self, raffle: Raffle) -> int | None:
        """Return the mains-left count if it changed since it was last announced."""
        left = self.compute_mains_left(raffle)
        if raffle.last_mains_left_announced == left:
            return None
        raffle.last_mains_left_announced = left
        self._raffles.save(raffle)
        return left

    def set_board_message(self, raffle: Raffle, message_id: int | str | None) -> None:
        raffle.board_message_id = str(message_id) if message_id else None
        self._raffles.save(raffle)

    def _require_raffle(self, raffle: Raffle) -> None:
        if raffle.capacity <= 0:
            raise NotFoundError("No raffle found here.")

    def _require_active(self, raffle: Raffle) -> None:
        if not raffle.active or raffle.capacity <= 0:
            raise RaffleClosedError("No active raffle here.")

    def _budget(
        self, raffle: Raffle, holder_id: str, reservation: Reservation | None
    ) -> int:
        if reservation is not None:
            return reservation.remaining
        budget = self.compute_mains_left(raffle)
        if raffle.is_free:
            budget = min(budget, max(0, 1 - raffle.count_holder_claims(holder_id)))
        return budget

    # ----- Entitlements -----
    def _tag_entitlement(
        self, parent_key: str, holder_id: str, numbers: Iterable[int]
    ) -> list[int]:
        if not self._minis.is_winner(parent_key, holder_id):
            return []
        entitlement = self._minis.get_entitlement(parent_key, holder_id)
        if entitlement.remaining <= 0:
            return []
        tagged = list(numbers)[: entitlement.remaining]
        if not tagged:
            return []
        entitlement.slots.extend(tagged)
        entitlement.remaining -= len(tagged)
        self._minis.save_entitlement(parent_key, holder_id, entitlement)
        return tagged

    def _release_entitlement(
        self, parent_key: str, holder_id: str, numbers: Iterable[int]
    ) -> None:
        entitlement = self._minis.get_entitlement(parent_key, holder_id)
        freed = [number for number in numbers if number in entitlement.slots]
        if not freed:
            return
        entitlement.slots = [n for n in entitlement.slots if n not in freed]
        entitlement.remaining += len(freed)
        self._minis.save_entitlement(parent_key, holder_id, entitlement)

    # ----- Claims -----
    def claim_slots(
        self,
        raffle: Raffle,
        holder_id: str,
        numbers: Iterable[int],
        is_privileged: bool = False,
    ) -> ClaimResult:
        self._require_active(raffle)
        result = ClaimResult()
        with self._store.transaction():
            reservation = self._ledger.get(raffle.key, holder_id)
            locked = self._ledger.is_locked_for_others(
                raffle.key, holder_id, is_privileged
            )
            if locked:
                result.lock = self._ledger.active_lock_holder(raffle.key, holder_id)
            budget = self._budget(raffle, holder_id, reservation)

            for number in dedupe_numbers(numbers):
                if not raffle.in_range(number):
                    result.rejected.append((number, RejectReason.OUT_OF_RANGE))
                    continue
                if locked:
                    result.rejected.append((number, RejectReason.LOCKED))
                    continue
                holders = raffle.claims.get(number)
                if holders is not None:
                    if holder_id in holders.holders:
                        result.claimed.append(number)
                    else:
                        result.rejected.append((number, RejectReason.TAKEN))
                    continue
                if budget <= 0:
                    result.rejected.append((number, RejectReason.LIMIT))
                    continue
                raffle.claims[number] = SingleHolder(holder_id)
                result.claimed.append(number)
                result.added.append(number)
                budget -= 1

            if result.added:
                self._raffles.save(raffle)
                if reservation is not None:
                    self._ledger.consume(raffle.key, holder_id, len(result.added))
                self._tag_entitlement(raffle.key, holder_id, result.added)
                result.close = self._check_full(raffle)
            result.reservation = self._ledger.get(raffle.key, holder_id)

        if result.added:
            log.info(
                "Holder %s claimed %s in %s", holder_id, result.added, raffle.key
            )
        return result

    def claim_remaining_slots(
        self, raffle: Raffle, holder_id: str, is_privileged: bool = False
    ) -> ClaimResult:
        self._require_active(raffle)
        if self._ledger.is_locked_for_others(raffle.key, holder_id, is_privileged):
            lock = self._ledger.active_lock_holder(raffle.key, holder_id)
            raise LockedError(
                f"<@{lock.holder_id}> has the claim window right now."
                if lock
                else "Another holder has the claim window right now."
            )
        return self.claim_slots(raffle, holder_id, raffle.open_slots(), is_privileged)

    def fill_for_holder(self, raffle: Raffle, holder_id: str) -> ClaimResult:
        """Give every open slot to a holder whose reservation covers them all."""
        result = ClaimResult()
        with self._store.transaction():
            for number in raffle.open_slots():
                raffle.claims[number] = SingleHolder(holder_id)
                result.claimed.append(number)
                result.added.append(number)
            if not result.added:
                return result
            self._raffles.save(raffle)
            if self._ledger.consume(raffle.key, holder_id, len(result.added)):
                if raffle.is_full():
                    self._ledger.delete(raffle.key, holder_id)
            self._tag_entitlement(raffle.key, holder_id, result.added)
            result.close = self._check_full(raffle)
            result.reservation = self._ledger.get(raffle.key, holder_id)
        log.info("Auto-filled %s for %s in %s", result.added, holder_id, raffle.key)
        return result

    def split_slot(
        self,
        raffle: Raffle,
        slot_number: int,
        existing_holder_id: str | None,
        new_holder_id: str,
        requested_by: str,
        is_privileged: bool = False,
    ) -> SplitHolders:
        self._require_raffle(raffle)
        if not raffle.in_range(slot_number):
            raise InvalidValueError(f"Pick 1-{raffle.capacity}.")
        holders = raffle.claims.get(slot_number)
        if holders is None:
            raise NotFoundError(f"Slot #{slot_number} is not claimed yet.")
        if isinstance(holders, SplitHolders):
            raise AlreadySplitError(f"Slot #{slot_number} is already split.")
        if raffle.is_free:
            raise FreeRaffleNoSplitError("Split is only for paid raffles.")
        owner = holders.holder
        if existing_holder_id is not None and existing_holder_id != owner:
            raise NotFoundError(f"Slot #{slot_number} is not held by that user.")
        if requested_by != owner and not is_privileged:
            raise ForbiddenError("Only the slot owner (or a mod) can split it.")
        if new_holder_id == owner:
            raise InvalidValueError("They're already on that slot.")

        split = SplitHolders(owner, new_holder_id)
        raffle.claims[slot_number] = split
        self._raffles.save(raffle)
        log.info("Slot %s in %s split with %s", slot_number, raffle.key, new_holder_id)
        return split

    def release_slots(
        self,
        raffle: Raffle,
        holder_id: str,
        slot_number: int | None = None,
        is_privileged: bool = False,
    ) -> list[int]:
        self._require_raffle(raffle)
        with self._store.transaction():
            if slot_number is None:
                numbers = raffle.holder_slots(holder_id)
                if not numbers:
                    raise NotFoundError("You don't have any claimed numbers.")
                for number in numbers:
                    remaining = remove_holder(raffle.claims[number], holder_id)
                    if remaining is None:
                        del raffle.claims[number]
                    else:
                        raffle.claims[number] = remaining
                self._raffles.save(raffle)
                self._release_entitlement(raffle.key, holder_id, numbers)
                return numbers

            if not is_privileged:
                raise ForbiddenError("Only mods can free a specific slot number.")
            if not raffle.in_range(slot_number):
                raise InvalidValueError(f"Pick 1-{raffle.capacity}.")
            holders = raffle.claims.pop(slot_number, None)
            if holders is None:
                raise NotFoundError(f"Slot #{slot_number} is already available.")
            self._raffles.save(raffle)
            for previous in holders.holders:
                self._release_entitlement(raffle.key, previous, [slot_number])
            return [slot_number]

    def assign_slot(
        self,
        raffle: Raffle,
        slot_number: int,
        holder_id: str,
        second_holder_id: str | None = None,
        is_privileged: bool = False,
    ) -> AssignResult:
        if not is_privileged:
            raise ForbiddenError("Only mods can assign slots.")
        self._require_raffle(raffle)
        if not raffle.in_range(slot_number):
            raise InvalidValueError(f"Pick 1-{raffle.capacity}.")
        if second_holder_id is not None:
            if raffle.is_free:
                raise FreeRaffleNoSplitError("Split is only for paid raffles.")
            if second_holder_id == holder_id:
                raise InvalidValueError("Pick two different users for a split slot.")
        previous = raffle.claims.get(slot_number)
        if previous is None and self.compute_mains_left(raffle) <= 0:
            raise InvalidValueError("No mains left to assign; free a slot first.")

        holders: SlotHolders = (
            SplitHolders(holder_id, second_holder_id)
            if second_holder_id is not None
            else SingleHolder(holder_id)
        )
        with self._store.transaction():
            raffle.claims[slot_number] = holders
            self._raffles.save(raffle)
            if previous is not None:
                for old in previous.holders:
                    self._release_entitlement(raffle.key, old, [slot_number])
            for new in holders.holders:
                self._tag_entitlement(raffle.key, new, [slot_number])
            close = self._check_full(raffle)
        log.info("Slot %s in %s assigned to %s", slot_number, raffle.key, holders)
        return AssignResult(holders=holders, previous=previous, close=close)

    # ----- Totals -----
    def compute_totals(
        self,
        raffle: Raffle,
        entitlement_slots: Mapping[str, set[int]] | None = None,
    ) -> Totals | None:
        price = raffle.slot_price
        if price is None:
            return None
        if entitlement_slots is None:
            entitlement_slots = self._minis.entitlement_slots(raffle.key)

        amounts: dict[str, int] = {}
        slot_counts: dict[str, int] = {}
        charged = 0
        for number, holders in sorted(raffle.claims.items()):
            eligible = [
                holder
                for holder in holders.holders
                if number not in entitlement_slots.get(holder, ())
            ]
            if not eligible:
                continue
            charged += 1
            share = -(-price // len(eligible))
            for holder in eligible:
                amounts[holder] = amounts.get(holder, 0) + share
                slot_counts[holder] = slot_counts.get(holder, 0) + 1

        per_holder = [
            HolderCharge(holder_id=holder, amount=amount, slots=slot_counts[holder])
            for holder, amount in amounts.items()
        ]
        return Totals(
            capacity=raffle.capacity,
            claimed_count=raffle.claimed_count,
            participant_count=len(raffle.participants()),
            charged_slot_count=charged,
            slot_price=price,
            per_holder=per_holder,
            grand_total=sum(amounts.values()),
        )

    # ----- Dice -----
    def roll(self, raffle: Raffle | None, sides: int) -> RollResult:
        if sides < 2:
            raise InvalidValueError("A die needs at least 2 sides.")
        number = self._rng.randint(1, sides)
        if raffle is not None and raffle.capacity > 0 and raffle.capacity == sides:
            holders = raffle.claims.get(number)
            return RollResult(
                sides=sides,
                number=number,
                raffle_draw=True,
                holders=holders.holders if holders else (),
            )
        return RollResult(sides=sides, number=number, raffle_draw=False)


__all__ = [
    "RejectReason",
    "HolderCharge",
    "Totals",
    "CloseOutcome",
    "ClaimResult",
    "AssignResult",
    "RollResult",
    "RaffleEngine",
]
