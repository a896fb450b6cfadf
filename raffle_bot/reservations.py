"""Time-boxed reservations of main raffle slots.

A reservation lets one holder claim a number of parent slots before anyone
else. Placeholder holders (``mini:<key>``) stand for undrawn minis: they only
lower the "mains left" count and never lock the raffle.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from .models import Reservation, is_placeholder, now_ms
from .storage import DocumentStore

log = logging.getLogger(__name__)

MINUTE_MS = 60 * 1000


class ReservationLedger:
    def __init__(
        self, store: DocumentStore, *, clock: Callable[[], int] = now_ms
    ) -> None:
        self._store = store
        self._clock = clock

    def _bucket(self, parent_key: str, *, create: bool = False) -> dict | None:
        reservations = self._store.collection("reservations")
        if create:
            return reservations.setdefault(parent_key, {})
        bucket = reservations.get(parent_key)
        return bucket if isinstance(bucket, dict) else None

    def _prune(self, parent_key: str) -> bool:
        bucket = self._bucket(parent_key)
        if bucket is None:
            return False
        now = self._clock()
        stale = [
            holder_id
            for holder_id, data in bucket.items()
            if not isinstance(data, dict)
            or not Reservation.from_dict(parent_key, holder_id, data).is_live(now)
        ]
        for holder_id in stale:
            del bucket[holder_id]
        if not bucket:
            del self._store.collection("reservations")[parent_key]
        if stale:
            log.debug("Pruned %s stale reservation(s) for %s", len(stale), parent_key)
            self._store.persist()
        return bool(stale)

    def get(self, parent_key: str, holder_id: str) -> Reservation | None:
        self._prune(parent_key)
        bucket = self._bucket(parent_key)
        if not bucket or holder_id not in bucket:
            return None
        return Reservation.from_dict(parent_key, holder_id, bucket[holder_id])

    def set(
        self,
        parent_key: str,
        holder_id: str,
        remaining: int,
        duration_minutes: float,
    ) -> Reservation:
        reservation = Reservation(
            parent_key=parent_key,
            holder_id=holder_id,
            remaining=remaining,
            expires_at=self._clock() + int(duration_minutes * MINUTE_MS),
        )
        bucket = self._bucket(parent_key, create=True)
        assert bucket is not None
        bucket[holder_id] = reservation.to_dict()
        self._store.persist()
        return reservation

    def consume(
        self, parent_key: str, holder_id: str, amount: int
    ) -> Reservation | None:
        reservation = self.get(parent_key, holder_id)
        if reservation is None:
            return None
        reservation.remaining -= amount
        if reservation.remaining <= 0:
            self.delete(parent_key, holder_id)
            return None
        bucket = self._bucket(parent_key, create=True)
        assert bucket is not None
        bucket[holder_id] = reservation.to_dict()
        self._store.persist()
        return reservation

    def delete(self, parent_key: str, holder_id: str) -> bool:
        bucket = self._bucket(parent_key)
        if not bucket or holder_id not in bucket:
            return False
        del bucket[holder_id]
        if not bucket:
            del self._store.collection("reservations")[parent_key]
        self._store.persist()
        return True

    def clear(self, parent_key: str) -> None:
        if self._store.collection("reservations").pop(parent_key, None) is not None:
            self._store.persist()

    def live(self, parent_key: str) -> list[Reservation]:
        self._prune(parent_key)
        bucket = self._bucket(parent_key) or {}
        return [
            Reservation.from_dict(parent_key, holder_id, data)
            for holder_id, data in bucket.items()
        ]

    def all_live(self) -> list[Reservation]:
        reservations: list[Reservation] = []
        for parent_key in list(self._store.collection("reservations")):
            reservations.extend(self.live(parent_key))
        return reservations

    def total_active(self, parent_key: str) -> int:
        return sum(reservation.remaining for reservation in self.live(parent_key))

    def is_locked_for_others(
        self, parent_key: str, holder_id: str, is_privileged: bool = False
    ) -> bool:
        if is_privileged:
            return False
        return any(
            reservation.holder_id != holder_id and not reservation.placeholder
            for reservation in self.live(parent_key)
        )

    def active_lock_holder(self, parent_key: str, holder_id: str) -> Reservation | None:
        for reservation in self.live(parent_key):
            if reservation.holder_id != holder_id and not is_placeholder(
                reservation.holder_id
            ):
                return reservation
        return None


__all__ = ["ReservationLedger", "MINUTE_MS"]
