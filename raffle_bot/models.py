from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import ClassVar

from .validation import is_free_price, parse_slot_price

PLACEHOLDER_PREFIX = "mini:"


def now_ms() -> int:
    """Return the current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def raffle_key(scope_id: int | str, channel_id: int | str) -> str:
    return f"{scope_id}:{channel_id}"


def split_raffle_key(key: str) -> tuple[str, str]:
    scope_id, _, channel_id = key.partition(":")
    return scope_id, channel_id


def placeholder_id(mini_key: str) -> str:
    return f"{PLACEHOLDER_PREFIX}{mini_key}"


def is_placeholder(holder_id: str) -> bool:
    return holder_id.startswith(PLACEHOLDER_PREFIX)


@dataclass(frozen=True, slots=True)
class SingleHolder:
    holder: str

    @property
    def holders(self) -> tuple[str, ...]:
        return (self.holder,)

    def to_list(self) -> list[str]:
        return [self.holder]


@dataclass(frozen=True, slots=True)
class SplitHolders:
    first: str
    second: str

    def __post_init__(self) -> None:
        if self.first == self.second:
            raise ValueError("A split slot needs two different holders")

    @property
    def holders(self) -> tuple[str, ...]:
        return (self.first, self.second)

    def to_list(self) -> list[str]:
        return [self.first, self.second]


SlotHolders = SingleHolder | SplitHolders


def holders_from_raw(raw: object) -> SlotHolders | None:
    """Build the holder variant for a persisted slot value.

    Older documents stored a bare string per slot; empty lists mean unclaimed.
    """
    if isinstance(raw, str):
        return SingleHolder(raw) if raw else None
    if not isinstance(raw, list):
        return None
    ids = [str(value) for value in raw if value]
    if not ids:
        return None
    if len(ids) == 1 or ids[0] == ids[1]:
        return SingleHolder(ids[0])
    return SplitHolders(ids[0], ids[1])


def remove_holder(holders: SlotHolders, holder_id: str) -> SlotHolders | None:
    remaining = [value for value in holders.holders if value != holder_id]
    if not remaining:
        return None
    return SingleHolder(remaining[0])


@dataclass(slots=True)
class Raffle:
    scope_id: str
    channel_id: str
    active: bool = False
    capacity: int = 0
    price_text: str = ""
    slot_price: int | None = None
    claims: dict[int, SlotHolders] = field(default_factory=dict)
    host_id: str | None = None
    full_notified: bool = False
    totals_posted: bool = False
    ends_at: int | None = None
    board_message_id: str | None = None
    last_mains_left_announced: int | None = None
    created_at: int = 0

    @property
    def key(self) -> str:
        return raffle_key(self.scope_id, self.channel_id)

    @property
    def is_free(self) -> bool:
        return is_free_price(self.price_text)

    @property
    def claimed_count(self) -> int:
        return len(self.claims)

    def is_full(self) -> bool:
        return self.capacity > 0 and self.claimed_count >= self.capacity

    def in_range(self, number: int) -> bool:
        return 1 <= number <= self.capacity

    def holder_slots(self, holder_id: str) -> list[int]:
        return sorted(
            number
            for number, holders in self.claims.items()
            if holder_id in holders.holders
        )

    def count_holder_claims(self, holder_id: str) -> int:
        return len(self.holder_slots(holder_id))

    def open_slots(self) -> list[int]:
        return [
            number
            for number in range(1, self.capacity + 1)
            if number not in self.claims
        ]

    def participants(self) -> set[str]:
        people: set[str] = set()
        for holders in self.claims.values():
            people.update(holders.holders)
        return people

    def reset(
        self,
        *,
        capacity: int,
        price_text: str,
        slot_price: int | None,
        host_id: str | None,
        ends_at: int | None,
        created_at: int,
    ) -> None:
        self.active = True
        self.capacity = capacity
        self.price_text = price_text
        self.slot_price = slot_price
        self.claims = {}
        self.host_id = host_id
        self.full_notified = False
        self.totals_posted = False
        self.ends_at = ends_at
        self.board_message_id = None
        self.last_mains_left_announced = None
        self.created_at = created_at

    def to_dict(self) -> dict[str, object]:
        return {
            "active": self.active,
            "capacity": self.capacity,
            "priceText": self.price_text,
            "slotPrice": self.slot_price,
            "claims": {
                str(number): holders.to_list()
                for number, holders in sorted(self.claims.items())
            },
            "hostId": self.host_id,
            "fullNotified": self.full_notified,
            "totalsPosted": self.totals_posted,
            "endsAt": self.ends_at,
            "boardMessageId": self.board_message_id,
            "lastMainsLeftAnnounced": self.last_mains_left_announced,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, key: str, data: dict[str, object]) -> Raffle:
        scope_id, channel_id = split_raffle_key(key)
        claims: dict[int, SlotHolders] = {}
        raw_claims = data.get("claims") or {}
        if isinstance(raw_claims, dict):
            for raw_number, raw_holders in raw_claims.items():
                try:
                    number = int(raw_number)
                except (TypeError, ValueError):
                    continue
                holders = holders_from_raw(raw_holders)
                if holders is not None:
                    claims[number] = holders
        # "max" is the legacy name of the capacity field
        capacity = int(data.get("capacity", data.get("max", 0)) or 0)
        price_text = str(data.get("priceText") or "")
        slot_price = data.get("slotPrice")
        host_id = data.get("hostId")
        ends_at = data.get("endsAt")
        board_message_id = data.get("boardMessageId", data.get("lastBoardMessageId"))
        last_left = data.get("lastMainsLeftAnnounced")
        return cls(
            scope_id=scope_id,
            channel_id=channel_id,
            active=bool(data.get("active", False)),
            capacity=capacity,
            price_text=price_text,
            slot_price=(
                int(slot_price)
                if slot_price is not None
                else parse_slot_price(price_text)
            ),
            claims=claims,
            host_id=str(host_id) if host_id else None,
            full_notified=bool(data.get("fullNotified", False)),
            totals_posted=bool(data.get("totalsPosted", False)),
            ends_at=int(ends_at) if ends_at is not None else None,
            board_message_id=str(board_message_id) if board_message_id else None,
            last_mains_left_announced=(
                int(last_left) if last_left is not None else None
            ),
            created_at=int(data.get("createdAt", 0) or 0),
        )


@dataclass(slots=True)
class MiniLink:
    mini_key: str
    parent_key: str
    ticket_count: int
    created_at: int = 0
    winner_id: str | None = None
    winning_slot: int | None = None
    cancelled: bool = False

    @property
    def drawn(self) -> bool:
        return self.winner_id is not None

    @property
    def placeholder(self) -> str:
        return placeholder_id(self.mini_key)

    def to_dict(self) -> dict[str, object]:
        return {
            "parentKey": self.parent_key,
            "ticketCount": self.ticket_count,
            "createdAt": self.created_at,
            "winnerId": self.winner_id,
            "winningSlot": self.winning_slot,
            "cancelled": self.cancelled,
        }

    @classmethod
    def from_dict(cls, mini_key: str, data: dict[str, object]) -> MiniLink:
        winner = data.get("winnerId")
        winning_slot = data.get("winningSlot")
        return cls(
            mini_key=mini_key,
            # the legacy layout used "mainKey" / "tickets"
            parent_key=str(data.get("parentKey", data.get("mainKey", ""))),
            ticket_count=int(data.get("ticketCount", data.get("tickets", 1)) or 1),
            created_at=int(data.get("createdAt", 0) or 0),
            winner_id=str(winner) if winner else None,
            winning_slot=int(winning_slot) if winning_slot is not None else None,
            cancelled=bool(data.get("cancelled", False)),
        )


@dataclass(slots=True)
class Reservation:
    parent_key: str
    holder_id: str
    remaining: int
    expires_at: int

    @property
    def placeholder(self) -> bool:
        return is_placeholder(self.holder_id)

    def is_live(self, now: int) -> bool:
        return self.remaining > 0 and now <= self.expires_at

    def to_dict(self) -> dict[str, object]:
        return {"remaining": self.remaining, "expiresAt": self.expires_at}

    @classmethod
    def from_dict(
        cls, parent_key: str, holder_id: str, data: dict[str, object]
    ) -> Reservation:
        return cls(
            parent_key=parent_key,
            holder_id=holder_id,
            remaining=int(data.get("remaining", 0) or 0),
            expires_at=int(data.get("expiresAt", 0) or 0),
        )


@dataclass(slots=True)
class Entitlement:
    remaining: int = 0
    slots: list[int] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {"remaining": self.remaining, "slots": sorted(self.slots)}

    @classmethod
    def from_dict(cls, data: object) -> Entitlement:
        if not isinstance(data, dict):
            return cls()
        slots = [int(value) for value in data.get("slots", []) or []]
        return cls(remaining=int(data.get("remaining", 0) or 0), slots=slots)


@dataclass(slots=True)
class Giveaway:
    message_id: str
    guild_id: str
    channel_id: str
    prize: str
    winner_count: int
    ends_at: int
    started_at: int
    host_id: str
    sponsor_id: str | None = None
    ended: bool = False
    ended_at: int | None = None
    participants: list[str] = field(default_factory=list)
    last_winners: list[str] = field(default_factory=list)

    ENTRY_PREFIX: ClassVar[str] = "giveaway:enter:"

    @property
    def entry_custom_id(self) -> str:
        return f"{self.ENTRY_PREFIX}{self.message_id}"

    def add_participant(self, participant_id: str) -> bool:
        if participant_id in self.participants:
            return False
        self.participants.append(participant_id)
        return True

    def to_dict(self) -> dict[str, object]:
        return {
            "guildId": self.guild_id,
            "channelId": self.channel_id,
            "prize": self.prize,
            "winnerCount": self.winner_count,
            "endsAt": self.ends_at,
            "startedAt": self.started_at,
            "hostId": self.host_id,
            "sponsorId": self.sponsor_id,
            "ended": self.ended,
            "endedAt": self.ended_at,
            "participants": list(self.participants),
            "lastWinners": list(self.last_winners),
        }

    @classmethod
    def from_dict(cls, message_id: str, data: dict[str, object]) -> Giveaway:
        participants: list[str] = []
        for value in data.get("participants", []) or []:
            value = str(value)
            if value not in participants:
                participants.append(value)
        sponsor = data.get("sponsorId")
        ended_at = data.get("endedAt")
        return cls(
            message_id=message_id,
            guild_id=str(data.get("guildId", "")),
            channel_id=str(data.get("channelId", "")),
            prize=str(data.get("prize") or "Giveaway"),
            winner_count=int(data.get("winnerCount", data.get("winners", 1)) or 1),
            ends_at=int(data.get("endsAt", 0) or 0),
            started_at=int(data.get("startedAt", 0) or 0),
            host_id=str(data.get("hostId", "")),
            sponsor_id=str(sponsor) if sponsor else None,
            ended=bool(data.get("ended", False)),
            ended_at=int(ended_at) if ended_at is not None else None,
            participants=participants,
            last_winners=[str(value) for value in data.get("lastWinners", []) or []],
        )


@dataclass(slots=True)
class UserRecord:
    user_id: str
    xp: int = 0
    level: int = 1
    last_award_at: int = 0

    def to_dict(self) -> dict[str, object]:
        return {"xp": self.xp, "level": self.level, "lastAwardAt": self.last_award_at}

    @classmethod
    def from_dict(cls, user_id: str, data: dict[str, object]) -> UserRecord:
        return cls(
            user_id=user_id,
            xp=max(0, int(data.get("xp", 0) or 0)),
            level=max(1, int(data.get("level", 1) or 1)),
            last_award_at=int(data.get("lastAwardAt", data.get("lastXpAt", 0)) or 0),
        )


__all__ = [
    "PLACEHOLDER_PREFIX",
    "now_ms",
    "raffle_key",
    "split_raffle_key",
    "placeholder_id",
    "is_placeholder",
    "SingleHolder",
    "SplitHolders",
    "SlotHolders",
    "holders_from_raw",
    "remove_holder",
    "Raffle",
    "MiniLink",
    "Reservation",
    "Entitlement",
    "Giveaway",
    "UserRecord",
]
