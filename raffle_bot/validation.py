from __future__ import annotations

import re
from collections.abc import Iterable

from .errors import InvalidCapacityError, InvalidDurationError, InvalidValueError

MIN_CAPACITY = 1
MAX_CAPACITY = 500
MIN_TICKETS = 1
MAX_TICKETS = 50
MIN_MINI_SLOTS = 2
MAX_MINI_SLOTS = 100
MAX_UNIT_PRICE = 1_000_000
MIN_WINNERS = 1
MAX_WINNERS = 50

_MINUTE_MS = 60 * 1000
_UNIT_MS = {
    "m": _MINUTE_MS,
    "min": _MINUTE_MS,
    "mins": _MINUTE_MS,
    "minute": _MINUTE_MS,
    "minutes": _MINUTE_MS,
    "h": 60 * _MINUTE_MS,
    "hr": 60 * _MINUTE_MS,
    "hrs": 60 * _MINUTE_MS,
    "hour": 60 * _MINUTE_MS,
    "hours": 60 * _MINUTE_MS,
    "d": 24 * 60 * _MINUTE_MS,
    "day": 24 * 60 * _MINUTE_MS,
    "days": 24 * 60 * _MINUTE_MS,
}

_DURATION_PATTERN = re.compile(r"^(\d+)\s*([a-z]+)$")
_FREE_PATTERN = re.compile(r"^(free|0+(\s*(c|coins?))?)$")
_PRICE_PATTERN = re.compile(r"(\d+)")
_CLAIM_TEXT_PATTERN = re.compile(r"^[\d,\s]+$")
_NUMBER_PATTERN = re.compile(r"\d+")


def validate_capacity(capacity: int) -> int:
    if capacity < MIN_CAPACITY or capacity > MAX_CAPACITY:
        raise InvalidCapacityError(
            f"Pick a slot amount between {MIN_CAPACITY} and {MAX_CAPACITY}."
        )
    return capacity


def validate_ticket_count(tickets: int) -> int:
    if tickets < MIN_TICKETS or tickets > MAX_TICKETS:
        raise InvalidValueError(f"Tickets must be {MIN_TICKETS}-{MAX_TICKETS}.")
    return tickets


def validate_mini_capacity(slots: int) -> int:
    if slots < MIN_MINI_SLOTS or slots > MAX_MINI_SLOTS:
        raise InvalidValueError(
            f"Mini slots must be {MIN_MINI_SLOTS}-{MAX_MINI_SLOTS}."
        )
    return slots


def validate_unit_price(price: int) -> int:
    if price < 0 or price > MAX_UNIT_PRICE:
        raise InvalidValueError(f"Price must be between 0 and {MAX_UNIT_PRICE}.")
    return price


def validate_winner_count(winners: int) -> int:
    if winners < MIN_WINNERS or winners > MAX_WINNERS:
        raise InvalidValueError(f"Winners must be {MIN_WINNERS}-{MAX_WINNERS}.")
    return winners


def parse_duration(raw: str) -> int:
    """Parse ``10m`` / ``2h`` / ``1d`` (or spelled-out units) into milliseconds."""
    value = (raw or "").strip().lower()
    match = _DURATION_PATTERN.match(value)
    if not match:
        raise InvalidDurationError("Duration must look like `10m`, `2h`, or `1d`.")
    amount = int(match.group(1))
    unit_ms = _UNIT_MS.get(match.group(2))
    if unit_ms is None or amount <= 0:
        raise InvalidDurationError("Duration must look like `10m`, `2h`, or `1d`.")
    return amount * unit_ms


def is_free_price(price_text: str | None) -> bool:
    """Return True only for an explicit zero price; an empty price is not free."""
    text = (price_text or "").strip().lower()
    if not text:
        return False
    return bool(_FREE_PATTERN.match(text))


def parse_slot_price(price_text: str | None) -> int | None:
    if is_free_price(price_text):
        return 0
    match = _PRICE_PATTERN.search(price_text or "")
    return int(match.group(1)) if match else None


def parse_claim_numbers(content: str) -> list[int] | None:
    """Return the numbers of a claim message such as ``1 2, 5``.

    ``None`` means the text is not a claim message at all.
    """
    text = content.strip()
    if not text or not _CLAIM_TEXT_PATTERN.match(text):
        return None
    numbers = [int(part) for part in _NUMBER_PATTERN.findall(text)]
    return numbers or None


def dedupe_numbers(numbers: Iterable[int]) -> list[int]:
    seen: set[int] = set()
    ordered: list[int] = []
    for number in numbers:
        if number in seen:
            continue
        seen.add(number)
        ordered.append(number)
    return ordered


def round_half_up(numerator: int, denominator: int) -> int:
    if denominator <= 0:
        raise InvalidValueError("Denominator must be positive")
    return (2 * numerator + denominator) // (2 * denominator)


__all__ = [
    "MIN_CAPACITY",
    "MAX_CAPACITY",
    "MAX_TICKETS",
    "MAX_MINI_SLOTS",
    "MAX_UNIT_PRICE",
    "MAX_WINNERS",
    "validate_capacity",
    "validate_ticket_count",
    "validate_mini_capacity",
    "validate_unit_price",
    "validate_winner_count",
    "parse_duration",
    "is_free_price",
    "parse_slot_price",
    "parse_claim_numbers",
    "dedupe_numbers",
    "round_half_up",
]
