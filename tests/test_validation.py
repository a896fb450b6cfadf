import pytest

from raffle_bot.errors import (
    InvalidCapacityError,
    InvalidDurationError,
    InvalidValueError,
)
from raffle_bot.validation import (
    dedupe_numbers,
    is_free_price,
    parse_claim_numbers,
    parse_duration,
    parse_slot_price,
    round_half_up,
    validate_capacity,
    validate_mini_capacity,
    validate_ticket_count,
    validate_unit_price,
    validate_winner_count,
)


@pytest.mark.parametrize("capacity", [1, 50, 500])
def test_validate_capacity_accepts_range(capacity):
    assert validate_capacity(capacity) == capacity


@pytest.mark.parametrize("capacity", [0, -3, 501])
def test_validate_capacity_rejects_out_of_range(capacity):
    with pytest.raises(InvalidCapacityError):
        validate_capacity(capacity)


def test_invalid_capacity_is_a_value_error():
    with pytest.raises(ValueError):
        validate_capacity(0)


def test_mini_ranges():
    assert validate_ticket_count(50) == 50
    assert validate_mini_capacity(2) == 2
    assert validate_unit_price(0) == 0
    assert validate_winner_count(1) == 1
    with pytest.raises(InvalidValueError):
        validate_ticket_count(51)
    with pytest.raises(InvalidValueError):
        validate_mini_capacity(1)
    with pytest.raises(InvalidValueError):
        validate_unit_price(1_000_001)
    with pytest.raises(InvalidValueError):
        validate_winner_count(0)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("10m", 600_000),
        ("2h", 7_200_000),
        ("1d", 86_400_000),
        ("3 hours", 10_800_000),
        (" 45 MIN ", 2_700_000),
    ],
)
def test_parse_duration(raw, expected):
    assert parse_duration(raw) == expected


@pytest.mark.parametrize("raw", ["", "10", "h", "5w", "0m", "1.5h", "-2h"])
def test_parse_duration_rejects_garbage(raw):
    with pytest.raises(InvalidDurationError):
        parse_duration(raw)


@pytest.mark.parametrize("text", ["free", "FREE", "0", "0c", "0 coins", "0 coin"])
def test_free_price_markers(text):
    assert is_free_price(text)
    assert parse_slot_price(text) == 0


@pytest.mark.parametrize("text", ["", None, "   ", "500c", "10 coins"])
def test_empty_or_priced_text_is_not_free(text):
    assert not is_free_price(text)


def test_parse_slot_price():
    assert parse_slot_price("500c per slot") == 500
    assert parse_slot_price("tbd") is None
    assert parse_slot_price("") is None


def test_parse_claim_numbers():
    assert parse_claim_numbers("3") == [3]
    assert parse_claim_numbers("1 2, 5") == [1, 2, 5]
    assert parse_claim_numbers("4,7") == [4, 7]
    assert parse_claim_numbers("hello 3") is None
    assert parse_claim_numbers(" , ") is None
    assert parse_claim_numbers("") is None


def test_dedupe_numbers_keeps_first_order():
    assert dedupe_numbers([5, 1, 5, 2, 1]) == [5, 1, 2]


def test_round_half_up():
    assert round_half_up(5, 2) == 3
    assert round_half_up(1000, 6) == 167
    assert round_half_up(0, 6) == 0
    with pytest.raises(InvalidValueError):
        round_half_up(1, 0)
