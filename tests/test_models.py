import pytest

from raffle_bot.models import (
    Entitlement,
    Giveaway,
    MiniLink,
    Raffle,
    Reservation,
    SingleHolder,
    SplitHolders,
    holders_from_raw,
    is_placeholder,
    placeholder_id,
    raffle_key,
    remove_holder,
    split_raffle_key,
)


def test_raffle_key_round_trip():
    key = raffle_key(111, 222)
    assert key == "111:222"
    assert split_raffle_key(key) == ("111", "222")


def test_placeholder_ids():
    assert placeholder_id("1:9") == "mini:1:9"
    assert is_placeholder("mini:1:9")
    assert not is_placeholder("42")


def test_split_holders_need_two_people():
    with pytest.raises(ValueError):
        SplitHolders("1", "1")


def test_holders_from_raw_handles_legacy_shapes():
    assert holders_from_raw("7") == SingleHolder("7")
    assert holders_from_raw("") is None
    assert holders_from_raw([]) is None
    assert holders_from_raw(["7"]) == SingleHolder("7")
    assert holders_from_raw(["7", "7"]) == SingleHolder("7")
    assert holders_from_raw(["7", "8"]) == SplitHolders("7", "8")
    assert holders_from_raw(None) is None


def test_remove_holder_collapses_split():
    assert remove_holder(SplitHolders("1", "2"), "1") == SingleHolder("2")
    assert remove_holder(SingleHolder("1"), "1") is None


class TestRaffle:
    def test_from_dict_reads_legacy_fields(self):
        raffle = Raffle.from_dict(
            "1:2",
            {
                "active": True,
                "max": 5,
                "priceText": "500c",
                "claims": {"1": ["10"], "2": ["10", "11"], "x": ["9"], "3": []},
                "lastBoardMessageId": "77",
            },
        )

        assert raffle.capacity == 5
        assert raffle.slot_price == 500
        assert raffle.claims == {1: SingleHolder("10"), 2: SplitHolders("10", "11")}
        assert raffle.board_message_id == "77"

    def test_to_dict_round_trip(self):
        raffle = Raffle(
            scope_id="1",
            channel_id="2",
            active=True,
            capacity=3,
            price_text="free",
            slot_price=0,
            claims={2: SingleHolder("5"), 1: SplitHolders("6", "7")},
            host_id="9",
            ends_at=1000,
        )

        data = raffle.to_dict()
        assert list(data["claims"]) == ["1", "2"]
        assert Raffle.from_dict("1:2", data) == raffle

    def test_slot_helpers(self):
        raffle = Raffle(
            scope_id="1",
            channel_id="2",
            active=True,
            capacity=4,
            claims={1: SplitHolders("a", "b"), 3: SingleHolder("a")},
        )

        assert raffle.holder_slots("a") == [1, 3]
        assert raffle.count_holder_claims("b") == 1
        assert raffle.open_slots() == [2, 4]
        assert raffle.participants() == {"a", "b"}
        assert not raffle.is_full()
        assert raffle.in_range(4)
        assert not raffle.in_range(5)

    def test_empty_price_is_not_free(self):
        raffle = Raffle(scope_id="1", channel_id="2", capacity=3)
        assert not raffle.is_free
        raffle.price_text = "0c"
        assert raffle.is_free


def test_mini_link_legacy_keys():
    link = MiniLink.from_dict("1:5", {"mainKey": "1:2", "tickets": 3})
    assert link.parent_key == "1:2"
    assert link.ticket_count == 3
    assert link.placeholder == "mini:1:5"
    assert not link.drawn
    assert not link.cancelled


def test_reservation_liveness():
    reservation = Reservation("1:2", "5", remaining=2, expires_at=1000)
    assert reservation.is_live(1000)
    assert not reservation.is_live(1001)
    reservation.remaining = 0
    assert not reservation.is_live(0)


def test_entitlement_tolerates_garbage():
    assert Entitlement.from_dict(3) == Entitlement()
    assert Entitlement.from_dict({"remaining": 1, "slots": [4, "2"]}).slots == [4, 2]


def test_giveaway_dedupes_participants_on_load():
    giveaway = Giveaway.from_dict(
        "55", {"prize": "Nitro", "participants": ["1", "2", "1"], "endsAt": 10}
    )
    assert giveaway.participants == ["1", "2"]
    assert giveaway.entry_custom_id == "giveaway:enter:55"
    assert not giveaway.add_participant("2")
    assert giveaway.add_participant("3")
