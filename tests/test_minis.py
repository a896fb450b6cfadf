import pytest

from raffle_bot.errors import (
    AlreadyDrawnError,
    InvalidValueError,
    NoEntriesError,
    NotFoundError,
    RaffleClosedError,
)
from raffle_bot.minis import PLACEHOLDER_MINUTES, mini_price_label
from raffle_bot.models import Raffle
from tests.fakes import MINUTE_MS


@pytest.fixture
def parent(services):
    return services.engine.start_raffle("1", "2", 10, "1000c", host_id="100")


def make_mini(services, parent, tickets=2, slots=6, price=1000, thread_id="50"):
    return services.minis.create_mini(
        parent, "1", thread_id, tickets, slots, price, host_id="100"
    )


def test_price_label():
    assert mini_price_label(2, 1000, 2000, 333) == (
        "2x main @ 1000c = 2000c pot • 333c/slot"
    )


class TestPlan:
    def test_plan_math(self, services, parent):
        plan = services.minis.plan(parent, 2, 6, 1000)

        assert plan.pot == 2000
        assert plan.per_slot == 333
        assert plan.label.startswith("2x main @ 1000c")

    def test_plan_requires_parent(self, services):
        with pytest.raises(NotFoundError):
            services.minis.plan(None, 1, 6, 0)

    def test_plan_rejects_bad_ranges(self, services, parent):
        with pytest.raises(InvalidValueError):
            services.minis.plan(parent, 0, 6, 0)
        with pytest.raises(InvalidValueError):
            services.minis.plan(parent, 1, 1, 0)
        with pytest.raises(InvalidValueError):
            services.minis.plan(parent, 11, 6, 0)

    def test_plan_rejects_closed_parent(self, services, parent):
        services.engine.close(parent)

        with pytest.raises(RaffleClosedError):
            services.minis.plan(parent, 1, 6, 0)

    def test_plan_rejects_mini_as_parent(self, services, parent):
        mini, _ = make_mini(services, parent)

        with pytest.raises(InvalidValueError):
            services.minis.plan(mini, 1, 6, 0)


class TestCreate:
    def test_create_reserves_parent_capacity(self, services, parent):
        mini, link = make_mini(services, parent, tickets=3)

        assert mini.active
        assert mini.capacity == 6
        assert mini.slot_price == 500
        assert link.parent_key == parent.key
        assert services.engine.is_mini(mini)
        assert services.engine.compute_mains_left(parent) == 7

        placeholder = services.ledger.get(parent.key, link.placeholder)
        assert placeholder.remaining == 3
        assert placeholder.expires_at == services.clock() + PLACEHOLDER_MINUTES * MINUTE_MS

    def test_placeholder_does_not_lock_parent(self, services, parent):
        make_mini(services, parent, tickets=3)

        result = services.engine.claim_slots(parent, "A", [1])

        assert result.added == [1]


class TestDraw:
    def test_draw_needs_entries(self, services, parent):
        mini, _ = make_mini(services, parent)

        with pytest.raises(NoEntriesError):
            services.minis.complete_draw(mini)

    def test_draw_requires_link(self, services):
        orphan = Raffle(scope_id="1", channel_id="77", active=True, capacity=3)

        with pytest.raises(NotFoundError):
            services.minis.complete_draw(orphan)

    def test_winner_gets_claim_window(self, services, parent):
        mini, link = make_mini(services, parent, tickets=2)
        services.engine.claim_slots(mini, "W", [4])

        result = services.minis.complete_draw(mini)

        assert result.winner_id == "W"
        assert result.winning_slot == 4
        assert result.auto_fill is None
        assert result.reservation.remaining == 2
        assert result.reservation.expires_at == services.clock() + 10 * MINUTE_MS
        assert services.ledger.get(parent.key, link.placeholder) is None
        assert services.engine.compute_mains_left(parent) == 8
        assert services.minis_repo.winners(parent.key) == {"W"}
        assert not mini.active
        assert services.minis.link_for(mini.key).winner_id == "W"

        blocked = services.engine.claim_slots(parent, "A", [1])
        assert blocked.lock.holder_id == "W"

    def test_second_draw_is_rejected(self, services, parent):
        mini, _ = make_mini(services, parent)
        services.engine.claim_slots(mini, "W", [1])
        services.minis.complete_draw(mini)

        with pytest.raises(AlreadyDrawnError):
            services.minis.complete_draw(mini)

    def test_draw_picks_among_co_holders(self, services, parent):
        mini, _ = make_mini(services, parent)
        services.engine.claim_slots(mini, "A", [1])
        services.engine.split_slot(mini, 1, None, "B", requested_by="A")

        pick = services.minis.draw(mini)

        assert pick.winning_slot == 1
        assert pick.winner_id in {"A", "B"}

    def test_winner_claims_are_excluded_from_totals(self, services, parent):
        engine = services.engine
        mini, _ = make_mini(services, parent, tickets=2)
        engine.claim_slots(mini, "W", [1])
        services.minis.complete_draw(mini)

        engine.claim_slots(parent, "W", [5, 6])
        engine.claim_slots(parent, "W", [7])
        totals = engine.compute_totals(parent)

        assert services.minis_repo.get_entitlement(parent.key, "W").slots == [5, 6]
        assert totals.amount_for("W") == 1000
        assert totals.charged_slot_count == 1

    def test_auto_fill_when_parent_nearly_full(self, services):
        engine = services.engine
        parent = engine.start_raffle("1", "2", 5, "1000c", host_id="100")
        mini, _ = make_mini(services, parent, tickets=2)
        engine.claim_slots(parent, "A", [1, 2, 3])
        engine.claim_slots(mini, "W", [4])

        result = services.minis.complete_draw(mini)

        assert result.winning_slot == 4
        assert result.auto_fill.added == [4, 5]
        assert result.parent_full
        assert result.auto_fill.close.host_id == "100"
        assert services.ledger.live(parent.key) == []

        stored = engine.get_raffle(parent.key)
        assert stored.holder_slots("W") == [4, 5]
        assert not stored.active
        assert engine.close(stored).host_id is None

    def test_auto_fill_with_leftover_tickets(self, services):
        engine = services.engine
        parent = engine.start_raffle("1", "2", 4, "1000c", host_id="100")
        mini, _ = make_mini(services, parent, tickets=2)
        services.clock.advance((PLACEHOLDER_MINUTES + 1) * MINUTE_MS)
        engine.claim_slots(parent, "A", [1, 2, 3])
        engine.claim_slots(mini, "W", [2])

        result = services.minis.complete_draw(mini)

        assert result.auto_fill.added == [4]
        assert result.parent_full
        assert result.reservation is None
        assert services.ledger.live(parent.key) == []

    def test_draw_closes_mini_with_totals(self, services, parent):
        mini, _ = make_mini(services, parent, tickets=2, slots=6, price=1000)
        services.engine.claim_slots(mini, "W", [1, 2])

        result = services.minis.complete_draw(mini)

        assert result.mini_close.reason == "draw"
        assert result.mini_close.host_id is None
        assert result.mini_close.totals.amount_for("W") == 666
        assert services.engine.get_raffle(mini.key).totals_posted

    def test_full_mini_keeps_its_first_close(self, services, parent):
        mini, _ = make_mini(services, parent, slots=2)
        claim = services.engine.claim_slots(mini, "W", [1, 2])

        result = services.minis.complete_draw(mini)

        assert claim.close.totals_due
        assert result.mini_close is None


class TestParentRestart:
    def test_restart_voids_undrawn_minis(self, services, parent):
        engine = services.engine
        stale, _ = make_mini(services, parent, tickets=3)
        engine.claim_slots(stale, "W", [1])

        restarted = engine.start_raffle("1", "2", 10, "1000c", host_id="100")
        engine.claim_slots(restarted, "A", [1, 2, 3, 4, 5])
        make_mini(services, restarted, tickets=5, thread_id="51")

        with pytest.raises(RaffleClosedError):
            services.minis.complete_draw(stale)

        assert services.minis.link_for(stale.key).cancelled
        assert not engine.get_raffle(stale.key).active
        assert services.minis_repo.winners(restarted.key) == set()
        reserved = services.ledger.total_active(restarted.key)
        assert restarted.claimed_count + reserved == 10

    def test_drawn_minis_stay_drawn(self, services, parent):
        mini, _ = make_mini(services, parent)
        services.engine.claim_slots(mini, "W", [1])
        services.minis.complete_draw(mini)

        services.engine.start_raffle("1", "2", 10, "1000c", host_id="100")

        link = services.minis.link_for(mini.key)
        assert link.winner_id == "W"
        assert not link.cancelled
