from __future__ import annotations

from collections.abc import Collection

from .engine import ClaimResult, RejectReason, Totals
from .models import Raffle, Reservation

BOARD_LIMIT = 1900
WINNER_MARK = "🏆"
FULL_NOTICE = "✅ **FULL**: all slots claimed. Mods can now `/roll` the winner 🎲"


def mention(user_id: str) -> str:
    return f"<@{user_id}>"


def _holder_text(holder_id: str, mini_winners: Collection[str]) -> str:
    text = mention(holder_id)
    if holder_id in mini_winners:
        text = f"{text} {WINNER_MARK}"
    return text


def format_board_text(
    raffle: Raffle,
    *,
    mini_winners: Collection[str] = (),
    mains_left: int | None = None,
) -> str:
    """Render the numbered slot list posted (and edited in place) in the thread."""
    closed = not raffle.active or raffle.is_full()
    status = " ✅ **FULL / CLOSED**" if closed else ""
    price = f" (**{raffle.price_text}**)" if raffle.price_text else ""
    header = f"🎟️ Raffle: **{raffle.capacity} slots**{price}{status}"
    if mains_left is not None and not closed:
        header = f"{header}\n📌 **{mains_left} MAINS LEFT**"

    room = BOARD_LIMIT - len(header) - 2
    lines = []
    for number in range(1, raffle.capacity + 1):
        holders = raffle.claims.get(number)
        if holders is None:
            line = f"{number}. _(available)_"
        else:
            names = " + ".join(_holder_text(h, mini_winners) for h in holders.holders)
            line = f"{number}. {names}"
        if len(line) + 2 > room:
            lines.append("…")
            break
        lines.append(line)
        room -= len(line) + 1
    return f"{header}\n\n" + "\n".join(lines)


def format_mains_left(left: int) -> str:
    return f"📌 **{left} MAINS LEFT**"


def format_totals(raffle: Raffle, totals: Totals | None) -> str:
    participants = len(raffle.participants())
    lines = [
        f"🎟️ Slots claimed: **{raffle.claimed_count}/{raffle.capacity}**",
        f"👥 Participants: **{participants}**",
    ]
    if totals is None:
        lines.append("⚠️ Couldn't read the slot price from the raffle text.")
        return "\n".join(lines)
    for charge in totals.per_holder:
        lines.append(f"• {mention(charge.holder_id)}: **{charge.amount}c**")
    if totals.charged_slot_count < raffle.claimed_count:
        excluded = raffle.claimed_count - totals.charged_slot_count
        lines.append(f"{WINNER_MARK} {excluded} slot(s) paid through mini raffles")
    lines.append(f"💰 Total: **{totals.grand_total}c**")
    return "\n".join(lines)


def format_lock_notice(lock: Reservation) -> str:
    return (
        f"🔒 {mention(lock.holder_id)} has the claim window for "
        f"{lock.remaining} main slot(s) until <t:{lock.expires_at // 1000}:t>."
    )


def _numbers(numbers: list[int]) -> str:
    return ", ".join(f"#{number}" for number in numbers)


def format_claim_result(raffle: Raffle, result: ClaimResult) -> str:
    lines = []
    if result.added:
        lines.append(f"✅ Claimed {_numbers(result.added)}.")
    already = [number for number in result.claimed if number not in result.added]
    if already:
        lines.append(f"Already yours: {_numbers(already)}.")
    out_of_range = result.rejected_for(RejectReason.OUT_OF_RANGE)
    if out_of_range:
        lines.append(f"❌ Pick 1-{raffle.capacity}: {_numbers(out_of_range)}.")
    locked = result.rejected_for(RejectReason.LOCKED)
    if locked:
        lines.append(
            format_lock_notice(result.lock)
            if result.lock
            else f"🔒 Locked right now: {_numbers(locked)}."
        )
    taken = result.rejected_for(RejectReason.TAKEN)
    if taken:
        hint = "" if raffle.is_free else " Ask the holder to `split` it with you."
        lines.append(f"❌ Already taken: {_numbers(taken)}.{hint}")
    limited = result.rejected_for(RejectReason.LIMIT)
    if limited:
        if raffle.is_free:
            lines.append("❌ Free raffles are one slot per person.")
        else:
            lines.append(f"❌ Not enough slots left for you: {_numbers(limited)}.")
    if result.reservation is not None and result.reservation.remaining > 0:
        lines.append(
            f"⏳ {result.reservation.remaining} slot(s) left in your claim window."
        )
    return "\n".join(lines) or "Nothing to claim."


__all__ = [
    "BOARD_LIMIT",
    "WINNER_MARK",
    "FULL_NOTICE",
    "mention",
    "format_board_text",
    "format_mains_left",
    "format_totals",
    "format_lock_notice",
    "format_claim_result",
]
