"""Discord surface for main and mini raffles.

``RaffleFeature`` turns inbound events (slash commands, numeric text in raffle
threads and timer callbacks) into core calls, then renders the board and
announcements. Every core call persists before any Discord I/O happens here.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable
from typing import Final, Optional

import discord
from discord import app_commands

from bots.config import EnvironmentConfig
from bots.messaging import (
    GENERIC_FAILURE,
    is_privileged,
    reply_ephemeral,
    resolve_channel,
    safe_edit,
    safe_fetch_message,
    safe_send,
)
from raffle_bot.board import (
    FULL_NOTICE,
    format_board_text,
    format_claim_result,
    format_mains_left,
    format_totals,
    mention,
)
from raffle_bot.engine import ClaimResult, CloseOutcome, RaffleEngine
from raffle_bot.errors import (
    ForbiddenError,
    InvalidValueError,
    NotFoundError,
    RaffleBotError,
)
from raffle_bot.minis import MiniRaffleOrchestrator
from raffle_bot.models import Raffle, raffle_key, split_raffle_key
from raffle_bot.reservations import ReservationLedger
from raffle_bot.scheduler import TimerScheduler
from raffle_bot.validation import parse_claim_numbers, parse_duration

log: Final = logging.getLogger("raffle-bot")

_REST_PATTERN = re.compile(r"^rest$", re.IGNORECASE)
_TOTAL_PATTERN = re.compile(r"^total$", re.IGNORECASE)
_FREE_PATTERN = re.compile(r"^free(?:\s+(\d+))?$", re.IGNORECASE)
_SPLIT_PATTERN = re.compile(r"^split\s+(\d+)\b", re.IGNORECASE)
_START_PATTERN = re.compile(r"^!(\d+)\s+slots(?:\s+(.+))?$", re.IGNORECASE)
_MINI_PATTERN = re.compile(
    r"^!mini\s+(\d+)\s*x(?:\s+(\d+))?\s*-\s*(\d+)\s*(?:c|coins?)$", re.IGNORECASE
)
_MINIDRAW_PATTERN = re.compile(r"^!minidraw$", re.IGNORECASE)


def raffle_timer_key(key: str) -> str:
    return f"raffle:{key}"


def window_timer_key(parent_key: str, holder_id: str) -> str:
    return f"window:{parent_key}:{holder_id}"


def require_manage_guild():
    async def predicate(interaction: discord.Interaction) -> bool:
        if is_privileged(interaction.user):
            return True
        raise app_commands.CheckFailure(
            "You need the Manage Server permission to run this command."
        )

    return app_commands.check(predicate)


class RaffleFeature:
    def __init__(
        self,
        *,
        client: discord.Client,
        config: EnvironmentConfig,
        engine: RaffleEngine,
        minis: MiniRaffleOrchestrator,
        ledger: ReservationLedger,
        scheduler: TimerScheduler,
    ) -> None:
        self.client = client
        self.config = config
        self.engine = engine
        self.minis = minis
        self.ledger = ledger
        self.scheduler = scheduler

    # ----- Lookup -----
    def _raffle_for(self, guild_id: int | str, channel_id: int | str) -> Raffle:
        raffle = self.engine.get_raffle(raffle_key(guild_id, channel_id))
        if raffle is None or raffle.capacity <= 0:
            raise NotFoundError("No raffle found here.")
        return raffle

    def _role_ping(self) -> str:
        return f"<@&{self.config.ping_role_id}> " if self.config.ping_role_id else ""

    # ----- Rendering -----
    async def update_board(self, channel, raffle: Raffle) -> None:
        is_mini = self.engine.is_mini(raffle)
        text = format_board_text(
            raffle,
            mini_winners=() if is_mini else self.engine.mini_winners(raffle),
            mains_left=None if is_mini else self.engine.compute_mains_left(raffle),
        )
        existing = await safe_fetch_message(channel, raffle.board_message_id)
        if existing is not None and await safe_edit(existing, content=text):
            return
        posted = await safe_send(channel, text)
        if posted is not None:
            self.engine.set_board_message(raffle, posted.id)

    async def announce_mains_left(self, channel, raffle: Raffle) -> None:
        if not raffle.active or self.engine.is_mini(raffle):
            return
        left = self.engine.note_mains_left(raffle)
        if left is not None:
            await safe_send(channel, format_mains_left(left))

    async def announce_close(self, channel, raffle: Raffle, outcome: CloseOutcome) -> None:
        self.scheduler.cancel(raffle_timer_key(raffle.key))
        if outcome.reason == "timer":
            await safe_send(channel, "⏰ Time's up! This raffle is now **CLOSED**.")
        elif outcome.is_mini:
            await safe_send(
                channel, "✅ **FULL**: all mini slots claimed. Mods can now `/raffle draw` 🎲"
            )
        else:
            await safe_send(channel, FULL_NOTICE)
        if outcome.host_id:
            state = "closed" if outcome.reason == "timer" else "full"
            await safe_send(channel, f"{mention(outcome.host_id)} your raffle is {state}!")
        if outcome.totals_due:
            await safe_send(channel, format_totals(raffle, outcome.totals))

    async def _after_claim(self, channel, raffle: Raffle, close: CloseOutcome | None) -> None:
        await self.update_board(channel, raffle)
        if close is not None:
            await self.announce_close(channel, raffle, close)
        else:
            await self.announce_mains_left(channel, raffle)

    # ----- Raffle lifecycle -----
    async def start_raffle(
        self,
        *,
        guild_id: int,
        channel,
        host_id: int,
        capacity: int,
        price_text: str = "",
        duration: str | None = None,
    ) -> str:
        if getattr(channel, "parent_id", None) != self.config.raffle_channel_id:
            raise InvalidValueError("Run /raffle start inside a raffle thread.")
        duration_ms = parse_duration(duration) if duration else None
        key = raffle_key(guild_id, channel.id)
        self.scheduler.cancel(raffle_timer_key(key))
        for pending in list(self.scheduler.pending()):
            if pending.startswith(window_timer_key(key, "")):
                self.scheduler.cancel(pending)
        raffle = self.engine.start_raffle(
            guild_id,
            channel.id,
            capacity,
            price_text,
            duration_ms=duration_ms,
            host_id=str(host_id),
        )
        if raffle.ends_at is not None:
            self.arm_raffle_timer(raffle)

        price = f" ({raffle.price_text})" if raffle.price_text else ""
        ends = f"\nCloses <t:{raffle.ends_at // 1000}:R>." if raffle.ends_at else ""
        await safe_send(
            channel,
            f"{self._role_ping()}🎟️ New raffle: **{capacity} slots**{price}. "
            f"Type slot numbers to claim!{ends}",
        )
        await self.update_board(channel, raffle)
        return f"Raffle started with {capacity} slots."

    def arm_raffle_timer(self, raffle: Raffle) -> None:
        if raffle.ends_at is None:
            return
        key = raffle.key
        self.scheduler.schedule(
            raffle_timer_key(key), raffle.ends_at, lambda: self.on_raffle_expired(key)
        )

    async def on_raffle_expired(self, key: str) -> None:
        outcome = self.engine.expire(key)
        if outcome is None:
            return
        raffle = self.engine.get_raffle(key)
        channel = await resolve_channel(self.client, split_raffle_key(key)[1])
        if raffle is None or channel is None:
            return
        await self.update_board(channel, raffle)
        await self.announce_close(channel, raffle, outcome)

    # ----- Claims -----
    def _settle_window(self, raffle: Raffle, holder_id: str, result: ClaimResult) -> None:
        # a window used up by claiming has nothing left to expire
        if result.added and result.reservation is None:
            self.scheduler.cancel(window_timer_key(raffle.key, holder_id))

    async def claim(
        self, *, guild_id: int, channel, user_id: int, numbers: list[int], privileged: bool
    ) -> str:
        raffle = self._raffle_for(guild_id, channel.id)
        result = self.engine.claim_slots(raffle, str(user_id), numbers, privileged)
        self._settle_window(raffle, str(user_id), result)
        if result.added:
            await self._after_claim(channel, raffle, result.close)
        return format_claim_result(raffle, result)

    async def claim_rest(
        self, *, guild_id: int, channel, user_id: int, privileged: bool
    ) -> str:
        raffle = self._raffle_for(guild_id, channel.id)
        result = self.engine.claim_remaining_slots(raffle, str(user_id), privileged)
        self._settle_window(raffle, str(user_id), result)
        if result.added:
            await self._after_claim(channel, raffle, result.close)
        return format_claim_result(raffle, result)

    async def release(
        self,
        *,
        guild_id: int,
        channel,
        user_id: int,
        slot: int | None,
        privileged: bool,
    ) -> str:
        raffle = self._raffle_for(guild_id, channel.id)
        freed = self.engine.release_slots(raffle, str(user_id), slot, privileged)
        await self.update_board(channel, raffle)
        await self.announce_mains_left(channel, raffle)
        listed = ", ".join(f"#{number}" for number in freed)
        return f"🧹 Freed {listed}."

    async def split(
        self,
        *,
        guild_id: int,
        channel,
        slot: int,
        new_holder_id: int,
        requested_by: int,
        privileged: bool,
    ) -> str:
        raffle = self._raffle_for(guild_id, channel.id)
        split = self.engine.split_slot(
            raffle, slot, None, str(new_holder_id), str(requested_by), privileged
        )
        await self.update_board(channel, raffle)
        return (
            f"✅ Slot **#{slot}** split: {mention(split.first)} + "
            f"{mention(split.second)} (half each)."
        )

    async def assign(
        self,
        *,
        guild_id: int,
        channel,
        slot: int,
        holder_id: int,
        second_holder_id: int | None,
        privileged: bool,
    ) -> str:
        raffle = self._raffle_for(guild_id, channel.id)
        result = self.engine.assign_slot(
            raffle,
            slot,
            str(holder_id),
            str(second_holder_id) if second_holder_id else None,
            privileged,
        )
        await self._after_claim(channel, raffle, result.close)
        names = " + ".join(mention(holder) for holder in result.holders.holders)
        return f"📝 Slot **#{slot}** assigned to {names}."

    async def total(self, *, guild_id: int, channel, privileged: bool) -> str:
        if not privileged:
            raise ForbiddenError("❌ Mods only.")
        raffle = self._raffle_for(guild_id, channel.id)
        return format_totals(raffle, self.engine.compute_totals(raffle))

    async def repost_board(self, *, guild_id: int, channel) -> str:
        raffle = self._raffle_for(guild_id, channel.id)
        self.engine.set_board_message(raffle, None)
        await self.update_board(channel, raffle)
        return "Board reposted."

    # ----- Minis -----
    async def create_mini(
        self,
        *,
        guild_id: int,
        channel,
        host_id: int,
        ticket_count: int,
        unit_price: int,
        mini_slots: int | None = None,
    ) -> str:
        parent = self._raffle_for(guild_id, channel.id)
        slots = mini_slots or self.config.mini_default_slots
        plan = self.minis.plan(parent, ticket_count, slots, unit_price)

        mini_channel = await resolve_channel(self.client, self.config.mini_channel_id)
        if mini_channel is None or not hasattr(mini_channel, "create_thread"):
            raise NotFoundError("The mini raffle channel is not available.")
        try:
            thread = await mini_channel.create_thread(
                name=f"Mini • {plan.ticket_count}x main",
                type=discord.ChannelType.public_thread,
            )
        except discord.HTTPException as exc:
            log.warning("Failed to create mini thread: %s", exc)
            raise NotFoundError("Couldn't create the mini raffle thread.") from exc

        try:
            mini, _link = self.minis.create_mini(
                parent,
                guild_id,
                thread.id,
                plan.ticket_count,
                plan.capacity,
                plan.unit_price,
                host_id=str(host_id),
            )
        except Exception:
            try:
                await thread.delete()
            except discord.HTTPException as exc:
                log.warning("Failed to delete orphaned mini thread %s: %s", thread.id, exc)
            raise

        await safe_send(
            thread,
            f"{self._role_ping()}🎟️ Mini raffle for **{plan.ticket_count}** main slot(s): "
            f"**{mini.capacity} slots** ({mini.price_text}). Type numbers to claim!",
        )
        await self.update_board(thread, mini)
        await safe_send(
            channel,
            f"🎲 Mini raffle opened in {getattr(thread, 'mention', thread.id)} "
            f"for **{plan.ticket_count}** main slot(s).",
        )
        await self.update_board(channel, parent)
        await self.announce_mains_left(channel, parent)
        return f"Mini raffle created: {getattr(thread, 'mention', thread.id)}"

    async def draw_mini(self, *, guild_id: int, channel) -> str:
        mini = self._raffle_for(guild_id, channel.id)
        result = self.minis.complete_draw(mini)
        await self.update_board(channel, mini)
        await safe_send(
            channel,
            f"🏆 Winner: {mention(result.winner_id)} (slot **#{result.winning_slot}**)! "
            f"They get **{result.ticket_count}** main slot(s).",
        )
        if result.mini_close is not None and result.mini_close.totals_due:
            await safe_send(channel, format_totals(mini, result.mini_close.totals))

        parent = self.engine.get_raffle(result.parent_key)
        parent_channel = await resolve_channel(
            self.client, split_raffle_key(result.parent_key)[1]
        )
        if result.reservation is not None and not result.parent_full:
            self.arm_window_timer(
                result.parent_key, result.winner_id, result.reservation.expires_at
            )
        if parent is None or parent_channel is None:
            return f"Drew {mention(result.winner_id)}."

        lines = [
            f"🏆 **Mini winner:** {mention(result.winner_id)} "
            f"(won mini slot **#{result.winning_slot}**)"
        ]
        if result.auto_fill is not None and result.auto_fill.added:
            numbers = ", ".join(f"#{n}" for n in result.auto_fill.added)
            lines.append(f"🎁 Auto-filled the last slot(s): {numbers}")
        elif result.reservation is not None:
            lines.append(
                f"🔒 {mention(result.winner_id)} has until "
                f"<t:{result.reservation.expires_at // 1000}:t> to claim "
                f"**{result.reservation.remaining}** main slot(s). Type your numbers!"
            )
        lines.append(format_mains_left(self.engine.compute_mains_left(parent)))
        await safe_send(parent_channel, "\n".join(lines))
        await self.update_board(parent_channel, parent)
        if result.auto_fill is not None and result.auto_fill.close is not None:
            await self.announce_close(parent_channel, parent, result.auto_fill.close)
        return f"Drew {mention(result.winner_id)}."

    def arm_window_timer(self, parent_key: str, holder_id: str, expires_at: int) -> None:
        self.scheduler.schedule(
            window_timer_key(parent_key, holder_id),
            expires_at + 1,
            lambda: self.on_window_expired(parent_key, holder_id),
        )

    async def on_window_expired(self, parent_key: str, holder_id: str) -> None:
        raffle = self.engine.get_raffle(parent_key)
        if raffle is None or not raffle.active:
            return
        if self.ledger.get(parent_key, holder_id) is not None:
            return
        if self.minis.unclaimed_tickets(parent_key, holder_id) <= 0:
            return
        channel = await resolve_channel(self.client, split_raffle_key(parent_key)[1])
        if channel is None:
            return
        await safe_send(
            channel,
            f"⌛ {mention(holder_id)}'s claim window is over. Open slots are free for everyone.",
        )
        await self.update_board(channel, raffle)
        await self.announce_mains_left(channel, raffle)

    # ----- Dice -----
    async def roll(self, *, guild_id: int, channel, sides: int) -> str:
        raffle = self.engine.get_raffle(raffle_key(guild_id, channel.id))
        result = self.engine.roll(raffle, sides)
        text = f"🎲 Rolled **{result.number}** (1-{sides})"
        if result.raffle_draw:
            if result.holders:
                names = " + ".join(mention(holder) for holder in result.holders)
                text += f"\n🏆 Slot **#{result.number}** wins: {names}"
            else:
                text += f"\nSlot **#{result.number}** was never claimed."
        return text

    # ----- Startup -----
    def restore_timers(self) -> int:
        restored = 0
        for raffle in self.engine.timed_raffles():
            self.arm_raffle_timer(raffle)
            restored += 1
        for reservation in self.ledger.all_live():
            if reservation.placeholder:
                continue
            self.arm_window_timer(
                reservation.parent_key, reservation.holder_id, reservation.expires_at
            )
            restored += 1
        if restored:
            log.info("Re-armed %s raffle timer(s)", restored)
        return restored

    # ----- Text commands -----
    async def _mod_text_command(
        self, message: discord.Message, content: str, privileged: bool
    ) -> str | None:
        """Run a ``!`` command if the text is one; ``None`` means it is not."""
        start = _START_PATTERN.match(content)
        mini = _MINI_PATTERN.match(content)
        draw = _MINIDRAW_PATTERN.match(content)
        if not (start or mini or draw):
            return None
        if not privileged:
            raise ForbiddenError("❌ Mods only.")

        common = dict(guild_id=message.guild.id, channel=message.channel)
        if start:
            return await self.start_raffle(
                host_id=message.author.id,
                capacity=int(start.group(1)),
                price_text=(start.group(2) or "free").strip(),
                **common,
            )
        if mini:
            return await self.create_mini(
                host_id=message.author.id,
                ticket_count=int(mini.group(1)),
                mini_slots=int(mini.group(2)) if mini.group(2) else None,
                unit_price=int(mini.group(3)),
                **common,
            )
        return await self.draw_mini(**common)

    async def handle_message(self, message: discord.Message) -> None:
        if message.author.bot or message.guild is None:
            return
        content = (message.content or "").strip()
        if not content:
            return

        privileged = is_privileged(message.author)
        common = dict(guild_id=message.guild.id, channel=message.channel)
        try:
            reply = await self._mod_text_command(message, content, privileged)
            if reply is None:
                raffle = self.engine.get_raffle(
                    raffle_key(message.guild.id, message.channel.id)
                )
                if raffle is None or raffle.capacity <= 0:
                    return
                if _TOTAL_PATTERN.match(content):
                    reply = await self.total(privileged=privileged, **common)
                    await safe_send(message.channel, reply)
                    return
                if _REST_PATTERN.match(content):
                    reply = await self.claim_rest(
                        user_id=message.author.id, privileged=privileged, **common
                    )
                elif match := _FREE_PATTERN.match(content):
                    slot = int(match.group(1)) if match.group(1) else None
                    reply = await self.release(
                        user_id=message.author.id,
                        slot=slot,
                        privileged=privileged,
                        **common,
                    )
                elif match := _SPLIT_PATTERN.match(content):
                    targets = [user for user in message.mentions if not user.bot]
                    if not targets:
                        raise InvalidValueError("Usage: `split <number> @user`")
                    reply = await self.split(
                        slot=int(match.group(1)),
                        new_holder_id=targets[0].id,
                        requested_by=message.author.id,
                        privileged=privileged,
                        **common,
                    )
                else:
                    numbers = parse_claim_numbers(content)
                    if numbers is None:
                        return
                    reply = await self.claim(
                        user_id=message.author.id,
                        numbers=numbers,
                        privileged=privileged,
                        **common,
                    )
        except RaffleBotError as exc:
            reply = str(exc)
        except Exception:
            log.exception("Raffle text command failed in %s", message.channel.id)
            reply = GENERIC_FAILURE
        try:
            await message.reply(reply, mention_author=False)
        except discord.HTTPException as exc:
            log.warning("Failed to reply to %s: %s", message.id, exc)


async def run_command(
    interaction: discord.Interaction,
    action: Callable[[], Awaitable[str]],
    *,
    ephemeral: bool = False,
) -> None:
    """Defer, run a feature call and answer with its text or the error message."""
    try:
        await interaction.response.defer(ephemeral=ephemeral, thinking=True)
    except discord.HTTPException as exc:
        log.warning("Failed to defer interaction: %s", exc)
    try:
        text = await action()
    except RaffleBotError as exc:
        await reply_ephemeral(interaction, str(exc))
        return
    except Exception:
        log.exception("Raffle command failed")
        await reply_ephemeral(interaction, GENERIC_FAILURE)
        return
    try:
        await interaction.followup.send(text, ephemeral=ephemeral)
    except discord.HTTPException as exc:
        log.warning("Failed to send command reply: %s", exc)


class RaffleCommands(app_commands.Group):
    def __init__(self, feature: RaffleFeature) -> None:
        super().__init__(name="raffle", description="Slot raffles and mini raffles")
        self.feature = feature

    @app_commands.command(name="start", description="Start a raffle in this thread")
    @app_commands.describe(
        slots="Number of slots (1-500)",
        price="Price per slot, e.g. 500c or free",
        duration="Optional auto-close, e.g. 30m, 2h, 1d",
    )
    @require_manage_guild()
    async def start(
        self,
        interaction: discord.Interaction,
        slots: app_commands.Range[int, 1, 500],
        price: str | None = None,
        duration: str | None = None,
    ) -> None:
        await run_command(
            interaction,
            lambda: self.feature.start_raffle(
                guild_id=interaction.guild_id,
                channel=interaction.channel,
                host_id=interaction.user.id,
                capacity=slots,
                price_text=price or "",
                duration=duration,
            ),
            ephemeral=True,
        )

    @app_commands.command(name="mini", description="Open a mini raffle for main slots")
    @app_commands.describe(
        tickets="Main slots the mini winner gets (1-50)",
        price="Price of one main slot in coins",
        slots="Mini raffle slots (2-100)",
    )
    @require_manage_guild()
    async def mini(
        self,
        interaction: discord.Interaction,
        tickets: app_commands.Range[int, 1, 50],
        price: app_commands.Range[int, 0, 1_000_000],
        slots: Optional[app_commands.Range[int, 2, 100]] = None,
    ) -> None:
        await run_command(
            interaction,
            lambda: self.feature.create_mini(
                guild_id=interaction.guild_id,
                channel=interaction.channel,
                host_id=interaction.user.id,
                ticket_count=tickets,
                unit_price=price,
                mini_slots=slots,
            ),
            ephemeral=True,
        )

    @app_commands.command(name="draw", description="Draw the winner of this mini raffle")
    @require_manage_guild()
    async def draw(self, interaction: discord.Interaction) -> None:
        await run_command(
            interaction,
            lambda: self.feature.draw_mini(
                guild_id=interaction.guild_id, channel=interaction.channel
            ),
            ephemeral=True,
        )

    @app_commands.command(name="claim", description="Claim slot numbers, e.g. 3 7 12")
    async def claim(self, interaction: discord.Interaction, numbers: str) -> None:
        parsed = parse_claim_numbers(numbers)
        if parsed is None:
            await reply_ephemeral(interaction, "List slot numbers, e.g. `3 7 12`.")
            return
        await run_command(
            interaction,
            lambda: self.feature.claim(
                guild_id=interaction.guild_id,
                channel=interaction.channel,
                user_id=interaction.user.id,
                numbers=parsed,
                privileged=is_privileged(interaction.user),
            ),
        )

    @app_commands.command(name="rest", description="Claim every open slot you can")
    async def rest(self, interaction: discord.Interaction) -> None:
        await run_command(
            interaction,
            lambda: self.feature.claim_rest(
                guild_id=interaction.guild_id,
                channel=interaction.channel,
                user_id=interaction.user.id,
                privileged=is_privileged(interaction.user),
            ),
        )

    @app_commands.command(name="release", description="Free your slots (mods: one slot)")
    async def release(
        self, interaction: discord.Interaction, slot: int | None = None
    ) -> None:
        await run_command(
            interaction,
            lambda: self.feature.release(
                guild_id=interaction.guild_id,
                channel=interaction.channel,
                user_id=interaction.user.id,
                slot=slot,
                privileged=is_privileged(interaction.user),
            ),
        )

    @app_commands.command(name="split", description="Share one of your slots")
    async def split(
        self, interaction: discord.Interaction, slot: int, user: discord.Member
    ) -> None:
        await run_command(
            interaction,
            lambda: self.feature.split(
                guild_id=interaction.guild_id,
                channel=interaction.channel,
                slot=slot,
                new_holder_id=user.id,
                requested_by=interaction.user.id,
                privileged=is_privileged(interaction.user),
            ),
        )

    @app_commands.command(name="assign", description="Put users on a slot")
    @require_manage_guild()
    async def assign(
        self,
        interaction: discord.Interaction,
        slot: int,
        user: discord.Member,
        second_user: discord.Member | None = None,
    ) -> None:
        await run_command(
            interaction,
            lambda: self.feature.assign(
                guild_id=interaction.guild_id,
                channel=interaction.channel,
                slot=slot,
                holder_id=user.id,
                second_holder_id=second_user.id if second_user else None,
                privileged=True,
            ),
        )

    @app_commands.command(name="total", description="Show what everyone owes")
    @require_manage_guild()
    async def total(self, interaction: discord.Interaction) -> None:
        await run_command(
            interaction,
            lambda: self.feature.total(
                guild_id=interaction.guild_id,
                channel=interaction.channel,
                privileged=True,
            ),
        )

    @app_commands.command(name="board", description="Repost the slot board")
    @require_manage_guild()
    async def board(self, interaction: discord.Interaction) -> None:
        await run_command(
            interaction,
            lambda: self.feature.repost_board(
                guild_id=interaction.guild_id, channel=interaction.channel
            ),
            ephemeral=True,
        )


def build_roll_command(feature: RaffleFeature) -> app_commands.Command:
    @app_commands.command(name="roll", description="Roll a die; in a raffle, draws a slot")
    @app_commands.describe(sides="Die size")
    @require_manage_guild()
    async def roll(
        interaction: discord.Interaction, sides: app_commands.Range[int, 2, 10_000]
    ) -> None:
        await run_command(
            interaction,
            lambda: feature.roll(
                guild_id=interaction.guild_id, channel=interaction.channel, sides=sides
            ),
        )

    return roll


__all__ = [
    "RaffleFeature",
    "RaffleCommands",
    "build_roll_command",
    "require_manage_guild",
    "run_command",
    "raffle_timer_key",
    "window_timer_key",
]
