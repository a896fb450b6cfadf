"""Giveaway announcements, the persistent entry button and the end/reroll flow."""

from __future__ import annotations

import datetime
import logging
from typing import Final

import discord
from discord import app_commands
from discord.ext import tasks

from bots.config import EnvironmentConfig
from bots.messaging import (
    GENERIC_FAILURE,
    reply_ephemeral,
    resolve_channel,
    safe_edit,
    safe_fetch_message,
    safe_send,
)
from bots.raffles import require_manage_guild, run_command
from raffle_bot.errors import AlreadyEndedError, NotFoundError
from raffle_bot.giveaways import GiveawayService, JoinStatus
from raffle_bot.models import Giveaway
from raffle_bot.scheduler import TimerScheduler

log: Final = logging.getLogger("giveaway-bot")

_JOIN_REPLIES: Final[dict[JoinStatus, str]] = {
    JoinStatus.JOINED: "🎉 You're entered! ({entries} entries)",
    JoinStatus.ALREADY_ENTERED: "You're already entered! ({entries} entries)",
    JoinStatus.ENDED: "This giveaway has ended.",
    JoinStatus.NOT_FOUND: "Giveaway not found.",
}


def giveaway_timer_key(message_id: str) -> str:
    return f"giveaway:{message_id}"


def _timestamp(epoch_ms: int) -> int:
    return epoch_ms // 1000


def build_giveaway_embed(giveaway: Giveaway) -> discord.Embed:
    ts = _timestamp(giveaway.ends_at)
    lines = [
        f"**Prize:** {giveaway.prize}",
        f"**Winners:** {giveaway.winner_count}",
        f"**Ends:** <t:{ts}:F> (<t:{ts}:R>)",
        f"**Hosted by:** <@{giveaway.host_id}>",
    ]
    if giveaway.sponsor_id:
        lines.append(f"**Sponsored by:** <@{giveaway.sponsor_id}>")
    embed = discord.Embed(
        title="🎉 Giveaway",
        description="\n".join(lines),
        timestamp=datetime.datetime.fromtimestamp(ts, tz=datetime.UTC),
    )
    embed.set_footer(text=f"{len(giveaway.participants)} entries")
    return embed


def build_result_embed(giveaway: Giveaway, *, reroll: bool) -> discord.Embed:
    winners = (
        ", ".join(f"<@{winner}>" for winner in giveaway.last_winners)
        or "_No valid entries_"
    )
    ended_at = giveaway.ended_at or giveaway.ends_at
    embed = discord.Embed(
        title="🔁 Giveaway Reroll" if reroll else "🏁 Giveaway Ended",
        description=(
            f"**Prize:** {giveaway.prize}\n**Winners:** {winners}\n"
            f"**Ended:** <t:{_timestamp(ended_at)}:F>"
        ),
        timestamp=datetime.datetime.now(tz=datetime.UTC),
    )
    embed.set_footer(text=f"{len(giveaway.participants)} entries")
    return embed


def ended_view(message_id: str) -> discord.ui.View:
    view = discord.ui.View(timeout=None)
    view.add_item(
        discord.ui.Button(
            label="Giveaway Ended",
            style=discord.ButtonStyle.secondary,
            disabled=True,
            custom_id=f"{Giveaway.ENTRY_PREFIX}{message_id}",
        )
    )
    return view


class GiveawayView(discord.ui.View):
    def __init__(self, feature: GiveawayFeature, message_id: str) -> None:
        super().__init__(timeout=None)
        self.feature = feature
        self.message_id = str(message_id)

        if hasattr(self, "enter"):
            self.enter.custom_id = f"{Giveaway.ENTRY_PREFIX}{self.message_id}"

    @discord.ui.button(label="Enter Giveaway", style=discord.ButtonStyle.green)
    async def enter(
        self, interaction: discord.Interaction, _: discord.ui.Button
    ) -> None:  # pylint: disable=unused-argument
        try:
            outcome = self.feature.service.join(self.message_id, interaction.user.id)
        except Exception:
            log.exception("Failed to record entry for %s", self.message_id)
            await reply_ephemeral(interaction, GENERIC_FAILURE)
            return
        await reply_ephemeral(
            interaction, _JOIN_REPLIES[outcome.status].format(entries=outcome.entries)
        )
        if outcome.ok:
            await self.feature.refresh_entry_count(self.message_id, interaction.message)


class GiveawayFeature:
    def __init__(
        self,
        *,
        client: discord.Client,
        config: EnvironmentConfig,
        service: GiveawayService,
        scheduler: TimerScheduler,
    ) -> None:
        self.client = client
        self.config = config
        self.service = service
        self.scheduler = scheduler
        self._views_restored = False
        self.sweep = tasks.loop(minutes=1)(self._sweep)

    async def start(
        self,
        *,
        guild_id: int,
        host_id: int,
        prize: str,
        duration: str,
        winners: int,
        sponsor_id: int | None = None,
        announce_ping: bool | None = None,
    ) -> str:
        draft = self.service.prepare(prize, duration, winners)
        channel = await resolve_channel(self.client, self.config.giveaway_channel_id)
        if channel is None:
            raise NotFoundError("The giveaway channel is not available.")

        ping = self.config.giveaway_ping_default if announce_ping is None else announce_ping
        content = (
            f"<@&{self.config.ping_role_id}>"
            if ping and self.config.ping_role_id
            else None
        )
        preview = Giveaway(
            message_id="0",
            guild_id=str(guild_id),
            channel_id=str(getattr(channel, "id", self.config.giveaway_channel_id)),
            prize=draft.prize,
            winner_count=draft.winner_count,
            ends_at=self.service.now() + draft.duration_ms,
            started_at=self.service.now(),
            host_id=str(host_id),
            sponsor_id=str(sponsor_id) if sponsor_id else None,
        )
        message = await safe_send(channel, content, embed=build_giveaway_embed(preview))
        if message is None:
            raise NotFoundError("Couldn't post the giveaway message.")

        giveaway = self.service.create(
            draft,
            message_id=message.id,
            guild_id=guild_id,
            channel_id=preview.channel_id,
            host_id=host_id,
            sponsor_id=sponsor_id,
            started_at=preview.started_at,
        )
        view = GiveawayView(self, giveaway.message_id)
        await safe_edit(message, view=view)
        self.client.add_view(view, message_id=message.id)
        self.arm_timer(giveaway)
        return f"Giveaway started for **{giveaway.prize}** (id `{giveaway.message_id}`)."

    def arm_timer(self, giveaway: Giveaway) -> None:
        message_id = giveaway.message_id
        self.scheduler.schedule(
            giveaway_timer_key(message_id),
            giveaway.ends_at,
            lambda: self.on_timer(message_id),
        )

    async def on_timer(self, message_id: str) -> None:
        try:
            giveaway = self.service.end(message_id)
        except (AlreadyEndedError, NotFoundError):
            return
        await self.announce_result(giveaway, reroll=False)

    async def end(self, message_id: str, *, reroll: bool = False) -> str:
        giveaway = self.service.end(message_id.strip(), reroll=reroll)
        if not reroll:
            self.scheduler.cancel(giveaway_timer_key(giveaway.message_id))
        await self.announce_result(giveaway, reroll=reroll)
        winners = ", ".join(f"<@{w}>" for w in giveaway.last_winners) or "no valid entries"
        verb = "Rerolled" if reroll else "Ended"
        return f"{verb} **{giveaway.prize}**: {winners}."

    async def announce_result(self, giveaway: Giveaway, *, reroll: bool) -> None:
        source = await resolve_channel(self.client, giveaway.channel_id)
        target = await resolve_channel(self.client, self.config.results_channel_id) or source
        content = " ".join(f"<@{w}>" for w in giveaway.last_winners) or None
        await safe_send(target, content, embed=build_result_embed(giveaway, reroll=reroll))

        original = await safe_fetch_message(source, giveaway.message_id)
        await safe_edit(original, view=ended_view(giveaway.message_id))

    async def refresh_entry_count(
        self, message_id: str, message: discord.Message | None = None
    ) -> None:
        giveaway = self.service.get(message_id)
        if giveaway is None:
            return
        if message is None:
            channel = await resolve_channel(self.client, giveaway.channel_id)
            message = await safe_fetch_message(channel, message_id)
        if message is None:
            return
        embed = message.embeds[0] if message.embeds else build_giveaway_embed(giveaway)
        embed.set_footer(text=f"{len(giveaway.participants)} entries")
        await safe_edit(message, embed=embed)

    def list_text(self) -> str:
        open_giveaways = self.service.list_open()
        if not open_giveaways:
            return "No active giveaways."
        lines = [
            f"• `{g.message_id}` **{g.prize}**: {len(g.participants)} entries, "
            f"ends <t:{_timestamp(g.ends_at)}:R>"
            for g in open_giveaways
        ]
        return "\n".join(lines)

    def restore(self) -> int:
        """Re-register entry buttons and re-arm timers for unfinished giveaways."""
        if self._views_restored:
            return 0
        restored = 0
        for giveaway in self.service.list_open():
            try:
                view = GiveawayView(self, giveaway.message_id)
                self.client.add_view(view, message_id=int(giveaway.message_id))
            except ValueError as exc:
                log.warning("Skipping giveaway %s: %s", giveaway.message_id, exc)
                continue
            self.arm_timer(giveaway)
            restored += 1
        self._views_restored = True
        if restored:
            log.info("Restored %s persistent giveaway views", restored)
        return restored

    async def _sweep(self) -> None:
        for giveaway in self.service.due():
            if not self.scheduler.is_scheduled(giveaway_timer_key(giveaway.message_id)):
                await self.on_timer(giveaway.message_id)


class GiveawayCommands(app_commands.Group):
    def __init__(self, feature: GiveawayFeature) -> None:
        super().__init__(name="giveaway", description="Timed giveaways")
        self.feature = feature

    @app_commands.command(name="start", description="Start a giveaway")
    @app_commands.describe(
        prize="What the winners get",
        duration="How long it runs, e.g. 30m, 2h, 1d",
        winners="Number of winners (1-50)",
        sponsor="Who sponsors the prize",
        ping="Mention the ping role",
    )
    @require_manage_guild()
    async def start(
        self,
        interaction: discord.Interaction,
        prize: str,
        duration: str,
        winners: app_commands.Range[int, 1, 50] = 1,
        sponsor: discord.Member | None = None,
        ping: bool | None = None,
    ) -> None:
        await run_command(
            interaction,
            lambda: self.feature.start(
                guild_id=interaction.guild_id,
                host_id=interaction.user.id,
                prize=prize,
                duration=duration,
                winners=winners,
                sponsor_id=sponsor.id if sponsor else None,
                announce_ping=ping,
            ),
            ephemeral=True,
        )

    @app_commands.command(name="end", description="End a giveaway now")
    @require_manage_guild()
    async def end(self, interaction: discord.Interaction, giveaway_id: str) -> None:
        await run_command(
            interaction, lambda: self.feature.end(giveaway_id), ephemeral=True
        )

    @app_commands.command(name="reroll", description="Draw new winners for an ended giveaway")
    @require_manage_guild()
    async def reroll(self, interaction: discord.Interaction, giveaway_id: str) -> None:
        await run_command(
            interaction,
            lambda: self.feature.end(giveaway_id, reroll=True),
            ephemeral=True,
        )

    @app_commands.command(name="list", description="List running giveaways")
    @require_manage_guild()
    async def list_giveaways(self, interaction: discord.Interaction) -> None:
        async def action() -> str:
            return self.feature.list_text()

        await run_command(interaction, action, ephemeral=True)


__all__ = [
    "GiveawayFeature",
    "GiveawayView",
    "GiveawayCommands",
    "build_giveaway_embed",
    "build_result_embed",
    "ended_view",
    "giveaway_timer_key",
]
