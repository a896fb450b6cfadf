"""Best-effort Discord I/O shared by the raffle and giveaway features.

State is always persisted before these helpers run; a failed send or edit is
logged and dropped.
"""

from __future__ import annotations

import logging
from typing import Any, Final

import discord

log: Final = logging.getLogger("raffle-messaging")

GENERIC_FAILURE = "Something went wrong. Try again in a moment."


def ensure_messageable_channel(channel: object) -> discord.abc.Messageable | None:
    """Return the channel if it can accept messages, otherwise ``None``."""

    if channel is None:
        return None

    if isinstance(channel, (discord.TextChannel, discord.Thread)):
        return channel

    send = getattr(channel, "send", None)
    if callable(send):
        return channel

    return None


async def resolve_channel(
    client: discord.Client, channel_id: int | str | None
) -> discord.abc.Messageable | None:
    """Resolve a text-capable channel or thread, fetching it if necessary."""

    if not channel_id:
        return None
    channel_id = int(channel_id)

    cached = ensure_messageable_channel(client.get_channel(channel_id))
    if cached is not None:
        return cached

    try:
        fetched = await client.fetch_channel(channel_id)
    except discord.NotFound:
        log.warning("Channel %s not found", channel_id)
        return None
    except discord.Forbidden:
        log.warning("No access to channel %s – check bot permissions", channel_id)
        return None
    except discord.HTTPException as exc:
        log.warning("Cannot fetch channel %s – HTTP error: %s", channel_id, exc)
        return None

    return ensure_messageable_channel(fetched)


async def safe_send(
    channel: discord.abc.Messageable | None, content: str | None = None, **kwargs: Any
) -> discord.Message | None:
    if channel is None:
        return None
    kwargs.setdefault("allowed_mentions", discord.AllowedMentions(users=True, roles=True))
    try:
        return await channel.send(content, **kwargs)
    except discord.HTTPException as exc:
        log.warning("Failed to send message to %s: %s", getattr(channel, "id", "?"), exc)
        return None


async def safe_fetch_message(
    channel: discord.abc.Messageable | None, message_id: int | str | None
) -> discord.Message | None:
    if channel is None or not message_id:
        return None
    try:
        return await channel.fetch_message(int(message_id))
    except discord.NotFound:
        return None
    except discord.HTTPException as exc:
        log.warning("Failed to fetch message %s: %s", message_id, exc)
        return None


async def safe_edit(message: discord.Message | None, **kwargs: Any) -> bool:
    if message is None:
        return False
    try:
        await message.edit(**kwargs)
    except discord.HTTPException as exc:
        log.warning("Failed to edit message %s: %s", message.id, exc)
        return False
    return True


async def reply_ephemeral(interaction: discord.Interaction, content: str) -> None:
    """Answer an interaction privately whether or not it was already acknowledged."""
    try:
        if interaction.response.is_done():
            await interaction.followup.send(content, ephemeral=True)
        else:
            await interaction.response.send_message(content, ephemeral=True)
    except discord.HTTPException as exc:
        log.warning("Failed to reply to interaction: %s", exc)


def is_privileged(member: object) -> bool:
    permissions = getattr(member, "guild_permissions", None)
    return bool(permissions and permissions.manage_guild)


__all__ = [
    "GENERIC_FAILURE",
    "ensure_messageable_channel",
    "resolve_channel",
    "safe_send",
    "safe_fetch_message",
    "safe_edit",
    "reply_ephemeral",
    "is_privileged",
]
