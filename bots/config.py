"""Configuration helpers for the unified runtime."""

from __future__ import annotations

import os
from dataclasses import dataclass

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def env_bool(name: str, *, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return default


def env_int(name: str, *, default: int | None = None) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True, slots=True)
class EnvironmentConfig:
    discord_token: str
    raffle_channel_id: int
    mini_channel_id: int
    giveaway_channel_id: int
    giveaway_winner_channel_id: int | None = None
    ping_role_id: int | None = None
    mini_default_slots: int = 6
    mini_claim_window_minutes: int = 10
    giveaway_ping_default: bool = False
    guild_id: int | None = None
    data_file: str = "data.json"
    state_table_name: str | None = None
    aws_region: str = "us-east-1"
    log_level: str = "INFO"

    @property
    def results_channel_id(self) -> int:
        return self.giveaway_winner_channel_id or self.giveaway_channel_id

    @classmethod
    def load(cls) -> "EnvironmentConfig":
        missing: list[str] = []

        def need_id(name: str) -> int:
            value = env_int(name)
            if value is None:
                missing.append(name)
                return 0
            return value

        discord_token = os.getenv("DISCORD_TOKEN") or ""
        if not discord_token:
            missing.append("DISCORD_TOKEN")
        raffle_channel_id = need_id("RAFFLE_CHANNEL_ID")
        mini_channel_id = need_id("MINI_CHANNEL_ID")
        giveaway_channel_id = need_id("GIVEAWAY_CHANNEL_ID")

        if missing:
            raise RuntimeError("Missing env vars: " + ", ".join(sorted(set(missing))))

        return cls(
            discord_token=discord_token,
            raffle_channel_id=raffle_channel_id,
            mini_channel_id=mini_channel_id,
            giveaway_channel_id=giveaway_channel_id,
            giveaway_winner_channel_id=env_int("GIVEAWAY_WINNER_CHANNEL_ID"),
            ping_role_id=env_int("PING_ROLE_ID"),
            mini_default_slots=env_int("MINI_DEFAULT_SLOTS", default=6) or 6,
            mini_claim_window_minutes=(
                env_int("MINI_CLAIM_WINDOW_MINUTES", default=10) or 10
            ),
            giveaway_ping_default=env_bool("GIVEAWAY_PING_DEFAULT"),
            guild_id=env_int("GUILD_ID"),
            data_file=os.getenv("DATA_FILE") or "data.json",
            state_table_name=os.getenv("STATE_TABLE_NAME") or None,
            aws_region=os.getenv("AWS_REGION", "us-east-1"),
            log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
        )


__all__ = ["env_bool", "env_int", "EnvironmentConfig"]
