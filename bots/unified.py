"""Unified Discord bot runtime that composes the raffle and giveaway features."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Callable

import boto3
import discord
from discord import app_commands
from discord.app_commands import errors as app_errors

from bots.config import EnvironmentConfig
from bots.giveaway import GiveawayCommands, GiveawayFeature
from bots.messaging import GENERIC_FAILURE, reply_ephemeral
from bots.raffles import RaffleCommands, RaffleFeature, build_roll_command
from raffle_bot.engine import RaffleEngine
from raffle_bot.giveaways import GiveawayService
from raffle_bot.minis import MiniRaffleOrchestrator
from raffle_bot.models import now_ms
from raffle_bot.reservations import ReservationLedger
from raffle_bot.scheduler import TimerScheduler
from raffle_bot.storage import (
    DocumentBackend,
    DocumentStore,
    DynamoDocumentBackend,
    GiveawayRepository,
    JsonFileBackend,
    MiniRepository,
    RaffleRepository,
)

log = logging.getLogger("raffle-unified")

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def build_backend(config: EnvironmentConfig, dynamodb_resource=None) -> DocumentBackend:
    if config.state_table_name:
        resource = dynamodb_resource or boto3.resource(
            "dynamodb", region_name=config.aws_region
        )
        log.info("Using DynamoDB table %s for state", config.state_table_name)
        return DynamoDocumentBackend(resource.Table(config.state_table_name))
    log.info("Using %s for state", config.data_file)
    return JsonFileBackend(config.data_file)


class UnifiedRuntime:
    def __init__(
        self,
        config: EnvironmentConfig,
        *,
        backend: DocumentBackend | None = None,
        clock: Callable[[], int] = now_ms,
        rng: random.Random | None = None,
    ) -> None:
        intents = discord.Intents.default()
        intents.guilds = True
        intents.messages = True
        intents.message_content = True

        self.config = config
        self.bot = discord.Client(intents=intents)
        self.tree = app_commands.CommandTree(self.bot)
        self.store = DocumentStore(backend or build_backend(config))
        self.scheduler = TimerScheduler(clock=clock)
        rng = rng or random.Random()

        raffles = RaffleRepository(self.store)
        minis = MiniRepository(self.store)
        self.ledger = ReservationLedger(self.store, clock=clock)
        self.engine = RaffleEngine(
            self.store, raffles, self.ledger, minis, clock=clock, rng=rng
        )
        self.minis = MiniRaffleOrchestrator(
            self.store,
            self.engine,
            raffles,
            self.ledger,
            minis,
            clock=clock,
            rng=rng,
            claim_window_minutes=config.mini_claim_window_minutes,
        )
        self.giveaways = GiveawayService(
            self.store, GiveawayRepository(self.store), clock=clock, rng=rng
        )
        self.raffle_feature = RaffleFeature(
            client=self.bot,
            config=config,
            engine=self.engine,
            minis=self.minis,
            ledger=self.ledger,
            scheduler=self.scheduler,
        )
        self.giveaway_feature = GiveawayFeature(
            client=self.bot,
            config=config,
            service=self.giveaways,
            scheduler=self.scheduler,
        )
        self._ready = False

    def configure_features(self) -> None:
        self.tree.add_command(RaffleCommands(self.raffle_feature))
        self.tree.add_command(GiveawayCommands(self.giveaway_feature))
        self.tree.add_command(build_roll_command(self.raffle_feature))
        self.tree.error(self.on_tree_error)
        self.bot.event(self.on_ready)
        self.bot.event(self.on_message)

    async def sync_commands(self) -> None:
        try:
            if self.config.guild_id:
                guild = discord.Object(id=self.config.guild_id)
                self.tree.copy_global_to(guild=guild)
                await self.tree.sync(guild=guild)
            else:
                await self.tree.sync()
        except discord.HTTPException as exc:
            log.exception("Failed to sync application commands: %s", exc)

    async def on_ready(self) -> None:
        if self._ready:
            return
        self._ready = True
        await self.sync_commands()
        self.giveaway_feature.restore()
        self.raffle_feature.restore_timers()
        if not self.giveaway_feature.sweep.is_running():
            self.giveaway_feature.sweep.start()
        log.info("Raffle bot ready as %s", self.bot.user)

    async def on_message(self, message: discord.Message) -> None:
        await self.raffle_feature.handle_message(message)

    async def on_tree_error(
        self, interaction: discord.Interaction, error: app_commands.AppCommandError
    ) -> None:
        if isinstance(error, app_errors.CheckFailure):
            await reply_ephemeral(interaction, str(error))
            return
        log.exception("Unhandled command error: %s", error)
        await reply_ephemeral(interaction, GENERIC_FAILURE)

    async def run(self) -> None:
        self.store.load()
        self.configure_features()
        try:
            async with self.bot:
                await self.bot.start(self.config.discord_token)
        finally:
            if self.giveaway_feature.sweep.is_running():
                self.giveaway_feature.sweep.cancel()
            await self.scheduler.close()

    @classmethod
    def create(cls, config: EnvironmentConfig | None = None) -> "UnifiedRuntime":
        return cls(config or EnvironmentConfig.load())


async def main() -> None:
    config = EnvironmentConfig.load()
    logging.basicConfig(level=config.log_level, format=LOG_FORMAT)
    runtime = UnifiedRuntime.create(config)
    await runtime.run()


def run_cli() -> None:
    asyncio.run(main())


__all__ = ["UnifiedRuntime", "build_backend", "main", "run_cli", "LOG_FORMAT"]
