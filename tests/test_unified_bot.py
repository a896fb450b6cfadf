"""Tests for the unified bot module."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from discord import app_commands

from bots.messaging import GENERIC_FAILURE
from bots.unified import EnvironmentConfig, UnifiedRuntime, build_backend, main
from raffle_bot.storage import DynamoDocumentBackend, JsonFileBackend
from tests.fakes import MemoryBackend


def make_config(**overrides):
    values = dict(
        discord_token="test_token",
        raffle_channel_id=10,
        mini_channel_id=20,
        giveaway_channel_id=30,
    )
    values.update(overrides)
    return EnvironmentConfig(**values)


def make_interaction():
    return SimpleNamespace(
        response=SimpleNamespace(
            is_done=MagicMock(return_value=False), send_message=AsyncMock()
        ),
        followup=SimpleNamespace(send=AsyncMock()),
    )


class TestBuildBackend:
    """Test state backend selection."""

    def test_json_file_by_default(self):
        """Should keep state in the configured JSON file."""
        backend = build_backend(make_config(data_file="state/data.json"))

        assert isinstance(backend, JsonFileBackend)
        assert str(backend.path) == "state/data.json"

    def test_dynamodb_when_table_configured(self):
        """Should use the DynamoDB table when one is named."""
        resource = MagicMock()

        backend = build_backend(make_config(state_table_name="raffle-state"), resource)

        assert isinstance(backend, DynamoDocumentBackend)
        resource.Table.assert_called_once_with("raffle-state")

    @patch("bots.unified.boto3.resource")
    def test_dynamodb_resource_uses_region(self, mock_boto3_resource):
        """Should create the boto3 resource in the configured region."""
        build_backend(make_config(state_table_name="t", aws_region="eu-west-1"))

        mock_boto3_resource.assert_called_once_with("dynamodb", region_name="eu-west-1")


class TestUnifiedRuntime:
    """Test unified runtime functionality."""

    def test_init(self):
        """Should wire the store, core services and both features."""
        runtime = UnifiedRuntime(make_config(), backend=MemoryBackend())

        assert runtime.bot.intents.message_content is True
        assert runtime.raffle_feature.engine is runtime.engine
        assert runtime.raffle_feature.minis is runtime.minis
        assert runtime.giveaway_feature.service is runtime.giveaways
        assert runtime.minis.claim_window_minutes == 10

    def test_configure_features(self):
        """Should register the raffle, giveaway and roll commands."""
        runtime = UnifiedRuntime(make_config(), backend=MemoryBackend())

        runtime.configure_features()

        assert runtime.tree.get_command("raffle") is not None
        assert runtime.tree.get_command("giveaway") is not None
        assert runtime.tree.get_command("roll") is not None
        raffle_group = runtime.tree.get_command("raffle")
        assert {command.name for command in raffle_group.commands} == {
            "start",
            "mini",
            "draw",
            "claim",
            "rest",
            "release",
            "split",
            "assign",
            "total",
            "board",
        }

    @patch("bots.unified.EnvironmentConfig.load")
    def test_create(self, mock_env_load):
        """Should create runtime from environment."""
        mock_env_load.return_value = make_config()

        with patch("bots.unified.build_backend", return_value=MemoryBackend()):
            runtime = UnifiedRuntime.create()

        assert runtime.config == mock_env_load.return_value
        mock_env_load.assert_called_once()

    @pytest.mark.asyncio
    async def test_run_starts_and_cleans_up(self):
        """Should load state, start the client and stop timers on exit."""
        backend = MemoryBackend({"raffles": {"1:2": {"capacity": 3, "active": True}}})
        runtime = UnifiedRuntime(make_config(), backend=backend)
        runtime.bot = AsyncMock()
        runtime.bot.__aenter__ = AsyncMock(return_value=runtime.bot)
        runtime.bot.__aexit__ = AsyncMock(return_value=None)
        runtime.bot.start = AsyncMock()
        runtime.scheduler = MagicMock(close=AsyncMock())

        with patch.object(runtime, "configure_features") as mock_configure:
            await runtime.run()

        mock_configure.assert_called_once()
        runtime.bot.start.assert_called_once_with("test_token")
        runtime.scheduler.close.assert_awaited_once()
        assert runtime.engine.get_raffle("1:2").capacity == 3

    @pytest.mark.asyncio
    async def test_on_ready_runs_once(self):
        """Should sync, restore timers and start the sweep only once."""
        runtime = UnifiedRuntime(make_config(), backend=MemoryBackend())
        runtime.sync_commands = AsyncMock()
        runtime.giveaway_feature.restore = MagicMock(return_value=0)
        runtime.raffle_feature.restore_timers = MagicMock(return_value=0)
        runtime.giveaway_feature.sweep = MagicMock()
        runtime.giveaway_feature.sweep.is_running.return_value = False

        await runtime.on_ready()
        await runtime.on_ready()

        runtime.sync_commands.assert_awaited_once()
        runtime.giveaway_feature.restore.assert_called_once()
        runtime.raffle_feature.restore_timers.assert_called_once()
        runtime.giveaway_feature.sweep.start.assert_called_once()

    @pytest.mark.asyncio
    async def test_sync_commands_to_guild(self):
        """Should copy global commands to the configured guild."""
        runtime = UnifiedRuntime(make_config(guild_id=42), backend=MemoryBackend())
        runtime.tree = MagicMock(sync=AsyncMock())

        await runtime.sync_commands()

        runtime.tree.copy_global_to.assert_called_once()
        assert runtime.tree.sync.await_args.kwargs["guild"].id == 42

    @pytest.mark.asyncio
    async def test_tree_errors(self):
        """Should show check failures and hide unexpected errors."""
        runtime = UnifiedRuntime(make_config(), backend=MemoryBackend())
        denied = make_interaction()
        broken = make_interaction()

        await runtime.on_tree_error(denied, app_commands.CheckFailure("Need Manage Server"))
        await runtime.on_tree_error(broken, app_commands.AppCommandError("boom"))

        denied.response.send_message.assert_awaited_once_with(
            "Need Manage Server", ephemeral=True
        )
        broken.response.send_message.assert_awaited_once_with(
            GENERIC_FAILURE, ephemeral=True
        )


@patch("bots.unified.EnvironmentConfig.load")
@patch("bots.unified.UnifiedRuntime.create")
@patch("bots.unified.logging.basicConfig")
@pytest.mark.asyncio
async def test_main(mock_logging_config, mock_runtime_create, mock_env_load):
    """Should create and run unified runtime."""
    mock_env_load.return_value = make_config()
    mock_runtime = AsyncMock()
    mock_runtime_create.return_value = mock_runtime

    await main()

    mock_logging_config.assert_called_once()
    mock_runtime_create.assert_called_once_with(mock_env_load.return_value)
    mock_runtime.run.assert_called_once()
