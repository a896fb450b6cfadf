"""Tests for bots.config module."""

import os
from unittest import mock

import pytest

from bots.config import EnvironmentConfig, env_bool, env_int

REQUIRED = {
    "DISCORD_TOKEN": "test_token",
    "RAFFLE_CHANNEL_ID": "111",
    "MINI_CHANNEL_ID": "222",
    "GIVEAWAY_CHANNEL_ID": "333",
}


class TestEnvBool:
    """Test env_bool function."""

    def test_env_bool_default(self):
        """Should return the default when env var not set."""
        with mock.patch.dict(os.environ, {}, clear=True):
            assert env_bool("TEST_VAR") is False
            assert env_bool("TEST_VAR", default=True) is True

    def test_env_bool_values(self):
        """Should parse true and false spellings."""
        for value, expected in [("1", True), (" Yes ", True), ("off", False), ("NO", False)]:
            with mock.patch.dict(os.environ, {"TEST_VAR": value}, clear=True):
                assert env_bool("TEST_VAR") is expected, f"Failed for value: {value}"

    def test_env_bool_invalid_values(self):
        """Should return default for invalid values."""
        for value in ["maybe", "2", ""]:
            with mock.patch.dict(os.environ, {"TEST_VAR": value}, clear=True):
                assert env_bool("TEST_VAR", default=True) is True


class TestEnvInt:
    """Test env_int function."""

    def test_env_int_values(self):
        """Should parse integers and fall back on garbage."""
        with mock.patch.dict(os.environ, {"TEST_VAR": " 789 "}, clear=True):
            assert env_int("TEST_VAR") == 789
        with mock.patch.dict(os.environ, {"TEST_VAR": "12.5"}, clear=True):
            assert env_int("TEST_VAR", default=4) == 4
        with mock.patch.dict(os.environ, {"TEST_VAR": ""}, clear=True):
            assert env_int("TEST_VAR", default=4) == 4
        with mock.patch.dict(os.environ, {}, clear=True):
            assert env_int("TEST_VAR") is None


class TestEnvironmentConfig:
    """Test environment configuration loading."""

    def test_load_required_only(self):
        """Should apply defaults for every optional setting."""
        with mock.patch.dict(os.environ, REQUIRED, clear=True):
            config = EnvironmentConfig.load()

        assert config.discord_token == "test_token"
        assert config.raffle_channel_id == 111
        assert config.mini_channel_id == 222
        assert config.giveaway_channel_id == 333
        assert config.mini_default_slots == 6
        assert config.mini_claim_window_minutes == 10
        assert config.giveaway_ping_default is False
        assert config.data_file == "data.json"
        assert config.state_table_name is None
        assert config.log_level == "INFO"
        assert config.results_channel_id == 333

    def test_load_optional_values(self):
        """Should read optional variables."""
        env_vars = {
            **REQUIRED,
            "GIVEAWAY_WINNER_CHANNEL_ID": "444",
            "PING_ROLE_ID": "555",
            "MINI_DEFAULT_SLOTS": "8",
            "MINI_CLAIM_WINDOW_MINUTES": "15",
            "GIVEAWAY_PING_DEFAULT": "true",
            "GUILD_ID": "666",
            "DATA_FILE": "/tmp/state.json",
            "STATE_TABLE_NAME": "raffle-state",
            "AWS_REGION": "eu-west-1",
            "LOG_LEVEL": "debug",
        }
        with mock.patch.dict(os.environ, env_vars, clear=True):
            config = EnvironmentConfig.load()

        assert config.results_channel_id == 444
        assert config.ping_role_id == 555
        assert config.mini_default_slots == 8
        assert config.mini_claim_window_minutes == 15
        assert config.giveaway_ping_default is True
        assert config.guild_id == 666
        assert config.data_file == "/tmp/state.json"
        assert config.state_table_name == "raffle-state"
        assert config.aws_region == "eu-west-1"
        assert config.log_level == "DEBUG"

    def test_load_missing_required_variables(self):
        """Should name every missing variable."""
        with mock.patch.dict(os.environ, {"DISCORD_TOKEN": "x"}, clear=True):
            with pytest.raises(RuntimeError, match="Missing env vars") as excinfo:
                EnvironmentConfig.load()

        message = str(excinfo.value)
        assert "RAFFLE_CHANNEL_ID" in message
        assert "GIVEAWAY_CHANNEL_ID" in message
        assert "DISCORD_TOKEN" not in message

    def test_config_is_frozen(self):
        """Should be immutable (frozen dataclass)."""
        config = EnvironmentConfig(
            discord_token="t",
            raffle_channel_id=1,
            mini_channel_id=2,
            giveaway_channel_id=3,
        )
        with pytest.raises(AttributeError):
            config.discord_token = "other"
