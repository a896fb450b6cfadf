import json
from unittest.mock import patch

import pytest

from scripts.migrate_data_file import build_target, main, migrate, normalize_document

LEGACY = {
    "raffles": {
        "1:2": {"max": 3, "active": True, "claims": {"1": "7", "2": ["8", "9"]}},
        "broken": "nope",
    },
    "miniThreads": {"1:5": {"mainKey": "1:2", "tickets": 2}},
    "miniWinners": {"1:2": {"7": True, "8": False}},
    "miniWinnerSlots": {"1:2": {"7": 2}},
    "giveaways": {"99": {"prize": "Nitro", "winners": 1, "participants": ["1", "1"]}},
}


def write_legacy(tmp_path, document=LEGACY):
    source = tmp_path / "legacy.json"
    source.write_text(json.dumps(document), encoding="utf-8")
    return source


class TestNormalizeDocument:
    def test_legacy_fields_are_rewritten(self):
        document, counts = normalize_document(LEGACY)

        raffle = document["raffles"]["1:2"]
        assert raffle["capacity"] == 3
        assert "max" not in raffle
        assert "broken" not in document["raffles"]
        assert document["miniThreads"]["1:5"]["parentKey"] == "1:2"
        assert document["miniWinners"]["1:2"] == {"7": True}
        assert document["miniWinnerSlots"]["1:2"]["7"]["remaining"] == 2
        assert document["giveaways"]["99"]["participants"] == ["1"]
        assert counts["raffles"] == 1
        assert counts["reservations"] == 0

    def test_empty_document(self):
        document, counts = normalize_document({})

        assert all(not collection for collection in document.values())
        assert set(counts.values()) == {0}


class TestMigrate:
    def test_dry_run_writes_nothing(self, tmp_path):
        source = write_legacy(tmp_path)
        output = tmp_path / "out.json"

        counts = migrate(
            str(source), output=str(output), table_name=None, profile=None, dry_run=True
        )

        assert counts["giveaways"] == 1
        assert not output.exists()

    def test_execute_writes_output(self, tmp_path):
        source = write_legacy(tmp_path)
        output = tmp_path / "out.json"

        migrate(str(source), output=str(output), table_name=None, profile=None, dry_run=False)

        written = json.loads(output.read_text(encoding="utf-8"))
        assert written["raffles"]["1:2"]["capacity"] == 3

    def test_missing_source(self, tmp_path):
        counts = migrate(
            str(tmp_path / "absent.json"),
            output=None,
            table_name=None,
            profile=None,
            dry_run=False,
        )

        assert counts == {}

    def test_execute_needs_a_target(self, tmp_path):
        source = write_legacy(tmp_path)

        with pytest.raises(SystemExit):
            migrate(str(source), output=None, table_name=None, profile=None, dry_run=False)


@patch("scripts.migrate_data_file.boto3.Session")
def test_build_target_uses_profile(mock_session):
    build_target(output=None, table_name="RaffleState", profile="ops")

    mock_session.assert_called_once_with(profile_name="ops")
    mock_session.return_value.resource.return_value.Table.assert_called_once_with(
        "RaffleState"
    )


def test_main_defaults_to_dry_run(tmp_path):
    source = write_legacy(tmp_path)
    argv = ["migrate_data_file.py", "--source", str(source)]

    with patch("sys.argv", argv), patch("scripts.migrate_data_file.migrate") as mock_migrate:
        main()

    mock_migrate.assert_called_once_with(
        str(source), output=None, table_name=None, profile=None, dry_run=True
    )
