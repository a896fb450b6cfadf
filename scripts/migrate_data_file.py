#!/usr/bin/env python3
"""One-off migration tool for legacy ``data.json`` state documents.

Older documents stored a bare user id per claimed slot, used ``max`` for the
raffle capacity, ``mainKey``/``tickets`` on mini links and ``winners`` on
giveaways. This script rewrites every collection through the current model
converters so the bot reads a single layout.

Typical usage (dry-run):

    python scripts/migrate_data_file.py --source data.json

Write the normalized document to a file or to the DynamoDB state table:

    python scripts/migrate_data_file.py --source data.json --output data.json --execute
    python scripts/migrate_data_file.py --source data.json --table RaffleState --execute
"""

from __future__ import annotations

import argparse
import logging
from typing import Any

import boto3

from raffle_bot.errors import StorageError
from raffle_bot.models import (
    Entitlement,
    Giveaway,
    MiniLink,
    Raffle,
    Reservation,
    UserRecord,
)
from raffle_bot.storage import (
    DocumentBackend,
    DynamoDocumentBackend,
    JsonFileBackend,
    empty_document,
)

log = logging.getLogger(__name__)


def _entitlement_from_legacy(value: Any) -> Entitlement:
    # some revisions kept only the outstanding count
    if isinstance(value, int):
        return Entitlement(remaining=value)
    return Entitlement.from_dict(value)


def normalize_document(raw: dict[str, Any]) -> tuple[dict[str, dict], dict[str, int]]:
    """Return the normalized document and a per-collection count of records."""
    document = empty_document()
    counts: dict[str, int] = {}

    for key, data in (raw.get("raffles") or {}).items():
        if isinstance(data, dict):
            document["raffles"][key] = Raffle.from_dict(key, data).to_dict()

    for key, data in (raw.get("miniThreads") or {}).items():
        if isinstance(data, dict):
            document["miniThreads"][key] = MiniLink.from_dict(key, data).to_dict()

    for parent_key, bucket in (raw.get("reservations") or {}).items():
        if not isinstance(bucket, dict):
            continue
        document["reservations"][parent_key] = {
            holder: Reservation.from_dict(parent_key, holder, data).to_dict()
            for holder, data in bucket.items()
            if isinstance(data, dict)
        }

    for parent_key, marks in (raw.get("miniWinners") or {}).items():
        if isinstance(marks, dict):
            document["miniWinners"][parent_key] = {
                holder: True for holder, marked in marks.items() if marked
            }

    for parent_key, bucket in (raw.get("miniWinnerSlots") or {}).items():
        if isinstance(bucket, dict):
            document["miniWinnerSlots"][parent_key] = {
                holder: _entitlement_from_legacy(value).to_dict()
                for holder, value in bucket.items()
            }

    for message_id, data in (raw.get("giveaways") or {}).items():
        if isinstance(data, dict):
            document["giveaways"][message_id] = Giveaway.from_dict(
                message_id, data
            ).to_dict()

    for user_id, data in (raw.get("users") or {}).items():
        if isinstance(data, dict):
            document["users"][user_id] = UserRecord.from_dict(user_id, data).to_dict()

    for name, collection in document.items():
        counts[name] = len(collection)
    return document, counts


def build_target(
    *, output: str | None, table_name: str | None, profile: str | None
) -> DocumentBackend:
    if table_name:
        session_kwargs = {"profile_name": profile} if profile else {}
        session = boto3.Session(**session_kwargs)
        return DynamoDocumentBackend(session.resource("dynamodb").Table(table_name))
    if output:
        return JsonFileBackend(output)
    raise SystemExit("Pass --output or --table to choose where to write.")


def migrate(
    source: str,
    *,
    output: str | None,
    table_name: str | None,
    profile: str | None,
    dry_run: bool,
) -> dict[str, int]:
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    raw = JsonFileBackend(source).read()
    if not raw:
        log.info("Source %s is empty or missing; nothing to migrate", source)
        return {}

    document, counts = normalize_document(raw)
    for name, count in sorted(counts.items()):
        log.info("%s: %s record(s)", name, count)

    if dry_run:
        log.info("Dry run complete. Re-run with --execute to write the document.")
        return counts

    target = build_target(output=output, table_name=table_name, profile=profile)
    try:
        target.write(document)
    except StorageError as exc:
        log.error("Migration failed: %s", exc)
        raise SystemExit(1) from exc
    log.info("Migration complete. Verify results before restarting the bot.")
    return counts


def main() -> None:
    parser = argparse.ArgumentParser(description="Normalize a legacy raffle data file")
    parser.add_argument("--source", required=True, help="Legacy JSON document")
    parser.add_argument("--output", default=None, help="JSON file to write")
    parser.add_argument("--table", default=None, help="DynamoDB state table name")
    parser.add_argument(
        "--profile",
        default=None,
        help="Optional AWS profile name for boto3",
    )
    parser.add_argument(
        "--execute",
        action="store_true",
        help="Apply changes. Without this flag the script performs a dry run.",
    )
    args = parser.parse_args()

    migrate(
        args.source,
        output=args.output,
        table_name=args.table,
        profile=args.profile,
        dry_run=not args.execute,
    )


if __name__ == "__main__":
    main()
