from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Protocol

from botocore.exceptions import BotoCoreError, ClientError

from .errors import StorageError
from .models import (
    Entitlement,
    Giveaway,
    MiniLink,
    Raffle,
    now_ms,
    raffle_key,
)

log = logging.getLogger(__name__)

COLLECTIONS = (
    "raffles",
    "reservations",
    "miniThreads",
    "miniWinners",
    "miniWinnerSlots",
    "giveaways",
    "users",
)


def empty_document() -> dict[str, dict]:
    return {name: {} for name in COLLECTIONS}


class DocumentBackend(Protocol):
    def read(self) -> dict | None: ...

    def write(self, document: dict) -> None: ...


class JsonFileBackend:
    """Keeps the document in a local JSON file, replaced atomically on write."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> dict | None:
        if not self._path.exists():
            return None
        try:
            with self._path.open(encoding="utf-8") as handle:
                parsed = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageError(f"Cannot read state file {self._path}: {exc}") from exc
        if not isinstance(parsed, dict):
            raise StorageError(f"State file {self._path} does not hold an object")
        return parsed

    def write(self, document: dict) -> None:
        directory = self._path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.", suffix=".tmp", dir=directory
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(document, handle, indent=2, sort_keys=True)
            os.replace(tmp_name, self._path)
        except OSError as exc:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise StorageError(f"Cannot write state file {self._path}: {exc}") from exc


class DynamoDocumentBackend:
    """Stores the whole document as a single DynamoDB item."""

    KEY = {"pk": "STATE", "sk": "DOCUMENT"}

    def __init__(self, table) -> None:
        self._table = table

    def ensure_table(self) -> None:
        if self._table is None:
            raise StorageError("State table is not configured")

    def read(self) -> dict | None:
        self.ensure_table()
        try:
            resp = self._table.get_item(Key=dict(self.KEY))
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Cannot load state item: {exc}") from exc
        item = resp.get("Item")
        if not item:
            return None
        try:
            parsed = json.loads(str(item.get("body", "{}")))
        except json.JSONDecodeError as exc:
            raise StorageError(f"State item body is not valid JSON: {exc}") from exc
        if not isinstance(parsed, dict):
            raise StorageError("State item body does not hold an object")
        return parsed

    def write(self, document: dict) -> None:
        self.ensure_table()
        item = dict(self.KEY)
        item.update({"body": json.dumps(document), "updated_at": str(now_ms())})
        try:
            self._table.put_item(Item=item)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Cannot save state item: {exc}") from exc


class DocumentStore:
    """Owns the in-memory document and writes it back in full on every change.

    ``transaction()`` groups several repository writes into one persist; if
    the block raises, the last durable copy is reloaded instead.
    """

    def __init__(self, backend: DocumentBackend) -> None:
        self._backend = backend
        self._document: dict[str, dict] | None = None
        self._depth = 0
        self._dirty = False

    def load(self) -> None:
        raw = self._backend.read()
        document = empty_document()
        if raw:
            for name, value in raw.items():
                document[name] = value
            for name in COLLECTIONS:
                if not isinstance(document.get(name), dict):
                    document[name] = {}
        self._document = document

    @property
    def document(self) -> dict[str, dict]:
        if self._document is None:
            self.load()
        assert self._document is not None
        return self._document

    def collection(self, name: str) -> dict:
        return self.document.setdefault(name, {})

    def persist(self) -> None:
        if self._depth:
            self._dirty = True
            return
        self._backend.write(self.document)

    @contextmanager
    def transaction(self) -> Iterator[DocumentStore]:
        self._depth += 1
        try:
            yield self
        except BaseException:
            self._depth -= 1
            if self._depth == 0:
                self._dirty = False
                log.warning("Discarding in-memory changes after a failed operation")
                self.load()
            raise
        self._depth -= 1
        if self._depth == 0 and self._dirty:
            self._dirty = False
            self._backend.write(self.document)


class RaffleRepository:
    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def _raffles(self) -> dict:
        return self._store.collection("raffles")

    def get(self, key: str) -> Raffle | None:
        data = self._raffles().get(key)
        if not isinstance(data, dict):
            return None
        return Raffle.from_dict(key, data)

    def get_or_create(self, scope_id: int | str, channel_id: int | str) -> Raffle:
        existing = self.get(raffle_key(scope_id, channel_id))
        if existing is not None:
            return existing
        return Raffle(
            scope_id=str(scope_id), channel_id=str(channel_id), created_at=now_ms()
        )

    def save(self, raffle: Raffle) -> None:
        self._raffles()[raffle.key] = raffle.to_dict()
        self._store.persist()

    def delete(self, key: str) -> None:
        if self._raffles().pop(key, None) is not None:
            self._store.persist()

    def list_all(self) -> list[Raffle]:
        return [
            Raffle.from_dict(key, data)
            for key, data in sorted(self._raffles().items())
            if isinstance(data, dict)
        ]

    def list_timed(self) -> list[Raffle]:
        return [
            raffle
            for raffle in self.list_all()
            if raffle.active and raffle.ends_at is not None
        ]


class MiniRepository:
    """Mini links plus the per-parent winner marks and entitlements."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    # ----- Links -----
    def get(self, mini_key: str) -> MiniLink | None:
        data = self._store.collection("miniThreads").get(mini_key)
        if not isinstance(data, dict):
            return None
        return MiniLink.from_dict(mini_key, data)

    def save(self, link: MiniLink) -> None:
        self._store.collection("miniThreads")[link.mini_key] = link.to_dict()
        self._store.persist()

    def is_mini(self, key: str) -> bool:
        return key in self._store.collection("miniThreads")

    def list_for_parent(self, parent_key: str) -> list[MiniLink]:
        links = [
            MiniLink.from_dict(key, data)
            for key, data in self._store.collection("miniThreads").items()
            if isinstance(data, dict)
        ]
        return sorted(
            (link for link in links if link.parent_key == parent_key),
            key=lambda link: link.created_at,
        )

    def cancel_pending(self, parent_key: str) -> list[MiniLink]:
        """Void every undrawn mini of a parent; returns the links that changed."""
        cancelled = []
        for link in self.list_for_parent(parent_key):
            if link.drawn or link.cancelled:
                continue
            link.cancelled = True
            self._store.collection("miniThreads")[link.mini_key] = link.to_dict()
            cancelled.append(link)
        if cancelled:
            self._store.persist()
        return cancelled

    # ----- Winner marks -----
    def mark_winner(self, parent_key: str, holder_id: str) -> None:
        marks = self._store.collection("miniWinners").setdefault(parent_key, {})
        marks[holder_id] = True
        self._store.persist()

    def is_winner(self, parent_key: str, holder_id: str) -> bool:
        marks = self._store.collection("miniWinners").get(parent_key) or {}
        return bool(marks.get(holder_id))

    def winners(self, parent_key: str) -> set[str]:
        marks = self._store.collection("miniWinners").get(parent_key) or {}
        return {holder for holder, marked in marks.items() if marked}

    # ----- Entitlements -----
    def get_entitlement(self, parent_key: str, holder_id: str) -> Entitlement:
        bucket = self._store.collection("miniWinnerSlots").get(parent_key) or {}
        return Entitlement.from_dict(bucket.get(holder_id))

    def save_entitlement(
        self, parent_key: str, holder_id: str, entitlement: Entitlement
    ) -> None:
        bucket = self._store.collection("miniWinnerSlots").setdefault(parent_key, {})
        bucket[holder_id] = entitlement.to_dict()
        self._store.persist()

    def entitlement_slots(self, parent_key: str) -> dict[str, set[int]]:
        bucket = self._store.collection("miniWinnerSlots").get(parent_key) or {}
        return {
            holder: set(Entitlement.from_dict(data).slots)
            for holder, data in bucket.items()
        }

    def clear_parent(self, parent_key: str) -> None:
        removed_marks = self._store.collection("miniWinners").pop(parent_key, None)
        removed_slots = self._store.collection("miniWinnerSlots").pop(parent_key, None)
        if removed_marks is not None or removed_slots is not None:
            self._store.persist()


class GiveawayRepository:
    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def get(self, message_id: str) -> Giveaway | None:
        data = self._store.collection("giveaways").get(message_id)
        if not isinstance(data, dict):
            return None
        return Giveaway.from_dict(message_id, data)

    def save(self, giveaway: Giveaway) -> None:
        self._store.collection("giveaways")[giveaway.message_id] = giveaway.to_dict()
        self._store.persist()

    def list_all(self) -> list[Giveaway]:
        giveaways = [
            Giveaway.from_dict(message_id, data)
            for message_id, data in self._store.collection("giveaways").items()
            if isinstance(data, dict)
        ]
        giveaways.sort(key=lambda giveaway: (giveaway.ends_at, giveaway.message_id))
        return giveaways

    def list_open(self) -> list[Giveaway]:
        return [giveaway for giveaway in self.list_all() if not giveaway.ended]


__all__ = [
    "COLLECTIONS",
    "empty_document",
    "DocumentBackend",
    "JsonFileBackend",
    "DynamoDocumentBackend",
    "DocumentStore",
    "RaffleRepository",
    "MiniRepository",
    "GiveawayRepository",
]
