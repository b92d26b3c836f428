"""
store.py — persisted manual overrides (shipped / excluded)

Each override set is a whole-map value in a key-value backend:

    {"<identity>": {"date": "2024-05-01T12:00:00Z"}, ...}

The backend only knows get/set of a whole value by key. Every mutation is a
read, an in-memory change and a full rewrite, serialized by a lock shared
by every store instance in the process that points at the same value.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Hashable, Protocol

logger = logging.getLogger(__name__)

SHIPPED_KEY = "importflow_shipped_items"
EXCLUDED_KEY = "importflow_excluded_items"


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def format_timestamp(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(text: str) -> datetime | None:
    try:
        moment = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except (AttributeError, TypeError, ValueError):
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


class KeyValueBackend(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def lock_token(self, key: str) -> Hashable: ...


_LOCKS: dict[Hashable, threading.Lock] = {}
_LOCKS_GUARD = threading.Lock()


def lock_for(backend: KeyValueBackend, key: str) -> threading.Lock:
    """One process-wide lock per stored value, shared by every store instance."""
    token = backend.lock_token(key)
    with _LOCKS_GUARD:
        return _LOCKS.setdefault(token, threading.Lock())


class MemoryBackend:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.values.get(key)

    def set(self, key: str, value: str) -> None:
        self.values[key] = value

    def lock_token(self, key: str) -> Hashable:
        return (id(self), key)


class JsonDirectoryBackend:
    """One `<key>.json` file per key under a directory."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def lock_token(self, key: str) -> Hashable:
        return str(self.path_for(key).resolve())

    def get(self, key: str) -> str | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(value)
            os.replace(tmp_name, self.path_for(key))
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


class OverrideSet:
    """identity -> override timestamp, persisted under one backend key."""

    def __init__(self, backend: KeyValueBackend, key: str) -> None:
        self.backend = backend
        self.key = key
        self._lock = lock_for(backend, key)

    def load(self) -> dict[str, datetime]:
        try:
            raw = self.backend.get(self.key)
        except OSError as exc:
            logger.warning("Could not read override set %s: %s", self.key, exc)
            return {}
        if not raw:
            return {}
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("Override set %s is corrupt, treating as empty: %s", self.key, exc)
            return {}
        if not isinstance(payload, dict):
            logger.warning(
                "Override set %s holds %s instead of an object, treating as empty",
                self.key,
                type(payload).__name__,
            )
            return {}

        entries: dict[str, datetime] = {}
        dropped = 0
        for identity, entry in payload.items():
            moment = parse_timestamp(entry.get("date")) if isinstance(entry, dict) else None
            if moment is None:
                dropped += 1
                continue
            entries[str(identity)] = moment
        if dropped:
            logger.warning("Dropped %d malformed entries from override set %s", dropped, self.key)
        return entries

    def _save(self, entries: dict[str, datetime]) -> None:
        payload = {identity: {"date": format_timestamp(moment)} for identity, moment in entries.items()}
        self.backend.set(self.key, json.dumps(payload, ensure_ascii=False, sort_keys=True))

    def set(self, identity: str, at: datetime | None = None) -> datetime:
        moment = at or utc_now()
        with self._lock:
            entries = self.load()
            entries[identity] = moment
            self._save(entries)
        return moment

    def clear(self, identity: str) -> None:
        with self._lock:
            entries = self.load()
            if identity not in entries:
                return
            del entries[identity]
            self._save(entries)

    def contains(self, identity: str) -> bool:
        return identity in self.load()

    def get_timestamp(self, identity: str) -> datetime | None:
        return self.load().get(identity)


class OverrideStore:
    def __init__(self, backend: KeyValueBackend) -> None:
        self.backend = backend
        self.shipped = OverrideSet(backend, SHIPPED_KEY)
        self.excluded = OverrideSet(backend, EXCLUDED_KEY)

    @classmethod
    def in_memory(cls) -> "OverrideStore":
        return cls(MemoryBackend())

    @classmethod
    def at_directory(cls, directory: str | Path) -> "OverrideStore":
        return cls(JsonDirectoryBackend(directory))
