"""Recently opened files: a small directory-backed recency store.

Layout under the store root:

    index.json      list of record metadata, oldest first
    <id>.bin        raw bytes of each entry

Adding a file that matches an existing entry on (name, size, type)
replaces that entry; once the store holds `capacity` entries the oldest
ones are evicted to make room.  The index is rewritten through a temp
file and os.replace(), and blobs of dropped entries are removed only after
the new index is in place, so a crash never leaves the index naming a
missing blob.
"""

from __future__ import annotations

import json
import logging
import os
import time
import uuid
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import List, Optional, Union

from ._constants import DEFAULT_MIME, HISTORY_CAPACITY

logger = logging.getLogger(__name__)

_INDEX = "index.json"


@dataclass(frozen=True)
class HistoryRecord:
    id: str
    name: str
    size: int
    type: str
    timestamp: int  # milliseconds since the epoch


@dataclass(frozen=True)
class HistoryEntry:
    record: HistoryRecord
    data: bytes


def default_home() -> Path:
    """Root directory for mpedit state: $MPEDIT_HOME or ~/.mpedit."""
    env = os.environ.get("MPEDIT_HOME")
    if env:
        return Path(env)
    return Path.home() / ".mpedit"


class HistoryStore:
    """Newest-first history of (name, size, type, bytes) entries."""

    def __init__(self, root: Union[str, Path, None] = None,
                 capacity: int = HISTORY_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.root = Path(root) if root is not None else default_home() / "history"
        self.capacity = capacity

    # ── index I/O ──

    def _load(self) -> List[HistoryRecord]:
        path = self.root / _INDEX
        if not path.exists():
            return []
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            return [HistoryRecord(**r) for r in raw]
        except (ValueError, TypeError) as e:
            logger.warning("history index %s is unreadable, starting empty: %s", path, e)
            return []

    def _save(self, records: List[HistoryRecord]) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        tmp = self.root / (_INDEX + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump([asdict(r) for r in records], f, indent=2)
        os.replace(tmp, self.root / _INDEX)

    def _blob(self, entry_id: str) -> Path:
        return self.root / "{}.bin".format(entry_id)

    def _drop(self, record: HistoryRecord) -> None:
        try:
            self._blob(record.id).unlink()
        except FileNotFoundError:
            logger.debug("history blob %s already gone", record.id)

    # ── public API ──

    def add(self, name: str, data: bytes, mime_type: Optional[str] = None) -> HistoryRecord:
        """Store a file and return its record."""
        mime = mime_type or DEFAULT_MIME
        size = len(data)
        records = self._load()

        kept: List[HistoryRecord] = []
        removed: List[HistoryRecord] = []
        for r in records:
            if (r.name, r.size, r.type) == (name, size, mime):
                logger.debug("history: replacing duplicate %s (%s)", r.id, name)
                removed.append(r)
            else:
                kept.append(r)

        # Oldest first, so evict from the front until the new entry fits.
        while len(kept) >= self.capacity:
            old = kept.pop(0)
            logger.debug("history: evicting %s (%s)", old.id, old.name)
            removed.append(old)

        record = HistoryRecord(
            id=uuid.uuid4().hex,
            name=name,
            size=size,
            type=mime,
            timestamp=int(time.time() * 1000),
        )
        self.root.mkdir(parents=True, exist_ok=True)
        self._blob(record.id).write_bytes(bytes(data))
        kept.append(record)
        try:
            self._save(kept)
        except OSError:
            self._drop(record)
            raise
        # Blobs go only once the index no longer names them.
        for r in removed:
            self._drop(r)
        return record

    def list(self) -> List[HistoryRecord]:
        """All records, newest first.  Metadata only."""
        return list(reversed(self._load()))

    def get(self, entry_id: str) -> Optional[HistoryEntry]:
        """The record and its bytes, or None if the id is unknown."""
        for r in self._load():
            if r.id == entry_id:
                try:
                    data = self._blob(r.id).read_bytes()
                except FileNotFoundError:
                    logger.warning("history blob for %s (%s) is missing", r.id, r.name)
                    return None
                return HistoryEntry(r, data)
        return None

    def clear(self) -> None:
        records = self._load()
        self._save([])
        for r in records:
            self._drop(r)
