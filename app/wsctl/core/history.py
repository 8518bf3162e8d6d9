"""Update history of successful synchronizations.

Each successful run writes an immutable snapshot manifest named after the
time it was recorded. A small JSON index names the latest and
second-latest entries; it is the only file ever rewritten, atomically and
under a process-level lock.
"""

import json
import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path

from filelock import FileLock

from wsctl.core.manifest import ManifestError, dump_manifest, load_manifest, write_atomic
from wsctl.models.history import ENTRY_SUFFIX, HistoryEntry, HistoryIndex
from wsctl.models.manifest import Manifest

logger = logging.getLogger(__name__)


class HistoryError(Exception):
    """Raised when the update history cannot be read or written."""


def _utcnow() -> datetime:
    return datetime.now(UTC)


class UpdateHistory:
    """Manages snapshot entries and the latest/second-latest index.

    Storage location: <workspace>/.wsctl_root/update_history/

    Attributes:
        history_dir: Directory holding the entries and the index.
    """

    INDEX_FILENAME = "index.json"
    LOCK_FILENAME = "index.lock"
    MAX_READ_ATTEMPTS = 10

    def __init__(self, history_dir: Path, clock: Callable[[], datetime] = _utcnow) -> None:
        """Initialize UpdateHistory.

        Args:
            history_dir: Directory holding the history.
            clock: Source of the current time.
        """
        self.history_dir = history_dir
        self._clock = clock

    @property
    def index_path(self) -> Path:
        """Path to the index file."""
        return self.history_dir / self.INDEX_FILENAME

    def entry_path(self, entry: HistoryEntry) -> Path:
        """Path of the snapshot file of an entry."""
        return self.history_dir / entry.filename

    def record_snapshot(self, snapshot: Manifest) -> HistoryEntry:
        """Record a snapshot as the new latest entry.

        The entry is stamped with the current time, moved forward if needed
        so that it is strictly newer than the current latest entry.

        Args:
            snapshot: Manifest pinning every project to its current revision.

        Returns:
            The new entry.

        Raises:
            HistoryError: If the entry or the index cannot be written.
        """
        try:
            self.history_dir.mkdir(parents=True, exist_ok=True)
            with FileLock(str(self.history_dir / self.LOCK_FILENAME)):
                index = self._read_index()
                when = self._clock()
                if index.latest is not None:
                    previous = HistoryEntry(index.latest).timestamp
                    if when <= previous:
                        when = previous + timedelta(microseconds=1)
                entry = HistoryEntry.at(when)
                path = self.entry_path(entry)
                with path.open("x", encoding="utf-8") as f:
                    f.write(dump_manifest(snapshot))
                write_atomic(self.index_path, json.dumps(index.rotate(entry).to_dict()) + "\n")
        except OSError as e:
            raise HistoryError(f"Failed to record update history: {e}") from e

        logger.info("Recorded update history entry %s", entry.id)
        return entry

    def latest(self) -> HistoryEntry | None:
        """The most recent entry, or None if nothing was recorded yet."""
        return self._resolve("latest")

    def second_latest(self) -> HistoryEntry | None:
        """The entry before the most recent one, or None."""
        return self._resolve("second_latest")

    def load(self, entry: HistoryEntry) -> Manifest:
        """Read the snapshot manifest of an entry.

        Raises:
            HistoryError: If the snapshot is missing or malformed.
        """
        try:
            return load_manifest(self.entry_path(entry))
        except ManifestError as e:
            raise HistoryError(f"Cannot read history entry {entry.id}: {e}") from e

    def entries(self) -> list[HistoryEntry]:
        """All recorded entries, newest first.

        Files whose names are not entry identifiers are skipped.
        """
        if not self.history_dir.is_dir():
            return []
        entries: list[HistoryEntry] = []
        for path in self.history_dir.glob(f"*{ENTRY_SUFFIX}"):
            try:
                entries.append(HistoryEntry(path.name[: -len(ENTRY_SUFFIX)]))
            except ValueError:
                logger.warning("Skipping unexpected file in history: %s", path.name)
        return sorted(entries, reverse=True)

    def _resolve(self, slot: str) -> HistoryEntry | None:
        """Read a pointer and the entry it names as one consistent pair.

        The index is read again after the entry; if it changed in between
        the read is retried.
        """
        for _ in range(self.MAX_READ_ATTEMPTS):
            index = self._read_index()
            entry_id = getattr(index, slot)
            if entry_id is None:
                return None
            entry = HistoryEntry(entry_id)
            exists = self.entry_path(entry).is_file()
            if self._read_index() != index:
                logger.debug("History index changed while reading %s; retrying", slot)
                continue
            if not exists:
                raise HistoryError(f"History index names missing entry {entry_id}")
            return entry
        raise HistoryError("History index kept changing while being read")

    def _read_index(self) -> HistoryIndex:
        try:
            text = self.index_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return HistoryIndex()
        except OSError as e:
            raise HistoryError(f"Cannot read history index: {e}") from e
        try:
            index = HistoryIndex.from_dict(json.loads(text))
            for entry_id in (index.latest, index.second_latest):
                if entry_id is not None:
                    HistoryEntry(entry_id)
        except (json.JSONDecodeError, ValueError, AttributeError) as e:
            raise HistoryError(f"Corrupt history index {self.index_path}: {e}") from e
        return index
