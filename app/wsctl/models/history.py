"""Update history models.

This module defines the records kept for every successful synchronization:
immutable snapshot entries and the small index naming the latest two.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

ENTRY_ID_FORMAT = "%Y%m%dT%H%M%S.%fZ"
ENTRY_SUFFIX = ".toml"


@dataclass(frozen=True, slots=True, order=True)
class HistoryEntry:
    """One recorded synchronization outcome.

    Entries order by time; their identifiers are UTC timestamps with
    microsecond precision and sort the same way as the times they encode.

    Attributes:
        id: Timestamp identifier, e.g. "20261019T101500.000000Z".
    """

    id: str

    def __post_init__(self) -> None:
        """Validate the identifier."""
        datetime.strptime(self.id, ENTRY_ID_FORMAT)

    @classmethod
    def at(cls, when: datetime) -> HistoryEntry:
        """Create the entry identifying a point in time.

        Args:
            when: Timezone-aware time of the synchronization.

        Returns:
            HistoryEntry for that time.
        """
        return cls(id=when.astimezone(UTC).strftime(ENTRY_ID_FORMAT))

    @property
    def timestamp(self) -> datetime:
        """Time the entry was recorded (UTC)."""
        return datetime.strptime(self.id, ENTRY_ID_FORMAT).replace(tzinfo=UTC)

    @property
    def filename(self) -> str:
        """Name of the snapshot file holding the entry."""
        return self.id + ENTRY_SUFFIX

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {"id": self.id, "timestamp": self.timestamp.isoformat()}


@dataclass(frozen=True, slots=True)
class HistoryIndex:
    """Pointers to the two most recent history entries.

    Attributes:
        latest: Identifier of the most recent entry.
        second_latest: Identifier of the entry before it.
    """

    latest: str | None = None
    second_latest: str | None = None

    def rotate(self, entry: HistoryEntry) -> HistoryIndex:
        """Index after recording a new entry: it becomes latest, latest moves down."""
        return HistoryIndex(latest=entry.id, second_latest=self.latest)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON storage."""
        return {"latest": self.latest, "second_latest": self.second_latest}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HistoryIndex:
        """Deserialize from dictionary.

        Raises:
            ValueError: If a pointer is not a string or null.
        """
        latest = data.get("latest")
        second = data.get("second_latest")
        for value in (latest, second):
            if value is not None and not isinstance(value, str):
                msg = f"Invalid history pointer: {value!r}"
                raise ValueError(msg)
        return cls(latest=latest, second_latest=second)
