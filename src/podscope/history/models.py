"""
Configuration history data model.

A ConfigHistory is an immutable value: every transition (append, move,
delete) returns a new history so the manager can swap the whole structure
in one assignment.
"""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any

from podscope.config.schema import ChangeType

DEFAULT_MAX_SNAPSHOTS = 50


@dataclass(frozen=True)
class ConfigSnapshot:
    """Full copy of the dashboard configuration at one instant."""

    id: str
    timestamp: datetime
    change_type: ChangeType
    config: dict[str, Any]
    label: str | None = None

    @classmethod
    def capture(
        cls,
        config: dict[str, Any],
        change_type: ChangeType | str,
        label: str | None = None,
    ) -> ConfigSnapshot:
        return cls(
            id=str(uuid.uuid4()),
            timestamp=datetime.now(timezone.utc),
            change_type=ChangeType(change_type),
            config=copy.deepcopy(config),
            label=label,
        )

    def config_copy(self) -> dict[str, Any]:
        """Independent copy of the payload, safe to hand to a live config."""
        return copy.deepcopy(self.config)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "changeType": str(self.change_type),
            "config": copy.deepcopy(self.config),
        }
        if self.label is not None:
            payload["label"] = self.label
        return payload

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConfigSnapshot:
        timestamp = datetime.fromisoformat(str(data["timestamp"]).replace("Z", "+00:00"))
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return cls(
            id=str(data["id"]),
            timestamp=timestamp,
            change_type=ChangeType(data["changeType"]),
            config=copy.deepcopy(data["config"]),
            label=data.get("label"),
        )


@dataclass(frozen=True)
class ConfigHistory:
    """
    Ordered snapshots plus a pointer to the current one.

    ``current_index`` is -1 exactly when there are no snapshots, otherwise
    it lies in ``[0, len(snapshots) - 1]``.
    """

    snapshots: tuple[ConfigSnapshot, ...] = ()
    current_index: int = -1

    def __post_init__(self) -> None:
        if not self.snapshots:
            object.__setattr__(self, "current_index", -1)
        else:
            bounded = min(max(self.current_index, 0), len(self.snapshots) - 1)
            object.__setattr__(self, "current_index", bounded)

    def __len__(self) -> int:
        return len(self.snapshots)

    @property
    def current(self) -> ConfigSnapshot | None:
        if self.current_index < 0:
            return None
        return self.snapshots[self.current_index]

    def index_of(self, snapshot_id: str) -> int | None:
        for index, snapshot in enumerate(self.snapshots):
            if snapshot.id == snapshot_id:
                return index
        return None

    def append(self, snapshot: ConfigSnapshot, max_snapshots: int = DEFAULT_MAX_SNAPSHOTS) -> ConfigHistory:
        """Drop the redo branch, append, then evict from the oldest end."""
        snapshots = self.snapshots[: self.current_index + 1] + (snapshot,)
        index = len(snapshots) - 1
        overflow = len(snapshots) - max(max_snapshots, 1)
        if overflow > 0:
            snapshots = snapshots[overflow:]
            index -= overflow
        return ConfigHistory(snapshots=snapshots, current_index=index)

    def move_to(self, index: int) -> ConfigHistory:
        return replace(self, current_index=index)

    def remove(self, snapshot_id: str) -> ConfigHistory | None:
        """
        Remove one snapshot, or return None if the id is unknown.

        Pointer rule: removing an entry before the pointer shifts it back
        by one, removing the current entry moves it to the nearest
        predecessor (index 0 when it was first), removing an entry after
        the pointer leaves it in place.
        """
        position = self.index_of(snapshot_id)
        if position is None:
            return None

        snapshots = self.snapshots[:position] + self.snapshots[position + 1 :]
        index = self.current_index
        if position < index:
            index -= 1
        elif position == index:
            index = max(index - 1, 0)
        return ConfigHistory(snapshots=snapshots, current_index=index)

    def to_dict(self) -> dict[str, Any]:
        return {
            "snapshots": [snapshot.to_dict() for snapshot in self.snapshots],
            "currentIndex": self.current_index,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConfigHistory:
        snapshots = tuple(ConfigSnapshot.from_dict(item) for item in data.get("snapshots", []))
        return cls(snapshots=snapshots, current_index=int(data.get("currentIndex", -1)))


@dataclass(frozen=True)
class HistoryResult:
    """Outcome of a history navigation; routine no-ops carry a reason."""

    success: bool
    snapshot: ConfigSnapshot | None = None
    reason: str | None = None
