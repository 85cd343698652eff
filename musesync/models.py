from __future__ import annotations

import dataclasses as dc
import datetime as dt
import enum
import math
import pathlib
import typing as t
from dataclasses import field

MIB = 1024**2
GIB = 1024**3


def to_mb(num_bytes: int) -> int:
    """Whole mebibytes, rounded up like ``du -sm``."""
    return math.ceil(num_bytes / MIB) if num_bytes > 0 else 0


def floor_mb(num_bytes: int) -> int:
    """Whole mebibytes, rounded down like ``df -m``."""
    return num_bytes // MIB


def format_bytes(num_bytes: int) -> str:
    value = float(num_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if abs(value) < 1024:
            return f"{int(value)} B" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} TB"


def volume_name(prefix: str, ordinal: int) -> str:
    return f"{prefix}{ordinal}"


@dc.dataclass(frozen=True)
class Item:
    # name doubles as the relative path under the source root
    name: str
    size_bytes: int


@dc.dataclass(frozen=True)
class PlanEntry:
    name: str
    size_bytes: int

    @property
    def size_mb(self) -> int:
        return to_mb(self.size_bytes)


@dc.dataclass(frozen=True)
class AssignmentPlan:
    source_root: str
    generated_at: dt.datetime
    usable_capacity_bytes: int
    volumes: dict[int, list[PlanEntry]] = field(default_factory=dict)
    drive_size_gb: int | None = None
    buffer_gb: int | None = None

    @property
    def volume_count(self) -> int:
        return max(self.volumes, default=0)

    @property
    def item_count(self) -> int:
        return sum(len(v) for v in self.volumes.values())

    def ordinals(self) -> list[int]:
        return sorted(self.volumes)

    def items_for(self, ordinal: int) -> list[PlanEntry]:
        return list(self.volumes.get(ordinal, []))

    def used_bytes(self, ordinal: int) -> int:
        return sum(e.size_bytes for e in self.volumes.get(ordinal, []))

    def entries(self) -> t.Iterator[tuple[int, PlanEntry]]:
        for ordinal in self.ordinals():
            for entry in self.volumes[ordinal]:
                yield ordinal, entry

    def age_seconds(self, now: dt.datetime | None = None) -> float:
        now = now or dt.datetime.now()
        return (now - self.generated_at).total_seconds()


@dc.dataclass(frozen=True)
class VolumeCapacity:
    total_bytes: int
    available_bytes: int

    def usable_bytes(self, buffer_bytes: int) -> int:
        """Total floored to whole MB, minus the reserved buffer."""
        return floor_mb(self.total_bytes) * MIB - buffer_bytes


@dc.dataclass(frozen=True)
class Volume:
    ordinal: int
    expected_name: str
    path: pathlib.Path


@dc.dataclass(frozen=True)
class SyncRecord:
    ordinal: int
    synced_at: dt.datetime
    item_count: int


@dc.dataclass(frozen=True)
class Reconciliation:
    keep: list[str]
    add: list[PlanEntry]
    remove: list[str]

    @property
    def in_sync(self) -> bool:
        return not self.add and not self.remove

    @property
    def add_names(self) -> list[str]:
        return [e.name for e in self.add]


class ItemStatus(enum.Enum):
    REMOVED = "removed"
    COPIED = "copied"
    SKIPPED_NO_SPACE = "no space"
    SKIPPED_MISSING = "source missing"
    FAILED = "failed"


@dc.dataclass(frozen=True)
class ItemOutcome:
    name: str
    status: ItemStatus
    detail: str = ""


@dc.dataclass
class VolumeReport:
    ordinal: int
    volume_name: str
    outcomes: list[ItemOutcome] = field(default_factory=list)

    def _count(self, *statuses: ItemStatus) -> int:
        return sum(1 for o in self.outcomes if o.status in statuses)

    @property
    def removed(self) -> int:
        return self._count(ItemStatus.REMOVED)

    @property
    def copied(self) -> int:
        return self._count(ItemStatus.COPIED)

    @property
    def skipped(self) -> int:
        return self._count(ItemStatus.SKIPPED_NO_SPACE, ItemStatus.SKIPPED_MISSING)

    @property
    def failed(self) -> int:
        return self._count(ItemStatus.FAILED)

    @property
    def problems(self) -> list[ItemOutcome]:
        return [o for o in self.outcomes if o.status not in (ItemStatus.REMOVED, ItemStatus.COPIED)]

    @property
    def already_in_sync(self) -> bool:
        return not self.outcomes
