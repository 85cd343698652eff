from __future__ import annotations

import dataclasses as dc
import enum
import logging
import os
import pathlib
import re
import shutil
import typing as t

import psutil

from .errors import IdentityMismatch, VolumeUnavailable
from .models import VolumeCapacity, volume_name

logger = logging.getLogger(__name__)


def ensure_mounted(volume_path: pathlib.Path) -> pathlib.Path:
    path = pathlib.Path(volume_path)
    if not path.is_dir():
        raise VolumeUnavailable(path)
    return path


def capacity(volume_path: pathlib.Path) -> VolumeCapacity:
    """Total and free bytes, read live every call."""
    path = ensure_mounted(volume_path)
    try:
        usage = shutil.disk_usage(path)
    except OSError as e:
        raise VolumeUnavailable(path, str(e)) from e
    logger.debug("%s: %d total, %d free", path, usage.total, usage.free)
    return VolumeCapacity(total_bytes=usage.total, available_bytes=usage.free)


def contents(volume_path: pathlib.Path, reserved: t.Iterable[str] = (".musicsync",)) -> set[str]:
    """Names of the non-hidden artist folders at the root of a drive."""
    path = ensure_mounted(volume_path)
    skip = set(reserved)
    try:
        return {
            entry.name
            for entry in os.scandir(path)
            if entry.is_dir(follow_symlinks=False)
            and not entry.name.startswith(".")
            and entry.name not in skip
        }
    except OSError as e:
        raise VolumeUnavailable(path, str(e)) from e


def parse_ordinal(name: str, prefix: str) -> int | None:
    """'MUSE3' -> 3 for prefix 'MUSE'; None when the name doesn't follow the convention."""
    m = re.fullmatch(re.escape(prefix) + r"(\d+)", name)
    if not m:
        return None
    ordinal = int(m.group(1))
    return ordinal if ordinal >= 1 else None


def _mount_points() -> list[pathlib.Path]:
    return [pathlib.Path(p.mountpoint) for p in psutil.disk_partitions(all=False)]


class LocateStatus(enum.Enum):
    FOUND = "found"
    WRONG_VOLUME = "wrong volume"
    NOT_MOUNTED = "not mounted"


@dc.dataclass(frozen=True)
class LocateResult:
    status: LocateStatus
    expected_name: str
    path: pathlib.Path | None = None
    found_name: str | None = None


class VolumeLocator:
    """
    Looks for a drive by name under the volumes root (e.g. /Volumes) and in
    the system mount table.
    """

    def __init__(
        self,
        volumes_root: pathlib.Path,
        prefix: str,
        mount_points: t.Callable[[], t.Iterable[pathlib.Path]] = _mount_points,
    ):
        self.volumes_root = pathlib.Path(volumes_root)
        self.prefix = prefix
        self._mount_points = mount_points

    def candidates(self) -> list[pathlib.Path]:
        found: dict[str, pathlib.Path] = {}
        if self.volumes_root.is_dir():
            for entry in sorted(self.volumes_root.iterdir()):
                if entry.is_dir():
                    found.setdefault(entry.name, entry)
        for mp in self._mount_points():
            if mp.name and mp.is_dir():
                found.setdefault(mp.name, mp)
        return list(found.values())

    def locate(self, ordinal: int) -> LocateResult:
        expected = volume_name(self.prefix, ordinal)
        direct = self.volumes_root / expected
        if direct.is_dir():
            return LocateResult(LocateStatus.FOUND, expected, path=direct, found_name=expected)

        others: list[pathlib.Path] = []
        for path in self.candidates():
            if path.name == expected:
                return LocateResult(LocateStatus.FOUND, expected, path=path, found_name=expected)
            if parse_ordinal(path.name, self.prefix) is not None:
                others.append(path)
        if others:
            return LocateResult(LocateStatus.WRONG_VOLUME, expected, path=others[0], found_name=others[0].name)
        return LocateResult(LocateStatus.NOT_MOUNTED, expected)

    def require(self, ordinal: int) -> pathlib.Path:
        """Path of the expected drive, or IdentityMismatch / VolumeUnavailable."""
        result = self.locate(ordinal)
        if result.status is LocateStatus.FOUND:
            assert result.path is not None
            return result.path
        if result.status is LocateStatus.WRONG_VOLUME:
            raise IdentityMismatch(result.expected_name, result.found_name or "?")
        raise VolumeUnavailable(self.volumes_root / result.expected_name, "not mounted")
