from __future__ import annotations

import logging
import pathlib
import shutil
import typing as t

from . import inspector, scanner
from .copier import Copier, CopyResult
from .errors import (
    CopyFailure,
    InsufficientSpace,
    InterruptedOperation,
    RemovalFailure,
    SourceMissing,
)
from .models import (
    ItemOutcome,
    ItemStatus,
    Reconciliation,
    VolumeCapacity,
    VolumeReport,
    format_bytes,
)

logger = logging.getLogger(__name__)

CapacityFn = t.Callable[[pathlib.Path], VolumeCapacity]
SizeFn = t.Callable[[pathlib.Path], int]


def remove_partial(dest: pathlib.Path) -> None:
    """Delete a half-written artist folder so it can't pass for a complete copy."""
    if dest.exists():
        logger.warning("Cleaning up partial copy: %s", dest.name)
        shutil.rmtree(dest, ignore_errors=True)


class SyncExecutor:
    """
    Applies one drive's diff: removals first (to free space), then additions
    in plan order with a fresh size and free-space check before every copy.
    Per-artist problems are recorded in the report and never stop the batch.
    """

    def __init__(
        self,
        copier: Copier,
        *,
        capacity_fn: CapacityFn = inspector.capacity,
        measure: SizeFn = scanner.measure_size,
    ):
        self.copier = copier
        self.capacity_fn = capacity_fn
        self.measure = measure

    def apply(
        self,
        volume_path: pathlib.Path,
        source_root: pathlib.Path,
        diff: Reconciliation,
        *,
        ordinal: int = 0,
        volume_name: str | None = None,
    ) -> VolumeReport:
        volume_path = pathlib.Path(volume_path)
        source_root = pathlib.Path(source_root)
        report = VolumeReport(ordinal=ordinal, volume_name=volume_name or volume_path.name)
        if diff.in_sync:
            logger.info("%s: already in sync", report.volume_name)
            return report

        for name in diff.remove:
            try:
                self.remove_item(volume_path, name)
            except RemovalFailure as e:
                logger.error("Could not remove %s: %s", name, e)
                report.outcomes.append(ItemOutcome(name, ItemStatus.FAILED, str(e)))
            else:
                logger.info("Removed: %s", name)
                report.outcomes.append(ItemOutcome(name, ItemStatus.REMOVED))

        total = len(diff.add)
        for i, entry in enumerate(diff.add, start=1):
            tag = f"[{i}/{total}]"
            try:
                copied = self.add_item(volume_path, source_root, entry.name, tag=tag)
            except InsufficientSpace as e:
                logger.warning(
                    "%s No space for %s (need %s, %s free)",
                    tag, entry.name, format_bytes(e.needed), format_bytes(e.available),
                )
                report.outcomes.append(ItemOutcome(entry.name, ItemStatus.SKIPPED_NO_SPACE, str(e)))
            except SourceMissing as e:
                logger.warning("%s Source missing: %s", tag, entry.name)
                report.outcomes.append(ItemOutcome(entry.name, ItemStatus.SKIPPED_MISSING, str(e)))
            except CopyFailure as e:
                logger.error("%s %s", tag, e)
                report.outcomes.append(ItemOutcome(entry.name, ItemStatus.FAILED, str(e)))
            except InterruptedOperation as e:
                e.report = report
                raise
            else:
                logger.info("%s Copied %s", tag, entry.name)
                report.outcomes.append(ItemOutcome(entry.name, ItemStatus.COPIED, format_bytes(copied)))
        return report

    def remove_item(self, volume_path: pathlib.Path, name: str) -> None:
        target = volume_path / name
        if name in ("", ".", "..") or target.parent != volume_path:
            raise RemovalFailure(name, f"Refusing to remove {target}")
        try:
            shutil.rmtree(target)
        except OSError as e:
            raise RemovalFailure(name, str(e)) from e

    def add_item(self, volume_path: pathlib.Path, source_root: pathlib.Path, name: str, *, tag: str = "") -> int:
        """Copy one artist if it fits right now. Returns the measured size."""
        src = source_root / name
        if not src.is_dir():
            raise SourceMissing(name)

        need = self.measure(src)
        avail = self.capacity_fn(volume_path).available_bytes
        if need > avail:
            raise InsufficientSpace(name, need, avail)

        logger.info("%s %s  (%s, %s free)", tag, name, format_bytes(need), format_bytes(avail))
        dest = volume_path / name
        outcome = self.copier.copy(src, dest, mirror=True)
        if outcome.result is CopyResult.CANCELLED:
            remove_partial(dest)
            raise InterruptedOperation(name)
        if outcome.result is CopyResult.FAILED:
            raise CopyFailure(name, outcome.returncode)
        return need
