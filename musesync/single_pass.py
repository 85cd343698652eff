"""
Single-pass fill: copy artists in name order onto one drive until the next
one doesn't fit, then report where to pick up on a fresh drive. No plan file,
no removals, no sync ledger.
"""

from __future__ import annotations

import dataclasses as dc
import logging
import pathlib
import shlex
import typing as t

from . import inspector, scanner
from .copier import Copier, CopyResult
from .errors import InterruptedOperation
from .executor import CapacityFn, SizeFn, remove_partial
from .models import format_bytes

logger = logging.getLogger(__name__)


@dc.dataclass
class FillResult:
    copied: list[str] = dc.field(default_factory=list)
    failed: list[str] = dc.field(default_factory=list)
    stopped_at: str | None = None
    space_issue: bool = False
    initial_free: int = 0
    final_free: int = 0

    @property
    def bytes_used(self) -> int:
        return self.initial_free - self.final_free


def fill_resume_command(
    source_root: pathlib.Path,
    item: str,
    dest: str = "/path/to/next/drive",
    prog: str = "musesync",
    options: t.Sequence[str] = (),
) -> str:
    return shlex.join([prog, *options, "fill", "-s", str(source_root), "-t", dest, "-b", item])


def required_space(size: int, margin_pct: int) -> int:
    return size * (100 + margin_pct) // 100


class SinglePassFiller:
    def __init__(
        self,
        copier: Copier,
        *,
        margin_pct: int = 10,
        capacity_fn: CapacityFn = inspector.capacity,
        measure: SizeFn = scanner.measure_size,
        list_names: t.Callable[[pathlib.Path], list[str]] = scanner.list_item_names,
    ):
        self.copier = copier
        self.margin_pct = margin_pct
        self.capacity_fn = capacity_fn
        self.measure = measure
        self.list_names = list_names

    def start_index(self, names: list[str], start_from: str | None) -> int:
        if not start_from:
            return 0
        try:
            idx = names.index(start_from)
        except ValueError:
            logger.warning("Starting folder %r not found, starting from beginning", start_from)
            return 0
        logger.info("Starting from folder: %s (index %d)", start_from, idx)
        return idx

    def run(self, source_root: pathlib.Path, dest: pathlib.Path, start_from: str | None = None) -> FillResult:
        source_root = pathlib.Path(source_root)
        dest = inspector.ensure_mounted(dest)
        names = self.list_names(source_root)
        result = FillResult()
        if not names:
            logger.error("No folders found in %s", source_root)
            return result
        logger.info("Found %d folders", len(names))

        result.initial_free = self.capacity_fn(dest).available_bytes
        result.final_free = result.initial_free
        logger.info("Initial available space on destination: %s", format_bytes(result.initial_free))

        for i in range(self.start_index(names, start_from), len(names)):
            name = names[i]
            src = source_root / name
            size = self.measure(src)
            available = self.capacity_fn(dest).available_bytes
            need = required_space(size, self.margin_pct)
            logger.info(
                "[%d/%d] %s  (%s, %s free)", i + 1, len(names), name, format_bytes(size), format_bytes(available)
            )
            if available < need:
                logger.warning("Insufficient space for %s (need %s); stopping", name, format_bytes(need))
                result.stopped_at = name
                break

            target = dest / name
            outcome = self.copier.copy(src, target, mirror=False)
            if outcome.result is CopyResult.SUCCEEDED:
                result.copied.append(name)
                continue
            if outcome.result is CopyResult.CANCELLED:
                remove_partial(target)
                result.final_free = self.capacity_fn(dest).available_bytes
                raise InterruptedOperation(name, resume_hint=fill_resume_command(source_root, name), report=result)

            logger.error("Failed to copy %s (exit code: %s)", name, outcome.returncode)
            space_after = self.capacity_fn(dest).available_bytes
            remove_partial(target)
            if space_after < size // 10:
                logger.warning("Detected space issue during copy of %s", name)
                result.stopped_at = name
                result.space_issue = True
                break
            result.failed.append(name)

        result.final_free = self.capacity_fn(dest).available_bytes
        return result
