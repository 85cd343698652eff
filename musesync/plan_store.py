"""
Persistence for the assignment plan ("master list").

File layout (tab-separated, ``#`` lines are comments)::

    # master_list
    # source: /Volumes/Stuff/Music
    # generated: 2026-10-18T09:30:00
    # drive_size_gb: 256
    # buffer_gb: 5
    # usable_per_drive_mb: 257024
    # usable_per_drive_bytes: 269509197824
    # DRIVE_NUM	ARTIST	SIZE_MB
    1	ABBA	2310
    1	AC-DC	4120

Data rows ignore every comment line; metadata is read from ``# key: value``
comments only.
"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import logging
import os
import pathlib
import shutil
import typing as t

from .config import PLAN_FILENAME, Settings
from .errors import ConfigurationError
from .models import MIB, AssignmentPlan, Item, PlanEntry, to_mb
from .planner import plan_assignments
from .scanner import scan_items

logger = logging.getLogger(__name__)

ScanFn = t.Callable[[pathlib.Path], list[Item]]

_HEADER_COLUMNS = "# DRIVE_NUM\tARTIST\tSIZE_MB"


def format_plan(plan: AssignmentPlan) -> str:
    lines = [
        "# master_list",
        f"# source: {plan.source_root}",
        f"# generated: {plan.generated_at.isoformat(timespec='seconds')}",
    ]
    if plan.drive_size_gb is not None:
        lines.append(f"# drive_size_gb: {plan.drive_size_gb}")
    if plan.buffer_gb is not None:
        lines.append(f"# buffer_gb: {plan.buffer_gb}")
    lines.append(f"# usable_per_drive_mb: {plan.usable_capacity_bytes // MIB}")
    lines.append(f"# usable_per_drive_bytes: {plan.usable_capacity_bytes}")
    lines.append(_HEADER_COLUMNS)
    for ordinal, entry in plan.entries():
        if "\t" in entry.name or "\n" in entry.name:
            raise ConfigurationError(f"Artist name cannot be stored in the plan: {entry.name!r}")
        lines.append(f"{ordinal}\t{entry.name}\t{to_mb(entry.size_bytes)}")
    return "\n".join(lines) + "\n"


def _parse_metadata(line: str, meta: dict[str, str]) -> None:
    body = line.lstrip("#").strip()
    key, sep, value = body.partition(":")
    if sep and key and " " not in key.strip():
        meta[key.strip()] = value.strip()


def parse_plan(text: str, *, fallback_generated: dt.datetime | None = None) -> AssignmentPlan:
    meta: dict[str, str] = {}
    volumes: dict[int, list[PlanEntry]] = {}
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.rstrip("\r")
        if not line.strip():
            continue
        if line.startswith("#"):
            _parse_metadata(line, meta)
            continue
        parts = line.split("\t")
        if len(parts) != 3:
            raise ConfigurationError(f"Malformed plan row {lineno}: {line!r}")
        try:
            ordinal, size_mb = int(parts[0]), int(parts[2])
        except ValueError as e:
            raise ConfigurationError(f"Malformed plan row {lineno}: {line!r}") from e
        volumes.setdefault(ordinal, []).append(PlanEntry(parts[1], size_mb * MIB))

    try:
        if "usable_per_drive_bytes" in meta:
            usable = int(meta["usable_per_drive_bytes"])
        elif "usable_per_drive_mb" in meta:
            usable = int(meta["usable_per_drive_mb"]) * MIB
        else:
            raise ConfigurationError("Plan file does not record the usable capacity per drive")
        generated = (
            dt.datetime.fromisoformat(meta["generated"])
            if "generated" in meta
            else fallback_generated or dt.datetime.fromtimestamp(0)
        )
        drive_size = int(meta["drive_size_gb"]) if "drive_size_gb" in meta else None
        buffer = int(meta["buffer_gb"]) if "buffer_gb" in meta else None
    except ValueError as e:
        raise ConfigurationError(f"Malformed plan metadata: {e}") from e

    return AssignmentPlan(
        source_root=meta.get("source", ""),
        generated_at=generated,
        usable_capacity_bytes=usable,
        volumes=volumes,
        drive_size_gb=drive_size,
        buffer_gb=buffer,
    )


class PlanStore:
    """Reads and writes the plan file in the state directory."""

    def __init__(self, path: pathlib.Path):
        self.path = pathlib.Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> AssignmentPlan | None:
        if not self.exists():
            return None
        mtime = dt.datetime.fromtimestamp(self.path.stat().st_mtime)
        return parse_plan(self.path.read_text(encoding="utf-8"), fallback_generated=mtime)

    def save(self, plan: AssignmentPlan) -> pathlib.Path:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(format_plan(plan), encoding="utf-8")
        os.replace(tmp, self.path)
        return self.path

    def copy_to(self, directory: pathlib.Path) -> pathlib.Path:
        """Drop a copy of the plan file into ``directory`` (a drive's state dir)."""
        directory = pathlib.Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        target = directory / PLAN_FILENAME
        shutil.copyfile(self.path, target)
        return target


@dc.dataclass(frozen=True)
class PlanDecision:
    plan: AssignmentPlan
    rebuilt: bool
    reason: str


def rebuild_reason(
    existing: AssignmentPlan | None,
    settings: Settings,
    source_root: str,
    *,
    live_usable_bytes: int | None = None,
    force: bool = False,
    now: dt.datetime | None = None,
) -> str | None:
    """Why the plan must be regenerated, or None if the cached one is still good."""
    if force:
        return "forced rescan"
    if existing is None:
        return "no existing plan"
    if live_usable_bytes is not None and live_usable_bytes != existing.usable_capacity_bytes:
        return (
            f"drive capacity changed ({existing.usable_capacity_bytes // MIB} MB planned, "
            f"{live_usable_bytes // MIB} MB usable)"
        )
    if existing.source_root and existing.source_root != str(source_root):
        return f"source changed (plan was built from {existing.source_root})"
    if existing.age_seconds(now) >= settings.max_age_seconds:
        return "plan is older than the cache limit"
    return None


def ensure_plan(
    store: PlanStore,
    settings: Settings,
    source_root: pathlib.Path,
    *,
    live_usable_bytes: int | None = None,
    force: bool = False,
    scan: ScanFn = scan_items,
    now: dt.datetime | None = None,
) -> PlanDecision:
    """
    Return the cached plan when it is still valid, otherwise rescan the source
    and write a fresh one. A live capacity that differs from the plan's always
    forces a rebuild with the live value.
    """
    try:
        existing = store.load()
    except ConfigurationError as e:
        logger.warning("Ignoring unreadable plan %s: %s", store.path, e)
        existing = None

    reason = rebuild_reason(
        existing,
        settings,
        str(source_root),
        live_usable_bytes=live_usable_bytes,
        force=force,
        now=now,
    )
    if reason is None:
        assert existing is not None
        logger.info("Cached master list: %d artists  (%s)", existing.item_count, store.path)
        return PlanDecision(existing, rebuilt=False, reason="cached")

    logger.info("Rebuilding master list: %s", reason)
    usable = live_usable_bytes if live_usable_bytes is not None else settings.nominal_usable_bytes
    items = scan(pathlib.Path(source_root))
    plan = plan_assignments(
        items,
        usable,
        str(source_root),
        generated_at=now,
        drive_size_gb=settings.drive_size_gb,
        buffer_gb=settings.buffer_gb,
    )
    store.save(plan)
    logger.info(
        "Master list written: %d artists across %d drives  ->  %s",
        plan.item_count,
        plan.volume_count,
        store.path,
    )
    return PlanDecision(plan, rebuilt=True, reason=reason)
