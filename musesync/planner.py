from __future__ import annotations

import dataclasses as dc
import datetime as dt
import logging
import typing as t

from .errors import ConfigurationError
from .models import AssignmentPlan, Item, PlanEntry, volume_name

logger = logging.getLogger(__name__)


@dc.dataclass(frozen=True)
class DistributionRow:
    ordinal: int
    volume_name: str
    item_count: int
    used_bytes: int


def plan_assignments(
    items: t.Iterable[Item],
    usable_capacity_bytes: int,
    source_root: str,
    *,
    generated_at: dt.datetime | None = None,
    drive_size_gb: int | None = None,
    buffer_gb: int | None = None,
) -> AssignmentPlan:
    """
    Sequential first-fit in name order: fill drive 1 until the next artist
    would overflow it, then move on to drive 2, and so on. Artists are never
    split and never reordered by size.
    """
    if usable_capacity_bytes <= 0:
        raise ConfigurationError(f"Usable capacity must be positive, got {usable_capacity_bytes} bytes")

    ordered = sorted(items, key=lambda i: i.name)
    volumes: dict[int, list[PlanEntry]] = {}
    ordinal, used = 1, 0
    previous: str | None = None
    for item in ordered:
        if item.name == previous:
            raise ConfigurationError(f"Duplicate item name: {item.name!r}")
        previous = item.name
        if item.size_bytes > usable_capacity_bytes:
            raise ConfigurationError(
                f"'{item.name}' ({item.size_bytes} B) is larger than the usable capacity "
                f"of a drive ({usable_capacity_bytes} B)"
            )
        if used + item.size_bytes > usable_capacity_bytes:
            ordinal += 1
            used = 0
        volumes.setdefault(ordinal, []).append(PlanEntry(item.name, item.size_bytes))
        used += item.size_bytes

    plan = AssignmentPlan(
        source_root=str(source_root),
        generated_at=(generated_at or dt.datetime.now()).replace(microsecond=0),
        usable_capacity_bytes=usable_capacity_bytes,
        volumes=volumes,
        drive_size_gb=drive_size_gb,
        buffer_gb=buffer_gb,
    )
    logger.debug("Planned %d artists across %d drives", plan.item_count, plan.volume_count)
    return plan


def distribution(plan: AssignmentPlan, prefix: str) -> list[DistributionRow]:
    return [
        DistributionRow(
            ordinal=o,
            volume_name=volume_name(prefix, o),
            item_count=len(plan.items_for(o)),
            used_bytes=plan.used_bytes(o),
        )
        for o in range(1, plan.volume_count + 1)
    ]
