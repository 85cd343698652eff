"""
Enumerate the artist folders directly under a source root and measure them.

Sizes are taken the way ``du`` reports them (allocated blocks where the
platform exposes them) and rounded up to whole megabytes for planning.
"""

from __future__ import annotations

import logging
import os
import pathlib
import typing as t

from .errors import ConfigurationError
from .models import MIB, Item, to_mb

logger = logging.getLogger(__name__)

SizeFn = t.Callable[[pathlib.Path], int]

PROGRESS_EVERY = 50


def _entry_size(st: os.stat_result) -> int:
    blocks = getattr(st, "st_blocks", None)
    if blocks is not None:
        return blocks * 512
    return st.st_size


def measure_size(path: pathlib.Path) -> int:
    """On-disk size of ``path`` in bytes. Unreadable entries are skipped."""
    path = pathlib.Path(path)
    try:
        total = _entry_size(path.lstat())
    except OSError:
        return 0
    if not path.is_dir() or path.is_symlink():
        return total

    seen: set[tuple[int, int]] = set()
    for root, dirs, files in os.walk(path):
        for name in dirs + files:
            try:
                st = os.lstat(os.path.join(root, name))
            except OSError:
                continue
            if st.st_nlink > 1 and not os.path.isdir(os.path.join(root, name)):
                key = (st.st_dev, st.st_ino)
                if key in seen:
                    continue
                seen.add(key)
            total += _entry_size(st)
    return total


def list_item_names(source_root: pathlib.Path) -> list[str]:
    """Immediate non-hidden subdirectories of ``source_root``, sorted by name."""
    source_root = pathlib.Path(source_root)
    if not source_root.is_dir():
        raise ConfigurationError(f"Source not found: {source_root}")
    names = [
        entry.name
        for entry in os.scandir(source_root)
        if entry.is_dir() and not entry.name.startswith(".")
    ]
    return sorted(names)


def scan_items(source_root: pathlib.Path, measure: SizeFn = measure_size) -> list[Item]:
    """
    Scan ``source_root`` and return one Item per artist folder, sorted by name.
    Planning sizes are whole megabytes so the plan file round-trips exactly.
    """
    source_root = pathlib.Path(source_root)
    logger.info("Scanning %s ...", source_root)
    items: list[Item] = []
    for count, name in enumerate(list_item_names(source_root), start=1):
        size = measure(source_root / name)
        items.append(Item(name=name, size_bytes=to_mb(size) * MIB))
        if count % PROGRESS_EVERY == 0:
            logger.info("  ... %d artists scanned", count)
    logger.info("Scanned %d artists", len(items))
    return items
