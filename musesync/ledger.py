from __future__ import annotations

import datetime as dt
import logging
import os
import pathlib

from .errors import ConfigurationError
from .models import SyncRecord

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class SyncLedger:
    """
    Per-drive record of the last completed sync pass.

    One tab-separated line per drive number (``N<TAB>timestamp<TAB>count``),
    kept sorted. A missing file simply means nothing has been synced yet.
    """

    def __init__(self, path: pathlib.Path):
        self.path = pathlib.Path(path)

    def load(self) -> dict[int, SyncRecord]:
        if not self.path.is_file():
            return {}
        records: dict[int, SyncRecord] = {}
        for lineno, line in enumerate(self.path.read_text(encoding="utf-8").splitlines(), start=1):
            if not line.strip() or line.startswith("#"):
                continue
            parts = line.split("\t")
            try:
                ordinal = int(parts[0])
                synced_at = dt.datetime.strptime(parts[1], TIMESTAMP_FORMAT)
                count = int(parts[2])
            except (IndexError, ValueError) as e:
                raise ConfigurationError(f"Malformed sync status line {lineno} in {self.path}: {line!r}") from e
            records[ordinal] = SyncRecord(ordinal, synced_at, count)
        return records

    def get(self, ordinal: int) -> SyncRecord | None:
        return self.load().get(ordinal)

    def record(self, ordinal: int, item_count: int, *, when: dt.datetime | None = None) -> SyncRecord:
        """Store a sync for ``ordinal``, replacing any earlier record for it."""
        rec = SyncRecord(ordinal, (when or dt.datetime.now()).replace(microsecond=0), item_count)
        records = self.load()
        records[ordinal] = rec
        self._write(records)
        logger.debug("Recorded sync for drive %d (%d artists)", ordinal, item_count)
        return rec

    def missing_before(self, ordinal: int) -> list[int]:
        """Lower drive numbers that have never been synced."""
        records = self.load()
        return [o for o in range(1, ordinal) if o not in records]

    def _write(self, records: dict[int, SyncRecord]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        lines = [
            f"{r.ordinal}\t{r.synced_at.strftime(TIMESTAMP_FORMAT)}\t{r.item_count}"
            for r in sorted(records.values(), key=lambda r: r.ordinal)
        ]
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text("\n".join(lines) + "\n", encoding="utf-8")
        os.replace(tmp, self.path)
