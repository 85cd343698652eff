"""Tests for musesync.ledger module."""
from __future__ import annotations

import datetime as dt

import pytest

from musesync.errors import ConfigurationError
from musesync.ledger import SyncLedger


@pytest.fixture
def ledger(temp_dir):
    return SyncLedger(temp_dir / "state" / "sync_status.txt")


@pytest.mark.unit
class TestSyncLedger:
    """Tests for SyncLedger class."""

    def test_missing_file_is_empty(self, ledger):
        """No ledger file means nothing synced yet."""
        assert ledger.load() == {}
        assert ledger.get(1) is None

    def test_record_and_get(self, ledger):
        """A recorded drive reads back with its count."""
        when = dt.datetime(2026, 10, 18, 9, 30, 5, 123456)

        rec = ledger.record(2, 143, when=when)

        assert rec.synced_at == dt.datetime(2026, 10, 18, 9, 30, 5)
        assert ledger.get(2) == rec

    def test_record_replaces_previous(self, ledger):
        """Re-syncing a drive replaces its entry."""
        ledger.record(1, 10, when=dt.datetime(2026, 10, 1))
        ledger.record(1, 12, when=dt.datetime(2026, 10, 18))

        records = ledger.load()

        assert len(records) == 1
        assert records[1].item_count == 12
        assert records[1].synced_at == dt.datetime(2026, 10, 18)

    def test_file_is_sorted_and_tab_separated(self, ledger):
        """Entries are written in drive order, tab separated."""
        ledger.record(3, 30, when=dt.datetime(2026, 10, 18, 12, 0))
        ledger.record(1, 10, when=dt.datetime(2026, 10, 18, 10, 0))

        lines = ledger.path.read_text(encoding="utf-8").splitlines()

        assert lines == ["1\t2026-10-18 10:00:00\t10", "3\t2026-10-18 12:00:00\t30"]

    def test_missing_before(self, ledger):
        """Lists earlier drives that were never synced."""
        ledger.record(2, 5)

        assert ledger.missing_before(4) == [1, 3]
        assert ledger.missing_before(1) == []

    def test_malformed_line(self, ledger):
        """A bad line is reported with its line number."""
        ledger.path.parent.mkdir(parents=True)
        ledger.path.write_text("1\tyesterday\t10\n", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="line 1"):
            ledger.load()
