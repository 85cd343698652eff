"""Tests for musesync.inspector module."""
from __future__ import annotations

import os

import pytest

from musesync import inspector
from musesync.errors import IdentityMismatch, VolumeUnavailable
from musesync.inspector import LocateStatus, VolumeLocator, parse_ordinal


@pytest.mark.unit
class TestContents:
    """Tests for contents function."""

    def test_lists_artist_folders_only(self, temp_dir):
        """Files, hidden folders and the state folder are ignored."""
        drive = temp_dir / "MUSE1"
        for name in ["ABBA", "Beatles", ".Spotlight-V100", ".musicsync"]:
            (drive / name).mkdir(parents=True)
        (drive / "notes.txt").write_text("x", encoding="utf-8")

        assert inspector.contents(drive) == {"ABBA", "Beatles"}

    def test_custom_reserved_names(self, temp_dir):
        """Reserved names can be overridden."""
        drive = temp_dir / "MUSE1"
        (drive / "ABBA").mkdir(parents=True)
        (drive / "System").mkdir()

        assert inspector.contents(drive, reserved=("System",)) == {"ABBA"}

    def test_symlinked_folders_ignored(self, temp_dir):
        """Symlinks are not artist folders."""
        drive = temp_dir / "MUSE1"
        (drive / "ABBA").mkdir(parents=True)
        os.symlink(drive / "ABBA", drive / "Alias")

        assert inspector.contents(drive) == {"ABBA"}

    def test_not_mounted(self, temp_dir):
        """A missing drive raises VolumeUnavailable."""
        with pytest.raises(VolumeUnavailable):
            inspector.contents(temp_dir / "MUSE9")


@pytest.mark.unit
class TestCapacity:
    """Tests for capacity function."""

    def test_reads_disk_usage(self, temp_dir, mocker):
        """Capacity comes straight from disk usage."""
        usage = mocker.MagicMock(total=256 * 1024**3, used=0, free=100 * 1024**3)
        mocker.patch("musesync.inspector.shutil.disk_usage", return_value=usage)

        cap = inspector.capacity(temp_dir)

        assert cap.total_bytes == 256 * 1024**3
        assert cap.available_bytes == 100 * 1024**3

    def test_missing_volume(self, temp_dir):
        """Capacity of a missing drive raises VolumeUnavailable."""
        with pytest.raises(VolumeUnavailable):
            inspector.capacity(temp_dir / "nowhere")


@pytest.mark.unit
class TestParseOrdinal:
    """Tests for parse_ordinal function."""

    @pytest.mark.parametrize(
        "name,expected",
        [("MUSE1", 1), ("MUSE12", 12), ("MUSE", None), ("MUSE0", None), ("MUSE1 1", None), ("muse1", None), ("PASSPORT", None)],
    )
    def test_names(self, name, expected):
        """Only PREFIX followed by a positive number parses."""
        assert parse_ordinal(name, "MUSE") == expected

    def test_prefix_is_literal(self):
        """Regex characters in the prefix match literally."""
        assert parse_ordinal("A.B3", "A.B") == 3
        assert parse_ordinal("AxB3", "A.B") is None


@pytest.mark.unit
class TestVolumeLocator:
    """Tests for VolumeLocator class."""

    def test_found_under_volumes_root(self, volumes_root):
        """The expected drive is found by name."""
        (volumes_root / "MUSE2").mkdir()
        locator = VolumeLocator(volumes_root, "MUSE", mount_points=lambda: [])

        assert locator.require(2) == volumes_root / "MUSE2"

    def test_wrong_drive_inserted(self, volumes_root):
        """Another conventionally named drive is a wrong volume."""
        (volumes_root / "MUSE1").mkdir()
        locator = VolumeLocator(volumes_root, "MUSE", mount_points=lambda: [])

        result = locator.locate(2)

        assert result.status is LocateStatus.WRONG_VOLUME
        assert result.found_name == "MUSE1"
        with pytest.raises(IdentityMismatch) as exc_info:
            locator.require(2)
        assert exc_info.value.expected == "MUSE2"

    def test_nothing_mounted(self, volumes_root):
        """No candidate drives means not mounted."""
        (volumes_root / "Macintosh HD").mkdir()
        locator = VolumeLocator(volumes_root, "MUSE", mount_points=lambda: [])

        assert locator.locate(3).status is LocateStatus.NOT_MOUNTED
        with pytest.raises(VolumeUnavailable):
            locator.require(3)

    def test_found_via_mount_points(self, temp_dir, volumes_root):
        """Drives mounted elsewhere are found through the mount table."""
        mount = temp_dir / "media" / "MUSE4"
        mount.mkdir(parents=True)
        locator = VolumeLocator(volumes_root, "MUSE", mount_points=lambda: [mount])

        assert locator.require(4) == mount
