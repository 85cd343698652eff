"""Pytest fixtures and configuration for musesync tests."""
from __future__ import annotations

import pathlib
import shutil

import pytest

from musesync.config import Settings
from musesync.copier import CopyOutcome, CopyResult
from musesync.errors import VolumeUnavailable
from musesync.models import GIB, MIB, VolumeCapacity

# Test libraries carry their nominal size in a marker file so measuring is
# deterministic regardless of the filesystem's block size.
SIZE_MARKER = ".size"


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests with no real drives or rsync")
    config.addinivalue_line("markers", "integration: tests that drive several components together")


# ==================== Helpers ====================


def make_library(root: pathlib.Path, sizes: dict[str, int]) -> pathlib.Path:
    """Create one folder per artist, each declaring ``size`` bytes."""
    root.mkdir(parents=True, exist_ok=True)
    for name, size in sizes.items():
        d = root / name
        d.mkdir(parents=True, exist_ok=True)
        (d / SIZE_MARKER).write_text(str(size), encoding="utf-8")
        (d / "01 - track.flac").write_text(name, encoding="utf-8")
    return root


def fake_measure(path: pathlib.Path) -> int:
    marker = pathlib.Path(path) / SIZE_MARKER
    return int(marker.read_text(encoding="utf-8")) if marker.is_file() else 0


class FakeDisk:
    """capacity_fn whose free space is total minus the artists on the drive."""

    def __init__(self, total_bytes: int):
        self.total_bytes = total_bytes
        self.calls = 0

    def __call__(self, path: pathlib.Path) -> VolumeCapacity:
        path = pathlib.Path(path)
        if not path.is_dir():
            raise VolumeUnavailable(path)
        self.calls += 1
        used = sum(fake_measure(p) for p in path.iterdir() if p.is_dir())
        return VolumeCapacity(self.total_bytes, self.total_bytes - used)


class FakeCopier:
    """
    Stands in for rsync. Copies with shutil unless ``results`` says otherwise;
    failed and cancelled copies leave a partial folder behind like rsync does.
    """

    def __init__(self, results: dict[str, CopyResult] | None = None):
        self.results = dict(results or {})
        self.calls: list[tuple[str, bool]] = []

    def copy(self, source: pathlib.Path, dest: pathlib.Path, *, mirror: bool = True) -> CopyOutcome:
        self.calls.append((source.name, mirror))
        result = self.results.get(source.name, CopyResult.SUCCEEDED)
        if result is CopyResult.SUCCEEDED:
            if mirror and dest.exists():
                shutil.rmtree(dest)
            shutil.copytree(source, dest, dirs_exist_ok=True)
            return CopyOutcome(result, 0)
        dest.mkdir(parents=True, exist_ok=True)
        (dest / "partial.flac.tmp").write_text("partial", encoding="utf-8")
        return CopyOutcome(result, 20 if result is CopyResult.CANCELLED else 23)

    @property
    def copied(self) -> list[str]:
        return [name for name, _ in self.calls]


def drive_total(usable_mb: int, buffer_gb: int = 5) -> int:
    """Total drive bytes that yield ``usable_mb`` after the buffer is reserved."""
    return usable_mb * MIB + buffer_gb * GIB


# ==================== Test Fixtures ====================


@pytest.fixture
def temp_dir(tmp_path):
    """Temporary directory for test files."""
    return tmp_path


@pytest.fixture
def volumes_root(temp_dir):
    root = temp_dir / "Volumes"
    root.mkdir()
    return root


@pytest.fixture
def settings(temp_dir, volumes_root):
    """Settings with state kept under the temp dir and drives under temp/Volumes."""
    return Settings(state_dir=str(temp_dir / "state"), volumes_root=str(volumes_root))


@pytest.fixture
def library(temp_dir):
    """Five artists totalling 230 MB."""
    return make_library(
        temp_dir / "Music",
        {
            "ABBA": 40 * MIB,
            "AC-DC": 50 * MIB,
            "Beatles": 60 * MIB,
            "Cream": 30 * MIB,
            "Doors": 50 * MIB,
        },
    )


@pytest.fixture
def copier():
    return FakeCopier()


@pytest.fixture
def mock_subprocess_run(mocker):
    """Mock subprocess.run for rsync invocations."""
    mock = mocker.patch("musesync.copier.subprocess.run")
    mock.return_value = mocker.MagicMock(returncode=0)
    return mock


@pytest.fixture(autouse=True)
def reset_environment(monkeypatch, temp_dir):
    """Keep tests away from the real config and home directory."""
    monkeypatch.delenv("MUSESYNC_CONFIG", raising=False)
    monkeypatch.setenv("HOME", str(temp_dir / "home"))
    monkeypatch.setenv("APPDATA", str(temp_dir / "appdata"))
