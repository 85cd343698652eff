"""Tests for musesync.cli module."""
from __future__ import annotations

import argparse
import shlex

import pytest

from musesync.cli import EXIT_CONFIG, EXIT_OK, EXIT_VOLUME, build_parser, main
from musesync.config import Settings, load_config, settings_to_args
from musesync.plan_store import PlanStore
from musesync.session import resume_command


@pytest.mark.unit
class TestBuildParser:
    """Tests for build_parser function."""

    def test_parser_created(self):
        """Parser is built with the program name."""
        parser = build_parser()

        assert isinstance(parser, argparse.ArgumentParser)
        assert parser.prog == "musesync"

    def test_version_flag(self):
        """--version exits cleanly."""
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["--version"])

        assert exc_info.value.code == 0

    def test_command_required(self):
        """A subcommand is mandatory."""
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_global_overrides(self):
        """Global options land on the namespace."""
        args = build_parser().parse_args(
            ["-c", "/tmp/c.toml", "-v", "--buffer-gb", "3", "--prefix", "TUNES", "--max-age", "60", "status"]
        )

        assert args.config == "/tmp/c.toml"
        assert args.verbose is True
        assert (args.buffer_gb, args.prefix, args.max_age_seconds) == (3, "TUNES", 60)

    def test_sync_command(self):
        """sync takes source, target and flags."""
        args = build_parser().parse_args(["sync", "-s", "/music", "-t", "/Volumes/MUSE1", "-f", "--yes"])

        assert args.cmd == "sync"
        assert (args.source, args.target) == ("/music", "/Volumes/MUSE1")
        assert args.force and args.yes
        assert args.drive is None

    def test_sync_requires_target(self):
        """sync without -t is a usage error."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(["sync", "-s", "/music"])

    def test_analyze_target_optional(self):
        """analyze can plan without a drive."""
        args = build_parser().parse_args(["analyze", "-s", "/music"])

        assert args.target is None

    def test_fill_begin(self):
        """fill accepts a folder to start from."""
        args = build_parser().parse_args(["fill", "-s", "/music", "-t", "/Volumes/X", "-b", "Gentle Giant"])

        assert args.begin == "Gentle Giant"

    def test_resume_command_parses_back(self):
        """A printed resume command restores the same settings and drive."""
        settings = Settings(prefix="KAHN", buffer_gb=3, state_dir="/srv/state")
        hint = resume_command("/music", "/media/PASSPORT", options=settings_to_args(settings, "/etc/m.toml"), ordinal=2)

        args = build_parser().parse_args(shlex.split(hint)[1:])

        assert (args.cmd, args.target, args.drive) == ("sync", "/media/PASSPORT", 2)
        assert (args.config, args.prefix, args.buffer_gb, args.state_dir) == ("/etc/m.toml", "KAHN", 3, "/srv/state")


@pytest.mark.integration
class TestMain:
    """Tests for main function."""

    def test_analyze_writes_plan(self, library, temp_dir):
        """analyze saves the plan to the state dir."""
        state = temp_dir / "state"

        rc = main(["--state-dir", str(state), "analyze", "-s", str(library)])

        assert rc == EXIT_OK
        plan = PlanStore(state / "master_list.txt").load()
        assert plan.item_count == 5
        assert plan.volume_count == 1

    def test_missing_source(self, temp_dir):
        """A missing library is a configuration error."""
        assert main(["analyze", "-s", str(temp_dir / "nowhere")]) == EXIT_CONFIG

    def test_sync_missing_drive(self, library, temp_dir):
        """A missing drive is a volume error."""
        rc = main(["sync", "-s", str(library), "-t", str(temp_dir / "MUSE1")])

        assert rc == EXIT_VOLUME

    def test_sync_without_rsync(self, library, temp_dir, mocker):
        """sync refuses to run without rsync."""
        (temp_dir / "MUSE1").mkdir()
        mocker.patch("musesync.cli.RsyncCopier.available", return_value=False)

        assert main(["sync", "-s", str(library), "-t", str(temp_dir / "MUSE1")]) == EXIT_CONFIG

    def test_bad_override(self):
        """Invalid overrides are rejected before any work."""
        assert main(["--buffer-gb", "999", "status"]) == EXIT_CONFIG

    def test_status_with_nothing_synced(self, temp_dir, capsys):
        """status prints an empty table."""
        rc = main(["--state-dir", str(temp_dir / "state"), "status"])

        assert rc == EXIT_OK
        assert "Sync status" in capsys.readouterr().out

    def test_init_config(self, temp_dir):
        """init-config writes, refuses, then overwrites."""
        path = temp_dir / "config.toml"

        assert main(["-c", str(path), "--prefix", "TUNES", "init-config"]) == EXIT_OK
        assert load_config(path).prefix == "TUNES"
        assert main(["-c", str(path), "init-config"]) == EXIT_CONFIG
        assert main(["-c", str(path), "init-config", "--overwrite"]) == EXIT_OK
        assert load_config(path).prefix == "MUSE"

    def test_sync_empty_source(self, temp_dir, mocker):
        """An empty library is refused before touching the drive."""
        (temp_dir / "Empty").mkdir()
        (temp_dir / "MUSE1").mkdir()
        mocker.patch("musesync.cli.RsyncCopier.available", return_value=True)

        rc = main(["--state-dir", str(temp_dir / "state"), "sync", "-s", str(temp_dir / "Empty"), "-t", str(temp_dir / "MUSE1")])

        assert rc == EXIT_CONFIG
