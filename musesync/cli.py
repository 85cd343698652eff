from __future__ import annotations

import argparse
import logging
import pathlib
import sys
from typing import Sequence

from . import __version__, display, inspector
from .config import Settings, load_config, platform_config_default, resolve_config_path, save_config, settings_to_args
from .copier import RsyncCopier
from .errors import ConfigurationError, InterruptedOperation, VolumeUnavailable
from .executor import SyncExecutor
from .inspector import VolumeLocator
from .ledger import SyncLedger
from .models import MIB, format_bytes
from .plan_store import PlanDecision, PlanStore, ensure_plan
from .prompts import ConsolePrompter
from .session import SessionOrchestrator
from .single_pass import SinglePassFiller, fill_resume_command

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONFIG = 1
EXIT_VOLUME = 2
EXIT_INTERRUPTED = 130


def _epilog() -> str:
    return (
        "Examples:\n"
        "  musesync analyze -s ~/Music/ALAC\n"
        "  musesync sync -s ~/Music/ALAC -t /Volumes/MUSE1\n"
        "  musesync fill -s ~/Music/ALAC -t /Volumes/PASSPORT -b \"Gentle Giant\"\n"
        "\n"
        f"Default config path: {platform_config_default()}\n"
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="musesync",
        description="Spread a music library across numbered flash drives and keep them in sync",
        epilog=_epilog(),
        formatter_class=argparse.RawTextHelpFormatter,
    )
    p.add_argument("--version", "-V", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--config", "-c", help="Path to config TOML (overrides MUSESYNC_CONFIG/env & defaults)")
    p.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    p.add_argument("--drive-size-gb", type=int, help="Nominal capacity of each drive")
    p.add_argument("--buffer-gb", type=int, help="Headroom to leave free on each drive")
    p.add_argument("--prefix", help="Volume name prefix (MUSE -> MUSE1, MUSE2, ...)")
    p.add_argument("--max-age", type=int, dest="max_age_seconds", help="Seconds before the source is rescanned")
    p.add_argument("--state-dir", help="Where the master list and sync status live")
    p.add_argument("--volumes-root", help="Directory drives are mounted under")
    p.add_argument("--rsync", dest="copy_bin", help="rsync binary to use")

    sub = p.add_subparsers(dest="cmd", required=True)

    sp = sub.add_parser("analyze", help="Show how artists are allocated to drives; changes nothing.")
    sp.add_argument("--source", "-s", required=True, help="Music library (one folder per artist)")
    sp.add_argument("--target", "-t", help="A mounted drive, to plan with its real capacity")
    sp.add_argument("--force", "-f", action="store_true", help="Rescan the source even if the cache is fresh")
    sp.set_defaults(func=cmd_analyze)

    sp = sub.add_parser("sync", help="Sync drives in sequence, starting with the given one.")
    sp.add_argument("--source", "-s", required=True, help="Music library (one folder per artist)")
    sp.add_argument("--target", "-t", required=True, help="Mounted drive, e.g. /Volumes/MUSE1")
    sp.add_argument("--force", "-f", action="store_true", help="Rescan the source even if the cache is fresh")
    sp.add_argument("--drive", "-d", type=int, help="Drive number, when the volume name doesn't say")
    sp.add_argument("--yes", "-y", action="store_true", help="Apply each drive's changes without asking")
    sp.set_defaults(func=cmd_sync)

    sp = sub.add_parser("status", help="Show when each drive was last synced.")
    sp.set_defaults(func=cmd_status)

    sp = sub.add_parser("fill", help="Single pass: copy artists in order onto one drive until it is full.")
    sp.add_argument("--source", "-s", required=True, help="Folder containing the folders to copy")
    sp.add_argument("--target", "-t", required=True, help="Destination drive")
    sp.add_argument("--begin", "-b", help="Folder name to start from")
    sp.set_defaults(func=cmd_fill)

    sp = sub.add_parser("init-config", help="Write a config file with the current settings.")
    sp.add_argument("--overwrite", action="store_true", help="Replace an existing config file")
    sp.set_defaults(func=cmd_init_config)

    return p


def _settings(args: argparse.Namespace) -> Settings:
    cfg = load_config(args.config)
    return cfg.with_overrides(
        drive_size_gb=args.drive_size_gb,
        buffer_gb=args.buffer_gb,
        prefix=args.prefix,
        max_age_seconds=args.max_age_seconds,
        state_dir=args.state_dir,
        volumes_root=args.volumes_root,
        copy_bin=args.copy_bin,
    ).validate()


def _source(args: argparse.Namespace) -> pathlib.Path:
    source = pathlib.Path(args.source).expanduser().resolve()
    if not source.is_dir():
        raise ConfigurationError(f"Source not found: {source}")
    return source


def _plan(settings: Settings, source: pathlib.Path, target: pathlib.Path | None, force: bool) -> PlanDecision:
    live_usable = None
    if target is not None:
        cap = inspector.capacity(target)
        live_usable = cap.usable_bytes(settings.buffer_bytes)
        if live_usable != settings.nominal_usable_bytes:
            logger.info(
                "Drive actual capacity: %d MB  ->  %d MB usable (%d MB assumed)",
                cap.total_bytes // MIB, live_usable // MIB, settings.nominal_usable_bytes // MIB,
            )
    return ensure_plan(PlanStore(settings.plan_path), settings, source, live_usable_bytes=live_usable, force=force)


def cmd_analyze(args: argparse.Namespace) -> int:
    settings = _settings(args)
    source = _source(args)
    target = pathlib.Path(args.target).expanduser() if args.target else None
    decision = _plan(settings, source, target, args.force)
    display.show_distribution(decision.plan, settings.prefix)
    return EXIT_OK


def cmd_sync(args: argparse.Namespace) -> int:
    settings = _settings(args)
    source = _source(args)
    target = inspector.ensure_mounted(pathlib.Path(args.target).expanduser())
    copier = RsyncCopier(settings.copy_bin)
    if not copier.available():
        raise ConfigurationError(f"'{settings.copy_bin}' not found on PATH")

    logger.info("Source: %s", source)
    decision = _plan(settings, source, target, args.force)
    if decision.plan.item_count == 0:
        raise ConfigurationError(f"No artist folders found in {source}")
    display.show_distribution(decision.plan, settings.prefix)

    session = SessionOrchestrator(
        settings,
        decision.plan,
        source,
        executor=SyncExecutor(copier),
        ledger=SyncLedger(settings.ledger_path),
        prompter=ConsolePrompter(display.console),
        locator=VolumeLocator(pathlib.Path(settings.volumes_root), settings.prefix),
        plan_store=PlanStore(settings.plan_path),
        auto_apply=args.yes,
        config_path=args.config,
    )
    result = session.run(target, start_ordinal=args.drive)
    return EXIT_INTERRUPTED if result.interrupted else EXIT_OK


def cmd_status(args: argparse.Namespace) -> int:
    settings = _settings(args)
    records = SyncLedger(settings.ledger_path).load()
    try:
        plan = PlanStore(settings.plan_path).load()
    except ConfigurationError as e:
        logger.warning("%s", e)
        plan = None
    display.show_sync_status(records, plan.volume_count if plan else 0, settings.prefix)
    return EXIT_OK


def cmd_fill(args: argparse.Namespace) -> int:
    settings = _settings(args)
    source = _source(args)
    dest = pathlib.Path(args.target).expanduser()
    copier = RsyncCopier(settings.copy_bin, progress=True)
    if not copier.available():
        raise ConfigurationError(f"'{settings.copy_bin}' not found on PATH")

    filler = SinglePassFiller(copier, margin_pct=settings.single_pass_margin_pct)
    options = settings_to_args(settings, args.config)
    try:
        result = filler.run(source, dest, start_from=args.begin)
    except InterruptedOperation as e:
        display.warn(f"Interrupted while copying {e.name}; partial copy removed.")
        display.show_resume(fill_resume_command(source, e.name, options=options))
        return EXIT_INTERRUPTED

    display.success(f"Successfully copied: {len(result.copied)} folders")
    if result.failed:
        display.error(f"Failed: {len(result.failed)} folders ({', '.join(result.failed)})")
    display.console.print(f"Space used: {format_bytes(result.bytes_used)}")
    display.console.print(f"Space remaining: {format_bytes(result.final_free)}")
    if result.stopped_at:
        display.warn(f"Stopped at folder: {result.stopped_at}")
        display.show_resume(fill_resume_command(source, result.stopped_at, options=options))
    return EXIT_OK


def cmd_init_config(args: argparse.Namespace) -> int:
    target = resolve_config_path(args.config)
    settings = Settings().with_overrides(
        drive_size_gb=args.drive_size_gb,
        buffer_gb=args.buffer_gb,
        prefix=args.prefix,
        max_age_seconds=args.max_age_seconds,
        state_dir=args.state_dir,
        volumes_root=args.volumes_root,
        copy_bin=args.copy_bin,
    ).validate()
    try:
        path = save_config(settings, target, overwrite=args.overwrite)
    except FileExistsError as e:
        display.error(f"{e} (use --overwrite to replace it)")
        return EXIT_CONFIG
    display.success(f"Wrote {path}")
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    argv = argv if argv is not None else sys.argv[1:]
    parser = build_parser()
    args = parser.parse_args(argv)
    display.setup_logging(args.verbose)
    try:
        return args.func(args)
    except ConfigurationError as e:
        display.error(str(e))
        return EXIT_CONFIG
    except VolumeUnavailable as e:
        display.error(str(e))
        return EXIT_VOLUME


if __name__ == "__main__":
    raise SystemExit(main())
