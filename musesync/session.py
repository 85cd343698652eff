"""
Multi-drive sync session.

Walks the drives in order: inspect, show the diff, ask, apply, record, then
offer to continue with the next drive and wait for it to be inserted. Every
way out of the loop reports the exact command that picks up where it stopped.
"""

from __future__ import annotations

import dataclasses as dc
import enum
import logging
import pathlib
import shlex
import typing as t
from dataclasses import field

from . import display, inspector
from .config import Settings, settings_to_args
from .errors import IdentityMismatch, InterruptedOperation, VolumeUnavailable
from .executor import CapacityFn, SyncExecutor
from .inspector import VolumeLocator, parse_ordinal
from .ledger import SyncLedger
from .models import MIB, AssignmentPlan, VolumeReport, volume_name
from .plan_store import PlanStore
from .prompts import Prompter
from .reconcile import reconcile

logger = logging.getLogger(__name__)

ContentsFn = t.Callable[..., set[str]]


class SessionState(enum.Enum):
    IDLE = "idle"
    INSPECTING = "inspecting"
    AWAITING_CONFIRMATION = "awaiting confirmation"
    APPLYING = "applying"
    RECORDED = "recorded"
    ADVANCING = "advancing"
    AWAITING_VOLUME = "awaiting volume"
    DONE = "done"


@dc.dataclass
class SessionResult:
    reports: list[VolumeReport] = field(default_factory=list)
    declined: list[int] = field(default_factory=list)
    resume_ordinal: int | None = None
    resume_hint: str | None = None
    interrupted: bool = False

    @property
    def finished(self) -> bool:
        return self.resume_ordinal is None and not self.interrupted


def resume_command(
    source_root: pathlib.Path,
    volume_path: pathlib.Path,
    prog: str = "musesync",
    *,
    options: t.Sequence[str] = (),
    ordinal: int | None = None,
) -> str:
    """Shell command that restarts a session at ``volume_path``; ``ordinal`` adds ``-d``."""
    cmd = [prog, *options, "sync", "-s", str(source_root), "-t", str(volume_path)]
    if ordinal is not None:
        cmd += ["-d", str(ordinal)]
    return shlex.join(cmd)


class SessionOrchestrator:
    def __init__(
        self,
        settings: Settings,
        plan: AssignmentPlan,
        source_root: pathlib.Path,
        *,
        executor: SyncExecutor,
        ledger: SyncLedger,
        prompter: Prompter,
        locator: VolumeLocator,
        plan_store: PlanStore | None = None,
        capacity_fn: CapacityFn = inspector.capacity,
        contents_fn: ContentsFn = inspector.contents,
        auto_apply: bool = False,
        prog: str = "musesync",
        config_path: str | None = None,
    ):
        self.settings = settings
        self.plan = plan
        self.source_root = pathlib.Path(source_root)
        self.executor = executor
        self.ledger = ledger
        self.prompter = prompter
        self.locator = locator
        self.plan_store = plan_store
        self.capacity_fn = capacity_fn
        self.contents_fn = contents_fn
        self.auto_apply = auto_apply
        self.prog = prog
        self.config_path = config_path
        self.state = SessionState.IDLE
        self.transitions: list[tuple[SessionState, int | None]] = []

    def _enter(self, state: SessionState, ordinal: int | None = None) -> None:
        logger.debug("session: %s -> %s (%s)", self.state.value, state.value, ordinal)
        self.state = state
        self.transitions.append((state, ordinal))

    def _name(self, ordinal: int) -> str:
        return volume_name(self.settings.prefix, ordinal)

    def _stop(self, result: SessionResult, ordinal: int, path: pathlib.Path | None = None) -> SessionResult:
        self._enter(SessionState.DONE, ordinal)
        target = pathlib.Path(path) if path is not None else self.settings.expected_volume_path(ordinal)
        named = parse_ordinal(target.name, self.settings.prefix)
        result.resume_ordinal = ordinal
        result.resume_hint = resume_command(
            self.source_root,
            target,
            prog=self.prog,
            options=settings_to_args(self.settings, self.config_path),
            ordinal=None if named == ordinal else ordinal,
        )
        display.show_sync_status(self.ledger.load(), self.plan.volume_count, self.settings.prefix)
        display.warn(f"Stopped before {self._name(ordinal)}.")
        display.show_resume(result.resume_hint)
        return result

    def starting_ordinal(self, volume_path: pathlib.Path) -> int | None:
        """Drive number from the volume name, or asked for when the name doesn't say."""
        name = pathlib.Path(volume_path).name
        ordinal = parse_ordinal(name, self.settings.prefix)
        if ordinal is not None:
            return ordinal
        display.warn(f"Volume '{name}' doesn't match {self.settings.prefix}N naming")
        return self.prompter.ask_ordinal("Enter drive number", 1, max(1, self.plan.volume_count))

    def run(self, volume_path: pathlib.Path, start_ordinal: int | None = None) -> SessionResult:
        result = SessionResult()
        path: pathlib.Path | None = pathlib.Path(volume_path)
        ordinal = start_ordinal or self.starting_ordinal(path)
        if ordinal is None:
            self._enter(SessionState.DONE)
            display.warn("No drive number given; nothing synced.")
            return result

        # a drive named for a different ordinal is the wrong drive, whatever -d says
        named = parse_ordinal(path.name, self.settings.prefix)
        if named is not None and named != ordinal:
            display.warn(f"Found {path.name} but expected {self._name(ordinal)}; please swap drives.")
            path = self.await_volume(ordinal)
            if path is None:
                return self._stop(result, ordinal)

        while True:
            assert path is not None
            try:
                report = self.sync_volume(path, ordinal)
            except InterruptedOperation as e:
                result.interrupted = True
                if e.report is not None:
                    result.reports.append(e.report)
                return self._stop(result, ordinal, path)
            except VolumeUnavailable as e:
                display.warn(str(e))
                path = self.await_volume(ordinal)
                if path is None:
                    return self._stop(result, ordinal)
                continue

            if report is None:
                result.declined.append(ordinal)
            else:
                result.reports.append(report)

            if ordinal >= self.plan.volume_count:
                self._enter(SessionState.DONE, ordinal)
                display.show_sync_status(self.ledger.load(), self.plan.volume_count, self.settings.prefix)
                display.success(f"All {self.plan.volume_count} drives complete.")
                return result

            nxt = ordinal + 1
            self._enter(SessionState.ADVANCING, ordinal)
            if not self.prompter.confirm(f"Continue to {self._name(nxt)}?"):
                return self._stop(result, nxt)
            path = self.await_volume(nxt)
            if path is None:
                return self._stop(result, nxt)
            ordinal = nxt

    def sync_volume(self, path: pathlib.Path, ordinal: int) -> VolumeReport | None:
        """
        Reconcile and apply one drive. Returns None when the operator declines,
        in which case nothing on the drive is touched and nothing is recorded.
        """
        name = self._name(ordinal)
        self._enter(SessionState.INSPECTING, ordinal)

        missing = self.ledger.missing_before(ordinal)
        if missing:
            display.warn(
                f"Syncing {name} out of sequence; not yet synced: "
                + " ".join(self._name(o) for o in missing)
            )
            display.warn("This is fine, but those drives may have stale content.")

        cap = self.capacity_fn(path)
        live_usable = cap.usable_bytes(self.settings.buffer_bytes)
        if live_usable != self.plan.usable_capacity_bytes:
            logger.warning(
                "%s has %d MB usable but the plan assumed %d MB; rerun with --force to replan",
                name, live_usable // MIB, self.plan.usable_capacity_bytes // MIB,
            )
        if ordinal > self.plan.volume_count:
            logger.warning("No artists are assigned to %s; everything on it is listed for removal", name)

        planned = self.plan.items_for(ordinal)
        present = self.contents_fn(path, reserved=(self.settings.drive_state_dir,))
        diff = reconcile(planned, present)
        display.show_diff(path.name, ordinal, self.plan.volume_count, cap, diff)

        if not diff.in_sync:
            self._enter(SessionState.AWAITING_CONFIRMATION, ordinal)
            if not self.auto_apply and not self.prompter.confirm("Proceed?"):
                display.warn("Cancelled.")
                self._enter(SessionState.IDLE, ordinal)
                return None

        self._enter(SessionState.APPLYING, ordinal)
        self._push_plan(path)
        report = self.executor.apply(path, self.source_root, diff, ordinal=ordinal, volume_name=path.name)
        # a pass with per-artist failures still counts as synced; the report lists them
        self.ledger.record(ordinal, len(planned))
        self._enter(SessionState.RECORDED, ordinal)
        display.show_report(report)
        return report

    def _push_plan(self, path: pathlib.Path) -> None:
        if self.plan_store is None or not self.plan_store.exists():
            return
        target_dir = path / self.settings.drive_state_dir
        target = target_dir / self.plan_store.path.name
        if target.is_file() and target.read_bytes() == self.plan_store.path.read_bytes():
            return
        try:
            self.plan_store.copy_to(target_dir)
            logger.info("%s -> %s", self.plan_store.path.name, target_dir)
        except OSError as e:
            logger.warning("Could not copy the master list to %s: %s", target_dir, e)

    def await_volume(self, ordinal: int) -> pathlib.Path | None:
        """Wait for the operator to insert the right drive. None if they give up."""
        expected = self._name(ordinal)
        self._enter(SessionState.AWAITING_VOLUME, ordinal)
        while True:
            if not self.prompter.await_volume(expected):
                return None
            try:
                return self.locator.require(ordinal)
            except IdentityMismatch as e:
                display.warn(f"Found {e.found} but expected {expected}; please swap drives.")
            except VolumeUnavailable:
                display.warn(f"{expected} not found at {self.settings.expected_volume_path(ordinal)}; is it mounted?")
