from __future__ import annotations

import dataclasses as dc
import enum
import logging
import pathlib
import shutil
import subprocess
import typing as t

logger = logging.getLogger(__name__)

# rsync: 20 = received SIGINT/SIGTERM; 130 = shell convention for Ctrl-C
_INTERRUPT_CODES = {20, 130}


class CopyResult(enum.Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dc.dataclass(frozen=True)
class CopyOutcome:
    result: CopyResult
    returncode: int | None = None

    @property
    def ok(self) -> bool:
        return self.result is CopyResult.SUCCEEDED


class Copier(t.Protocol):
    def copy(self, source: pathlib.Path, dest: pathlib.Path, *, mirror: bool = True) -> CopyOutcome: ...


class RsyncCopier:
    """
    Copies one artist folder with rsync. ``mirror`` adds --delete so a stale or
    partial copy at ``dest`` is corrected rather than appended to.
    """

    def __init__(self, rsync_bin: str = "rsync", *, progress: bool = False, extra_args: t.Sequence[str] = ()):
        self.rsync_bin = rsync_bin
        self.progress = progress
        self.extra_args = list(extra_args)

    def available(self) -> bool:
        return shutil.which(self.rsync_bin) is not None

    def command(self, source: pathlib.Path, dest: pathlib.Path, *, mirror: bool = True) -> list[str]:
        cmd = [self.rsync_bin, "-a"]
        if mirror:
            cmd.append("--delete")
        if self.progress:
            cmd.append("--progress")
        cmd += self.extra_args
        # trailing slashes: copy the folder's contents into dest, not dest/<name>/<name>
        cmd += [f"{source}/", f"{dest}/"]
        return cmd

    def copy(self, source: pathlib.Path, dest: pathlib.Path, *, mirror: bool = True) -> CopyOutcome:
        cmd = self.command(source, dest, mirror=mirror)
        logger.debug("Running: %s", " ".join(cmd))
        try:
            proc = subprocess.run(cmd, check=False)
        except KeyboardInterrupt:
            return CopyOutcome(CopyResult.CANCELLED)
        except OSError as e:
            logger.error("Could not run %s: %s", self.rsync_bin, e)
            return CopyOutcome(CopyResult.FAILED)
        rc = proc.returncode
        if rc == 0:
            return CopyOutcome(CopyResult.SUCCEEDED, rc)
        if rc in _INTERRUPT_CODES or rc < 0:
            return CopyOutcome(CopyResult.CANCELLED, rc)
        return CopyOutcome(CopyResult.FAILED, rc)
