from __future__ import annotations


class MuseSyncError(RuntimeError):
    pass


class ConfigurationError(MuseSyncError):
    """Fatal setup problem, raised before anything on a drive is touched."""


class VolumeUnavailable(MuseSyncError):
    def __init__(self, path, reason: str = "not a mounted directory") -> None:
        self.path = path
        super().__init__(f"Volume unavailable: {path} ({reason})")


class IdentityMismatch(MuseSyncError):
    def __init__(self, expected: str, found: str) -> None:
        self.expected = expected
        self.found = found
        super().__init__(f"Found {found} but expected {expected}")


class ItemError(MuseSyncError):
    """Per-item problem. Never aborts the rest of a volume's batch."""

    def __init__(self, name: str, message: str) -> None:
        self.name = name
        super().__init__(message)


class RemovalFailure(ItemError):
    pass


class CopyFailure(ItemError):
    def __init__(self, name: str, returncode: int | None = None) -> None:
        self.returncode = returncode
        super().__init__(name, f"Copy failed for {name} (rc={returncode})")


class InsufficientSpace(ItemError):
    def __init__(self, name: str, needed: int, available: int) -> None:
        self.needed = needed
        self.available = available
        super().__init__(name, f"No space for {name} (need {needed} B, {available} B free)")


class SourceMissing(ItemError):
    def __init__(self, name: str) -> None:
        super().__init__(name, f"Source missing: {name}")


class InterruptedOperation(MuseSyncError):
    def __init__(self, name: str, resume_hint: str | None = None, report=None) -> None:
        self.name = name
        self.resume_hint = resume_hint
        self.report = report
        super().__init__(f"Interrupted while copying {name}")
