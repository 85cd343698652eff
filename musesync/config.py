from __future__ import annotations

import dataclasses as dc
import os
import pathlib
import typing as t

try:
    import tomllib  # py311+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # type: ignore[no-redef]

import tomli_w

from .errors import ConfigurationError
from .models import GIB, MIB

PathLikeStr = str | os.PathLike[str]
ConfigDict = dict[str, t.Any]

PLAN_FILENAME = "master_list.txt"
LEDGER_FILENAME = "sync_status.txt"


def platform_config_default() -> pathlib.Path:
    """
    Determine the default config path by OS:
      - Windows: %APPDATA%/musesync/config.toml
      - Others:  ~/.config/musesync/config.toml
    """
    if os.name == "nt":
        appdata = os.environ.get("APPDATA") or os.path.expanduser("~\\AppData\\Roaming")
        return pathlib.Path(appdata) / "musesync" / "config.toml"
    return pathlib.Path.home() / ".config" / "musesync" / "config.toml"


def default_state_dir() -> str:
    return str(pathlib.Path.home() / ".musicsync")


@dc.dataclass(frozen=True)
class Settings:
    drive_size_gb: int = 256          # nominal capacity of each flash drive
    buffer_gb: int = 5                # headroom left free on every drive
    prefix: str = "MUSE"              # volume names: MUSE1, MUSE2, ...
    volumes_root: str = "/Volumes"    # where drives get mounted
    state_dir: str | None = None      # default: ~/.musicsync
    drive_state_dir: str = ".musicsync"
    max_age_seconds: int = 3600       # plan older than this is rebuilt
    copy_bin: str = "rsync"
    single_pass_margin_pct: int = 10  # single-pass mode only; independent of buffer_gb

    @property
    def buffer_bytes(self) -> int:
        return self.buffer_gb * GIB

    @property
    def nominal_usable_bytes(self) -> int:
        return (self.drive_size_gb - self.buffer_gb) * 1024 * MIB

    @property
    def state_path(self) -> pathlib.Path:
        return pathlib.Path(os.path.expanduser(self.state_dir or default_state_dir()))

    @property
    def plan_path(self) -> pathlib.Path:
        return self.state_path / PLAN_FILENAME

    @property
    def ledger_path(self) -> pathlib.Path:
        return self.state_path / LEDGER_FILENAME

    def expected_volume_path(self, ordinal: int) -> pathlib.Path:
        return pathlib.Path(self.volumes_root) / f"{self.prefix}{ordinal}"

    def with_overrides(self, **overrides: t.Any) -> "Settings":
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return dc.replace(self, **changes) if changes else self

    def validate(self) -> "Settings":
        if self.drive_size_gb <= 0:
            raise ConfigurationError(f"drive size must be positive, got {self.drive_size_gb} GB")
        if self.buffer_gb < 0 or self.buffer_gb >= self.drive_size_gb:
            raise ConfigurationError(
                f"buffer ({self.buffer_gb} GB) must be between 0 and the drive size ({self.drive_size_gb} GB)"
            )
        if not self.prefix:
            raise ConfigurationError("volume prefix must not be empty")
        if self.max_age_seconds < 0:
            raise ConfigurationError("max_age_seconds must not be negative")
        if self.single_pass_margin_pct < 0:
            raise ConfigurationError("single_pass_margin_pct must not be negative")
        return self


def resolve_config_path(path: PathLikeStr | None) -> pathlib.Path:
    """
    Resolve the path to the musesync configuration file using the standard
    precedence order (explicit path -> MUSESYNC_CONFIG env -> platform default).
    """
    if path:
        return pathlib.Path(path)
    env = os.environ.get("MUSESYNC_CONFIG")
    if env:
        return pathlib.Path(env)
    return platform_config_default()


def load_config(path: PathLikeStr | None = None) -> Settings:
    """
    Load configuration from TOML. An explicitly requested file must exist;
    a missing default file just means built-in defaults.
    """
    explicit = bool(path) or bool(os.environ.get("MUSESYNC_CONFIG"))
    candidate = resolve_config_path(path)
    if not candidate.exists():
        if explicit:
            raise ConfigurationError(f"Config file not found: {candidate}")
        return Settings()

    try:
        with candidate.open("rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in {candidate}: {e}") from e

    return _parse_config_dict(data).validate()


def _parse_config_dict(d: ConfigDict) -> Settings:
    drive = d.get("drive", {})
    state = d.get("state", {})
    copy = d.get("copy", {})
    defaults = Settings()
    try:
        return Settings(
            drive_size_gb=int(drive.get("size_gb", defaults.drive_size_gb)),
            buffer_gb=int(drive.get("buffer_gb", defaults.buffer_gb)),
            prefix=str(drive.get("prefix", defaults.prefix)),
            volumes_root=str(drive.get("volumes_root", defaults.volumes_root)),
            state_dir=state.get("dir"),
            drive_state_dir=str(state.get("drive_dir", defaults.drive_state_dir)),
            max_age_seconds=int(state.get("max_age_seconds", defaults.max_age_seconds)),
            copy_bin=str(copy.get("bin", defaults.copy_bin)),
            single_pass_margin_pct=int(copy.get("single_pass_margin_pct", defaults.single_pass_margin_pct)),
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid configuration value: {e}") from e


def settings_to_dict(settings: Settings) -> ConfigDict:
    """
    Serialize Settings back into the TOML layout read by load_config.
    """
    data: ConfigDict = {
        "drive": {
            "size_gb": settings.drive_size_gb,
            "buffer_gb": settings.buffer_gb,
            "prefix": settings.prefix,
            "volumes_root": settings.volumes_root,
        },
        "state": {
            "drive_dir": settings.drive_state_dir,
            "max_age_seconds": settings.max_age_seconds,
        },
        "copy": {
            "bin": settings.copy_bin,
            "single_pass_margin_pct": settings.single_pass_margin_pct,
        },
    }
    if settings.state_dir is not None:
        data["state"]["dir"] = settings.state_dir
    return data


# Settings fields that have a global command-line flag.
_FLAG_FOR_FIELD = (
    ("drive_size_gb", "--drive-size-gb"),
    ("buffer_gb", "--buffer-gb"),
    ("prefix", "--prefix"),
    ("max_age_seconds", "--max-age"),
    ("state_dir", "--state-dir"),
    ("volumes_root", "--volumes-root"),
    ("copy_bin", "--rsync"),
)


def settings_to_args(settings: Settings, config_path: PathLikeStr | None = None) -> list[str]:
    """
    Global command-line options that reproduce ``settings``: ``--config`` when
    one was used, plus a flag for every field that differs from the default.
    """
    args: list[str] = []
    if config_path:
        args += ["--config", str(config_path)]
    defaults = Settings()
    for field_name, flag in _FLAG_FOR_FIELD:
        value = getattr(settings, field_name)
        if value is not None and value != getattr(defaults, field_name):
            args += [flag, str(value)]
    return args


def save_config(settings: Settings, path: PathLikeStr, *, overwrite: bool = False) -> pathlib.Path:
    """
    Persist Settings to a TOML configuration file. Returns the resolved path.
    """
    target = pathlib.Path(path)
    if target.exists() and not overwrite:
        raise FileExistsError(f"Config file already exists: {target}")

    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(tomli_w.dumps(settings_to_dict(settings)), encoding="utf-8")
    return target
