"""Settings for notebook runs.

Values come from, in increasing priority: the defaults below, an optional
``pynbbuild.yml`` in the working directory, environment variables, and
whatever the caller passes explicitly.
"""

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import List, Optional

import yaml

CONFIG_FILENAME = "pynbbuild.yml"
CACHE_DIR_ENV = "PYNBBUILD_CACHE_DIR"
TOOLCHAIN_ENV = "PYNBBUILD_TOOLCHAIN"


def default_cache_dir() -> Path:
    """Return the per-user cache root."""
    override = os.environ.get(CACHE_DIR_ENV)
    if override:
        return Path(override).expanduser()
    if os.name == "nt" and os.environ.get("LOCALAPPDATA"):
        return Path(os.environ["LOCALAPPDATA"]) / "pynbbuild"
    base = os.environ.get("XDG_CACHE_HOME")
    if base:
        return Path(base).expanduser() / "pynbbuild"
    return Path.home() / ".cache" / "pynbbuild"


@dataclass
class Settings:
    toolchain: str = "fpm"
    cache_dir: Optional[Path] = None
    build_timeout: float = 30.0
    run_timeout: float = 30.0
    # override the generator's own commands, e.g. ["fpm", "build", "--profile", "release"]
    build_command: Optional[List[str]] = None
    run_command: Optional[List[str]] = None
    keep_outputs: bool = False
    lock_stale_after: Optional[float] = 600.0

    def __post_init__(self):
        # a lock may only expire once the build it guards is surely over
        if self.lock_stale_after and self.lock_stale_after <= self.build_timeout:
            raise ValueError(
                f"lock_stale_after ({self.lock_stale_after:g}s) must exceed "
                f"build_timeout ({self.build_timeout:g}s)"
            )

    def resolve_cache_dir(self, override=None) -> Path:
        if override:
            return Path(override).expanduser()
        if self.cache_dir:
            return Path(self.cache_dir).expanduser()
        return default_cache_dir()

    def with_overrides(self, **kwargs):
        """Copy with every non-``None`` keyword applied."""
        return replace(
            self, **{k: v for k, v in kwargs.items() if v is not None}
        )


def _coerce(name, value):
    if value is None:
        return None
    if name == "cache_dir":
        return Path(os.path.expanduser(str(value)))
    if name in ("build_command", "run_command"):
        if isinstance(value, str):
            raise ValueError(
                f"{name} must be a list of arguments, not the string {value!r}"
            )
        return [str(v) for v in value]
    if name in ("build_timeout", "run_timeout", "lock_stale_after"):
        return float(value)
    if name == "keep_outputs":
        return bool(value)
    return str(value)


def load_settings(path=None) -> Settings:
    """Read settings from ``path`` (or ``pynbbuild.yml`` if present)."""
    if path is None:
        candidate = Path(CONFIG_FILENAME)
        path = candidate if candidate.exists() else None
    settings = Settings()
    if path is not None:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file {path} not found")
        cfg = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if not isinstance(cfg, dict):
            raise ValueError(f"{path} must contain a mapping")
        known = {f.name for f in fields(Settings)}
        unknown = sorted(set(cfg) - known)
        if unknown:
            raise ValueError(
                f"unknown setting(s) in {path}: {', '.join(unknown)}"
            )
        settings = replace(
            settings, **{k: _coerce(k, v) for k, v in cfg.items()}
        )
    if os.environ.get(TOOLCHAIN_ENV):
        settings = replace(settings, toolchain=os.environ[TOOLCHAIN_ENV])
    return settings
