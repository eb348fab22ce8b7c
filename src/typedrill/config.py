"""Environment-driven settings."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_MAX_FILE_SIZE = 1024 * 1024
LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def _env_value(name: str) -> str:
    return (os.environ.get(name) or "").strip()


def _env_int(name: str, default: int) -> int:
    raw = _env_value(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from e
    if value <= 0:
        raise RuntimeError(f"{name} must be positive, got {value}")
    return value


def default_workers() -> int:
    return min(32, (os.cpu_count() or 1) + 4)


@dataclass(frozen=True)
class Settings:
    home_dir: Path
    cache_dir: Path
    workers: int
    max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Resolve settings from TYPEDRILL_* environment variables.

        Raises:
            RuntimeError: when a numeric variable is malformed or not positive.
        """
        home = _env_value("TYPEDRILL_HOME")
        home_dir = Path(home).expanduser() if home else Path.home() / ".typedrill"
        cache = _env_value("TYPEDRILL_CACHE_DIR")
        cache_dir = Path(cache).expanduser() if cache else home_dir / "cache"
        return cls(
            home_dir=home_dir,
            cache_dir=cache_dir,
            workers=_env_int("TYPEDRILL_WORKERS", default_workers()),
            max_file_size_bytes=_env_int("TYPEDRILL_MAX_FILE_SIZE", DEFAULT_MAX_FILE_SIZE),
            log_level=(_env_value("TYPEDRILL_LOG_LEVEL") or "INFO").upper(),
        )


def configure_logging(level: str | int = logging.INFO) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)


__all__ = ["Settings", "configure_logging", "default_workers", "DEFAULT_MAX_FILE_SIZE"]
