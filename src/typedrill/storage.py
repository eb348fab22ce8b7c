"""Filesystem capability used by the challenge cache."""
from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional, Protocol

from .config import Settings
from .errors import FileSystemFailure


class Storage(Protocol):
    def read_to_string(self, path: Path) -> str: ...
    def read_bytes(self, path: Path) -> bytes: ...
    def write_bytes(self, path: Path, data: bytes) -> None: ...
    def create_dir_all(self, path: Path) -> None: ...
    def remove_dir_all(self, path: Path) -> None: ...
    def file_exists(self, path: Path) -> bool: ...
    def delete_file(self, path: Path) -> None: ...
    def list_files_in_dir(self, path: Path) -> List[Path]: ...
    def get_file_size(self, path: Path) -> Optional[int]: ...
    def get_app_data_dir(self) -> Path: ...


class FileSystemStorage:
    """`Storage` backed by the local disk.

    Writes go through a temporary sibling file and an atomic rename, so a crash
    leaves either the old file or the new one.
    """

    def __init__(self, app_data_dir: Path | str | None = None) -> None:
        self._app_data_dir = Path(app_data_dir) if app_data_dir is not None else None

    def read_to_string(self, path: Path) -> str:
        try:
            return Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise FileSystemFailure(f"Cannot read {path}: {e}", path=str(path)) from e

    def read_bytes(self, path: Path) -> bytes:
        try:
            return Path(path).read_bytes()
        except OSError as e:
            raise FileSystemFailure(f"Cannot read {path}: {e}", path=str(path)) from e

    def write_bytes(self, path: Path, data: bytes) -> None:
        path = Path(path)
        self.create_dir_all(path.parent)
        fd, tmp = tempfile.mkstemp(prefix=path.name, suffix=".tmp", dir=str(path.parent))
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            os.replace(tmp, path)
        except OSError as e:
            Path(tmp).unlink(missing_ok=True)
            raise FileSystemFailure(f"Cannot write {path}: {e}", path=str(path)) from e

    def create_dir_all(self, path: Path) -> None:
        try:
            Path(path).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileSystemFailure(f"Cannot create directory {path}: {e}", path=str(path)) from e

    def remove_dir_all(self, path: Path) -> None:
        path = Path(path)
        if not path.exists():
            return
        try:
            shutil.rmtree(path)
        except OSError as e:
            raise FileSystemFailure(f"Cannot remove {path}: {e}", path=str(path)) from e

    def file_exists(self, path: Path) -> bool:
        return Path(path).is_file()

    def delete_file(self, path: Path) -> None:
        try:
            Path(path).unlink(missing_ok=True)
        except OSError as e:
            raise FileSystemFailure(f"Cannot delete {path}: {e}", path=str(path)) from e

    def list_files_in_dir(self, path: Path) -> List[Path]:
        path = Path(path)
        if not path.is_dir():
            return []
        try:
            return sorted(p for p in path.iterdir() if p.is_file())
        except OSError as e:
            raise FileSystemFailure(f"Cannot list {path}: {e}", path=str(path)) from e

    def get_file_size(self, path: Path) -> Optional[int]:
        try:
            return Path(path).stat().st_size
        except OSError:
            return None

    def get_app_data_dir(self) -> Path:
        if self._app_data_dir is None:
            self._app_data_dir = Settings.from_env().home_dir
        return self._app_data_dir


__all__ = ["Storage", "FileSystemStorage"]
