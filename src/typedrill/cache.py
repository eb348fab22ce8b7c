"""Commit-aware challenge cache.

Only pointers are stored (file, line span, comment ranges, difficulty); the
text is re-read from the working tree on load. One gzip-compressed JSON file
per (repository, commit, dirty flag) lives under the cache directory as
`<sha256>.bin`. Anything unreadable there is treated as absent.
"""
from __future__ import annotations

import gzip
import hashlib
import json
import logging
import threading
import zlib
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Dict, Generic, List, Optional, Tuple, TypeVar

from . import text_processor
from .config import default_workers
from .errors import FileSystemFailure, SecurityViolation, SerializationFailure, TypedrillError
from .models import CacheEntry, Challenge, ChallengePointer
from .progress import NullProgressReporter, ProgressReporter, StepType
from .repository import GitRepository
from .storage import FileSystemStorage, Storage

logger = logging.getLogger(__name__)

CACHE_FORMAT_VERSION = 1
CACHE_SUFFIX = ".bin"

C_STYLE_MARKERS = ("//", "/*")
# Languages not listed use C-style comments.
COMMENT_MARKERS: Dict[str, Tuple[str, ...]] = {
    "python": ("#",),
    "ruby": ("#", "=begin"),
    "elixir": ("#",),
    "php": ("//", "/*", "#"),
    "haskell": ("--", "{-"),
    "erlang": ("%",),
    "zig": ("//",),
}
ANY_COMMENT_MARKER = tuple(sorted({m for ms in COMMENT_MARKERS.values() for m in ms}.union(C_STYLE_MARKERS)))

T = TypeVar("T")


class CompressedStore(Generic[T]):
    """gzip + JSON persistence for one value type.

    `encode` / `decode` convert between `T` and plain JSON data; the store
    never needs to know what `T` is.
    """

    def __init__(
        self,
        storage: Storage,
        encode: Callable[[T], Dict[str, Any]],
        decode: Callable[[Dict[str, Any]], T],
    ) -> None:
        self._storage = storage
        self._encode = encode
        self._decode = decode

    def dumps(self, value: T) -> bytes:
        try:
            payload = {"version": CACHE_FORMAT_VERSION, "data": self._encode(value)}
            raw = json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
            return gzip.compress(raw)
        except (TypeError, ValueError) as e:
            raise SerializationFailure(f"Failed to serialize cache data: {e}") from e

    def loads(self, blob: bytes) -> T:
        try:
            payload = json.loads(gzip.decompress(blob).decode("utf-8"))
            if not isinstance(payload, dict) or payload.get("version") != CACHE_FORMAT_VERSION:
                raise ValueError("unsupported cache format")
            return self._decode(payload["data"])
        except (OSError, EOFError, zlib.error, UnicodeDecodeError, ValueError, KeyError, TypeError, AttributeError) as e:
            raise SerializationFailure(f"Failed to deserialize cache data: {e}") from e

    def save(self, path: Path, value: T) -> None:
        self._storage.write_bytes(path, self.dumps(value))

    def load(self, path: Path) -> Optional[T]:
        """Return the stored value, or None when missing or unreadable."""
        if not self._storage.file_exists(path):
            return None
        try:
            return self.loads(self._storage.read_bytes(path))
        except TypedrillError as e:
            logger.warning("Ignoring unreadable cache file %s: %s", path, e)
            return None


def cache_file_name(repo: GitRepository) -> str:
    state = "dirty" if repo.is_dirty else "clean"
    key = f"{repo.cache_key()}:{repo.commit_hash or 'nohash'}:{state}"
    return hashlib.sha256(key.encode()).hexdigest() + CACHE_SUFFIX


def resolve_inside(root: Path, relative: str) -> Path:
    """Join `relative` onto `root` and insist the result stays under `root`.

    Raises:
        SecurityViolation: when the canonical path escapes `root`.
        FileSystemFailure: when either path cannot be resolved.
    """
    try:
        canonical_root = root.resolve(strict=True)
        candidate = (canonical_root / relative).resolve(strict=True)
    except (OSError, RuntimeError, ValueError) as e:
        raise FileSystemFailure(f"Cannot resolve {relative}: {e}", path=relative) from e
    if candidate != canonical_root and canonical_root not in candidate.parents:
        raise SecurityViolation(f"{relative} resolves outside {canonical_root}", path=relative)
    return candidate


def slice_lines(text: str, start_line: Optional[int], end_line: Optional[int]) -> Optional[str]:
    """1-based inclusive line slice; None when the bounds do not fit the text."""
    lines = text.split("\n")
    if text.endswith("\n"):
        lines.pop()
    lines = [line.rstrip("\r") for line in lines]
    if start_line is None or end_line is None:
        return "\n".join(lines)
    if start_line < 1 or start_line > end_line or end_line > len(lines):
        return None
    return "\n".join(lines[start_line - 1 : end_line])


def clip_columns(content: str, start_column: int = 0, end_column: Optional[int] = None) -> str:
    """Cut a whole-line slice down to the node it was taken from.

    The last line keeps its first `end_column` characters; the first line keeps
    its leading whitespace and everything from `start_column` on.
    """
    lines = content.split("\n")
    if end_column is not None:
        lines[-1] = lines[-1][:end_column]
    if start_column > 0:
        first = lines[0]
        lines[0] = text_processor.leading_whitespace(first[:start_column]) + first[start_column:]
    return "\n".join(lines)


def comment_markers(language: Optional[str]) -> Tuple[str, ...]:
    if language is None:
        return ANY_COMMENT_MARKER
    return COMMENT_MARKERS.get(language, C_STYLE_MARKERS)


class ChallengeCache:
    def __init__(
        self,
        storage: Storage | None = None,
        cache_dir: Path | str | None = None,
        *,
        workers: int | None = None,
        preserve_empty_lines: bool = True,
    ) -> None:
        self.storage: Storage = storage or FileSystemStorage()
        self.cache_dir = Path(cache_dir) if cache_dir is not None else self.storage.get_app_data_dir() / "cache"
        self.workers = workers or default_workers()
        self.preserve_empty_lines = preserve_empty_lines
        self._store: CompressedStore[CacheEntry] = CompressedStore(self.storage, CacheEntry.to_dict, CacheEntry.from_dict)

    def cache_path(self, repo: GitRepository) -> Path:
        return self.cache_dir / cache_file_name(repo)

    def save(self, repo: GitRepository, challenges: List[Challenge]) -> bool:
        """Persist pointers for a clean, committed tree. Returns False when skipped.

        Raises:
            SerializationFailure / FileSystemFailure: when the entry cannot be written.
        """
        if repo.is_dirty or not repo.commit_hash:
            logger.debug("Not caching %s: dirty or no commit", repo.cache_key())
            return False
        entry = CacheEntry(
            repo_key=repo.cache_key(),
            commit_hash=repo.commit_hash,
            challenge_pointers=tuple(c.to_pointer() for c in challenges),
        )
        self.storage.create_dir_all(self.cache_dir)
        self._store.save(self.cache_path(repo), entry)
        logger.info("Cached %d challenge pointers for %s@%s", len(challenges), entry.repo_key, entry.commit_hash[:12])
        return True

    def load(self, repo: GitRepository, progress: ProgressReporter | None = None) -> Optional[List[Challenge]]:
        if repo.is_dirty or repo.root_path is None:
            return None
        entry = self._store.load(self.cache_path(repo))
        if entry is None:
            return None
        if entry.commit_hash != repo.commit_hash:
            logger.debug("Cache miss for %s: commit %s != %s", entry.repo_key, entry.commit_hash, repo.commit_hash)
            return None

        challenges = self._reconstruct_all(entry.challenge_pointers, Path(repo.root_path), progress)
        if not challenges:
            return None
        logger.info("Loaded %d/%d cached challenges for %s", len(challenges), len(entry.challenge_pointers), entry.repo_key)
        return challenges

    def reconstruct(self, pointer: ChallengePointer, root: Path) -> Optional[Challenge]:
        """Rebuild one Challenge from disk; None when its source is gone, unsafe or out of range."""
        try:
            return self._reconstruct(pointer, root)
        except SecurityViolation as e:
            logger.warning("Dropping cached challenge %s: %s", pointer.id, e)
        except TypedrillError as e:
            logger.debug("Dropping cached challenge %s: %s", pointer.id, e)
        return None

    def invalidate(self, repo: GitRepository) -> bool:
        path = self.cache_path(repo)
        if not self.storage.file_exists(path):
            return False
        self.storage.delete_file(path)
        return True

    def clear(self) -> None:
        self.storage.remove_dir_all(self.cache_dir)

    def list_keys(self) -> List[str]:
        keys = set()
        for path in self._cache_files():
            entry = self._store.load(path)
            if entry is not None:
                keys.add(f"{entry.repo_key}:{entry.commit_hash}")
        return sorted(keys)

    def stats(self) -> Tuple[int, int]:
        """(number of cache files, total bytes)."""
        count = 0
        total = 0
        for path in self._cache_files():
            count += 1
            total += self.storage.get_file_size(path) or 0
        return count, total

    def _cache_files(self) -> List[Path]:
        return [p for p in self.storage.list_files_in_dir(self.cache_dir) if p.suffix == CACHE_SUFFIX]

    def _reconstruct(self, pointer: ChallengePointer, root: Path) -> Challenge:
        if not pointer.source_file_path:
            raise FileSystemFailure(f"Challenge {pointer.id} has no source path")
        path = resolve_inside(root, pointer.source_file_path)
        text = self.storage.read_bytes(path).decode("utf-8", errors="replace")
        content = slice_lines(text, pointer.start_line, pointer.end_line)
        if content is None:
            raise FileSystemFailure(
                f"Lines {pointer.start_line}-{pointer.end_line} out of range",
                path=pointer.source_file_path,
            )
        content = clip_columns(content, pointer.start_column, pointer.end_column)
        processed = text_processor.process(content, (), self.preserve_empty_lines).text
        markers = comment_markers(pointer.language)
        ranges = tuple(
            (s, e)
            for s, e in pointer.comment_ranges
            if 0 <= s < e <= len(processed) and processed.startswith(markers, s)
        )
        return replace(pointer, comment_ranges=ranges).to_challenge(processed)

    def _reconstruct_all(
        self,
        pointers: Tuple[ChallengePointer, ...],
        root: Path,
        progress: ProgressReporter | None,
    ) -> List[Challenge]:
        progress = progress or NullProgressReporter()
        total = len(pointers)
        lock = threading.Lock()
        done = 0

        def _one(pointer: ChallengePointer) -> Optional[Challenge]:
            nonlocal done
            result = self.reconstruct(pointer, root)
            with lock:
                done += 1
                progress.set_file_counts(StepType.CACHE_LOADING, done, total, f"Reconstructing challenge {done}/{total}")
            return result

        progress.set_step(StepType.CACHE_LOADING)
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            results = list(pool.map(_one, pointers))
        return [c for c in results if c is not None]


__all__ = [
    "ChallengeCache",
    "CompressedStore",
    "cache_file_name",
    "resolve_inside",
    "slice_lines",
    "clip_columns",
    "comment_markers",
    "CACHE_FORMAT_VERSION",
]
