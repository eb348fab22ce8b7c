"""Source discovery and parallel parsing.

Walks a repository, keeps files whose extension has a grammar and which pass
the include / exclude globs, then extracts chunks from them on a thread pool.
Each worker thread owns its parsers; nothing mutable is shared but the
result list, which is filled from the submitting thread.
"""
from __future__ import annotations

import fnmatch
import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional, Sequence, Tuple

from tree_sitter import Parser

from .config import DEFAULT_MAX_FILE_SIZE, default_workers
from .extractor import ChunkExtractor
from .grammars import GrammarRegistry
from .models import CodeChunk
from .progress import NullProgressReporter, ProgressReporter, StepType
from .text_detection import BinaryDetector

logger = logging.getLogger(__name__)

IGNORE_FILE_NAME = ".typedrillignore"
SCAN_REPORT_EVERY = 100
PARSE_REPORT_EVERY = 10

DEFAULT_EXCLUDE_PATTERNS: Tuple[str, ...] = (
    "**/target/**",
    "**/build/**",
    "**/dist/**",
    "**/bin/**",
    "**/obj/**",
    "**/node_modules/**",
    "**/vendor/**",
    "**/packages/**",
    "**/__pycache__/**",
    "**/*.pyc",
    "**/venv/**",
    "**/.venv/**",
    "**/env/**",
    "**/.next/**",
    "**/*.class",
    "**/.build/**",
    "**/DerivedData/**",
    "**/*.o",
    "**/*.so",
    "**/*.a",
    "**/.dart_tool/**",
    "**/.stack-work/**",
    "**/dist-newstyle/**",
    "**/.git/**",
    "**/tmp/**",
    "**/temp/**",
    "**/*.tmp",
    "**/cache/**",
    "**/.cache/**",
    "**/logs/**",
    "**/*.log",
    "**/*.min.js",
)


@dataclass(frozen=True)
class ExtractionOptions:
    include_patterns: Tuple[str, ...] = ("**/*",)
    exclude_patterns: Tuple[str, ...] = DEFAULT_EXCLUDE_PATTERNS
    languages: Optional[Tuple[str, ...]] = None
    max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE
    skip_binary: bool = True

    def wants_language(self, language: str) -> bool:
        if not self.languages:
            return True
        return language.lower() in {l.strip().lower() for l in self.languages}


def _glob_match(patterns: Sequence[str], rel: str) -> bool:
    """Match repository-relative `rel` against `**`-style globs.

    `fnmatch`'s `*` already crosses `/`; the leading slash lets `**/x` match
    entries sitting directly at the repository root.
    """
    rooted = "/" + rel
    return any(fnmatch.fnmatchcase(rel, p) or fnmatch.fnmatchcase(rooted, p) for p in patterns)


@dataclass
class IgnoreRules:
    """Gitignore-flavoured rules: `#` comments, trailing `/` for directories, `!` to re-include."""

    rules: List[Tuple[str, bool]] = field(default_factory=list)

    @classmethod
    def load(cls, root: Path) -> "IgnoreRules":
        path = root / IGNORE_FILE_NAME
        if not path.is_file():
            return cls()
        try:
            content = path.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Failed to read %s: %s. Continuing without custom excludes.", path, e)
            return cls()
        rules: List[Tuple[str, bool]] = []
        for raw in content.splitlines():
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            negate = line.startswith("!")
            if negate:
                line = line[1:]
            rules.append((line.rstrip("/"), negate))
        return cls(rules)

    def ignores(self, rel: PurePosixPath) -> bool:
        candidates = [rel] + [p for p in rel.parents if str(p) != "."]
        ignored = False
        for pattern, negate in self.rules:
            if self._matches(pattern, candidates):
                ignored = not negate
        return ignored

    @staticmethod
    def _matches(pattern: str, candidates: List[PurePosixPath]) -> bool:
        if "/" not in pattern:
            return any(fnmatch.fnmatchcase(c.name, pattern) for c in candidates)
        anchored = pattern.lstrip("/")
        return any(fnmatch.fnmatchcase(c.as_posix(), anchored) for c in candidates)


def collect_source_files(
    root: Path | str,
    registry: GrammarRegistry,
    options: ExtractionOptions | None = None,
    progress: ProgressReporter | None = None,
) -> List[Path]:
    """Enumerate supported source files below `root`.

    Raises:
        RuntimeError: when `root` is not a readable directory.
    """
    root = Path(root)
    options = options or ExtractionOptions()
    progress = progress or NullProgressReporter()
    if not root.is_dir():
        raise RuntimeError(f"Repository root is not a directory: {root}")

    ignore = IgnoreRules.load(root)
    detector = BinaryDetector() if options.skip_binary else None
    progress.set_step(StepType.SCANNING)

    def _walk_error(err: OSError) -> None:
        if Path(err.filename or "") == root:
            raise RuntimeError(f"Cannot enumerate {root}: {err}") from err
        logger.warning("Skipping unreadable directory %s: %s", err.filename, err)

    files: List[Path] = []
    seen = 0
    for dirpath, dirnames, filenames in os.walk(root, onerror=_walk_error):
        rel_dir = PurePosixPath(Path(dirpath).relative_to(root).as_posix())
        kept_dirs = []
        for d in sorted(dirnames):
            rel = (rel_dir / d) if str(rel_dir) != "." else PurePosixPath(d)
            if _glob_match(options.exclude_patterns, rel.as_posix() + "/") or ignore.ignores(rel):
                continue
            kept_dirs.append(d)
        dirnames[:] = kept_dirs

        for name in sorted(filenames):
            seen += 1
            if seen % SCAN_REPORT_EVERY == 0:
                progress.set_file_counts(StepType.SCANNING, seen, seen, None)
            rel = (rel_dir / name) if str(rel_dir) != "." else PurePosixPath(name)
            language = registry.language_for_path(name)
            if language is None or not options.wants_language(language):
                continue
            rel_s = rel.as_posix()
            if _glob_match(options.exclude_patterns, rel_s) or not _glob_match(options.include_patterns, rel_s):
                continue
            if ignore.ignores(rel):
                continue
            path = Path(dirpath) / name
            if detector is not None and detector.should_skip(path):
                logger.debug("Skipping binary or minified file %s", rel_s)
                continue
            files.append(path)

    progress.set_file_counts(StepType.SCANNING, seen, seen, None)
    logger.info("Collected %d source files under %s", len(files), root)
    return files


class SourceCodeParser:
    """Extracts chunks from many files concurrently."""

    def __init__(
        self,
        registry: GrammarRegistry,
        extractor: ChunkExtractor | None = None,
        *,
        workers: int | None = None,
        max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE,
    ) -> None:
        self.registry = registry
        self.extractor = extractor or ChunkExtractor(registry)
        self.workers = workers or default_workers()
        self.max_file_size_bytes = max_file_size_bytes
        self._local = threading.local()

    def _parser_for(self, language: str) -> Parser:
        parsers: Dict[str, Parser] | None = getattr(self._local, "parsers", None)
        if parsers is None:
            parsers = {}
            self._local.parsers = parsers
        if language not in parsers:
            parsers[language] = self.registry.new_parser(language)
        return parsers[language]

    def _extract_one(self, path: Path, root: Path | None) -> List[CodeChunk]:
        language = self.registry.language_for_path(path)
        if language is None:
            return []
        return self.extractor.extract_file(path, language, parser=self._parser_for(language), root=root)

    def extract_chunks(
        self,
        files: Sequence[Path],
        root: Path | str | None = None,
        progress: ProgressReporter | None = None,
    ) -> List[CodeChunk]:
        """Parse `files` in parallel; failing files are logged and skipped."""
        progress = progress or NullProgressReporter()
        root_path = Path(root) if root is not None else None

        sized: List[Tuple[Path, int]] = []
        for p in files:
            try:
                size = Path(p).stat().st_size
            except OSError as e:
                logger.error("Failed processing %s: %s", p, e)
                continue
            if size > self.max_file_size_bytes:
                logger.debug("Skipping %s (%d bytes > %d)", p, size, self.max_file_size_bytes)
                continue
            sized.append((Path(p), size))
        # Largest first so the slowest files do not end up last in the queue.
        sized.sort(key=lambda item: item[1], reverse=True)

        total = len(sized)
        progress.set_step(StepType.EXTRACTING)
        chunks: List[CodeChunk] = []
        done = 0
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            futures = {pool.submit(self._extract_one, p, root_path): p for p, _ in sized}
            for fut in as_completed(futures):
                p = futures[fut]
                try:
                    chunks.extend(fut.result())
                except Exception as e:
                    logger.error("Failed processing %s: %s", p, e)
                done += 1
                if done % PARSE_REPORT_EVERY == 0 or done == total or done * 100 >= total * 99:
                    progress.set_file_counts(StepType.EXTRACTING, done, total, p.name)

        chunks.sort(key=lambda c: (c.file_path, c.start_line, c.end_line, c.chunk_type.sort_priority))
        logger.info("Extracted %d chunks from %d files", len(chunks), total)
        return chunks


__all__ = [
    "ExtractionOptions",
    "DEFAULT_EXCLUDE_PATTERNS",
    "IgnoreRules",
    "collect_source_files",
    "SourceCodeParser",
]
