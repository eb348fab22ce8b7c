"""End-to-end: repository in, challenges out, cache in between."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Sequence

from .cache import ChallengeCache
from .challenges import ChallengeConverter
from .config import Settings
from .errors import TypedrillError
from .grammars import GrammarRegistry
from .models import Challenge, DifficultyLevel
from .progress import NullProgressReporter, ProgressReporter
from .repository import GitRepository
from .sources import ExtractionOptions, SourceCodeParser, collect_source_files

logger = logging.getLogger(__name__)


def extract_challenges(
    root: Path | str,
    registry: GrammarRegistry,
    *,
    options: ExtractionOptions | None = None,
    difficulties: Sequence[DifficultyLevel] = tuple(DifficultyLevel),
    workers: int | None = None,
    progress: ProgressReporter | None = None,
) -> List[Challenge]:
    """Collect, parse, split and convert everything under `root`."""
    options = options or ExtractionOptions()
    progress = progress or NullProgressReporter()
    files = collect_source_files(root, registry, options, progress)
    parser = SourceCodeParser(registry, workers=workers, max_file_size_bytes=options.max_file_size_bytes)
    chunks = parser.extract_chunks(files, root=root, progress=progress)
    return ChallengeConverter().convert_all(chunks, difficulties, progress)


def load_or_extract(
    repo: GitRepository,
    registry: GrammarRegistry | None = None,
    *,
    cache: ChallengeCache | None = None,
    settings: Settings | None = None,
    options: ExtractionOptions | None = None,
    difficulties: Sequence[DifficultyLevel] = tuple(DifficultyLevel),
    progress: ProgressReporter | None = None,
) -> List[Challenge]:
    """Serve challenges from the cache when the commit matches, else extract and cache them.

    Raises:
        RuntimeError: when the repository has no root path or cannot be enumerated.
    """
    if repo.root_path is None:
        raise RuntimeError(f"Repository {repo.display_name()} has no local root path")
    settings = settings or Settings.from_env()
    cache = cache or ChallengeCache(cache_dir=settings.cache_dir, workers=settings.workers)

    cached: Optional[List[Challenge]] = cache.load(repo, progress)
    if cached is not None:
        return cached

    registry = registry or GrammarRegistry.from_config()
    options = options or ExtractionOptions(max_file_size_bytes=settings.max_file_size_bytes)
    challenges = extract_challenges(
        repo.root_path,
        registry,
        options=options,
        difficulties=difficulties,
        workers=settings.workers,
        progress=progress,
    )
    try:
        cache.save(repo, challenges)
    except TypedrillError as e:
        logger.warning("Cache save failed for %s: %s", repo.cache_key(), e)
    return challenges


__all__ = ["extract_challenges", "load_or_extract"]
