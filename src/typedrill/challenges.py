"""Chunk to Challenge conversion."""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

from . import text_processor
from .models import Challenge, ChunkType, CodeChunk, DifficultyLevel, SizeBudget
from .progress import NullProgressReporter, ProgressReporter, StepType
from .splitter import ChunkSplitter

logger = logging.getLogger(__name__)

REPORT_EVERY = 50


def applies_to(chunk: CodeChunk, level: DifficultyLevel) -> bool:
    """Whole-file chunks feed ZEN, and ZEN takes nothing else."""
    is_file = chunk.chunk_type is ChunkType.FILE
    return is_file == (level is DifficultyLevel.ZEN)


class ChallengeConverter:
    def __init__(self, splitter: ChunkSplitter | None = None, *, preserve_empty_lines: bool = True) -> None:
        self.splitter = splitter or ChunkSplitter()
        self.preserve_empty_lines = preserve_empty_lines

    def convert(self, chunk: CodeChunk, difficulty: Optional[DifficultyLevel] = None) -> Challenge:
        return self._build(chunk, chunk.content, chunk.comment_ranges, chunk.end_line, difficulty)

    def convert_with_difficulty(self, chunk: CodeChunk, difficulty: SizeBudget) -> Optional[Challenge]:
        """Split `chunk` to fit `difficulty`; None when it cannot fit."""
        result = self.splitter.split(chunk, difficulty)
        if result is None:
            return None
        content, ranges, end_line = result
        level = difficulty if isinstance(difficulty, DifficultyLevel) else None
        return self._build(chunk, content, ranges, end_line, level)

    def convert_all(
        self,
        chunks: Iterable[CodeChunk],
        difficulties: Sequence[DifficultyLevel] = tuple(DifficultyLevel),
        progress: ProgressReporter | None = None,
    ) -> List[Challenge]:
        progress = progress or NullProgressReporter()
        valid = [c for c in chunks if c.is_valid()]
        valid.sort(key=lambda c: len(c.content), reverse=True)

        progress.set_step(StepType.GENERATING)
        total = len(valid)
        out: List[Challenge] = []
        for i, chunk in enumerate(valid, start=1):
            for level in difficulties:
                if not applies_to(chunk, level):
                    continue
                challenge = self.convert_with_difficulty(chunk, level)
                if challenge is not None:
                    out.append(challenge)
            if i % REPORT_EVERY == 0 or i == total:
                progress.set_file_counts(StepType.GENERATING, i, total, None)

        logger.info("Generated %d challenges from %d chunks", len(out), total)
        return out

    def _build(
        self,
        chunk: CodeChunk,
        content: str,
        ranges: Sequence[tuple[int, int]],
        end_line: int,
        level: Optional[DifficultyLevel],
    ) -> Challenge:
        processed = text_processor.process(content, ranges, self.preserve_empty_lines)
        return Challenge(
            id=Challenge.make_id(chunk.file_path, chunk.start_line, end_line, level, processed.text),
            code_content=processed.text,
            source_file_path=chunk.file_path,
            start_line=chunk.start_line,
            end_line=end_line,
            language=chunk.language,
            comment_ranges=processed.comment_ranges,
            difficulty_level=level,
            start_column=chunk.start_column,
            # A shortened chunk always ends on a whole line.
            end_column=chunk.end_column if end_line == chunk.end_line else None,
        )


__all__ = ["ChallengeConverter", "applies_to"]
