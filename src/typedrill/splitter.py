"""Difficulty-aware chunk splitting."""
from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from .models import CodeChunk, Range, SizeBudget

BOUNDARY_ENDINGS = ("}", "]", ")", ";")

SplitResult = Tuple[str, List[Range], int]


def _is_boundary_line(line: str) -> bool:
    stripped = line.strip()
    return not stripped or stripped.endswith(BOUNDARY_ENDINGS)


def find_cut(content: str, max_chars: int) -> Optional[int]:
    """Offset just past the last natural boundary line ending at or before `max_chars`.

    A boundary line is blank or ends with a closing bracket or `;`. The
    returned offset excludes the line's newline. None when no boundary fits.
    """
    best: Optional[int] = None
    offset = 0
    for line in content.splitlines(keepends=True):
        body = line.rstrip("\r\n")
        end = offset + len(body)
        if end > max_chars:
            break
        if _is_boundary_line(body) and content[:end].strip():
            best = end
        offset += len(line)
    return best


def clip_ranges(ranges: Sequence[Range], cut: int) -> List[Range]:
    out: List[Range] = []
    for s, e in ranges:
        e = min(e, cut)
        if s < e:
            out.append((s, e))
    return out


def split_content(
    content: str,
    comment_ranges: Sequence[Range],
    start_line: int,
    end_line: int,
    budget: SizeBudget,
) -> Optional[SplitResult]:
    """Fit `content` into `budget`.

    Returns (content, ranges, end_line), or None when the text is below the
    budget's minimum before or after truncation, or has nowhere to cut.
    """
    size = len(content)
    if size < budget.min_chars:
        return None
    if budget.max_chars is None or size <= budget.max_chars:
        return content, list(comment_ranges), end_line

    cut = find_cut(content, budget.max_chars)
    if cut is None:
        return None
    truncated = content[:cut].rstrip()
    if len(truncated) < budget.min_chars:
        return None
    new_end = start_line + truncated.count("\n")
    return truncated, clip_ranges(comment_ranges, len(truncated)), new_end


class ChunkSplitter:
    def split(self, chunk: CodeChunk, budget: SizeBudget) -> Optional[SplitResult]:
        return split_content(chunk.content, chunk.comment_ranges, chunk.start_line, chunk.end_line, budget)


__all__ = ["ChunkSplitter", "split_content", "find_cut", "clip_ranges", "BOUNDARY_ENDINGS"]
