"""Whitespace normalization that keeps comment locations exact.

`process` right-trims every line and (optionally) drops blank lines while
recording where each original character ended up. Comment ranges are then
translated through that record, so callers never have to reason about how
many characters disappeared in front of a comment.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .models import Range

PositionMap = List[Optional[int]]


@dataclass(frozen=True)
class ProcessedText:
    text: str
    comment_ranges: Tuple[Range, ...]
    mapping: Tuple[Optional[int], ...]


def build_position_map(text: str, preserve_empty_lines: bool) -> Tuple[str, PositionMap]:
    """Return (processed_text, mapping) where mapping[i] is where text[i] went, or None."""
    mapping: PositionMap = [None] * len(text)
    kept: List[str] = []
    original_pos = 0
    processed_pos = 0
    # Original index of the newline closing the last kept line.
    pending_newline: Optional[int] = None
    lines = text.split("\n")
    last = len(lines) - 1

    for index, line in enumerate(lines):
        has_newline = index < last
        trimmed = line.rstrip()
        if not trimmed and not preserve_empty_lines:
            original_pos += len(line) + (1 if has_newline else 0)
            continue

        if kept and pending_newline is not None:
            mapping[pending_newline] = processed_pos
            processed_pos += 1
        for offset in range(len(trimmed)):
            mapping[original_pos + offset] = processed_pos + offset
        processed_pos += len(trimmed)
        kept.append(trimmed)
        original_pos += len(line)
        pending_newline = original_pos if has_newline else None
        if has_newline:
            original_pos += 1

    return "\n".join(kept), mapping


def remap_ranges(mapping: Sequence[Optional[int]], comment_ranges: Sequence[Range]) -> List[Range]:
    """Translate original-space ranges into processed space.

    The start must survive processing; the end becomes one past the last kept
    character before the original end. Ranges that collapse are dropped.
    """
    out: List[Range] = []
    size = len(mapping)
    for s, e in comment_ranges:
        if s < 0 or s >= size or e <= s:
            continue
        mapped_start = mapping[s]
        if mapped_start is None:
            continue
        mapped_end: Optional[int] = None
        for i in range(min(e, size) - 1, s - 1, -1):
            if mapping[i] is not None:
                mapped_end = mapping[i] + 1
                break
        if mapped_end is not None and mapped_start < mapped_end:
            out.append((mapped_start, mapped_end))
    return out


def process(text: str, comment_ranges: Sequence[Range] = (), preserve_empty_lines: bool = True) -> ProcessedText:
    processed, mapping = build_position_map(text, preserve_empty_lines)
    return ProcessedText(
        text=processed,
        comment_ranges=tuple(remap_ranges(mapping, comment_ranges)),
        mapping=tuple(mapping),
    )


def leading_whitespace(line: str) -> str:
    """Whitespace that opens `line`, up to the first non-blank character."""
    stripped = line.lstrip()
    return line[: len(line) - len(stripped)]


def process_challenge_text(text: str) -> str:
    """Right-trim lines and drop blank ones."""
    return "\n".join(line.rstrip() for line in text.split("\n") if line.strip())


__all__ = [
    "ProcessedText",
    "build_position_map",
    "remap_ranges",
    "process",
    "process_challenge_text",
    "leading_whitespace",
]
