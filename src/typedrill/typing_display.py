"""Which characters of a challenge the player actually types.

All decisions are pure functions of (text, comment ranges). Skip rules, first
match wins:

1. inside a comment range
2. whitespace that only leads up to a comment on the same line
3. the newline that ends the text
4. any other newline is typable
5. everything else is typable
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .models import Range
from . import text_processor

TAB_DISPLAY = "→   "
NEWLINE_MARKER = "↵"


@dataclass(frozen=True)
class DisplayOptions:
    preserve_empty_lines: bool = True
    add_newline_symbols: bool = True
    highlight_special_chars: bool = True


def is_in_comment(pos: int, comment_ranges: Sequence[Range]) -> bool:
    return any(s <= pos < e for s, e in comment_ranges)


def _starts_comment(pos: int, comment_ranges: Sequence[Range]) -> bool:
    return any(s == pos for s, _ in comment_ranges)


def is_whitespace_before_comment(text: str, pos: int, comment_ranges: Sequence[Range]) -> bool:
    if pos >= len(text) or text[pos] == "\n" or not text[pos].isspace():
        return False
    i = pos
    while i < len(text) and text[i] != "\n":
        if not text[i].isspace():
            return _starts_comment(i, comment_ranges)
        i += 1
    return False


def should_skip_character(text: str, pos: int, comment_ranges: Sequence[Range]) -> bool:
    if pos < 0 or pos >= len(text):
        return False
    if is_in_comment(pos, comment_ranges):
        return True
    if is_whitespace_before_comment(text, pos, comment_ranges):
        return True
    if text[pos] == "\n":
        return pos == len(text) - 1
    return False


def is_at_end_of_line_content(text: str, pos: int, comment_ranges: Sequence[Range]) -> bool:
    """True when nothing typable remains between `pos` and the end of its line.

    A position past the end of `text` is on no line, so the answer is False.
    """
    if pos < 0 or pos >= len(text):
        return False
    if text[pos] == "\n":
        return True
    i = pos
    while i < len(text) and text[i] != "\n":
        if not should_skip_character(text, i, comment_ranges):
            return False
        i += 1
    return True


def is_rest_of_line_comment_only(text: str, pos: int, comment_ranges: Sequence[Range]) -> bool:
    if pos < 0 or pos >= len(text):
        return False
    i = pos
    while i < len(text) and text[i] != "\n":
        if not text[i].isspace() and not is_in_comment(i, comment_ranges):
            return False
        i += 1
    return True


class TypingDisplay:
    """Skip decisions and the rendered text for one challenge.

    Decisions are computed once up front; every query afterwards is a lookup.
    """

    def __init__(self, text: str, comment_ranges: Sequence[Range] = (), options: DisplayOptions | None = None) -> None:
        self.text = text
        self.comment_ranges: Tuple[Range, ...] = tuple(sorted(comment_ranges))
        self.options = options or DisplayOptions()
        self._skip = [should_skip_character(text, i, self.comment_ranges) for i in range(len(text))]
        self._display: Optional[Tuple[str, List[int]]] = None

    @classmethod
    def from_source(cls, raw_text: str, raw_ranges: Sequence[Range] = (), options: DisplayOptions | None = None) -> "TypingDisplay":
        """Normalize `raw_text` first, carrying `raw_ranges` along."""
        options = options or DisplayOptions()
        processed = text_processor.process(raw_text, raw_ranges, options.preserve_empty_lines)
        return cls(processed.text, processed.comment_ranges, options)

    def should_skip_character(self, pos: int) -> bool:
        if pos < 0 or pos >= len(self._skip):
            return False
        return self._skip[pos]

    def is_at_end_of_line_content(self, pos: int) -> bool:
        if pos < 0 or pos >= len(self.text):
            return False
        if self.text[pos] == "\n":
            return True
        end = self.text.find("\n", pos)
        end = len(self.text) if end == -1 else end
        return all(self._skip[pos:end])

    def is_rest_of_line_comment_only(self, pos: int) -> bool:
        return is_rest_of_line_comment_only(self.text, pos, self.comment_ranges)

    def next_typable(self, pos: int) -> Optional[int]:
        for i in range(max(pos, 0), len(self._skip)):
            if not self._skip[i]:
                return i
        return None

    def typable_positions(self) -> List[int]:
        return [i for i, skip in enumerate(self._skip) if not skip]

    def display_text(self) -> str:
        return self._build_display()[0]

    def display_position(self, pos: int) -> Optional[int]:
        """First display index rendering original position `pos`."""
        _, mapping = self._build_display()
        for display_pos, original in enumerate(mapping):
            if original == pos:
                return display_pos
        return None

    def display_comment_ranges(self) -> List[Range]:
        display, mapping = self._build_display()
        out: List[Range] = []
        for start, end in self.comment_ranges:
            hits = [d for d, original in enumerate(mapping) if start <= original < end]
            if hits and hits[-1] + 1 <= len(display):
                out.append((hits[0], hits[-1] + 1))
        return out

    def _build_display(self) -> Tuple[str, List[int]]:
        if self._display is not None:
            return self._display
        parts: List[str] = []
        mapping: List[int] = []
        lines = self.text.split("\n")
        offset = 0
        for index, line in enumerate(lines):
            continues = index < len(lines) - 1
            last_typable = self._last_typable_in_line(offset, line)
            for col, ch in enumerate(line):
                pos = offset + col
                if self.options.highlight_special_chars and ch == "\t":
                    parts.append(TAB_DISPLAY)
                    mapping.extend([pos] * len(TAB_DISPLAY))
                else:
                    parts.append(ch)
                    mapping.append(pos)
                if self.options.add_newline_symbols and continues and col == last_typable:
                    parts.append(NEWLINE_MARKER)
                    mapping.append(offset + len(line))
            if continues:
                parts.append("\n")
                mapping.append(offset + len(line))
            offset += len(line) + 1
        self._display = ("".join(parts), mapping)
        return self._display

    def _last_typable_in_line(self, offset: int, line: str) -> Optional[int]:
        last = None
        for col, ch in enumerate(line):
            if not ch.isspace() and not is_in_comment(offset + col, self.comment_ranges):
                last = col
        return last


__all__ = [
    "DisplayOptions",
    "TypingDisplay",
    "should_skip_character",
    "is_at_end_of_line_content",
    "is_rest_of_line_comment_only",
    "is_whitespace_before_comment",
    "is_in_comment",
    "TAB_DISPLAY",
    "NEWLINE_MARKER",
]
