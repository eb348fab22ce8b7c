from __future__ import annotations

import bisect
from typing import List


class LineMapper:
    """
    Maps byte offsets of a UTF-8 buffer to (row, col) points and to character offsets.
    Tree-sitter reports byte positions; everything downstream indexes Python strings.
    """

    def __init__(self, contents: bytes):
        self.contents = contents
        self.contents_len = len(contents)
        self.newlines: List[int] = []
        pos = contents.find(b"\n")
        while pos != -1:
            self.newlines.append(pos)
            pos = contents.find(b"\n", pos + 1)
        # Byte offset where each character starts; left empty for pure ASCII.
        self._char_starts: List[int] = []
        if not contents.isascii():
            offset = 0
            for ch in contents.decode("utf-8"):
                self._char_starts.append(offset)
                offset += len(ch.encode("utf-8"))

    def byte_to_char(self, offset: int) -> int:
        """Character index of the character starting at (or containing) `offset`."""
        if offset < 0 or offset > self.contents_len:
            raise ValueError(f"Offset {offset} out of bounds (0-{self.contents_len})")
        if not self._char_starts:
            return offset
        return bisect.bisect_left(self._char_starts, offset)

    def byte_to_point(self, offset: int) -> tuple[int, int]:
        """
        Convert a byte offset to a 0-indexed (row, byte column) tuple.
        """
        if offset < 0 or offset > self.contents_len:
            raise ValueError(f"Offset {offset} out of bounds (0-{self.contents_len})")

        # Index of the first newline at or after offset is also the row number.
        idx = bisect.bisect_left(self.newlines, offset)
        if idx == 0:
            return (0, offset)
        return (idx, offset - self.newlines[idx - 1] - 1)

    def line_start(self, row: int) -> int:
        """Byte offset of the first byte of 0-indexed `row`."""
        if row <= 0:
            return 0
        if row > len(self.newlines):
            raise ValueError(f"Row {row} out of bounds (0-{len(self.newlines)})")
        return self.newlines[row - 1] + 1

    def line_prefix(self, row: int, column: int) -> str:
        """Decoded text between the start of `row` and byte `column` on that row."""
        start = self.line_start(row)
        return self.contents[start : start + column].decode("utf-8", errors="replace")

    def line_count(self) -> int:
        if self.contents_len == 0:
            return 0
        trailing = 1 if self.contents.endswith(b"\n") else 0
        return len(self.newlines) + 1 - trailing


__all__ = ["LineMapper"]
