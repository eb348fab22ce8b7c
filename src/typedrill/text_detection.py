from __future__ import annotations

from pathlib import Path
from typing import Optional

PRINTABLE_BYTES = set(b"\t\n\r\f\b" + bytes(range(32, 127)))
SAMPLE_SIZE = 8192
NON_PRINTABLE_LIMIT = 0.30
MINIFIED_LINE_LENGTH = 1000


class BinaryDetector:
    """Reject files that carry a source extension but are not worth typing.

    Binary blobs are detected with the usual NUL byte / printable ratio
    heuristic; minified bundles by an overlong first line.
    """

    def __init__(self, sample_size: int = SAMPLE_SIZE) -> None:
        self._sample_size = sample_size

    def is_binary(self, path: Path | str) -> bool:
        sample = self._read_sample(path)
        if sample is None:
            return False
        if b"\x00" in sample:
            return True
        # Bytes >= 0x80 are counted as printable so UTF-8 text passes.
        non_printable = sum(1 for b in sample if b < 0x80 and b not in PRINTABLE_BYTES)
        return non_printable / max(len(sample), 1) > NON_PRINTABLE_LIMIT

    def is_minified(self, path: Path | str) -> bool:
        sample = self._read_sample(path)
        if not sample:
            return False
        first_line = sample.split(b"\n", 1)[0]
        return len(first_line) >= MINIFIED_LINE_LENGTH

    def should_skip(self, path: Path | str) -> bool:
        return self.is_binary(path) or self.is_minified(path)

    def _read_sample(self, path: Path | str) -> Optional[bytes]:
        try:
            with Path(path).open("rb") as fh:
                return fh.read(self._sample_size)
        except OSError:
            return None


__all__ = ["BinaryDetector"]
