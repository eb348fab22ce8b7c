"""Error taxonomy shared by extraction and the challenge cache."""
from __future__ import annotations

from enum import Enum


class CacheErrorKind(str, Enum):
    PARSE_FAILURE = "parse_failure"
    SERIALIZATION_FAILURE = "serialization_failure"
    FILE_SYSTEM_FAILURE = "file_system_failure"
    SECURITY_VIOLATION = "security_violation"


class TypedrillError(RuntimeError):
    kind: CacheErrorKind

    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class ParseFailure(TypedrillError):
    """A grammar rejected or failed on a single source file."""

    kind = CacheErrorKind.PARSE_FAILURE


class SerializationFailure(TypedrillError):
    """Encoding, decoding, compression or decompression failed."""

    kind = CacheErrorKind.SERIALIZATION_FAILURE


class FileSystemFailure(TypedrillError):
    kind = CacheErrorKind.FILE_SYSTEM_FAILURE


class SecurityViolation(TypedrillError):
    """A path resolved outside the directory it was supposed to stay in."""

    kind = CacheErrorKind.SECURITY_VIOLATION


__all__ = [
    "CacheErrorKind",
    "TypedrillError",
    "ParseFailure",
    "SerializationFailure",
    "FileSystemFailure",
    "SecurityViolation",
]
