from __future__ import annotations

import hashlib
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import PurePath
from typing import Any, Dict, List, Optional, Protocol, Tuple

Range = Tuple[int, int]


class ChunkType(str, Enum):
    FUNCTION = "Function"
    METHOD = "Method"
    CLASS = "Class"
    STRUCT = "Struct"
    ENUM = "Enum"
    INTERFACE = "Interface"
    TRAIT = "Trait"
    MODULE = "Module"
    NAMESPACE = "Namespace"
    TYPE_ALIAS = "TypeAlias"
    VARIABLE = "Variable"
    CONST = "Const"
    COMPONENT = "Component"
    CODE_BLOCK = "CodeBlock"
    FILE = "File"
    LOOP = "Loop"
    CONDITIONAL = "Conditional"
    ERROR_HANDLING = "ErrorHandling"
    FUNCTION_CALL = "FunctionCall"
    LAMBDA = "Lambda"
    COMPREHENSION = "Comprehension"
    SPECIAL_BLOCK = "SpecialBlock"

    @property
    def sort_priority(self) -> int:
        """Ordering weight among chunks sharing the same line span."""
        if self in (ChunkType.FUNCTION, ChunkType.METHOD, ChunkType.CLASS):
            return 0
        if self is ChunkType.FILE:
            return 20
        if self in _BLOCK_TYPES:
            return 10
        return 5


_BLOCK_TYPES = frozenset(
    {
        ChunkType.CODE_BLOCK,
        ChunkType.LOOP,
        ChunkType.CONDITIONAL,
        ChunkType.ERROR_HANDLING,
        ChunkType.FUNCTION_CALL,
        ChunkType.LAMBDA,
        ChunkType.COMPREHENSION,
        ChunkType.SPECIAL_BLOCK,
    }
)


@dataclass(frozen=True)
class CodeChunk:
    """A syntactic fragment of a source file.

    `comment_ranges` are half-open character offsets into `content`. The first
    line of `content` starts with `original_indentation`, the literal leading
    whitespace of that line in the source file.

    `start_column` and `end_column` are character columns on the first and last
    source lines where the node text begins and ends; `end_column` is None when
    the chunk runs to the end of its last line.
    """

    content: str
    file_path: str
    comment_ranges: Tuple[Range, ...]
    chunk_type: ChunkType
    start_line: int
    end_line: int
    language: str
    name: str
    original_indentation: str = ""
    start_column: int = 0
    end_column: Optional[int] = None

    def identity(self) -> tuple[int, int, str]:
        return (self.start_line, self.end_line, self.content)

    def is_valid(self) -> bool:
        return bool(self.content.strip()) and 0 < self.start_line <= self.end_line


class SizeBudget(Protocol):
    min_chars: int
    max_chars: Optional[int]


@dataclass(frozen=True)
class CharBudget:
    min_chars: int
    max_chars: Optional[int] = None

    def __post_init__(self) -> None:
        if self.min_chars < 0:
            raise ValueError("min_chars must be >= 0")
        if self.max_chars is not None and self.max_chars < self.min_chars:
            raise ValueError("max_chars must be >= min_chars")


class DifficultyLevel(Enum):
    EASY = ("Easy", 20, 100, "~100 characters")
    NORMAL = ("Normal", 80, 200, "~200 characters")
    HARD = ("Hard", 180, 500, "~500 characters")
    WILD = ("Wild", 0, None, "Full chunks")
    ZEN = ("Zen", 0, None, "Entire files")

    def __init__(self, label: str, min_chars: int, max_chars: Optional[int], description: str) -> None:
        self.label = label
        self.min_chars = min_chars
        self.max_chars = max_chars
        self.description = description

    @property
    def is_unbounded(self) -> bool:
        return self.max_chars is None

    @classmethod
    def from_label(cls, label: str) -> "DifficultyLevel":
        needle = (label or "").strip().lower()
        for level in cls:
            if level.label.lower() == needle:
                return level
        raise ValueError(f"Unknown difficulty level: {label!r}")


@dataclass(frozen=True)
class Challenge:
    id: str
    code_content: str
    source_file_path: Optional[str] = None
    start_line: Optional[int] = None
    end_line: Optional[int] = None
    language: Optional[str] = None
    comment_ranges: Tuple[Range, ...] = field(default_factory=tuple)
    difficulty_level: Optional[DifficultyLevel] = None
    start_column: int = 0
    end_column: Optional[int] = None

    @staticmethod
    def make_id(path: Optional[str], start: Optional[int], end: Optional[int], difficulty: Optional[DifficultyLevel], content: str) -> str:
        label = difficulty.label if difficulty else "-"
        key = f"{path}::{start}::{end}::{label}::{content}"
        return hashlib.sha256(key.encode()).hexdigest()

    def with_difficulty(self, level: DifficultyLevel) -> "Challenge":
        return replace(self, difficulty_level=level)

    def display_title(self) -> str:
        if self.source_file_path and self.start_line is not None and self.end_line is not None:
            parts = PurePath(self.source_file_path).parts
            short = "/".join(parts[-2:]) if len(parts) >= 2 else self.source_file_path
            return f"{short}:{self.start_line}-{self.end_line}"
        return f"Challenge {self.id}"

    def to_pointer(self) -> "ChallengePointer":
        return ChallengePointer(
            id=self.id,
            source_file_path=self.source_file_path,
            start_line=self.start_line,
            end_line=self.end_line,
            language=self.language,
            comment_ranges=self.comment_ranges,
            difficulty_level=self.difficulty_level,
            start_column=self.start_column,
            end_column=self.end_column,
        )


@dataclass(frozen=True)
class ChallengePointer:
    """A Challenge without its text; the text is re-read from the repository."""

    id: str
    source_file_path: Optional[str]
    start_line: Optional[int]
    end_line: Optional[int]
    language: Optional[str]
    comment_ranges: Tuple[Range, ...]
    difficulty_level: Optional[DifficultyLevel]
    start_column: int = 0
    end_column: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source_file_path": self.source_file_path,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "language": self.language,
            "comment_ranges": [list(r) for r in self.comment_ranges],
            "difficulty_level": self.difficulty_level.label if self.difficulty_level else None,
            "start_column": self.start_column,
            "end_column": self.end_column,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChallengePointer":
        level = data.get("difficulty_level")
        return cls(
            id=str(data["id"]),
            source_file_path=data.get("source_file_path"),
            start_line=_opt_int(data.get("start_line")),
            end_line=_opt_int(data.get("end_line")),
            language=data.get("language"),
            comment_ranges=tuple((int(s), int(e)) for s, e in data.get("comment_ranges") or []),
            difficulty_level=DifficultyLevel.from_label(level) if level else None,
            start_column=int(data.get("start_column") or 0),
            end_column=_opt_int(data.get("end_column")),
        )

    def to_challenge(self, content: str) -> Challenge:
        return Challenge(
            id=self.id,
            code_content=content,
            source_file_path=self.source_file_path,
            start_line=self.start_line,
            end_line=self.end_line,
            language=self.language,
            comment_ranges=self.comment_ranges,
            difficulty_level=self.difficulty_level,
            start_column=self.start_column,
            end_column=self.end_column,
        )


@dataclass(frozen=True)
class CacheEntry:
    repo_key: str
    commit_hash: str
    challenge_pointers: Tuple[ChallengePointer, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "repo_key": self.repo_key,
            "commit_hash": self.commit_hash,
            "challenge_pointers": [p.to_dict() for p in self.challenge_pointers],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheEntry":
        pointers: List[ChallengePointer] = [ChallengePointer.from_dict(p) for p in data["challenge_pointers"]]
        return cls(
            repo_key=str(data["repo_key"]),
            commit_hash=str(data["commit_hash"]),
            challenge_pointers=tuple(pointers),
        )


def _opt_int(value: Any) -> Optional[int]:
    return None if value is None else int(value)


__all__ = [
    "Range",
    "ChunkType",
    "CodeChunk",
    "SizeBudget",
    "CharBudget",
    "DifficultyLevel",
    "Challenge",
    "ChallengePointer",
    "CacheEntry",
]
