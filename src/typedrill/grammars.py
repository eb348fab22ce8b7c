"""Per-language Tree-sitter grammars, chunk queries and comment queries.

Definitions are read from `grammar_queries.json`. A `GrammarRegistry` is an
ordinary value: build it once (usually with `GrammarRegistry.from_config()`)
and hand it to whatever needs to parse.
"""
from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from tree_sitter import Language, Parser, Query, QueryError
from tree_sitter_language_pack import get_language, get_parser

from .models import ChunkType

logger = logging.getLogger(__name__)

CONFIG_PATH = Path(__file__).with_name("grammar_queries.json")

TypedPattern = Tuple[ChunkType, str]


@dataclass(frozen=True)
class LanguageGrammar:
    name: str
    grammar: str
    extensions: Tuple[str, ...]
    comment_kinds: frozenset
    comment_query: str
    chunk_patterns: Tuple[TypedPattern, ...]
    middle_patterns: Tuple[TypedPattern, ...] = ()


def _typed_patterns(raw: Dict[str, List[str]]) -> Tuple[TypedPattern, ...]:
    out: List[TypedPattern] = []
    for type_name, patterns in (raw or {}).items():
        chunk_type = ChunkType(type_name)
        out.extend((chunk_type, str(p)) for p in patterns)
    return tuple(out)


def load_grammar_config(path: Path | None = None) -> List[LanguageGrammar]:
    """Load language definitions from the JSON configuration."""
    cfg_path = path or CONFIG_PATH
    with cfg_path.open("r", encoding="utf-8") as handle:
        data = json.load(handle)

    grammars: List[LanguageGrammar] = []
    for name, entry in data.get("languages", {}).items():
        grammars.append(
            LanguageGrammar(
                name=name,
                grammar=entry.get("grammar", name),
                extensions=tuple(e.lower().lstrip(".") for e in entry.get("extensions", [])),
                comment_kinds=frozenset(entry.get("comment_kinds", ["comment"])),
                comment_query=entry.get("comment_query", "(comment) @comment"),
                chunk_patterns=_typed_patterns(entry.get("chunks", {})),
                middle_patterns=_typed_patterns(entry.get("middle", {})),
            )
        )
    return grammars


class GrammarRegistry:
    """Lookup table from language name / file extension to grammar and queries.

    Compiled queries are cached and shared between threads; parsers are not,
    `new_parser` hands out a fresh instance on every call.
    """

    def __init__(self, grammars: Iterable[LanguageGrammar]) -> None:
        self._grammars: Dict[str, LanguageGrammar] = {}
        self._by_extension: Dict[str, str] = {}
        for g in grammars:
            key = _normalize(g.name)
            if key in self._grammars:
                raise ValueError(f"Duplicate language definition: {g.name}")
            self._grammars[key] = g
            for ext in g.extensions:
                if ext in self._by_extension:
                    raise ValueError(f"Extension .{ext} claimed by {self._by_extension[ext]} and {key}")
                self._by_extension[ext] = key
        self._queries: Dict[Tuple[str, str], Optional[Query]] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, path: Path | None = None, languages: Iterable[str] | None = None) -> "GrammarRegistry":
        grammars = load_grammar_config(path)
        if languages is not None:
            wanted = {_normalize(l) for l in languages}
            grammars = [g for g in grammars if _normalize(g.name) in wanted]
        return cls(grammars)

    def languages(self) -> List[str]:
        return sorted(self._grammars.keys())

    def get(self, name: str) -> Optional[LanguageGrammar]:
        return self._grammars.get(_normalize(name))

    def require(self, name: str) -> LanguageGrammar:
        grammar = self.get(name)
        if grammar is None:
            raise KeyError(f"Unsupported language: {name}")
        return grammar

    def language_for_extension(self, extension: str) -> Optional[str]:
        return self._by_extension.get((extension or "").lower().lstrip("."))

    def language_for_path(self, path: Path | str) -> Optional[str]:
        return self.language_for_extension(Path(path).suffix)

    def ts_language(self, name: str) -> Language:
        return get_language(self.require(name).grammar)

    def new_parser(self, name: str) -> Parser:
        return get_parser(self.require(name).grammar)

    def is_comment_kind(self, name: str, kind: str) -> bool:
        return kind in self.require(name).comment_kinds

    def comment_query(self, name: str) -> Optional[Query]:
        grammar = self.require(name)
        return self._compile(grammar, grammar.comment_query)

    def chunk_queries(self, name: str) -> List[Tuple[ChunkType, Query]]:
        grammar = self.require(name)
        return self._compile_all(grammar, grammar.chunk_patterns)

    def middle_queries(self, name: str) -> List[Tuple[ChunkType, Query]]:
        grammar = self.require(name)
        return self._compile_all(grammar, grammar.middle_patterns)

    def _compile_all(self, grammar: LanguageGrammar, patterns: Iterable[TypedPattern]) -> List[Tuple[ChunkType, Query]]:
        out: List[Tuple[ChunkType, Query]] = []
        for chunk_type, pattern in patterns:
            query = self._compile(grammar, pattern)
            if query is not None:
                out.append((chunk_type, query))
        return out

    def _compile(self, grammar: LanguageGrammar, pattern: str) -> Optional[Query]:
        """Compile one pattern, caching failures as None so they are logged once."""
        key = (grammar.name, pattern)
        with self._lock:
            if key in self._queries:
                return self._queries[key]
            try:
                query: Optional[Query] = Query(self.ts_language(grammar.name), pattern)
            except (QueryError, LookupError) as e:
                logger.warning("Skipping invalid %s query %r: %s", grammar.name, pattern, e)
                query = None
            self._queries[key] = query
            return query


def _normalize(name: str) -> str:
    return (name or "").strip().lower()


__all__ = ["LanguageGrammar", "GrammarRegistry", "load_grammar_config", "CONFIG_PATH"]
