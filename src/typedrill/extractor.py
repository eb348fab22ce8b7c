"""Tree-sitter chunk extraction.

Standard chunks come from each language's chunk queries. Larger chunks are
additionally mined for "middle" fragments (loops, conditionals, calls, ...)
and every file contributes one whole-file chunk. Comment locations are
computed once per file and projected into each chunk's character space.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from tree_sitter import Node, Parser, Query, QueryCursor, Tree

from .errors import ParseFailure
from .grammars import GrammarRegistry
from .line_mapper import LineMapper
from .models import ChunkType, CodeChunk, Range
from .text_processor import leading_whitespace

logger = logging.getLogger(__name__)

MIN_CHUNK_CHARS = 10
MIDDLE_MIN_LINES = 2
MIDDLE_MIN_CHARS = 30
MIDDLE_MAX_CHARS = 2000
MIDDLE_PARENT_MIN_LINES = 3

NAME_NODE_KINDS = (
    "identifier",
    "type_identifier",
    "property_identifier",
    "field_identifier",
    "constant",
    "simple_identifier",
)


def normalize_source(source: bytes | str) -> Tuple[bytes, str]:
    """Return (utf-8 bytes, text) that agree byte-for-byte, replacing undecodable input."""
    if isinstance(source, str):
        return source.encode("utf-8"), source
    text = source.decode("utf-8", errors="replace")
    return text.encode("utf-8"), text


def _query_nodes(query: Query, node: Node, capture: str) -> List[Node]:
    """Run `query` under `node` and return the nodes captured as `@{capture}`."""
    cursor = QueryCursor(query)
    captures = cursor.captures(node)  # dict: { "cap_name": [Node, ...], ... }
    return list(captures.get(capture, []))


def _node_name(node: Node) -> Optional[str]:
    named = node.child_by_field_name("name")
    if named is not None and named.text:
        return named.text.decode("utf-8", errors="replace")
    for child in node.children:
        if child.type in NAME_NODE_KINDS and child.text:
            return child.text.decode("utf-8", errors="replace")
    return None


def _chunk_name(node: Node) -> str:
    name = _node_name(node)
    if name is None:
        # type_spec, template_declaration and friends keep the name one level down
        for child in node.named_children:
            name = _node_name(child)
            if name is not None:
                break
    return name or "unknown"


def _strictly_inside(node: Node, parent: Node) -> bool:
    if (node.start_byte, node.end_byte) == (parent.start_byte, parent.end_byte):
        return False
    return parent.start_byte <= node.start_byte and node.end_byte <= parent.end_byte


def _line_span(node: Node) -> int:
    return node.end_point[0] - node.start_point[0] + 1


class ChunkExtractor:
    """Turns parsed files into `CodeChunk`s using an injected `GrammarRegistry`."""

    def __init__(self, registry: GrammarRegistry, *, include_middle: bool = True, include_file: bool = True) -> None:
        self.registry = registry
        self.include_middle = include_middle
        self.include_file = include_file

    def extract_file(
        self,
        path: Path | str,
        language: str | None = None,
        *,
        parser: Parser | None = None,
        root: Path | str | None = None,
    ) -> List[CodeChunk]:
        """Read, parse and extract one file.

        `root` makes the chunks' `file_path` relative to the repository root.

        Raises:
            ParseFailure: when the file cannot be read, has no grammar or fails to parse.
        """
        path = Path(path)
        language = language or self.registry.language_for_path(path)
        if language is None:
            raise ParseFailure(f"No grammar for {path.name}", path=str(path))
        try:
            raw = path.read_bytes()
        except OSError as e:
            raise ParseFailure(f"Cannot read {path}: {e}", path=str(path)) from e

        data, _ = normalize_source(raw)
        parser = parser or self.registry.new_parser(language)
        tree = parser.parse(data)
        if tree is None:
            raise ParseFailure(f"Parser returned no tree for {path}", path=str(path))
        if tree.root_node.has_error:
            logger.debug("Syntax errors in %s; extracting what parsed", path)

        rel = path
        if root is not None:
            try:
                rel = path.resolve().relative_to(Path(root).resolve())
            except ValueError:
                rel = path
        return self.extract_chunks(tree, data, rel.as_posix(), language)

    def extract_comment_ranges(
        self,
        tree: Tree,
        source: bytes | str,
        language: str,
        exclude_ranges: Sequence[Range] = (),
    ) -> List[Range]:
        """Byte ranges of comment nodes, ordered and non-overlapping.

        Comments nested inside an earlier comment (e.g. doc markers inside a
        line comment) and comments lying inside any of `exclude_ranges` are
        dropped.
        """
        query = self.registry.comment_query(language)
        if query is None:
            return []
        nodes = [
            n for n in _query_nodes(query, tree.root_node, "comment") if self.registry.is_comment_kind(language, n.type)
        ]
        nodes.sort(key=lambda n: (n.start_byte, -n.end_byte))

        ranges: List[Range] = []
        for n in nodes:
            s, e = n.start_byte, n.end_byte
            if s >= e:
                continue
            if ranges and s < ranges[-1][1]:
                continue
            if any(xs <= s and e <= xe for xs, xe in exclude_ranges):
                continue
            ranges.append((s, e))
        return ranges

    def extract_chunks(self, tree: Tree, source: bytes | str, file_path: str, language: str) -> List[CodeChunk]:
        data, text = normalize_source(source)
        mapper = LineMapper(data)
        comments = self.extract_comment_ranges(tree, data, language)
        root = tree.root_node

        chunks: List[CodeChunk] = []
        parents: List[Node] = []
        for chunk_type, query in self.registry.chunk_queries(language):
            for node in _query_nodes(query, root, "chunk"):
                chunk = self._build_chunk(node, chunk_type, data, mapper, comments, file_path, language)
                if chunk is None or len(chunk.content) - len(chunk.original_indentation) < MIN_CHUNK_CHARS:
                    continue
                chunks.append(chunk)
                parents.append(node)

        if self.include_middle and parents:
            chunks.extend(self._middle_chunks(root, parents, data, mapper, comments, file_path, language))

        if self.include_file:
            whole = self._file_chunk(text, mapper, comments, file_path, language)
            if whole is not None:
                chunks.append(whole)

        return _dedupe_and_sort(chunks)

    def _middle_chunks(
        self,
        root: Node,
        parents: List[Node],
        data: bytes,
        mapper: LineMapper,
        comments: List[Range],
        file_path: str,
        language: str,
    ) -> List[CodeChunk]:
        big = [p for p in parents if _line_span(p) >= MIDDLE_PARENT_MIN_LINES]
        if not big:
            return []
        out: List[CodeChunk] = []
        for chunk_type, query in self.registry.middle_queries(language):
            for node in _query_nodes(query, root, "chunk"):
                if _line_span(node) < MIDDLE_MIN_LINES:
                    continue
                size = len(data[node.start_byte : node.end_byte].decode("utf-8", errors="replace"))
                if size < MIDDLE_MIN_CHARS or size > MIDDLE_MAX_CHARS:
                    continue
                if not any(_strictly_inside(node, p) for p in big):
                    continue
                chunk = self._build_chunk(node, chunk_type, data, mapper, comments, file_path, language)
                if chunk is not None:
                    out.append(chunk)
        return out

    def _build_chunk(
        self,
        node: Node,
        chunk_type: ChunkType,
        data: bytes,
        mapper: LineMapper,
        comments: List[Range],
        file_path: str,
        language: str,
    ) -> Optional[CodeChunk]:
        start_b, end_b = node.start_byte, node.end_byte
        body = data[start_b:end_b].decode("utf-8", errors="replace").rstrip("\r\n")
        if not body.strip():
            return None
        row, col = node.start_point[0], node.start_point[1]
        prefix = mapper.line_prefix(row, col)
        indent = leading_whitespace(prefix)
        last_newline = body.rfind("\n")
        end_column = len(prefix) + len(body) if last_newline == -1 else len(body) - last_newline - 1

        start_char = mapper.byte_to_char(start_b)
        end_char = start_char + len(body)
        ranges = tuple(
            (mapper.byte_to_char(cs) - start_char + len(indent), mapper.byte_to_char(ce) - start_char + len(indent))
            for cs, ce in comments
            if mapper.byte_to_char(cs) >= start_char and mapper.byte_to_char(ce) <= end_char
        )
        start_line = row + 1
        return CodeChunk(
            content=indent + body,
            file_path=file_path,
            comment_ranges=ranges,
            chunk_type=chunk_type,
            start_line=start_line,
            end_line=start_line + body.count("\n"),
            language=language,
            name=_chunk_name(node),
            original_indentation=indent,
            start_column=len(prefix),
            end_column=end_column,
        )

    def _file_chunk(
        self,
        text: str,
        mapper: LineMapper,
        comments: List[Range],
        file_path: str,
        language: str,
    ) -> Optional[CodeChunk]:
        if not text.strip():
            return None
        # The final newline terminates the last line; it is not a line of its own.
        content = text[:-1] if text.endswith("\n") else text
        ranges = tuple(
            (mapper.byte_to_char(s), mapper.byte_to_char(e))
            for s, e in comments
            if mapper.byte_to_char(e) <= len(content)
        )
        return CodeChunk(
            content=content,
            file_path=file_path,
            comment_ranges=ranges,
            chunk_type=ChunkType.FILE,
            start_line=1,
            end_line=max(1, mapper.line_count()),
            language=language,
            name="entire_file",
        )


def _dedupe_and_sort(chunks: Iterable[CodeChunk]) -> List[CodeChunk]:
    ordered = sorted(chunks, key=lambda c: (c.start_line, c.end_line, c.chunk_type.sort_priority))
    seen = set()
    out: List[CodeChunk] = []
    for c in ordered:
        key = (c.chunk_type is ChunkType.FILE, *c.identity())
        if key in seen:
            continue
        seen.add(key)
        out.append(c)
    return out


__all__ = ["ChunkExtractor", "normalize_source", "MIN_CHUNK_CHARS"]
