# Shared test fixtures utilities.
# Small on-disk repositories and source samples reused across test modules.

from __future__ import annotations

import importlib.util
from pathlib import Path
from typing import Dict, Union

HAS_TREE_SITTER = (
    importlib.util.find_spec("tree_sitter") is not None
    and importlib.util.find_spec("tree_sitter_language_pack") is not None
)

PYTHON_SAMPLE = '''import os


class Greeter:
    """Says hello."""

    def greet(self, name):
        # build the message
        message = "hello " + name  # inline
        return message


def main():
    for i in range(3):
        print(Greeter().greet(str(i)))
    return 0
'''

UNICODE_PYTHON_SAMPLE = '''s = "héllo"  # ünïcode


def f():
    # ß comment
    return s
'''

TAB_PYTHON_SAMPLE = "class A:\n\tdef method(self):\n\t\treturn 1\n"

RUST_SAMPLE = "fn f(){ // c\n let a=1;\n}\n"

JS_SAMPLE = "function add(a, b) {\n  // sum\n  return a + b;\n}\n"

JS_EXPORT_SAMPLE = """export function add(a, b) {
  // sum the two
  return a + b;
}

const twice = (x) => {
  // double it
  return x * 2;
};
"""


def write_tree(root: Path, files: Dict[str, Union[str, bytes]]) -> Path:
    """Materialize `files` (relative path -> content) under `root`."""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
    return root
