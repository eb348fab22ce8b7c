import sys
import tempfile
import unittest
from pathlib import Path, PurePosixPath

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from .fixtures import HAS_TREE_SITTER, JS_SAMPLE, PYTHON_SAMPLE, RUST_SAMPLE, write_tree  # noqa: E402

if not HAS_TREE_SITTER:
    raise unittest.SkipTest("tree-sitter language pack not installed")

from typedrill.grammars import GrammarRegistry  # noqa: E402
from typedrill.models import ChunkType  # noqa: E402
from typedrill.progress import LoggingProgressReporter, StepType  # noqa: E402
from typedrill.sources import (  # noqa: E402
    ExtractionOptions,
    IgnoreRules,
    SourceCodeParser,
    collect_source_files,
)


class _Fixture(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.registry = GrammarRegistry.from_config(languages=["python", "rust", "javascript"])

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = write_tree(
            Path(self._tmp.name),
            {
                "src/a.py": PYTHON_SAMPLE,
                "src/lib.rs": RUST_SAMPLE,
                "src/b.skip.py": PYTHON_SAMPLE,
                "node_modules/dep/index.js": JS_SAMPLE,
                "build/out.py": PYTHON_SAMPLE,
                "generated/g.py": PYTHON_SAMPLE,
                "notes.txt": "not code\n",
                "blob.py": b"\x00\x01\x02\x03binary",
                "app.js": "var a=1;" * 300,
                ".typedrillignore": "# local rules\ngenerated/\n*.skip.py\n",
            },
        )

    def tearDown(self):
        self._tmp.cleanup()

    def _collected(self, options=None):
        files = collect_source_files(self.root, self.registry, options)
        return {p.relative_to(self.root).as_posix() for p in files}


class CollectSourceFilesTests(_Fixture):
    def test_defaults_apply_excludes_ignore_file_and_content_checks(self):
        self.assertEqual(self._collected(), {"src/a.py", "src/lib.rs"})

    def test_language_filter(self):
        self.assertEqual(self._collected(ExtractionOptions(languages=("Python",))), {"src/a.py"})

    def test_include_patterns(self):
        self.assertEqual(self._collected(ExtractionOptions(include_patterns=("src/*.rs",))), {"src/lib.rs"})

    def test_binary_check_can_be_disabled(self):
        collected = self._collected(ExtractionOptions(skip_binary=False))
        self.assertIn("blob.py", collected)
        self.assertIn("app.js", collected)

    def test_negated_ignore_rule(self):
        (self.root / ".typedrillignore").write_text("*.py\n!src/a.py\n", encoding="utf-8")
        self.assertEqual(self._collected(), {"src/a.py", "src/lib.rs"})

    def test_progress_reports_scanning(self):
        reporter = LoggingProgressReporter()
        with self.assertLogs("typedrill.progress", level="INFO"):
            collect_source_files(self.root, self.registry, progress=reporter)
        self.assertEqual(reporter.step, StepType.SCANNING)

    def test_root_must_be_a_directory(self):
        with self.assertRaises(RuntimeError):
            collect_source_files(self.root / "notes.txt", self.registry)


class IgnoreRulesTests(unittest.TestCase):
    def test_directory_rule_covers_children(self):
        rules = IgnoreRules([("generated", False)])
        self.assertTrue(rules.ignores(PurePosixPath("generated/deep/x.py")))
        self.assertFalse(rules.ignores(PurePosixPath("src/generated.py")))

    def test_anchored_rule(self):
        rules = IgnoreRules([("docs/*.py", False)])
        self.assertTrue(rules.ignores(PurePosixPath("docs/conf.py")))
        self.assertFalse(rules.ignores(PurePosixPath("src/docs.py")))

    def test_missing_file_means_no_rules(self):
        with tempfile.TemporaryDirectory() as tmp:
            self.assertEqual(IgnoreRules.load(Path(tmp)).rules, [])


class SourceCodeParserTests(_Fixture):
    def test_parallel_extraction(self):
        files = collect_source_files(self.root, self.registry)
        parser = SourceCodeParser(self.registry, workers=2)
        chunks = parser.extract_chunks(files, root=self.root)
        self.assertEqual({c.file_path for c in chunks}, {"src/a.py", "src/lib.rs"})
        whole = [c for c in chunks if c.chunk_type is ChunkType.FILE]
        self.assertEqual(sorted(c.file_path for c in whole), ["src/a.py", "src/lib.rs"])
        ordered = [(c.file_path, c.start_line) for c in chunks]
        self.assertEqual(ordered, sorted(ordered))

    def test_failing_files_are_logged_and_skipped(self):
        (self.root / "weird.py").mkdir()
        files = [self.root / "src" / "a.py", self.root / "weird.py", self.root / "gone.py"]
        parser = SourceCodeParser(self.registry, workers=2)
        with self.assertLogs("typedrill.sources", level="ERROR") as logs:
            chunks = parser.extract_chunks(files, root=self.root)
        self.assertEqual({c.file_path for c in chunks}, {"src/a.py"})
        failed = "\n".join(logs.output)
        self.assertIn("weird.py", failed)
        self.assertIn("gone.py", failed)

    def test_size_limit(self):
        files = collect_source_files(self.root, self.registry)
        parser = SourceCodeParser(self.registry, workers=1, max_file_size_bytes=10)
        self.assertEqual(parser.extract_chunks(files, root=self.root), [])

    def test_progress_reaches_total(self):
        files = collect_source_files(self.root, self.registry)
        reporter = LoggingProgressReporter()
        with self.assertLogs("typedrill.progress", level="INFO"):
            SourceCodeParser(self.registry, workers=2).extract_chunks(files, root=self.root, progress=reporter)
        self.assertEqual(reporter.step, StepType.EXTRACTING)
        self.assertEqual((reporter.processed, reporter.total), (2, 2))


if __name__ == "__main__":
    unittest.main(verbosity=2)
