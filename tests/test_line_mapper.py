import sys
import tempfile
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from typedrill.line_mapper import LineMapper  # noqa: E402
from typedrill.text_detection import BinaryDetector  # noqa: E402


class LineMapperTests(unittest.TestCase):
    def test_points_and_line_starts(self):
        m = LineMapper(b"ab\ncd\n\nef")
        self.assertEqual(m.byte_to_point(0), (0, 0))
        self.assertEqual(m.byte_to_point(2), (0, 2))
        self.assertEqual(m.byte_to_point(3), (1, 0))
        self.assertEqual(m.byte_to_point(7), (3, 0))
        self.assertEqual(m.line_start(3), 7)
        self.assertEqual(m.line_count(), 4)
        with self.assertRaises(ValueError):
            m.byte_to_point(99)

    def test_line_count_ignores_final_newline(self):
        self.assertEqual(LineMapper(b"a\nb\n").line_count(), 2)
        self.assertEqual(LineMapper(b"").line_count(), 0)

    def test_byte_to_char_for_multibyte_text(self):
        text = "é = 'ß'  # ü\nx"
        data = text.encode("utf-8")
        m = LineMapper(data)
        for char_index in range(len(text) + 1):
            byte_index = len(text[:char_index].encode("utf-8"))
            self.assertEqual(m.byte_to_char(byte_index), char_index)

    def test_ascii_offsets_are_identity(self):
        m = LineMapper(b"plain text")
        self.assertEqual(m.byte_to_char(5), 5)

    def test_line_prefix(self):
        m = LineMapper("x\n\t  déf f():".encode("utf-8"))
        self.assertEqual(m.line_prefix(1, 3), "\t  ")
        self.assertEqual(m.line_prefix(1, len("\t  dé".encode("utf-8"))), "\t  dé")


class BinaryDetectorTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def _file(self, name, data: bytes) -> Path:
        p = self.dir / name
        p.write_bytes(data)
        return p

    def test_text_is_kept(self):
        detector = BinaryDetector()
        p = self._file("ok.py", "print('héllo')\n".encode("utf-8"))
        self.assertFalse(detector.should_skip(p))

    def test_nul_bytes_mean_binary(self):
        self.assertTrue(BinaryDetector().is_binary(self._file("x.py", b"abc\x00def")))

    def test_control_heavy_content_is_binary(self):
        self.assertTrue(BinaryDetector().is_binary(self._file("x.py", bytes(range(1, 9)) * 10)))

    def test_overlong_first_line_is_minified(self):
        detector = BinaryDetector()
        self.assertTrue(detector.is_minified(self._file("m.js", b"a=1;" * 400 + b"\n")))
        self.assertFalse(detector.is_minified(self._file("n.js", b"a=1;\n" * 400)))

    def test_missing_file_is_not_skipped(self):
        self.assertFalse(BinaryDetector().should_skip(self.dir / "nope.py"))


if __name__ == "__main__":
    unittest.main(verbosity=2)
