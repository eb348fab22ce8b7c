import sys
import tempfile
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from typedrill.errors import FileSystemFailure  # noqa: E402
from typedrill.storage import FileSystemStorage  # noqa: E402


class FileSystemStorageTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self._tmp.name)
        self.storage = FileSystemStorage(self.dir / "app")

    def tearDown(self):
        self._tmp.cleanup()

    def test_read_to_string(self):
        path = self.dir / "notes.rs"
        path.write_text("// grüße\nfn main() {}\n", encoding="utf-8")
        self.assertEqual(self.storage.read_to_string(path), "// grüße\nfn main() {}\n")

    def test_read_to_string_failures(self):
        bad = self.dir / "latin.rs"
        bad.write_bytes(b"caf\xe9\n")
        with self.assertRaises(FileSystemFailure) as ctx:
            self.storage.read_to_string(bad)
        self.assertEqual(ctx.exception.path, str(bad))
        with self.assertRaises(FileSystemFailure):
            self.storage.read_to_string(self.dir / "missing.rs")

    def test_write_creates_parents_and_leaves_no_temp_files(self):
        target = self.dir / "cache" / "deep" / "entry.bin"
        self.storage.write_bytes(target, b"one")
        self.storage.write_bytes(target, b"two")
        self.assertEqual(self.storage.read_bytes(target), b"two")
        self.assertEqual(self.storage.list_files_in_dir(target.parent), [target])

    def test_directory_operations(self):
        cache = self.dir / "cache"
        self.assertEqual(self.storage.list_files_in_dir(cache), [])
        self.storage.write_bytes(cache / "b.bin", b"12345")
        self.storage.write_bytes(cache / "a.bin", b"1")
        self.assertEqual([p.name for p in self.storage.list_files_in_dir(cache)], ["a.bin", "b.bin"])
        self.assertEqual(self.storage.get_file_size(cache / "b.bin"), 5)
        self.assertIsNone(self.storage.get_file_size(cache / "nope.bin"))

        self.storage.delete_file(cache / "a.bin")
        self.storage.delete_file(cache / "a.bin")
        self.assertFalse(self.storage.file_exists(cache / "a.bin"))

        self.storage.remove_dir_all(cache)
        self.storage.remove_dir_all(cache)
        self.assertFalse(cache.exists())

    def test_app_data_dir(self):
        self.assertEqual(self.storage.get_app_data_dir(), self.dir / "app")


if __name__ == "__main__":
    unittest.main(verbosity=2)
