import os
import stat
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from csv_static_table import fs
from csv_static_table.errors import OverwriteRefused, TableIOError


class FsHelperTests(unittest.TestCase):
    def test_size_and_existence(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "data.csv"
            path.write_bytes(b"a,b\n")

            self.assertTrue(fs.file_exists(path))
            self.assertFalse(fs.file_exists(Path(tmpdir)))
            self.assertEqual(fs.file_size(path), 4)
            with self.assertRaises(TableIOError):
                fs.file_size(Path(tmpdir) / "absent.csv")

    def test_read_directory_is_io_error(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaisesRegex(TableIOError, "for reading"):
                fs.read_file_bytes(tmpdir)

    def test_failed_write_leaves_no_partial_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            target = Path(tmpdir) / "out.csv"
            with mock.patch.object(fs.os, "replace", side_effect=OSError(13, "Permission denied")):
                with self.assertRaisesRegex(TableIOError, "Permission denied"):
                    fs.write_file_bytes(target, b"a\n")

            self.assertEqual(list(Path(tmpdir).iterdir()), [])

    def test_existing_target_needs_overwrite(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            target = Path(tmpdir) / "out.csv"
            target.write_bytes(b"old")

            with self.assertRaises(OverwriteRefused) as caught:
                fs.write_file_bytes(target, b"new")
            self.assertEqual(caught.exception.path, target)

            fs.write_file_bytes(target, b"new", overwrite=True)
            self.assertEqual(target.read_bytes(), b"new")

    @unittest.skipIf(os.name == "nt", "POSIX file modes")
    def test_new_file_gets_umask_default_mode(self):
        previous = os.umask(0o022)
        try:
            with tempfile.TemporaryDirectory() as tmpdir:
                target = Path(tmpdir) / "out.csv"
                fs.write_file_bytes(target, b"a\n1\n")
                self.assertEqual(stat.S_IMODE(target.stat().st_mode), 0o644)
        finally:
            os.umask(previous)

    @unittest.skipIf(os.name == "nt", "POSIX file modes")
    def test_overwrite_keeps_existing_mode(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            target = Path(tmpdir) / "out.csv"
            target.write_bytes(b"old")
            os.chmod(target, 0o640)

            fs.write_file_bytes(target, b"new", overwrite=True)

            self.assertEqual(stat.S_IMODE(target.stat().st_mode), 0o640)


if __name__ == "__main__":
    unittest.main()
