from __future__ import annotations

import contextlib
import io
import json
import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from csv_static_table import __version__, cli
from csv_static_table.errors import TableIOError


ROOT = Path(__file__).resolve().parents[1]
CLI = [sys.executable, "-m", "csv_static_table.cli"]


def run_cli(*args: str, env: dict[str, str] | None = None) -> subprocess.CompletedProcess[str]:
    merged_env = dict(os.environ)
    for key in ("CSV_STATIC_TABLE_FLAGS", "CSV_STATIC_TABLE_NEWLINE", "CSV_STATIC_TABLE_ENCODING"):
        merged_env.pop(key, None)
    if env:
        merged_env.update(env)
    return subprocess.run(
        [*CLI, *args],
        cwd=ROOT,
        capture_output=True,
        text=True,
        env=merged_env,
    )


class CsvStaticTableCliTests(unittest.TestCase):
    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        self.tmpdir = Path(self._tmpdir.name)

    def tearDown(self):
        self._tmpdir.cleanup()

    def write_input(self, name: str, payload: bytes) -> Path:
        path = self.tmpdir / name
        path.write_bytes(payload)
        return path

    def test_version(self):
        proc = run_cli("version")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertEqual(proc.stdout.strip(), __version__)

    def test_inspect_json_reports_pruning_and_warnings(self):
        path = self.write_input("messy.csv", b"name,,age\nx,ignored,30\n,,\n#note,,\n")
        proc = run_cli("inspect", str(path), "--json")

        self.assertEqual(proc.returncode, 0, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertEqual(payload["contract"]["name"], "csv_static_table.inspect")
        self.assertEqual(payload["header"], ["name", "age"])
        self.assertEqual(payload["bytes"], path.stat().st_size)
        self.assertEqual(payload["metrics"]["rows"], 1)
        self.assertEqual(payload["metrics"]["pruned_columns"], 1)
        self.assertEqual(payload["metrics"]["pruned_rows"], 2)
        self.assertEqual(payload["run_summary"]["warnings_count"], 1)
        self.assertIn("ignored", payload["run_summary"]["warnings"][0])

    def test_inspect_with_no_flags_keeps_everything(self):
        path = self.write_input("messy.csv", b"name,,age\nx,ignored,30\n,,\n")
        proc = run_cli("inspect", str(path), "--json", "--flags", "none")

        self.assertEqual(proc.returncode, 0, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertEqual(payload["header"], ["name", "", "age"])
        self.assertEqual(payload["metrics"]["rows"], 2)

    def test_clean_writes_requoted_output(self):
        path = self.write_input("in.csv", b'k,v\n"a,b","say ""hi"""\n,\n')
        output = self.tmpdir / "out.csv"
        proc = run_cli("clean", str(path), str(output))

        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertIn("Clean CSV:", proc.stderr)
        self.assertEqual(output.read_bytes(), b'k,v\n"a,b","say ""hi"""\n')

    def test_clean_refuses_existing_output_without_overwrite(self):
        path = self.write_input("in.csv", b"k,v\n1,2\n")
        output = self.write_input("out.csv", b"existing")
        proc = run_cli("clean", str(path), str(output))

        self.assertEqual(proc.returncode, 4)
        self.assertIn("already exists", proc.stderr)
        self.assertEqual(output.read_bytes(), b"existing")

        proc = run_cli("clean", str(path), str(output), "--overwrite", "--json")
        self.assertEqual(proc.returncode, 0, proc.stderr)
        summary = json.loads(proc.stdout)
        self.assertEqual(summary["run_summary"]["output_file"], str(output))
        self.assertEqual(output.read_bytes(), b"k,v\n1,2\n")

    def test_shape_error_returns_exit_2(self):
        path = self.write_input("ragged.csv", b"a,b\n1,2\n3\n")
        proc = run_cli("inspect", str(path))

        self.assertEqual(proc.returncode, 2)
        self.assertIn("Incorrect number of fields on row 2 - found 1, expected 2", proc.stderr)

    def test_missing_input_returns_exit_3(self):
        proc = run_cli("show", str(self.tmpdir / "absent.csv"))

        self.assertEqual(proc.returncode, 3)
        self.assertIn("File not found", proc.stderr)

    def test_cell_accepts_field_name_and_headerless_mode(self):
        path = self.write_input("names.csv", b"alpha\nbeta\n")
        proc = run_cli("cell", str(path), "1", "name", "--headerless")

        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertEqual(proc.stdout.strip(), "beta")

    def test_cell_out_of_range_is_command_error(self):
        path = self.write_input("small.csv", b"a\n1\n")
        proc = run_cli("cell", str(path), "5", "0")

        self.assertEqual(proc.returncode, 1)
        self.assertIn("out of range", proc.stderr)

    def test_show_debug_prefixes_rows(self):
        path = self.write_input("small.csv", b"a,b\n1,2\n")
        proc = run_cli("show", str(path), "--debug")

        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertEqual(proc.stdout, "[0]: a,b\n[1]: 1,2\n")

    def test_environment_flags_apply(self):
        path = self.write_input("comments.csv", b"a\n#x\n1\n")
        proc = run_cli("inspect", str(path), "--json", env={"CSV_STATIC_TABLE_FLAGS": "none"})

        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertEqual(json.loads(proc.stdout)["metrics"]["rows"], 2)

    def test_config_init_writes_once(self):
        config_path = self.tmpdir / "csv-static-table.json"
        proc = run_cli("config", "init", "--path", str(config_path))
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertEqual(json.loads(config_path.read_text())["flags"], "default")

        proc = run_cli("config", "init", "--path", str(config_path))
        self.assertEqual(proc.returncode, 4)
        self.assertIn("Refusing to overwrite", proc.stderr)

    def test_config_file_is_honoured(self):
        config_path = self.tmpdir / "cfg.json"
        config_path.write_text(json.dumps({"flags": "none"}), encoding="utf-8")
        path = self.write_input("comments.csv", b"a\n#x\n1\n")
        proc = run_cli("inspect", str(path), "--json", "--config", str(config_path))

        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertEqual(json.loads(proc.stdout)["metrics"]["rows"], 2)

    def test_unknown_flag_is_command_error(self):
        path = self.write_input("small.csv", b"a\n1\n")
        proc = run_cli("inspect", str(path), "--flags", "bogus")

        self.assertEqual(proc.returncode, 1)
        self.assertIn("Unknown load flag", proc.stderr)


class CsvStaticTableMainTests(unittest.TestCase):
    def test_inspect_reports_stat_failure_on_stderr(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "small.csv"
            path.write_bytes(b"a\n1\n")
            failure = TableIOError(f"Unable to stat file '{path}': Permission denied", path)
            stderr = io.StringIO()
            with mock.patch.object(cli.fs, "file_size", side_effect=failure), contextlib.redirect_stderr(stderr):
                code = cli.main(["inspect", str(path), "--json"])

        self.assertEqual(code, cli.EXIT_IO_ERROR)
        self.assertIn("Unable to stat file", stderr.getvalue())


if __name__ == "__main__":
    unittest.main()
