#!/usr/bin/env python3

from __future__ import annotations

import json
import pathlib
import re
import subprocess
import sys
import tempfile
import unittest

from playlist_fixtures import PLAYLIST_DECLARATIONS, PLAYLIST_JSON

REPO_ROOT = pathlib.Path(__file__).resolve().parent.parent


class CliBehaviorTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = pathlib.Path(self._tmp.name)
        self.schema = self.tmp / "schema.h"
        self.schema.write_text(PLAYLIST_DECLARATIONS, encoding="utf-8")
        self.doc = self.tmp / "playlist.json"
        self.doc.write_text(PLAYLIST_JSON, encoding="utf-8")

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def run_cli(self, *extra: str, struct: str = "PlayList") -> subprocess.CompletedProcess[str]:
        cmd = [
            sys.executable,
            "-m",
            "jsonreflect.cli",
            "--schema",
            str(self.schema),
            "--struct",
            struct,
            "--in",
            str(self.doc),
            *extra,
        ]
        return subprocess.run(cmd, cwd=REPO_ROOT, text=True, capture_output=True)

    def test_prints_decoded_fields(self) -> None:
        proc = self.run_cli()
        self.assertEqual(proc.returncode, 0, msg=proc.stderr)
        lines = proc.stdout.splitlines()
        self.assertIn("name:jay zhou", lines)
        self.assertIn("songList[1].duration:180", lines)
        self.assertIn("songList[0].lyric[0].text:Sparrow outside the window", lines)
        self.assertIn("extData.a:999", lines)

    def test_encode_emits_json(self) -> None:
        proc = self.run_cli("--encode", "--indent", "2")
        self.assertEqual(proc.returncode, 0, msg=proc.stderr)
        encoded = json.loads(proc.stdout)
        self.assertEqual(encoded["name"], "jay zhou")
        self.assertEqual(encoded["songNum"], 2)
        self.assertEqual(encoded["songList"][0]["duration"], 0)
        self.assertEqual(encoded["songList"][0]["strList"], [])

    def test_print_and_encode(self) -> None:
        proc = self.run_cli("--print", "--encode")
        self.assertEqual(proc.returncode, 0, msg=proc.stderr)
        self.assertTrue(proc.stdout.startswith("name:jay zhou\n"))
        self.assertEqual(json.loads(proc.stdout.splitlines()[-1])["creater"], "dahuaxia")

    def test_missing_required_field(self) -> None:
        self.doc.write_text('{"creater": "nobody"}', encoding="utf-8")
        proc = self.run_cli()
        self.assertEqual(proc.returncode, 1)
        self.assertIn("name: MISSING_FIELD", proc.stderr)

    def test_soft_failures_logged_at_debug(self) -> None:
        proc = self.run_cli("--log-level", "DEBUG")
        self.assertEqual(proc.returncode, 0, msg=proc.stderr)
        self.assertIn("songList[0].duration", proc.stderr)

    def test_schema_error_has_location(self) -> None:
        self.schema.write_text("[[reflect]] struct Bad {\n  int* p;\n};\n", encoding="utf-8")
        proc = self.run_cli(struct="Bad")
        self.assertEqual(proc.returncode, 1)
        self.assertRegex(proc.stderr, re.compile(r"schema\.h:2:3: error: only char\* pointers"))

    def test_unknown_struct(self) -> None:
        proc = self.run_cli(struct="Nope")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("struct Nope is not declared", proc.stderr)

    def test_missing_input_file(self) -> None:
        self.doc.unlink()
        proc = self.run_cli()
        self.assertEqual(proc.returncode, 1)
        self.assertIn("input file does not exist", proc.stderr)


if __name__ == "__main__":
    unittest.main()
