"""
Tests for the secern command line.
Uses typer.testing.CliRunner for isolated CLI runs.
"""

import io
import os
import shutil
import tempfile
import unittest
from unittest.mock import Mock, patch

import yaml
from typer.testing import CliRunner

from secern import __version__
from secern.core.errors import DownstreamClosed
from secern.main import app, open_stdin

runner = CliRunner()


class TestCli(unittest.TestCase):
    """Exit codes and end-to-end routing through the CLI."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def path(self, *parts):
        return os.path.join(self.temp_dir, *parts)

    def write_config(self, sinks, name="config.yaml"):
        path = self.path(name)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump({"sinks": sinks}, f, allow_unicode=True)
        return path

    def read(self, *parts):
        with open(self.path(*parts), encoding="utf-8", newline="") as f:
            return f.read()

    def test_version(self):
        result = runner.invoke(app, ["--version"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn(f"secern {__version__}", result.stdout)

    def test_gen_template(self):
        target = self.path("template.yaml")
        result = runner.invoke(app, ["-q", "-g", target])
        self.assertEqual(result.exit_code, 0)
        with open(target, encoding="utf-8") as f:
            doc = yaml.safe_load(f)
        self.assertEqual(len(doc["sinks"]), 2)

    def test_gen_template_existing_target(self):
        target = self.path("template.yaml")
        with open(target, "w", encoding="utf-8") as f:
            f.write("x: 1\n")
        result = runner.invoke(app, ["-q", "--gen-template", target])
        self.assertEqual(result.exit_code, 1)

    def test_gen_template_wins_over_config(self):
        target = self.path("template.yaml")
        result = runner.invoke(app, ["-q", "-g", target, "-c", self.path("missing.yaml")])
        self.assertEqual(result.exit_code, 0)
        self.assertTrue(os.path.exists(target))

    def test_missing_config_flag(self):
        result = runner.invoke(app, ["-q"])
        self.assertEqual(result.exit_code, 1)

    def test_unreadable_config(self):
        result = runner.invoke(app, ["-q", "-c", self.path("missing.yaml")])
        self.assertEqual(result.exit_code, 1)

    def test_round_trip(self):
        out1 = self.path("out1.txt")
        config = self.write_config([{"name": "digits", "file_name": out1, "patterns": ["^[0-9]+$"]}])

        result = runner.invoke(app, ["-q", "-c", config], input="123\nabc\n456\n")

        self.assertEqual(result.exit_code, 0)
        self.assertEqual(self.read("out1.txt"), "123\n456\n")
        self.assertEqual(result.stdout, "abc\n")

    def test_no_stdout_drops_unmatched(self):
        out1 = self.path("out1.txt")
        config = self.write_config([{"name": "digits", "file_name": out1, "patterns": ["^[0-9]+$"]}])

        result = runner.invoke(app, ["-q", "-n", "-c", config], input="123\nabc\n")

        self.assertEqual(result.exit_code, 0)
        self.assertEqual(self.read("out1.txt"), "123\n")
        self.assertEqual(result.stdout, "")

    def test_nested_output_and_discard(self):
        nested = self.path("a", "b", "hits.txt")
        config = self.write_config([
            {"name": "drop", "file_name": "null", "patterns": ["^#"]},
            {"name": "hits", "file_name": nested, "patterns": ["hit"], "invert": False},
        ])

        result = runner.invoke(app, ["-q", "-c", config], input="# comment\nhit one\nmiss\n")

        self.assertEqual(result.exit_code, 0)
        self.assertEqual(self.read("a", "b", "hits.txt"), "hit one\n")
        self.assertEqual(result.stdout, "miss\n")

    def test_validate_only(self):
        out = self.path("never.txt")
        config = self.write_config([
            {"name": "first", "file_name": out, "patterns": ["a", "b"]},
            {"name": "second", "file_name": "null", "patterns": ["c"], "invert": True},
        ])

        result = runner.invoke(app, ["-v", "-c", config], input="a\n")

        self.assertEqual(result.exit_code, 0)
        self.assertIn("first", result.stdout)
        self.assertIn("patterns=2", result.stdout)
        self.assertIn("invert=true", result.stdout)
        self.assertIn("Configuration is valid: 2 sink(s)", result.stdout)
        self.assertFalse(os.path.exists(out))

    def test_invalid_patterns_create_no_files(self):
        config = self.write_config([
            {"name": "one", "file_name": self.path("1.txt"), "patterns": ["(bad"]},
            {"name": "two", "file_name": self.path("2.txt"), "patterns": ["fine"]},
            {"name": "three", "file_name": self.path("3.txt"), "patterns": ["[bad"]},
        ])

        for args in (["-q", "-c", config], ["-q", "-v", "-c", config]):
            result = runner.invoke(app, args, input="x\n")
            self.assertEqual(result.exit_code, 1)
        self.assertEqual(sorted(os.listdir(self.temp_dir)), ["config.yaml"])

    def test_schema_error_exits_one(self):
        config = self.write_config([{"name": "s", "file_name": "o.txt"}])
        result = runner.invoke(app, ["-q", "-c", config], input="x\n")
        self.assertEqual(result.exit_code, 1)

    def test_invalid_utf8_input_exits_one(self):
        out = self.path("out.txt")
        config = self.write_config([{"name": "all", "file_name": out, "patterns": ["."]}])

        result = runner.invoke(app, ["-q", "-c", config], input=b"fine\n\xff\n")

        self.assertEqual(result.exit_code, 1)
        self.assertEqual(self.read("out.txt"), "fine\n")

    def test_downstream_closed_exits_zero(self):
        config = self.write_config([{"name": "s", "file_name": "null", "patterns": ["x"]}])
        with patch("secern.main.SiftEngine.run", side_effect=DownstreamClosed("closed")):
            result = runner.invoke(app, ["-q", "-c", config], input="a\n")
        self.assertEqual(result.exit_code, 0)


class TestOpenStdin(unittest.TestCase):
    """stdin reader lifetime."""

    def test_reader_closed_but_descriptor_kept(self):
        read_fd, write_fd = os.pipe()
        try:
            os.write(write_fd, b"a\nb\n")
            os.close(write_fd)
            fake_stdin = Mock()
            fake_stdin.fileno.return_value = read_fd

            with patch("secern.main.sys.stdin", fake_stdin):
                with open_stdin() as stdin:
                    self.assertEqual(stdin.read(), b"a\nb\n")
            self.assertTrue(stdin.closed)
            # fd 0 stand-in is still usable after the reader closed
            os.fstat(read_fd)
        finally:
            os.close(read_fd)

    def test_captured_stdin_left_open(self):
        buffer = io.BytesIO(b"x\n")
        fake_stdin = Mock()
        fake_stdin.fileno.side_effect = io.UnsupportedOperation("fileno")
        fake_stdin.buffer = buffer

        with patch("secern.main.sys.stdin", fake_stdin):
            with open_stdin() as stdin:
                self.assertIs(stdin, buffer)
        self.assertFalse(buffer.closed)


if __name__ == "__main__":
    unittest.main()
