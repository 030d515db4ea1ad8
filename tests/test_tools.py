import gzip
import hashlib
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from saucepan import tools
from saucepan.errors import ExternalToolFailure, TemplateMissing
from saucepan.progress import MksquashfsProgressParser
from saucepan.settings import BEZEL_SIZE
from saucepan.tools import HostTools, md5_digest, run_command


class RunCommandTests(unittest.TestCase):
    def test_output_is_captured_and_logged(self) -> None:
        with self.assertLogs(tools.LOG, level="DEBUG") as logs:
            result = run_command([sys.executable, "-c", "print('hello'); print('world')"])

        self.assertEqual(0, result.returncode)
        self.assertEqual("hello\nworld\n", result.output)
        log_text = "\n".join(logs.output)
        self.assertIn("$ ", log_text)
        self.assertIn("hello", log_text)

    def test_carriage_returns_split_segments(self) -> None:
        result = run_command([sys.executable, "-c", "import sys; sys.stdout.write('a\\rb\\n')"])

        self.assertEqual("a\nb\n", result.output)

    def test_non_zero_exit_raises(self) -> None:
        with self.assertRaises(subprocess.CalledProcessError) as ctx:
            run_command([sys.executable, "-c", "import sys; sys.exit(3)"])

        self.assertEqual(3, ctx.exception.returncode)

    def test_non_zero_exit_ignored_without_check(self) -> None:
        result = run_command([sys.executable, "-c", "import sys; sys.exit(3)"], check=False)

        self.assertEqual(3, result.returncode)

    def test_mksquashfs_progress_is_reported(self) -> None:
        script = "print('[====/    ] 1/2  50%'); print('[========-] 2/2 100%')"
        with mock.patch("saucepan.tools.get_progress_parser") as parser_factory:
            parser_factory.return_value = MksquashfsProgressParser()
            with self.assertLogs(tools.LOG, level="INFO") as logs:
                run_command([sys.executable, "-c", script])

        log_text = "\n".join(logs.output)
        self.assertIn("squashing 50% (1/2)", log_text)
        self.assertIn("squashing 100% (2/2)", log_text)

    def test_undecodable_output_is_replaced(self) -> None:
        script = "import sys; sys.stdout.buffer.write(b'\\xff\\xfe bad bytes\\n')"
        result = run_command([sys.executable, "-c", script])

        self.assertEqual(0, result.returncode)
        self.assertIn("bad bytes", result.output)
        self.assertIn("\ufffd", result.output)


class HostToolsTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tempdir = tempfile.TemporaryDirectory()
        self.root = Path(self._tempdir.name)
        self.tools = HostTools()

    def tearDown(self) -> None:
        self._tempdir.cleanup()

    def test_resize_command(self) -> None:
        with mock.patch("saucepan.tools.run_command") as run_mock:
            self.tools.resize_image(self.root / "in.png", self.root / "out.png", BEZEL_SIZE)

        run_mock.assert_called_once_with(
            ["convert", "-resize", "1280x720", str(self.root / "in.png"), str(self.root / "out.png")]
        )

    def test_squash_command(self) -> None:
        with mock.patch("saucepan.tools.run_command") as run_mock:
            self.tools.squash_directory(
                self.root / "staging", self.root / "game.tmp", compression="gzip", block_size="256K"
            )

        command = run_mock.call_args.args[0]
        self.assertEqual(["mksquashfs", str(self.root / "staging"), str(self.root / "game.tmp")], command[:3])
        self.assertIn("-all-root", command)
        self.assertIn("-noappend", command)
        self.assertEqual("gzip", command[command.index("-comp") + 1])
        self.assertEqual("256K", command[command.index("-b") + 1])

    def test_save_area_commands(self) -> None:
        image = self.root / "save.tmp"
        with mock.patch("saucepan.tools.run_command") as run_mock:
            self.tools.allocate(image, 4 * 1024 * 1024)
            self.tools.format_ext4(image)
            self.tools.make_directory(image, "upper")

        self.assertEqual(
            [
                mock.call(["truncate", "--size", "4194304", str(image)]),
                mock.call(["mkfs.ext4", "-q", "-F", str(image)]),
                mock.call(["debugfs", "-w", "-R", "mkdir upper", str(image)]),
            ],
            run_mock.mock_calls,
        )

    def test_list_directory_parses_debugfs_listing(self) -> None:
        image = self.root / "save.tmp"
        listing = (
            "debugfs 1.47.0 (5-Feb-2023)\n"
            "/2/040755/0/0/.//\n"
            "/2/040755/0/0/..//\n"
            "/11/040700/0/0/lost+found//\n"
            "/12/040755/0/0/upper//\n"
            "/13/040755/0/0/work//\n"
        )
        with mock.patch(
            "saucepan.tools.run_command", return_value=tools.CommandResult(["debugfs"], 0, listing)
        ) as run_mock:
            names = self.tools.list_directory(image)

        run_mock.assert_called_once_with(["debugfs", "-R", "ls -p", str(image)])
        self.assertEqual([".", "..", "lost+found", "upper", "work"], names)

    def test_failed_command_becomes_tool_failure(self) -> None:
        error = subprocess.CalledProcessError(1, ["mkfs.ext4"])
        with mock.patch("saucepan.tools.run_command", side_effect=error):
            with self.assertRaises(ExternalToolFailure) as ctx:
                self.tools.format_ext4(self.root / "save.tmp")

        self.assertEqual(1, ctx.exception.returncode)
        self.assertEqual("mkfs.ext4", ctx.exception.command[0])
        self.assertIs(error, ctx.exception.__cause__)

    def test_missing_command_becomes_tool_failure(self) -> None:
        with mock.patch("saucepan.tools.run_command", side_effect=FileNotFoundError("mksquashfs")):
            with self.assertRaises(ExternalToolFailure) as ctx:
                self.tools.squash_directory(self.root, self.root / "out", compression="gzip", block_size="256K")

        self.assertIn("not installed", str(ctx.exception))
        self.assertIsNone(ctx.exception.returncode)

    def test_expand_gzip(self) -> None:
        source = self.root / "alt.sav.gz"
        with gzip.open(source, "wb") as compressed:
            compressed.write(b"settings" * 100)

        self.tools.expand_gzip(source, self.root / "save.tmp")

        self.assertEqual(b"settings" * 100, (self.root / "save.tmp").read_bytes())

    def test_expand_gzip_truncated(self) -> None:
        source = self.root / "alt.sav.gz"
        source.write_bytes(gzip.compress(b"settings" * 100)[:20])

        with self.assertRaises(TemplateMissing):
            self.tools.expand_gzip(source, self.root / "save.tmp")

    def test_checksum(self) -> None:
        path = self.root / "data.bin"
        path.write_bytes(b"x" * 200_000)

        self.assertEqual(hashlib.md5(b"x" * 200_000).digest(), self.tools.checksum(path))
        self.assertEqual(16, len(md5_digest(path)))


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
