"""Narrow wrappers around the external tools the build orchestrates.

Each capability is a single blocking call that either produces its output
file or raises :class:`~saucepan.errors.ExternalToolFailure`.  The pipeline
receives a :class:`HostTools` instance rather than calling the functions
directly so a different implementation can be swapped in.
"""

from __future__ import annotations

import gzip
import hashlib
import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

from saucepan.errors import ExternalToolFailure, TemplateMissing
from saucepan.progress import format_progress_message, get_progress_parser
from saucepan.settings import ImageSize

LOG = logging.getLogger("saucepan.tools")

DIGEST_SIZE = 16
_CHUNK_SIZE = 64 * 1024


@dataclass
class CommandResult:
    """Light-weight wrapper representing the output of ``run_command``."""

    args: list[str]
    returncode: int
    output: str = ""


def _iter_output_segments(text: str) -> list[str]:
    """Return sanitized output *text* split into logical display segments."""

    if not text:
        return []
    return text.replace("\r", "\n").splitlines()


def run_command(command: list[str], *, check: bool = True, cwd: Path | None = None) -> CommandResult:
    """Run *command* to completion while mirroring its output to the logger."""

    command = [str(part) for part in command]
    parser = get_progress_parser(command)
    LOG.info("$ %s", " ".join(command))

    output_lines: list[str] = []
    process = subprocess.Popen(
        command,
        cwd=cwd,
        text=True,
        errors="replace",
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
    )
    assert process.stdout is not None  # For type-checkers.

    try:
        for raw_line in process.stdout:
            for segment in _iter_output_segments(raw_line):
                output_lines.append(segment + "\n")
                updates = parser.parse(segment) if parser else []
                if updates:
                    for update in updates:
                        LOG.info(format_progress_message(update))
                elif segment.strip():
                    LOG.debug(segment.rstrip())
    except BaseException:
        process.kill()
        process.wait()
        raise

    process.stdout.close()
    returncode = process.wait()
    if check and returncode != 0:
        raise subprocess.CalledProcessError(returncode, command, output="".join(output_lines))

    return CommandResult(command, returncode, "".join(output_lines))


def _run_tool(command: list[str], description: str) -> CommandResult:
    try:
        return run_command(command)
    except FileNotFoundError as exc:
        raise ExternalToolFailure(
            f"Could not {description}: '{command[0]}' is not installed",
            command=command,
        ) from exc
    except subprocess.CalledProcessError as exc:
        raise ExternalToolFailure(
            f"Could not {description}: '{command[0]}' exited with status {exc.returncode}",
            command=command,
            returncode=exc.returncode,
        ) from exc


def md5_digest(path: Path) -> bytes:
    """Return the 16-byte MD5 digest of the file at *path*."""

    digest = hashlib.md5()
    with Path(path).open("rb") as file_obj:
        for chunk in iter(lambda: file_obj.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.digest()


class HostTools:
    """Tool capabilities backed by commands installed on the host."""

    def resize_image(self, source: Path, destination: Path, size: ImageSize) -> None:
        _run_tool(
            ["convert", "-resize", size.geometry, str(source), str(destination)],
            f"resize {source.name}",
        )

    def squash_directory(
        self,
        source: Path,
        destination: Path,
        *,
        compression: str,
        block_size: str,
    ) -> None:
        _run_tool(
            [
                "mksquashfs",
                str(source),
                str(destination),
                "-noappend",
                "-comp",
                compression,
                "-b",
                block_size,
                "-all-root",
            ],
            "squash the staging tree",
        )

    def allocate(self, image: Path, size: int) -> None:
        _run_tool(["truncate", "--size", str(size), str(image)], "allocate the save area")

    def format_ext4(self, image: Path) -> None:
        _run_tool(["mkfs.ext4", "-q", "-F", str(image)], "format the save area")

    def make_directory(self, image: Path, name: str) -> None:
        # debugfs edits the image offline so nothing has to be mounted.
        _run_tool(["debugfs", "-w", "-R", f"mkdir {name}", str(image)], f"create '{name}' in the save area")

    def list_directory(self, image: Path) -> list[str]:
        """Return the entry names in the root directory of the ext4 *image*."""

        result = _run_tool(["debugfs", "-R", "ls -p", str(image)], "list the save area")
        # ls -p prints one "/inode/mode/uid/gid/name/size/" record per entry
        names = []
        for line in result.output.splitlines():
            if line.startswith("/"):
                fields = line.strip("/").split("/")
                if len(fields) > 4:
                    names.append(fields[4])
        return names

    def expand_gzip(self, source: Path, destination: Path) -> None:
        if not source.is_file():
            raise TemplateMissing(f"Save area template not found: {source}")
        LOG.info("Expanding %s", source)
        try:
            with gzip.open(source, "rb") as compressed, destination.open("wb") as expanded:
                shutil.copyfileobj(compressed, expanded, _CHUNK_SIZE)
        except (OSError, EOFError) as exc:
            raise TemplateMissing(f"Save area template {source} is corrupt: {exc}") from exc

    def checksum(self, path: Path) -> bytes:
        return md5_digest(path)
