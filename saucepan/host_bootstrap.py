"""Check that the host tools the build shells out to are installed.

The container build needs ``mksquashfs``, ``truncate``, ``mkfs.ext4`` and
``debugfs``; ImageMagick's ``convert`` is optional.  Availability is checked
with :func:`shutil.which`.  Installing missing packages through apt-get or dnf
only happens when the caller asks for it, and never prompts for a password.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from typing import Iterable, Mapping, Sequence

from saucepan.errors import ToolUnavailable

LOG = logging.getLogger("saucepan.bootstrap")

DEPENDENCY_HINTS: dict[str, str] = {
    "mksquashfs": "sudo apt-get install squashfs-tools",
    "truncate": "sudo apt-get install coreutils",
    "mkfs.ext4": "sudo apt-get install e2fsprogs",
    "debugfs": "sudo apt-get install e2fsprogs",
    "convert": "sudo apt-get install imagemagick",
}

APT_PACKAGE_MAP: dict[str, Sequence[str]] = {
    "mksquashfs": ["squashfs-tools"],
    "truncate": ["coreutils"],
    "mkfs.ext4": ["e2fsprogs"],
    "debugfs": ["e2fsprogs"],
    "convert": ["imagemagick"],
}

DNF_PACKAGE_MAP: dict[str, Sequence[str]] = {
    "mksquashfs": ["squashfs-tools"],
    "truncate": ["coreutils"],
    "mkfs.ext4": ["e2fsprogs"],
    "debugfs": ["e2fsprogs"],
    "convert": ["ImageMagick"],
}

PACKAGE_MAP: dict[str, Mapping[str, Sequence[str]]] = {
    "apt-get": APT_PACKAGE_MAP,
    "dnf": DNF_PACKAGE_MAP,
}


def find_missing_commands(commands: Iterable[str]) -> list[str]:
    return [cmd for cmd in dict.fromkeys(commands) if shutil.which(cmd) is None]


def ensure_commands(
    commands: Iterable[str],
    *,
    install: bool = False,
    logger: logging.Logger | None = None,
) -> list[str]:
    """Return the *commands* that are not available on ``PATH``.

    With ``install=True`` the packages providing missing commands are
    installed first and the check is repeated.
    """

    logger = logger or LOG
    commands = list(dict.fromkeys(commands))
    missing = find_missing_commands(commands)
    if missing and install:
        _install_for(missing, logger)
        missing = find_missing_commands(commands)
    return missing


def ensure_tool(command: str, *, install: bool = False, logger: logging.Logger | None = None) -> None:
    """Raise :class:`ToolUnavailable` unless *command* is available."""

    if ensure_commands([command], install=install, logger=logger):
        message = f"Required command '{command}' is not available."
        hint = DEPENDENCY_HINTS.get(command)
        if hint:
            message = f"{message} Install it manually, for example: {hint}"
        raise ToolUnavailable(message)


def _install_for(commands: Sequence[str], logger: logging.Logger) -> None:
    manager = _detect_package_manager()
    if manager is None:
        logger.warning("No supported package manager found, install the missing tools manually.")
        return

    packages = sorted({pkg for cmd in commands for pkg in PACKAGE_MAP[manager].get(cmd, [])})
    if not packages:
        logger.debug("No package mapping available for: %s", ", ".join(commands))
        return

    prefix = [manager]
    if os.geteuid() != 0:
        sudo = shutil.which("sudo")
        if sudo is None:
            logger.warning("Installing packages needs root privileges and sudo is not available.")
            return
        # -n fails instead of waiting for a password
        prefix = [sudo, "-n", manager]

    logger.info("Installing missing packages via %s: %s", manager, ", ".join(packages))
    steps = [prefix + ["install", "-y", *packages]]
    if manager == "apt-get":
        steps.insert(0, prefix + ["update"])
    try:
        for step in steps:
            logger.info("$ %s", " ".join(step))
            subprocess.run(step, check=True, stdin=subprocess.DEVNULL)
    except subprocess.CalledProcessError as exc:
        logger.warning("Automatic installation via %s failed with exit code %s.", manager, exc.returncode)


def _detect_package_manager() -> str | None:
    for manager in PACKAGE_MAP:
        if shutil.which(manager):
            return manager
    return None
