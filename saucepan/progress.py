"""Utilities for parsing and formatting external tool progress output."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

__all__ = [
    "ProgressUpdate",
    "ProgressParser",
    "MksquashfsProgressParser",
    "get_progress_parser",
    "format_progress_message",
]


@dataclass
class ProgressUpdate:
    """Structured representation of an incremental progress update."""

    label: str
    percent: float | None = None
    current: int | None = None
    total: int | None = None


class ProgressParser:
    """Base class for command-specific progress parsers."""

    def parse(self, text: str) -> list[ProgressUpdate]:
        """Return progress updates extracted from *text*."""

        raise NotImplementedError


class MksquashfsProgressParser(ProgressParser):
    """Parse the progress bar emitted by ``mksquashfs``.

    The bar is redrawn in place, for example::

        [=========================|                ] 12/20  60%
    """

    _PROGRESS_RE = re.compile(
        r"^\[[^\]]*\]\s+(?P<current>\d+)/(?P<total>\d+)\s+(?P<percent>\d+)%$"
    )

    def __init__(self) -> None:
        self._last_percent: float | None = None

    def parse(self, text: str) -> list[ProgressUpdate]:
        match = self._PROGRESS_RE.match(text.strip())
        if not match:
            return []
        percent = float(match.group("percent"))
        # The bar is redrawn for every block; only report changes.
        if percent == self._last_percent:
            return []
        self._last_percent = percent
        return [
            ProgressUpdate(
                label="squashing",
                percent=percent,
                current=int(match.group("current")),
                total=int(match.group("total")),
            )
        ]


def get_progress_parser(command: Sequence[str]) -> ProgressParser | None:
    """Return a parser suitable for *command*, if one exists."""

    if not command:
        return None
    program = Path(command[0]).name
    if program == "mksquashfs":
        return MksquashfsProgressParser()
    return None


def format_progress_message(update: ProgressUpdate) -> str:
    """Return a human-readable string representing *update*."""

    parts: list[str] = [update.label]
    if update.percent is not None:
        parts.append(f"{update.percent:.0f}%")
    if update.current is not None:
        if update.total is not None:
            parts.append(f"({update.current}/{update.total})")
        else:
            parts.append(f"({update.current})")
    return " ".join(part for part in parts if part)
