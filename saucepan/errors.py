"""Exceptions raised while cooking a container.

Every error derives from :class:`RuntimeError` so callers can treat any
failure as a single build error and report it to the user.
"""

from __future__ import annotations

from typing import Sequence


class SaucepanError(RuntimeError):
    """Base class for all build failures."""


class InvalidRequest(SaucepanError):
    """Raised when a build request is missing required information."""


class InputConflict(InvalidRequest):
    """Raised when mutually exclusive selections are supplied together."""


class MissingRom(SaucepanError):
    """Raised when no ROM file matches the requested ROM name."""


class MissingCustomCore(SaucepanError):
    """Raised when a custom core is not present in the managed cores directory."""


class UnknownStockAlias(SaucepanError):
    """Raised when a stock core alias is not part of the alias table."""


class ToolUnavailable(SaucepanError):
    """Raised when an external command cannot be found on ``PATH``."""


class TemplateMissing(SaucepanError):
    """Raised when a bundled template is absent or unreadable."""


class CorruptContainer(SaucepanError):
    """Raised when a container's trailer does not match its contents."""


class ExternalToolFailure(SaucepanError):
    """Raised when an external command fails or cannot be started."""

    def __init__(
        self,
        message: str,
        *,
        command: Sequence[str] | None = None,
        returncode: int | None = None,
    ) -> None:
        super().__init__(message)
        self.command = list(command) if command is not None else None
        self.returncode = returncode
