"""Value objects exchanged between the pipeline stages."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from saucepan.errors import InputConflict, InvalidRequest

STOCK = "stock"
CUSTOM = "custom"

# Characters in the game name that are likely to confuse the file system
_UNSAFE_NAME_RE = re.compile(r"[ :/\\]")


def sanitize_game_name(name: str) -> str:
    return _UNSAFE_NAME_RE.sub("_", name)


@dataclass(frozen=True)
class BuildRequest:
    """A validated request to cook one game into a container.

    At most one of ``core`` (a file in ``resources/cores``) and
    ``stock_core`` (an alias for a core already on the device) may be set.
    When neither is set the default core is used.
    """

    game_name: str
    rom_name: str
    core: str | None = None
    stock_core: str | None = None
    resize: bool = True
    alternate_save: bool = False

    def __post_init__(self) -> None:
        if self.core and self.stock_core:
            raise InputConflict(
                f"Multiple cores specified: custom core '{self.core}' and stock core '{self.stock_core}'"
            )
        if not self.game_name:
            raise InvalidRequest("A game name is required.")
        if not self.rom_name:
            raise InvalidRequest("A ROM name is required.")

    @property
    def sanitized_name(self) -> str:
        return sanitize_game_name(self.game_name)

    @property
    def container_name(self) -> str:
        return f"AddOn_{self.sanitized_name}.UCE"


@dataclass(frozen=True)
class CoreDescriptor:
    """The emulator core a container launches.

    Stock cores are referenced at their device path and never bundled.
    Custom cores are copied from ``source`` into ``emu/`` and launched from
    there.
    """

    name: str
    origin: str
    run_path: str
    source: Path | None = None

    @property
    def is_stock(self) -> bool:
        return self.origin == STOCK

    @property
    def is_custom(self) -> bool:
        return self.origin == CUSTOM


@dataclass(frozen=True)
class ResolvedAssets:
    """Source files chosen for a build, before anything is staged."""

    rom: Path
    core: CoreDescriptor
    boxart: Path | None = None
    bezel: Path | None = None
