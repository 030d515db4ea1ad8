"""Fixed paths, sizes and core tables used by the container build."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Mapping

REPO_ROOT = Path(__file__).resolve().parent.parent

# Built-in cores located in /emulator on the device file system
STOCK_CORES: dict[str, str] = {
    "genesis": "genesis_plus_gx_libretro.so",
    "mame2003plus": "mame2003_plus_libretro.so",
    "mame2010": "mame2010_libretro.so",
    "nes": "quicknes_libretro.so",
    "snes": "snes_mtfaust-arm64-cortex-a53.so",
    "atari2600": "stella_libretro.so",
    "colecovision": "libcv.so",
}
STOCK_CORE_DIR = "/emulator"

# Used when neither a custom nor a stock core is requested. It is looked up
# in resources/cores like any other custom core.
DEFAULT_CORE = "mame2003_plus_libretro.so"

SAVE_AREA_SIZE = 4 * 1024 * 1024
SAVE_AREA_DIRS = ("upper", "work")

SQUASH_COMPRESSION = "gzip"
SQUASH_BLOCK_SIZE = "256K"


@dataclass(frozen=True)
class ImageSize:
    """Target dimensions handed to the resize tool."""

    width: int
    height: int

    @property
    def geometry(self) -> str:
        return f"{self.width}x{self.height}"


BOXART_SIZE = ImageSize(222, 306)
BEZEL_SIZE = ImageSize(1280, 720)


@dataclass(frozen=True)
class Settings:
    """Configuration passed explicitly into every resolver and builder."""

    root: Path = REPO_ROOT
    resources_dir: Path = REPO_ROOT / "resources"
    defaults_dir: Path = REPO_ROOT / "defaults"
    target_dir: Path = REPO_ROOT / "target"
    working_dir: Path | None = None
    stock_cores: Mapping[str, str] = field(default_factory=lambda: dict(STOCK_CORES))
    stock_core_dir: str = STOCK_CORE_DIR
    default_core: str = DEFAULT_CORE
    boxart_size: ImageSize = BOXART_SIZE
    bezel_size: ImageSize = BEZEL_SIZE
    save_area_size: int = SAVE_AREA_SIZE
    save_area_dirs: tuple[str, ...] = SAVE_AREA_DIRS
    squash_compression: str = SQUASH_COMPRESSION
    squash_block_size: str = SQUASH_BLOCK_SIZE

    @classmethod
    def for_root(cls, root: Path, **overrides: object) -> "Settings":
        """Return settings whose data directories live under *root*."""

        root = Path(root)
        base = cls(
            root=root,
            resources_dir=root / "resources",
            defaults_dir=root / "defaults",
            target_dir=root / "target",
        )
        return replace(base, **overrides) if overrides else base

    @property
    def bezels_dir(self) -> Path:
        return self.resources_dir / "bezels"

    @property
    def boxart_dir(self) -> Path:
        return self.resources_dir / "boxart"

    @property
    def cores_dir(self) -> Path:
        return self.resources_dir / "cores"

    @property
    def roms_dir(self) -> Path:
        return self.resources_dir / "roms"

    @property
    def default_boxart(self) -> Path:
        return self.defaults_dir / "boxart.png"

    @property
    def default_bezel(self) -> Path:
        return self.defaults_dir / "bezel.png"

    @property
    def descriptor_template(self) -> Path:
        return self.defaults_dir / "cartridge.xml"

    @property
    def launch_template(self) -> Path:
        return self.defaults_dir / "exec.sh"

    @property
    def bezel_launch_template(self) -> Path:
        return self.defaults_dir / "exec_bezel.sh"

    @property
    def alternate_save_template(self) -> Path:
        return self.defaults_dir / "alt.sav.gz"
