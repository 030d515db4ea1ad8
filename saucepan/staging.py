"""Materialise the on-device directory layout before it is squashed."""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping
from xml.sax.saxutils import escape

from saucepan.assets import normalize_image
from saucepan.errors import TemplateMissing
from saucepan.models import BuildRequest, ResolvedAssets
from saucepan.settings import Settings
from saucepan.tools import HostTools

LOG = logging.getLogger("saucepan.staging")

STAGING_DIRS = ("boxart", "emu", "roms", "save")

BOXART_PATH = "boxart/boxart.png"
BEZEL_PATH = "boxart/addon.z.png"
TITLE_PATH = "title.png"
DESCRIPTOR_PATH = "cartridge.xml"
LAUNCH_SCRIPT_PATH = "exec.sh"


@dataclass
class StagingTree:
    """Paths written into a staging directory."""

    root: Path
    rom: Path
    descriptor: Path
    launch_script: Path
    launch_template: Path
    boxart: Path | None = None
    bezel: Path | None = None
    core: Path | None = None


def render_template(template: Path, replacements: Mapping[str, str]) -> str:
    """Return *template* with each placeholder replaced, in order."""

    if not template.is_file():
        raise TemplateMissing(f"Template not found: {template}")
    text = template.read_text()
    for placeholder, value in replacements.items():
        text = text.replace(placeholder, value)
    return text


def build_staging_tree(
    assets: ResolvedAssets,
    request: BuildRequest,
    settings: Settings,
    root: Path,
    *,
    tools: HostTools,
) -> StagingTree:
    """Populate *root* with everything the container needs at run time."""

    for name in STAGING_DIRS:
        (root / name).mkdir(parents=True, exist_ok=True)

    boxart = None
    if assets.boxart is not None:
        boxart = root / BOXART_PATH
        normalize_image(assets.boxart, boxart, settings.boxart_size, resize=request.resize, tools=tools)

    bezel = None
    if assets.bezel is not None:
        bezel = root / BEZEL_PATH
        normalize_image(assets.bezel, bezel, settings.bezel_size, resize=request.resize, tools=tools)

    core = None
    if assets.core.is_custom:
        core = root / "emu" / assets.core.name
        shutil.copy2(assets.core.source, core)

    rom = root / "roms" / assets.rom.name
    shutil.copy2(assets.rom, rom)

    if boxart is not None:
        title = root / TITLE_PATH
        if title.is_symlink() or title.exists():
            title.unlink()
        os.symlink(BOXART_PATH, title)

    descriptor = root / DESCRIPTOR_PATH
    descriptor.write_text(
        render_template(settings.descriptor_template, {"GAME_NAME": escape(request.game_name)})
    )

    # The bezel launcher expects boxart/addon.z.png to exist.
    launch_template = settings.bezel_launch_template if bezel is not None else settings.launch_template
    launch_script = root / LAUNCH_SCRIPT_PATH
    launch_script.write_text(
        render_template(
            launch_template,
            {"CORE_PATH": assets.core.run_path, "ROM_NAME": assets.rom.name},
        )
    )
    launch_script.chmod(0o755)

    LOG.info("Staged %s in %s", request.game_name, root)
    return StagingTree(
        root=root,
        rom=rom,
        descriptor=descriptor,
        launch_script=launch_script,
        launch_template=launch_template,
        boxart=boxart,
        bezel=bezel,
        core=core,
    )
