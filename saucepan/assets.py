"""Locate the ROM and artwork for a build and normalise images."""

from __future__ import annotations

import glob
import logging
import shutil
from pathlib import Path

from saucepan.cores import resolve_core
from saucepan.errors import MissingRom
from saucepan.models import BuildRequest, ResolvedAssets
from saucepan.settings import ImageSize, Settings
from saucepan.tools import HostTools

LOG = logging.getLogger("saucepan.assets")


def find_asset(source_dir: Path, base_name: str) -> Path | None:
    """Return a file in *source_dir* named ``<base_name>.<extension>``.

    Only the top level of *source_dir* is scanned.  If several files share
    the base name, whichever the directory listing yields first is returned,
    so callers should keep one file per base name.
    """

    if not source_dir.is_dir():
        return None
    for candidate in source_dir.glob(f"{glob.escape(base_name)}.*"):
        if candidate.is_file():
            return candidate
    return None


def resolve_rom(settings: Settings, rom_name: str) -> Path:
    rom = find_asset(settings.roms_dir, rom_name)
    if rom is None:
        raise MissingRom(f'Could not locate ROM file for "{rom_name}" in {settings.roms_dir}')
    LOG.info("Found ROM file: %s", rom)
    return rom


def resolve_boxart(settings: Settings, rom_name: str) -> Path | None:
    boxart = find_asset(settings.boxart_dir, rom_name)
    if boxart is not None:
        LOG.info("Found custom box art: %s", boxart)
        return boxart
    if settings.default_boxart.is_file():
        LOG.info("Custom box art not found. Using default box art")
        return settings.default_boxart
    LOG.warning("No custom or default box art found; the container will have no box art")
    return None


def resolve_bezel(settings: Settings, rom_name: str) -> Path | None:
    bezel = find_asset(settings.bezels_dir, rom_name)
    if bezel is not None:
        LOG.info("Found custom bezel: %s", bezel)
        return bezel
    if settings.default_bezel.is_file():
        LOG.info("Custom bezel not found. Using default bezel.")
        return settings.default_bezel
    LOG.info("Not using a bezel")
    return None


def resolve_assets(request: BuildRequest, settings: Settings) -> ResolvedAssets:
    """Pick every input file for *request* without touching the disk.

    The core is checked first so a missing custom core is reported before
    anything else.
    """

    core = resolve_core(request, settings)
    rom = resolve_rom(settings, request.rom_name)
    return ResolvedAssets(
        rom=rom,
        core=core,
        boxart=resolve_boxart(settings, request.rom_name),
        bezel=resolve_bezel(settings, request.rom_name),
    )


def normalize_image(source: Path, destination: Path, size: ImageSize, *, resize: bool, tools: HostTools) -> None:
    """Write *source* to *destination*, resized to *size* when *resize* is set."""

    if resize:
        tools.resize_image(source, destination, size)
    else:
        shutil.copy2(source, destination)
