"""Build the read-only content image and the writable save area."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from saucepan.errors import ExternalToolFailure, TemplateMissing
from saucepan.settings import Settings
from saucepan.tools import DIGEST_SIZE, HostTools

LOG = logging.getLogger("saucepan.images")

TRAILER_PADDING = 32
TRAILER_SIZE = DIGEST_SIZE + TRAILER_PADDING + DIGEST_SIZE


@dataclass
class ContentImage:
    """A squashfs image with its checksum trailer appended in place.

    Until :meth:`seal` is called the trailer holds only the image digest and
    the zero padding; sealing appends the save area digest.
    """

    path: Path
    squashfs_size: int
    digest: bytes
    sealed: bool = False

    def seal(self, save_digest: bytes) -> None:
        if self.sealed:
            raise ValueError(f"{self.path} already carries a save area checksum")
        if len(save_digest) != DIGEST_SIZE:
            raise ValueError(f"Save area checksum must be {DIGEST_SIZE} bytes, got {len(save_digest)}")
        with self.path.open("ab") as image:
            image.write(save_digest)
        self.sealed = True


@dataclass
class SaveImage:
    """A fixed-size ext4 image and its digest."""

    path: Path
    digest: bytes


def build_content_image(
    staging_root: Path, destination: Path, settings: Settings, *, tools: HostTools
) -> ContentImage:
    """Squash *staging_root* into *destination* and append its trailer."""

    tools.squash_directory(
        staging_root,
        destination,
        compression=settings.squash_compression,
        block_size=settings.squash_block_size,
    )
    squashfs_size = destination.stat().st_size
    digest = tools.checksum(destination)

    # 16-byte digest of the squashfs image followed by reserved empty space
    with destination.open("ab") as image:
        image.write(digest)
        image.write(bytes(TRAILER_PADDING))

    LOG.info("Content image is %d bytes (md5 %s)", squashfs_size, digest.hex())
    return ContentImage(path=destination, squashfs_size=squashfs_size, digest=digest)


def build_save_area(destination: Path, settings: Settings, *, alternate: bool, tools: HostTools) -> SaveImage:
    """Create the writable save area at *destination*.

    A fresh save area is a new ext4 file system holding the overlay
    directories.  The alternate save area is expanded from a pre-built
    template carrying different default settings.
    """

    if alternate:
        tools.expand_gzip(settings.alternate_save_template, destination)
    else:
        tools.allocate(destination, settings.save_area_size)
        tools.format_ext4(destination)
        for name in settings.save_area_dirs:
            tools.make_directory(destination, name)

    size = destination.stat().st_size
    if size != settings.save_area_size:
        message = f"Save area is {size} bytes, expected {settings.save_area_size}"
        if alternate:
            raise TemplateMissing(f"{message} (template {settings.alternate_save_template})")
        raise ExternalToolFailure(message)
    if alternate:
        _check_template_directories(destination, settings, tools)

    digest = tools.checksum(destination)
    LOG.info("Save area is ready (md5 %s)", digest.hex())
    return SaveImage(path=destination, digest=digest)


def _check_template_directories(image: Path, settings: Settings, tools: HostTools) -> None:
    template = settings.alternate_save_template
    try:
        entries = set(tools.list_directory(image))
    except ExternalToolFailure as exc:
        raise TemplateMissing(f"Save area template {template} is not an ext4 file system") from exc
    missing = [name for name in settings.save_area_dirs if name not in entries]
    if missing:
        raise TemplateMissing(f"Save area template {template} lacks directories: {', '.join(missing)}")
