"""Assemble UCE containers and read their layout back.

A container is laid out as::

    squashfs image                 N bytes
    MD5(squashfs image)            16 bytes
    reserved, zero-filled          32 bytes
    MD5(save area)                 16 bytes
    save area (ext4)               4 MiB

:func:`build_container` runs the whole pipeline for one request.  All
intermediate files live in a private temporary directory that is removed
however the build ends, and the container only appears at its target path
once it is complete.
"""

from __future__ import annotations

import contextlib
import hashlib
import logging
import os
import shutil
import signal
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path

from saucepan.assets import resolve_assets
from saucepan.errors import CorruptContainer
from saucepan.images import TRAILER_PADDING, TRAILER_SIZE, ContentImage, SaveImage, build_content_image, build_save_area
from saucepan.models import BuildRequest, ResolvedAssets
from saucepan.settings import Settings
from saucepan.staging import build_staging_tree
from saucepan.tools import DIGEST_SIZE, HostTools

LOG = logging.getLogger("saucepan.build")

TERMINATION_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGTERM", "SIGHUP") if hasattr(signal, name)
)


def assemble_container(content: ContentImage, save: SaveImage, output: Path) -> Path:
    """Write ``content`` followed by ``save`` to *output*."""

    content.seal(save.digest)

    output.parent.mkdir(parents=True, exist_ok=True)
    partial = output.with_name(output.name + ".part")
    try:
        with partial.open("wb") as container:
            for part in (content.path, save.path):
                with part.open("rb") as source:
                    shutil.copyfileobj(source, container)
        os.replace(partial, output)
    finally:
        if partial.exists():
            partial.unlink()
    return output


@contextlib.contextmanager
def exit_on_termination():
    """Raise :class:`SystemExit` on SIGTERM/SIGHUP so ``finally`` blocks run.

    The default action for these signals ends the process without unwinding
    the stack, which would leave the working directory behind.  Previous
    handlers are restored on exit.  Signal handlers can only be installed
    from the main thread; elsewhere this is a no-op.
    """

    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _terminate(signum, frame):
        raise SystemExit(128 + signum)

    previous = {signum: signal.signal(signum, _terminate) for signum in TERMINATION_SIGNALS}
    try:
        yield
    finally:
        for signum, handler in previous.items():
            if handler is not None:
                signal.signal(signum, handler)


def build_container(
    request: BuildRequest,
    settings: Settings | None = None,
    *,
    tools: HostTools | None = None,
    assets: ResolvedAssets | None = None,
) -> Path:
    """Cook *request* into a container and return its path.

    *assets* may be passed in when the caller has already resolved them.
    """

    settings = settings or Settings()
    tools = tools or HostTools()

    LOG.info('Building "%s" from sources named "%s"...', request.game_name, request.rom_name)
    if assets is None:
        assets = resolve_assets(request, settings)

    if settings.working_dir is not None:
        settings.working_dir.mkdir(parents=True, exist_ok=True)
    with exit_on_termination(), tempfile.TemporaryDirectory(
        prefix=f"AddOn_{request.sanitized_name}_", dir=settings.working_dir
    ) as tmpdir:
        workspace = Path(tmpdir)
        staging_root = workspace / "staging"
        staging_root.mkdir()

        build_staging_tree(assets, request, settings, staging_root, tools=tools)
        content = build_content_image(staging_root, workspace / "game.tmp", settings, tools=tools)
        save = build_save_area(
            workspace / "save.tmp", settings, alternate=request.alternate_save, tools=tools
        )
        output = assemble_container(content, save, settings.target_dir / request.container_name)

    LOG.info("Creation complete! UCE file written to: %s", output)
    return output


@dataclass(frozen=True)
class ContainerLayout:
    """Offsets and checksums read back from an existing container."""

    path: Path
    squashfs_size: int
    squashfs_digest: bytes
    padding: bytes
    save_digest: bytes
    save_area_offset: int
    content_digest_ok: bool
    save_digest_ok: bool

    @property
    def padding_ok(self) -> bool:
        return self.padding == bytes(TRAILER_PADDING)

    @property
    def valid(self) -> bool:
        return self.content_digest_ok and self.save_digest_ok and self.padding_ok


def inspect_container(path: Path, save_area_size: int) -> ContainerLayout:
    """Split the container at *path* into its parts and verify the trailer."""

    total = path.stat().st_size
    squashfs_size = total - save_area_size - TRAILER_SIZE
    if squashfs_size < 0:
        raise ValueError(f"{path} is too small ({total} bytes) to be a container")

    squashfs_hash = hashlib.md5()
    save_hash = hashlib.md5()
    with path.open("rb") as container:
        remaining = squashfs_size
        while remaining:
            chunk = container.read(min(remaining, 64 * 1024))
            squashfs_hash.update(chunk)
            remaining -= len(chunk)
        squashfs_digest = container.read(DIGEST_SIZE)
        padding = container.read(TRAILER_PADDING)
        save_digest = container.read(DIGEST_SIZE)
        for chunk in iter(lambda: container.read(64 * 1024), b""):
            save_hash.update(chunk)

    return ContainerLayout(
        path=path,
        squashfs_size=squashfs_size,
        squashfs_digest=squashfs_digest,
        padding=padding,
        save_digest=save_digest,
        save_area_offset=squashfs_size + TRAILER_SIZE,
        content_digest_ok=squashfs_hash.digest() == squashfs_digest,
        save_digest_ok=save_hash.digest() == save_digest,
    )


def verify_container(path: Path, save_area_size: int) -> ContainerLayout:
    """Inspect *path* and raise :class:`CorruptContainer` unless it is valid."""

    try:
        layout = inspect_container(path, save_area_size)
    except ValueError as exc:
        raise CorruptContainer(str(exc)) from exc

    problems = []
    if not layout.content_digest_ok:
        problems.append("squashfs checksum mismatch")
    if not layout.padding_ok:
        problems.append("reserved bytes are not zero")
    if not layout.save_digest_ok:
        problems.append("save area checksum mismatch")
    if problems:
        raise CorruptContainer(f"{path} failed verification: {', '.join(problems)}")

    LOG.info(
        "Verified %s: squashfs image %d bytes, save area at offset %d",
        path,
        layout.squashfs_size,
        layout.save_area_offset,
    )
    return layout
