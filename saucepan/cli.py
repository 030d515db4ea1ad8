"""Command-line front end: assemble ingredients into a UCE add-on file.

Usage::

    saucepan [--core NAME | --stock-core ALIAS] [--no-resize] [--alt-defaults]
             [--bootstrap] [--verify] GAME_NAME ROM_NAME

``ROM_NAME`` is the base name of a file in ``resources/roms`` without its
extension.  Custom box art and bezels are picked up from
``resources/boxart/<ROM_NAME>.*`` and ``resources/bezels/<ROM_NAME>.*``.
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from pathlib import Path

from saucepan.assets import resolve_assets
from saucepan.container import build_container, verify_container
from saucepan.errors import InputConflict, InvalidRequest, SaucepanError, ToolUnavailable
from saucepan.host_bootstrap import DEPENDENCY_HINTS, ensure_commands, ensure_tool
from saucepan.models import BuildRequest
from saucepan.settings import REPO_ROOT, STOCK_CORES, Settings

LOG = logging.getLogger("saucepan")

LOG_FILE_NAME = "saucepan.log"
RESIZE_COMMAND = "convert"


def setup_logging(target_dir: Path, *, verbose: bool = False) -> None:
    target_dir.mkdir(parents=True, exist_ok=True)
    log_path = target_dir / LOG_FILE_NAME
    level = logging.DEBUG if verbose else logging.INFO

    LOG.setLevel(level)
    LOG.handlers.clear()

    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")

    file_handler = logging.FileHandler(log_path, mode="w")
    file_handler.setFormatter(formatter)
    file_handler.setLevel(level)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.setLevel(level)

    LOG.addHandler(file_handler)
    LOG.addHandler(console_handler)


def required_commands(request: BuildRequest) -> list[str]:
    commands = ["mksquashfs"]
    if not request.alternate_save:
        commands.extend(["truncate", "mkfs.ext4"])
    commands.append("debugfs")
    return commands


def check_dependencies(request: BuildRequest, *, install: bool = False) -> None:
    missing = ensure_commands(required_commands(request), install=install, logger=LOG)
    if missing:
        for command in missing:
            LOG.error("Missing dependency '%s'. Install via: %s", command, DEPENDENCY_HINTS[command])
        raise SaucepanError(
            "One or more required tools are unavailable. Install the missing dependencies and retry."
        )


def check_resize_capability(request: BuildRequest, *, install: bool = False) -> BuildRequest:
    """Return *request* with resizing disabled if ``convert`` is unavailable."""

    if not request.resize:
        return request
    try:
        ensure_tool(RESIZE_COMMAND, install=install, logger=LOG)
    except ToolUnavailable as exc:
        LOG.warning("Images can not be resized, so their original sizes will be maintained. %s", exc)
        return dataclasses.replace(request, resize=False)
    return request


def request_from_args(args: argparse.Namespace) -> BuildRequest:
    cores = (args.core or []) + (args.stock_core or [])
    if len(cores) > 1:
        raise InputConflict("Multiple cores specified on the command line")
    return BuildRequest(
        game_name=args.game_name,
        rom_name=args.rom_name,
        core=args.core[0] if args.core else None,
        stock_core=args.stock_core[0] if args.stock_core else None,
        resize=args.resize,
        alternate_save=args.alt_defaults,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="saucepan",
        description="Assemble a ROM, an emulator core and artwork into a UCE add-on file.",
    )
    parser.add_argument(
        "-c",
        "--core",
        action="append",
        metavar="CORE_NAME",
        help="Use the custom core named CORE_NAME located in your resources/cores directory.",
    )
    parser.add_argument(
        "-s",
        "--stock-core",
        action="append",
        metavar="STOCK_CORE",
        help=(
            "Use a core built into the device. This makes the UCE file substantially smaller. "
            f"STOCK_CORE must be one of: {', '.join(STOCK_CORES)}."
        ),
    )
    parser.add_argument(
        "--no-resize",
        dest="resize",
        action="store_false",
        help="Keep bezel and box art images at their original sizes.",
    )
    parser.add_argument(
        "--alt-defaults",
        action="store_true",
        help="Use the pre-built save area carrying alternate default settings.",
    )
    parser.add_argument(
        "--root",
        type=Path,
        default=REPO_ROOT,
        help="Directory holding resources/ and defaults/ (default: the project root).",
    )
    parser.add_argument(
        "--target-dir",
        type=Path,
        help="Where to write the UCE file (default: <root>/target).",
    )
    parser.add_argument(
        "--bootstrap",
        action="store_true",
        help="Install missing host tools through apt-get or dnf (needs root or password-less sudo).",
    )
    parser.add_argument(
        "--verify",
        action="store_true",
        help="Read the finished UCE file back and check its checksums.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log external tool output.")
    parser.add_argument("game_name", help="The name to show on the Add-On menu.")
    parser.add_argument(
        "rom_name",
        help="Base name of a ROM file in resources/roms, without its extension.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    # Rejected before logging is set up so nothing is written to disk.
    try:
        request = request_from_args(args)
    except InvalidRequest as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    overrides = {"target_dir": args.target_dir} if args.target_dir else {}
    settings = Settings.for_root(args.root, **overrides)
    setup_logging(settings.target_dir, verbose=args.verbose)

    try:
        # Missing inputs fail before any host tool is checked or installed.
        assets = resolve_assets(request, settings)
        if not request.resize:
            LOG.info("Images will not be resized")
        request = check_resize_capability(request, install=args.bootstrap)
        check_dependencies(request, install=args.bootstrap)
        output = build_container(request, settings, assets=assets)
        if args.verify:
            verify_container(output, settings.save_area_size)
    except RuntimeError as exc:
        LOG.error("%s", exc)
        return 1
    return 0


def run() -> None:
    sys.exit(main())
