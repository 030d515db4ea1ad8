"""Map a core selection onto the core a container will launch."""

from __future__ import annotations

import logging
from pathlib import PurePosixPath

from saucepan.errors import MissingCustomCore, UnknownStockAlias
from saucepan.models import CUSTOM, STOCK, BuildRequest, CoreDescriptor
from saucepan.settings import Settings

LOG = logging.getLogger("saucepan.cores")


def resolve_core(request: BuildRequest, settings: Settings) -> CoreDescriptor:
    """Return the :class:`CoreDescriptor` selected by *request*.

    A stock alias resolves to a core already installed on the device.  A
    custom core name, or no selection at all, resolves to a file in the
    managed cores directory which must exist.
    """

    if request.stock_core:
        filename = settings.stock_cores.get(request.stock_core)
        if filename is None:
            supported = ", ".join(sorted(settings.stock_cores))
            raise UnknownStockAlias(
                f'There is no stock core associated with the name "{request.stock_core}". '
                f"Supported names: {supported}"
            )
        run_path = str(PurePosixPath(settings.stock_core_dir) / filename)
        LOG.info("Building with stock core: %s", filename)
        return CoreDescriptor(name=filename, origin=STOCK, run_path=run_path)

    name = request.core or settings.default_core
    source = settings.cores_dir / name
    if not source.is_file():
        raise MissingCustomCore(f"Could not find custom core {name} in {settings.cores_dir}")
    LOG.info("Building with custom core: %s", name)
    return CoreDescriptor(name=name, origin=CUSTOM, run_path=f"./emu/{name}", source=source)
