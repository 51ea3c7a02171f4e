"""USB device controller (UDC) discovery."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)


def list_udcs(udc_root: Union[str, Path]) -> list[str]:
    """Return the names of available controllers, sorted.

    A missing class directory (no gadget support on this host) yields an
    empty list.
    """
    root = Path(udc_root)
    try:
        names = sorted(entry.name for entry in root.iterdir())
    except FileNotFoundError:
        logger.debug("No UDC class directory at %s", root)
        return []
    logger.debug("Found %d UDC(s) under %s: %s", len(names), root, names)
    return names
