"""Locations and conventions the compiler would otherwise hard-code."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

DEFAULT_CONFIGFS_ROOT = "/sys/kernel/config/usb_gadget"
DEFAULT_UDC_ROOT = "/sys/class/udc"
LANG_ENGLISH = "0x409"

ENV_CONFIGFS_ROOT = "CONFIGFS_GADGET_ROOT"
ENV_UDC_ROOT = "CONFIGFS_GADGET_UDC_PATH"


@dataclass
class GadgetSettings:
    configfs_root: Path = Path(DEFAULT_CONFIGFS_ROOT)
    udc_root: Path = Path(DEFAULT_UDC_ROOT)
    locale: str = LANG_ENGLISH

    def __post_init__(self) -> None:
        self.configfs_root = Path(self.configfs_root)
        self.udc_root = Path(self.udc_root)

    @classmethod
    def from_env(
        cls,
        configfs_root: Optional[Union[str, Path]] = None,
        udc_root: Optional[Union[str, Path]] = None,
    ) -> GadgetSettings:
        """Resolve each location from argument → env var → default."""
        return cls(
            configfs_root=Path(
                configfs_root
                or os.environ.get(ENV_CONFIGFS_ROOT)
                or DEFAULT_CONFIGFS_ROOT
            ),
            udc_root=Path(
                udc_root
                or os.environ.get(ENV_UDC_ROOT)
                or DEFAULT_UDC_ROOT
            ),
        )
