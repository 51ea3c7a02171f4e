"""Shared test fixtures for configfs-gadget tests."""

from __future__ import annotations

import errno
import os
from pathlib import Path

import pytest

from configfs_gadget.core.gadget import Config, Gadget
from configfs_gadget.core.settings import GadgetSettings
from configfs_gadget.core.steps import Filesystem
from configfs_gadget.functions.hid import HidFunction
from configfs_gadget.functions.mass_storage import Lun, MassStorageFunction

KEYBOARD_DESC = bytes([
    0x05, 0x01, 0x09, 0x06, 0xA1, 0x01, 0x05, 0x07,
    0x19, 0xE0, 0x29, 0xE7, 0x15, 0x00, 0x25, 0x01,
    0x75, 0x01, 0x95, 0x08, 0x81, 0x02, 0xC0,
])

# Groups the kernel creates along with their parent and drops with it.
DEFAULT_GROUPS = {"configs", "functions", "strings", "os_desc", "webusb", "lun.0"}


class EmulatedConfigFS(Filesystem):
    """Ordinary directories behaving like configfs on mkdir and rmdir.

    A mass-storage function directory comes with its ``lun.0`` default
    group. Attribute files vanish with their directory, as do default
    groups, which cannot be removed on their own. Anything else
    (symlinks, child items) makes rmdir fail.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []

    def mkdir(self, path, exist_ok=True):
        self.calls.append(("mkdir", path))
        super().mkdir(path, exist_ok)
        if Path(path).name.startswith("mass_storage."):
            (Path(path) / "lun.0").mkdir(exist_ok=True)

    def rmdir(self, path):
        self.calls.append(("rmdir", path))
        p = Path(path)
        if p.name in DEFAULT_GROUPS and p.is_dir():
            raise PermissionError(errno.EPERM, os.strerror(errno.EPERM), path)
        if p.is_dir() and not p.is_symlink():
            self._release(p)
        super().rmdir(path)

    def _release(self, directory: Path) -> None:
        for child in directory.iterdir():
            if child.is_symlink():
                continue
            if child.is_file():
                child.unlink()
            elif child.name in DEFAULT_GROUPS:
                self._release(child)
                child.rmdir()

    def write_text(self, path, value):
        self.calls.append(("write", path))
        super().write_text(path, value)

    def write_bytes(self, path, value):
        self.calls.append(("write_binary", path))
        super().write_bytes(path, value)

    def symlink(self, target, link):
        self.calls.append(("symlink", link))
        super().symlink(target, link)

    def remove(self, path):
        self.calls.append(("remove", path))
        super().remove(path)


@pytest.fixture
def settings(tmp_path) -> GadgetSettings:
    """Settings rooted in a temporary directory with no controllers."""
    return GadgetSettings(
        configfs_root=tmp_path / "usb_gadget",
        udc_root=tmp_path / "udc",
    )


@pytest.fixture
def udc_root(settings) -> Path:
    """Populate the UDC class directory with two controllers."""
    settings.udc_root.mkdir(parents=True)
    (settings.udc_root / "fe980000.usb").mkdir()
    (settings.udc_root / "dummy_udc.0").mkdir()
    return settings.udc_root


@pytest.fixture
def configfs() -> EmulatedConfigFS:
    return EmulatedConfigFS()


@pytest.fixture
def keyboard() -> HidFunction:
    return HidFunction(instance="kbd", report_desc=KEYBOARD_DESC)


@pytest.fixture
def make_gadget(settings, configfs):
    """Factory for gadgets wired to the emulated configfs."""

    def _make(name: str = "g0", functions=None, **kwargs) -> Gadget:
        config = Config(
            name="c.1",
            configuration="Config 1",
            functions=dict(functions or {}),
        )
        return Gadget(
            name=name,
            id_vendor=0x1D6B,
            id_product=0x0104,
            serial_number="0123456789",
            manufacturer="Example Inc.",
            product="Composite Device",
            configs={"c.1": config},
            settings=settings,
            fs=configfs,
            **kwargs,
        )

    return _make


@pytest.fixture
def composite_gadget(make_gadget, keyboard) -> Gadget:
    """Keyboard plus a two-lun mass-storage function."""
    storage = MassStorageFunction(
        instance="usb0",
        stall=True,
        luns=[
            Lun(name="0", removable=True, ro=False, inquiry_string="Disk"),
            Lun(name="1", cdrom=True, ro=True),
        ],
    )
    return make_gadget(functions={"kbd": keyboard, "storage": storage})
