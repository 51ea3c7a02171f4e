"""Model loader — builds a Gadget from a JSON document for the CLI."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional, Union

from configfs_gadget.core.errors import InvalidInputError
from configfs_gadget.core.gadget import Config, Gadget
from configfs_gadget.core.settings import GadgetSettings
from configfs_gadget.functions.base import optional_int, reject_unknown_keys
from configfs_gadget.functions.registry import function_from_dict

_GADGET_FIELDS = (
    "name", "id_vendor", "id_product", "bcd_usb", "bcd_device",
    "serial_number", "manufacturer", "product", "attrs", "udc", "configs",
    "path",
)
_CONFIG_FIELDS = ("name", "configuration", "max_power", "functions")


def load_gadget(
    path: Union[str, Path], settings: Optional[GadgetSettings] = None
) -> Gadget:
    """Read a gadget description from a JSON file."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise InvalidInputError(f"{path}: invalid JSON: {e}") from e
    return gadget_from_dict(data, settings=settings)


def gadget_from_dict(
    data: dict[str, Any], settings: Optional[GadgetSettings] = None
) -> Gadget:
    """Build a Gadget from a mapping.

    Integer ids may be given as numbers or strings such as ``"0x1d6b"``.
    ``configs`` is a list; each config's ``functions`` maps the member
    name to a function mapping with a ``type`` tag. A function without an
    ``instance`` takes its member name.
    """
    if not isinstance(data, dict):
        raise InvalidInputError("Gadget description must be a JSON object")
    reject_unknown_keys(data, _GADGET_FIELDS, "gadget")
    if "name" not in data:
        raise InvalidInputError("Gadget description requires a 'name'")

    configs: dict[str, Config] = {}
    for raw in data.get("configs", []):
        config = _config_from_dict(raw)
        if config.name in configs:
            raise InvalidInputError(f"Duplicate config {config.name!r}")
        configs[config.name] = config

    gadget = Gadget(
        name=data["name"],
        serial_number=str(data.get("serial_number", "")),
        manufacturer=str(data.get("manufacturer", "")),
        product=str(data.get("product", "")),
        attrs={str(k): str(v) for k, v in data.get("attrs", {}).items()},
        udc=data.get("udc") or None,
        configs=configs,
        gadget_path=data.get("path"),
        settings=settings or GadgetSettings.from_env(),
    )
    for key in ("id_vendor", "id_product", "bcd_usb", "bcd_device"):
        value = optional_int(data, key)
        if value is not None:
            setattr(gadget, key, value)
    return gadget


def _config_from_dict(data: Any) -> Config:
    if not isinstance(data, dict):
        raise InvalidInputError(f"Config must be an object, got {data!r}")
    reject_unknown_keys(data, _CONFIG_FIELDS, "config")
    if "name" not in data:
        raise InvalidInputError("Config requires a 'name'")

    functions = {}
    for member, raw in data.get("functions", {}).items():
        if not isinstance(raw, dict):
            raise InvalidInputError(f"Function {member!r} must be an object")
        functions[member] = function_from_dict({"instance": member, **raw})

    return Config(
        name=data["name"],
        configuration=str(data.get("configuration", "")),
        max_power=optional_int(data, "max_power"),
        functions=functions,
    )
