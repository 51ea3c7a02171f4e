"""Function registry — maps configfs type tags to function classes."""

from __future__ import annotations

import logging
from typing import Any, Type

from configfs_gadget.core.errors import InvalidInputError, UnknownFunctionTypeError
from configfs_gadget.functions.base import GadgetFunction
from configfs_gadget.functions.hid import HidFunction
from configfs_gadget.functions.mass_storage import MassStorageFunction

logger = logging.getLogger(__name__)

_registry: dict[str, Type[GadgetFunction]] = {
    cls.function_type: cls for cls in (HidFunction, MassStorageFunction)
}


def list_function_types() -> list[str]:
    """Return the type tags of all supported functions."""
    return list(_registry.keys())


def get_function_class(function_type: str) -> Type[GadgetFunction]:
    """Return the class for a type tag, or raise UnknownFunctionTypeError."""
    if function_type not in _registry:
        available = ", ".join(_registry.keys())
        raise UnknownFunctionTypeError(
            f"Unknown function type: {function_type!r}. Available: {available}"
        )
    return _registry[function_type]


def function_from_dict(data: dict[str, Any]) -> GadgetFunction:
    """Build a function from a mapping with a ``type`` tag."""
    if not isinstance(data, dict):
        raise InvalidInputError(f"Function must be a mapping, got {data!r}")
    fields = dict(data)
    function_type = fields.pop("type", None)
    if function_type is None:
        raise InvalidInputError("Function is missing its 'type'")
    cls = get_function_class(function_type)
    logger.debug("Building %s function from %s", function_type, sorted(fields))
    return cls.from_dict(fields)
