"""Formatting helpers for configfs attribute values."""

from __future__ import annotations

from configfs_gadget.core.errors import InvalidInputError


def hex_attr(value: int) -> str:
    """Format a 16-bit id the way configfs prints it, e.g. ``0x1d6b``."""
    return f"0x{value:04x}"


def bool_attr(value: bool) -> str:
    return "1" if value else "0"


def check_name(value: str, what: str) -> str:
    """Reject names that would escape or collapse their parent directory."""
    if not isinstance(value, str) or not value:
        raise InvalidInputError(f"{what} name must be a non-empty string")
    if "/" in value or "\0" in value or value in (".", ".."):
        raise InvalidInputError(f"Invalid {what} name: {value!r}")
    return value
