"""GadgetFunction — abstract base for every configfs function type."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Iterable

from configfs_gadget.core.errors import InvalidInputError
from configfs_gadget.core.steps import Steps


class GadgetFunction(ABC):
    """One protocol capability exposed by a gadget.

    Subclasses are dataclasses carrying an ``instance`` name and an
    ``enabled`` flag. The directory name under ``functions/`` is
    ``<function_type>.<instance>``, the form configfs itself requires.
    """

    function_type: ClassVar[str]

    instance: str
    enabled: bool

    @property
    def name(self) -> str:
        return f"{self.function_type}.{self.instance}"

    def is_enabled(self) -> bool:
        return self.enabled

    @abstractmethod
    def create_steps(self) -> Steps:
        """Attribute writes relative to the function's own directory."""

    @classmethod
    @abstractmethod
    def from_dict(cls, data: dict[str, Any]) -> GadgetFunction: ...


def reject_unknown_keys(
    data: dict[str, Any], allowed: Iterable[str], what: str
) -> None:
    unknown = sorted(set(data) - set(allowed))
    if unknown:
        raise InvalidInputError(
            f"Unknown {what} field(s): {', '.join(unknown)}"
        )


def optional_int(data: dict[str, Any], key: str):
    value = data.get(key)
    if value is None:
        return None
    try:
        return int(value, 0) if isinstance(value, str) else int(value)
    except (TypeError, ValueError):
        raise InvalidInputError(f"{key} must be an integer, got {value!r}")
