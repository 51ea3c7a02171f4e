"""HID function (f_hid): keyboards, mice and other report-based devices."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional

from configfs_gadget.core.attributes import check_name
from configfs_gadget.core.errors import InvalidInputError
from configfs_gadget.core.steps import Action, Step, Steps
from configfs_gadget.functions.base import (
    GadgetFunction,
    optional_int,
    reject_unknown_keys,
)

_FIELDS = (
    "instance", "report_desc", "protocol", "subclass", "report_length",
    "attrs", "enabled",
)


@dataclass
class HidFunction(GadgetFunction):
    instance: str
    report_desc: bytes = b""
    protocol: Optional[int] = None
    subclass: Optional[int] = None
    report_length: Optional[int] = None
    attrs: dict[str, str] = field(default_factory=dict)
    enabled: bool = True

    function_type: ClassVar[str] = "hid"

    def __post_init__(self) -> None:
        check_name(self.instance, "function instance")
        self.report_desc = bytes(self.report_desc)

    def create_steps(self) -> Steps:
        steps = Steps()
        for attr, value in (
            ("protocol", self.protocol),
            ("subclass", self.subclass),
            ("report_length", self.report_length),
        ):
            if value is not None:
                steps.append(Step(Action.WRITE, attr, str(value)))
        for key, value in self.attrs.items():
            steps.append(Step(Action.WRITE, key, str(value)))
        # The descriptor goes last, once the report geometry is known.
        steps.append(Step(Action.WRITE_BINARY, "report_desc", self.report_desc))
        return steps

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HidFunction:
        """Build from a mapping; ``report_desc`` is a hex string or a byte list."""
        reject_unknown_keys(data, _FIELDS, "hid function")
        if "instance" not in data:
            raise InvalidInputError("hid function requires an 'instance'")
        return cls(
            instance=data["instance"],
            report_desc=_parse_descriptor(data.get("report_desc", b"")),
            protocol=optional_int(data, "protocol"),
            subclass=optional_int(data, "subclass"),
            report_length=optional_int(data, "report_length"),
            attrs={str(k): str(v) for k, v in data.get("attrs", {}).items()},
            enabled=bool(data.get("enabled", True)),
        )


def _parse_descriptor(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    try:
        if isinstance(value, str):
            return bytes.fromhex(value)
        return bytes(value)
    except (TypeError, ValueError):
        raise InvalidInputError(f"Invalid report descriptor: {value!r}")
