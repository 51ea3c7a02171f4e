"""Mass-storage function (f_mass_storage) and its logical units."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional

from configfs_gadget.core.attributes import bool_attr, check_name
from configfs_gadget.core.errors import InvalidInputError
from configfs_gadget.core.steps import Action, Step, Steps
from configfs_gadget.functions.base import GadgetFunction, reject_unknown_keys

_LUN_FIELDS = (
    "name", "file", "removable", "cdrom", "ro", "inquiry_string", "attrs",
)
_FIELDS = ("instance", "stall", "luns", "enabled")

# f_mass_storage creates lun.0 with the function and refuses to rmdir it.
KERNEL_LUN = "0"


@dataclass
class Lun:
    """One logical unit, materialized as ``lun.<name>``.

    Unset fields are left at the kernel default.
    """

    name: str
    file: Optional[str] = None
    removable: Optional[bool] = None
    cdrom: Optional[bool] = None
    ro: Optional[bool] = None
    inquiry_string: Optional[str] = None
    attrs: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        check_name(self.name, "lun")

    def create_steps(self) -> Steps:
        steps = Steps()
        for attr, flag in (
            ("removable", self.removable),
            ("cdrom", self.cdrom),
            ("ro", self.ro),
        ):
            if flag is not None:
                steps.append(Step(Action.WRITE, attr, bool_attr(flag)))
        if self.inquiry_string is not None:
            steps.append(Step(Action.WRITE, "inquiry_string", self.inquiry_string))
        for key, value in self.attrs.items():
            steps.append(Step(Action.WRITE, key, str(value)))
        # ro and cdrom are rejected while a backing file is open.
        if self.file is not None:
            steps.append(Step(Action.WRITE, "file", self.file))
        return steps

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Lun:
        reject_unknown_keys(data, _LUN_FIELDS, "lun")
        if "name" not in data:
            raise InvalidInputError("lun requires a 'name'")

        def flag(key: str) -> Optional[bool]:
            value = data.get(key)
            return None if value is None else bool(value)

        return cls(
            name=str(data["name"]),
            file=data.get("file"),
            removable=flag("removable"),
            cdrom=flag("cdrom"),
            ro=flag("ro"),
            inquiry_string=data.get("inquiry_string"),
            attrs={str(k): str(v) for k, v in data.get("attrs", {}).items()},
        )


@dataclass
class MassStorageFunction(GadgetFunction):
    instance: str
    luns: list[Lun] = field(default_factory=list)
    stall: bool = False
    enabled: bool = True

    function_type: ClassVar[str] = "mass_storage"

    def __post_init__(self) -> None:
        check_name(self.instance, "function instance")
        seen: set[str] = set()
        for lun in self.luns:
            if lun.name in seen:
                raise InvalidInputError(
                    f"Duplicate lun {lun.name!r} in {self.name}"
                )
            seen.add(lun.name)

    def create_steps(self) -> Steps:
        steps = Steps([Step(Action.WRITE, "stall", bool_attr(self.stall))])
        for lun in self.luns:
            lun_steps = Steps()
            if lun.name != KERNEL_LUN:
                lun_steps.append(Step(Action.MKDIR))
            lun_steps.extend(lun.create_steps())
            steps.extend(lun_steps.prepend_path(f"lun.{lun.name}"))
        return steps

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MassStorageFunction:
        reject_unknown_keys(data, _FIELDS, "mass_storage function")
        if "instance" not in data:
            raise InvalidInputError("mass_storage function requires an 'instance'")
        return cls(
            instance=data["instance"],
            luns=[Lun.from_dict(lun) for lun in data.get("luns", [])],
            stall=bool(data.get("stall", False)),
            enabled=bool(data.get("enabled", True)),
        )
