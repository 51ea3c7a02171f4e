"""Tests for configfs_gadget.functions — HID, mass storage, registry."""

from __future__ import annotations

import pytest

from configfs_gadget.core.errors import InvalidInputError, UnknownFunctionTypeError
from configfs_gadget.core.steps import Action, Step
from configfs_gadget.functions import registry
from configfs_gadget.functions.base import GadgetFunction
from configfs_gadget.functions.hid import HidFunction
from configfs_gadget.functions.mass_storage import Lun, MassStorageFunction


class TestHidFunction:
    def test_name_has_type_prefix(self):
        assert HidFunction(instance="keyboard").name == "hid.keyboard"

    def test_is_gadget_function(self):
        assert isinstance(HidFunction(instance="kbd"), GadgetFunction)

    def test_enabled_by_default(self):
        assert HidFunction(instance="kbd").is_enabled() is True

    def test_fixed_fields(self):
        fn = HidFunction(
            instance="kbd", protocol=1, subclass=1, report_length=8,
            report_desc=b"\x05\x01",
        )
        assert list(fn.create_steps()) == [
            Step(Action.WRITE, "protocol", "1"),
            Step(Action.WRITE, "subclass", "1"),
            Step(Action.WRITE, "report_length", "8"),
            Step(Action.WRITE_BINARY, "report_desc", b"\x05\x01"),
        ]

    def test_open_attributes_end_with_descriptor(self):
        fn = HidFunction(
            instance="mouse",
            attrs={"protocol": "2", "no_out_endpoint": "1"},
            report_desc=b"\x05\x01\x09\x02",
        )
        steps = list(fn.create_steps())
        assert set(steps[:-1]) == {
            Step(Action.WRITE, "protocol", "2"),
            Step(Action.WRITE, "no_out_endpoint", "1"),
        }
        assert steps[-1] == Step(Action.WRITE_BINARY, "report_desc", b"\x05\x01\x09\x02")

    def test_descriptor_only(self):
        steps = list(HidFunction(instance="kbd", report_desc=b"\x05").create_steps())
        assert steps == [Step(Action.WRITE_BINARY, "report_desc", b"\x05")]

    def test_descriptor_bytes_passed_through(self):
        raw = bytes(range(256))
        fn = HidFunction(instance="raw", report_desc=raw)
        assert fn.create_steps()[-1].arg == raw

    @pytest.mark.parametrize("bad", ["", "a/b", ".", ".."])
    def test_rejects_unsafe_instance(self, bad):
        with pytest.raises(InvalidInputError):
            HidFunction(instance=bad)

    def test_from_dict_hex_descriptor(self):
        fn = HidFunction.from_dict(
            {"instance": "kbd", "protocol": 1, "report_length": "8",
             "report_desc": "05 01 09 06"}
        )
        assert fn.report_desc == b"\x05\x01\x09\x06"
        assert fn.protocol == 1
        assert fn.report_length == 8

    def test_from_dict_list_descriptor(self):
        fn = HidFunction.from_dict({"instance": "kbd", "report_desc": [5, 1]})
        assert fn.report_desc == b"\x05\x01"

    def test_from_dict_rejects_unknown_field(self):
        with pytest.raises(InvalidInputError, match="colour"):
            HidFunction.from_dict({"instance": "kbd", "colour": "red"})

    def test_from_dict_bad_descriptor(self):
        with pytest.raises(InvalidInputError):
            HidFunction.from_dict({"instance": "kbd", "report_desc": "zz"})


class TestLun:
    def test_fixed_fields_file_written_last(self):
        lun = Lun(
            name="0", file="/srv/disk.img", removable=True, cdrom=False,
            ro=True, inquiry_string="Example Disk",
        )
        assert list(lun.create_steps()) == [
            Step(Action.WRITE, "removable", "1"),
            Step(Action.WRITE, "cdrom", "0"),
            Step(Action.WRITE, "ro", "1"),
            Step(Action.WRITE, "inquiry_string", "Example Disk"),
            Step(Action.WRITE, "file", "/srv/disk.img"),
        ]

    def test_unset_fields_are_skipped(self):
        assert list(Lun(name="0").create_steps()) == []

    def test_open_attributes(self):
        lun = Lun(name="0", attrs={"nofua": "1"})
        assert list(lun.create_steps()) == [Step(Action.WRITE, "nofua", "1")]


class TestMassStorageFunction:
    def test_name(self):
        assert MassStorageFunction(instance="usb0").name == "mass_storage.usb0"

    def test_stall_always_written(self):
        steps = list(MassStorageFunction(instance="usb0").create_steps())
        assert steps == [Step(Action.WRITE, "stall", "0")]

    def test_luns_nested_under_own_directory(self):
        fn = MassStorageFunction(
            instance="usb0",
            stall=True,
            luns=[Lun(name="0", ro=True), Lun(name="1", cdrom=True)],
        )
        assert list(fn.create_steps()) == [
            Step(Action.WRITE, "stall", "1"),
            Step(Action.WRITE, "lun.0/ro", "1"),
            Step(Action.MKDIR, "lun.1"),
            Step(Action.WRITE, "lun.1/cdrom", "1"),
        ]

    def test_kernel_lun_never_created_or_removed(self):
        fn = MassStorageFunction(instance="usb0", luns=[Lun(name="0", file="/disk.img")])
        steps = fn.create_steps()
        assert Step(Action.MKDIR, "lun.0") not in list(steps)
        assert [s for s in steps.undo() if s.action is not Action.NOOP] == []

    def test_duplicate_lun_rejected(self):
        with pytest.raises(InvalidInputError, match="Duplicate lun"):
            MassStorageFunction(instance="usb0", luns=[Lun(name="0"), Lun(name="0")])

    def test_from_dict(self):
        fn = MassStorageFunction.from_dict({
            "instance": "usb0",
            "stall": True,
            "enabled": False,
            "luns": [{"name": 0, "file": "/disk.img", "removable": 1}],
        })
        assert fn.stall is True
        assert fn.is_enabled() is False
        assert fn.luns == [Lun(name="0", file="/disk.img", removable=True)]

    def test_lun_from_dict_requires_name(self):
        with pytest.raises(InvalidInputError, match="name"):
            MassStorageFunction.from_dict({"instance": "usb0", "luns": [{}]})


class TestRegistry:
    def test_list_function_types(self):
        assert registry.list_function_types() == ["hid", "mass_storage"]

    def test_get_function_class(self):
        assert registry.get_function_class("hid") is HidFunction
        assert registry.get_function_class("mass_storage") is MassStorageFunction

    def test_unknown_type(self):
        with pytest.raises(UnknownFunctionTypeError, match="Unknown function type"):
            registry.get_function_class("uvc")

    def test_unknown_type_is_value_error(self):
        with pytest.raises(ValueError, match="hid"):
            registry.get_function_class("ecm")

    def test_function_from_dict(self):
        fn = registry.function_from_dict(
            {"type": "hid", "instance": "kbd", "report_desc": "0501"}
        )
        assert isinstance(fn, HidFunction)
        assert fn.name == "hid.kbd"

    def test_function_from_dict_does_not_mutate_input(self):
        data = {"type": "mass_storage", "instance": "usb0"}
        registry.function_from_dict(data)
        assert data == {"type": "mass_storage", "instance": "usb0"}

    def test_function_from_dict_missing_type(self):
        with pytest.raises(InvalidInputError, match="type"):
            registry.function_from_dict({"instance": "kbd"})

    def test_function_from_dict_not_a_mapping(self):
        with pytest.raises(InvalidInputError):
            registry.function_from_dict(["hid"])  # type: ignore[arg-type]
