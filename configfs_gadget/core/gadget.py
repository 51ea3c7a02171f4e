"""Gadget and Config — the model compiled into a configfs step plan.

Compilation (``create_steps``, ``remove_steps``) is pure: it never touches
the filesystem. The lifecycle operations compile a plan (or only the
delta they need) and run it against ``Gadget.fs``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional

from configfs_gadget.core.attributes import check_name, hex_attr
from configfs_gadget.core.errors import (
    AlreadyExistsError,
    InvalidInputError,
    NoControllerError,
    NotFoundError,
)
from configfs_gadget.core.settings import GadgetSettings
from configfs_gadget.core.steps import Action, Filesystem, Step, Steps
from configfs_gadget.core.udc import list_udcs
from configfs_gadget.functions.base import GadgetFunction

logger = logging.getLogger(__name__)

# The kernel strips the trailing newline and unbinds on an empty name.
_UNBIND = "\n"


@dataclass
class Config:
    """One configuration, compiled relative to ``configs/<name>``."""

    name: str
    configuration: str = ""
    max_power: Optional[int] = None
    functions: dict[str, GadgetFunction] = field(default_factory=dict)

    def __post_init__(self) -> None:
        check_name(self.name, "config")

    def create_steps(self, locale: str) -> Steps:
        strings = f"strings/{locale}"
        steps = Steps([
            Step(Action.COMMENT, f"config `{self.name}`"),
            Step(Action.MKDIR),
            Step(Action.MKDIR, strings),
            Step(Action.WRITE, f"{strings}/configuration", self.configuration),
        ])
        if self.max_power is not None:
            steps.append(Step(Action.WRITE, "MaxPower", str(self.max_power)))
        return steps


@dataclass
class Gadget:
    name: str
    id_vendor: int = 0
    id_product: int = 0
    bcd_usb: int = 0x0200
    bcd_device: int = 0x0100
    serial_number: str = ""
    manufacturer: str = ""
    product: str = ""
    attrs: dict[str, str] = field(default_factory=dict)
    udc: Optional[str] = None
    configs: dict[str, Config] = field(default_factory=dict)
    gadget_path: Optional[str] = None
    settings: GadgetSettings = field(default_factory=GadgetSettings.from_env)
    fs: Filesystem = field(default_factory=Filesystem, repr=False, compare=False)

    def __post_init__(self) -> None:
        check_name(self.name, "gadget")
        for key, config in self.configs.items():
            if key != config.name:
                raise InvalidInputError(
                    f"Config registered as {key!r} is named {config.name!r}"
                )
        # All configs share one functions/ directory.
        seen: dict[str, GadgetFunction] = {}
        for _, _, fn in self._members():
            if seen.setdefault(fn.name, fn) is not fn:
                raise InvalidInputError(
                    f"Function directory {fn.name!r} is used by two different functions"
                )

    @property
    def path(self) -> Path:
        if self.gadget_path:
            return Path(self.gadget_path)
        return self.settings.configfs_root / self.name

    # ------------------------------------------------------------------
    # Compilation
    # ------------------------------------------------------------------

    def create_steps(self) -> Steps:
        """Compile the full creation plan with absolute paths."""
        return self._compile(materialize_all=False)

    def remove_steps(self) -> Steps:
        """Compile the teardown plan: the creation plan undone, in reverse.

        Disabled functions are compiled as if enabled so a directory left
        behind by an earlier disable is removed too; paths that were never
        created are skipped at run time.
        """
        return self._compile(materialize_all=True).undo().reverse()

    def _compile(self, materialize_all: bool) -> Steps:
        strings = f"strings/{self.settings.locale}"
        steps = Steps([
            Step(Action.MKDIR),
            Step(Action.WRITE, "idVendor", hex_attr(self.id_vendor)),
            Step(Action.WRITE, "idProduct", hex_attr(self.id_product)),
            Step(Action.WRITE, "bcdUSB", hex_attr(self.bcd_usb)),
            Step(Action.WRITE, "bcdDevice", hex_attr(self.bcd_device)),
        ])
        for key, value in self.attrs.items():
            steps.append(Step(Action.WRITE, key, str(value)))
        steps.extend([
            Step(Action.MKDIR, strings),
            Step(Action.WRITE, f"{strings}/serialnumber", self.serial_number),
            Step(Action.WRITE, f"{strings}/manufacturer", self.manufacturer),
            Step(Action.WRITE, f"{strings}/product", self.product),
        ])

        materialized: set[str] = set()
        for config in self.configs.values():
            steps.extend(
                config.create_steps(self.settings.locale)
                .prepend_path(f"configs/{config.name}")
            )
            for fn in config.functions.values():
                steps.extend(self._function_steps(
                    config, fn,
                    materialize=materialize_all or fn.is_enabled(),
                    populate=fn.name not in materialized,
                ))
                if materialize_all or fn.is_enabled():
                    materialized.add(fn.name)

        if self.udc:
            steps.append(Step(Action.WRITE, "UDC", self.udc))

        return steps.prepend_path(self.path)

    def _function_steps(
        self,
        config: Config,
        fn: GadgetFunction,
        materialize: bool = True,
        populate: bool = True,
    ) -> Steps:
        """Steps for one config membership, relative to the gadget root.

        A function that is not materialized only loses its link; its
        directory stays so re-enabling does not rebuild it.
        """
        link = f"configs/{config.name}/{fn.name}"
        if not materialize:
            return Steps([Step(Action.REMOVE, link)])
        steps = self._function_tree(fn) if populate else Steps()
        # configfs resolves link targets as path lookups: keep them absolute.
        return steps.append(
            Step(Action.SYMLINK, str(self.path / "functions" / fn.name), link)
        )

    def _function_tree(self, fn: GadgetFunction) -> Steps:
        return (
            Steps([Step(Action.MKDIR)])
            .extend(fn.create_steps())
            .prepend_path(f"functions/{fn.name}")
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def exists(self) -> bool:
        return self.fs.exists(str(self.path))

    def create(self) -> None:
        logger.info("Creating gadget %s at %s", self.name, self.path)
        self.create_steps().run(self.fs)

    def remove(self) -> None:
        """Tear the gadget down, unbinding it first if it is bound."""
        logger.info("Removing gadget %s at %s", self.name, self.path)
        steps = Steps()
        if self.bound_controller():
            steps.append(self._unbind_step())
        steps.extend(self.remove_steps())
        steps.run(self.fs)

    def bind(self, controller: str = "") -> str:
        """Bind to ``controller``, or to the first available UDC.

        Returns the controller name written to ``UDC``.
        """
        name = controller or self._first_controller()
        logger.info("Binding gadget %s to %s", self.name, name)
        Steps([Step(Action.WRITE, "UDC", name)]).prepend_path(self.path).run(self.fs)
        self.udc = name
        return name

    def unbind(self) -> None:
        logger.info("Unbinding gadget %s", self.name)
        Steps([self._unbind_step()]).run(self.fs)
        self.udc = None

    def _unbind_step(self) -> Step:
        return Step(Action.WRITE, "UDC", _UNBIND).prepend_path(self.path)

    def _first_controller(self) -> str:
        udcs = list_udcs(self.settings.udc_root)
        if not udcs:
            raise NoControllerError(
                f"No USB device controller found under {self.settings.udc_root}"
            )
        return udcs[0]

    # ------------------------------------------------------------------
    # Incremental mutation
    # ------------------------------------------------------------------

    def add_function(
        self, config_name: str, function_name: str, function: GadgetFunction
    ) -> None:
        """Add a function to a live gadget, running only its own steps."""
        config = self.configs.get(config_name)
        if config is None:
            raise NotFoundError(
                f"Config {config_name!r} not found in gadget {self.name!r}"
            )
        if function_name in config.functions:
            raise AlreadyExistsError(
                f"Function {function_name!r} already exists in config {config_name!r}"
            )
        shared = False
        for owner, _, existing in self._members():
            if existing is function and owner is config:
                raise AlreadyExistsError(
                    f"Function {function.name!r} is already linked in config {config_name!r}"
                )
            if existing is function:
                shared = True
            elif existing.name == function.name:
                raise AlreadyExistsError(
                    f"Function directory {function.name!r} is already used by "
                    f"config {owner.name!r}"
                )

        config.functions[function_name] = function
        logger.info(
            "Adding function %s to %s/%s", function.name, self.name, config_name
        )
        self._function_steps(
            config, function,
            materialize=function.is_enabled(),
            populate=not shared,
        ).prepend_path(self.path).run(self.fs)

    def remove_function(self, name: str) -> None:
        """Detach a function and remove its directory tree.

        ``name`` is the key the function was registered under or its
        directory name. Unlike disabling, this discards the directory.
        """
        member = self._find(name)
        if member is None:
            raise NotFoundError(f"Function {name!r} not found in any config")
        self._remove_member(*member)

    def remove_all_functions(self) -> None:
        """Remove every function; stops at the first failure."""
        for config, key, fn in list(self._members()):
            self._remove_member(config, key, fn)

    def _remove_member(self, config: Config, key: str, fn: GadgetFunction) -> None:
        logger.info("Removing function %s from %s/%s", fn.name, self.name, config.name)
        steps = Steps([Step(Action.REMOVE, f"configs/{config.name}/{fn.name}")])
        still_linked = any(
            other is fn and c is not config for c, _, other in self._members()
        )
        if not still_linked:
            steps.extend(self._function_tree(fn).undo().reverse())
        steps.prepend_path(self.path).run(self.fs)
        del config.functions[key]

    def enable_function(self, name: str) -> None:
        """Attach a disabled function again in every config that holds it."""
        _, _, fn = self._require(name)
        if fn.is_enabled():
            return
        fn.enabled = True
        steps = Steps()
        for index, config in enumerate(self._owners(fn)):
            steps.extend(self._function_steps(config, fn, populate=index == 0))
        steps.prepend_path(self.path).run(self.fs)

    def disable_function(self, name: str) -> None:
        """Detach a function everywhere but keep its directory and attributes."""
        _, _, fn = self._require(name)
        fn.enabled = False
        steps = Steps()
        for config in self._owners(fn):
            steps.extend(self._function_steps(config, fn, materialize=False))
        steps.prepend_path(self.path).run(self.fs)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def read_attribute(self, *parts: str) -> Optional[str]:
        """Read an attribute below the gadget root, or None if it is absent."""
        value = self.fs.read_text(str(self.path.joinpath(*parts)))
        if value is None:
            return None
        return value.rstrip("\n")

    def bound_controller(self) -> Optional[str]:
        return self.read_attribute("UDC") or None

    def function_path(self, name: str) -> Optional[Path]:
        """Directory of a member function, enabled or not."""
        member = self._find(name)
        if member is None:
            return None
        return self.path / "functions" / member[2].name

    def _members(self) -> Iterator[tuple[Config, str, GadgetFunction]]:
        for config in self.configs.values():
            for key, fn in config.functions.items():
                yield config, key, fn

    def _owners(self, fn: GadgetFunction) -> list[Config]:
        owners: list[Config] = []
        for config, _, other in self._members():
            if other is fn and not any(c is config for c in owners):
                owners.append(config)
        return owners

    def _find(self, name: str) -> Optional[tuple[Config, str, GadgetFunction]]:
        for config, key, fn in self._members():
            if key == name or fn.name == name:
                return config, key, fn
        return None

    def _require(self, name: str) -> tuple[Config, str, GadgetFunction]:
        member = self._find(name)
        if member is None:
            raise NotFoundError(f"Function {name!r} not found in any config")
        return member
