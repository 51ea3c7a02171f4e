"""Exception hierarchy shared by the step engine and the gadget model."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # avoid import cycle
    from configfs_gadget.core.steps import Step


class GadgetError(Exception):
    """Base error. Catch this to handle every failure the library raises."""


class NotFoundError(GadgetError, LookupError):
    """A named config or function is not part of the gadget."""


class AlreadyExistsError(GadgetError):
    """A function name is already taken."""


class NoControllerError(GadgetError):
    """No USB device controller is available to bind to."""


class InvalidInputError(GadgetError, ValueError):
    """A model value cannot be turned into a configfs tree."""


class UnknownFunctionTypeError(InvalidInputError):
    """A function type tag has no registered implementation."""


class StepError(GadgetError):
    """A step failed while running a sequence.

    Steps that ran before ``index`` are left in place.
    """

    def __init__(self, index: int, step: "Step", cause: OSError) -> None:
        super().__init__(f"step {index} ({step.describe()}): {cause}")
        self.index = index
        self.step = step
        self.cause = cause
