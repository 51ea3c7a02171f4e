"""Step engine — the gadget tree expressed as an ordered list of filesystem actions.

Every component compiles itself into a ``Steps`` relative to its own
directory; callers relocate those with ``prepend_path`` and concatenate
them with ``extend``. The same plan is undone by inverting each step and
reversing the order, so teardown never needs a separate tree walk.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, Optional, Union

from configfs_gadget.core.errors import StepError

logger = logging.getLogger(__name__)

StepArg = Union[str, bytes]
PathArg = Union[str, "os.PathLike[str]"]


class Action(Enum):
    NOOP = "noop"
    COMMENT = "comment"
    MKDIR = "mkdir"
    MKDIR_CREATE_ONLY = "mkdir_create_only"
    RMDIR = "rmdir"
    WRITE = "write"
    WRITE_BINARY = "write_binary"
    REMOVE = "remove"
    SYMLINK = "symlink"


class Filesystem:
    """POSIX primitives the steps run against.

    Removing something that is already gone counts as success.
    """

    def mkdir(self, path: str, exist_ok: bool = True) -> None:
        os.makedirs(path, mode=0o775, exist_ok=exist_ok)

    def rmdir(self, path: str) -> None:
        try:
            os.rmdir(path)
        except FileNotFoundError:
            logger.debug("Directory already absent: %s", path)

    def remove(self, path: str) -> None:
        if os.path.isdir(path) and not os.path.islink(path):
            self.rmdir(path)
            return
        try:
            os.unlink(path)
        except FileNotFoundError:
            logger.debug("Path already absent: %s", path)

    def write_text(self, path: str, value: str) -> None:
        with open(path, "w", encoding="utf-8") as f:
            f.write(value)

    def write_bytes(self, path: str, value: bytes) -> None:
        with open(path, "wb") as f:
            f.write(value)

    def symlink(self, target: str, link: str) -> None:
        os.symlink(target, link)

    def exists(self, path: str) -> bool:
        return os.path.lexists(path)

    def read_text(self, path: str) -> Optional[str]:
        try:
            with open(path, encoding="utf-8") as f:
                return f.read()
        except FileNotFoundError:
            return None


_default_fs = Filesystem()


def _join(prefix: PathArg, path: str) -> str:
    prefix = os.fspath(prefix)
    if not path:
        return os.path.normpath(prefix)
    return os.path.normpath(os.path.join(prefix, path))


@dataclass(frozen=True)
class Step:
    """One filesystem action.

    ``path`` is the primary path (or the text of a comment). ``arg`` is the
    value for writes. For ``SYMLINK``, ``path`` is the link target and
    ``arg`` the link location; only the location is relocated by
    ``prepend_path``.
    """

    action: Action
    path: str = ""
    arg: StepArg = ""

    def run(self, fs: Optional[Filesystem] = None) -> None:
        fs = fs or _default_fs
        action = self.action
        if action is Action.MKDIR:
            fs.mkdir(self.path, exist_ok=True)
        elif action is Action.MKDIR_CREATE_ONLY:
            fs.mkdir(self.path, exist_ok=False)
        elif action is Action.RMDIR:
            fs.rmdir(self.path)
        elif action is Action.WRITE:
            # An empty value leaves the attribute untouched.
            if self.arg:
                value = self.arg if isinstance(self.arg, str) else self.arg.decode("utf-8")
                fs.write_text(self.path, value)
        elif action is Action.WRITE_BINARY:
            if self.arg:
                value = self.arg if isinstance(self.arg, bytes) else self.arg.encode("utf-8")
                fs.write_bytes(self.path, value)
        elif action is Action.REMOVE:
            fs.remove(self.path)
        elif action is Action.SYMLINK:
            fs.symlink(self.path, str(self.arg))

    def prepend_path(self, prefix: PathArg) -> Step:
        if self.action in (Action.NOOP, Action.COMMENT):
            return self
        if self.action is Action.SYMLINK:
            return Step(self.action, self.path, _join(prefix, str(self.arg)))
        return Step(self.action, _join(prefix, self.path), self.arg)

    def undo(self) -> Step:
        """Return the step that reverses this one.

        Writes are not tracked, so they (and comments) undo to a no-op.
        """
        if self.action in (Action.MKDIR, Action.MKDIR_CREATE_ONLY):
            return Step(Action.RMDIR, self.path)
        if self.action is Action.SYMLINK:
            return Step(Action.REMOVE, str(self.arg))
        return Step(Action.NOOP)

    def describe(self) -> str:
        action = self.action
        if action is Action.NOOP:
            return "noop"
        if action is Action.COMMENT:
            return f"# {self.path}"
        if action is Action.SYMLINK:
            return f"symlink {self.arg} -> {self.path}"
        if action is Action.WRITE:
            return f"write {self.path} = {self.arg!r}"
        if action is Action.WRITE_BINARY:
            return f"write_binary {self.path} ({len(self.arg)} bytes)"
        return f"{action.value} {self.path}"


class Steps:
    """Ordered sequence of steps. Order is execution order."""

    def __init__(self, steps: Iterable[Step] = ()) -> None:
        self._steps: list[Step] = list(steps)

    def append(self, step: Step) -> Steps:
        self._steps.append(step)
        return self

    def extend(self, more: Iterable[Step]) -> Steps:
        self._steps.extend(more)
        return self

    def prepend_path(self, prefix: PathArg) -> Steps:
        return Steps(step.prepend_path(prefix) for step in self._steps)

    def undo(self) -> Steps:
        return Steps(step.undo() for step in self._steps)

    def reverse(self) -> Steps:
        return Steps(reversed(self._steps))

    def run(self, fs: Optional[Filesystem] = None) -> None:
        """Run every step in order, stopping at the first failure.

        Nothing is rolled back; the caller decides how to recover.

        Raises:
            StepError: wraps the ``OSError`` of the failing step.
        """
        fs = fs or _default_fs
        for index, step in enumerate(self._steps):
            logger.debug("step %d: %s", index, step.describe())
            try:
                step.run(fs)
            except OSError as e:
                logger.warning("step %d failed: %s (%s)", index, step.describe(), e)
                raise StepError(index, step, e) from e

    def __iter__(self) -> Iterator[Step]:
        return iter(self._steps)

    def __len__(self) -> int:
        return len(self._steps)

    def __getitem__(self, index: int) -> Step:
        return self._steps[index]

    def __add__(self, other: Iterable[Step]) -> Steps:
        return Steps(self._steps).extend(other)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Steps):
            return self._steps == other._steps
        if isinstance(other, list):
            return self._steps == other
        return NotImplemented

    def __repr__(self) -> str:
        return f"Steps({self._steps!r})"
