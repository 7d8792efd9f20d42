"""
The ``Rope`` entry point.

A ``Rope`` owns the frame stack shared by every chain it creates, so steps that
call back into the same rope while they run are discovered as forks of the
running step. Most code uses the module level instance ``ropeway.rope``;
separate instances keep independent frame stacks.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable
from typing import Any, ParamSpec, TypeVar

from loguru import logger

from ropeway.chain import Chain
from ropeway.completion import Completion, Resolved, confer, reject
from ropeway.errors import NoActiveFrameError
from ropeway.frame import ExecutionFrame, FrameStack
from ropeway.task import Task
from ropeway.types import MISSING

P = ParamSpec("P")
T = TypeVar("T")

TRACE_ENV_VAR = "ROPEWAY_TRACE"

_TRUTHY = frozenset({"1", "true", "yes", "on"})


class Rope:
    """Entry point creating chains and running their steps.

    Args:
        loop: Event loop used by ``wait``. Defaults to the loop running when
            the wait step is reached.
        trace: Enable ropeway's loguru output. Defaults to the
            ``ROPEWAY_TRACE`` environment variable.

    Example:
        >>> rope = Rope()
        >>> rope.seed(2).next(lambda x: x * 21).completion
        Resolved(42)
    """

    confer = staticmethod(confer)
    reject = staticmethod(reject)

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop | None = None,
        *,
        trace: bool | None = None,
    ) -> None:
        self.loop = loop
        self.frames = FrameStack()
        if trace is None:
            trace = os.environ.get(TRACE_ENV_VAR, "").strip().lower() in _TRUTHY
        self.trace = trace
        if trace:
            logger.enable("ropeway")

    @property
    def frame(self) -> ExecutionFrame | None:
        """Frame of the step currently running, if any."""

        return self.frames.current

    @property
    def context(self) -> Any:
        """Bound context of the running step (``None`` outside steps)."""

        frame = self.frames.current
        return frame.context if frame is not None else None

    @property
    def value(self) -> Any:
        """Value the running step was invoked with (``None`` outside steps)."""

        frame = self.frames.current
        return frame.value if frame is not None else None

    def chain(self, start: Any = None) -> Chain:
        """Create a chain whose first value is ``start`` (awaited if awaitable)."""

        completion: Completion[Any] = Resolved(None) if start is None else confer(start)
        return Chain(self, completion)

    def seed(self, value: Any, ctx: Any = None) -> Chain:
        """Create a chain whose first value is ``value``, taken literally."""

        return self.chain().seed(value, ctx)

    def next(self, fn: Any, ctx: Any = None) -> Chain:
        return self.chain().next(fn, ctx)

    def next_if(self, cond: Any = MISSING, ctx: Any = None) -> Chain:
        return self.chain().next_if(cond, ctx)

    def next_unless(self, cond: Any = MISSING, ctx: Any = None) -> Chain:
        return self.chain().next_unless(cond, ctx)

    def next_case(self, expected: Any) -> Chain:
        return self.chain().next_case(expected)

    def fork_each(self, fn: Any, ctx: Any = None) -> Chain:
        return self.chain().fork_each(fn, ctx)

    def get(self, name: str, ctx: Any = None) -> Chain:
        return self.chain().get(name, ctx)

    def set(self, name: str, ctx: Any = None) -> Chain:
        return self.chain().set(name, ctx)

    def push(self, *values: Any) -> Chain:
        return self.chain().push(*values)

    def load_parent_stack(self) -> Chain:
        self._require_frame("load_parent_stack")
        return self.chain().load_parent_stack()

    def load_parent_status(self) -> Chain:
        self._require_frame("load_parent_status")
        return self.chain().load_parent_status()

    def load_parent(self) -> Chain:
        self._require_frame("load_parent")
        return self.chain().load_parent()

    def inherit(self) -> Chain:
        """Chain continuing the running step's value, status and stack."""

        self._require_frame("inherit")
        return self.chain().load_parent()

    def task(self, fn: Callable[P, T]) -> Task[P, T]:
        """Wrap ``fn`` as a task; see :mod:`ropeway.task`."""

        return Task(self, fn)

    def tick(
        self,
        chain: Chain | None,
        ctx: Any,
        fn: Any,
        data: Any,
        is_error: bool = False,
    ) -> Any:
        return self.frames.tick(chain, ctx, fn, data, is_error)

    def _require_frame(self, operation: str) -> ExecutionFrame:
        frame = self.frames.current
        if frame is None:
            raise NoActiveFrameError(operation)
        return frame

    def __repr__(self) -> str:
        return f"Rope(depth={self.frames.depth}, trace={self.trace})"


__all__ = ["Rope", "TRACE_ENV_VAR"]
