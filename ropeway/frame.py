"""
Execution frames and the ``tick`` routine that runs every step.

A frame is installed for the synchronous extent of one step invocation. Chains
created while it is current register themselves in ``spawned``; when the step
returns, those chains are folded into the step's effective result so the
enclosing chain waits for all of them.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from loguru import logger

from ropeway.completion import join
from ropeway.types import unseed

if TYPE_CHECKING:
    from ropeway.chain import Chain

log = logger.bind(component="ropeway.frame")


@dataclass(frozen=True)
class Continue:
    """Step result asking ``tick`` to run ``step`` against the same value."""

    step: Callable[[Any], Any]


@dataclass(frozen=True)
class Done:
    """Step result that ends the trampoline with ``value``."""

    value: Any


@dataclass(eq=False)
class ExecutionFrame:
    """Bookkeeping for one in-flight step invocation.

    Attributes:
        chain: Chain whose step is running.
        context: Bound context the step executes against.
        value: Unseeded value the step was invoked with.
        is_error: Whether the step runs on the failure path.
        parent: Frame that was current when this one was installed.
        spawned: Chains created while this frame was current, in order.
    """

    chain: Chain | None
    context: Any
    value: Any
    is_error: bool = False
    parent: ExecutionFrame | None = field(default=None, repr=False)
    spawned: list[Chain] = field(default_factory=list, repr=False)


class FrameStack:
    """Owner of the current-frame pointer."""

    def __init__(self) -> None:
        self._current: ExecutionFrame | None = None

    @property
    def current(self) -> ExecutionFrame | None:
        return self._current

    @property
    def depth(self) -> int:
        depth, frame = 0, self._current
        while frame is not None:
            depth, frame = depth + 1, frame.parent
        return depth

    def register(self, chain: Chain) -> None:
        if self._current is not None:
            self._current.spawned.append(chain)

    def tick(
        self,
        chain: Chain | None,
        ctx: Any,
        fn: Any,
        data: Any,
        is_error: bool = False,
    ) -> Any:
        """Invoke ``fn`` as a step and return its effective result.

        Non-callable ``fn`` values are literals and are returned unchanged.
        ``Continue`` results are followed with the same value. Chains spawned
        during the call replace the result: one chain by its completion,
        several by their join. A ``None`` result on the success path yields
        ``data`` back so the chain value passes through.
        """

        if not callable(fn):
            return fn

        frame = ExecutionFrame(
            chain=chain,
            context=ctx,
            value=unseed(data),
            is_error=is_error,
            parent=self._current,
        )
        self._current = frame
        try:
            result = _trampoline(fn, frame.value)
        finally:
            self._current = frame.parent

        spawned = frame.spawned
        if len(spawned) == 1:
            log.debug("step {} joined 1 spawned chain", _name(fn))
            return spawned[0].completion
        if len(spawned) > 1:
            log.debug("step {} joined {} spawned chains", _name(fn), len(spawned))
            return join(child.completion for child in spawned)
        if result is None and not is_error:
            return data
        return result


def _trampoline(fn: Callable[[Any], Any], value: Any) -> Any:
    outcome = _classify(fn(value))
    while isinstance(outcome, Continue):
        outcome = _classify(outcome.step(value))
    return outcome.value


def _classify(result: Any) -> Continue | Done:
    from ropeway.task import TaskStep

    if isinstance(result, Continue):
        return result
    if isinstance(result, TaskStep):
        return Continue(result)
    return Done(result)


def _name(fn: Any) -> str:
    return getattr(fn, "__qualname__", None) or type(fn).__name__


__all__ = ["Continue", "Done", "ExecutionFrame", "FrameStack"]
