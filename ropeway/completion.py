"""
Completion primitives for the chain engine.

A completion is the eventual outcome of a step. Three variants exist and the
producer always chooses which one it builds:

- ``Resolved`` and ``Rejected`` are already settled and run reactions
  immediately, so pipelines made only of synchronous steps never touch the
  event loop and keep a deterministic order.
- ``Deferred`` wraps an ``asyncio.Future`` whose result is an ``Ok`` or
  ``Err`` outcome. Its reactions run from the loop, in attachment order,
  including reactions attached after it settled.

Example:
    >>> confer(21).then(lambda x: x * 2)
    Resolved(42)
    >>> reject(ValueError("boom")).then(None, lambda e: str(e))
    Resolved('boom')
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable, Generator, Iterable
from typing import Any, Generic, TypeVar

from ropeway.errors import as_exception
from ropeway.types import Err, Ok, Outcome, unseed

T = TypeVar("T")

Reaction = Callable[[Any], Any]


class Completion(Generic[T]):
    """Base class of all completions."""

    __slots__ = ()

    def then(
        self,
        on_success: Reaction | None = None,
        on_failure: Reaction | None = None,
    ) -> Completion[Any]:
        """Attach reactions and return the completion of their result.

        The value a reaction returns is passed through :func:`confer`, so a
        returned completion is adopted. A reaction that raises produces a
        ``Rejected`` completion. A missing reaction keeps the settled state.
        """

        raise NotImplementedError

    def finally_(self, on_settle: Callable[[], Any]) -> Completion[T]:
        """Run ``on_settle`` on either outcome and keep the original outcome.

        ``on_settle`` can only change the outcome by raising, or by returning a
        completion that fails.
        """

        raise NotImplementedError

    def done(self) -> bool:
        raise NotImplementedError

    def outcome(self) -> Outcome[T] | None:
        """Return the settled outcome, or ``None`` while pending."""

        raise NotImplementedError

    def __await__(self) -> Generator[Any, None, T]:
        raise NotImplementedError


class Resolved(Completion[T]):
    """Synchronously succeeded completion."""

    __slots__ = ("value",)

    def __init__(self, value: T) -> None:
        self.value = value

    def then(
        self,
        on_success: Reaction | None = None,
        on_failure: Reaction | None = None,
    ) -> Completion[Any]:
        if on_success is None:
            return self
        return _react(on_success, self.value)

    def finally_(self, on_settle: Callable[[], Any]) -> Completion[T]:
        return _run_finally(self, on_settle)

    def done(self) -> bool:
        return True

    def outcome(self) -> Outcome[T]:
        return Ok(self.value)

    def __await__(self) -> Generator[Any, None, T]:
        yield from ()
        return unseed(self.value)

    def __repr__(self) -> str:
        return f"Resolved({self.value!r})"


class Rejected(Completion[Any]):
    """Synchronously failed completion."""

    __slots__ = ("reason",)

    def __init__(self, reason: Any) -> None:
        self.reason = reason

    def then(
        self,
        on_success: Reaction | None = None,
        on_failure: Reaction | None = None,
    ) -> Completion[Any]:
        if on_failure is None:
            return self
        return _react(on_failure, self.reason)

    def finally_(self, on_settle: Callable[[], Any]) -> Completion[Any]:
        return _run_finally(self, on_settle)

    def done(self) -> bool:
        return True

    def outcome(self) -> Outcome[Any]:
        return Err(self.reason)

    def __await__(self) -> Generator[Any, None, Any]:
        yield from ()
        raise as_exception(self.reason)

    def __repr__(self) -> str:
        return f"Rejected({self.reason!r})"


class Deferred(Completion[T]):
    """Completion settled through an asyncio future carrying an outcome."""

    __slots__ = ("_future",)

    def __init__(self, future: asyncio.Future[Outcome[T]]) -> None:
        self._future = future

    @classmethod
    def from_awaitable(cls, awaitable: Any) -> Deferred[Any]:
        """Wrap a future, task or coroutine.

        Results become ``Ok`` outcomes, raised exceptions and cancellation
        become ``Err`` outcomes.
        """

        source = asyncio.ensure_future(awaitable)
        future: asyncio.Future[Outcome[Any]] = source.get_loop().create_future()

        def _bridge(done: asyncio.Future[Any]) -> None:
            if done.cancelled():
                _settle(future, Err(asyncio.CancelledError()))
                return
            error = done.exception()
            if error is not None:
                _settle(future, Err(error))
            else:
                _settle(future, Ok(done.result()))

        source.add_done_callback(_bridge)
        return cls(future)

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._future.get_loop()

    def then(
        self,
        on_success: Reaction | None = None,
        on_failure: Reaction | None = None,
    ) -> Completion[Any]:
        target: asyncio.Future[Outcome[Any]] = self.loop.create_future()

        def _react_later(source: asyncio.Future[Outcome[T]]) -> None:
            settled = _from_outcome(_outcome_of(source))
            _forward(settled.then(on_success, on_failure), target)

        self._future.add_done_callback(_react_later)
        return Deferred(target)

    def finally_(self, on_settle: Callable[[], Any]) -> Completion[T]:
        target: asyncio.Future[Outcome[T]] = self.loop.create_future()

        def _settle_later(source: asyncio.Future[Outcome[T]]) -> None:
            settled = _from_outcome(_outcome_of(source))
            _forward(settled.finally_(on_settle), target)

        self._future.add_done_callback(_settle_later)
        return Deferred(target)

    def done(self) -> bool:
        return self._future.done()

    def outcome(self) -> Outcome[T] | None:
        if not self._future.done():
            return None
        return _outcome_of(self._future)

    def __await__(self) -> Generator[Any, None, T]:
        # Shielded so a cancelled awaiter does not cancel the shared future.
        outcome = yield from asyncio.shield(self._future).__await__()
        return unseed(outcome.unwrap())

    def __repr__(self) -> str:
        state = repr(self.outcome()) if self.done() else "pending"
        return f"Deferred({state})"


def confer(value: Any) -> Completion[Any]:
    """Normalise ``value`` into a completion.

    Completions are returned unchanged, chains yield their current completion,
    awaitables are wrapped in a ``Deferred`` and anything else becomes
    ``Resolved(value)``.
    """

    if isinstance(value, Completion):
        return value

    from ropeway.chain import Chain

    if isinstance(value, Chain):
        return value.completion
    if inspect.isawaitable(value):
        return Deferred.from_awaitable(value)
    return Resolved(value)


def reject(reason: Any) -> Rejected:
    """Return a completion already failed with ``reason``."""

    return Rejected(reason)


def join(completions: Iterable[Completion[Any]]) -> Completion[list[Any]]:
    """Fan in several completions.

    Succeeds with the list of values once every input succeeded, fails with the
    first failure. Stays synchronous when no input is a ``Deferred``.
    """

    pending = list(completions)
    for completion in pending:
        if isinstance(completion, Rejected):
            return completion

    deferred = [c for c in pending if isinstance(c, Deferred)]
    if not deferred:
        return Resolved([unseed(c.value) for c in pending if isinstance(c, Resolved)])

    target: asyncio.Future[Outcome[list[Any]]] = deferred[0].loop.create_future()
    values: list[Any] = [None] * len(pending)
    remaining = len(pending)

    def _collect(index: int) -> Reaction:
        def _on_success(value: Any) -> None:
            nonlocal remaining
            values[index] = unseed(value)
            remaining -= 1
            if remaining == 0:
                _settle(target, Ok(values))

        return _on_success

    def _on_failure(reason: Any) -> None:
        _settle(target, Err(reason))

    for index, completion in enumerate(pending):
        completion.then(_collect(index), _on_failure)
    return Deferred(target)


def delay(
    seconds: float,
    value: Any = None,
    loop: asyncio.AbstractEventLoop | None = None,
) -> Deferred[Any]:
    """Return a completion resolved with ``value`` after ``seconds``.

    Args:
        seconds: Duration to wait in seconds. Must be non-negative.
        value: Value the completion resolves with.
        loop: Loop scheduling the callback, defaults to the running loop.
    """

    if seconds < 0:
        raise ValueError(f"seconds must be non-negative, got {seconds}")
    if loop is None:
        loop = asyncio.get_running_loop()
    future: asyncio.Future[Outcome[Any]] = loop.create_future()
    loop.call_later(seconds, _settle, future, Ok(value))
    return Deferred(future)


def _react(reaction: Reaction, argument: Any) -> Completion[Any]:
    try:
        return confer(reaction(argument))
    except Exception as exc:
        return Rejected(exc)


def _run_finally(completion: Completion[T], on_settle: Callable[[], Any]) -> Completion[T]:
    try:
        result = on_settle()
    except Exception as exc:
        return Rejected(exc)
    if result is None or not _is_completion_like(result):
        return completion
    return confer(result).then(lambda _: completion)


def _is_completion_like(value: Any) -> bool:
    from ropeway.chain import Chain

    return isinstance(value, (Completion, Chain)) or inspect.isawaitable(value)


def _from_outcome(outcome: Outcome[Any]) -> Completion[Any]:
    if isinstance(outcome, Ok):
        return Resolved(outcome.value)
    return Rejected(outcome.reason)


def _outcome_of(future: asyncio.Future[Outcome[Any]]) -> Outcome[Any]:
    if future.cancelled():
        return Err(asyncio.CancelledError())
    return future.result()


def _forward(completion: Completion[Any], target: asyncio.Future[Outcome[Any]]) -> None:
    if isinstance(completion, Deferred):
        completion._future.add_done_callback(
            lambda source: _settle(target, _outcome_of(source))
        )
    elif isinstance(completion, Rejected):
        _settle(target, Err(completion.reason))
    elif isinstance(completion, Resolved):
        _settle(target, Ok(completion.value))
    else:
        raise TypeError(f"cannot forward {type(completion).__name__}")


def _settle(future: asyncio.Future[Outcome[Any]], outcome: Outcome[Any]) -> None:
    if not future.done():
        future.set_result(outcome)


__all__ = [
    "Completion",
    "Deferred",
    "Rejected",
    "Resolved",
    "confer",
    "delay",
    "join",
    "reject",
]
