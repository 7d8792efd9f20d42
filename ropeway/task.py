"""
Task wrapper: reusable, receiver-preserving steps.

``Rope.task`` turns a function into a factory of steps. Used as a method
decorator it binds like a method, so the instance becomes the bound context of
the task body no matter where the step is later executed:

    >>> class BookService:
    ...     @rope.task
    ...     def will_register(self, registration):
    ...         rope.next(lambda book: book.update(registration))
    >>>
    >>> rope.seed(book).next(service.will_register("today"))

Calling the factory only captures arguments. The body runs when the step is
reached, inside its own chain seeded with the current value; that chain is a
fork of the invoking step, so anything the body chains is waited for.
"""

from __future__ import annotations

import inspect
import types
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, ParamSpec, TypeVar

from loguru import logger

from ropeway.errors import NoActiveFrameError

if TYPE_CHECKING:
    from ropeway.rope import Rope

P = ParamSpec("P")
T = TypeVar("T")

log = logger.bind(component="ropeway.task")


class Task(Generic[P, T]):
    """Factory of :class:`TaskStep` objects wrapping ``func``."""

    def __init__(self, rope: Rope, func: Callable[P, T]) -> None:
        if not callable(func):
            raise TypeError(f"task() expects a callable, got {type(func).__name__}")
        self.rope = rope
        self.func = func

        for attr in ("__doc__", "__module__", "__name__", "__qualname__"):
            value = getattr(func, attr, None)
            if value is not None:
                setattr(self, attr, value)
        try:
            self.__signature__ = inspect.signature(func)
        except (TypeError, ValueError):
            pass

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        return types.MethodType(self._bind, instance)

    def _bind(self, receiver: Any, *args: Any, **kwargs: Any) -> TaskStep:
        return TaskStep(
            rope=self.rope,
            func=self.func,
            args=(receiver, *args),
            kwargs=kwargs,
            receiver=receiver,
            bound=True,
        )

    def __call__(self, *args: P.args, **kwargs: P.kwargs) -> TaskStep:
        return TaskStep(rope=self.rope, func=self.func, args=args, kwargs=kwargs)

    def __repr__(self) -> str:
        return f"Task({getattr(self, '__qualname__', self.func)!r})"


@dataclass(frozen=True)
class TaskStep:
    """Step produced by calling a :class:`Task` factory.

    Attributes:
        rope: Engine the step dispatches through.
        func: The wrapped task body.
        args: Positional arguments, the receiver first when ``bound``.
        kwargs: Keyword arguments.
        receiver: Instance the task was accessed from, when bound.
        bound: Whether the task was accessed through an instance.
    """

    rope: Rope = field(repr=False)
    func: Callable[..., Any]
    args: tuple[Any, ...] = ()
    kwargs: dict[str, Any] = field(default_factory=dict)
    receiver: Any = field(default=None, repr=False)
    bound: bool = False

    def __call__(self, value: Any) -> None:
        frame = self.rope.frame
        if frame is None:
            raise NoActiveFrameError(f"task {getattr(self.func, '__qualname__', self.func)}")

        ctx = self.receiver if self.bound else frame.context
        log.debug("dispatching task {}", getattr(self.func, "__qualname__", self.func))
        child = self.rope.seed(value)
        if frame.chain is not None:
            child.stack = frame.chain.stack
        child._step(self._invoke, ctx, is_error=frame.is_error)

    def _invoke(self, _value: Any) -> Any:
        return self.func(*self.args, **self.kwargs)


__all__ = ["Task", "TaskStep"]
