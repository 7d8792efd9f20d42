"""Error types raised by the ropeway engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class RopewayError(Exception):
    """Base class for errors raised by ropeway itself."""


class ProtocolMisuseError(RopewayError):
    """Raised when the chain-building API is used in an invalid order."""


class BlockStackError(ProtocolMisuseError):
    """Raised when ``end()`` or ``or_next_if()`` has no open block to act on.

    Blocks opened by ``next_if`` (and its variants) must be closed by exactly
    one ``end()``:

        >>> rope.next_if(flag).next(step).end()
    """


class NoActiveFrameError(ProtocolMisuseError):
    """Raised when an operation needs the frame of a running step.

    ``inherit``, ``load_parent_stack``, ``load_parent_status``,
    ``load_parent`` and task steps only make sense while a step function is
    executing synchronously.

    Attributes:
        operation: Name of the operation that was attempted.
    """

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(
            f"{operation}() requires an active step frame\n"
            f"Hint: call it synchronously from inside a function passed to next(), "
            f"handle() or always()"
        )


@dataclass(eq=False)
class RejectedError(RopewayError):
    """Raised when awaiting a completion rejected with a non-exception reason.

    Attributes:
        reason: The original rejection reason.
    """

    reason: Any

    def __str__(self) -> str:
        return f"completion rejected with {self.reason!r}"


def as_exception(reason: Any) -> BaseException:
    """Return ``reason`` if it can be raised, else wrap it in ``RejectedError``."""

    if isinstance(reason, BaseException):
        return reason
    return RejectedError(reason)


__all__ = [
    "BlockStackError",
    "NoActiveFrameError",
    "ProtocolMisuseError",
    "RejectedError",
    "RopewayError",
    "as_exception",
]
