"""
Value types shared by the completion layer and the chain engine.

``Ok``/``Err`` are the settled outcomes carried through asyncio futures,
``Seed`` marks a literal starting value and ``DONE`` is the block marker
used once an alternative of a ``next_if`` block has already run.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Final, Generic, TypeVar

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)


class Outcome(Generic[T_co]):
    """Sum type representing either a successful value or a failure reason."""

    __slots__ = ()

    def is_ok(self) -> bool:
        """Return ``True`` when the outcome is successful."""

        return isinstance(self, Ok)

    def is_err(self) -> bool:
        """Return ``True`` when the outcome represents a failure."""

        return isinstance(self, Err)

    def unwrap(self) -> T_co:
        """Return the value or raise the stored reason."""

        if isinstance(self, Ok):
            return self.value
        from ropeway.errors import as_exception

        raise as_exception(self.reason)

    def __bool__(self) -> bool:
        """Truthiness matches :meth:`is_ok`."""

        return self.is_ok()


@dataclass(frozen=True)
class Ok(Outcome[T], Generic[T]):
    """Successful outcome."""

    value: T


@dataclass(frozen=True)
class Err(Outcome[Any]):
    """Failed outcome.

    ``reason`` is usually an exception, but any object may be used as a
    rejection reason.
    """

    reason: Any


@dataclass(frozen=True)
class Seed(Generic[T]):
    """Literal starting value for a chain.

    A seeded value is handed to the next step as-is, even when it is itself
    awaitable.
    """

    value: T


def unseed(value: Any) -> Any:
    """Return the content of a :class:`Seed`, or ``value`` unchanged."""

    if isinstance(value, Seed):
        return value.value
    return value


class BlockMarker(enum.Enum):
    DONE = "done"

    def __repr__(self) -> str:
        return f"BlockMarker.{self.name}"


DONE: Final = BlockMarker.DONE


class _Missing(enum.Enum):
    MISSING = "missing"


MISSING: Final = _Missing.MISSING


__all__ = [
    "DONE",
    "MISSING",
    "BlockMarker",
    "Err",
    "Ok",
    "Outcome",
    "Seed",
    "unseed",
]
