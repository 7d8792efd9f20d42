"""
ropeway - Sequential task chaining over completions.

Compose synchronous values, functions and asyncio awaitables into one ordered
pipeline with branching, error recovery, fork/join and scoped shared state.
Steps that only involve plain values run synchronously, in attachment order;
awaitables suspend the chain until the event loop settles them.

Example:
    >>> from ropeway import rope
    >>>
    >>> calls = []
    >>> chain = (
    ...     rope.seed(3)
    ...     .next(lambda n: n * 2)
    ...     .next_if(lambda n: n > 5)
    ...         .next(calls.append)
    ...     .end()
    ...     .handle(lambda error: calls.append(f"failed: {error}"))
    ... )
    >>> calls
    [6]

Logging goes through loguru and is disabled by default; set
``ROPEWAY_TRACE=1`` or build ``Rope(trace=True)`` to see frame activity.
"""

from loguru import logger

logger.disable("ropeway")

from ropeway.chain import Chain
from ropeway.completion import (
    Completion,
    Deferred,
    Rejected,
    Resolved,
    confer,
    delay,
    join,
    reject,
)
from ropeway.errors import (
    BlockStackError,
    NoActiveFrameError,
    ProtocolMisuseError,
    RejectedError,
    RopewayError,
)
from ropeway.frame import Continue, Done, ExecutionFrame, FrameStack
from ropeway.rope import Rope
from ropeway.task import Task, TaskStep
from ropeway.types import DONE, Err, Ok, Outcome, Seed, unseed

rope = Rope()

__version__ = "0.1.0"

__all__ = [
    "DONE",
    "BlockStackError",
    "Chain",
    "Completion",
    "Continue",
    "Deferred",
    "Done",
    "Err",
    "ExecutionFrame",
    "FrameStack",
    "NoActiveFrameError",
    "Ok",
    "Outcome",
    "ProtocolMisuseError",
    "Rejected",
    "RejectedError",
    "Resolved",
    "Rope",
    "RopewayError",
    "Seed",
    "Task",
    "TaskStep",
    "confer",
    "delay",
    "join",
    "reject",
    "rope",
    "unseed",
]
