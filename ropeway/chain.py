"""
The Chain: an ordered pipeline of steps over a single completion.

Every chain-building call attaches one reaction to the chain's completion and
replaces it with the resulting completion, so steps run strictly in the order
they were attached. Flow control is tracked on a per-chain block stack:

    >>> (
    ...     rope.next(load_book)
    ...     .next_if(lambda book: book.is_draft)
    ...         .next(publish)
    ...     .or_next()
    ...         .next(notify_reviewers)
    ...     .end()
    ...     .handle(report_failure)
    ... )

A block marker is ``True`` while its branch is active, ``False`` while it is
skipped, and ``DONE`` once an earlier alternative of the same block ran.
"""

from __future__ import annotations

from collections.abc import Callable, Generator, Iterable, Mapping, MutableMapping
from typing import TYPE_CHECKING, Any

from loguru import logger

from ropeway.completion import Completion, Resolved, confer, delay, reject
from ropeway.errors import BlockStackError, NoActiveFrameError
from ropeway.types import DONE, MISSING, BlockMarker, Seed, unseed

if TYPE_CHECKING:
    from ropeway.frame import ExecutionFrame
    from ropeway.rope import Rope
    from ropeway.task import Task

log = logger.bind(component="ropeway.chain")

Step = Any


class Chain:
    """Sequencing handle accumulating ordered steps.

    A chain created while a step is running registers itself as a fork of that
    step, and the step's result becomes the chain's completion (or the join of
    all chains it created).
    """

    def __init__(self, rope: Rope, completion: Completion[Any]) -> None:
        self._rope = rope
        self._completion = completion
        self._blocks: list[bool | BlockMarker] = []
        self._depth = 0
        self._exited = False
        self.stack: list[Any] = []
        rope.frames.register(self)

    @property
    def rope(self) -> Rope:
        return self._rope

    @property
    def completion(self) -> Completion[Any]:
        return self._completion

    @property
    def exited(self) -> bool:
        return self._exited

    @property
    def skipped(self) -> bool:
        """Whether steps attached now would pass values through untouched."""

        if self._exited:
            return True
        return bool(self._blocks) and self._blocks[-1] is not True

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def seed(self, value: Any, ctx: Any = None) -> Chain:
        """Replace the chain value with ``value`` taken literally."""

        return self.next(Seed(value), ctx)

    def next(self, fn: Step, ctx: Any = None) -> Chain:
        """Append a success-path step.

        ``fn`` is called with the current value; its result becomes the next
        value (awaited when it is awaitable). Returning ``None`` keeps the
        current value. A non-callable ``fn`` is used as the next value itself.
        """

        return self._step(fn, self._ctx(ctx))

    def handle(self, fn: Step, ctx: Any = None) -> Chain:
        """Append an error-path step.

        ``fn`` receives the failure reason. Its result recovers the chain
        (``None`` included); raising or returning a failed completion keeps the
        chain failed with the new reason.
        """

        ctx = self._ctx(ctx)

        def _recover(reason: Any) -> Any:
            if self.skipped:
                return reject(reason)
            log.debug("handling failure {!r}", reason)
            return confer(self._rope.tick(self, ctx, fn, reason, True))

        self._completion = self._completion.then(None, _recover)
        return self

    def always(self, fn: Step, ctx: Any = None) -> Chain:
        """Append a step running on both paths.

        On success it behaves like :meth:`next`. On failure ``fn`` runs with the
        reason and, once it settles, the original failure is raised again
        whatever ``fn`` did.
        """

        ctx = self._ctx(ctx)

        def _on_success(value: Any) -> Any:
            if self.skipped:
                return value
            return self._rope.tick(self, ctx, fn, value, False)

        def _on_failure(reason: Any) -> Any:
            if self.skipped:
                return reject(reason)
            try:
                settled = confer(self._rope.tick(self, ctx, fn, reason, True))
            except Exception:
                log.opt(exception=True).debug("always() step failed on the failure path")
                return reject(reason)

            def _restore(_: Any) -> Completion[Any]:
                return reject(reason)

            return settled.then(_restore, _restore)

        self._completion = self._completion.then(_on_success, _on_failure)
        return self

    def apply(self, name: str, args: Iterable[Any] = ()) -> Chain:
        """Call method ``name`` of the current value with ``args``."""

        args = tuple(args)
        return self.next(lambda value: getattr(value, name)(*args))

    def call(self, name: str, *args: Any) -> Chain:
        """Call method ``name`` of the current value with ``*args``."""

        return self.apply(name, args)

    def get(self, name: str, ctx: Any = None) -> Chain:
        """Load property ``name`` of the bound context as the chain value."""

        ctx = self._ctx(ctx)
        return self._step(lambda _: Seed(_read(ctx, name)), ctx)

    def set(self, name: str, ctx: Any = None) -> Chain:
        """Store the chain value in property ``name`` of the bound context."""

        ctx = self._ctx(ctx)
        return self._step(lambda value: _write(ctx, name, value), ctx)

    def push(self, *values: Any) -> Chain:
        """Push ``values`` on the chain stack, or the current value if none."""

        def _push(value: Any) -> None:
            self.stack.extend(values if values else (value,))

        return self.next(_push)

    def pop(self, name: str | None = None, ctx: Any = None) -> Chain:
        """Pop the chain stack.

        Without ``name`` the popped value becomes the chain value; with
        ``name`` it is stored in that context property and the chain value is
        kept.
        """

        ctx = self._ctx(ctx)

        def _pop(_: Any) -> Any:
            top = self.stack.pop()
            if name is None:
                return Seed(top)
            _write(ctx, name, top)
            return None

        return self._step(_pop, ctx)

    def fork_each(self, fn: Step, ctx: Any = None) -> Chain:
        """Run ``fn`` on every element of the current value in its own chain.

        The step waits for all forks. Like any step that spawns chains, two or
        more forks give the list of their results, a single fork gives its
        bare result and an empty input leaves the current value unchanged.
        """

        ctx = self._ctx(ctx)

        def _fork(items: Iterable[Any]) -> None:
            for item in items:
                self._rope.seed(item).next(fn, ctx)

        return self._step(_fork, ctx)

    def wait(self, seconds: float) -> Chain:
        """Suspend the chain for ``seconds`` and resume with the same value.

        The pause is applied even inside a skipped block; failures pass
        through without waiting.
        """

        if seconds < 0:
            raise ValueError(f"seconds must be non-negative, got {seconds}")

        def _pause(value: Any) -> Completion[Any]:
            log.debug("pausing chain for {}s", seconds)
            return delay(seconds, value, loop=self._rope.loop)

        self._completion = self._completion.then(_pause)
        return self

    def task(self, fn: Callable[..., Any]) -> Task[Any, Any]:
        return self._rope.task(fn)

    # ------------------------------------------------------------------
    # Parent frame access
    # ------------------------------------------------------------------

    def load_parent_stack(self) -> Chain:
        """Share the data stack of the chain running the enclosing step."""

        frame = self._require_frame("load_parent_stack")
        if frame.chain is not None:
            self.stack = frame.chain.stack
        return self

    def load_parent_status(self) -> Chain:
        """Restart this chain from the enclosing step's value and status."""

        frame = self._require_frame("load_parent_status")
        if frame.is_error:
            self._completion = reject(frame.value)
        else:
            self._completion = Resolved(Seed(frame.value))
        return self

    def load_parent(self) -> Chain:
        return self.load_parent_stack().load_parent_status()

    # ------------------------------------------------------------------
    # Flow control
    # ------------------------------------------------------------------

    def next_if(self, cond: Any = MISSING, ctx: Any = None) -> Chain:
        """Open a block that runs only if ``cond`` holds.

        ``cond`` may be a function of the current value, a literal or an
        awaitable; without it the truthiness of the current value is used.
        A condition function returning ``None`` counts as false. Close the
        block with :meth:`end`.
        """

        return self._open_block(cond, self._ctx(ctx), negate=False)

    def next_unless(self, cond: Any = MISSING, ctx: Any = None) -> Chain:
        return self._open_block(cond, self._ctx(ctx), negate=True)

    def next_case(self, expected: Any) -> Chain:
        return self.next_if(lambda value: value == expected)

    def or_next_if(self, cond: Any = MISSING, ctx: Any = None) -> Chain:
        """Alternative branch, entered only if no earlier branch ran."""

        return self._switch_block(cond, self._ctx(ctx), negate=False)

    def or_next_unless(self, cond: Any = MISSING, ctx: Any = None) -> Chain:
        return self._switch_block(cond, self._ctx(ctx), negate=True)

    def or_next_case(self, expected: Any) -> Chain:
        return self.or_next_if(lambda value: value == expected)

    def or_next(self) -> Chain:
        return self.or_next_if(True)

    def end(self) -> Chain:
        """Close the innermost open block."""

        if self._depth == 0:
            raise BlockStackError("end() called without an open next_if() block")
        self._depth -= 1

        def _close() -> None:
            self._blocks.pop()

        self._completion = self._completion.finally_(_close)
        return self

    def exit(self) -> Chain:
        """Skip every later step of this chain once this point is reached."""

        def _exit(value: Any) -> Any:
            if not self.skipped:
                self._exited = True
            return value

        self._completion = self._completion.then(_exit)
        return self

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _step(self, fn: Step, ctx: Any, *, is_error: bool = False) -> Chain:
        def _run(value: Any) -> Any:
            if self.skipped:
                return value
            return self._rope.tick(self, ctx, fn, value, is_error)

        self._completion = self._completion.then(_run)
        return self

    def _open_block(self, cond: Any, ctx: Any, *, negate: bool) -> Chain:
        self._depth += 1

        def _open(value: Any) -> Any:
            if self.skipped:
                self._blocks.append(False)
                return value
            return self._evaluate(cond, ctx, value, negate).then(self._marker(value, push=True))

        def _abort(reason: Any) -> Completion[Any]:
            self._blocks.append(False)
            return reject(reason)

        self._completion = self._completion.then(_open).then(None, _abort)
        return self

    def _switch_block(self, cond: Any, ctx: Any, *, negate: bool) -> Chain:
        if self._depth == 0:
            raise BlockStackError("or_next_if() called without an open next_if() block")

        def _switch(value: Any) -> Any:
            if self._blocks[-1] is not False:
                self._blocks[-1] = DONE
                return value
            if self._enclosing_skipped():
                return value
            return self._evaluate(cond, ctx, value, negate).then(self._marker(value, push=False))

        def _abort(reason: Any) -> Completion[Any]:
            self._blocks[-1] = False
            return reject(reason)

        self._completion = self._completion.then(_switch).then(None, _abort)
        return self

    def _evaluate(self, cond: Any, ctx: Any, value: Any, negate: bool) -> Completion[Any]:
        if cond is MISSING:
            flag: Completion[Any] = Resolved(unseed(value))
        elif callable(cond):
            flag = confer(self._rope.tick(self, ctx, _predicate(cond), value))
        else:
            flag = confer(cond)
        return flag.then(lambda result: bool(unseed(result)) != negate)

    def _marker(self, value: Any, *, push: bool) -> Callable[[bool], Any]:
        def _record(flag: bool) -> Any:
            if push:
                self._blocks.append(flag)
            else:
                self._blocks[-1] = flag
            return value

        return _record

    def _enclosing_skipped(self) -> bool:
        if self._exited:
            return True
        return len(self._blocks) > 1 and self._blocks[-2] is not True

    def _ctx(self, ctx: Any) -> Any:
        return ctx if ctx is not None else self._rope.context

    def _require_frame(self, operation: str) -> ExecutionFrame:
        frame = self._rope.frame
        if frame is None:
            raise NoActiveFrameError(operation)
        return frame

    def __await__(self) -> Generator[Any, None, Any]:
        return self._completion.__await__()

    def __repr__(self) -> str:
        return (
            f"Chain(completion={self._completion!r}, blocks={self._blocks!r}, "
            f"exited={self._exited})"
        )


def _predicate(cond: Callable[[Any], Any]) -> Callable[[Any], Any]:
    # A condition that returns None answers "no" instead of passing the value through.
    def _test(value: Any) -> Any:
        result = cond(value)
        return False if result is None else result

    return _test


def _read(ctx: Any, name: str) -> Any:
    if isinstance(ctx, Mapping):
        return ctx[name]
    return getattr(ctx, name)


def _write(ctx: Any, name: str, value: Any) -> None:
    if isinstance(ctx, MutableMapping):
        ctx[name] = value
    else:
        setattr(ctx, name, value)


__all__ = ["Chain"]
