"""Tests for the task wrapper and its steps."""

from __future__ import annotations

from typing import Any

import pytest

from ropeway import Continue, NoActiveFrameError, Rope, Task, TaskStep, reject


class TestTaskFactory:
    def test_calling_a_task_only_captures_arguments(self, rope: Rope) -> None:
        seen: list[Any] = []
        record = rope.task(lambda *args, **kwargs: seen.append((args, kwargs)))

        step = record(1, flag=True)

        assert isinstance(step, TaskStep)
        assert step.args == (1,)
        assert step.kwargs == {"flag": True}
        assert seen == []

    def test_task_keeps_the_wrapped_metadata(self, will_call: Task[Any, Any]) -> None:
        assert will_call.__name__ == "_record"
        assert "will_call" in will_call.__qualname__

    def test_non_callable_is_rejected(self, rope: Rope) -> None:
        with pytest.raises(TypeError, match="expects a callable"):
            rope.task(42)

    def test_step_outside_a_running_step_raises(self, rope: Rope) -> None:
        step = rope.task(lambda: None)()

        with pytest.raises(NoActiveFrameError, match="requires an active step frame"):
            step("value")

    def test_chain_task_delegates_to_the_rope(self, rope: Rope) -> None:
        task = rope.chain().task(lambda: None)

        assert isinstance(task, Task)
        assert task.rope is rope


class TestRunningTasks:
    def test_task_runs_when_the_step_is_reached(
        self, rope: Rope, calls: list[Any], will_call: Task[Any, Any]
    ) -> None:
        chain = rope.seed("value").next(will_call("arg"))

        assert calls == ["arg"]
        assert chain.completion.value == "arg"

    def test_task_body_sees_the_current_value(self, rope: Rope, calls: list[Any]) -> None:
        double = rope.task(lambda: rope.value * 2)

        rope.seed(21).next(double()).next(calls.append)

        assert calls == [42]

    def test_task_returning_none_keeps_the_value(self, rope: Rope, calls: list[Any]) -> None:
        noop = rope.task(lambda: None)

        rope.seed("kept").next(noop()).next(calls.append)

        assert calls == ["kept"]

    def test_chains_built_by_the_body_are_waited_for(
        self, rope: Rope, calls: list[Any]
    ) -> None:
        @rope.task
        def will_process(label: str) -> None:
            (
                rope.next(lambda _: calls.append(f"{label}:1"))
                .next(lambda _: calls.append(f"{label}:2"))
            )

        rope.next(will_process("a")).next(lambda _: calls.append("after"))

        assert calls == ["a:1", "a:2", "after"]

    def test_unbound_task_uses_the_step_context(self, rope: Rope) -> None:
        contexts: list[Any] = []
        capture = rope.task(lambda: contexts.append(rope.context))
        ctx = object()

        rope.seed(1).next(capture(), ctx)

        assert contexts == [ctx]

    def test_task_failure_rejects_the_chain(self, rope: Rope, calls: list[Any]) -> None:
        @rope.task
        def will_fail() -> None:
            raise RuntimeError("task failed")

        rope.next(will_fail()).handle(lambda error: calls.append(str(error)))

        assert calls == ["task failed"]

    def test_step_returning_a_task_step_runs_it(self, rope: Rope, calls: list[Any]) -> None:
        shout = rope.task(lambda: rope.value.upper())

        rope.seed("quiet").next(lambda _: shout()).next(calls.append)

        assert calls == ["QUIET"]

    def test_continue_to_another_step(self, rope: Rope, calls: list[Any]) -> None:
        rope.seed(3).next(lambda _: Continue(lambda n: n + 1)).next(calls.append)

        assert calls == [4]

    def test_task_can_restore_the_parent_status(self, rope: Rope, calls: list[Any]) -> None:
        @rope.task
        def will_recover(prefix: str):
            return rope.load_parent_status().handle(lambda reason: f"{prefix} {reason}")

        (
            rope.next(lambda _: reject("teapot"))
            .handle(will_recover("recovered from"))
            .next(calls.append)
        )

        assert calls == ["recovered from teapot"]

    def test_task_rethrowing_the_parent_failure(self, rope: Rope, calls: list[Any]) -> None:
        @rope.task
        def will_log_and_rethrow():
            calls.append("logged")
            return rope.load_parent_status()

        (
            rope.next(lambda _: reject("teapot"))
            .handle(will_log_and_rethrow())
            .next(lambda _: calls.append("unreachable"))
            .handle(calls.append)
        )

        assert calls == ["logged", "teapot"]

    def test_task_body_shares_the_invoking_chain_stack(self, rope: Rope) -> None:
        seen: list[list[Any]] = []

        @rope.task
        def will_peek() -> None:
            seen.append(list(rope.load_parent_stack().stack))

        def peek(_):
            seen.append(list(rope.load_parent_stack().stack))

        rope.seed(1).push("a", "b").next(will_peek())
        rope.seed(1).push("a", "b").next(peek)

        assert seen == [["a", "b"], ["a", "b"]]

    def test_task_body_can_pop_the_invoking_chain_stack(
        self, rope: Rope, calls: list[Any]
    ) -> None:
        @rope.task
        def will_take_top() -> None:
            rope.load_parent_stack().pop().next(calls.append)

        outer = rope.seed("value").push("bottom", "top").next(will_take_top())

        assert calls == ["top"]
        assert outer.stack == ["bottom"]


class TestMethodTasks:
    def test_bound_task_runs_against_its_receiver(self, rope: Rope) -> None:
        class Shelf:
            def __init__(self) -> None:
                self.books: list[str] = []

            @rope.task
            def will_store(self, title: str) -> None:
                rope.next(lambda _: self.books.append(title))

        shelf = Shelf()
        rope.seed("ignored").next(shelf.will_store("Dune"))

        assert shelf.books == ["Dune"]

    def test_receiver_is_the_bound_context(self, rope: Rope) -> None:
        contexts: list[Any] = []

        class Service:
            @rope.task
            def will_capture(self) -> None:
                contexts.append(rope.context)

        service = Service()
        rope.seed(1).next(service.will_capture(), {"other": "context"})

        assert contexts == [service]

    def test_receiver_follows_steps_run_by_the_body(self, rope: Rope) -> None:
        class Counter:
            count = 0

            @rope.task
            def will_increment(self) -> None:
                rope.get("count").next(lambda n: n + 1).set("count")

        counter = Counter()
        rope.next(counter.will_increment()).next(counter.will_increment())

        assert counter.count == 2

    def test_class_access_returns_the_task(self, rope: Rope) -> None:
        class Service:
            @rope.task
            def will_run(self) -> None:
                pass

        assert isinstance(Service.__dict__["will_run"], Task)
        assert Service.will_run is Service.__dict__["will_run"]
        assert Service().will_run().receiver is not None
