"""Tests for execution frames and the tick routine."""

from __future__ import annotations

import pytest

from ropeway import Continue, ExecutionFrame, Resolved, Rope, Seed

from tests.conftest import Recorder


class TestTick:
    def test_literal_step_is_returned_unchanged(self, rope: Rope) -> None:
        assert rope.tick(None, None, 5, "data") == 5
        assert rope.tick(None, None, Seed("x"), "data") == Seed("x")

    def test_frame_describes_the_running_step(self, rope: Rope) -> None:
        ctx = object()
        seen: list[ExecutionFrame | None] = []

        rope.tick(None, ctx, lambda _: seen.append(rope.frame), "data")

        (frame,) = seen
        assert frame is not None
        assert frame.context is ctx
        assert frame.value == "data"
        assert frame.is_error is False
        assert frame.parent is None
        assert rope.frame is None

    def test_seeded_data_is_unwrapped_for_the_step(self, rope: Rope) -> None:
        recorder = Recorder()

        result = rope.tick(None, None, recorder, Seed("literal"))

        assert recorder.calls == ["literal"]
        assert result == Seed("literal")

    def test_none_result_passes_data_through_on_success(self, rope: Rope) -> None:
        assert rope.tick(None, None, Recorder(), "kept") == "kept"

    def test_none_result_is_kept_on_the_failure_path(self, rope: Rope) -> None:
        recorder = Recorder()

        assert rope.tick(None, None, recorder, "reason", True) is None
        assert recorder.called

    def test_failure_flag_is_visible_to_the_step(self, rope: Rope) -> None:
        flags: list[bool] = []

        rope.tick(None, None, lambda _: flags.append(rope.frame.is_error), "reason", True)

        assert flags == [True]

    def test_previous_frame_is_restored_after_an_exception(self, rope: Rope) -> None:
        def explode(_):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            rope.tick(None, None, explode, None)

        assert rope.frame is None
        assert rope.frames.depth == 0

    def test_nested_frames_link_to_their_parent(self, rope: Rope) -> None:
        frames: dict[str, ExecutionFrame | None] = {}

        def inner(_):
            frames["inner"] = rope.frame
            frames["depth"] = rope.frames.depth

        def outer(_):
            frames["outer"] = rope.frame
            rope.tick(None, "inner-ctx", inner, "inner-data")
            frames["restored"] = rope.frame

        rope.tick(None, "outer-ctx", outer, "outer-data")

        assert frames["inner"].parent is frames["outer"]
        assert frames["inner"].context == "inner-ctx"
        assert frames["depth"] == 2
        assert frames["restored"] is frames["outer"]


class TestSpawnedChains:
    def test_single_spawned_chain_replaces_the_result(self, rope: Rope) -> None:
        spawned = []

        def step(_):
            spawned.append(rope.seed(1).next(lambda n: n + 1))
            return "ignored"

        result = rope.tick(None, None, step, None)

        assert result is spawned[0].completion

    def test_several_spawned_chains_are_joined(self, rope: Rope) -> None:
        def step(_):
            rope.seed("a")
            rope.seed("b").next(str.upper)

        result = rope.tick(None, None, step, None)

        assert isinstance(result, Resolved)
        assert result.value == ["a", "B"]

    def test_chains_created_outside_a_step_are_not_registered(self, rope: Rope) -> None:
        rope.seed("top level")

        assert rope.frame is None
        assert rope.tick(None, None, lambda _: "plain", None) == "plain"


class TestContinue:
    def test_continue_runs_the_next_step_with_the_same_value(self, rope: Rope) -> None:
        seen: list[int] = []

        def second(value):
            seen.append(value)
            return value * 10

        assert rope.tick(None, None, lambda _: Continue(second), 4) == 40
        assert seen == [4]

    def test_continuations_share_the_original_frame(self, rope: Rope) -> None:
        frames: list[ExecutionFrame | None] = []

        def first(_):
            frames.append(rope.frame)
            return Continue(lambda _: frames.append(rope.frame))

        rope.tick(None, "ctx", first, "data")

        assert frames[0] is frames[1]
