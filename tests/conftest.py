"""
Shared fixtures for the ropeway test-suite.

Each test gets its own ``Rope`` so frame stacks never leak between tests, plus
a ``calls`` log and a ``will_call`` task that appends its argument to it.
"""

from __future__ import annotations

from typing import Any

import pytest
from loguru import logger

from ropeway import Rope, Task


class Recorder:
    """Callable step that records every value it is invoked with."""

    def __init__(self, result: Any = None) -> None:
        self.calls: list[Any] = []
        self.result = result

    def __call__(self, value: Any) -> Any:
        self.calls.append(value)
        return self.result

    @property
    def called(self) -> bool:
        return bool(self.calls)


@pytest.fixture
def rope() -> Rope:
    return Rope(trace=False)


@pytest.fixture
def calls() -> list[Any]:
    return []


@pytest.fixture
def will_call(rope: Rope, calls: list[Any]) -> Task[Any, Any]:
    def _record(entry: Any) -> Any:
        calls.append(entry)
        return entry

    return rope.task(_record)


@pytest.fixture
def log_records():
    """Capture ropeway's loguru records while the test runs."""

    records: list[dict[str, Any]] = []
    logger.enable("ropeway")
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    try:
        yield records
    finally:
        logger.remove(handler_id)
        logger.disable("ropeway")
