"""Shared test fixtures."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Awaitable, Callable
from unittest.mock import AsyncMock

import pytest

from rivalscan.agents.registry import TaskDescriptor, build_registry
from rivalscan.schemas.results import TaskFailure, TaskSuccess
from rivalscan.shared.events import EventStream
from rivalscan.shared.llm_client import LLMClient
from rivalscan.shared.urls import same_url


class FakeAutomation:
    """Stands in for AutomationClient; outcomes are looked up by goal.

    A value may be a TaskSuccess/TaskFailure, or an exception to raise.
    ``delays`` (seconds, by goal) control completion order.
    """

    def __init__(
        self,
        outcomes: dict[str, Any] | None = None,
        *,
        delays: dict[str, float] | None = None,
        progress: dict[str, str] | None = None,
    ) -> None:
        self.outcomes = outcomes or {}
        self.delays = delays or {}
        self.progress = progress or {}
        self.calls: list[tuple[str, str]] = []
        self.cancelled = False

    async def execute(self, url: str, goal: str, *, on_progress=None):
        self.calls.append((url, goal))
        if goal in self.progress and on_progress:
            on_progress(self.progress[goal])
        try:
            await asyncio.sleep(self.delays.get(goal, 0))
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        outcome = self.outcomes.get(goal, TaskSuccess(payload={"url": url, "goal": goal}))
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def aclose(self) -> None:
        return None


async def _run_collecting(
    stream: EventStream, work: Awaitable[Any],
) -> tuple[Any, list[Any]]:
    """Await ``work`` while draining ``stream``; returns (result, events)."""
    events: list[Any] = []

    async def consume() -> None:
        async for event in stream.events():
            events.append(event)

    consumer = asyncio.create_task(consume())
    try:
        result = await work
    finally:
        stream.close()
    await consumer
    return result, events


@pytest.fixture
def run_collecting() -> Callable[..., Awaitable[tuple[Any, list[Any]]]]:
    return _run_collecting


@pytest.fixture
def small_registry() -> tuple[TaskDescriptor, ...]:
    return build_registry([
        TaskDescriptor("Alpha", "alpha", same_url, "goal-alpha"),
        TaskDescriptor("Beta", "beta", same_url, "goal-beta"),
        TaskDescriptor("Gamma", "gamma", lambda base: f"{base}/gamma", "goal-gamma"),
    ])


@pytest.fixture
def fake_automation() -> FakeAutomation:
    return FakeAutomation()


@pytest.fixture
def failing_outcome() -> TaskFailure:
    return TaskFailure(reason="transport error: ConnectError: boom")


@pytest.fixture
def mock_llm_client() -> LLMClient:
    """Return an LLMClient with a mocked OpenAI SDK underneath."""
    client = LLMClient.__new__(LLMClient)
    client._client = AsyncMock()
    client.model = "gpt-4o"
    client.max_tokens = 1024
    return client


@pytest.fixture
def tmp_config(tmp_path: Path) -> Path:
    """Write a minimal valid config YAML and return its path."""
    cfg = tmp_path / "rivalscan.yml"
    cfg.write_text(
        """\
automation_api_url: "https://automation.example/run"
automation_api_key: "file-key"
max_duration_seconds: 120
output_directory: "{out}"
""".format(out=str(tmp_path / "output"))
    )
    return cfg
