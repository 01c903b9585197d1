"""Task dispatcher — runs every registry task concurrently and joins on all."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Protocol, Sequence

from rivalscan.agents.registry import DEFAULT_TASKS, TaskDescriptor
from rivalscan.schemas.events import StepUpdate
from rivalscan.schemas.results import ResultSet, TaskFailure, TaskSuccess
from rivalscan.shared.events import EventStream

logger = logging.getLogger(__name__)

TaskProgressCallback = Callable[[str, str], None]
"""Called with (task name, progress text) while a task is running."""


class Automation(Protocol):
    async def execute(
        self, url: str, goal: str, *, on_progress: Callable[[str], None] | None = None,
    ) -> TaskSuccess | TaskFailure: ...


class TaskDispatcher:
    """Fans the registry out against the automation backend.

    Every task gets a ``running`` update before its call and exactly one
    ``done`` or ``error`` update after it. A failing task never affects its
    siblings; ``run`` returns only once all of them have settled.
    """

    def __init__(
        self,
        automation: Automation,
        events: EventStream,
        *,
        tasks: Sequence[TaskDescriptor] = DEFAULT_TASKS,
        on_task_progress: TaskProgressCallback | None = None,
    ) -> None:
        self.automation = automation
        self.events = events
        self.tasks = tuple(tasks)
        self._on_task_progress = on_task_progress

    async def run(self, base_url: str) -> ResultSet:
        results = ResultSet(t.key for t in self.tasks)
        await asyncio.gather(*(self._run_task(t, base_url, results) for t in self.tasks))
        return results

    async def _run_task(self, task: TaskDescriptor, base_url: str, results: ResultSet) -> None:
        await self.events.emit(StepUpdate(step=task.name, status="running"))

        def on_progress(msg: str) -> None:
            if self._on_task_progress:
                self._on_task_progress(task.name, msg)

        try:
            url = task.target_url(base_url)
            logger.info("Task %s started: %s", task.name, url)
            outcome = await self.automation.execute(url, task.goal, on_progress=on_progress)
        except Exception as exc:
            logger.exception("Task %s raised unexpectedly", task.name)
            outcome = TaskFailure(reason=str(exc) or type(exc).__name__)

        results.record(task.key, outcome)
        if outcome.ok:
            logger.info("Task %s done", task.name)
            await self.events.emit(StepUpdate(step=task.name, status="done"))
        else:
            logger.warning("Task %s failed: %s", task.name, outcome.reason)
            await self.events.emit(StepUpdate(step=task.name, status="error"))
