"""Analysis pipeline — dispatch, join, synthesize, close."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from enum import Enum
from typing import Any, AsyncIterator, Sequence

from rivalscan.agents.dispatcher import Automation, TaskDispatcher, TaskProgressCallback
from rivalscan.agents.registry import DEFAULT_TASKS, TaskDescriptor
from rivalscan.agents.synthesizer import ReportSynthesizer
from rivalscan.schemas.events import FatalError, ReportReady, StepUpdate
from rivalscan.schemas.results import ResultSet
from rivalscan.shared.events import EventStream

logger = logging.getLogger(__name__)

REPORT_STEP = "Generating Report"


class RequestState(str, Enum):
    IDLE = "idle"
    DISPATCHING = "dispatching"
    ALL_SETTLED = "all_settled"
    SYNTHESIZING = "synthesizing"
    REPORT_READY = "report_ready"
    SYNTHESIS_FAILED = "synthesis_failed"
    CLOSED = "closed"


_TRANSITIONS: dict[RequestState, frozenset[RequestState]] = {
    RequestState.IDLE: frozenset({RequestState.DISPATCHING}),
    RequestState.DISPATCHING: frozenset({RequestState.ALL_SETTLED}),
    RequestState.ALL_SETTLED: frozenset({RequestState.SYNTHESIZING}),
    RequestState.SYNTHESIZING: frozenset({RequestState.REPORT_READY, RequestState.SYNTHESIS_FAILED}),
    RequestState.REPORT_READY: frozenset({RequestState.CLOSED}),
    RequestState.SYNTHESIS_FAILED: frozenset({RequestState.CLOSED}),
    RequestState.CLOSED: frozenset(),
}


class AnalysisPipeline:
    """Runs one analysis request end to end.

    Pipeline flow:
        all registry tasks (parallel) → join → report synthesis → close

    One instance per request; ``state`` walks IDLE → … → CLOSED exactly once.
    """

    def __init__(
        self,
        automation: Automation,
        synthesizer: ReportSynthesizer,
        events: EventStream,
        *,
        tasks: Sequence[TaskDescriptor] = DEFAULT_TASKS,
        on_task_progress: TaskProgressCallback | None = None,
    ) -> None:
        self.events = events
        self.synthesizer = synthesizer
        self.dispatcher = TaskDispatcher(
            automation, events, tasks=tasks, on_task_progress=on_task_progress,
        )
        self.state = RequestState.IDLE
        self.results: ResultSet | None = None
        self.report: dict[str, Any] | None = None

    def _transition(self, new: RequestState) -> None:
        if new not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal pipeline transition {self.state.value} -> {new.value}")
        logger.debug("Pipeline state %s -> %s", self.state.value, new.value)
        self.state = new

    async def run(self, base_url: str) -> ResultSet:
        """Dispatch every task, synthesize the report, then close the stream."""
        self._transition(RequestState.DISPATCHING)
        self.results = await self.dispatcher.run(base_url)
        self._transition(RequestState.ALL_SETTLED)

        failures = self.results.failures
        if failures:
            logger.warning("%d task(s) failed: %s", len(failures), ", ".join(sorted(failures)))

        await self._synthesize(self.results)

        self._transition(RequestState.CLOSED)
        self.events.close()
        return self.results

    async def _synthesize(self, results: ResultSet) -> None:
        self._transition(RequestState.SYNTHESIZING)
        await self.events.emit(StepUpdate(step=REPORT_STEP, status="running"))

        try:
            summary = await self.synthesizer.synthesize(results)
        except Exception as exc:
            logger.exception("Report generation failed")
            self._transition(RequestState.SYNTHESIS_FAILED)
            await self.events.emit(FatalError(message=f"Report generation failed: {exc}"))
            await self.events.emit(StepUpdate(step=REPORT_STEP, status="error"))
            return

        self.report = {**results.to_report(), "summary": summary}
        self._transition(RequestState.REPORT_READY)
        await self.events.emit(ReportReady(report=self.report))
        await self.events.emit(StepUpdate(step=REPORT_STEP, status="done"))


async def _fail_open_steps(events: EventStream) -> None:
    for step in events.open_steps:
        await events.emit(StepUpdate(step=step, status="error"))


async def drive(
    pipeline: AnalysisPipeline, base_url: str, *, max_duration: float | None = None,
) -> None:
    """Run ``pipeline`` under an optional wall-clock ceiling.

    Whatever happens, every started step gets a terminal update, the caller
    gets a closing error record and the stream is closed, so a consumer never
    hangs.
    """
    events = pipeline.events
    try:
        await asyncio.wait_for(pipeline.run(base_url), timeout=max_duration)
    except asyncio.TimeoutError:
        logger.warning("Analysis of %s exceeded %ss, stopping", base_url, max_duration)
        if not events.closed:
            await _fail_open_steps(events)
            await events.emit(FatalError(message=f"Analysis timed out after {max_duration:g}s"))
    except Exception as exc:
        logger.exception("Analysis of %s failed", base_url)
        if not events.closed:
            await _fail_open_steps(events)
            await events.emit(FatalError(message=f"Analysis failed: {exc}"))
    finally:
        events.close()


async def stream_analysis(
    pipeline: AnalysisPipeline, base_url: str, *, max_duration: float | None = None,
) -> AsyncIterator[str]:
    """Yield framed event records while the pipeline runs in the background.

    If the consumer goes away, the pipeline task is cancelled.
    """
    runner = asyncio.create_task(drive(pipeline, base_url, max_duration=max_duration))
    try:
        async for record in pipeline.events.records():
            yield record
    finally:
        if not runner.done():
            runner.cancel()
        with suppress(asyncio.CancelledError):
            await runner
