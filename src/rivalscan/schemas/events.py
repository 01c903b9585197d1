"""Lifecycle events pushed to the caller over the event stream."""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field

StepStatus = Literal["running", "done", "error"]


class StepUpdate(BaseModel):
    """A task (or the report step) changed state."""

    type: Literal["step_update"] = "step_update"
    step: str
    status: StepStatus


class ReportReady(BaseModel):
    """The final report: every task's report value plus the generated ``summary``."""

    type: Literal["report"] = "report"
    report: dict[str, Any]


class FatalError(BaseModel):
    """Surfaced when the request cannot produce a report."""

    type: Literal["error"] = "error"
    message: str


LifecycleEvent = Annotated[
    Union[StepUpdate, ReportReady, FatalError], Field(discriminator="type")
]


def format_record(event: StepUpdate | ReportReady | FatalError) -> str:
    """Frame one event as a ``data: <json>`` record terminated by a blank line."""
    return f"data: {json.dumps(event.model_dump(), default=str)}\n\n"
