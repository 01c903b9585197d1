"""Report synthesis — one text-generation call over the full result set."""

from __future__ import annotations

import json
import logging
from typing import Protocol, Sequence

from rivalscan.agents.prompts import SYNTHESIS_SYSTEM_PROMPT
from rivalscan.agents.registry import DEFAULT_TASKS, TaskDescriptor
from rivalscan.schemas.results import ResultSet

logger = logging.getLogger(__name__)


class SynthesisError(RuntimeError):
    """The text-generation service returned nothing usable."""


class CompletionClient(Protocol):
    async def simple_completion(
        self, *, system: str, user_message: str, json_mode: bool = ...,
    ) -> str: ...


class ReportSynthesizer:
    """Turns a settled ResultSet into a free-text strategic summary."""

    def __init__(
        self, client: CompletionClient, *, tasks: Sequence[TaskDescriptor] = DEFAULT_TASKS,
    ) -> None:
        self.client = client
        self.tasks = tuple(tasks)

    def build_prompt(self, results: ResultSet) -> str:
        """One section per task, in registry order.

        Failed tasks appear as ``{"error": reason}`` so the model can say what
        is missing instead of guessing.
        """
        report = results.to_report()
        sections: list[str] = []
        for task in self.tasks:
            value = report.get(task.key)
            sections.append(f"{task.name.upper()}:\n{json.dumps(value, indent=2, default=str)}")

        failed = [t.name for t in self.tasks if t.key in results.failures]
        if failed:
            sections.append(f"UNAVAILABLE SIGNALS: {', '.join(failed)}")

        return (
            "Given the following data about a competitor, create a strategic "
            "competitive intelligence summary.\n\n" + "\n\n".join(sections)
        )

    async def synthesize(self, results: ResultSet) -> str:
        prompt = self.build_prompt(results)
        logger.info(
            "Generating report from %d sections (%d failed, %d chars)",
            len(self.tasks), len(results.failures), len(prompt),
        )
        text = await self.client.simple_completion(
            system=SYNTHESIS_SYSTEM_PROMPT,
            user_message=prompt,
            json_mode=False,
        )
        text = (text or "").strip()
        if not text:
            raise SynthesisError("text-generation service returned an empty report")
        return text
