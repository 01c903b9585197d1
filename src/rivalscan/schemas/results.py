"""Per-task outcomes and the per-request result set."""

from __future__ import annotations

from typing import Annotated, Any, Iterable, Iterator, Literal, Union

from pydantic import BaseModel, Field


class TaskSuccess(BaseModel):
    """A task that produced a payload (structured JSON, or raw text as a fallback)."""

    status: Literal["success"] = "success"
    payload: Any = None

    @property
    def ok(self) -> bool:
        return True

    def report_value(self) -> Any:
        return self.payload


class TaskFailure(BaseModel):
    """A task that failed; ``reason`` is a short human-readable description."""

    status: Literal["failure"] = "failure"
    reason: str

    @property
    def ok(self) -> bool:
        return False

    def report_value(self) -> Any:
        return {"error": self.reason}


TaskOutcome = Annotated[Union[TaskSuccess, TaskFailure], Field(discriminator="status")]


class DuplicateResultError(RuntimeError):
    """Raised when a result-set slot is written twice or does not exist."""


class ResultSet:
    """Mapping of task key -> outcome with every key declared up front.

    Unresolved slots read as ``None``. Each slot is written exactly once, by
    the task that owns the key.
    """

    def __init__(self, keys: Iterable[str]) -> None:
        self._slots: dict[str, TaskSuccess | TaskFailure | None] = {k: None for k in keys}

    def record(self, key: str, outcome: TaskSuccess | TaskFailure) -> None:
        if key not in self._slots:
            raise DuplicateResultError(f"Unknown result key: {key!r}")
        if self._slots[key] is not None:
            raise DuplicateResultError(f"Result for {key!r} already recorded")
        self._slots[key] = outcome

    def get(self, key: str) -> TaskSuccess | TaskFailure | None:
        return self._slots[key]

    def __getitem__(self, key: str) -> TaskSuccess | TaskFailure | None:
        return self._slots[key]

    def __contains__(self, key: object) -> bool:
        return key in self._slots

    def __iter__(self) -> Iterator[str]:
        return iter(self._slots)

    def __len__(self) -> int:
        return len(self._slots)

    def keys(self) -> list[str]:
        return list(self._slots)

    def items(self) -> list[tuple[str, TaskSuccess | TaskFailure | None]]:
        return list(self._slots.items())

    @property
    def settled(self) -> bool:
        """True once every slot holds an outcome."""
        return all(v is not None for v in self._slots.values())

    @property
    def failures(self) -> dict[str, str]:
        return {
            k: v.reason for k, v in self._slots.items() if isinstance(v, TaskFailure)
        }

    def to_report(self) -> dict[str, Any]:
        """Caller-facing form: payload on success, ``{"error": ...}`` on failure."""
        return {
            k: (v.report_value() if v is not None else None)
            for k, v in self._slots.items()
        }
