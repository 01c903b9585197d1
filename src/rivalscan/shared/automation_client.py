"""Async client for the browser-automation backend.

The backend answers a run request in one of two ways:

- a single JSON document, optionally carrying a ``status`` completion
  indicator, with the payload under one of several field names;
- a ``text/event-stream`` of ``data: <json>`` records — ``PROGRESS``
  notifications followed by one ``COMPLETE`` record holding the result or an
  error description.

``AutomationClient.execute`` normalizes both into a single ``TaskSuccess`` or
``TaskFailure`` and never raises for transport or protocol problems.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Sequence

import httpx

from rivalscan.schemas.config import DEFAULT_AUTOMATION_API_URL
from rivalscan.schemas.results import TaskFailure, TaskSuccess

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]
"""Called with the backend's progress text for each PROGRESS record."""

NO_RESULT = "no result received"

# Payload field names, highest priority first.
RESULT_FIELD_PRIORITY: tuple[str, ...] = ("result", "resultJson", "result_json", "data", "output")

_COMPLETED_STATUSES = frozenset({"completed", "complete", "success", "succeeded", "done"})
_FAILED_STATUSES = frozenset({"failed", "failure", "error", "cancelled", "canceled", "timeout"})
_COMPLETION_TYPES = frozenset({"complete", "completed", "result", "done", "error"})
_PROGRESS_TYPES = frozenset({"progress", "started", "step", "heartbeat", "status"})


def coerce_payload(value: Any) -> Any:
    """Decode JSON carried inside a string; anything else is returned as-is.

    A string that is not valid JSON is passed through unchanged.
    """
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


def extract_payload(
    record: dict[str, Any], fields: Sequence[str] = RESULT_FIELD_PRIORITY,
) -> tuple[bool, Any]:
    """Return ``(found, payload)`` for the first non-null field in ``fields``."""
    for field in fields:
        if record.get(field) is not None:
            return True, coerce_payload(record[field])
    return False, None


def _status_token(record: dict[str, Any]) -> str:
    return str(record.get("status") or "").strip().lower()


def _error_text(record: dict[str, Any]) -> str:
    err = record.get("error") or record.get("errorMessage") or record.get("message")
    if isinstance(err, dict):
        err = err.get("message") or json.dumps(err)
    if err:
        return str(err)
    status = _status_token(record)
    return f"automation run {status}" if status else "automation run failed"


def outcome_from_record(
    record: Any, fields: Sequence[str] = RESULT_FIELD_PRIORITY,
) -> TaskSuccess | TaskFailure:
    """Normalize one reply document or completion record.

    Extraction runs whether or not a completion status is present; only an
    explicit failure status short-circuits it.
    """
    if not isinstance(record, dict):
        return TaskFailure(reason=f"unrecognized response shape: {type(record).__name__}")

    if _status_token(record) in _FAILED_STATUSES:
        return TaskFailure(reason=_error_text(record))

    found, payload = extract_payload(record, fields)
    if found:
        return TaskSuccess(payload=payload)
    if record.get("error"):
        return TaskFailure(reason=_error_text(record))
    return TaskFailure(reason=NO_RESULT)


def parse_event_line(line: str) -> dict[str, Any] | None:
    """Decode one ``data: <json>`` line; comments and other fields yield None."""
    line = line.strip()
    if not line or line.startswith(":"):
        return None
    if line.startswith("data:"):
        line = line[len("data:"):].strip()
    elif line.startswith(("event:", "id:", "retry:")):
        return None
    try:
        record = json.loads(line)
    except json.JSONDecodeError:
        logger.debug("Skipping undecodable event line: %r", line[:200])
        return None
    return record if isinstance(record, dict) else None


def classify_event(record: dict[str, Any]) -> str:
    """Return ``"progress"``, ``"complete"`` or ``"other"`` for a stream record."""
    kind = str(record.get("type") or "").strip().lower()
    if kind in _COMPLETION_TYPES:
        return "complete"
    if kind in _PROGRESS_TYPES:
        return "progress"
    if not kind and _status_token(record) in _COMPLETED_STATUSES | _FAILED_STATUSES:
        return "complete"
    return "other"


class AutomationClient:
    """Runs one browsing goal against one URL on the automation backend.

    Stateless apart from the pooled ``httpx.AsyncClient``, so a single
    instance serves many concurrent ``execute`` calls.
    """

    def __init__(
        self,
        *,
        api_key: str = "",
        api_url: str = DEFAULT_AUTOMATION_API_URL,
        http: httpx.AsyncClient | None = None,
        connect_timeout: float = 30.0,
        read_timeout: float | None = None,
        result_fields: Sequence[str] = RESULT_FIELD_PRIORITY,
    ) -> None:
        self._api_key = api_key
        self._api_url = api_url
        self._result_fields = tuple(result_fields)
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(
            timeout=httpx.Timeout(connect_timeout, read=read_timeout),
        )

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> "AutomationClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def execute(
        self,
        url: str,
        goal: str,
        *,
        on_progress: ProgressCallback | None = None,
    ) -> TaskSuccess | TaskFailure:
        """Run ``goal`` starting at ``url`` and return the normalized outcome."""
        try:
            return await self._execute(url, goal, on_progress)
        except (httpx.HTTPError, httpx.StreamError) as exc:
            logger.warning("Automation request for %s failed: %s", url, exc)
            return TaskFailure(reason=f"transport error: {type(exc).__name__}: {exc}")

    async def _execute(
        self, url: str, goal: str, on_progress: ProgressCallback | None,
    ) -> TaskSuccess | TaskFailure:
        headers = {
            "X-API-Key": self._api_key,
            "Accept": "text/event-stream, application/json",
        }
        async with self._http.stream(
            "POST", self._api_url, json={"url": url, "goal": goal}, headers=headers,
        ) as response:
            if not response.is_success:
                body = await response.aread()
                logger.warning(
                    "Automation API returned HTTP %d for %s: %s",
                    response.status_code, url, body[:500].decode("utf-8", errors="replace"),
                )
                return TaskFailure(reason=f"automation API error: {response.status_code}")

            content_type = response.headers.get("content-type", "")
            if "text/event-stream" in content_type:
                return await self._read_event_stream(response, url, on_progress)
            if "json" in content_type:
                return await self._read_document(response, url, on_progress)
            # Some deployments send the event stream without the event-stream
            # content type; read it incrementally and only treat it as one
            # document if the whole body turns out to be JSON.
            return await self._read_event_stream(
                response, url, on_progress, whole_document=True,
            )

    async def _read_document(
        self, response: httpx.Response, url: str, on_progress: ProgressCallback | None,
    ) -> TaskSuccess | TaskFailure:
        await response.aread()
        text = response.text
        try:
            record = json.loads(text)
        except json.JSONDecodeError:
            logger.debug("Reply for %s is not one JSON document, reading as events", url)
            for line in text.splitlines():
                outcome = self._handle_line(line, url, on_progress)
                if outcome is not None:
                    return outcome
            return TaskFailure(reason=NO_RESULT)
        return outcome_from_record(record, self._result_fields)

    async def _read_event_stream(
        self,
        response: httpx.Response,
        url: str,
        on_progress: ProgressCallback | None,
        *,
        whole_document: bool = False,
    ) -> TaskSuccess | TaskFailure:
        """Consume records until the first completion record.

        Returns as soon as one is seen; the backend is not required to close
        the connection. Lines may be split across chunks. With
        ``whole_document`` a body that ends without a completion record is
        also tried as a single JSON document.
        """
        buffer = ""
        body: list[str] = []
        async for chunk in response.aiter_text():
            if whole_document:
                body.append(chunk)
            buffer += chunk
            *lines, buffer = buffer.split("\n")
            for line in lines:
                outcome = self._handle_line(line, url, on_progress)
                if outcome is not None:
                    return outcome

        if whole_document:
            try:
                record = json.loads("".join(body))
            except json.JSONDecodeError:
                logger.debug("Reply for %s is not one JSON document", url)
            else:
                return outcome_from_record(record, self._result_fields)

        if buffer:
            outcome = self._handle_line(buffer, url, on_progress)
            if outcome is not None:
                return outcome

        logger.warning("Automation stream for %s ended without a completion record", url)
        return TaskFailure(reason=NO_RESULT)

    def _handle_line(
        self, line: str, url: str, on_progress: ProgressCallback | None,
    ) -> TaskSuccess | TaskFailure | None:
        record = parse_event_line(line)
        if record is None:
            return None

        kind = classify_event(record)
        if kind == "progress":
            message = str(record.get("purpose") or record.get("message") or "working")
            logger.debug("Automation progress for %s: %s", url, message)
            if on_progress:
                on_progress(message)
            return None
        if kind == "complete":
            outcome = outcome_from_record(record, self._result_fields)
            logger.info(
                "Automation run for %s completed (%s)",
                url, "ok" if outcome.ok else outcome.reason,
            )
            return outcome
        return None


# ======================================================================
# Dry-run mock client — zero network calls
# ======================================================================

# Canned payloads keyed by a word that appears in the task's goal
_DRY_RUN_PAYLOADS: dict[str, dict[str, Any]] = {
    "pricing": {
        "company": "Example Corp",
        "pricing_model": "per-seat subscription",
        "plans": [{"name": "Team", "monthly_price_per_user": "$12", "features": ["SSO"]}],
        "enterprise_option": True,
    },
    "careers": {
        "company": "Example Corp",
        "total_openings": 4,
        "jobs": [{"title": "Senior Backend Engineer", "department": "Engineering", "remote": True}],
        "analysis": {"top_departments": ["Engineering"], "strategic_signals": ["Scaling platform team"]},
    },
    "blog": {
        "company": "Example Corp",
        "posts": [{"title": "Introducing Workflows", "date": "2026-09-01", "themes": ["automation"]}],
        "analysis": {"dominant_topics": ["automation"], "product_launches": ["Workflows"]},
    },
    "G2": {
        "company": "Example Corp",
        "review_platform": "G2",
        "overall_rating": 4.4,
        "total_reviews": 312,
        "analysis": {"top_strengths": ["Ease of use"], "top_weaknesses": ["Reporting"]},
    },
    "technologies": {
        "company": "Example Corp",
        "tech_stack": {"frontend_framework": "Next.js", "analytics": ["Segment"], "cdn": "Cloudflare"},
    },
}

_DRY_RUN_DEFAULT: dict[str, Any] = {
    "company_name": "Example Corp",
    "description": "Collaboration software for distributed teams.",
    "industry": "SaaS",
    "products": ["Example Workspace"],
}


class DryRunAutomationClient:
    """Drop-in replacement for AutomationClient that makes zero network calls."""

    async def execute(
        self,
        url: str,
        goal: str,
        *,
        on_progress: ProgressCallback | None = None,
    ) -> TaskSuccess | TaskFailure:
        if on_progress:
            on_progress(f"[dry-run] browsing {url}")
        for keyword, payload in _DRY_RUN_PAYLOADS.items():
            if keyword in goal:
                return TaskSuccess(payload=payload)
        return TaskSuccess(payload=_DRY_RUN_DEFAULT)

    async def aclose(self) -> None:
        return None
