"""Tests for AutomationClient — both reply protocols via httpx.MockTransport."""

from __future__ import annotations

import json

import httpx
import pytest

from rivalscan.schemas.results import TaskFailure, TaskSuccess
from rivalscan.shared.automation_client import (
    NO_RESULT,
    AutomationClient,
    DryRunAutomationClient,
    classify_event,
    coerce_payload,
    extract_payload,
    outcome_from_record,
    parse_event_line,
)

API_URL = "https://automation.test/v1/automation/run-sse"
SSE = {"content-type": "text/event-stream"}


def _client(handler) -> AutomationClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return AutomationClient(api_key="test-key", api_url=API_URL, http=http)


def _json_reply(body, status: int = 200):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json=body)
    return handler


def _stream_reply(chunks):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, headers=SSE, content=chunks())
    return handler


class TestPayloadHelpers:
    def test_coerce_parses_json_string(self) -> None:
        assert coerce_payload('{"a": 1}') == {"a": 1}

    def test_coerce_passes_through_plain_text(self) -> None:
        assert coerce_payload("not json at all") == "not json at all"

    def test_coerce_leaves_structured_payload_untouched(self) -> None:
        payload = {"plans": [{"name": "Team"}]}
        assert coerce_payload(payload) is payload

    def test_field_priority(self) -> None:
        record = {"output": "o", "data": "d", "result_json": "rj", "resultJson": "rJ", "result": "r"}
        assert extract_payload(record) == (True, "r")
        del record["result"]
        assert extract_payload(record) == (True, "rJ")
        del record["resultJson"]
        assert extract_payload(record) == (True, "rj")
        del record["result_json"]
        assert extract_payload(record) == (True, "d")
        del record["data"]
        assert extract_payload(record) == (True, "o")

    def test_null_field_is_skipped(self) -> None:
        assert extract_payload({"result": None, "output": {"x": 1}}) == (True, {"x": 1})

    def test_nothing_found(self) -> None:
        assert extract_payload({"status": "COMPLETED"}) == (False, None)

    def test_failed_status_short_circuits(self) -> None:
        outcome = outcome_from_record({"status": "FAILED", "error": {"message": "blocked"}, "result": {}})
        assert outcome == TaskFailure(reason="blocked")

    def test_non_object_document(self) -> None:
        outcome = outcome_from_record(["a", "b"])
        assert isinstance(outcome, TaskFailure)
        assert "unrecognized" in outcome.reason


class TestEventLines:
    def test_data_prefix(self) -> None:
        assert parse_event_line('data: {"type": "PROGRESS"}') == {"type": "PROGRESS"}

    def test_bare_json_line(self) -> None:
        assert parse_event_line('{"type": "COMPLETE"}\r') == {"type": "COMPLETE"}

    @pytest.mark.parametrize("line", ["", ": keep-alive", "event: message", "data: [DONE]", "data: 42"])
    def test_ignored_lines(self, line: str) -> None:
        assert parse_event_line(line) is None

    def test_classification(self) -> None:
        assert classify_event({"type": "PROGRESS"}) == "progress"
        assert classify_event({"type": "COMPLETE", "status": "COMPLETED"}) == "complete"
        assert classify_event({"status": "completed", "result": 1}) == "complete"
        assert classify_event({"type": "STARTED_STREAMING_URL"}) == "other"
        assert classify_event({"foo": "bar"}) == "other"


class TestDocumentReply:
    @pytest.mark.asyncio
    async def test_uppercase_completed_with_result(self) -> None:
        client = _client(_json_reply({"status": "COMPLETED", "result": {"a": 1}}))
        assert await client.execute("https://acme.com", "goal") == TaskSuccess(payload={"a": 1})

    @pytest.mark.asyncio
    async def test_lowercase_status_and_string_result_json(self) -> None:
        client = _client(_json_reply({"status": "completed", "result_json": '{"x": [1, 2]}'}))
        assert await client.execute("https://acme.com", "goal") == TaskSuccess(payload={"x": [1, 2]})

    @pytest.mark.asyncio
    async def test_missing_indicator_still_extracts(self) -> None:
        client = _client(_json_reply({"data": {"company": "Acme"}}))
        assert await client.execute("https://acme.com", "goal") == TaskSuccess(payload={"company": "Acme"})

    @pytest.mark.asyncio
    async def test_unparseable_string_passes_through(self) -> None:
        client = _client(_json_reply({"status": "COMPLETED", "output": "Acme sells widgets"}))
        assert await client.execute("https://acme.com", "goal") == TaskSuccess(payload="Acme sells widgets")

    @pytest.mark.asyncio
    async def test_no_payload_field(self) -> None:
        client = _client(_json_reply({"status": "COMPLETED"}))
        assert await client.execute("https://acme.com", "goal") == TaskFailure(reason=NO_RESULT)

    @pytest.mark.asyncio
    async def test_failed_run(self) -> None:
        client = _client(_json_reply({"status": "FAILED", "error": "Captcha wall"}))
        assert await client.execute("https://acme.com", "goal") == TaskFailure(reason="Captcha wall")

    @pytest.mark.asyncio
    async def test_mislabelled_event_stream(self) -> None:
        body = (
            'data: {"type": "PROGRESS", "purpose": "Loading"}\n\n'
            'data: {"type": "COMPLETE", "status": "COMPLETED", "resultJson": {"ok": true}}\n\n'
        )

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, headers={"content-type": "text/plain"}, text=body)

        client = _client(handler)
        assert await client.execute("https://acme.com", "goal") == TaskSuccess(payload={"ok": True})

    @pytest.mark.asyncio
    async def test_mislabelled_stream_left_open_returns_on_complete(self) -> None:
        import asyncio

        async def chunks():
            yield b'data: {"type": "PROGRESS", "purpose": "Working"}\n\n'
            yield b'data: {"type": "COMPLETE", "status": "COMPLETED", "result": {"b": 2}}\n\n'
            await asyncio.sleep(3600)
            yield b""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, headers={"content-type": "text/plain"}, content=chunks())

        outcome = await asyncio.wait_for(
            _client(handler).execute("https://acme.com", "goal"), timeout=1,
        )
        assert outcome == TaskSuccess(payload={"b": 2})

    @pytest.mark.asyncio
    async def test_unlabelled_pretty_printed_document(self) -> None:
        body = json.dumps({"status": "COMPLETED", "result": {"plans": ["Team"]}}, indent=2)

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, headers={"content-type": "text/plain"}, text=body)

        outcome = await _client(handler).execute("https://acme.com", "goal")
        assert outcome == TaskSuccess(payload={"plans": ["Team"]})

    @pytest.mark.asyncio
    async def test_sends_url_goal_and_key(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"result": {}})

        await _client(handler).execute("https://acme.com", "Find pricing")
        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == API_URL
        assert request.headers["x-api-key"] == "test-key"
        assert json.loads(request.content) == {"url": "https://acme.com", "goal": "Find pricing"}


class TestErrors:
    @pytest.mark.asyncio
    async def test_http_error_status(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="upstream overloaded")

        outcome = await _client(handler).execute("https://acme.com", "goal")
        assert outcome == TaskFailure(reason="automation API error: 503")

    @pytest.mark.asyncio
    async def test_transport_error_is_captured(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        outcome = await _client(handler).execute("https://acme.com", "goal")
        assert isinstance(outcome, TaskFailure)
        assert outcome.reason.startswith("transport error: ConnectError")


class TestEventStreamReply:
    @pytest.mark.asyncio
    async def test_progress_then_complete(self) -> None:
        async def chunks():
            yield b'data: {"type": "PROGRESS", "purpose": "Opening homepage"}\n\n'
            yield b'data: {"type": "COMPLETE", "status": "COMPLETED", "resultJson": {"b": 2}}\n\n'

        progress: list[str] = []
        outcome = await _client(_stream_reply(chunks)).execute(
            "https://acme.com", "goal", on_progress=progress.append,
        )
        assert outcome == TaskSuccess(payload={"b": 2})
        assert progress == ["Opening homepage"]

    @pytest.mark.asyncio
    async def test_stops_reading_after_complete(self) -> None:
        tail_read: list[bool] = []

        async def chunks():
            yield b'data: {"type": "PROGRESS", "purpose": "Working"}\n\n'
            yield b'data: {"type": "COMPLETE", "status": "COMPLETED", "resultJson": {"b": 2}}\n\n'
            tail_read.append(True)
            yield b'data: {"type": "COMPLETE", "status": "COMPLETED", "resultJson": {"b": 3}}\n\n'

        outcome = await _client(_stream_reply(chunks)).execute("https://acme.com", "goal")
        assert outcome == TaskSuccess(payload={"b": 2})
        assert tail_read == []

    @pytest.mark.asyncio
    async def test_line_split_across_chunks(self) -> None:
        record = 'data: {"type": "COMPLETE", "status": "COMPLETED", "result": {"name": "Café"}}\n\n'
        raw = record.encode("utf-8")
        cut = raw.index("é".encode("utf-8")) + 1  # split inside the multi-byte character

        async def chunks():
            yield raw[:20]
            yield raw[20:cut]
            yield raw[cut:]

        outcome = await _client(_stream_reply(chunks)).execute("https://acme.com", "goal")
        assert outcome == TaskSuccess(payload={"name": "Café"})

    @pytest.mark.asyncio
    async def test_final_line_without_newline(self) -> None:
        async def chunks():
            yield b'data: {"type": "COMPLETE", "status": "COMPLETED", "output": "[1, 2]"}'

        outcome = await _client(_stream_reply(chunks)).execute("https://acme.com", "goal")
        assert outcome == TaskSuccess(payload=[1, 2])

    @pytest.mark.asyncio
    async def test_closed_without_completion(self) -> None:
        async def chunks():
            yield b'data: {"type": "PROGRESS", "purpose": "Working"}\n\n'
            yield b": keep-alive\n\n"
            yield b"data: not json\n\n"

        outcome = await _client(_stream_reply(chunks)).execute("https://acme.com", "goal")
        assert outcome == TaskFailure(reason="no result received")

    @pytest.mark.asyncio
    async def test_completion_with_error(self) -> None:
        async def chunks():
            yield b'data: {"type": "COMPLETE", "status": "FAILED", "error": "Site blocked automation"}\n\n'

        outcome = await _client(_stream_reply(chunks)).execute("https://acme.com", "goal")
        assert outcome == TaskFailure(reason="Site blocked automation")

    @pytest.mark.asyncio
    async def test_concurrent_calls_do_not_interfere(self) -> None:
        import asyncio

        def handler(request: httpx.Request) -> httpx.Response:
            url = json.loads(request.content)["url"]

            async def chunks():
                yield f'data: {{"type": "COMPLETE", "status": "COMPLETED", "result": {{"url": "{url}"}}}}\n\n'.encode()

            return httpx.Response(200, headers=SSE, content=chunks())

        client = _client(handler)
        urls = [f"https://site{i}.com" for i in range(6)]
        outcomes = await asyncio.gather(*(client.execute(u, "goal") for u in urls))
        assert [o.payload["url"] for o in outcomes] == urls


class TestDryRun:
    @pytest.mark.asyncio
    async def test_canned_payload_by_goal(self) -> None:
        client = DryRunAutomationClient()
        outcome = await client.execute("https://acme.com", "find their pricing page")
        assert outcome.ok
        assert "plans" in outcome.payload
