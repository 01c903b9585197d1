"""FastAPI app — streams an analysis run to the caller as server-sent events."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from rivalscan.agents.pipeline import AnalysisPipeline, stream_analysis
from rivalscan.agents.synthesizer import ReportSynthesizer
from rivalscan.config import load_config
from rivalscan.schemas.config import ScanConfig
from rivalscan.shared.automation_client import AutomationClient
from rivalscan.shared.events import EventStream
from rivalscan.shared.llm_client import LLMClient
from rivalscan.shared.urls import normalize_target

logger = logging.getLogger(__name__)

_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class AnalyzeRequest(BaseModel):
    url: str


def _automation(app: FastAPI) -> Any:
    if app.state.automation is None:
        cfg: ScanConfig = app.state.config
        app.state.automation = AutomationClient(
            api_key=cfg.automation_api_key,
            api_url=cfg.automation_api_url,
            connect_timeout=cfg.automation_connect_timeout,
            read_timeout=cfg.automation_read_timeout,
        )
        app.state.owned_clients.append(app.state.automation)
    return app.state.automation


def _llm(app: FastAPI) -> Any:
    if app.state.llm is None:
        cfg: ScanConfig = app.state.config
        app.state.llm = LLMClient(
            cfg.openai_api_key, model=cfg.llm_model, max_tokens=cfg.llm_max_tokens,
        )
        app.state.owned_clients.append(app.state.llm)
    return app.state.llm


def create_app(
    config: ScanConfig | None = None,
    *,
    automation: Any | None = None,
    llm: Any | None = None,
) -> FastAPI:
    """Build the app. ``automation`` / ``llm`` override the real clients (tests, dry runs)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        for client in app.state.owned_clients:
            await client.aclose()
        app.state.owned_clients.clear()

    app = FastAPI(title="rivalscan", lifespan=lifespan)
    app.state.config = config or load_config()
    app.state.automation = automation
    app.state.llm = llm
    app.state.owned_clients = []

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/analyze")
    async def analyze(body: AnalyzeRequest, request: Request) -> StreamingResponse:
        try:
            base_url = normalize_target(body.url)
        except ValueError as exc:
            raise HTTPException(
                status_code=422, detail=str(exc),
            ) from exc

        logger.info("Starting analysis of %s", base_url)
        pipeline = AnalysisPipeline(
            automation=_automation(request.app),
            synthesizer=ReportSynthesizer(_llm(request.app)),
            events=EventStream(),
        )
        return StreamingResponse(
            stream_analysis(
                pipeline, base_url, max_duration=request.app.state.config.max_duration_seconds,
            ),
            media_type="text/event-stream",
            headers=_SSE_HEADERS,
        )

    return app
