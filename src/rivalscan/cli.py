"""Typer CLI — ``rivalscan analyze``, ``rivalscan serve`` and ``rivalscan validate``."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markdown import Markdown

from rivalscan.config import load_config
from rivalscan.schemas.config import ScanConfig

# Load .env file from project root (if it exists)
load_dotenv()

app = typer.Typer(
    name="rivalscan",
    help="rivalscan — competitive intelligence on a company's website.",
    no_args_is_help=True,
)
console = Console()


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
    )
    # httpx logs every HTTP request at INFO — noisy and unhelpful for users
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _load_or_exit(config: Path | None) -> ScanConfig:
    try:
        return load_config(config)
    except Exception as exc:
        console.print(f"[red]Config validation failed:[/] {exc}")
        raise typer.Exit(code=1)


@app.command()
def validate(
    config: Path = typer.Option(..., "--config", "-c", help="Path to rivalscan.yml"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Validate a configuration file without running anything."""
    _setup_logging(verbose)
    cfg = _load_or_exit(config)

    console.print("[green]Config is valid![/]\n")
    console.print(f"  Automation API: {cfg.automation_api_url}")
    console.print(f"  Automation key: {'set' if cfg.automation_api_key else '[yellow]missing[/]'}")
    console.print(f"  OpenAI key:     {'set' if cfg.openai_api_key else '[yellow]missing[/]'}")
    console.print(f"  Model:          {cfg.llm_model}")
    console.print(f"  Max duration:   {cfg.max_duration_seconds:.0f}s")
    console.print(f"  Output dir:     {cfg.output_directory}")


@app.command()
def serve(
    config: Path = typer.Option(None, "--config", "-c", help="Path to rivalscan.yml"),
    host: str = typer.Option(None, "--host", help="Bind address (overrides config)."),
    port: int = typer.Option(None, "--port", "-p", help="Port (overrides config)."),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Run the HTTP server exposing ``POST /api/analyze``."""
    import uvicorn

    from rivalscan.server.app import create_app

    _setup_logging(verbose)
    cfg = _load_or_exit(config)
    if not cfg.automation_api_key:
        console.print("[yellow]Warning:[/] no automation API key configured; tasks will fail.")

    uvicorn.run(
        create_app(cfg),
        host=host or cfg.host,
        port=port or cfg.port,
        log_level="debug" if verbose else "info",
    )


@app.command()
def analyze(
    url: str = typer.Argument(..., help="Company website, e.g. acme.com"),
    config: Path = typer.Option(None, "--config", "-c", help="Path to rivalscan.yml"),
    output: Path = typer.Option(None, "--output", "-o", help="Output directory (overrides config)."),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Run the full pipeline with mock data (no API calls)."),
) -> None:
    """Analyze a company's website and write the report locally."""
    from rivalscan.shared.urls import normalize_target

    _setup_logging(verbose)
    cfg = _load_or_exit(config)

    try:
        base_url = normalize_target(url)
    except ValueError as exc:
        console.print(f"[red]Error:[/] {exc}")
        raise typer.Exit(code=1)

    if dry_run:
        console.print("[yellow]DRY-RUN mode — no API calls will be made.[/]\n")

    console.print(f"[bold]Starting analysis of:[/] {base_url}\n")
    out_dir = output or Path(cfg.output_directory)
    ok = asyncio.run(_run_analysis(cfg, base_url, out_dir=out_dir, dry_run=dry_run))
    if not ok:
        raise typer.Exit(code=1)


async def _run_analysis(
    cfg: ScanConfig, base_url: str, *, out_dir: Path, dry_run: bool = False,
) -> bool:
    """Run the pipeline in-process, rendering events as they arrive.

    Returns True when a report was produced.
    """
    from rivalscan.agents.pipeline import AnalysisPipeline, drive
    from rivalscan.agents.synthesizer import ReportSynthesizer
    from rivalscan.schemas.events import FatalError, ReportReady
    from rivalscan.shared.events import EventStream
    from rivalscan.shared.progress import PipelineProgress

    if dry_run:
        from rivalscan.shared.automation_client import DryRunAutomationClient
        from rivalscan.shared.llm_client import DryRunClient
        automation = DryRunAutomationClient()
        llm = DryRunClient()
    else:
        from rivalscan.shared.automation_client import AutomationClient
        from rivalscan.shared.llm_client import LLMClient
        automation = AutomationClient(
            api_key=cfg.automation_api_key,
            api_url=cfg.automation_api_url,
            connect_timeout=cfg.automation_connect_timeout,
            read_timeout=cfg.automation_read_timeout,
        )
        llm = LLMClient(cfg.openai_api_key, model=cfg.llm_model, max_tokens=cfg.llm_max_tokens)

    report: dict | None = None
    error = ""
    try:
        with PipelineProgress() as progress:
            progress.print_phase(f"Analyzing {base_url}")
            pipeline = AnalysisPipeline(
                automation,
                ReportSynthesizer(llm),
                EventStream(),
                on_task_progress=progress.update_step,
            )
            runner = asyncio.create_task(
                drive(pipeline, base_url, max_duration=cfg.max_duration_seconds)
            )
            async for event in pipeline.events.events():
                progress.apply(event)
                if isinstance(event, ReportReady):
                    report = event.report
                elif isinstance(event, FatalError):
                    error = event.message
            await runner
    finally:
        await automation.aclose()
        await llm.aclose()

    if report is None:
        console.print(f"[red]No report produced:[/] {error or 'unknown error'}")
        return False

    out_dir.mkdir(parents=True, exist_ok=True)
    report_path = out_dir / "report.json"
    report_path.write_text(json.dumps(report, indent=2, default=str))
    summary_path = out_dir / "summary.md"
    summary_path.write_text(report.get("summary", ""))

    console.print("\n[bold]── Strategic Summary ──[/]\n")
    console.print(Markdown(report.get("summary", "")))
    console.print(f"\n[green]Report data written to:[/] {report_path}")
    console.print(f"[green]Summary written to:[/] {summary_path}")
    return True
