"""Rich progress display for the CLI, driven by lifecycle events."""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from rivalscan.schemas.events import FatalError, ReportReady, StepUpdate

console = Console()


class PipelineProgress:
    """Tracks per-step progress of an analysis run using Rich."""

    def __init__(self) -> None:
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TimeElapsedColumn(),
            console=console,
        )
        self._task_ids: dict[str, int] = {}

    def __enter__(self) -> "PipelineProgress":
        self._progress.__enter__()
        return self

    def __exit__(self, *args: object) -> None:
        self._progress.__exit__(*args)

    def start_step(self, step: str) -> None:
        """Register and start tracking a step."""
        tid = self._progress.add_task(f"[cyan]{step}[/]", total=None)
        self._task_ids[step] = tid

    def update_step(self, step: str, status: str) -> None:
        """Update the status text for a running step."""
        if step in self._task_ids:
            self._progress.update(
                self._task_ids[step],
                description=f"[cyan]{step}[/] — {status[:80]}",
            )

    def finish_step(self, step: str) -> None:
        if step in self._task_ids:
            self._progress.update(
                self._task_ids[step],
                description=f"[green]✓ {step}[/]",
                completed=True,
            )

    def fail_step(self, step: str, error: str = "") -> None:
        if step in self._task_ids:
            suffix = f": {error}" if error else ""
            self._progress.update(
                self._task_ids[step],
                description=f"[red]✗ {step}{suffix}[/]",
                completed=True,
            )

    def print_phase(self, label: str) -> None:
        """Print a phase header outside the progress display."""
        self._progress.console.print(Panel(f"[bold]{label}[/bold]", style="blue"))

    def apply(self, event: StepUpdate | ReportReady | FatalError) -> None:
        """Reflect one lifecycle event in the display."""
        if isinstance(event, StepUpdate):
            if event.status == "running":
                self.start_step(event.step)
            elif event.status == "done":
                self.finish_step(event.step)
            else:
                self.fail_step(event.step)
        elif isinstance(event, FatalError):
            self._progress.console.print(f"[red]Error:[/] {event.message}")
