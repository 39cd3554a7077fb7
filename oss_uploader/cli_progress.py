"""Console rendering and progress helpers for the oss-up CLI."""
from __future__ import annotations

import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

console = Console()


def _human_size(value: int) -> str:
    size = float(max(value, 0))
    units = ["B", "KB", "MB", "GB", "TB"]
    unit_idx = 0
    while size >= 1024.0 and unit_idx < len(units) - 1:
        size /= 1024.0
        unit_idx += 1
    if unit_idx == 0:
        return f"{int(size)} {units[unit_idx]}"
    return f"{size:.2f} {units[unit_idx]}"


def render_configuration_summary(config: Dict[str, Any]) -> None:
    """Render startup configuration summary."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else str(value)
        table.add_row(key, rendered)

    panel = Panel(
        table,
        title="[bold green]oss-up[/bold green]",
        subtitle="[dim]signed uploader CLI[/dim]",
        border_style="blue",
    )
    console.print(panel)


def render_results(urls: List[str]) -> None:
    """Print the resolved remote URLs."""
    if not urls:
        console.print("[yellow]No files were uploaded.[/yellow]")
        return
    table = Table(title="Uploaded", show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("URL", style="green")
    for idx, url in enumerate(urls, 1):
        table.add_row(str(idx), url)
    console.print(table)


class QueueProgressDisplay:
    """Event-based console display for the upload queue (one bar per file)."""

    def __init__(self):
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.fields[filename]}", justify="left"),
            BarColumn(bar_width=42),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TextColumn("[dim]{task.fields[detail]}", justify="left"),
            TimeElapsedColumn(),
            expand=False,
            console=console,
        )
        self._live: Optional[Live] = None
        self._tasks: Dict[str, TaskID] = {}
        self._current: Optional[str] = None
        self.uploaded = 0
        self.failed = 0

    def start(self) -> None:
        if self._live is not None:
            return
        self._live = Live(
            self._progress,
            console=console,
            refresh_per_second=8,
            vertical_overflow="visible",
        )
        self._live.start()

    def stop(self) -> None:
        if self._live is None:
            return
        self._live.stop()
        self._live = None

    def _task_for(self, file_path: Path) -> TaskID:
        name = Path(file_path).name
        if name not in self._tasks:
            try:
                size = Path(file_path).stat().st_size
            except OSError:
                size = 0
            self._tasks[name] = self._progress.add_task(
                "upload",
                filename=name[:60],
                total=100,
                detail=_human_size(size),
            )
        return self._tasks[name]

    def on_release(self, file_path: Path, key: str) -> None:
        self.start()
        self._current = Path(file_path).name
        self._progress.update(self._task_for(file_path), completed=0, detail=key)

    def on_progress(self, file_progress: Any) -> None:
        name = getattr(file_progress, "filename", None) or self._current
        task_id = self._tasks.get(name) if name else None
        if task_id is None:
            return
        percent = int(getattr(file_progress, "percent", 0) or 0)
        self._progress.update(task_id, completed=percent)

    def on_uploaded(self, entry: Any, url: str) -> None:
        self.uploaded += 1
        task_id = self._tasks.get(getattr(entry, "name", ""))
        if task_id is not None:
            self._progress.update(task_id, completed=100, detail="[green]done[/green]")
        self._emit_timeline("DONE", getattr(entry, "name", "file"), url)

    def on_error(self, error: Exception) -> None:
        self.failed += 1
        self._emit_timeline("FAIL", self._current or "queue", str(error))

    def on_warning(self, message: str) -> None:
        console.print(f"[yellow]Warning:[/yellow] {message}")

    def _emit_timeline(self, status: str, name: str, detail: str) -> None:
        stamp = time.strftime("%H:%M:%S")
        color = "green" if status == "DONE" else "red"
        console.print(f"[dim]{stamp}[/dim] [{color}]{status:<4}[/{color}] {name} {detail}")
