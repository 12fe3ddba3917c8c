"""progress rendering for download and runtime-install events."""

import sys
from contextlib import contextmanager
from typing import Dict, Optional
from rich.console import Console
from rich.progress import (
    Progress,
    SpinnerColumn,
    TextColumn,
    BarColumn,
    DownloadColumn,
    TransferSpeedColumn,
    TimeRemainingColumn,
    TaskProgressColumn,
    TaskID,
)

from ..domain.models import DownloadProgress, InstallProgress
from ..state.downloads import stage_text


class ProgressManager:
    """turns progress events into rich progress bars."""

    def __init__(self, console: Optional[Console] = None):
        """
        initialize progress manager.

        args:
            console: optional rich console instance. if not provided, creates new one.
        """
        self.console = console or Console()
        self._enabled = self._should_show_progress()

    def _should_show_progress(self) -> bool:
        """
        check if we should show progress bars.

        returns false in non-interactive environments (ci/cd, piped output).
        """
        return sys.stdout.isatty() and not sys.stdout.closed

    @contextmanager
    def spinner(self, description: str, transient: bool = True):
        """spinner while waiting on the catalog; yields its task id, or None without a terminal."""
        if not self._enabled:
            self.console.print(f"{description}...")
            yield None
            return

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=self.console,
            transient=transient,
        ) as progress:
            task_id = progress.add_task(description, total=None)
            yield task_id

    @contextmanager
    def download_progress(self):
        """
        one bar per mod, driven by ``mod-download-progress`` events.

        yields:
            callback to subscribe to the download topic
        """
        if not self._enabled:
            yield _DownloadRenderer(_DummyProgress())
            return

        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            console=self.console,
        ) as progress:
            yield _DownloadRenderer(progress)

    @contextmanager
    def install_progress(self, description: str):
        """
        single percentage bar driven by ``bepinex-progress`` events.

        yields:
            callback to subscribe to the runtime install topic
        """
        if not self._enabled:
            self.console.print(f"{description}...")
            yield lambda event: None
            return

        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=self.console,
        ) as progress:
            task_id = progress.add_task(description, total=100)

            def on_event(event: InstallProgress):
                progress.update(task_id, completed=event.progress, description=event.message or description)

            yield on_event


class _DownloadRenderer:
    """callable subscriber mapping mod ids to progress tasks."""

    def __init__(self, progress):
        self.progress = progress
        self.tasks: Dict[str, TaskID] = {}

    def __call__(self, event: DownloadProgress):
        task_id = self.tasks.get(event.mod_id)
        if task_id is None:
            task_id = self.progress.add_task(f"{event.mod_id}: {stage_text(event.stage)}", total=event.total)
            self.tasks[event.mod_id] = task_id
        self.progress.update(
            task_id,
            total=event.total,
            completed=event.downloaded,
            description=f"{event.mod_id}: {stage_text(event.stage)}",
        )


class _DummyProgress:
    """dummy progress object for non-interactive mode."""

    def add_task(self, description: str, total: Optional[int] = None, **kwargs) -> TaskID:
        """add a task (no-op)."""
        return TaskID(0)

    def update(self, task_id: TaskID, **kwargs):
        """update a task (no-op)."""
        pass
