"""
Terminal progress rendering for image downloads.

A progress bar is used while the transfer reports measurable progress; a
spinner labelled 'size unknown' is shown when it does not. Once the spinner
has started it stays for the rest of the transfer.
"""

from typing import Any, Optional

from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)

from osfetch.constants import MSG_DOWNLOADING, MSG_DOWNLOADING_SIZE_UNKNOWN

from .interfaces import ProgressState


class DownloadProgress:
    """
    Render ProgressEvent states for one download.

    Parameters:
        display_version (str): Version label shown in the progress line.
        console (Optional[Console]): Rich console to draw on (stderr by default).
    """

    def __init__(self, display_version: str, console: Optional[Console] = None) -> None:
        self.display_version = display_version
        self.console = console or Console(stderr=True)
        self._progress: Optional[Progress] = None
        self._task_id: Any = None
        self._spinner: Any = None

    def __enter__(self) -> "DownloadProgress":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.stop()

    @property
    def spinner_active(self) -> bool:
        return self._spinner is not None

    @property
    def bar_active(self) -> bool:
        return self._progress is not None

    def update(self, state: Optional[ProgressState]) -> None:
        if state is None or self.spinner_active:
            self._start_spinner()
            return
        if self._progress is None:
            self._progress = Progress(
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
                DownloadColumn(),
                TransferSpeedColumn(),
                TimeRemainingColumn(),
                console=self.console,
                transient=False,
            )
            self._progress.start()
            self._task_id = self._progress.add_task(
                MSG_DOWNLOADING.format(version=self.display_version),
                total=state.total,
            )
        self._progress.update(self._task_id, completed=state.received, total=state.total)

    def _start_spinner(self) -> None:
        if self._spinner is not None:
            return
        self._spinner = self.console.status(
            MSG_DOWNLOADING_SIZE_UNKNOWN.format(version=self.display_version)
        )
        self._spinner.start()

    def stop(self) -> None:
        if self._progress is not None:
            self._progress.stop()
            self._progress = None
        if self._spinner is not None:
            self._spinner.stop()
            self._spinner = None
