"""Rich progress bar utilities."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)

from cfgml.utils.formatters import err_console


def create_progress(transient: bool = False, disable: bool = False) -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        TimeRemainingColumn(),
        console=err_console,
        transient=transient,
        disable=disable,
    )


@contextmanager
def progress_context(
    description: str, total: int, enabled: bool = True
) -> Generator[tuple[Progress, int], None, None]:
    """Context manager yielding (progress, task_id) for a single tracked task.

    With ``enabled=False`` the bar is created but never rendered, so callers
    can advance it unconditionally.
    """
    progress = create_progress(disable=not enabled)
    with progress:
        task_id = progress.add_task(description, total=total)
        yield progress, task_id
