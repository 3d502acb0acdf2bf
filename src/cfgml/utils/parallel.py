"""Fork-join helper for independent per-file or per-group tasks."""

from __future__ import annotations

from concurrent.futures import ProcessPoolExecutor, as_completed
from typing import Callable, Iterable, TypeVar

from cfgml.utils.logging import get_logger, init_worker_logging, logging_settings
from cfgml.utils.progress import progress_context

T = TypeVar("T")
R = TypeVar("R")

log = get_logger(__name__)


def run_parallel(
    func: Callable[[T], R],
    items: Iterable[T],
    workers: int = 1,
    description: str = "Processing",
    show_progress: bool = True,
) -> list[R]:
    """Apply ``func`` to every item and return results in input order.

    ``func`` must be a module-level callable so it can be pickled. Each task
    is expected to handle its own failures; an exception escaping a task is
    re-raised here after the rest of the batch has finished.
    """
    tasks = list(items)
    results: list[R | None] = [None] * len(tasks)
    if not tasks:
        return []

    first_error: BaseException | None = None
    with progress_context(description, total=len(tasks), enabled=show_progress) as (progress, task_id):
        if workers <= 1 or len(tasks) == 1:
            for idx, item in enumerate(tasks):
                try:
                    results[idx] = func(item)
                except Exception as exc:
                    log.error("task_failed", index=idx, error=str(exc))
                    if first_error is None:
                        first_error = exc
                progress.advance(task_id)
        else:
            log.debug("pool_start", workers=workers, tasks=len(tasks))
            with ProcessPoolExecutor(
                max_workers=workers,
                initializer=init_worker_logging,
                initargs=logging_settings(),
            ) as executor:
                futures = {executor.submit(func, item): idx for idx, item in enumerate(tasks)}
                for future in as_completed(futures):
                    idx = futures[future]
                    try:
                        results[idx] = future.result()
                    except Exception as exc:
                        log.error("task_failed", index=idx, error=str(exc))
                        if first_error is None:
                            first_error = exc
                    progress.advance(task_id)

    if first_error is not None:
        raise first_error
    return results  # type: ignore[return-value]
