"""Per-sheet fan-out onto a short-lived thread pool."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from contextvars import copy_context
from dataclasses import dataclass
from typing import TypeVar

from excel_json_converter.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class SheetPoolOptions:
    """When and how wide per-sheet work runs in parallel."""

    max_workers: int = 4
    row_threshold: int = 5000


def map_sheets(
    func: Callable[[T], R],
    items: Sequence[T],
    total_rows: int,
    options: SheetPoolOptions,
) -> list[R]:
    """Apply ``func`` to every item, in parallel for large multi-sheet input.

    Results keep the order of ``items``. The first exception raised by any
    item propagates once all submitted work has finished, so a request never
    yields partial results.
    """
    workers = min(options.max_workers, len(items))
    if workers < 2 or total_rows < options.row_threshold:
        return [func(item) for item in items]

    logger.debug(
        "Processing sheets in parallel",
        sheets=len(items),
        workers=workers,
        total_rows=total_rows,
    )
    with ThreadPoolExecutor(
        max_workers=workers, thread_name_prefix="sheet"
    ) as executor:
        # Each task runs in a copy of the caller's context so log lines keep
        # the request id.
        futures = [
            executor.submit(copy_context().run, func, item) for item in items
        ]
        return [future.result() for future in futures]
