"""Thread-pool helpers for data-parallel phases."""

import os
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Callable, Iterable, List, Optional, TypeVar

T = TypeVar("T")
R = TypeVar("R")


def normalize_worker_count(worker_count: int) -> int:
    """Positive counts are used as-is; <= 0 means one worker per CPU."""
    if worker_count > 0:
        return int(worker_count)
    return max(1, int(os.cpu_count() or 1))


def create_executor(worker_count: int) -> Optional[ThreadPoolExecutor]:
    """
    Create a thread pool, or None when a single worker is requested.

    Args:
        worker_count: Requested workers (see normalize_worker_count()).

    Returns:
        ThreadPoolExecutor owned by the caller, or None for serial execution.
    """
    workers = normalize_worker_count(worker_count)
    if workers <= 1:
        return None
    return ThreadPoolExecutor(max_workers=workers)


def parallel_map(
    func: Callable[[T], R],
    items: Iterable[T],
    executor: Optional[Executor] = None,
) -> List[R]:
    """
    Apply func to every item and wait for all results.

    Results keep the order of items. The call returns only once every item
    has been processed, so consecutive calls act as phase barriers.

    Args:
        func: Function applied to each item.
        items: Work items.
        executor: Executor to fan out on; None runs serially.

    Returns:
        List of results in item order.
    """
    items = list(items)
    if executor is None or len(items) <= 1:
        return [func(item) for item in items]
    return list(executor.map(func, items))
