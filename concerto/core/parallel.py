"""
Data-parallel fan-out helpers.

All parallel work in the engine is a read-only map followed by a sequential
reduction or mutation done by the caller. NumPy kernels release the GIL, so a
thread pool is enough to spread the chunks over cores.
"""

import concurrent.futures
import os
from typing import Callable, Iterable, List, Optional, TypeVar

import numpy as np

T = TypeVar("T")
R = TypeVar("R")


def resolve_workers(workers: Optional[int]) -> int:
    """Map ``None``/``0`` to the CPU count and clamp to at least 1."""
    if not workers:
        return os.cpu_count() or 1
    return max(1, int(workers))


def parallel_map(
    func: Callable[[T], R],
    items: Iterable[T],
    workers: Optional[int] = 1,
) -> List[R]:
    """
    Apply ``func`` to every item, preserving order.

    Args:
        func: Function to apply; must not mutate shared state
        items: Work items
        workers: Thread count; 1 runs serially, None/0 uses all CPUs

    Returns:
        List of results in input order.
    """
    items = list(items)
    workers = resolve_workers(workers)
    if workers == 1 or len(items) <= 1:
        return [func(item) for item in items]

    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
        return list(executor.map(func, items))


def chunk_ranges(total: int, chunk_size: int) -> List[range]:
    """Split ``range(total)`` into consecutive ranges of at most chunk_size."""
    chunk_size = max(1, int(chunk_size))
    return [range(start, min(start + chunk_size, total)) for start in range(0, total, chunk_size)]


def chunk_size_for(cols: int, budget: int = 2_000_000) -> int:
    """Rows per chunk so that a (rows, cols) intermediate block stays small."""
    return max(1, budget // max(1, cols))


def concat_rows(blocks: List[np.ndarray], width: int, dtype=bool) -> np.ndarray:
    """Stack row blocks, returning an empty (0, width) array for no blocks."""
    if not blocks:
        return np.zeros((0, width), dtype=dtype)
    return np.concatenate(blocks, axis=0)
