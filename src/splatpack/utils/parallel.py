# ABOUTME: Fork-join parallel-for over index ranges
# ABOUTME: Splits [0, count) into grain-sized ranges and runs them on a thread pool

import os
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Tuple


def split_ranges(count: int, grain_size: int) -> List[Tuple[int, int]]:
    """
    Split [0, count) into consecutive [start, end) ranges of at most grain_size.

    Args:
        count: Number of elements
        grain_size: Maximum elements per range

    Returns:
        List of (start, end) tuples covering [0, count) without overlap
    """
    if grain_size < 1:
        raise ValueError(f"grain_size must be >= 1, was {grain_size}")
    return [(start, min(start + grain_size, count)) for start in range(0, count, grain_size)]


def parallel_for(count: int,
                 grain_size: int,
                 fn: Callable[[int, int], None],
                 max_workers: Optional[int] = None) -> None:
    """
    Run fn(start, end) over every range of [0, count) and wait for all of them.

    Each call must only write its own output range. Exceptions raised by any
    range are re-raised here after all ranges finished.

    Args:
        count: Number of elements
        grain_size: Elements per work item
        fn: Range worker
        max_workers: Thread count (defaults to CPU count)
    """
    ranges = split_ranges(count, grain_size)
    if not ranges:
        return

    workers = max_workers or os.cpu_count() or 1
    if len(ranges) == 1 or workers == 1:
        for start, end in ranges:
            fn(start, end)
        return

    with ThreadPoolExecutor(max_workers=min(workers, len(ranges))) as executor:
        futures = [executor.submit(fn, start, end) for start, end in ranges]
        for future in futures:
            future.result()
