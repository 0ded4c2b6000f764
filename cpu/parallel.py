"""
Row-band parallel-for used by the CPU kernels.

The grid is split into contiguous, disjoint row bands. Each band is handled by
one thread and writes only its own rows of the output.
"""

from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Tuple


def resolve_workers(workers: int | None) -> int:
    if not workers:
        return os.cpu_count() or 1
    return max(1, int(workers))


def row_bands(height: int, workers: int) -> List[Tuple[int, int]]:
    """
    Split [0, height) into at most `workers` contiguous half-open bands.
    """
    if height <= 0:
        return []
    n = min(max(1, workers), height)
    step, extra = divmod(height, n)
    bands = []
    y0 = 0
    for i in range(n):
        y1 = y0 + step + (1 if i < extra else 0)
        bands.append((y0, y1))
        y0 = y1
    return bands


def parallel_rows(fn: Callable[[int, int], None], height: int, workers: int | None = None) -> None:
    """
    Run fn(y0, y1) over every row band, in parallel when more than one worker is used.

    The first exception raised by a band is re-raised in the caller.
    """
    bands = row_bands(height, resolve_workers(workers))
    if len(bands) <= 1:
        for y0, y1 in bands:
            fn(y0, y1)
        return

    with ThreadPoolExecutor(max_workers=len(bands)) as pool:
        futures = [pool.submit(fn, y0, y1) for y0, y1 in bands]
        for fut in futures:
            fut.result()
