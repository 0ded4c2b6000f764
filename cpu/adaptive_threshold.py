"""
CPU adaptive thresholding against a border-clipped local mean.
"""

from __future__ import annotations

from typing import Optional

import cv2
import numpy as np

from common.image import check_method, check_radius, clamp_radius, intensity_view, prepare_output
from cpu.parallel import parallel_rows


def window_size(x: int, y: int, radius: int, width: int, height: int) -> int:
    """
    Number of cells in the window of half-width radius around (x, y), clipped to the grid.
    """
    x_low, x_high = max(0, x - radius), min(width - 1, x + radius)
    y_low, y_high = max(0, y - radius), min(height - 1, y + radius)
    return (y_high - y_low + 1) * (x_high - x_low + 1)


def _axis_bounds(n: int, radius: int) -> tuple[np.ndarray, np.ndarray]:
    # Half-open [low, high) window bounds for every index along one axis
    idx = np.arange(n)
    return np.maximum(0, idx - radius), np.minimum(n - 1, idx + radius) + 1


def window_counts(shape: tuple[int, int], radius: int) -> np.ndarray:
    """
    (H, W) float64 array of clipped window sizes for every coordinate.
    """
    h, w = shape[:2]
    radius = check_radius(radius)
    radius = clamp_radius(radius, h, w)
    y_low, y_high = _axis_bounds(h, radius)
    x_low, x_high = _axis_bounds(w, radius)
    return np.outer(y_high - y_low, x_high - x_low).astype(np.float64)


def _window_sums_direct(gray: np.ndarray, radius: int, y0: int, y1: int) -> np.ndarray:
    """
    Window sums for rows [y0, y1) by explicit accumulation over the clipped window.
    """
    h, w = gray.shape
    # Rows that any window in the band can reach
    r0, r1 = max(0, y0 - radius), min(h, y1 + radius)
    src = gray[r0:r1].astype(np.float64)

    row_sums = np.zeros_like(src)
    for dx in range(-radius, radius + 1):
        c0, c1 = max(0, -dx), min(w, w - dx)
        if c0 < c1:
            row_sums[:, c0:c1] += src[:, c0 + dx:c1 + dx]

    sums = np.zeros((y1 - y0, w), dtype=np.float64)
    for dy in range(-radius, radius + 1):
        t0, t1 = max(y0, -dy), min(y1, h - dy)
        if t0 < t1:
            sums[t0 - y0:t1 - y0] += row_sums[t0 + dy - r0:t1 + dy - r0]
    return sums


def _window_sums_integral(table: np.ndarray, radius: int, y0: int, y1: int) -> np.ndarray:
    """
    Window sums for rows [y0, y1) from a summed-area table of shape (H+1, W+1).
    """
    h, w = table.shape[0] - 1, table.shape[1] - 1
    y_low, y_high = _axis_bounds(h, radius)
    x_low, x_high = _axis_bounds(w, radius)
    y_low, y_high = y_low[y0:y1], y_high[y0:y1]
    return (
        table[np.ix_(y_high, x_high)]
        - table[np.ix_(y_high, x_low)]
        - table[np.ix_(y_low, x_high)]
        + table[np.ix_(y_low, x_low)]
    )


def cpu_adaptive_threshold(
    gray: np.ndarray,
    radius: int,
    out: Optional[np.ndarray] = None,
    method: str = "direct",
    workers: int | None = None,
) -> np.ndarray:
    """
    Adaptive threshold: 255 where the pixel is >= the mean of its clipped window, else 0.

    Args:
        gray: (H, W) or (H, W, C) integer image; only channel 0 is read.
        radius: non-negative window half-width (0 makes every pixel foreground).
        out: optional output of the same grid, must not share memory with gray.
        method: 'direct' accumulates every window cell, 'integral' uses a
            summed-area table (same result, O(1) per pixel).
        workers: number of row bands processed concurrently (None = cpu count).

    Returns:
        The output array (out if given, else a new (H, W) uint8 array).
    """
    radius = check_radius(radius)
    method = check_method(method)
    src = intensity_view(gray)
    dest = prepare_output(gray, out, np)
    h, w = src.shape
    radius = clamp_radius(radius, h, w)
    counts = window_counts((h, w), radius)

    if method == "direct":
        def sums_for(y0: int, y1: int) -> np.ndarray:
            return _window_sums_direct(src, radius, y0, y1)
    else:
        table = cv2.integral(np.ascontiguousarray(src, dtype=np.float64), sdepth=cv2.CV_64F)

        def sums_for(y0: int, y1: int) -> np.ndarray:
            return _window_sums_integral(table, radius, y0, y1)

    def band(y0: int, y1: int) -> None:
        mean = sums_for(y0, y1) / counts[y0:y1]
        dest[y0:y1] = np.where(src[y0:y1].astype(np.float64) >= mean, 255, 0)

    parallel_rows(band, h, workers)
    return dest if out is None else out
