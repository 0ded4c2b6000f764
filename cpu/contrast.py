"""
CPU linear contrast stretch.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from common.image import check_bounds, intensity_view, prepare_output
from cpu.parallel import parallel_rows


def cpu_stretch_contrast(
    gray: np.ndarray,
    lower: int,
    upper: int,
    out: Optional[np.ndarray] = None,
    workers: int | None = None,
) -> np.ndarray:
    """
    Remap [lower, upper] linearly onto [0, 255], clamping outside the bounds.

    Interior samples map to floor(255 * (s - lower) / (upper - lower)), computed
    in float32 and truncated, the same arithmetic the GPU kernel uses.

    Args:
        gray: (H, W) or (H, W, C) integer image; only channel 0 is read.
        lower: samples <= lower map to 0.
        upper: samples >= upper map to 255; must be > lower.
        out: optional output of the same grid, must not share memory with gray.
        workers: number of row bands processed concurrently (None = cpu count).

    Returns:
        The output array (out if given, else a new (H, W) uint8 array).
    """
    lower, upper = check_bounds(lower, upper)
    src = intensity_view(gray)
    dest = prepare_output(gray, out, np)
    span = np.float32(upper - lower)

    def band(y0: int, y1: int) -> None:
        s = src[y0:y1].astype(np.float32)
        scaled = np.floor(np.float32(255.0) * (s - np.float32(lower)) / span)
        result = np.where(s >= upper, 255, np.where(s <= lower, 0, scaled))
        dest[y0:y1] = result.astype(np.uint8)

    parallel_rows(band, src.shape[0], workers)
    return dest if out is None else out
