"""
CPU binary threshold kernels (out-of-place and in-place).
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from common.image import check_threshold, intensity_view, prepare_output
from cpu.parallel import parallel_rows


def cpu_binary_threshold(
    src: np.ndarray,
    th: int,
    out: Optional[np.ndarray] = None,
    workers: int | None = None,
) -> np.ndarray:
    """
    Binary threshold: 255 where the sample exceeds th, else 0.

    Args:
        src: (H, W) or (H, W, C) integer image; only channel 0 is read.
        th: threshold in [0, 255]; equal samples map to 0.
        out: optional output of the same grid, must not share memory with src.
        workers: number of row bands processed concurrently (None = cpu count).

    Returns:
        The output array (out if given, else a new (H, W) uint8 array).
    """
    th = check_threshold(th)
    gray = intensity_view(src)
    dest = prepare_output(src, out, np)

    def band(y0: int, y1: int) -> None:
        dest[y0:y1] = np.where(gray[y0:y1] > th, 255, 0)

    parallel_rows(band, gray.shape[0], workers)
    return dest if out is None else out


def cpu_binary_threshold_inplace(
    img: np.ndarray,
    th: int,
    workers: int | None = None,
) -> np.ndarray:
    """
    Binary threshold written back into img (channel 0). Returns img.
    """
    th = check_threshold(th)
    gray = intensity_view(img)

    def band(y0: int, y1: int) -> None:
        rows = gray[y0:y1]
        rows[...] = np.where(rows > th, 255, 0)

    parallel_rows(band, gray.shape[0], workers)
    return img
