from __future__ import annotations

import csv
from pathlib import Path
from typing import Iterable, Sequence

import numpy as np


def write_csv(path: Path, header: Sequence[str], rows: Iterable[Sequence]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        for row in rows:
            writer.writerow(row)


def constant_image(width: int, height: int, intensity: int) -> np.ndarray:
    return np.full((height, width), intensity, dtype=np.uint8)


def mismatch_ratio(a: np.ndarray, b: np.ndarray) -> float:
    """
    Fraction of pixels where two binary/uint8 images differ.
    """
    return float(np.count_nonzero(a != b)) / a.size


def reference_adaptive_threshold(gray: np.ndarray, radius: int) -> np.ndarray:
    """
    Pixel-by-pixel adaptive threshold, one window sum per coordinate.
    """
    h, w = gray.shape
    out = np.zeros((h, w), dtype=np.uint8)
    for y in range(h):
        for x in range(w):
            y_low, y_high = max(0, y - radius), min(h - 1, y + radius)
            x_low, x_high = max(0, x - radius), min(w - 1, x + radius)
            total = 0.0
            for yy in range(y_low, y_high + 1):
                for xx in range(x_low, x_high + 1):
                    total += float(gray[yy, xx])
            count = (y_high - y_low + 1) * (x_high - x_low + 1)
            out[y, x] = 255 if float(gray[y, x]) >= total / count else 0
    return out


def reference_stretch(sample: int, lower: int, upper: int) -> int:
    if sample >= upper:
        return 255
    if sample <= lower:
        return 0
    return int(np.floor(np.float32(255.0) * np.float32(sample - lower) / np.float32(upper - lower)))
