"""
Image capability helpers shared by the CPU and GPU kernels.

Kernels work on the first channel of a (H, W) or (H, W, C) array. Output grids
are validated here so every kernel rejects bad launches the same way.
"""

from __future__ import annotations

import numbers
from typing import Any, Optional

ADAPTIVE_METHODS = ("direct", "integral")


def intensity_view(img: Any) -> Any:
    """
    Return a 2D view of the intensity channel.

    Args:
        img: numpy or CuPy array of shape (H, W) or (H, W, C).

    Returns:
        (H, W) view sharing memory with img (channel 0 for multi-channel).
    """
    if img.ndim == 2:
        return img
    if img.ndim == 3:
        return img[:, :, 0]
    raise ValueError(f"Expected (H, W) or (H, W, C) image, got shape {img.shape}")


def grid_shape(img: Any) -> tuple[int, int]:
    h, w = img.shape[:2]
    return int(h), int(w)


def check_not_aliased(src: Any, out: Any, xp: Any) -> None:
    """
    Reject out-of-place launches whose output shares storage with the input.
    """
    if xp.shares_memory(src, out):
        raise ValueError(
            "Output must not alias the input; use the in-place threshold variant instead"
        )


def prepare_output(src: Any, out: Optional[Any], xp: Any) -> Any:
    """
    Allocate a uint8 output grid for src, or validate a caller-supplied one.

    A supplied output must have an unsigned integer dtype so that 255 is stored as-is.
    Returns the 2D intensity view that the kernel writes into.
    """
    if out is None:
        return xp.empty(grid_shape(src), dtype=xp.uint8)

    if grid_shape(out) != grid_shape(src):
        raise ValueError(
            f"Output grid {grid_shape(out)} does not match input grid {grid_shape(src)}"
        )
    if out.dtype.kind != "u":
        raise ValueError(f"Output dtype must be an unsigned integer type, got {out.dtype}")
    check_not_aliased(src, out, xp)
    return intensity_view(out)


def _as_int(value: Any, what: str) -> int:
    # Rejects floats such as 127.9 instead of truncating them
    if not isinstance(value, numbers.Integral):
        raise ValueError(f"{what} must be an integer, got {value!r}")
    return int(value)


def check_threshold(th: int) -> int:
    th = _as_int(th, "Threshold")
    if not 0 <= th <= 255:
        raise ValueError(f"Threshold must be in [0, 255], got {th}")
    return th


def check_radius(radius: int) -> int:
    radius = _as_int(radius, "Window radius")
    if radius < 0:
        raise ValueError(f"Window radius must be non-negative, got {radius}")
    return radius


def clamp_radius(radius: int, height: int, width: int) -> int:
    """
    Radius limited to the grid size; any larger window clips to the same cells.
    """
    return min(radius, max(height, width))


def check_method(method: str) -> str:
    if method not in ADAPTIVE_METHODS:
        raise ValueError(f"Unknown method: {method}")
    return method


def check_bounds(lower: int, upper: int) -> tuple[int, int]:
    """
    Contrast stretch bounds; upper must be strictly greater than lower.
    """
    lower, upper = _as_int(lower, "lower"), _as_int(upper, "upper")
    if lower < 0 or upper > 255:
        raise ValueError(f"Contrast bounds must lie in [0, 255], got lower={lower}, upper={upper}")
    if upper <= lower:
        raise ValueError(f"upper must be strictly greater than lower (got lower={lower}, upper={upper})")
    return lower, upper
