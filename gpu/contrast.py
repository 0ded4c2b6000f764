"""
GPU linear contrast stretch using a CuPy RawKernel.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from common.image import check_bounds, intensity_view, prepare_output
from gpu.device import DEFAULT_BLOCK, contiguous_u8, cp, get_kernel, grid_for, launch_into, require_cupy


_STRETCH_CONTRAST_KERNEL = """
extern "C" __global__
void stretch_contrast(
    const unsigned char* src,
    unsigned char* dest,
    int height,
    int width,
    unsigned int lower,
    unsigned int upper
) {
    int x = blockIdx.x * blockDim.x + threadIdx.x;
    int y = blockIdx.y * blockDim.y + threadIdx.y;
    if (x >= width || y >= height) return;

    int idx = y * width + x;
    unsigned int s = src[idx];

    if (s >= upper) {
        dest[idx] = 255;
    } else if (s <= lower) {
        dest[idx] = 0;
    } else {
        float scaled = 255.0f * (float)(s - lower) / (float)(upper - lower);
        dest[idx] = (unsigned char)scaled;
    }
}
"""


def gpu_stretch_contrast(
    gray_gpu: cp.ndarray,
    lower: int,
    upper: int,
    out: Optional[cp.ndarray] = None,
    block: tuple[int, int] = DEFAULT_BLOCK,
) -> cp.ndarray:
    """
    GPU contrast stretch of [lower, upper] onto [0, 255].

    Raises ValueError before launch when upper <= lower.
    """
    require_cupy("GPU contrast stretch")
    lower, upper = check_bounds(lower, upper)
    gray = contiguous_u8(intensity_view(gray_gpu))
    dest = prepare_output(gray_gpu, out, cp)
    h, w = gray.shape

    kernel = get_kernel(_STRETCH_CONTRAST_KERNEL, "stretch_contrast")

    def run(buf: cp.ndarray) -> None:
        kernel(
            grid_for(h, w, block),
            block,
            (gray, buf, np.int32(h), np.int32(w), np.uint32(lower), np.uint32(upper)),
        )

    launch_into(dest, run)
    return dest if out is None else out
