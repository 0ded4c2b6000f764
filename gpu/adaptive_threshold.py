"""
GPU adaptive thresholding implementation using CuPy/CUDA.

Each thread sums its border-clipped window directly; the image is only read.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from common.image import check_radius, clamp_radius, intensity_view, prepare_output
from gpu.device import DEFAULT_BLOCK, contiguous_u8, cp, get_kernel, grid_for, launch_into, require_cupy


_ADAPTIVE_THRESHOLD_KERNEL = """
extern "C" __global__
void adaptive_threshold(
    const unsigned char* src,
    unsigned char* dest,
    int height,
    int width,
    int radius
) {
    int x = blockIdx.x * blockDim.x + threadIdx.x;
    int y = blockIdx.y * blockDim.y + threadIdx.y;
    if (x >= width || y >= height) return;

    // Clip the window to the image; no padding or wrap
    int y_low = max(0, y - radius);
    int y_high = min(height - 1, y + radius);
    int x_low = max(0, x - radius);
    int x_high = min(width - 1, x + radius);

    int w = (y_high - y_low + 1) * (x_high - x_low + 1);

    double sum = 0.0;
    for (int yy = y_low; yy <= y_high; yy++) {
        for (int xx = x_low; xx <= x_high; xx++) {
            sum += (double)src[yy * width + xx];
        }
    }
    double mean = sum / (double)w;

    dest[y * width + x] = ((double)src[y * width + x] >= mean) ? 255 : 0;
}
"""


def gpu_adaptive_threshold(
    gray_gpu: cp.ndarray,
    radius: int,
    out: Optional[cp.ndarray] = None,
    block: tuple[int, int] = DEFAULT_BLOCK,
) -> cp.ndarray:
    """
    GPU adaptive threshold using CuPy/CUDA.

    Args:
        gray_gpu: (H, W) or (H, W, C) CuPy image with samples in [0, 255]
        radius: non-negative window half-width (window is 2*radius+1 wide in the interior)
        out: optional CuPy output of the same grid, must not share memory with gray_gpu
        block: threads per block (x, y)

    Returns:
        2D uint8 binary image (0 or 255) on device
    """
    require_cupy("GPU adaptive threshold")
    radius = check_radius(radius)
    gray = contiguous_u8(intensity_view(gray_gpu))
    dest = prepare_output(gray_gpu, out, cp)
    h, w = gray.shape
    # Keeps y + radius and x + radius inside int32 in the kernel
    radius = clamp_radius(radius, h, w)

    kernel = get_kernel(_ADAPTIVE_THRESHOLD_KERNEL, "adaptive_threshold")

    def run(buf: cp.ndarray) -> None:
        kernel(grid_for(h, w, block), block, (gray, buf, np.int32(h), np.int32(w), np.int32(radius)))

    launch_into(dest, run)
    return dest if out is None else out
