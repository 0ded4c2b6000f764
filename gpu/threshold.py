"""
GPU binary threshold kernels using CuPy RawKernels, one thread per pixel.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from common.image import check_threshold, intensity_view, prepare_output
from gpu.device import DEFAULT_BLOCK, contiguous_u8, cp, get_kernel, grid_for, launch_into, require_cupy


_THRESHOLD_KERNEL = """
extern "C" __global__
void threshold(
    const unsigned char* src,
    unsigned char* dest,
    int height,
    int width,
    unsigned int th
) {
    int x = blockIdx.x * blockDim.x + threadIdx.x;
    int y = blockIdx.y * blockDim.y + threadIdx.y;
    if (x >= width || y >= height) return;

    int idx = y * width + x;
    dest[idx] = (src[idx] > th) ? 255 : 0;
}
"""

# Single buffer: each thread reads and writes only its own cell
_THRESHOLD_INPLACE_KERNEL = """
extern "C" __global__
void threshold_inplace(
    unsigned char* img,
    int height,
    int width,
    unsigned int th
) {
    int x = blockIdx.x * blockDim.x + threadIdx.x;
    int y = blockIdx.y * blockDim.y + threadIdx.y;
    if (x >= width || y >= height) return;

    int idx = y * width + x;
    img[idx] = (img[idx] > th) ? 255 : 0;
}
"""


def gpu_binary_threshold(
    src_gpu: cp.ndarray,
    th: int,
    out: Optional[cp.ndarray] = None,
    block: tuple[int, int] = DEFAULT_BLOCK,
) -> cp.ndarray:
    """
    GPU binary threshold: 255 where the sample exceeds th, else 0.

    Args:
        src_gpu: (H, W) or (H, W, C) CuPy image with samples in [0, 255].
        th: threshold in [0, 255].
        out: optional CuPy output of the same grid, must not share memory with src_gpu.
        block: threads per block (x, y).

    Returns:
        The output CuPy array (out if given, else a new (H, W) uint8 array).
    """
    require_cupy("GPU binary threshold")
    th = check_threshold(th)
    gray = contiguous_u8(intensity_view(src_gpu))
    dest = prepare_output(src_gpu, out, cp)
    h, w = gray.shape

    kernel = get_kernel(_THRESHOLD_KERNEL, "threshold")

    def run(buf: cp.ndarray) -> None:
        kernel(grid_for(h, w, block), block, (gray, buf, np.int32(h), np.int32(w), np.uint32(th)))

    launch_into(dest, run)
    return dest if out is None else out


def gpu_binary_threshold_inplace(
    img_gpu: cp.ndarray,
    th: int,
    block: tuple[int, int] = DEFAULT_BLOCK,
) -> cp.ndarray:
    """
    GPU binary threshold written back into img_gpu (channel 0). Returns img_gpu.
    """
    require_cupy("GPU in-place binary threshold")
    th = check_threshold(th)
    view = intensity_view(img_gpu)
    h, w = view.shape

    kernel = get_kernel(_THRESHOLD_INPLACE_KERNEL, "threshold_inplace")

    if view.dtype == cp.uint8 and view.flags.c_contiguous:
        buf = view
    else:
        buf = contiguous_u8(view)
    kernel(grid_for(h, w, block), block, (buf, np.int32(h), np.int32(w), np.uint32(th)))
    if buf is not view:
        view[...] = buf
    return img_gpu
