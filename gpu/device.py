"""
CUDA device helpers shared by the GPU kernels.
"""

from __future__ import annotations

from typing import Any, Dict, Tuple

try:
    import cupy as cp
    from cupy import RawKernel
except Exception as exc:  # pragma: no cover
    cp = None
    RawKernel = None
    _gpu_import_error = exc
else:
    _gpu_import_error = None


DEFAULT_BLOCK = (16, 16)

_kernels: Dict[Tuple[str, str], Any] = {}


def gpu_available() -> bool:
    """True when CuPy imports and at least one CUDA device is visible."""
    if cp is None:
        return False
    try:
        return cp.cuda.runtime.getDeviceCount() > 0
    except cp.cuda.runtime.CUDARuntimeError:
        return False


def require_cupy(what: str) -> None:
    if cp is None:
        raise RuntimeError(f"CuPy not available for {what}: {_gpu_import_error}")


def get_kernel(code: str, name: str):
    """Get or compile a RawKernel, cached per (source, entry point)."""
    key = (code, name)
    if key not in _kernels:
        _kernels[key] = RawKernel(code, name)
    return _kernels[key]


def grid_for(height: int, width: int, block: Tuple[int, int] = DEFAULT_BLOCK) -> Tuple[int, int]:
    """
    Blocks per grid covering a width x height image, x along columns.
    """
    return (
        (width + block[0] - 1) // block[0],
        (height + block[1] - 1) // block[1],
    )


def describe_device() -> Dict[str, Any]:
    """
    Name and compute capability of the current CUDA device.
    """
    require_cupy("device query")
    device = cp.cuda.Device()
    props = cp.cuda.runtime.getDeviceProperties(device.id)
    name = props["name"]
    if isinstance(name, bytes):
        name = name.decode("utf-8", errors="replace")
    return {
        "id": device.id,
        "name": name,
        "compute_capability": device.compute_capability,
    }


def contiguous_u8(view):
    """C-contiguous uint8 device copy of view (no copy when it already is one)."""
    return cp.ascontiguousarray(view, dtype=cp.uint8)


def launch_into(dest, run) -> None:
    """
    Call run(buffer) with a contiguous uint8 buffer backing dest.

    Strided destinations (channel 0 of a multi-channel image) get a scratch
    buffer that is copied back after the launch.
    """
    if dest.dtype == cp.uint8 and dest.flags.c_contiguous:
        run(dest)
        return
    scratch = cp.empty(dest.shape, dtype=cp.uint8)
    run(scratch)
    dest[...] = scratch
