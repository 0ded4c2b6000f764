"""
Kernel dispatch supporting CPU, GPU and AUTO modes.

Callers hand in host (numpy) images and get host images back; the GPU path
copies to the device, launches one thread per pixel and copies the result back.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Tuple

import numpy as np

from common.config import kernel_params
from common.image import check_method, grid_shape, intensity_view
from cpu.adaptive_threshold import cpu_adaptive_threshold
from cpu.contrast import cpu_stretch_contrast
from cpu.threshold import cpu_binary_threshold, cpu_binary_threshold_inplace
from gpu.adaptive_threshold import gpu_adaptive_threshold
from gpu.contrast import gpu_stretch_contrast
from gpu.device import cp, describe_device, gpu_available
from gpu.threshold import gpu_binary_threshold, gpu_binary_threshold_inplace

LOGGER = logging.getLogger(__name__)

KERNELS = ("binary_threshold", "binary_threshold_inplace", "adaptive_threshold", "stretch_contrast")

_CPU_KERNELS: Dict[str, Callable[..., np.ndarray]] = {
    "binary_threshold": cpu_binary_threshold,
    "binary_threshold_inplace": cpu_binary_threshold_inplace,
    "adaptive_threshold": cpu_adaptive_threshold,
    "stretch_contrast": cpu_stretch_contrast,
}

_GPU_KERNELS: Dict[str, Callable[..., Any]] = {
    "binary_threshold": gpu_binary_threshold,
    "binary_threshold_inplace": gpu_binary_threshold_inplace,
    "adaptive_threshold": gpu_adaptive_threshold,
    "stretch_contrast": gpu_stretch_contrast,
}

# The GPU kernel always sums the window directly
_CPU_ONLY_PARAMS = {"method"}

_device_logged = False


def select_backend(cfg: Dict[str, Any], shape: Tuple[int, int]) -> str:
    """
    Resolve the configured mode to 'CPU' or 'GPU' for an image of the given (H, W).
    """
    kernels_cfg = cfg.get("kernels", {})
    mode = kernels_cfg.get("mode", "CPU")

    if mode == "CPU":
        return "CPU"
    if mode == "GPU":
        return "GPU"
    if mode == "AUTO":
        min_pixels = int(kernels_cfg.get("gpu_min_pixels", 0))
        h, w = shape[:2]
        if h * w >= min_pixels and gpu_available():
            return "GPU"
        return "CPU"
    raise ValueError(f"Unknown kernels mode: {mode}")


def _log_device_once() -> None:
    global _device_logged
    if _device_logged:
        return
    info = describe_device()
    LOGGER.info("Using CUDA device %s - %s (cc %s)", info["id"], info["name"], info["compute_capability"])
    _device_logged = True


def _run_cpu(kernel: str, img: np.ndarray, params: Dict[str, Any], cfg: Dict[str, Any]) -> np.ndarray:
    workers = cfg.get("kernels", {}).get("workers")
    return _CPU_KERNELS[kernel](img, workers=workers, **params)


def _run_gpu(kernel: str, img: np.ndarray, params: Dict[str, Any], cfg: Dict[str, Any]) -> Tuple[np.ndarray, float]:
    if not gpu_available():
        raise RuntimeError("No CUDA device available for GPU kernels")
    _log_device_once()

    block = tuple(cfg.get("kernels", {}).get("gpu_block", (16, 16)))
    gpu_params = {k: v for k, v in params.items() if k not in _CPU_ONLY_PARAMS}

    start_event = cp.cuda.Event()
    end_event = cp.cuda.Event()

    view = intensity_view(img)
    img_gpu = cp.asarray(view)

    start_event.record()
    result_gpu = _GPU_KERNELS[kernel](img_gpu, block=block, **gpu_params)
    end_event.record()
    end_event.synchronize()
    kernel_ms = cp.cuda.get_elapsed_time(start_event, end_event)

    if kernel == "binary_threshold_inplace":
        view[...] = cp.asnumpy(result_gpu)
        return img, kernel_ms
    return cp.asnumpy(result_gpu), kernel_ms


def run_kernel(kernel: str, img: np.ndarray, cfg: Dict[str, Any], **overrides: Any) -> Tuple[np.ndarray, Dict[str, Any]]:
    """
    Run one kernel on a host image using the backend chosen by cfg["kernels"]["mode"].

    Args:
        kernel: one of KERNELS
        img: (H, W) or (H, W, C) numpy image; the in-place kernel updates it
        cfg: configuration dict (see configs/default.json)
        overrides: kernel parameters (th, radius, method, lower, upper); missing
            ones come from cfg["kernels"][kernel]

    Returns:
        result: numpy output image (img itself for the in-place kernel)
        timings: dict with 'backend' and 't_kernel_ms'; on the GPU the first call of each
            kernel also includes its one-time RawKernel compile
    """
    if kernel not in KERNELS:
        raise ValueError(f"Unknown kernel: {kernel}")

    params = kernel_params(cfg, kernel, **overrides)
    if kernel == "adaptive_threshold" and "method" in params:
        # Checked before backend selection; the GPU path drops method
        check_method(params["method"])
    allow_failover = bool(cfg.get("kernels", {}).get("allow_failover", False))
    backend = select_backend(cfg, grid_shape(img))

    if backend == "GPU":
        try:
            result, kernel_ms = _run_gpu(kernel, img, params, cfg)
            return result, {"backend": "GPU", "t_kernel_ms": kernel_ms}
        except ValueError:
            # Caller precondition violations are not device failures
            raise
        except Exception as e:
            if not allow_failover:
                raise
            LOGGER.warning("GPU %s failed (%s); falling back to CPU", kernel, e)

    start = time.perf_counter()
    result = _run_cpu(kernel, img, params, cfg)
    kernel_ms = (time.perf_counter() - start) * 1000.0
    LOGGER.debug("%s on CPU took %.3f ms", kernel, kernel_ms)
    return result, {"backend": "CPU", "t_kernel_ms": kernel_ms}


def binary_threshold(img: np.ndarray, cfg: Dict[str, Any], th: int | None = None) -> Tuple[np.ndarray, Dict[str, Any]]:
    return run_kernel("binary_threshold", img, cfg, th=th)


def binary_threshold_inplace(img: np.ndarray, cfg: Dict[str, Any], th: int | None = None) -> Tuple[np.ndarray, Dict[str, Any]]:
    return run_kernel("binary_threshold_inplace", img, cfg, th=th)


def adaptive_threshold(
    img: np.ndarray,
    cfg: Dict[str, Any],
    radius: int | None = None,
    method: str | None = None,
) -> Tuple[np.ndarray, Dict[str, Any]]:
    return run_kernel("adaptive_threshold", img, cfg, radius=radius, method=method)


def stretch_contrast(
    img: np.ndarray,
    cfg: Dict[str, Any],
    lower: int | None = None,
    upper: int | None = None,
) -> Tuple[np.ndarray, Dict[str, Any]]:
    return run_kernel("stretch_contrast", img, cfg, lower=lower, upper=upper)
