import json
from pathlib import Path
from typing import Any, Dict, Optional

KERNEL_MODES = ("CPU", "GPU", "AUTO")


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base without mutating inputs."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _read_json(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Config {path} must hold a JSON object, got {type(data).__name__}")
    return data


def validate_kernels_config(cfg: Dict[str, Any]) -> None:
    """
    Check the dispatch keys under "kernels"; per-kernel parameters are checked at launch.
    """
    kernels_cfg = cfg.get("kernels", {})
    mode = kernels_cfg.get("mode", "CPU")
    if mode not in KERNEL_MODES:
        raise ValueError(f"Unknown kernels mode: {mode} (expected one of {', '.join(KERNEL_MODES)})")

    block = kernels_cfg.get("gpu_block", [16, 16])
    if len(block) != 2 or any(int(b) <= 0 for b in block):
        raise ValueError(f"kernels.gpu_block must be two positive ints, got {block}")

    if int(kernels_cfg.get("gpu_min_pixels", 0)) < 0:
        raise ValueError("kernels.gpu_min_pixels must be non-negative")


def load_config(
    default_path: Path | str = Path("configs/default.json"),
    local_path: Optional[Path | str] = Path("configs/local.json"),
) -> Dict[str, Any]:
    """
    Load the kernel config, merge local overrides when the file exists, and validate it.
    """
    cfg = _read_json(Path(default_path))
    if local_path is not None and Path(local_path).exists():
        cfg = _deep_merge(cfg, _read_json(Path(local_path)))

    validate_kernels_config(cfg)
    return cfg


def kernel_params(cfg: Dict[str, Any], kernel: str, **overrides: Any) -> Dict[str, Any]:
    """
    Parameters for one kernel: config defaults under kernels.<kernel>, then explicit overrides.

    Overrides set to None are ignored so callers can pass optional arguments straight through.
    """
    params = dict(cfg.get("kernels", {}).get(kernel, {}))
    params.update({k: v for k, v in overrides.items() if v is not None})
    return params


def ensure_output_dirs(cfg: Dict[str, Any]) -> None:
    """
    Create output directories referenced by the config if they do not exist.
    """
    outputs = cfg.get("outputs", {})
    paths = [
        outputs.get("root"),
        Path(outputs.get("metrics_csv", "")).parent if outputs.get("metrics_csv") else None,
        Path(outputs.get("report_txt", "")).parent if outputs.get("report_txt") else None,
    ]
    for p in paths:
        if not p:
            continue
        Path(p).mkdir(parents=True, exist_ok=True)
