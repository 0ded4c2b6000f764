from __future__ import annotations

from pathlib import Path
from typing import Iterable, List

import cv2
import numpy as np


def load_gray_images(image_paths: Iterable[str | Path]) -> List[np.ndarray]:
    """
    Load images from disk as single-channel uint8 intensity arrays.

    Args:
        image_paths: Paths to image files readable by OpenCV.

    Returns:
        List of (H, W) uint8 arrays in the same order as requested.
    """
    images = []
    for p in image_paths:
        path = Path(p)
        if not path.exists():
            raise FileNotFoundError(f"Image not found: {path}")
        img = cv2.imread(str(path), cv2.IMREAD_GRAYSCALE)
        if img is None:
            raise RuntimeError(f"Failed to decode image: {path}")
        images.append(img)
    return images


def synthetic_images(count: int, height: int, width: int, seed: int = 0) -> List[np.ndarray]:
    """
    Reproducible test images: a horizontal gradient with uniform noise and a bright square.
    """
    rng = np.random.default_rng(seed)
    ramp = np.linspace(0, 255, width, dtype=np.float32)[None, :].repeat(height, axis=0)
    images = []
    for _ in range(count):
        noise = rng.integers(-40, 41, size=(height, width)).astype(np.float32)
        img = np.clip(ramp + noise, 0, 255).astype(np.uint8)
        side = max(1, min(height, width) // 4)
        y0 = int(rng.integers(0, height - side + 1))
        x0 = int(rng.integers(0, width - side + 1))
        img[y0:y0 + side, x0:x0 + side] = 230
        images.append(img)
    return images
