"""
CPU adaptive threshold against the border-clipped local mean.
"""

from __future__ import annotations

import numpy as np
import pytest

from cpu.adaptive_threshold import cpu_adaptive_threshold, window_counts, window_size
from helpers import constant_image, reference_adaptive_threshold

METHODS = ["direct", "integral"]


@pytest.mark.parametrize("method", METHODS)
def test_adaptive_threshold_constant(method):
    binary = cpu_adaptive_threshold(constant_image(3, 3, 100), 1, method=method)
    assert np.array_equal(binary, constant_image(3, 3, 255))


@pytest.mark.parametrize("method", METHODS)
def test_adaptive_threshold_one_darker_pixel(method):
    for y in range(3):
        for x in range(3):
            image = constant_image(3, 3, 200)
            image[y, x] = 100
            binary = cpu_adaptive_threshold(image, 1, method=method)
            # All except the dark pixel have brightness >= their local mean
            expected = constant_image(3, 3, 255)
            expected[y, x] = 0
            assert np.array_equal(binary, expected)


@pytest.mark.parametrize("method", METHODS)
def test_adaptive_threshold_one_lighter_pixel(method):
    for y in range(5):
        for x in range(5):
            image = constant_image(5, 5, 100)
            image[y, x] = 200
            binary = cpu_adaptive_threshold(image, 1, method=method)

            for yb in range(5):
                for xb in range(5):
                    is_light_pixel = (xb, yb) == (x, y)
                    window_includes_light_pixel = abs(yb - y) <= 1 and abs(xb - x) <= 1
                    if is_light_pixel:
                        assert binary[yb, xb] == 255
                    elif window_includes_light_pixel:
                        assert binary[yb, xb] == 0
                    else:
                        assert binary[yb, xb] == 255


@pytest.mark.parametrize("method", METHODS)
def test_center_and_corner_of_bright_center(method):
    image = np.zeros((3, 3), dtype=np.uint8)
    image[1, 1] = 200
    binary = cpu_adaptive_threshold(image, 1, method=method)
    # Center: mean 200/9; corner: 2x2 window, mean 50
    assert binary[1, 1] == 255
    for y, x in [(0, 0), (0, 2), (2, 0), (2, 2)]:
        assert binary[y, x] == 0


@pytest.mark.parametrize("method", METHODS)
def test_zero_radius_is_all_foreground(method):
    rng = np.random.default_rng(3)
    image = rng.integers(0, 256, size=(19, 11), dtype=np.uint8)
    assert np.all(cpu_adaptive_threshold(image, 0, method=method) == 255)


@pytest.mark.parametrize("method", METHODS)
@pytest.mark.parametrize("radius", [1, 2, 4, 30])
def test_matches_pixelwise_reference(method, radius):
    rng = np.random.default_rng(radius)
    image = rng.integers(0, 256, size=(13, 17), dtype=np.uint8)
    expected = reference_adaptive_threshold(image, radius)
    actual = cpu_adaptive_threshold(image, radius, method=method, workers=4)
    assert np.array_equal(actual, expected)


def test_direct_and_integral_agree_on_large_image():
    rng = np.random.default_rng(11)
    image = rng.integers(0, 256, size=(120, 90), dtype=np.uint8)
    direct = cpu_adaptive_threshold(image, 5, method="direct", workers=3)
    integral = cpu_adaptive_threshold(image, 5, method="integral", workers=5)
    assert np.array_equal(direct, integral)


def test_worker_count_does_not_change_result():
    rng = np.random.default_rng(5)
    image = rng.integers(0, 256, size=(41, 29), dtype=np.uint8)
    single = cpu_adaptive_threshold(image, 3, workers=1)
    for workers in (2, 7, 64):
        assert np.array_equal(cpu_adaptive_threshold(image, 3, workers=workers), single)


def test_window_size_interior_and_corner():
    radius, width, height = 3, 20, 15
    assert window_size(10, 7, radius, width, height) == (2 * radius + 1) ** 2
    assert window_size(0, 0, radius, width, height) == (radius + 1) ** 2
    assert window_size(width - 1, height - 1, radius, width, height) == (radius + 1) ** 2
    assert window_size(0, 7, radius, width, height) == (radius + 1) * (2 * radius + 1)


def test_window_counts_matches_window_size():
    h, w, radius = 6, 9, 2
    counts = window_counts((h, w), radius)
    for y in range(h):
        for x in range(w):
            assert counts[y, x] == window_size(x, y, radius, w, h)


def test_window_larger_than_image_covers_whole_grid():
    counts = window_counts((4, 5), 100)
    assert np.all(counts == 20)


def test_input_is_not_written():
    rng = np.random.default_rng(2)
    image = rng.integers(0, 256, size=(10, 10), dtype=np.uint8)
    before = image.copy()
    cpu_adaptive_threshold(image, 2)
    assert np.array_equal(image, before)


def test_multichannel_input_uses_first_channel():
    gray = np.zeros((3, 3), dtype=np.uint8)
    gray[1, 1] = 200
    image = np.stack([gray, np.full_like(gray, 250), np.full_like(gray, 9)], axis=-1)
    assert np.array_equal(
        cpu_adaptive_threshold(image, 1, method="integral"),
        cpu_adaptive_threshold(gray, 1),
    )


def test_negative_radius_rejected():
    with pytest.raises(ValueError):
        cpu_adaptive_threshold(constant_image(3, 3, 1), -1)


def test_unknown_method_rejected():
    with pytest.raises(ValueError, match="Unknown method"):
        cpu_adaptive_threshold(constant_image(3, 3, 1), 1, method="gaussian")


@pytest.mark.parametrize("method", METHODS)
def test_huge_radius_matches_whole_grid_window(method):
    rng = np.random.default_rng(9)
    image = rng.integers(0, 256, size=(3, 4), dtype=np.uint8)
    expected = cpu_adaptive_threshold(image, max(image.shape), method=method)
    assert np.array_equal(cpu_adaptive_threshold(image, 2_000_000, method=method), expected)
    assert np.array_equal(cpu_adaptive_threshold(image, 2**40, method=method), expected)


def test_window_counts_huge_radius():
    assert np.all(window_counts((3, 3), 2**40) == 9)


def test_non_integer_radius_rejected():
    with pytest.raises(ValueError):
        cpu_adaptive_threshold(constant_image(3, 3, 1), 1.5)
