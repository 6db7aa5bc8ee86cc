from __future__ import annotations

import numpy as np
import pytest

from utils.buffers import ImageBuffer
from utils.resample import downscale, upscale, working_size


def gradient(w, h):
    xs = np.linspace(0, 255, w, dtype=np.float64)
    ys = np.linspace(0, 255, h, dtype=np.float64)
    arr = np.zeros((h, w, 3), dtype=np.uint8)
    arr[..., 0] = xs[None, :]
    arr[..., 1] = ys[:, None]
    arr[..., 2] = 128
    return ImageBuffer.from_array(arr)


@pytest.mark.parametrize(
    "size, cap, expected",
    [
        ((1600, 1000), 800, (800, 500)),
        ((1000, 333), 800, (800, 266)),
        ((333, 1000), 800, (266, 800)),
        ((640, 480), 800, (640, 480)),
        ((800, 800), 800, (800, 800)),
    ],
)
def test_working_size(size, cap, expected):
    assert working_size(*size, cap) == expected


def test_downscale_bounds_long_edge():
    out = downscale(gradient(400, 100), 200)
    assert (out.width, out.height) == (200, 50)
    assert out.pixels.shape == (50, 200, 4)


def test_downscale_within_cap_is_a_copy():
    buf = gradient(50, 40)
    out = downscale(buf, 800)
    assert np.array_equal(out.pixels, buf.pixels)
    assert out.pixels is not buf.pixels


def test_round_trip_below_cap_is_identity():
    buf = gradient(50, 40)
    out = upscale(downscale(buf, 800), 50, 40)
    assert np.array_equal(out.pixels, buf.pixels)


@pytest.mark.parametrize("target", [(1000, 333), (37, 91), (401, 401)])
def test_upscale_hits_exact_dimensions(target):
    out = upscale(gradient(100, 50), *target)
    assert (out.width, out.height) == target
    assert out.pixels.shape == (target[1], target[0], 4)


def test_round_trip_above_cap_is_close():
    buf = gradient(400, 200)
    out = upscale(downscale(buf, 200), 400, 200)
    diff = np.abs(out.pixels.astype(int) - buf.pixels.astype(int))
    assert diff.max() <= 4
