from __future__ import annotations

import numpy as np

from models.detector import AnomalyDetector, annulus_offsets, get_detector
from pipeline.config import DetectorConfig
from utils.buffers import ImageBuffer

GRAY_A = (100, 100, 100)
GRAY_B = (130, 130, 130)


def solid(w, h, rgb=(128, 128, 128)):
    arr = np.zeros((h, w, 3), dtype=np.uint8)
    arr[...] = rgb
    return ImageBuffer.from_array(arr)


def checkerboard(w=160, h=160, box=(40, 40, 120, 120), block=8):
    """Uniform GRAY_A surround with a GRAY_B/GRAY_A checkerboard inside `box`."""
    arr = np.zeros((h, w, 3), dtype=np.uint8)
    arr[...] = GRAY_A
    x0, y0, x1, y1 = box
    for y in range(y0, y1):
        for x in range(x0, x1):
            if ((x - x0) // block + (y - y0) // block) % 2:
                arr[y, x] = GRAY_B
    return ImageBuffer.from_array(arr)


def test_uniform_image_scores_zero():
    detection = AnomalyDetector().detect(solid(64, 64))
    assert detection.scores.shape == (64, 64)
    assert not detection.scores.any()


def test_image_smaller_than_window_is_all_zero():
    detection = AnomalyDetector().detect(checkerboard(24, 30, box=(0, 0, 24, 30)))
    assert (detection.width, detection.height) == (24, 30)
    assert not detection.scores.any()


def test_checkerboard_flags_only_textured_region():
    detection = AnomalyDetector().detect(checkerboard())
    scores = detection.scores

    assert scores[40:120, 40:120].any()
    assert scores.max() < 95

    # Rows outside the texture compare surround to surround. The pattern score
    # looks up to pattern_span (5) pixels sideways, so flags may spill that far
    # past the texture columns 40..119 and no further.
    outside = np.ones_like(scores, dtype=bool)
    outside[40:120, 35:125] = False
    assert not scores[outside].any()


def test_border_is_always_zero():
    rng = np.random.default_rng(0)
    base = checkerboard(100, 90, box=(0, 0, 100, 90)).pixels.copy()
    base[..., :3] = np.clip(base[..., :3].astype(int) + rng.integers(-3, 4, base[..., :3].shape), 0, 255)
    detection = AnomalyDetector().detect(ImageBuffer.from_array(base))

    w = 12
    s = detection.scores
    assert s[w:-w, w:-w].any()
    assert not s[:w].any() and not s[-w:].any()
    assert not s[:, :w].any() and not s[:, -w:].any()


def test_detection_is_deterministic():
    buf = checkerboard()
    first = AnomalyDetector().detect(buf)
    second = AnomalyDetector().detect(buf)
    assert np.array_equal(first.scores, second.scores)


def test_anomaly_band_is_configurable():
    strict = DetectorConfig(anomaly_low=90.0, anomaly_high=95.0)
    detection = AnomalyDetector(strict).detect(checkerboard())
    assert not detection.scores.any()


def test_annulus_respects_radii():
    offsets = annulus_offsets(8, 12)
    assert (0, 8) in offsets and (0, 12) in offsets
    assert (0, 7) not in offsets and (0, 13) not in offsets
    assert all(64 <= dx * dx + dy * dy <= 144 for dy, dx in offsets)


def test_get_detector_reuses_default():
    assert get_detector() is get_detector()
    assert get_detector(DetectorConfig()) is get_detector()
    custom = get_detector(DetectorConfig(pattern_min_count=3))
    assert custom.config.pattern_min_count == 3
