"""
Local-contrast anomaly detector.

For each pixel at least `window_radius` away from every edge:

1. local mean RGB over a (2 * local_radius + 1)^2 square,
2. surround mean RGB over the annulus inner_radius <= d <= window_radius,
3. color anomaly = sum of absolute per-channel differences of the two means,
4. pattern score = number of dx in 1..pattern_span where the brightness of
   (x - dx, y) and (x + dx, y) differs by strictly between pattern_low and
   pattern_high.

A pixel is anomalous iff anomaly_low < anomaly < anomaly_high and the
pattern score reaches pattern_min_count; its score is min(floor(anomaly), 255).
Border pixels always score 0.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

import numpy as np

from pipeline.config import DetectorConfig
from utils.buffers import DetectionMap, ImageBuffer

log = logging.getLogger(__name__)


def annulus_offsets(inner: int, outer: int) -> List[Tuple[int, int]]:
    lo, hi = inner * inner, outer * outer
    return [
        (dy, dx)
        for dy in range(-outer, outer + 1)
        for dx in range(-outer, outer + 1)
        if lo <= dx * dx + dy * dy <= hi
    ]


def square_offsets(radius: int) -> List[Tuple[int, int]]:
    return [
        (dy, dx)
        for dy in range(-radius, radius + 1)
        for dx in range(-radius, radius + 1)
    ]


def _window_mean(rgb: np.ndarray, offsets, margin: int) -> np.ndarray:
    """Mean of `rgb` over `offsets`, evaluated at every interior pixel."""
    h, w = rgb.shape[:2]
    ih, iw = h - 2 * margin, w - 2 * margin
    acc = np.zeros((ih, iw, rgb.shape[2]), dtype=np.float64)
    for dy, dx in offsets:
        acc += rgb[margin + dy : margin + dy + ih, margin + dx : margin + dx + iw]
    return acc / len(offsets)


class AnomalyDetector:
    def __init__(self, config: Optional[DetectorConfig] = None):
        self.config = config or DetectorConfig()
        self._local = square_offsets(self.config.local_radius)
        self._surround = annulus_offsets(self.config.inner_radius, self.config.window_radius)

    def detect(self, buf: ImageBuffer) -> DetectionMap:
        """Score every pixel of `buf`. Output has the same width and height."""
        cfg = self.config
        margin = cfg.margin
        scores = np.zeros((buf.height, buf.width), dtype=np.uint8)

        if buf.width < 2 * margin + 1 or buf.height < 2 * margin + 1:
            log.info(
                "[DETECT] %dx%d is below the %dpx analysis window, empty map",
                buf.width, buf.height, 2 * margin + 1,
            )
            return DetectionMap(buf.width, buf.height, scores)

        rgb = buf.rgb.astype(np.float64)
        anomaly = self.color_anomaly(rgb)
        pattern = self.pattern_score(rgb)

        hit = (
            (anomaly > cfg.anomaly_low)
            & (anomaly < cfg.anomaly_high)
            & (pattern >= cfg.pattern_min_count)
        )
        interior = np.where(hit, np.minimum(np.floor(anomaly), 255), 0)
        scores[margin : buf.height - margin, margin : buf.width - margin] = interior.astype(np.uint8)

        result = DetectionMap(buf.width, buf.height, scores)
        log.info(
            "[DETECT] %d/%d pixels anomalous",
            result.anomalous_pixels, buf.width * buf.height,
        )
        return result

    def color_anomaly(self, rgb: np.ndarray) -> np.ndarray:
        """Interior-sized array of |local mean - surround mean| summed over RGB."""
        margin = self.config.margin
        local = _window_mean(rgb, self._local, margin)
        surround = _window_mean(rgb, self._surround, margin)
        return np.abs(local - surround).sum(axis=2)

    def pattern_score(self, rgb: np.ndarray) -> np.ndarray:
        """Interior-sized count of moderate left/right brightness differences."""
        cfg = self.config
        margin = cfg.margin
        brightness = rgb.sum(axis=2) / 3.0
        h, w = brightness.shape
        ih, iw = h - 2 * margin, w - 2 * margin
        rows = brightness[margin : margin + ih]

        count = np.zeros((ih, iw), dtype=np.int32)
        for dx in range(1, cfg.pattern_span + 1):
            left = rows[:, margin - dx : margin - dx + iw]
            right = rows[:, margin + dx : margin + dx + iw]
            diff = np.abs(left - right)
            count += (diff > cfg.pattern_low) & (diff < cfg.pattern_high)
        return count


_detector: Optional[AnomalyDetector] = None


def get_detector(config: Optional[DetectorConfig] = None) -> AnomalyDetector:
    """
    Returns the shared default detector, or a fresh one for a custom config.
    """
    global _detector

    if config is not None and config != DetectorConfig():
        return AnomalyDetector(config)

    if _detector is None:
        _detector = AnomalyDetector()

    return _detector
