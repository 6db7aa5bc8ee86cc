from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np

from pipeline.config import THERMAL_STOPS, ColorStop, DetectorConfig
from utils.buffers import BinaryMask, DetectionMap, ImageBuffer
from utils.morphology import close, dilate_falloff

RED = np.array([255.0, 0.0, 0.0])


def _to_u8(values: np.ndarray) -> np.ndarray:
    return np.clip(np.rint(values), 0, 255).astype(np.uint8)


def ramp_colors(
    intensity: np.ndarray,
    stops: Sequence[ColorStop] = THERMAL_STOPS,
) -> np.ndarray:
    """
    Map intensities in [0, 1] to RGB along a piecewise-linear ramp.

    Args:
        intensity: Array of any shape; values are clamped to [0, 1].
        stops: Ordered breakpoints, first at 0.0 and last at 1.0.

    Returns:
        uint8 array of shape `intensity.shape + (3,)`.
    """
    t = np.clip(np.asarray(intensity, dtype=np.float64), 0.0, 1.0)
    xs = np.array([s.threshold for s in stops], dtype=np.float64)
    colors = np.array([s.rgb for s in stops], dtype=np.float64)

    channels = [np.interp(t, xs, colors[:, c]) for c in range(3)]
    return _to_u8(np.stack(channels, axis=-1))


def ramp_color(
    intensity: float,
    stops: Sequence[ColorStop] = THERMAL_STOPS,
) -> Tuple[int, int, int]:
    r, g, b = ramp_colors(np.array([intensity]), stops)[0]
    return int(r), int(g), int(b)


def red_overlay(pixel, intensity: float, max_blend: float = 0.7) -> Tuple[int, int, int]:
    """Blend one RGB pixel toward pure red, never past `max_blend`."""
    alpha = min(max(float(intensity), 0.0), max_blend)
    out = np.asarray(pixel[:3], dtype=np.float64) * (1.0 - alpha) + RED * alpha
    r, g, b = _to_u8(out)
    return int(r), int(g), int(b)


def render_overlay(
    buf: ImageBuffer,
    detection: DetectionMap,
    config: DetectorConfig,
) -> ImageBuffer:
    """Red-tint scored pixels by `score / overlay_scale`, capped at the blend limit."""
    scores = detection.scores.astype(np.float64)
    alpha = np.minimum(scores / config.overlay_scale, config.overlay_max_blend)
    alpha = np.where(scores > 0, alpha, 0.0)[..., None]

    rgb = buf.rgb.astype(np.float64) * (1.0 - alpha) + RED * alpha
    out = buf.pixels.copy()
    out[..., :3] = _to_u8(rgb)
    return ImageBuffer(buf.width, buf.height, out)


def render_spectral(
    buf: ImageBuffer,
    detection: DetectionMap,
    config: DetectorConfig,
) -> ImageBuffer:
    """
    Thermal-ramp rendering of the detection map.

    Scores are spread with a decaying halo, normalised by the top of the
    anomaly band, and ramp-coloured. Cells under `spectral_floor` show the
    source pixel darkened by `spectral_dim`.
    """
    halo = dilate_falloff(detection.scores, config.spectral_falloff_radius)
    intensity = np.clip(halo / config.anomaly_high, 0.0, 1.0)
    hot = intensity >= config.spectral_floor
    if config.spectral_floor == 0.0:
        hot &= halo > 0

    colored = ramp_colors(intensity, config.color_stops)
    dimmed = _to_u8(buf.rgb.astype(np.float64) * config.spectral_dim)

    out = buf.pixels.copy()
    out[..., :3] = np.where(hot[..., None], colored, dimmed)
    out[..., 3] = 255
    return ImageBuffer(buf.width, buf.height, out)


def threshold_mask(detection: DetectionMap, config: DetectorConfig) -> BinaryMask:
    """Any positive score, closed to merge nearby detections."""
    bits = close(
        detection.scores > 0,
        dilate_radius=config.dilate_radius,
        erode_radius=config.erode_radius,
    )
    return BinaryMask(detection.width, detection.height, bits)


def render_mask(mask: BinaryMask) -> ImageBuffer:
    out = np.zeros((mask.height, mask.width, 4), dtype=np.uint8)
    out[mask.bits, :3] = 255
    out[..., 3] = 255
    return ImageBuffer(mask.width, mask.height, out)
