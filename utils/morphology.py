"""
Binary morphology on detection masks.

Structuring elements are Euclidean disks. Cells outside the image never
erode an in-image cell, which is OpenCV's default border for `cv2.erode`.
"""

from __future__ import annotations

import cv2
import numpy as np


def disk_offsets(radius: int):
    """Yield (dy, dx, distance) for every offset with dx^2 + dy^2 <= radius^2."""
    r2 = radius * radius
    for dy in range(-radius, radius + 1):
        for dx in range(-radius, radius + 1):
            d2 = dx * dx + dy * dy
            if d2 <= r2:
                yield dy, dx, float(np.sqrt(d2))


def disk(radius: int) -> np.ndarray:
    """uint8 kernel of shape (2r+1, 2r+1) with ones inside the disk."""
    size = 2 * radius + 1
    kernel = np.zeros((size, size), dtype=np.uint8)
    for dy, dx, _ in disk_offsets(radius):
        kernel[dy + radius, dx + radius] = 1
    return kernel


def dilate(mask: np.ndarray, radius: int) -> np.ndarray:
    mask = np.asarray(mask, dtype=bool)
    if radius <= 0 or mask.size == 0:
        return mask.copy()
    out = cv2.dilate(
        mask.astype(np.uint8),
        disk(radius),
        borderType=cv2.BORDER_CONSTANT,
        borderValue=0,
    )
    return out.astype(bool)


def erode(mask: np.ndarray, radius: int) -> np.ndarray:
    mask = np.asarray(mask, dtype=bool)
    if radius <= 0 or mask.size == 0:
        return mask.copy()
    out = cv2.erode(mask.astype(np.uint8), disk(radius))
    return out.astype(bool)


def close(mask: np.ndarray, dilate_radius: int = 6, erode_radius: int = 3) -> np.ndarray:
    """
    Dilate then erode.

    With erode_radius <= dilate_radius every cell set in `mask` survives, so
    the result fills gaps without shrinking the original footprint.
    """
    return erode(dilate(mask, dilate_radius), erode_radius)


def dilate_falloff(scores: np.ndarray, radius: int) -> np.ndarray:
    """
    Spread each score to its neighbours with linear decay.

    A cell at distance d from a source receives `score * (1 - d / radius)`;
    overlapping contributions take the maximum. Returns float32.
    """
    src = np.asarray(scores, dtype=np.float32)
    if radius <= 0 or src.size == 0:
        return src.copy()

    h, w = src.shape
    padded = np.pad(src, radius, mode="constant")
    out = np.zeros_like(src)
    for dy, dx, dist in disk_offsets(radius):
        weight = np.float32(1.0 - dist / radius)
        if weight <= 0:
            continue
        shifted = padded[radius + dy : radius + dy + h, radius + dx : radius + dx + w]
        np.maximum(out, shifted * weight, out=out)
    return out
