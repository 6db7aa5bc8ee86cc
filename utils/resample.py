from __future__ import annotations

import math

import cv2

from utils.buffers import ImageBuffer


def working_size(width: int, height: int, max_dimension: int) -> tuple:
    """(width, height) after bounding the long edge to `max_dimension`."""
    scale = min(1.0, max_dimension / max(width, height))
    if scale >= 1.0:
        return width, height
    return max(1, math.floor(width * scale)), max(1, math.floor(height * scale))


def downscale(buf: ImageBuffer, max_dimension: int) -> ImageBuffer:
    """
    Shrink `buf` so its long edge is at most `max_dimension`.

    Area averaging avoids aliasing; images already within the bound are
    returned as an identity copy.
    """
    w, h = working_size(buf.width, buf.height, max_dimension)
    if (w, h) == (buf.width, buf.height):
        return buf.copy()

    out = cv2.resize(buf.pixels, (w, h), interpolation=cv2.INTER_AREA)
    return ImageBuffer(w, h, out)


def upscale(buf: ImageBuffer, target_width: int, target_height: int) -> ImageBuffer:
    """Bilinear resize to exactly (target_width, target_height)."""
    if target_width <= 0 or target_height <= 0:
        raise ValueError("target dimensions must be positive")
    if (buf.width, buf.height) == (target_width, target_height):
        return buf.copy()

    out = cv2.resize(
        buf.pixels,
        (target_width, target_height),
        interpolation=cv2.INTER_LINEAR,
    )
    return ImageBuffer(target_width, target_height, out)
