from __future__ import annotations

import io
from dataclasses import dataclass

import numpy as np
from PIL import Image, UnidentifiedImageError

from pipeline.errors import EncodingError, InvalidInput


@dataclass(frozen=True, eq=False)
class ImageBuffer:
    """
    RGBA pixel grid.

    `pixels` has shape (height, width, 4) and dtype uint8, i.e. the flat
    channel sequence has exactly width * height * 4 entries.
    """

    width: int
    height: int
    pixels: np.ndarray

    def __post_init__(self):
        if self.pixels.dtype != np.uint8:
            raise ValueError(f"pixels must be uint8, got {self.pixels.dtype}")
        if self.pixels.shape != (self.height, self.width, 4):
            raise ValueError(
                f"pixels shape {self.pixels.shape} does not match "
                f"({self.height}, {self.width}, 4)"
            )

    @classmethod
    def from_array(cls, pixels: np.ndarray) -> "ImageBuffer":
        """Wrap an (H, W, 4) array, or promote an (H, W, 3) RGB array to opaque RGBA."""
        arr = np.asarray(pixels, dtype=np.uint8)
        if arr.ndim == 3 and arr.shape[2] == 3:
            alpha = np.full(arr.shape[:2] + (1,), 255, dtype=np.uint8)
            arr = np.concatenate([arr, alpha], axis=2)
        h, w = arr.shape[:2]
        return cls(width=w, height=h, pixels=np.ascontiguousarray(arr))

    @property
    def rgb(self) -> np.ndarray:
        return self.pixels[..., :3]

    @property
    def channels(self) -> np.ndarray:
        return self.pixels.reshape(-1)

    def copy(self) -> "ImageBuffer":
        return ImageBuffer(self.width, self.height, self.pixels.copy())


def _freeze(arr: np.ndarray) -> np.ndarray:
    arr = np.array(arr, copy=True)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class DetectionMap:
    """Per-pixel anomaly scores (uint8, 0 = not anomalous). Read-only."""

    width: int
    height: int
    scores: np.ndarray

    def __post_init__(self):
        if self.scores.shape != (self.height, self.width):
            raise ValueError("scores shape does not match map dimensions")
        object.__setattr__(self, "scores", _freeze(self.scores.astype(np.uint8)))

    @property
    def anomalous_pixels(self) -> int:
        return int(np.count_nonzero(self.scores))


@dataclass(frozen=True, eq=False)
class BinaryMask:
    """Boolean detection footprint. Read-only."""

    width: int
    height: int
    bits: np.ndarray

    def __post_init__(self):
        if self.bits.shape != (self.height, self.width):
            raise ValueError("bits shape does not match mask dimensions")
        object.__setattr__(self, "bits", _freeze(self.bits.astype(bool)))

    @property
    def coverage(self) -> float:
        if self.bits.size == 0:
            return 0.0
        return float(np.count_nonzero(self.bits)) / self.bits.size


def decode_image(data: bytes) -> ImageBuffer:
    """Decode any Pillow-readable image into an RGBA buffer."""
    if not data:
        raise InvalidInput("empty image payload")
    try:
        with Image.open(io.BytesIO(data)) as img:
            rgba = img.convert("RGBA")
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        SyntaxError,
        ValueError,
    ) as e:
        # Pillow reports broken PNG chunks as SyntaxError
        raise InvalidInput(f"cannot decode image: {e}") from e

    pixels = np.asarray(rgba, dtype=np.uint8)
    if pixels.size == 0:
        raise InvalidInput("decoded image has no pixels")
    return ImageBuffer.from_array(pixels)


def encode_image(buf: ImageBuffer, fmt: str = "PNG") -> bytes:
    """Encode a buffer to a portable image format (PNG by default)."""
    out = io.BytesIO()
    try:
        Image.fromarray(buf.pixels).save(out, format=fmt)
    except (OSError, ValueError, KeyError) as e:
        raise EncodingError(f"cannot encode image as {fmt}: {e}") from e
    return out.getvalue()
