from __future__ import annotations

import io
import struct
from unittest.mock import patch

import numpy as np
import pytest
from PIL import Image

from pipeline.config import DetectorConfig
from pipeline.errors import EncodingError, InvalidInput
from pipeline.graph import initial_state, pipeline, run_visualization


def png(arr):
    out = io.BytesIO()
    Image.fromarray(arr).save(out, format="PNG")
    return out.getvalue()


def decode(data):
    return np.asarray(Image.open(io.BytesIO(data)).convert("RGBA"))


def textured(w=160, h=120):
    arr = np.full((h, w, 3), 100, dtype=np.uint8)
    for y in range(30, min(90, h)):
        for x in range(40, min(120, w)):
            if ((x - 40) // 8 + (y - 30) // 8) % 2:
                arr[y, x] = 130
    return arr


def test_uniform_image_gives_black_mask():
    result = run_visualization(png(np.full((64, 64, 3), 128, dtype=np.uint8)))
    assert result.anomalous_pixels == 0
    assert result.coverage == 0.0
    mask = decode(result.mask)
    assert not mask[..., :3].any()


def test_outputs_keep_input_dimensions():
    config = DetectorConfig(max_dimension=64)
    result = run_visualization(png(textured(160, 120)), config)

    assert (result.width, result.height) == (160, 120)
    assert (result.working_width, result.working_height) == (64, 48)
    for data in (result.overlay, result.spectral, result.mask):
        assert decode(data).shape == (120, 160, 4)


def test_run_is_deterministic():
    data = png(textured())
    first = run_visualization(data)
    second = run_visualization(data)
    assert first == second


def test_renderings_share_one_footprint():
    result = run_visualization(png(textured()))
    assert result.anomalous_pixels > 0

    mask = decode(result.mask)[..., 0] > 0
    overlay = decode(result.overlay)[..., :3].astype(int)
    original = textured().astype(int)
    tinted = (overlay != original).any(axis=2)

    assert mask.any()
    assert mask[tinted].all()


def test_tiny_image_still_renders():
    result = run_visualization(png(np.full((10, 7, 3), 50, dtype=np.uint8)))
    assert (result.width, result.height) == (7, 10)
    assert result.anomalous_pixels == 0


def test_invalid_bytes_raise():
    with pytest.raises(InvalidInput):
        run_visualization(b"\x89PNG broken")


@patch("pipeline.nodes.encode_image")
def test_encoding_failure_raises(mock_encode):
    mock_encode.side_effect = EncodingError("no codec")
    with pytest.raises(EncodingError):
        run_visualization(png(np.zeros((32, 32, 3), dtype=np.uint8)))


def test_graph_stops_after_decode_error():
    visited = [list(step)[0] for step in pipeline.stream(initial_state(b"nope"))]
    assert visited == ["decode"]


def test_graph_visits_every_stage():
    visited = {list(step)[0] for step in pipeline.stream(initial_state(png(textured(40, 40))))}
    assert visited == {
        "decode",
        "downscale",
        "detect",
        "render_overlay",
        "render_spectral",
        "render_mask",
        "upscale",
        "encode",
        "summarize",
    }


def corrupt_png():
    """40x40 PNG whose IDAT length field no longer matches its data."""
    data = bytearray(png(textured(40, 40)))
    assert data[37:41] == b"IDAT"
    data[36] ^= 0x55
    return bytes(data)


def bomb_bmp(w=100000, h=100000):
    """Bare BMP header claiming dimensions far past Pillow's pixel limit."""
    file_header = struct.pack("<2sIHHI", b"BM", 54, 0, 0, 54)
    info_header = struct.pack("<IiiHHIIiiII", 40, w, h, 1, 24, 0, 0, 0, 0, 0, 0)
    return file_header + info_header


def test_broken_png_chunk_raises_invalid_input():
    with pytest.raises(InvalidInput):
        run_visualization(corrupt_png())


def test_oversized_header_raises_invalid_input():
    with pytest.raises(InvalidInput):
        run_visualization(bomb_bmp())
