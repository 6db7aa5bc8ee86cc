from __future__ import annotations

import logging
from typing import Any, Dict

from models.detector import get_detector
from pipeline.config import DetectorConfig
from pipeline.errors import CamouflageError
from pipeline.state import CamouflageState
from utils.buffers import decode_image, encode_image
from utils.color import render_mask, render_overlay, render_spectral, threshold_mask
from utils.resample import downscale, upscale

log = logging.getLogger(__name__)

RENDERINGS = ("overlay", "spectral", "mask_image")


def _config(state: CamouflageState) -> DetectorConfig:
    return state.get("detector_config") or DetectorConfig()


def _failure(tag: str, e: CamouflageError) -> Dict[str, Any]:
    log.error("[%s] %s", tag, e)
    return {"error": str(e), "error_type": type(e).__name__}


def node_decode(state: CamouflageState) -> Dict[str, Any]:
    """Decodes the uploaded bytes into an RGBA buffer."""
    try:
        source = decode_image(state.get("image_bytes") or b"")
    except CamouflageError as e:
        return _failure("DECODE", e)

    log.info("[DECODE] %dx%d", source.width, source.height)
    return {"source": source, "error": None, "error_type": None}


def node_downscale(state: CamouflageState) -> Dict[str, Any]:
    """Bounds the long edge to the configured working resolution."""
    source = state["source"]
    working = downscale(source, _config(state).max_dimension)
    log.info(
        "[DOWNSCALE] %dx%d -> %dx%d",
        source.width, source.height, working.width, working.height,
    )
    return {"working": working}


def node_detect(state: CamouflageState) -> Dict[str, Any]:
    """The one detection pass; its map feeds every renderer."""
    detector = get_detector(state.get("detector_config"))
    return {"detection": detector.detect(state["working"])}


def node_overlay(state: CamouflageState) -> Dict[str, Any]:
    overlay = render_overlay(state["working"], state["detection"], _config(state))
    return {"overlay": overlay}


def node_spectral(state: CamouflageState) -> Dict[str, Any]:
    spectral = render_spectral(state["working"], state["detection"], _config(state))
    return {"spectral": spectral}


def node_mask(state: CamouflageState) -> Dict[str, Any]:
    mask = threshold_mask(state["detection"], _config(state))
    log.info("[MASK] coverage=%.4f", mask.coverage)
    return {"mask": mask, "mask_image": render_mask(mask)}


def node_upscale(state: CamouflageState) -> Dict[str, Any]:
    """Brings every rendering back to the source resolution."""
    source = state["source"]
    outputs = {
        key: upscale(state[key], source.width, source.height)
        for key in RENDERINGS
    }
    log.info("[UPSCALE] %d renderings -> %dx%d", len(outputs), source.width, source.height)
    return {"outputs": outputs}


def node_encode(state: CamouflageState) -> Dict[str, Any]:
    """
    Encodes all renderings as PNG. A single failure discards the whole set.
    """
    try:
        encoded = {key: encode_image(buf) for key, buf in state["outputs"].items()}
    except CamouflageError as e:
        failure = _failure("ENCODE", e)
        failure["encoded"] = None
        return failure

    log.info("[ENCODE] %s", {k: len(v) for k, v in encoded.items()})
    return {"encoded": encoded}


def node_summarize(state: CamouflageState) -> Dict[str, Any]:
    """Packs dimensions and detection statistics for the response."""
    source = state["source"]
    working = state["working"]
    detection = state["detection"]
    mask = state["mask"]

    final = {
        "width": source.width,
        "height": source.height,
        "working_width": working.width,
        "working_height": working.height,
        "anomalous_pixels": detection.anomalous_pixels,
        "coverage": round(mask.coverage * 100.0, 2),
    }
    log.info("[SUMMARY] %s", final)
    return {"final": final}
