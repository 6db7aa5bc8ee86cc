from __future__ import annotations

import base64
import binascii
from typing import Any, Dict, Optional

from langchain_core.tools import tool

from models.vision import data_url, get_vision_client
from pipeline.config import DetectorConfig
from pipeline.errors import InvalidInput
from pipeline.graph import run_visualization


def _b64decode(data: str) -> bytes:
    """Accepts raw base64 or a `data:<mime>;base64,` URL."""
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidInput(f"invalid base64 image data: {e}") from e


@tool
def run_camouflage_detection(
    image_b64: str,
    max_dimension: int = 800,
) -> Dict[str, Any]:
    """
    Highlights camouflaged regions with the local-contrast detector.

    Args:
        image_b64: Base64 image bytes or a data URL.
        max_dimension: Long-edge cap for the analysis resolution.

    Returns:
        Dict with keys:
            - overlay, spectral, mask : PNG data URLs at input resolution
            - width, height           : input dimensions
            - anomalous_pixels        : scored pixels at working resolution
            - coverage                : percent of the cleaned mask that is set
    """
    result = run_visualization(
        _b64decode(image_b64),
        DetectorConfig(max_dimension=max_dimension),
    )
    return {
        "overlay": data_url(result.overlay),
        "spectral": data_url(result.spectral),
        "mask": data_url(result.mask),
        "width": result.width,
        "height": result.height,
        "anomalous_pixels": result.anomalous_pixels,
        "coverage": result.coverage,
    }


@tool
def run_vision_analysis(
    image_b64: str,
    mime_type: str = "image/png",
    mask_b64: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Describes the subject and its camouflage with the hosted vision model.

    Args:
        image_b64: Base64 image bytes or a data URL.
        mime_type: MIME type of the image.
        mask_b64: Optional base64 PNG detection mask sent as extra context.

    Returns:
        Dict with keys objectType, species, confidence, description,
        camouflageAnalysis, location.
    """
    client = get_vision_client()
    analysis = client.analyze(
        _b64decode(image_b64),
        mime_type=mime_type,
        mask_bytes=_b64decode(mask_b64) if mask_b64 else None,
    )
    return analysis.model_dump(by_alias=True)
