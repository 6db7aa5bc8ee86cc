from dataclasses import dataclass
from typing import Dict, Optional, TypedDict

from pipeline.config import DetectorConfig
from utils.buffers import BinaryMask, DetectionMap, ImageBuffer


class CamouflageState(TypedDict, total=False):
    """
    Shared state passed between LangGraph nodes.

    Every buffer is written by exactly one node and only read afterwards.
    """

    image_bytes: bytes
    detector_config: DetectorConfig

    # Decoded input and its working-resolution copy
    source: Optional[ImageBuffer]
    working: Optional[ImageBuffer]

    # Single detection pass shared by all renderers
    detection: Optional[DetectionMap]
    mask: Optional[BinaryMask]

    # Working-resolution renderings
    overlay: Optional[ImageBuffer]
    spectral: Optional[ImageBuffer]
    mask_image: Optional[ImageBuffer]

    # Source-resolution renderings and their PNG encodings
    outputs: Optional[Dict[str, ImageBuffer]]
    encoded: Optional[Dict[str, bytes]]

    # {"width","height","working_width","working_height","anomalous_pixels","coverage"}
    final: Optional[Dict]

    # Error/debugging info
    error: Optional[str]
    error_type: Optional[str]


@dataclass(frozen=True)
class VisualizationResult:
    overlay: bytes
    spectral: bytes
    mask: bytes
    width: int
    height: int
    working_width: int
    working_height: int
    anomalous_pixels: int
    coverage: float  # percent of the cleaned mask that is set
