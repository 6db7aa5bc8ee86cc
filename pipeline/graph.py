from __future__ import annotations

import logging
from typing import Optional

from langgraph.graph import END, StateGraph

from pipeline.config import DetectorConfig
from pipeline.errors import ERRORS, CamouflageError
from pipeline.nodes import (
    node_decode,
    node_detect,
    node_downscale,
    node_encode,
    node_mask,
    node_overlay,
    node_spectral,
    node_summarize,
    node_upscale,
)
from pipeline.state import CamouflageState, VisualizationResult

log = logging.getLogger(__name__)


def stop_on_error(next_node: str):
    """Router factory: go to `next_node` unless a node reported an error."""

    def route(state):
        if state.get("error"):
            return END
        return next_node

    route.__name__ = f"continue_to_{next_node}"
    return route


def build_graph():
    workflow = StateGraph(CamouflageState)

    # Add all nodes
    workflow.add_node("decode", node_decode)
    workflow.add_node("downscale", node_downscale)
    workflow.add_node("detect", node_detect)
    workflow.add_node("render_overlay", node_overlay)
    workflow.add_node("render_spectral", node_spectral)
    workflow.add_node("render_mask", node_mask)
    workflow.add_node("upscale", node_upscale)
    workflow.add_node("encode", node_encode)
    workflow.add_node("summarize", node_summarize)

    workflow.set_entry_point("decode")

    # Undecodable input ends the run with no artifacts
    workflow.add_conditional_edges(
        "decode",
        stop_on_error("downscale"),
        {"downscale": "downscale", END: END},
    )
    workflow.add_edge("downscale", "detect")

    # One detection map fans out to the three renderers
    workflow.add_edge("detect", "render_overlay")
    workflow.add_edge("detect", "render_spectral")
    workflow.add_edge("detect", "render_mask")
    workflow.add_edge(["render_overlay", "render_spectral", "render_mask"], "upscale")

    workflow.add_edge("upscale", "encode")
    workflow.add_conditional_edges(
        "encode",
        stop_on_error("summarize"),
        {"summarize": "summarize", END: END},
    )
    workflow.add_edge("summarize", END)

    return workflow.compile()


pipeline = build_graph()


def initial_state(image_bytes: bytes, config: Optional[DetectorConfig] = None) -> CamouflageState:
    return {
        "image_bytes": image_bytes,
        "detector_config": config or DetectorConfig(),
        "source": None,
        "working": None,
        "detection": None,
        "mask": None,
        "overlay": None,
        "spectral": None,
        "mask_image": None,
        "outputs": None,
        "encoded": None,
        "final": None,
        "error": None,
        "error_type": None,
    }


def run_visualization(image_bytes: bytes, config: Optional[DetectorConfig] = None) -> VisualizationResult:
    """
    Run the full pipeline on encoded image bytes.

    Returns the overlay, spectral map and mask as PNG bytes at the input's
    resolution, all derived from one detection pass.

    Raises:
        InvalidInput: the bytes are not a decodable image.
        EncodingError: any of the three outputs failed to encode.
    """
    result = pipeline.invoke(initial_state(image_bytes, config))

    if result.get("error"):
        error_cls = ERRORS.get(result.get("error_type") or "", CamouflageError)
        raise error_cls(result["error"])

    encoded = result["encoded"]
    final = result["final"]
    return VisualizationResult(
        overlay=encoded["overlay"],
        spectral=encoded["spectral"],
        mask=encoded["mask_image"],
        **final,
    )
