from __future__ import annotations

import asyncio
import logging
from typing import Optional

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware

from api.schemas import AnalysisResponse, DetectRequest, DetectResponse
from models.vision import data_url, get_vision_client
from pipeline.config import DetectorConfig, settings
from pipeline.errors import EncodingError, InvalidInput, VisionAnalysisError
from pipeline.graph import run_visualization
from utils.visualize import graph_diagram

logging.basicConfig(level=settings.log_level)
log = logging.getLogger(__name__)

app = FastAPI(
    title="Camouflage Detection Pipeline",
    version="1.0.0",
    description="Local-contrast camouflage detector orchestrated with LangGraph.",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


async def _visualize(image_bytes: bytes, config: Optional[DetectorConfig]) -> DetectResponse:
    if config is None:
        config = DetectorConfig(max_dimension=settings.max_dimension)
    elif "max_dimension" not in config.model_fields_set:
        # An explicit request cap wins; otherwise the service-wide cap applies
        config = config.model_copy(update={"max_dimension": settings.max_dimension})
    try:
        result = await asyncio.wait_for(
            run_in_threadpool(run_visualization, image_bytes, config),
            timeout=settings.pipeline_timeout,
        )
    except InvalidInput as e:
        raise HTTPException(status_code=422, detail=str(e))
    except EncodingError as e:
        log.error("Encoding failed: %s", e)
        raise HTTPException(status_code=500, detail=str(e))
    except asyncio.TimeoutError:
        raise HTTPException(status_code=504, detail="Detection timed out")

    return DetectResponse(
        overlay=data_url(result.overlay),
        spectral=data_url(result.spectral),
        mask=data_url(result.mask),
        width=result.width,
        height=result.height,
        working_width=result.working_width,
        working_height=result.working_height,
        anomalous_pixels=result.anomalous_pixels,
        coverage=result.coverage,
    )


@app.post("/detect", response_model=DetectResponse)
async def detect(request: DetectRequest):
    """
    Run the full pipeline on an existing image path.
    """
    try:
        with open(request.image_path, "rb") as f:
            image_bytes = f.read()
    except OSError as e:
        raise HTTPException(status_code=422, detail=f"Cannot read {request.image_path}: {e}")

    return await _visualize(image_bytes, request.config)


@app.post("/detect/upload", response_model=DetectResponse)
async def detect_upload(file: UploadFile = File(...)):
    """
    Convenience endpoint that accepts an uploaded image file.
    """
    return await _visualize(await file.read(), None)


@app.post("/analyze/upload", response_model=AnalysisResponse, response_model_by_alias=True)
async def analyze_upload(file: UploadFile = File(...)):
    """
    Describe the uploaded image with the hosted vision model.

    Independent of `/detect`: a failure here never affects the rendered images.
    """
    client = get_vision_client()
    if not client.config.vision_api_key:
        raise HTTPException(status_code=503, detail="Vision analysis is not configured")

    image_bytes = await file.read()
    try:
        analysis = await run_in_threadpool(
            client.analyze,
            image_bytes,
            file.content_type or "image/png",
        )
    except VisionAnalysisError as e:
        log.error("Vision analysis failed: %s", e)
        detail = str(e) if e.status_code in (402, 429) else "analysis failed"
        raise HTTPException(status_code=e.status_code, detail=detail)

    return AnalysisResponse(**analysis.model_dump())


@app.get("/graph/ascii")
def graph_ascii():
    """
    Return an ASCII representation of the pipeline graph.
    """
    return {"graph": graph_diagram("ascii")}


@app.get("/graph/mermaid")
def graph_mermaid():
    """
    Return Mermaid source for visualizing the pipeline graph.
    """
    return {"mermaid": graph_diagram("mermaid")}


@app.get("/health")
def health():
    """
    Basic health check.
    """
    return {"status": "ok"}
