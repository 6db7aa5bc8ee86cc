from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from pipeline.config import DetectorConfig


class DetectRequest(BaseModel):
    image_path: str
    config: Optional[DetectorConfig] = None


class DetectResponse(BaseModel):
    overlay: str
    spectral: str
    mask: str
    width: int
    height: int
    working_width: int
    working_height: int
    anomalous_pixels: int
    coverage: float


class AnalysisResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    object_type: str = Field(..., alias="objectType")
    species: str
    confidence: float
    description: str
    camouflage_analysis: str = Field(..., alias="camouflageAnalysis")
    location: str
