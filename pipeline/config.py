"""
Tunable parameters for the detector and renderers, plus service settings.

`DetectorConfig` carries every heuristic constant as a named field so callers
can override any of them per request. `Settings` is read once from the
environment (prefix `CAMO_`) or a `.env` file.
"""

from __future__ import annotations

from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ColorStop(BaseModel):
    model_config = ConfigDict(frozen=True)

    threshold: float = Field(..., ge=0.0, le=1.0)
    rgb: Tuple[int, int, int]

    @field_validator("rgb")
    @classmethod
    def _check_rgb(cls, value):
        if any(c < 0 or c > 255 for c in value):
            raise ValueError("rgb channels must be within 0..255")
        return value


# blue -> cyan -> green -> yellow -> orange -> red
THERMAL_STOPS: Tuple[ColorStop, ...] = (
    ColorStop(threshold=0.0, rgb=(0, 0, 255)),
    ColorStop(threshold=50 / 255, rgb=(0, 100, 255)),
    ColorStop(threshold=100 / 255, rgb=(0, 255, 0)),
    ColorStop(threshold=150 / 255, rgb=(255, 255, 0)),
    ColorStop(threshold=200 / 255, rgb=(255, 155, 0)),
    ColorStop(threshold=1.0, rgb=(255, 0, 0)),
)


def validate_stops(stops) -> None:
    if len(stops) < 2:
        raise ValueError("a color ramp needs at least two stops")
    if stops[0].threshold != 0.0 or stops[-1].threshold != 1.0:
        raise ValueError("color ramp must start at 0.0 and end at 1.0")
    for lo, hi in zip(stops, stops[1:]):
        if hi.threshold <= lo.threshold:
            raise ValueError("color ramp thresholds must be strictly increasing")


class DetectorConfig(BaseModel):
    """
    Parameters of the anomaly detector and the three renderers.

    Defaults reproduce the reference heuristic:
    - 800px working resolution on the long edge
    - surround annulus 8..12px, 7x7 local window
    - pattern band (10, 40) over dx in 1..5, at least 2 hits
    - anomaly band (18, 95)
    - mask closing with dilate 6 / erode 3
    """

    model_config = ConfigDict(frozen=True)

    max_dimension: int = Field(800, gt=0)

    window_radius: int = Field(12, gt=0)
    inner_radius: int = Field(8, gt=0)
    local_radius: int = Field(3, ge=0)

    pattern_span: int = Field(5, gt=0)
    pattern_low: float = 10.0
    pattern_high: float = 40.0
    pattern_min_count: int = Field(2, ge=0)

    anomaly_low: float = 18.0
    anomaly_high: float = 95.0

    dilate_radius: int = Field(6, ge=0)
    erode_radius: int = Field(3, ge=0)

    overlay_scale: float = Field(100.0, gt=0.0)
    overlay_max_blend: float = Field(0.7, ge=0.0, le=1.0)

    spectral_falloff_radius: int = Field(6, ge=0)
    spectral_floor: float = Field(0.05, ge=0.0, le=1.0)
    spectral_dim: float = Field(0.2, ge=0.0, le=1.0)

    color_stops: Tuple[ColorStop, ...] = THERMAL_STOPS

    @model_validator(mode="after")
    def _check_bands(self):
        if self.inner_radius >= self.window_radius:
            raise ValueError("inner_radius must be smaller than window_radius")
        if self.local_radius > self.window_radius:
            raise ValueError("local_radius must not exceed window_radius")
        if self.pattern_span > self.window_radius:
            raise ValueError("pattern_span must not exceed window_radius")
        if self.pattern_low >= self.pattern_high:
            raise ValueError("pattern_low must be below pattern_high")
        if self.anomaly_low >= self.anomaly_high:
            raise ValueError("anomaly_low must be below anomaly_high")
        validate_stops(self.color_stops)
        return self

    @property
    def margin(self) -> int:
        return self.window_radius


class Settings(BaseSettings):
    """Service-level settings loaded from `CAMO_*` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CAMO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    max_dimension: int = 800
    pipeline_timeout: float = 60.0
    log_level: str = "INFO"

    vision_api_url: str = "https://ai.gateway.lovable.dev/v1/chat/completions"
    vision_api_key: Optional[str] = None
    vision_model: str = "google/gemini-2.5-flash"
    vision_timeout: float = 30.0


settings = Settings()
