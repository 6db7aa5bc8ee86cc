"""
Client for the hosted multimodal model that describes the scene.

This sits outside the pixel pipeline: its failures are reported to the
caller and never affect the three rendered images.
"""

from __future__ import annotations

import base64
import json
import logging
import re
from typing import Optional

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from pipeline.config import Settings, settings
from pipeline.errors import PaymentRequired, RateLimited, VisionAnalysisError

log = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert wildlife biologist specializing in animal identification "
    "and camouflage analysis. Analyze images to detect and identify any animals present."
)

USER_PROMPT = (
    "Carefully analyze this image and detect if there are any animals present. "
    "If you find an animal: 1) Identify the species with confidence level, "
    "2) Describe its physical appearance (colors, patterns, size, posture), "
    "3) Explain how it blends with the environment or stands out, "
    "4) Describe its location and visibility in the image. "
    "If no animal is found, state that clearly. "
    "Format your response as JSON with: objectType (string - 'Animal', "
    "'No animal detected', etc), species (string), confidence (number 0-100), "
    "description (string - detailed physical description), camouflageAnalysis "
    "(string - how it blends or visibility), location (string - where in the image)."
)

MASK_PROMPT = (
    "The second image is a binary detection mask: white regions were flagged "
    "by a local-contrast camouflage detector."
)

_FENCED = re.compile(r"```(?:json)?\s*\n?([\s\S]*?)\n?```")
_BRACED = re.compile(r"\{[\s\S]*\}")


class VisionAnalysis(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    object_type: str = Field("Unknown", alias="objectType")
    species: str = ""
    confidence: float = 50.0
    description: str = ""
    camouflage_analysis: str = Field("", alias="camouflageAnalysis")
    location: str = "Unknown"

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value):
        try:
            value = float(value)
        except (TypeError, ValueError):
            return 50.0
        return min(100.0, max(0.0, value))

    @field_validator("object_type", "species", "description", "camouflage_analysis", "location", mode="before")
    @classmethod
    def _stringify(cls, value):
        return "" if value is None else str(value)


def parse_analysis(text: str) -> VisionAnalysis:
    """
    Extract the JSON record from a model reply.

    Tries a fenced ```json block, then the outermost {...}, then the raw text.
    Anything unparseable becomes a fallback record carrying the reply as its
    description.
    """
    fenced = _FENCED.search(text)
    if fenced:
        candidate = fenced.group(1)
    else:
        braced = _BRACED.search(text)
        candidate = braced.group(0) if braced else text

    try:
        data = json.loads(candidate)
        if not isinstance(data, dict):
            raise ValueError("reply is not a JSON object")
        return VisionAnalysis.model_validate(data)
    except (ValueError, ValidationError) as e:
        log.warning("[VISION] unparseable reply (%s), using fallback", e)
        return VisionAnalysis(
            object_type="Unknown",
            species="",
            confidence=50,
            description=text,
            camouflage_analysis="Unable to parse detailed analysis.",
            location="Unknown",
        )


def data_url(image_bytes: bytes, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(image_bytes).decode('ascii')}"


class VisionClient:
    def __init__(self, config: Optional[Settings] = None, session: Optional[requests.Session] = None):
        self.config = config or settings
        self.session = session or requests.Session()

    def build_payload(self, image_bytes: bytes, mime_type: str, mask_bytes: Optional[bytes] = None) -> dict:
        content = [
            {"type": "text", "text": USER_PROMPT},
            {"type": "image_url", "image_url": {"url": data_url(image_bytes, mime_type)}},
        ]
        if mask_bytes:
            content.append({"type": "text", "text": MASK_PROMPT})
            content.append({"type": "image_url", "image_url": {"url": data_url(mask_bytes, "image/png")}})

        return {
            "model": self.config.vision_model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": content},
            ],
        }

    def analyze(
        self,
        image_bytes: bytes,
        mime_type: str = "image/png",
        mask_bytes: Optional[bytes] = None,
    ) -> VisionAnalysis:
        """
        Ask the remote model to describe the image.

        Raises:
            RateLimited: HTTP 429.
            PaymentRequired: HTTP 402.
            VisionAnalysisError: missing key, transport failure or any other
                non-2xx response.
        """
        if not self.config.vision_api_key:
            raise VisionAnalysisError("vision API key is not configured")

        payload = self.build_payload(image_bytes, mime_type, mask_bytes)
        headers = {
            "Authorization": f"Bearer {self.config.vision_api_key}",
            "Content-Type": "application/json",
        }

        log.info("[VISION] model=%s mask=%s", self.config.vision_model, mask_bytes is not None)
        try:
            r = self.session.post(
                self.config.vision_api_url,
                json=payload,
                headers=headers,
                timeout=self.config.vision_timeout,
            )
        except requests.RequestException as e:
            raise VisionAnalysisError(f"vision request failed: {e}") from e

        if r.status_code == 429:
            raise RateLimited("Rate limit exceeded. Please try again later.")
        if r.status_code == 402:
            raise PaymentRequired("Payment required. Please add credits to your workspace.")
        if not r.ok:
            log.error("[VISION] gateway error %s: %s", r.status_code, r.text[:500])
            raise VisionAnalysisError(f"AI gateway error: {r.status_code}")

        try:
            body = r.json()
        except ValueError as e:
            raise VisionAnalysisError("vision gateway returned non-JSON body") from e

        choices = body.get("choices") or [{}]
        text = (choices[0].get("message") or {}).get("content") or ""
        return parse_analysis(text)


_client: Optional[VisionClient] = None


def get_vision_client() -> VisionClient:
    """Returns a singleton client configured from `settings`."""
    global _client

    if _client is None:
        _client = VisionClient()

    return _client
