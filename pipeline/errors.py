from __future__ import annotations


class CamouflageError(Exception):
    """Base class for failures surfaced by the detection pipeline."""


class InvalidInput(CamouflageError):
    """The input bytes could not be decoded into an image."""


class EncodingError(CamouflageError):
    """An output buffer could not be encoded."""


class VisionAnalysisError(CamouflageError):
    """The remote vision model call failed."""

    status_code = 502


class RateLimited(VisionAnalysisError):
    status_code = 429


class PaymentRequired(VisionAnalysisError):
    status_code = 402


ERRORS = {
    cls.__name__: cls
    for cls in (
        CamouflageError,
        InvalidInput,
        EncodingError,
        VisionAnalysisError,
        RateLimited,
        PaymentRequired,
    )
}
