from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Recommendation(str, Enum):
    """Processing recommendation derived from quality metrics."""

    AGGRESSIVE_ENHANCEMENT = "aggressive_enhancement"
    INCREASE_CONTRAST = "increase_contrast"
    ADJUST_BRIGHTNESS = "adjust_brightness"
    APPLY_SHARPENING = "apply_sharpening"
    MINIMAL_PROCESSING = "minimal_processing"
    MANUAL_REVIEW = "manual_review"


class QualityMetrics(BaseModel):
    """Statistical measurements of one image snapshot."""

    model_config = ConfigDict(frozen=True)

    width: int
    height: int
    resolution_pixels: int
    aspect_ratio: float
    format: str | None = None
    file_size_bytes: int | None = None
    brightness_mean: float
    contrast_std_dev: float
    sharpness_score: float
    histogram: list[int] = Field(default_factory=list)


class QualityAssessment(BaseModel):
    """Quality score and recommendations for an image."""

    model_config = ConfigDict(frozen=True)

    score: float = Field(ge=0.0, le=1.0)
    recommendations: list[Recommendation]
    metrics: QualityMetrics | None = None
    error: str | None = None

    @property
    def is_fallback(self) -> bool:
        """Whether analysis failed and this is the fallback result."""
        return self.metrics is None
