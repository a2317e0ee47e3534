from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class PipelineConfig(BaseModel):
    """Options for a single preprocessing run."""

    resize: bool = Field(default=True, description="Enable the resize stage")
    denoise: bool = Field(default=True, description="Enable the denoise stage")
    contrast: bool = Field(default=True, description="Enable the contrast enhancement stage")
    deskew: bool = Field(default=True, description="Enable the deskew stage")
    sharpen: bool = Field(default=True, description="Enable the sharpen stage")
    binarize: bool = Field(default=False, description="Enable the binarize stage")

    target_width: int = Field(default=1200, gt=0, description="Resize target width in pixels")
    quality_threshold: float = Field(
        default=0.7, ge=0.0, le=1.0, description="Below this score, aggressive enhancement is warranted"
    )

    # Preset overrides used by variant search. None = adaptive.
    contrast_multiplier: Optional[float] = Field(default=None, gt=0, description="Fixed contrast multiplier")
    brightness_multiplier: Optional[float] = Field(default=None, gt=0, description="Fixed brightness multiplier")
    sharpen_sigma: float = Field(default=1.0, gt=0, description="Gaussian sigma of the unsharp mask")


class Settings(BaseSettings):
    """Process-wide settings loaded from environment variables."""

    debug: bool = False

    # Scratch area for intermediate artifacts
    scratch_dir: Path = Path("./temp")
    keep_intermediates: bool = False
    sweep_max_age_hours: float = 24.0

    # Formats processed without conversion
    supported_formats: list[str] = ["jpg", "jpeg", "png", "webp", "tiff", "bmp"]
    canonical_format: str = "png"
    max_file_size_mb: int = 50
    jpeg_quality: int = Field(default=95, ge=1, le=100)

    # Deskew
    skew_estimator: Literal["projection", "hough"] = "projection"
    max_skew_angle: float = Field(default=5.0, gt=0, le=45.0)

    # Defaults for runs that don't pass their own config
    pipeline: PipelineConfig = PipelineConfig()

    def is_supported_format(self, image_format: Optional[str]) -> bool:
        """Check whether a format can be processed without conversion."""
        if not image_format:
            return False
        return image_format.lower() in self.supported_formats

    class Config:
        env_prefix = "RXPREP_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_nested_delimiter = "__"


@lru_cache
def get_settings() -> Settings:
    """Build the settings once per process."""
    return Settings()
