"""
Resize step.
"""

from typing import Optional

import numpy as np

from rxprep.config import PipelineConfig
from rxprep.schemas.quality import QualityAssessment

from ..base import ImageHandle, PreprocessingStep


def fit_inside(width: int, height: int, target_width: int) -> tuple[int, int]:
    """
    Dimensions that fit inside target_width without enlarging.

    Returns the original dimensions when the image is already narrow enough.
    """
    if width <= target_width:
        return width, height

    scale = target_width / width
    new_height = max(1, int(round(height * scale)))
    return target_width, new_height


class ResizeStep(PreprocessingStep):
    """
    Downscales wide images to the configured target width.

    Aspect ratio is preserved and images are never enlarged, since
    upscaling adds no detail for OCR.
    """

    @property
    def name(self) -> str:
        return "resize"

    def parameters(
        self,
        handle: ImageHandle,
        analysis: Optional[QualityAssessment],
        config: PipelineConfig,
    ) -> dict:
        return {"target_width": config.target_width}

    def apply(self, pixels: np.ndarray, target_width: int = 1200) -> np.ndarray:
        """Scale to fit inside target_width."""
        height, width = pixels.shape[:2]
        new_width, new_height = fit_inside(width, height, target_width)

        if (new_width, new_height) == (width, height):
            return pixels

        return self.codec.resize(pixels, new_width, new_height)
