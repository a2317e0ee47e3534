"""
Sharpening step.
"""

from typing import Optional

import numpy as np

from rxprep.config import PipelineConfig
from rxprep.schemas.quality import QualityAssessment

from ..base import ImageHandle, PreprocessingStep


class SharpenStep(PreprocessingStep):
    """Unsharp mask to crisp up text strokes."""

    @property
    def name(self) -> str:
        return "sharpen"

    def parameters(
        self,
        handle: ImageHandle,
        analysis: Optional[QualityAssessment],
        config: PipelineConfig,
    ) -> dict:
        return {"sigma": config.sharpen_sigma}

    def apply(self, pixels: np.ndarray, sigma: float = 1.0, amount: float = 1.0) -> np.ndarray:
        return self.codec.sharpen(pixels, sigma=sigma, amount=amount)
