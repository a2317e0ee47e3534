"""
Noise removal step.
"""

from typing import Optional

import numpy as np

from rxprep.config import PipelineConfig
from rxprep.schemas.quality import QualityAssessment

from ..analyzer import FALLBACK_SCORE
from ..base import ImageHandle, PreprocessingStep

LOW_QUALITY_SCORE = 0.5


def denoise_strength(score: float) -> int:
    """Median window size: 3 for low-quality images, 1 otherwise."""
    return 3 if score < LOW_QUALITY_SCORE else 1


class NoiseRemovalStep(PreprocessingStep):
    """
    Removes noise with a median filter.

    The window size adapts to the current quality score so that
    good images are left alone and poor ones get real filtering.
    """

    adaptive = True

    @property
    def name(self) -> str:
        return "denoise"

    def parameters(
        self,
        handle: ImageHandle,
        analysis: Optional[QualityAssessment],
        config: PipelineConfig,
    ) -> dict:
        score = analysis.score if analysis is not None else FALLBACK_SCORE
        return {"size": denoise_strength(score)}

    def apply(self, pixels: np.ndarray, size: int = 1) -> np.ndarray:
        """Apply the median filter."""
        return self.codec.median(pixels, size)
