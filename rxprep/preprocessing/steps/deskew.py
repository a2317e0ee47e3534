"""
Deskew/rotation correction step.
"""

from typing import Optional

import numpy as np

from rxprep.config import PipelineConfig
from rxprep.schemas.quality import QualityAssessment

from ..base import ImageHandle, PreprocessingStep
from ..codec import ImageCodec
from ..skew import ProjectionProfileSkewEstimator, SkewEstimator

# Below this angle (degrees) the image is left as is
MIN_CORRECTION_ANGLE = 0.5


class DeskewStep(PreprocessingStep):
    """
    Corrects image skew/rotation.

    The angle comes from a pluggable estimator. Images are rotated back by
    the negated angle on an expanded white canvas.
    """

    def __init__(self, codec: ImageCodec, estimator: Optional[SkewEstimator] = None):
        """Initialize with a codec and skew estimator."""
        super().__init__(codec)
        self.estimator = estimator or ProjectionProfileSkewEstimator()

    @property
    def name(self) -> str:
        return "deskew"

    def parameters(
        self,
        handle: ImageHandle,
        analysis: Optional[QualityAssessment],
        config: PipelineConfig,
    ) -> dict:
        gray = self.codec.to_grayscale(handle.pixels)
        return {"angle": float(self.estimator.estimate(gray))}

    def apply(self, pixels: np.ndarray, angle: float = 0.0) -> np.ndarray:
        """Rotate by -angle if the skew is significant."""
        if abs(angle) <= MIN_CORRECTION_ANGLE:
            return pixels

        return self.codec.rotate(pixels, -angle, background=255)
