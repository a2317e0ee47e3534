"""
Binarization/thresholding step.
"""

import numpy as np

from ..base import PreprocessingStep

# Fixed mid-range threshold. Otsu or adaptive thresholding would track
# uneven lighting better; OCR behaviour with those has not been evaluated.
THRESHOLD = 128


class BinarizationStep(PreprocessingStep):
    """
    Converts the image to black and white.

    Pixels at or above the threshold become 255, the rest 0. This is
    information-destroying, so it runs last.
    """

    @property
    def name(self) -> str:
        return "binarize"

    def apply(self, pixels: np.ndarray, threshold: int = THRESHOLD) -> np.ndarray:
        """Apply the global threshold."""
        return self.codec.threshold(pixels, threshold)
