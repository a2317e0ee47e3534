"""
Contrast and brightness enhancement step.
"""

from typing import Optional

import numpy as np

from rxprep.config import PipelineConfig
from rxprep.schemas.quality import QualityAssessment

from ..analyzer import LOW_CONTRAST
from ..base import ImageHandle, PreprocessingStep

DEFAULT_BRIGHTNESS = 128.0
DESATURATION = 0.8


def brightness_multiplier(brightness_mean: float) -> float:
    """Brighten dark images, darken bright ones."""
    if brightness_mean < 100:
        return 1.2
    if brightness_mean > 180:
        return 0.8
    return 1.0


def contrast_multiplier(low_contrast: bool) -> float:
    return 1.5 if low_contrast else 1.2


class ContrastEnhancementStep(PreprocessingStep):
    """
    Stretches, re-lights and contrast-boosts the image.

    1. Low-contrast images are normalized to the full 0-255 range
    2. Brightness is scaled and colour slightly desaturated
    3. Contrast is applied around mid-gray: out = in * m + (128 - 128 * m)

    Multipliers come from the current image statistics unless the pipeline
    config fixes them.
    """

    adaptive = True

    @property
    def name(self) -> str:
        return "contrast"

    def parameters(
        self,
        handle: ImageHandle,
        analysis: Optional[QualityAssessment],
        config: PipelineConfig,
    ) -> dict:
        metrics = analysis.metrics if analysis is not None else None

        if metrics is not None:
            low_contrast = metrics.contrast_std_dev < LOW_CONTRAST
            brightness = metrics.brightness_mean
        else:
            low_contrast = False
            brightness = DEFAULT_BRIGHTNESS

        brightness_adjust = config.brightness_multiplier or brightness_multiplier(brightness)
        contrast_adjust = config.contrast_multiplier or contrast_multiplier(low_contrast)

        return {
            "normalize": low_contrast,
            "brightness": brightness_adjust,
            "contrast": contrast_adjust,
            "saturation": DESATURATION,
        }

    def apply(
        self,
        pixels: np.ndarray,
        normalize: bool = False,
        brightness: float = 1.0,
        contrast: float = 1.2,
        saturation: float = DESATURATION,
    ) -> np.ndarray:
        """Apply normalization, modulation and the linear contrast transform."""
        result = pixels

        if normalize:
            result = self.codec.normalize(result)

        result = self.codec.modulate(result, brightness=brightness, saturation=saturation)
        return self.codec.linear(result, contrast, 128 - 128 * contrast)
