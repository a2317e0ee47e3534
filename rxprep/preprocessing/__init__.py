"""
Image preprocessing for prescription OCR.

Provides a fixed-order, quality-adaptive preprocessing pipeline and a
multi-variant search over enhancement presets.
"""

from .analyzer import ImageQualityAnalyzer
from .artifacts import TempArtifactManager
from .base import ImageHandle, PreprocessingStep, StepResult
from .codec import ImageCodec, OpenCVCodec
from .exceptions import FormatConversionError, InvalidImageError, PreprocessingError
from .pipeline import STAGE_ORDER, PreprocessingPipeline, create_pipeline
from .variants import (
    ENHANCEMENT_PRESETS,
    EnhancementPreset,
    EnhancementVariant,
    VariantSearchEngine,
    VariantSearchResult,
)

__all__ = [
    "ENHANCEMENT_PRESETS",
    "EnhancementPreset",
    "EnhancementVariant",
    "FormatConversionError",
    "ImageCodec",
    "ImageHandle",
    "ImageQualityAnalyzer",
    "InvalidImageError",
    "OpenCVCodec",
    "PreprocessingError",
    "PreprocessingPipeline",
    "PreprocessingStep",
    "STAGE_ORDER",
    "StepResult",
    "TempArtifactManager",
    "VariantSearchEngine",
    "VariantSearchResult",
    "create_pipeline",
]
