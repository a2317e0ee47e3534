"""
Image quality analyzer for OCR readiness.
"""

import logging
from pathlib import Path
from typing import Optional, Union

import numpy as np

from rxprep.schemas.quality import QualityAssessment, QualityMetrics, Recommendation

from .base import ImageHandle
from .codec import ImageCodec, OpenCVCodec, load_pixels

logger = logging.getLogger(__name__)

# Score returned when analysis fails
FALLBACK_SCORE = 0.5

BASE_SCORE = 0.5
PREFERRED_FORMATS = ("jpeg", "png")

LOW_CONTRAST = 30.0
DARK_BRIGHTNESS = 50.0
BRIGHT_BRIGHTNESS = 200.0
LOW_SHARPNESS = 20.0

ImageSource = Union[ImageHandle, Path, str, bytes]


class ImageQualityAnalyzer:
    """
    Scores how ready an image is for OCR.

    Measures:
    - Resolution and aspect ratio
    - Brightness (histogram mean)
    - Contrast (histogram standard deviation)
    - Sharpness (mean absolute discrete Laplacian)

    Analysis never raises. Anything that goes wrong yields a fallback
    assessment recommending manual review.
    """

    def __init__(self, codec: Optional[ImageCodec] = None):
        """Initialize the analyzer."""
        self.codec = codec or OpenCVCodec()

    def analyze(self, image: ImageSource) -> QualityAssessment:
        """
        Perform quality analysis.

        Args:
            image: ImageHandle, path or encoded bytes.

        Returns:
            QualityAssessment with score, recommendations and metrics.
        """
        try:
            metrics = self.measure(image)
        except Exception as e:
            logger.error(f"Quality analysis failed: {e}")
            return fallback_assessment(str(e))

        score = score_metrics(metrics)
        recommendations = recommend(score, metrics)

        logger.debug(
            f"Quality score {score:.2f} "
            f"(brightness={metrics.brightness_mean:.1f}, "
            f"contrast={metrics.contrast_std_dev:.1f}, "
            f"sharpness={metrics.sharpness_score:.1f})"
        )

        return QualityAssessment(
            score=score,
            recommendations=recommendations,
            metrics=metrics,
        )

    def measure(self, image: ImageSource) -> QualityMetrics:
        """
        Compute quality metrics.

        Raises whatever decoding raises; ``analyze`` is the safe entry point.
        """
        pixels, image_format, file_size = self._resolve(image)

        height, width = pixels.shape[:2]
        if width == 0 or height == 0:
            raise ValueError("Image has no pixels")

        gray = self.codec.to_grayscale(pixels)
        histogram = np.bincount(gray.ravel(), minlength=256)

        brightness, contrast = histogram_statistics(histogram)
        sharpness = laplacian_sharpness(gray)

        return QualityMetrics(
            width=width,
            height=height,
            resolution_pixels=width * height,
            aspect_ratio=width / height,
            format=image_format,
            file_size_bytes=file_size,
            brightness_mean=brightness,
            contrast_std_dev=contrast,
            sharpness_score=sharpness,
            histogram=[int(count) for count in histogram],
        )

    def _resolve(self, image: ImageSource) -> tuple[np.ndarray, Optional[str], Optional[int]]:
        """Get pixels, format and file size for any accepted input."""
        if isinstance(image, ImageHandle):
            return image.pixels, image.format, image.file_size

        if isinstance(image, (bytes, bytearray)):
            decoded = load_pixels(self.codec, image)
            return decoded.pixels, decoded.format, len(image)

        path = Path(image)
        decoded = load_pixels(self.codec, path)
        return decoded.pixels, decoded.format, path.stat().st_size


def histogram_statistics(histogram: np.ndarray) -> tuple[float, float]:
    """
    Histogram-weighted mean and standard deviation.

    Returns:
        (brightness_mean, contrast_std_dev)
    """
    total = histogram.sum()
    if total == 0:
        raise ValueError("Empty histogram")

    values = np.arange(histogram.size, dtype=np.float64)
    mean = float((histogram * values).sum() / total)
    variance = float((histogram * (values - mean) ** 2).sum() / total)
    return mean, float(np.sqrt(variance))


def laplacian_sharpness(gray: np.ndarray) -> float:
    """
    Mean absolute discrete Laplacian over interior pixels.

    Uses the 4-neighbour kernel ``4*center - left - right - top - bottom``.
    The one-pixel border is excluded; images smaller than 3x3 score 0.
    """
    if gray.shape[0] < 3 or gray.shape[1] < 3:
        return 0.0

    g = gray.astype(np.int32)
    center = g[1:-1, 1:-1]
    laplacian = (
        4 * center
        - g[1:-1, :-2]
        - g[1:-1, 2:]
        - g[:-2, 1:-1]
        - g[2:, 1:-1]
    )
    return float(np.abs(laplacian).mean())


def score_metrics(metrics: QualityMetrics) -> float:
    """
    Deterministic quality score in [0, 1].

    Additive weights: base 0.5, resolution bonuses for >1MP and >2MP,
    document-like aspect ratio, preferred format, contrast and sharpness
    each capped at 0.1.
    """
    score = BASE_SCORE

    if metrics.resolution_pixels > 1_000_000:
        score += 0.2
    if metrics.resolution_pixels > 2_000_000:
        score += 0.1

    if 0.7 < metrics.aspect_ratio < 1.5:
        score += 0.1

    if metrics.format in PREFERRED_FORMATS:
        score += 0.1

    score += min(metrics.contrast_std_dev / 100, 0.1)
    score += min(metrics.sharpness_score / 50, 0.1)

    return max(0.0, min(score, 1.0))


def recommend(score: float, metrics: QualityMetrics) -> list[Recommendation]:
    """Every recommendation that applies, or minimal processing if none do."""
    recommendations = []

    if score < 0.5:
        recommendations.append(Recommendation.AGGRESSIVE_ENHANCEMENT)

    if metrics.contrast_std_dev < LOW_CONTRAST:
        recommendations.append(Recommendation.INCREASE_CONTRAST)

    if metrics.brightness_mean < DARK_BRIGHTNESS or metrics.brightness_mean > BRIGHT_BRIGHTNESS:
        recommendations.append(Recommendation.ADJUST_BRIGHTNESS)

    if metrics.sharpness_score < LOW_SHARPNESS:
        recommendations.append(Recommendation.APPLY_SHARPENING)

    if not recommendations:
        recommendations.append(Recommendation.MINIMAL_PROCESSING)

    return recommendations


def fallback_assessment(error: Optional[str] = None) -> QualityAssessment:
    """Assessment returned when an image could not be analyzed."""
    return QualityAssessment(
        score=FALLBACK_SCORE,
        recommendations=[Recommendation.MANUAL_REVIEW],
        metrics=None,
        error=error,
    )
