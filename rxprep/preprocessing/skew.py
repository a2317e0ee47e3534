"""
Skew angle estimation.

Estimators return the skew of the text lines in degrees, positive for
counter-clockwise. Deskewing rotates by the negated angle.
"""

import logging
from abc import ABC, abstractmethod

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class SkewEstimator(ABC):
    """Estimates the rotation of text content in a grayscale image."""

    def __init__(self, max_angle: float = 5.0):
        self.max_angle = max_angle

    @abstractmethod
    def estimate(self, gray: np.ndarray) -> float:
        """
        Estimate the skew angle.

        Args:
            gray: Grayscale uint8 image.

        Returns:
            Angle in degrees, 0.0 when nothing can be measured.
        """
        pass


class ProjectionProfileSkewEstimator(SkewEstimator):
    """
    Finds the rotation that makes horizontal ink profiles sharpest.

    Dark content is binarized with Otsu, then rotated through candidate
    angles; the angle whose row sums have the highest variance wins.
    Ties resolve to the smallest rotation.
    """

    def __init__(self, max_angle: float = 5.0, step: float = 0.25, max_dimension: int = 800):
        super().__init__(max_angle)
        self.step = step
        self.max_dimension = max_dimension

    def estimate(self, gray: np.ndarray) -> float:
        ink = self._ink_mask(gray)
        if not ink.any():
            return 0.0

        candidates = np.arange(-self.max_angle, self.max_angle + self.step / 2, self.step)
        candidates = sorted(candidates, key=abs)

        best_angle = 0.0
        best_score = -1.0

        height, width = ink.shape
        center = (width / 2, height / 2)

        for angle in candidates:
            matrix = cv2.getRotationMatrix2D(center, float(angle), 1.0)
            rotated = cv2.warpAffine(
                ink,
                matrix,
                (width, height),
                flags=cv2.INTER_NEAREST,
                borderMode=cv2.BORDER_CONSTANT,
                borderValue=0,
            )
            profile = rotated.sum(axis=1, dtype=np.float64)
            score = float(profile.var())

            if score > best_score + 1e-9:
                best_score = score
                best_angle = float(angle)

        # Rotating by best_angle straightens the text, so the skew is its negation
        skew = -best_angle
        logger.debug(f"Projection profile skew estimate: {skew:.2f} degrees")
        return skew

    def _ink_mask(self, gray: np.ndarray) -> np.ndarray:
        """Downscaled binary mask with ink as 1."""
        height, width = gray.shape
        scale = min(1.0, self.max_dimension / max(height, width))
        if scale < 1.0:
            gray = cv2.resize(
                gray,
                (max(1, int(width * scale)), max(1, int(height * scale))),
                interpolation=cv2.INTER_AREA,
            )

        if int(gray.max()) == int(gray.min()):
            return np.zeros(gray.shape, dtype=np.uint8)

        _, mask = cv2.threshold(gray, 0, 1, cv2.THRESH_BINARY_INV + cv2.THRESH_OTSU)
        return mask


class HoughSkewEstimator(SkewEstimator):
    """Median angle of near-horizontal Hough lines."""

    def __init__(self, max_angle: float = 5.0, max_lines: int = 50):
        super().__init__(max_angle)
        self.max_lines = max_lines

    def estimate(self, gray: np.ndarray) -> float:
        edges = cv2.Canny(gray, 50, 150, apertureSize=3)

        lines = cv2.HoughLines(edges, 1, np.pi / 180, threshold=100)

        if lines is None or len(lines) == 0:
            return 0.0

        angles = []
        for line in lines[: self.max_lines]:
            rho, theta = line[0]
            # Image y axis points down, so a counter-clockwise tilt gives theta < 90
            angle = 90 - np.degrees(theta)

            if abs(angle) <= self.max_angle:
                angles.append(angle)

        if not angles:
            return 0.0

        # Median is robust to outliers
        skew = float(np.median(angles))
        logger.debug(f"Hough skew estimate: {skew:.2f} degrees")
        return skew


def create_skew_estimator(kind: str, max_angle: float = 5.0) -> SkewEstimator:
    """Build the estimator named in settings."""
    if kind == "projection":
        return ProjectionProfileSkewEstimator(max_angle=max_angle)
    if kind == "hough":
        return HoughSkewEstimator(max_angle=max_angle)
    raise ValueError(f"Unknown skew estimator: {kind}")
