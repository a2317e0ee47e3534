"""
Individual preprocessing stages.
"""

from .resize import ResizeStep
from .noise_removal import NoiseRemovalStep
from .contrast import ContrastEnhancementStep
from .deskew import DeskewStep
from .sharpen import SharpenStep
from .binarization import BinarizationStep

__all__ = [
    "ResizeStep",
    "NoiseRemovalStep",
    "ContrastEnhancementStep",
    "DeskewStep",
    "SharpenStep",
    "BinarizationStep",
]
