"""Utility modules for rxprep."""

from rxprep.utils.file_validation import (
    ValidatedImage,
    ValidationError,
    detect_format_from_bytes,
    validate_image_file,
)

__all__ = [
    "ValidatedImage",
    "ValidationError",
    "detect_format_from_bytes",
    "validate_image_file",
]
