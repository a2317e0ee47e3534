"""
Image file validation for the format-validation pre-step.

Validation runs in layers:
1. Existence and size checks
2. Magic byte detection (file signature)
3. Pillow verification and format identification

Anything that fails these checks is unusable input and aborts the run.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from PIL import Image

logger = logging.getLogger(__name__)


# Magic byte signatures mapped to format names
MAGIC_BYTES = {
    b"\xff\xd8\xff": "jpeg",
    b"\x89PNG\r\n\x1a\n": "png",
    b"GIF87a": "gif",
    b"GIF89a": "gif",
    b"BM": "bmp",
    b"II*\x00": "tiff",
    b"MM\x00*": "tiff",
    b"RIFF": "webp",  # needs further validation
}


class ValidationError(Exception):
    """Raised when file validation fails."""

    pass


@dataclass(frozen=True)
class ValidatedImage:
    """Facts established about a source image by validation."""

    path: Path
    format: str
    width: int
    height: int
    file_size: int


def detect_format_from_bytes(file_content: bytes) -> Optional[str]:
    """
    Detect an image format from magic bytes.

    Args:
        file_content: First few bytes of the file.

    Returns:
        Lowercase format name, or None if no signature matched.
    """
    for signature, image_format in MAGIC_BYTES.items():
        if file_content.startswith(signature):
            # RIFF is only an image container when tagged WEBP
            if signature == b"RIFF":
                if len(file_content) >= 12 and file_content[8:12] == b"WEBP":
                    return image_format
                continue
            return image_format

    return None


def identify_format(path: Path) -> str:
    """
    Verify an image with Pillow and return its lowercase format name.

    Raises:
        ValidationError: If Pillow cannot identify or verify the file.
    """
    try:
        with Image.open(path) as img:
            image_format = (img.format or "").lower()
            img.verify()
    except Exception as e:
        raise ValidationError(f"File is not a valid image: {e}") from e

    if not image_format:
        raise ValidationError("Image format could not be determined")

    return image_format


def validate_image_file(path: Path, max_size_mb: int = 50) -> ValidatedImage:
    """
    Validate an image file on disk.

    Args:
        path: Path to the image.
        max_size_mb: Maximum file size in MB.

    Returns:
        ValidatedImage with format, dimensions and size.

    Raises:
        ValidationError: If the file fails any validation check.
    """
    path = Path(path)

    # Layer 1: existence and size
    if not path.is_file():
        raise ValidationError(f"File not found: {path}")

    file_size = path.stat().st_size
    if file_size == 0:
        raise ValidationError("File is empty")

    max_size_bytes = max_size_mb * 1024 * 1024
    if file_size > max_size_bytes:
        raise ValidationError(
            f"File too large: {file_size / 1024 / 1024:.1f}MB "
            f"(max {max_size_mb}MB)"
        )

    # Layer 2: magic bytes (advisory, Pillow knows more formats than we list)
    with open(path, "rb") as f:
        header = f.read(32)

    detected = detect_format_from_bytes(header)

    # Layer 3: Pillow verification
    image_format = identify_format(path)

    if detected is not None and detected != image_format:
        logger.debug(f"Signature suggests {detected}, Pillow reports {image_format} for {path.name}")

    with Image.open(path) as img:
        width, height = img.size

    if width == 0 or height == 0:
        raise ValidationError("Image has no pixels")

    logger.debug(
        f"File validated: {path.name} ({image_format}, {width}x{height}, "
        f"{file_size / 1024:.1f}KB)"
    )

    return ValidatedImage(
        path=path,
        format=image_format,
        width=width,
        height=height,
        file_size=file_size,
    )
