"""
Raster codec abstraction.

Stages and the pipeline talk to an ImageCodec instead of calling a raster
library directly, so the library underneath can be swapped.
"""

import io
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Union

import cv2
import numpy as np
from PIL import Image


# Pillow save format names keyed by our lowercase format names
PIL_FORMATS = {
    "jpg": "JPEG",
    "jpeg": "JPEG",
    "png": "PNG",
    "webp": "WEBP",
    "tiff": "TIFF",
    "bmp": "BMP",
}

# Canonical file extension per format
EXTENSIONS = {
    "jpg": ".jpg",
    "jpeg": ".jpg",
    "png": ".png",
    "webp": ".webp",
    "tiff": ".tiff",
    "bmp": ".bmp",
}


# Formats whose encoder discards detail; stage outputs are not written in them
LOSSY_FORMATS = ("jpg", "jpeg")

# Pillow modes with more than 8 bits per sample
HIGH_DEPTH_MODES = ("I", "I;16", "I;16L", "I;16B", "I;16N", "F")


@dataclass(frozen=True)
class DecodedImage:
    """Pixels plus the container format they were decoded from."""

    pixels: np.ndarray
    format: str


class ImageCodec(ABC):
    """
    Capability interface for decoding, encoding and transforming rasters.

    Pixels are uint8 numpy arrays, either (H, W) grayscale or (H, W, 3) RGB.
    Transform methods never modify their input.
    """

    @abstractmethod
    def read(self, path: Path) -> DecodedImage:
        """Decode an image file."""
        pass

    @abstractmethod
    def decode(self, data: bytes) -> DecodedImage:
        """Decode an in-memory image."""
        pass

    @abstractmethod
    def write(self, pixels: np.ndarray, path: Path, image_format: str) -> int:
        """Encode pixels to a file. Returns the written size in bytes."""
        pass

    @abstractmethod
    def convert(self, source: Path, destination: Path, image_format: str) -> None:
        """Re-encode a file in another format."""
        pass

    @abstractmethod
    def to_grayscale(self, pixels: np.ndarray) -> np.ndarray:
        pass

    @abstractmethod
    def resize(self, pixels: np.ndarray, width: int, height: int) -> np.ndarray:
        pass

    @abstractmethod
    def median(self, pixels: np.ndarray, size: int) -> np.ndarray:
        pass

    @abstractmethod
    def normalize(self, pixels: np.ndarray) -> np.ndarray:
        """Stretch intensities to the full 0-255 range."""
        pass

    @abstractmethod
    def modulate(self, pixels: np.ndarray, brightness: float, saturation: float) -> np.ndarray:
        pass

    @abstractmethod
    def linear(self, pixels: np.ndarray, multiplier: float, offset: float) -> np.ndarray:
        pass

    @abstractmethod
    def rotate(self, pixels: np.ndarray, angle: float, background: int = 255) -> np.ndarray:
        """Rotate counter-clockwise by angle degrees on an expanded canvas."""
        pass

    @abstractmethod
    def sharpen(self, pixels: np.ndarray, sigma: float, amount: float = 1.0) -> np.ndarray:
        pass

    @abstractmethod
    def threshold(self, pixels: np.ndarray, value: int = 128) -> np.ndarray:
        pass


class OpenCVCodec(ImageCodec):
    """ImageCodec backed by Pillow for file I/O and OpenCV/numpy for transforms."""

    def __init__(self, jpeg_quality: int = 95):
        self.jpeg_quality = jpeg_quality

    def read(self, path: Path) -> DecodedImage:
        with Image.open(path) as img:
            return self._from_pil(img)

    def decode(self, data: bytes) -> DecodedImage:
        with Image.open(io.BytesIO(data)) as img:
            return self._from_pil(img)

    def write(self, pixels: np.ndarray, path: Path, image_format: str) -> int:
        path = Path(path)
        pil_format = PIL_FORMATS.get(image_format.lower())
        if pil_format is None:
            raise ValueError(f"Cannot encode format: {image_format}")

        image = Image.fromarray(pixels)
        image.save(path, format=pil_format, **self._save_options(pil_format))
        return path.stat().st_size

    def convert(self, source: Path, destination: Path, image_format: str) -> None:
        decoded = self.read(source)
        self.write(decoded.pixels, destination, image_format)

    def to_grayscale(self, pixels: np.ndarray) -> np.ndarray:
        if len(pixels.shape) == 2:
            return pixels
        return cv2.cvtColor(pixels, cv2.COLOR_RGB2GRAY)

    def resize(self, pixels: np.ndarray, width: int, height: int) -> np.ndarray:
        current_height, current_width = pixels.shape[:2]
        interpolation = cv2.INTER_AREA if width < current_width else cv2.INTER_CUBIC
        return cv2.resize(pixels, (width, height), interpolation=interpolation)

    def median(self, pixels: np.ndarray, size: int) -> np.ndarray:
        # A window of one pixel is the identity
        if size <= 1:
            return pixels
        if size % 2 == 0:
            size += 1
        return cv2.medianBlur(pixels, size)

    def normalize(self, pixels: np.ndarray) -> np.ndarray:
        low = float(pixels.min())
        high = float(pixels.max())
        if high <= low:
            return pixels.copy()

        stretched = (pixels.astype(np.float32) - low) * (255.0 / (high - low))
        return np.clip(np.rint(stretched), 0, 255).astype(np.uint8)

    def modulate(self, pixels: np.ndarray, brightness: float, saturation: float) -> np.ndarray:
        data = pixels.astype(np.float32) * brightness

        if len(pixels.shape) == 3 and saturation != 1.0:
            gray = data @ np.array([0.299, 0.587, 0.114], dtype=np.float32)
            gray = gray[..., np.newaxis]
            data = gray + (data - gray) * saturation

        return np.clip(np.rint(data), 0, 255).astype(np.uint8)

    def linear(self, pixels: np.ndarray, multiplier: float, offset: float) -> np.ndarray:
        data = pixels.astype(np.float32) * multiplier + offset
        return np.clip(np.rint(data), 0, 255).astype(np.uint8)

    def rotate(self, pixels: np.ndarray, angle: float, background: int = 255) -> np.ndarray:
        height, width = pixels.shape[:2]
        center = (width / 2, height / 2)

        rotation_matrix = cv2.getRotationMatrix2D(center, angle, 1.0)

        # Grow the canvas so no content is cropped
        cos_angle = abs(rotation_matrix[0, 0])
        sin_angle = abs(rotation_matrix[0, 1])

        new_width = int(round(height * sin_angle + width * cos_angle))
        new_height = int(round(height * cos_angle + width * sin_angle))

        rotation_matrix[0, 2] += (new_width - width) / 2
        rotation_matrix[1, 2] += (new_height - height) / 2

        if len(pixels.shape) == 3:
            border_color = (background, background, background)
        else:
            border_color = background

        return cv2.warpAffine(
            pixels,
            rotation_matrix,
            (new_width, new_height),
            flags=cv2.INTER_CUBIC,
            borderMode=cv2.BORDER_CONSTANT,
            borderValue=border_color,
        )

    def sharpen(self, pixels: np.ndarray, sigma: float, amount: float = 1.0) -> np.ndarray:
        blurred = cv2.GaussianBlur(pixels, (0, 0), sigmaX=sigma, sigmaY=sigma)
        return cv2.addWeighted(pixels, 1.0 + amount, blurred, -amount, 0)

    def threshold(self, pixels: np.ndarray, value: int = 128) -> np.ndarray:
        gray = self.to_grayscale(pixels)
        return np.where(gray >= value, 255, 0).astype(np.uint8)

    def _from_pil(self, img: Image.Image) -> DecodedImage:
        image_format = (img.format or "").lower()

        if img.mode in HIGH_DEPTH_MODES:
            return DecodedImage(pixels=self._to_8bit(img), format=image_format)

        if img.mode == "P" and "transparency" in img.info:
            img = img.convert("RGBA")
        if img.mode in ("RGBA", "LA", "PA"):
            img = self._flatten(img)
        elif img.mode not in ("RGB", "L"):
            img = img.convert("RGB")

        return DecodedImage(pixels=np.array(img), format=image_format)

    def _to_8bit(self, img: Image.Image) -> np.ndarray:
        """Scale 16/32-bit integer and float rasters down to uint8 grayscale."""
        data = np.array(img)

        if img.mode == "F":
            stretched = cv2.normalize(data, None, 0, 255, cv2.NORM_MINMAX)
            return np.clip(np.rint(stretched), 0, 255).astype(np.uint8)

        # Integer modes carry 16-bit samples
        data = np.clip(data.astype(np.int64), 0, 65535)
        return (data >> 8).astype(np.uint8)

    def _flatten(self, img: Image.Image) -> Image.Image:
        """Composite transparent pixels onto white paper."""
        grayscale = img.mode == "LA"
        background = Image.new("RGBA", img.size, (255, 255, 255, 255))
        flattened = Image.alpha_composite(background, img.convert("RGBA"))
        return flattened.convert("L" if grayscale else "RGB")

    def _save_options(self, pil_format: str) -> dict:
        if pil_format == "JPEG":
            return {"quality": self.jpeg_quality}
        if pil_format == "WEBP":
            return {"lossless": True}
        return {}


def load_pixels(codec: ImageCodec, source: Union[Path, str, bytes]) -> DecodedImage:
    """Decode a path or byte buffer with the given codec."""
    if isinstance(source, (bytes, bytearray)):
        return codec.decode(bytes(source))
    return codec.read(Path(source))
