"""Shared fixtures for the test suite.

Images are generated with Pillow/numpy and written to real files so tests
exercise actual decoding and encoding paths.
"""

import io
from pathlib import Path

import numpy as np
import pytest
from click.testing import CliRunner
from PIL import Image

from rxprep.config import Settings
from rxprep.preprocessing import OpenCVCodec


def make_document(width: int = 1600, height: int = 1200) -> np.ndarray:
    """Light page with dark horizontal text-like bars, as a grayscale array."""
    page = np.full((height, width), 235, dtype=np.uint8)
    margin = width // 16
    for top in range(height // 12, height - height // 12, max(8, height // 30)):
        page[top : top + max(2, height // 200), margin : width - margin] = 30
    return page


def save_array(pixels: np.ndarray, path: Path, image_format: str = "PNG", **options) -> Path:
    Image.fromarray(pixels).save(path, format=image_format, **options)
    return path


def encode(pixels: np.ndarray, image_format: str = "PNG") -> bytes:
    buf = io.BytesIO()
    Image.fromarray(pixels).save(buf, format=image_format)
    return buf.getvalue()


# ── CLI runner ─────────────────────────────────────────────────────────────


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


# ── Settings / codec ───────────────────────────────────────────────────────


@pytest.fixture
def scratch_dir(tmp_path: Path) -> Path:
    return tmp_path / "scratch"


@pytest.fixture
def settings(scratch_dir: Path) -> Settings:
    """Settings with an isolated scratch directory."""
    return Settings(scratch_dir=scratch_dir)


@pytest.fixture
def codec() -> OpenCVCodec:
    return OpenCVCodec()


# ── Image fixtures ─────────────────────────────────────────────────────────


@pytest.fixture
def document_file(tmp_path: Path) -> Path:
    """A 1600×1200 grayscale PNG with straight text-like lines."""
    return save_array(make_document(), tmp_path / "prescription.png")


@pytest.fixture
def small_png(tmp_path: Path) -> Path:
    """A 64×48 RGB PNG with a dark rectangle on white."""
    pixels = np.full((48, 64, 3), 255, dtype=np.uint8)
    pixels[12:36, 16:48] = (20, 20, 20)
    return save_array(pixels, tmp_path / "small.png")


@pytest.fixture
def gif_file(tmp_path: Path) -> Path:
    """A real GIF, which the pipeline does not process natively."""
    path = tmp_path / "scan.gif"
    image = Image.new("RGB", (64, 48), color=(255, 255, 255))
    image.paste((0, 0, 0), (10, 10, 40, 30))
    image.save(path, format="GIF")
    return path


@pytest.fixture
def not_an_image(tmp_path: Path) -> Path:
    path = tmp_path / "notes.png"
    path.write_text("this is not an image", encoding="utf-8")
    return path
