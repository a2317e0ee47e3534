"""
Base classes for image preprocessing.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import numpy as np

from rxprep.config import PipelineConfig
from rxprep.schemas.quality import QualityAssessment

from .codec import ImageCodec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageHandle:
    """
    Decoded raster data handed between stages.

    Handles are immutable: the pixel array is exposed read-only and every
    stage produces a new handle instead of modifying its input.
    """

    pixels: np.ndarray
    """Pixels as uint8, (H, W) grayscale or (H, W, 3) RGB."""

    format: str
    """Container format (jpg, jpeg, png, webp, tiff, bmp)."""

    path: Optional[Path] = None
    """File holding these pixels, if any."""

    file_size: Optional[int] = None
    """Size of that file in bytes."""

    def __post_init__(self):
        if self.pixels.flags.writeable:
            view = self.pixels.view()
            view.flags.writeable = False
            object.__setattr__(self, "pixels", view)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def ref(self) -> Optional[str]:
        """String form of the backing path."""
        return str(self.path) if self.path is not None else None


@dataclass(frozen=True)
class StepResult:
    """Result of running one preprocessing stage."""

    handle: ImageHandle
    """Output handle. The unmodified input when the stage failed."""

    label: str
    """Name of the stage."""

    succeeded: bool
    """Whether the stage executed without error."""

    parameters: dict = field(default_factory=dict)
    """Parameters the stage resolved for this image."""

    error: Optional[str] = None
    """Failure message when succeeded is False."""


class PreprocessingStep(ABC):
    """
    Abstract base class for preprocessing stages.

    Subclasses implement a pure ``apply`` over pixel arrays and may resolve
    per-image parameters in ``parameters``. ``process`` wraps both in an
    error boundary so a failing stage never aborts the pipeline.
    """

    adaptive: bool = False
    """Whether the stage needs a fresh quality analysis of its input."""

    def __init__(self, codec: ImageCodec):
        """Initialize the step with the codec it transforms through."""
        self.codec = codec

    @property
    @abstractmethod
    def name(self) -> str:
        """Name of this preprocessing stage."""
        pass

    def parameters(
        self,
        handle: ImageHandle,
        analysis: Optional[QualityAssessment],
        config: PipelineConfig,
    ) -> dict:
        """
        Resolve the parameters for this image.

        Args:
            handle: Current image.
            analysis: Quality analysis of the current image (adaptive stages only).
            config: Pipeline configuration.

        Returns:
            Keyword arguments for ``apply``.
        """
        return {}

    @abstractmethod
    def apply(self, pixels: np.ndarray, **params) -> np.ndarray:
        """
        Apply the stage to pixels.

        Returns the input array itself when there is nothing to do.
        """
        pass

    def process(
        self,
        handle: ImageHandle,
        analysis: Optional[QualityAssessment] = None,
        config: Optional[PipelineConfig] = None,
        output_path: Optional[Path] = None,
        output_format: Optional[str] = None,
    ) -> StepResult:
        """
        Run the stage on a handle.

        Args:
            handle: Input handle.
            analysis: Quality analysis of the input.
            config: Pipeline configuration.
            output_path: Where to write the result. In-memory only if None.
            output_format: Encoding for the written result. Defaults to the input format.

        Returns:
            StepResult with the new handle, or the input handle on failure.
        """
        if config is None:
            config = PipelineConfig()
        parameters: dict = {}

        try:
            parameters = self.parameters(handle, analysis, config)
            pixels = self.apply(handle.pixels, **parameters)

            if pixels is handle.pixels:
                output = handle
            else:
                output = self._derive(handle, pixels, output_path, output_format)

        except Exception as e:
            logger.warning(f"[{self.name}] Stage failed, passing input through: {e}")
            return StepResult(
                handle=handle,
                label=self.name,
                succeeded=False,
                parameters=parameters,
                error=str(e),
            )

        return StepResult(
            handle=output,
            label=self.name,
            succeeded=True,
            parameters=parameters,
        )

    def _derive(
        self,
        handle: ImageHandle,
        pixels: np.ndarray,
        output_path: Optional[Path],
        output_format: Optional[str] = None,
    ) -> ImageHandle:
        """Build the output handle, writing it to disk when a path is given."""
        if output_path is None:
            return ImageHandle(pixels=pixels, format=handle.format)

        image_format = output_format or handle.format
        file_size = self.codec.write(pixels, output_path, image_format)
        return ImageHandle(
            pixels=pixels,
            format=image_format,
            path=Path(output_path),
            file_size=file_size,
        )
