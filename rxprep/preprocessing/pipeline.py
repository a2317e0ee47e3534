"""
Preprocessing pipeline orchestrator.

Chains the enabled stages in a fixed order, adapting stage parameters to
the quality of the image as it moves through the chain.
"""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, TypeVar, Union

from rxprep.config import PipelineConfig, Settings, get_settings
from rxprep.schemas.quality import QualityAssessment
from rxprep.schemas.report import ProcessingReport
from rxprep.utils.file_validation import (
    ValidationError,
    detect_format_from_bytes,
    validate_image_file,
)

from .analyzer import ImageQualityAnalyzer
from .artifacts import TempArtifactManager
from .base import ImageHandle, PreprocessingStep, StepResult
from .codec import EXTENSIONS, LOSSY_FORMATS, ImageCodec, OpenCVCodec
from .exceptions import FormatConversionError, InvalidImageError
from .skew import create_skew_estimator
from .steps import (
    BinarizationStep,
    ContrastEnhancementStep,
    DeskewStep,
    NoiseRemovalStep,
    ResizeStep,
    SharpenStep,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

ImageSource = Union[Path, str, bytes]

# Execution order. Denoise precedes contrast so noise is not amplified,
# deskew sees cleaned-up content, sharpen is not undone by rotation blur,
# and binarize destroys information so it goes last.
STAGE_ORDER = ("resize", "denoise", "contrast", "deskew", "sharpen", "binarize")


class PreprocessingPipeline:
    """
    Orchestrates preprocessing stages for OCR optimization.

    Run order:
    1. Format validation / conversion
    2. Resize
    3. Denoise
    4. Contrast enhancement
    5. Deskew
    6. Sharpen
    7. Binarize
    8. Final quality analysis and report assembly

    Only the pre-step can fail a run. Stages degrade gracefully and
    analysis never raises.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        codec: Optional[ImageCodec] = None,
        analyzer: Optional[ImageQualityAnalyzer] = None,
        artifacts: Optional[TempArtifactManager] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            settings: Process settings. Defaults to get_settings().
            codec: Raster codec. Defaults to OpenCVCodec.
            analyzer: Quality analyzer. Defaults to one sharing the codec.
            artifacts: Scratch manager. Defaults to settings.scratch_dir.
        """
        self.settings = settings or get_settings()
        self.codec = codec or OpenCVCodec(jpeg_quality=self.settings.jpeg_quality)
        self.analyzer = analyzer or ImageQualityAnalyzer(self.codec)
        self.artifacts = artifacts or TempArtifactManager(self.settings.scratch_dir)
        self._steps = self._create_default_steps()

    def _create_default_steps(self) -> list[PreprocessingStep]:
        """Create the stages in execution order."""
        estimator = create_skew_estimator(
            self.settings.skew_estimator,
            max_angle=self.settings.max_skew_angle,
        )
        return [
            ResizeStep(self.codec),
            NoiseRemovalStep(self.codec),
            ContrastEnhancementStep(self.codec),
            DeskewStep(self.codec, estimator),
            SharpenStep(self.codec),
            BinarizationStep(self.codec),
        ]

    @property
    def steps(self) -> list[PreprocessingStep]:
        """Get the list of stages in execution order."""
        return self._steps

    def enabled_steps(self, config: PipelineConfig) -> list[PreprocessingStep]:
        """Stages switched on in config, in execution order."""
        return [step for step in self._steps if getattr(config, step.name)]

    async def run(
        self,
        source: ImageSource,
        config: Optional[PipelineConfig] = None,
        source_name: Optional[str] = None,
    ) -> ProcessingReport:
        """
        Process an image through the pipeline.

        Args:
            source: Path to an image, or its encoded bytes.
            config: Pipeline options. Defaults to settings.pipeline.
            source_name: Name used for scratch files when source is bytes.

        Returns:
            ProcessingReport for the run.

        Raises:
            InvalidImageError: If the source is missing or unreadable.
            FormatConversionError: If an unsupported format could not be converted.
        """
        if config is None:
            config = self.settings.pipeline
        created: list[Path] = []

        try:
            return await self._run(source, config, source_name, created)
        except (Exception, asyncio.CancelledError) as e:
            if isinstance(e, asyncio.CancelledError):
                logger.warning("Preprocessing run cancelled, discarding artifacts")
            await asyncio.shield(self.artifacts.cleanup(created))
            raise

    async def _run(
        self,
        source: ImageSource,
        config: PipelineConfig,
        source_name: Optional[str],
        created: list[Path],
    ) -> ProcessingReport:
        await self._offload(self.artifacts.ensure_scratch_dir)

        source_path = await self._materialize(source, source_name, created)
        logger.info(f"Starting image preprocessing for: {source_path}")

        working_path, converted_from = await self._validate(source_path, created)
        handle = await self._load(working_path)

        original_quality = await self._offload(self.analyzer.analyze, handle)
        below_threshold = original_quality.score < config.quality_threshold
        logger.info(f"Image quality score: {original_quality.score:.2f}")
        if below_threshold:
            logger.info("Low quality image detected, aggressive enhancement warranted")

        results: list[StepResult] = []
        current = handle

        for step in self.enabled_steps(config):
            analysis = None
            if step.adaptive:
                if current is handle:
                    analysis = original_quality
                else:
                    analysis = await self._offload(self.analyzer.analyze, current)

            artifact_format = self._artifact_format(current.format)
            output_path = self.artifacts.generate_path(
                source_path,
                step.name,
                extension=EXTENSIONS.get(artifact_format, Path(working_path).suffix),
            )
            created.append(output_path)

            result = await self._offload(
                step.process, current, analysis, config, output_path, artifact_format
            )
            results.append(result)
            current = result.handle

        # Score the file handed on, not the in-memory pixels
        final_quality = await self._offload(
            self.analyzer.analyze,
            current.path if current.path is not None else current,
        )

        keep = {source_path, working_path, current.path}
        remaining = await self._offload(self._settle_artifacts, created, keep)

        report = self._build_report(
            original_ref=str(source_path),
            final_handle=current,
            original_quality=original_quality,
            final_quality=final_quality,
            results=results,
            converted_from=converted_from,
            config=config,
            artifacts=remaining,
        )

        logger.info(
            f"Image preprocessing completed. Quality improved by: {report.improvement:.2f} "
            f"(steps: {', '.join(report.processing_steps) or 'none'})"
        )
        return report

    async def _materialize(
        self,
        source: ImageSource,
        source_name: Optional[str],
        created: list[Path],
    ) -> Path:
        """Get a path for the source, writing byte buffers to scratch verbatim."""
        if not isinstance(source, (bytes, bytearray)):
            return Path(source)

        data = bytes(source)
        detected = detect_format_from_bytes(data[:32])
        extension = EXTENSIONS.get(detected, f".{detected}" if detected else ".bin")
        path = self.artifacts.generate_path(source_name or "upload", "source", extension=extension)
        created.append(path)
        await self._offload(path.write_bytes, data)
        return path

    async def _validate(self, source_path: Path, created: list[Path]) -> tuple[Path, Optional[str]]:
        """
        Validate the source and convert it if its format is unsupported.

        Returns:
            (working path, original format if converted)
        """
        try:
            validated = await self._offload(
                validate_image_file,
                source_path,
                self.settings.max_file_size_mb,
            )
        except ValidationError as e:
            logger.error(f"Image validation failed for {source_path}: {e}")
            raise InvalidImageError(f"Invalid image file: {e}") from e

        if self.settings.is_supported_format(validated.format):
            return source_path, None

        logger.warning(f"Unsupported format: {validated.format}. Attempting to convert...")

        canonical = self.settings.canonical_format
        converted = self.artifacts.generate_path(
            source_path,
            "converted",
            extension=EXTENSIONS.get(canonical, f".{canonical}"),
        )
        created.append(converted)

        try:
            await self._offload(self.codec.convert, source_path, converted, canonical)
        except Exception as e:
            logger.error(f"Image conversion failed: {e}")
            raise FormatConversionError(f"Failed to convert image: {e}") from e

        logger.info(f"Converted {validated.format} image to {canonical}")
        return converted, validated.format

    async def _load(self, path: Path) -> ImageHandle:
        """Decode the working image into a handle."""
        try:
            decoded = await self._offload(self.codec.read, path)
            file_size = await self._offload(lambda: path.stat().st_size)
        except Exception as e:
            raise InvalidImageError(f"Failed to decode image: {e}") from e

        return ImageHandle(
            pixels=decoded.pixels,
            format=decoded.format,
            path=path,
            file_size=file_size,
        )

    def _artifact_format(self, image_format: str) -> str:
        """Stage outputs of lossy sources are written in the canonical lossless format."""
        if image_format in LOSSY_FORMATS:
            return self.settings.canonical_format
        return image_format

    def _settle_artifacts(self, created: list[Path], keep: set) -> list[str]:
        """Drop intermediates unless configured to keep them; list what remains."""
        if not self.settings.keep_intermediates:
            self.artifacts.cleanup_sync([p for p in created if p not in keep])
        return [str(p) for p in created if p.exists()]

    def _build_report(
        self,
        original_ref: str,
        final_handle: ImageHandle,
        original_quality: QualityAssessment,
        final_quality: QualityAssessment,
        results: list[StepResult],
        converted_from: Optional[str],
        config: PipelineConfig,
        artifacts: list[str],
    ) -> ProcessingReport:
        """Assemble the report once from the executed stage results."""
        executed = [result for result in results if result.succeeded]

        return ProcessingReport(
            original_ref=original_ref,
            processed_ref=final_handle.ref or original_ref,
            original_quality=original_quality,
            final_quality=final_quality,
            improvement=final_quality.score - original_quality.score,
            processing_steps=[result.label for result in executed],
            failed_steps=[result.label for result in results if not result.succeeded],
            step_parameters={result.label: result.parameters for result in executed},
            converted_from=converted_from,
            quality_threshold=config.quality_threshold,
            below_quality_threshold=original_quality.score < config.quality_threshold,
            artifacts=artifacts,
            timestamp=datetime.now(timezone.utc),
        )

    async def _offload(self, func: Callable[..., T], *args) -> T:
        """
        Run blocking work in a thread.

        If the run is cancelled meanwhile, the work is allowed to finish so
        anything it writes can be cleaned up, then the cancellation propagates.
        """
        task = asyncio.ensure_future(asyncio.to_thread(func, *args))
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            await asyncio.wait([task])
            raise


def create_pipeline(settings: Optional[Settings] = None, **kwargs) -> PreprocessingPipeline:
    """
    Factory function to create a preprocessing pipeline.

    Args:
        settings: Process settings. Defaults to get_settings().
        **kwargs: Settings overrides (e.g. scratch_dir, skew_estimator).

    Returns:
        Configured PreprocessingPipeline.
    """
    settings = settings or get_settings()
    if kwargs:
        settings = settings.model_copy(update=kwargs)
    return PreprocessingPipeline(settings)
