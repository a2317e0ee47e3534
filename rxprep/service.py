"""
Prescription image service.

Wires settings, codec, analyzer, pipeline, variant search and scratch
management into one object for ingestion workflows.
"""

import asyncio
import logging
from pathlib import Path
from typing import Iterable, Optional, Union

from rxprep.config import PipelineConfig, Settings, get_settings
from rxprep.preprocessing import (
    ImageQualityAnalyzer,
    OpenCVCodec,
    PreprocessingPipeline,
    TempArtifactManager,
    VariantSearchEngine,
    VariantSearchResult,
)
from rxprep.schemas.quality import QualityAssessment
from rxprep.schemas.report import ProcessingReport

logger = logging.getLogger(__name__)

# Age threshold used when shutting down
SHUTDOWN_SWEEP_HOURS = 1.0


class PrescriptionImageService:
    """
    Entry point for preparing prescription images for OCR.

    Handles:
    - Quality analysis of uploads
    - Adaptive preprocessing runs
    - Variant search over enhancement presets
    - Cleanup of scratch artifacts
    """

    def __init__(self, settings: Optional[Settings] = None):
        """
        Initialize the service.

        Args:
            settings: Process settings. Defaults to get_settings().
        """
        self.settings = settings or get_settings()
        self.codec = OpenCVCodec(jpeg_quality=self.settings.jpeg_quality)
        self.analyzer = ImageQualityAnalyzer(self.codec)
        self.artifacts = TempArtifactManager(self.settings.scratch_dir)
        self.pipeline = PreprocessingPipeline(
            settings=self.settings,
            codec=self.codec,
            analyzer=self.analyzer,
            artifacts=self.artifacts,
        )
        self.variant_search = VariantSearchEngine(self.pipeline)

    async def analyze(self, source: Union[Path, str, bytes]) -> QualityAssessment:
        """Score an image without processing it."""
        return await asyncio.to_thread(self.analyzer.analyze, source)

    async def preprocess(
        self,
        source: Union[Path, str, bytes],
        config: Optional[PipelineConfig] = None,
        source_name: Optional[str] = None,
    ) -> ProcessingReport:
        """Run the pipeline once."""
        return await self.pipeline.run(source, config, source_name)

    async def search_variants(
        self,
        source: Union[Path, str, bytes],
        config: Optional[PipelineConfig] = None,
        source_name: Optional[str] = None,
    ) -> VariantSearchResult:
        """Run every enhancement preset and keep the best."""
        return await self.variant_search.search(source, config, source_name)

    async def cleanup_processing_files(self, paths: Iterable[Union[Path, str]]) -> list[Path]:
        """Delete files a caller no longer needs."""
        return await self.artifacts.cleanup(paths)

    async def sweep(self, max_age_hours: Optional[float] = None) -> list[Path]:
        """Remove scratch files older than max_age_hours (settings default)."""
        if max_age_hours is None:
            max_age_hours = self.settings.sweep_max_age_hours
        return await self.artifacts.cleanup_older_than(max_age_hours)

    async def shutdown(self) -> None:
        """Sweep scratch files older than an hour."""
        removed = await self.sweep(SHUTDOWN_SWEEP_HOURS)
        logger.info(f"Prescription image service shut down ({len(removed)} stale file(s) removed)")
