"""
Multi-variant enhancement search.

Runs the full pipeline under several fixed presets at once and keeps the
variant whose output scores best.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from rxprep.config import PipelineConfig
from rxprep.schemas.quality import QualityAssessment
from rxprep.schemas.report import ProcessingReport

from .pipeline import ImageSource, PreprocessingPipeline

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnhancementPreset:
    """Fixed global parameters for one enhancement strategy."""

    name: str
    contrast: float
    """Contrast multiplier."""
    brightness: float
    """Brightness multiplier."""
    sharpen_sigma: float
    """Unsharp mask sigma."""

    def apply_to(self, config: PipelineConfig) -> PipelineConfig:
        """Pipeline config with this preset's parameters forced in."""
        return config.model_copy(
            update={
                "contrast": True,
                "sharpen": True,
                "contrast_multiplier": self.contrast,
                "brightness_multiplier": self.brightness,
                "sharpen_sigma": self.sharpen_sigma,
            }
        )


# Ordered from least to most aggressive; ties resolve to the earliest.
ENHANCEMENT_PRESETS = (
    EnhancementPreset(name="conservative", contrast=1.2, brightness=1.0, sharpen_sigma=0.5),
    EnhancementPreset(name="moderate", contrast=1.5, brightness=1.1, sharpen_sigma=1.0),
    EnhancementPreset(name="aggressive", contrast=2.0, brightness=1.2, sharpen_sigma=1.5),
)


@dataclass(frozen=True)
class EnhancementVariant:
    """Output of one preset run."""

    strategy_name: str
    preset: EnhancementPreset
    report: ProcessingReport
    quality_score: float

    @property
    def output_ref(self) -> str:
        return self.report.processed_ref


@dataclass(frozen=True)
class VariantSearchResult:
    """Winning variant plus everything that was compared."""

    winner: EnhancementVariant
    variants: list[EnhancementVariant]
    original_quality: QualityAssessment


def select_winner(variants: Sequence[EnhancementVariant]) -> EnhancementVariant:
    """
    Pick the strictly highest-scoring variant.

    Variants must be ordered least aggressive first; equal scores keep the
    earlier one to minimize information loss.
    """
    if not variants:
        raise ValueError("No variants to choose from")

    winner = variants[0]
    for variant in variants[1:]:
        if variant.quality_score > winner.quality_score:
            winner = variant
    return winner


class VariantSearchEngine:
    """Runs the pipeline once per preset, concurrently, and scores the results."""

    def __init__(
        self,
        pipeline: Optional[PreprocessingPipeline] = None,
        presets: Sequence[EnhancementPreset] = ENHANCEMENT_PRESETS,
    ):
        self.pipeline = pipeline or PreprocessingPipeline()
        self.presets = tuple(presets)

    async def search(
        self,
        source: ImageSource,
        config: Optional[PipelineConfig] = None,
        source_name: Optional[str] = None,
    ) -> VariantSearchResult:
        """
        Find the best enhancement strategy for an image.

        Args:
            source: Path to an image, or its encoded bytes.
            config: Base pipeline options the presets are layered on.
            source_name: Name used for scratch files when source is bytes.

        Returns:
            VariantSearchResult with the winner and all variants.

        Raises:
            PreprocessingError: If every variant failed; the first error is raised.
        """
        base_config = config if config is not None else self.pipeline.settings.pipeline
        logger.info(f"Applying {len(self.presets)} enhancement strategies")

        outcomes = await asyncio.gather(
            *(
                self.pipeline.run(source, preset.apply_to(base_config), source_name)
                for preset in self.presets
            ),
            return_exceptions=True,
        )

        variants = []
        errors = []
        for preset, outcome in zip(self.presets, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"Enhancement strategy {preset.name} failed: {outcome}")
                errors.append(outcome)
                continue

            variants.append(
                EnhancementVariant(
                    strategy_name=preset.name,
                    preset=preset,
                    report=outcome,
                    quality_score=outcome.final_quality.score,
                )
            )

        if not variants:
            raise errors[0]

        winner = select_winner(variants)
        logger.info(f"Best enhancement: {winner.strategy_name} (quality: {winner.quality_score:.2f})")

        # Only the winner's output is handed on
        for variant in variants:
            if variant is not winner:
                await self.pipeline.artifacts.cleanup(variant.report.artifacts)

        return VariantSearchResult(
            winner=winner,
            variants=variants,
            original_quality=winner.report.original_quality,
        )
