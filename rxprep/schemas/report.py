from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from rxprep.schemas.quality import QualityAssessment


class ProcessingReport(BaseModel):
    """Outcome of one preprocessing run."""

    model_config = ConfigDict(frozen=True)

    original_ref: str = Field(description="Source image the run started from")
    processed_ref: str = Field(description="Image to hand to OCR")
    original_quality: QualityAssessment
    final_quality: QualityAssessment
    improvement: float = Field(description="Final score minus original score")
    processing_steps: list[str] = Field(
        default_factory=list, description="Stages that executed, in order"
    )
    failed_steps: list[str] = Field(
        default_factory=list, description="Stages that failed and were bypassed"
    )
    step_parameters: dict[str, dict] = Field(
        default_factory=dict, description="Resolved parameters per executed stage"
    )
    converted_from: str | None = Field(
        default=None, description="Source format when the input had to be converted"
    )
    quality_threshold: float
    below_quality_threshold: bool = Field(
        description="Whether the source scored below the threshold"
    )
    artifacts: list[str] = Field(
        default_factory=list, description="Scratch files left for the caller to clean up"
    )
    timestamp: datetime
