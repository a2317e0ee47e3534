from rxprep.schemas.quality import QualityAssessment, QualityMetrics, Recommendation
from rxprep.schemas.report import ProcessingReport

__all__ = [
    "ProcessingReport",
    "QualityAssessment",
    "QualityMetrics",
    "Recommendation",
]
