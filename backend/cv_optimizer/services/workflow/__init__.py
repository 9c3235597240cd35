from cv_optimizer.services.workflow.orchestrator import (
    AnalyzeResult,
    PdfDownload,
    RefineResult,
    TurnOrchestrator,
)
from cv_optimizer.services.workflow.preference_extractor import PreferenceExtractor

__all__ = [
    "AnalyzeResult",
    "PdfDownload",
    "RefineResult",
    "TurnOrchestrator",
    "PreferenceExtractor",
]
