"""strata-sleuth: forensic 10-year strata forecasts from property documents.

Public API::

    from strata_sleuth import (
        AppSettings,
        SourceDocument, UserProfile, Persona,
        AnalysisOrchestrator, FinalReport,
    )

    orchestrator = AnalysisOrchestrator.from_settings(AppSettings())
    report = await orchestrator.analyze(documents, UserProfile.default_for("investor"))
"""

from __future__ import annotations

from strata_sleuth.config import AppSettings, BatchingConfig, LLMConfig, ParsingConfig
from strata_sleuth.ingestion import BatchPlanner, PageSplitter
from strata_sleuth.models import (
    AnalysisMode,
    Batch,
    DocumentChunk,
    InvestorProfile,
    OccupierProfile,
    Persona,
    SourceDocument,
    UserProfile,
)
from strata_sleuth.parsing import ResponseSanitizer, sanitize
from strata_sleuth.providers import LLMClient, ModelInvoker
from strata_sleuth.services import AnalysisOrchestrator
from strata_sleuth.synthesis import FinalReport, PartialReport, ReportSynthesizer

__all__ = [
    "AppSettings",
    "LLMConfig",
    "BatchingConfig",
    "ParsingConfig",
    "SourceDocument",
    "DocumentChunk",
    "Batch",
    "AnalysisMode",
    "Persona",
    "OccupierProfile",
    "InvestorProfile",
    "UserProfile",
    "PageSplitter",
    "BatchPlanner",
    "ResponseSanitizer",
    "sanitize",
    "LLMClient",
    "ModelInvoker",
    "ReportSynthesizer",
    "AnalysisOrchestrator",
    "FinalReport",
    "PartialReport",
]
