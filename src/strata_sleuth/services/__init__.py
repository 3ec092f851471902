"""Application services."""

from __future__ import annotations

from strata_sleuth.services.analysis_service import AnalysisOrchestrator

__all__ = ["AnalysisOrchestrator"]
