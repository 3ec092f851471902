"""Report models and the partial-report synthesis step."""

from __future__ import annotations

from strata_sleuth.synthesis.models import FinalReport, PartialReport, response_schema
from strata_sleuth.synthesis.pipeline import ReportSynthesizer

__all__ = ["FinalReport", "PartialReport", "ReportSynthesizer", "response_schema"]
