"""Run lifecycle hooks: logging setup and per-run tracking."""

from __future__ import annotations

from strata_sleuth.hooks.logging_config import setup_logging
from strata_sleuth.hooks.run_tracker import (
    AnalysisRun,
    AnalysisState,
    StageMetrics,
    end_run,
    get_current_run,
    start_run,
    track_stage,
)

__all__ = [
    "AnalysisRun",
    "AnalysisState",
    "StageMetrics",
    "end_run",
    "get_current_run",
    "setup_logging",
    "start_run",
    "track_stage",
]
