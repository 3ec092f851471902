"""Document ingestion: page splitting and batch planning."""

from __future__ import annotations

from strata_sleuth.ingestion.planner import BatchPlanner
from strata_sleuth.ingestion.splitter import PageSplitter, count_pages

__all__ = ["BatchPlanner", "PageSplitter", "count_pages"]
