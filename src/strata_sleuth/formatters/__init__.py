"""Output formatters."""

from __future__ import annotations

from strata_sleuth.formatters.json_formatter import JSONFormatter

__all__ = ["JSONFormatter"]
