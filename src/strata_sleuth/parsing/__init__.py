"""Repair and parsing of model output."""

from __future__ import annotations

from strata_sleuth.parsing.json_sanitizer import ResponseSanitizer, sanitize

__all__ = ["ResponseSanitizer", "sanitize"]
