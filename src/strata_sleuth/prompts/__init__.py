"""Prompt templates sent to the model."""

from __future__ import annotations

from strata_sleuth.prompts.templates import (
    build_extraction_prompt,
    build_synthesis_prompt,
    get_prompt,
)

__all__ = ["build_extraction_prompt", "build_synthesis_prompt", "get_prompt"]
