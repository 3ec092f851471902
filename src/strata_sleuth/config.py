"""Nested pydantic-settings configuration for the application.

Each group reads its own ``STRATA_<GROUP>_*`` env vars::

    export STRATA_LLM_MODEL=gemini/gemini-3-pro-preview
    export STRATA_BATCHING_PAGE_BUDGET=250

Components receive the sub-config they need at construction time, so two
analyses running side by side can use different settings.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class LLMConfig(BaseSettings):
    """LLM backend configuration.

    ``max_retries`` is the total number of attempts per invocation.
    ``timeout`` bounds a non-streamed call, or the wait for each segment of a
    streamed one.
    """

    model_config = {"env_prefix": "STRATA_LLM_"}

    model: str = "gemini/gemini-3-pro-preview"
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    temperature: float = 0.0
    reasoning_effort: Optional[Literal["low", "medium", "high"]] = "high"
    timeout: float = Field(default=120.0, gt=0.0)
    max_retries: int = Field(default=3, ge=1)
    retry_base_delay: float = Field(default=1.0, ge=0.0)
    retry_max_delay: float = Field(default=30.0, ge=0.0)
    retry_jitter_factor: float = Field(default=0.0, ge=0.0)
    streaming: bool = True
    enable_web_search: bool = True


class BatchingConfig(BaseSettings):
    """Document splitting and batch planning budgets.

    Env vars use ``STRATA_BATCHING_`` prefix.
    """

    model_config = {"env_prefix": "STRATA_BATCHING_"}

    page_budget: int = Field(default=250, ge=1)
    batch_page_budget: int = Field(default=250, ge=1)


class ParsingConfig(BaseSettings):
    """Response sanitizer configuration.

    Env vars use ``STRATA_PARSING_`` prefix.
    """

    model_config = {"env_prefix": "STRATA_PARSING_"}

    decimal_places: int = Field(default=4, ge=0, le=12)
    snippet_chars: int = Field(default=200, ge=20)


class ObservabilityConfig(BaseSettings):
    """Observability configuration.

    Env vars use ``STRATA_OBSERVABILITY_`` prefix.
    """

    model_config = {"env_prefix": "STRATA_OBSERVABILITY_"}

    log_level: str = "INFO"
    json_logs: Optional[bool] = None


class AppSettings(BaseSettings):
    """Top-level application settings aggregating all sub-configs."""

    llm: LLMConfig = LLMConfig()
    batching: BatchingConfig = BatchingConfig()
    parsing: ParsingConfig = ParsingConfig()
    observability: ObservabilityConfig = ObservabilityConfig()
