"""LLM access: LiteLLM client and the retrying model invoker."""

from __future__ import annotations

from strata_sleuth.providers.client import LLMClient, accumulate_stream
from strata_sleuth.providers.invoker import ModelInvoker

__all__ = ["LLMClient", "ModelInvoker", "accumulate_stream"]
