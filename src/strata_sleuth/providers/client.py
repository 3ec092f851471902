"""Async LLM client routed through LiteLLM for multi-provider support.

One call to ``complete`` or ``stream_complete`` is one attempt: retries and
backoff belong to ``ModelInvoker``. The client enforces the per-attempt
timeout, and in streaming mode applies it to every segment so a stalled
stream fails instead of hanging.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterable, AsyncIterator

from strata_sleuth.config import LLMConfig

log = logging.getLogger(__name__)


async def accumulate_stream(fragments: AsyncIterable[str]) -> str:
    """Fold a stream of text fragments into one string.

    Nothing is returned until the stream is exhausted; an error mid-stream
    propagates and the partial buffer is discarded.
    """
    parts: list[str] = []
    async for fragment in fragments:
        parts.append(fragment)
    return "".join(parts)


def _delta_text(chunk: Any) -> str:
    choices = getattr(chunk, "choices", None) or []
    if not choices:
        return ""
    delta = getattr(choices[0], "delta", None)
    return (getattr(delta, "content", None) or "") if delta is not None else ""


class LLMClient:
    """Async LLM client using LiteLLM."""

    def __init__(self, config: LLMConfig) -> None:
        self._config = config

    @property
    def model(self) -> str:
        return self._config.model

    @staticmethod
    def is_retryable(exc: Exception) -> bool:
        """Classify whether an LLM API error should be retried.

        Non-retryable: AuthenticationError, NotFoundError. Bad credentials or
        an unknown model will not fix themselves.
        Retryable (default): everything else including rate limits, timeouts,
        5xx, empty or malformed responses.
        """
        from litellm.exceptions import AuthenticationError, NotFoundError

        return not isinstance(exc, (AuthenticationError, NotFoundError))

    def _request_kwargs(
        self,
        messages: list[dict[str, Any]],
        *,
        response_schema: dict[str, Any] | None,
        web_search: bool,
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self._config.model,
            "messages": messages,
            "temperature": self._config.temperature,
            "timeout": self._config.timeout,
            "drop_params": True,
        }
        if self._config.reasoning_effort:
            kwargs["reasoning_effort"] = self._config.reasoning_effort
        if self._config.api_key:
            kwargs["api_key"] = self._config.api_key
        if self._config.base_url:
            kwargs["api_base"] = self._config.base_url
        if response_schema is not None:
            kwargs["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": "final_report", "schema": response_schema},
            }
        if web_search:
            kwargs["web_search_options"] = {"search_context_size": "medium"}
        return kwargs

    async def complete(
        self,
        messages: list[dict[str, Any]],
        *,
        response_schema: dict[str, Any] | None = None,
        web_search: bool = False,
    ) -> str:
        """Single non-streamed completion, returns the content string."""
        from litellm import acompletion

        kwargs = self._request_kwargs(messages, response_schema=response_schema, web_search=web_search)
        response = await asyncio.wait_for(acompletion(**kwargs), timeout=self._config.timeout)
        return response.choices[0].message.content or ""

    async def stream_text(
        self,
        messages: list[dict[str, Any]],
        *,
        response_schema: dict[str, Any] | None = None,
        web_search: bool = False,
    ) -> AsyncIterator[str]:
        """Yield text fragments as they arrive.

        Raises:
            asyncio.TimeoutError: no segment arrived within ``timeout``.
        """
        from litellm import acompletion

        kwargs = self._request_kwargs(messages, response_schema=response_schema, web_search=web_search)
        kwargs["stream"] = True
        response = await asyncio.wait_for(acompletion(**kwargs), timeout=self._config.timeout)

        iterator = response.__aiter__()
        segments = 0
        while True:
            try:
                chunk = await asyncio.wait_for(iterator.__anext__(), timeout=self._config.timeout)
            except StopAsyncIteration:
                break
            segments += 1
            text = _delta_text(chunk)
            if text:
                yield text
        log.debug("Stream finished after %d segment(s)", segments)

    async def stream_complete(
        self,
        messages: list[dict[str, Any]],
        *,
        response_schema: dict[str, Any] | None = None,
        web_search: bool = False,
    ) -> str:
        """Streamed completion accumulated into one string."""
        return await accumulate_stream(
            self.stream_text(messages, response_schema=response_schema, web_search=web_search)
        )
