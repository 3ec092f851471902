"""Model invoker: one structured-output request with bounded retry.

Each attempt covers the whole round trip (request, stream accumulation,
sanitizing and schema validation), so a malformed or empty answer earns a
fresh model call just like a transport error does.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Optional

from pydantic import ValidationError

from strata_sleuth.config import LLMConfig
from strata_sleuth.exceptions import (
    AnalysisCancelled,
    EmptyModelResponse,
    ModelInvocationFailed,
    NonRetryableError,
    SchemaViolation,
)
from strata_sleuth.models import AnalysisMode, Batch, DocumentChunk, SynthesisInput
from strata_sleuth.parsing.json_sanitizer import ResponseSanitizer
from strata_sleuth.prompts import build_extraction_prompt, build_synthesis_prompt, get_prompt
from strata_sleuth.providers.client import LLMClient
from strata_sleuth.synthesis.models import FinalReport, response_schema

log = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]

_MAX_ERROR_CHARS = 500
_MAX_SCHEMA_ERRORS = 5


def _describe(exc: BaseException) -> str:
    text = f"{type(exc).__name__}: {exc}"
    if len(text) > _MAX_ERROR_CHARS:
        text = text[:_MAX_ERROR_CHARS] + "..."
    return text


def _raise_if_cancelled(cancel_event: Optional[asyncio.Event], label: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise AnalysisCancelled(f"Analysis cancelled while retrying {label}")


def _content_part(chunk: DocumentChunk) -> dict[str, Any]:
    if chunk.mime_type.lower().startswith("image/"):
        return {"type": "image_url", "image_url": {"url": chunk.data_url()}}
    return {"type": "file", "file": {"file_data": chunk.data_url()}}


class ModelInvoker:
    """Issue extraction or synthesis requests and return validated reports."""

    def __init__(
        self,
        client: LLMClient,
        config: LLMConfig,
        *,
        sanitizer: Optional[ResponseSanitizer] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._client = client
        self._config = config
        self._sanitizer = sanitizer or ResponseSanitizer()
        self._sleep = sleep

    # ── request assembly ─────────────────────────────────────────────

    def build_messages(
        self,
        batch: Optional[Batch],
        profile_description: str,
        mode: AnalysisMode,
        synthesis_input: Optional[SynthesisInput] = None,
    ) -> list[dict[str, Any]]:
        """Chat messages for one request.

        Extraction attaches every chunk plus the profile-aware instruction.
        Synthesis attaches no documents, only the serialized partial reports.
        """
        system = {
            "role": "system",
            "content": [{"type": "text", "text": get_prompt("SYSTEM_INSTRUCTION")}],
        }

        if mode is AnalysisMode.SYNTHESIS:
            if synthesis_input is None:
                raise ValueError("synthesis mode requires synthesis_input")
            prompt = build_synthesis_prompt(
                profile_description, synthesis_input.payload, synthesis_input.report_count
            )
            return [system, {"role": "user", "content": [{"type": "text", "text": prompt}]}]

        if batch is None or not batch.chunks:
            raise ValueError("extraction mode requires a non-empty batch")
        parts: list[dict[str, Any]] = [_content_part(c) for c in batch.chunks]
        parts.append({"type": "text", "text": build_extraction_prompt(profile_description, batch.names)})
        return [system, {"role": "user", "content": parts}]

    def backoff_delay(self, attempt: int) -> float:
        """Delay after failed *attempt* (1-based): base doubled per attempt, capped."""
        base_wait = min(self._config.retry_base_delay * 2 ** (attempt - 1), self._config.retry_max_delay)
        jitter = random.uniform(0, base_wait * self._config.retry_jitter_factor)
        return base_wait + jitter

    # ── invocation ───────────────────────────────────────────────────

    async def invoke(
        self,
        batch: Optional[Batch],
        profile_description: str,
        mode: AnalysisMode = AnalysisMode.EXTRACTION,
        *,
        synthesis_input: Optional[SynthesisInput] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> FinalReport:
        """Run one invocation to a validated report.

        *cancel_event* is checked before every retry, so a cancelled run
        stops instead of sleeping through its remaining attempts.

        Raises:
            ModelInvocationFailed: every attempt failed, or a failure was
                classified as non-retryable. ``last_error`` holds the cause.
            AnalysisCancelled: *cancel_event* was set between attempts.
        """
        messages = self.build_messages(batch, profile_description, mode, synthesis_input)
        schema = response_schema()
        web_search = self._config.enable_web_search and mode is AnalysisMode.EXTRACTION
        max_attempts = self._config.max_retries
        label = mode.value if batch is None else f"{mode.value} batch {batch.index}"

        last_error: Exception | None = None
        for attempt in range(1, max_attempts + 1):
            try:
                text = await self._request(messages, schema, web_search)
                return self._parse(text)

            except Exception as e:
                last_error = e
                if not self._client.is_retryable(e):
                    last_error = NonRetryableError(f"Non-retryable LLM error: {_describe(e)}")
                    raise ModelInvocationFailed(
                        f"Model invocation failed ({label}): {_describe(last_error)}",
                        attempts=attempt,
                        last_error=last_error,
                    ) from e

                if attempt < max_attempts:
                    _raise_if_cancelled(cancel_event, label)
                    wait = self.backoff_delay(attempt)
                    log.warning(
                        "LLM retry %d/%d for %s: %s (wait=%.1fs)",
                        attempt, max_attempts, label, _describe(e), wait,
                    )
                    await self._sleep(wait)
                    _raise_if_cancelled(cancel_event, label)
                else:
                    log.warning(
                        "LLM attempt %d/%d for %s failed: %s",
                        attempt, max_attempts, label, _describe(e),
                    )

        assert last_error is not None
        raise ModelInvocationFailed(
            f"Model invocation failed ({label}) after {max_attempts} attempt(s): {_describe(last_error)}",
            attempts=max_attempts,
            last_error=last_error,
        ) from last_error

    async def _request(self, messages: list[dict[str, Any]], schema: dict[str, Any], web_search: bool) -> str:
        if self._config.streaming:
            return await self._client.stream_complete(messages, response_schema=schema, web_search=web_search)
        return await self._client.complete(messages, response_schema=schema, web_search=web_search)

    def _parse(self, text: str) -> FinalReport:
        if not text or not text.strip():
            raise EmptyModelResponse()
        parsed = self._sanitizer.sanitize(text)
        try:
            return FinalReport.model_validate(parsed)
        except ValidationError as e:
            errors = [
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()[:_MAX_SCHEMA_ERRORS]
            ]
            raise SchemaViolation(
                f"Response does not match the report schema ({e.error_count()} error(s)): "
                + "; ".join(errors),
                errors,
            ) from e
