"""Tests for ModelInvoker: message shape, bounded retry and response validation."""

from __future__ import annotations

import asyncio
import json

import pytest
from litellm.exceptions import AuthenticationError

from strata_sleuth.exceptions import (
    AnalysisCancelled,
    EmptyModelResponse,
    ModelInvocationFailed,
    NonRetryableError,
    SchemaViolation,
    UnrecoverableMalformedResponse,
)
from strata_sleuth.models import AnalysisMode, Batch, DocumentChunk, SynthesisInput
from strata_sleuth.providers.invoker import ModelInvoker
from tests.conftest import report_payload
from tests.fakes.fake_llm_client import FakeLLMClient


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _batch(*names: str, mime_type: str = "application/pdf") -> Batch:
    chunks = [
        DocumentChunk(name=n, mime_type=mime_type, content=b"%PDF-1.4", source_name=n)
        for n in names
    ]
    return Batch(index=0, chunks=chunks)


def _valid() -> str:
    return json.dumps(report_payload())


class TestBuildMessages:
    def test_extraction_attaches_every_chunk_then_prompt(self, llm_config) -> None:
        invoker = ModelInvoker(FakeLLMClient(), llm_config)
        messages = invoker.build_messages(
            _batch("minutes.pdf", "bylaws.pdf"), '{"persona": "investor"}', AnalysisMode.EXTRACTION
        )

        assert [m["role"] for m in messages] == ["system", "user"]
        parts = messages[1]["content"]
        assert [p["type"] for p in parts] == ["file", "file", "text"]
        assert parts[0]["file"]["file_data"].startswith("data:application/pdf;base64,")
        assert "minutes.pdf" in parts[2]["text"]
        assert '{"persona": "investor"}' in parts[2]["text"]

    def test_images_are_attached_as_image_url(self, llm_config) -> None:
        invoker = ModelInvoker(FakeLLMClient(), llm_config)
        messages = invoker.build_messages(
            _batch("scan.png", mime_type="image/png"), "{}", AnalysisMode.EXTRACTION
        )
        assert messages[1]["content"][0]["type"] == "image_url"

    def test_synthesis_sends_text_only(self, llm_config) -> None:
        invoker = ModelInvoker(FakeLLMClient(), llm_config)
        messages = invoker.build_messages(
            None,
            "{}",
            AnalysisMode.SYNTHESIS,
            SynthesisInput(payload='[{"batch": 1}]', report_count=2),
        )

        parts = messages[1]["content"]
        assert [p["type"] for p in parts] == ["text"]
        assert '[{"batch": 1}]' in parts[0]["text"]

    def test_synthesis_without_input_is_rejected(self, llm_config) -> None:
        invoker = ModelInvoker(FakeLLMClient(), llm_config)
        with pytest.raises(ValueError):
            invoker.build_messages(None, "{}", AnalysisMode.SYNTHESIS)

    def test_extraction_without_batch_is_rejected(self, llm_config) -> None:
        invoker = ModelInvoker(FakeLLMClient(), llm_config)
        with pytest.raises(ValueError):
            invoker.build_messages(None, "{}", AnalysisMode.EXTRACTION)


class TestBackoff:
    def test_delay_doubles_per_attempt(self, llm_config) -> None:
        invoker = ModelInvoker(FakeLLMClient(), llm_config)
        assert [invoker.backoff_delay(a) for a in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 8.0]

    def test_delay_is_capped(self, llm_config) -> None:
        config = llm_config.model_copy(update={"retry_max_delay": 5.0})
        invoker = ModelInvoker(FakeLLMClient(), config)
        assert invoker.backoff_delay(10) == 5.0

    def test_jitter_stays_within_factor(self, llm_config) -> None:
        config = llm_config.model_copy(update={"retry_jitter_factor": 0.5})
        invoker = ModelInvoker(FakeLLMClient(), config)
        for _ in range(20):
            assert 2.0 <= invoker.backoff_delay(2) <= 3.0


class TestInvoke:
    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self, llm_config) -> None:
        client = FakeLLMClient([_valid()])
        sleep = SleepRecorder()
        report = await ModelInvoker(client, llm_config, sleep=sleep).invoke(_batch("a.pdf"), "{}")

        assert report.risk_score == 62
        assert len(client.calls) == 1
        assert client.calls[0].streamed
        assert client.calls[0].web_search
        assert client.calls[0].response_schema is not None
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_two_failures_then_success(self, llm_config) -> None:
        client = FakeLLMClient([asyncio.TimeoutError(), "", _valid()])
        sleep = SleepRecorder()
        report = await ModelInvoker(client, llm_config, sleep=sleep).invoke(_batch("a.pdf"), "{}")

        assert report.conclusion.startswith("Proceed with caution")
        assert len(client.calls) == 3
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_exhausted_attempts_raise_with_last_error(self, llm_config) -> None:
        client = FakeLLMClient(["   ", "   ", "   "])
        sleep = SleepRecorder()

        with pytest.raises(ModelInvocationFailed) as exc_info:
            await ModelInvoker(client, llm_config, sleep=sleep).invoke(_batch("a.pdf"), "{}")

        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_error, EmptyModelResponse)
        assert len(client.calls) == 3
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_malformed_response_is_retried(self, llm_config) -> None:
        client = FakeLLMClient(['{"riskScore": ::: }', _valid()])
        report = await ModelInvoker(client, llm_config, sleep=SleepRecorder()).invoke(
            _batch("a.pdf"), "{}"
        )
        assert report.risk_score == 62

    @pytest.mark.asyncio
    async def test_malformed_every_time_surfaces_parse_error(self, llm_config) -> None:
        config = llm_config.model_copy(update={"max_retries": 1})
        client = FakeLLMClient(['{"riskScore": ::: }'])

        with pytest.raises(ModelInvocationFailed) as exc_info:
            await ModelInvoker(client, config, sleep=SleepRecorder()).invoke(_batch("a.pdf"), "{}")

        assert isinstance(exc_info.value.last_error, UnrecoverableMalformedResponse)

    @pytest.mark.asyncio
    async def test_schema_violation_is_reported(self, llm_config) -> None:
        config = llm_config.model_copy(update={"max_retries": 1})
        client = FakeLLMClient([json.dumps({"riskScore": 10})])

        with pytest.raises(ModelInvocationFailed) as exc_info:
            await ModelInvoker(client, config, sleep=SleepRecorder()).invoke(_batch("a.pdf"), "{}")

        error = exc_info.value.last_error
        assert isinstance(error, SchemaViolation)
        assert 0 < len(error.errors) <= 5

    @pytest.mark.asyncio
    async def test_non_retryable_error_stops_immediately(self, llm_config) -> None:
        auth_error = AuthenticationError(
            message="bad key",
            llm_provider="gemini",
            model="test/model",
        )
        client = FakeLLMClient([auth_error, _valid()])
        sleep = SleepRecorder()

        with pytest.raises(ModelInvocationFailed) as exc_info:
            await ModelInvoker(client, llm_config, sleep=sleep).invoke(_batch("a.pdf"), "{}")

        assert exc_info.value.attempts == 1
        assert isinstance(exc_info.value.last_error, NonRetryableError)
        assert len(client.calls) == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_non_streaming_mode_uses_complete(self, llm_config) -> None:
        config = llm_config.model_copy(update={"streaming": False})
        client = FakeLLMClient([_valid()])
        await ModelInvoker(client, config, sleep=SleepRecorder()).invoke(_batch("a.pdf"), "{}")
        assert not client.calls[0].streamed

    @pytest.mark.asyncio
    async def test_synthesis_disables_web_search(self, llm_config) -> None:
        client = FakeLLMClient([_valid()])
        await ModelInvoker(client, llm_config, sleep=SleepRecorder()).invoke(
            None,
            "{}",
            AnalysisMode.SYNTHESIS,
            synthesis_input=SynthesisInput(payload="[]", report_count=2),
        )
        assert not client.calls[0].web_search

    @pytest.mark.asyncio
    async def test_fenced_response_with_missing_separators_parses(self, llm_config) -> None:
        payload = json.dumps(report_payload()).replace("}, {", "}{")
        client = FakeLLMClient([f"```json\n{payload}\n```"])
        report = await ModelInvoker(client, llm_config, sleep=SleepRecorder()).invoke(
            _batch("a.pdf"), "{}"
        )
        assert [e.year for e in report.timeline] == [2027, 2026]

    @pytest.mark.asyncio
    async def test_off_scale_severity_does_not_fail_the_call(self, llm_config) -> None:
        payload = report_payload()
        payload["timeline"][0]["severity"] = "moderate"
        payload["briefingPoints"][0]["source"]["pageNumber"] = None
        client = FakeLLMClient([json.dumps(payload)])

        report = await ModelInvoker(client, llm_config, sleep=SleepRecorder()).invoke(
            _batch("a.pdf"), "{}"
        )

        assert report.timeline[0].severity == "medium"
        assert len(client.calls) == 1

    @pytest.mark.asyncio
    async def test_cancellation_stops_retrying(self, llm_config) -> None:
        cancel = asyncio.Event()
        client = FakeLLMClient(["", "", _valid()])

        async def cancel_during_backoff(delay: float) -> None:
            cancel.set()

        with pytest.raises(AnalysisCancelled):
            await ModelInvoker(client, llm_config, sleep=cancel_during_backoff).invoke(
                _batch("a.pdf"), "{}", cancel_event=cancel
            )
        assert len(client.calls) == 1

    @pytest.mark.asyncio
    async def test_cancel_set_before_retry_skips_backoff(self, llm_config) -> None:
        cancel = asyncio.Event()
        cancel.set()
        client = FakeLLMClient(["", _valid()])
        sleep = SleepRecorder()

        with pytest.raises(AnalysisCancelled):
            await ModelInvoker(client, llm_config, sleep=sleep).invoke(
                _batch("a.pdf"), "{}", cancel_event=cancel
            )
        assert sleep.delays == []
        assert len(client.calls) == 1
