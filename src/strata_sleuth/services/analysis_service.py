"""Analysis orchestrator: split, plan, invoke per batch, synthesize.

The run is linear::

    Idle -> Splitting -> Planning -> Invoking (xN) -> [Synthesizing] -> Done | Failed

Batches are invoked one at a time in document order. Any batch failure
aborts the run; a partially analysed report is never returned.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Sequence

from strata_sleuth.config import AppSettings
from strata_sleuth.exceptions import AnalysisCancelled, NoBatchesProduced, NoDocumentsProvided
from strata_sleuth.hooks.run_tracker import (
    AnalysisRun,
    AnalysisState,
    end_run,
    start_run,
    track_stage,
)
from strata_sleuth.ingestion.planner import BatchPlanner
from strata_sleuth.ingestion.splitter import PageSplitter
from strata_sleuth.models import AnalysisMode, DocumentChunk, SourceDocument, UserProfile
from strata_sleuth.parsing.json_sanitizer import ResponseSanitizer
from strata_sleuth.providers.client import LLMClient
from strata_sleuth.providers.invoker import ModelInvoker
from strata_sleuth.synthesis.models import FinalReport, PartialReport
from strata_sleuth.synthesis.pipeline import ReportSynthesizer

log = logging.getLogger(__name__)


class AnalysisOrchestrator:
    """Top-level analysis pipeline.

    The orchestrator holds only its collaborators; every chunk, batch and
    partial report lives in the scope of a single ``analyze`` call, so one
    instance can serve concurrent requests.
    """

    def __init__(
        self,
        splitter: PageSplitter,
        planner: BatchPlanner,
        invoker: ModelInvoker,
        synthesizer: Optional[ReportSynthesizer] = None,
    ) -> None:
        self._splitter = splitter
        self._planner = planner
        self._invoker = invoker
        self._synthesizer = synthesizer or ReportSynthesizer(invoker)

    @classmethod
    def from_settings(cls, settings: AppSettings) -> AnalysisOrchestrator:
        """Wire the default LiteLLM-backed pipeline from *settings*."""
        sanitizer = ResponseSanitizer(
            decimal_places=settings.parsing.decimal_places,
            snippet_chars=settings.parsing.snippet_chars,
        )
        invoker = ModelInvoker(LLMClient(settings.llm), settings.llm, sanitizer=sanitizer)
        return cls(
            PageSplitter(settings.batching.page_budget),
            BatchPlanner(settings.batching.batch_page_budget),
            invoker,
        )

    async def analyze(
        self,
        documents: Sequence[SourceDocument],
        profile: UserProfile,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> FinalReport:
        """Run the full pipeline and return the final report.

        Raises:
            NoDocumentsProvided: *documents* is empty.
            NoBatchesProduced: no batch could be planned.
            ModelInvocationFailed: a batch or the synthesis call failed.
            AnalysisCancelled: *cancel_event* was set before the run finished.
        """
        report, _ = await self.analyze_with_analytics(documents, profile, cancel_event=cancel_event)
        return report

    async def analyze_with_analytics(
        self,
        documents: Sequence[SourceDocument],
        profile: UserProfile,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> tuple[FinalReport, AnalysisRun]:
        """Same as ``analyze`` but also returns the run's analytics."""
        if not documents:
            raise NoDocumentsProvided()

        run = start_run()
        run.document_count = len(documents)
        try:
            report = await self._run(run, documents, profile, cancel_event)
            run.transition(AnalysisState.DONE)
            log.info(
                "Analysis complete: %d batch(es), %d invocation(s), %.0fms",
                run.batch_count, run.invocations, run.total_duration_ms,
            )
            return report, run
        except (Exception, asyncio.CancelledError) as e:
            run.fail(e)
            log.error("Analysis failed in run %s: %s", run.run_id, e)
            raise
        finally:
            end_run()

    async def _run(
        self,
        run: AnalysisRun,
        documents: Sequence[SourceDocument],
        profile: UserProfile,
        cancel_event: Optional[asyncio.Event],
    ) -> FinalReport:
        description = profile.describe()

        run.transition(AnalysisState.SPLITTING)
        chunks: list[DocumentChunk] = []
        with track_stage("splitting") as stage:
            for document in documents:
                chunks.extend(self._splitter.split(document))
            stage.success_count = len(chunks)
        run.chunk_count = len(chunks)

        run.transition(AnalysisState.PLANNING)
        with track_stage("planning") as stage:
            batches = self._planner.plan(chunks)
            stage.success_count = len(batches)
        if not batches:
            raise NoBatchesProduced()
        run.batch_count = len(batches)

        run.transition(AnalysisState.INVOKING)
        partials: list[PartialReport] = []
        for batch in batches:
            _check_cancelled(cancel_event)
            with track_stage(f"invoking:batch-{batch.index + 1}") as stage:
                log.info(
                    "Invoking batch %d/%d (%d chunk(s), %d page(s))",
                    batch.index + 1, len(batches), len(batch.chunks), batch.page_count,
                )
                run.invocations += 1
                report = await self._invoker.invoke(
                    batch, description, AnalysisMode.EXTRACTION, cancel_event=cancel_event
                )
                partials.append(report.conformed_to(profile.persona))
                stage.success_count = 1

        if len(partials) == 1:
            return partials[0]

        _check_cancelled(cancel_event)
        run.transition(AnalysisState.SYNTHESIZING)
        with track_stage("synthesizing") as stage:
            run.invocations += 1
            final = await self._synthesizer.synthesize(partials, description, cancel_event=cancel_event)
            stage.success_count = 1
        return final.conformed_to(profile.persona)


def _check_cancelled(cancel_event: Optional[asyncio.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise AnalysisCancelled("Analysis cancelled before the next model call")
