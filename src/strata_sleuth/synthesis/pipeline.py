"""Synthesis pipeline: merges per-batch partial reports into one final report.

Merging (de-duplication, per-year consolidation, severity preference) is
delegated to the model. This module only packages the partials and runs one
synthesis-mode invocation, whose output goes through the same sanitizer and
schema validation as extraction output.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Optional, Sequence

from strata_sleuth.models import AnalysisMode, SynthesisInput
from strata_sleuth.synthesis.models import FinalReport, PartialReport

if TYPE_CHECKING:
    from strata_sleuth.providers.invoker import ModelInvoker

log = logging.getLogger(__name__)


class ReportSynthesizer:
    """Combine partial reports; a single partial passes through untouched."""

    def __init__(self, invoker: ModelInvoker) -> None:
        self._invoker = invoker

    async def synthesize(
        self,
        partial_reports: Sequence[PartialReport],
        profile_description: str,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> FinalReport:
        """Produce the final report from *partial_reports*.

        Raises:
            ValueError: no partial reports were given.
            ModelInvocationFailed: the synthesis call failed after retries.
        """
        if not partial_reports:
            raise ValueError("synthesize() needs at least one partial report")
        if len(partial_reports) == 1:
            return partial_reports[0]

        log.info("Synthesizing %d partial reports", len(partial_reports))
        return await self._invoker.invoke(
            None,
            profile_description,
            AnalysisMode.SYNTHESIS,
            synthesis_input=self.package(partial_reports),
            cancel_event=cancel_event,
        )

    @staticmethod
    def package(partial_reports: Sequence[PartialReport]) -> SynthesisInput:
        """Serialize partials in batch order, tagged with their batch number."""
        payload = [
            {"batch": i + 1, "report": report.to_wire()}
            for i, report in enumerate(partial_reports)
        ]
        return SynthesisInput(payload=json.dumps(payload, indent=2), report_count=len(partial_reports))
