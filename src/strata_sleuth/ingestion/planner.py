"""Batch planner: greedy page-budget accumulation.

Chunks are taken in order and appended to the current batch until the next
one would push it past the budget. A chunk that is larger than the budget on
its own gets a batch to itself.
"""

from __future__ import annotations

import logging
from typing import Iterable

from strata_sleuth.models import Batch, DocumentChunk

log = logging.getLogger(__name__)


class BatchPlanner:
    """Partition chunks into ordered, page-bounded batches."""

    def __init__(self, batch_page_budget: int = 250) -> None:
        if batch_page_budget < 1:
            raise ValueError("batch_page_budget must be at least 1")
        self._budget = batch_page_budget

    def plan(self, chunks: Iterable[DocumentChunk]) -> list[Batch]:
        groups: list[list[DocumentChunk]] = []
        current: list[DocumentChunk] = []
        current_pages = 0

        for chunk in chunks:
            if current and current_pages + chunk.page_count > self._budget:
                groups.append(current)
                current, current_pages = [], 0
            current.append(chunk)
            current_pages += chunk.page_count

        if current:
            groups.append(current)

        batches = [Batch(index=i, chunks=group) for i, group in enumerate(groups)]
        for batch in batches:
            if batch.page_count > self._budget:
                log.warning(
                    "Batch %d holds a single oversized chunk (%d pages > %d)",
                    batch.index, batch.page_count, self._budget,
                )
        log.info("Planned %d batch(es) from %d chunk(s)", len(batches), sum(len(g) for g in groups))
        return batches
