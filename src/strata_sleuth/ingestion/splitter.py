"""Page splitter: breaks oversized PDFs into page-bounded chunks.

Only PDFs can be counted and split. Anything else (scanned images, plain
text) is passed through as a single chunk with an assumed page count of 1.
A document that cannot be read is never dropped: it is kept whole.
"""

from __future__ import annotations

import io
import logging

from pypdf import PdfReader, PdfWriter

from strata_sleuth.exceptions import DocumentSplitFailure
from strata_sleuth.models import DocumentChunk, SourceDocument

log = logging.getLogger(__name__)


def count_pages(document: SourceDocument) -> int | None:
    """Page count of a PDF, or ``None`` for types without pages.

    Raises:
        DocumentSplitFailure: the PDF could not be read.
    """
    if not document.is_pdf:
        return None
    try:
        return len(PdfReader(io.BytesIO(document.content)).pages)
    except Exception as e:
        raise DocumentSplitFailure(document.name, str(e) or type(e).__name__) from e


def chunk_name(name: str, part_index: int, part_count: int, start: int, end: int) -> str:
    """``"minutes.pdf (Part 2/3, Pages 251-500)"``; pages shown 1-indexed, inclusive."""
    return f"{name} (Part {part_index + 1}/{part_count}, Pages {start + 1}-{end})"


class PageSplitter:
    """Split documents so no chunk exceeds ``page_budget`` pages."""

    def __init__(self, page_budget: int = 250) -> None:
        if page_budget < 1:
            raise ValueError("page_budget must be at least 1")
        self._page_budget = page_budget

    @property
    def page_budget(self) -> int:
        return self._page_budget

    def split(self, document: SourceDocument) -> list[DocumentChunk]:
        """Return the chunks for *document*; never raises for bad content."""
        try:
            return self._split(document)
        except DocumentSplitFailure as e:
            log.warning("Keeping document whole: %s", e)
            return [DocumentChunk.whole(document)]

    def _split(self, document: SourceDocument) -> list[DocumentChunk]:
        total = count_pages(document)
        if total is None:
            return [DocumentChunk.whole(document)]
        if total <= self._page_budget:
            return [DocumentChunk.whole(document, page_count=total)]

        budget = self._page_budget
        part_count = -(-total // budget)
        log.info(
            "Splitting %s: %d pages into %d parts of <= %d pages",
            document.name, total, part_count, budget,
        )

        try:
            reader = PdfReader(io.BytesIO(document.content))
            chunks: list[DocumentChunk] = []
            for part_index in range(part_count):
                start = part_index * budget
                end = min(start + budget, total)
                chunks.append(
                    DocumentChunk(
                        name=chunk_name(document.name, part_index, part_count, start, end),
                        mime_type=document.mime_type,
                        content=_extract_pages(reader, start, end),
                        source_name=document.name,
                        start_page=start,
                        end_page=end,
                        part_index=part_index,
                        part_count=part_count,
                    )
                )
        except Exception as e:
            raise DocumentSplitFailure(document.name, str(e) or type(e).__name__) from e
        return chunks


def _extract_pages(reader: PdfReader, start: int, end: int) -> bytes:
    """Copy pages ``[start, end)`` of *reader* into a new PDF."""
    writer = PdfWriter()
    for page_number in range(start, end):
        writer.add_page(reader.pages[page_number])
    buf = io.BytesIO()
    writer.write(buf)
    return buf.getvalue()
