"""Shared fixtures for strata-sleuth tests."""

from __future__ import annotations

import io
import json
from typing import Any, Callable

import pytest
from pypdf import PdfWriter

from strata_sleuth.config import LLMConfig
from strata_sleuth.models import PDF_MIME_TYPE, SourceDocument


def build_pdf(pages: int) -> bytes:
    """A PDF of *pages* blank letter-size pages."""
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=612, height=792)
    buf = io.BytesIO()
    writer.write(buf)
    return buf.getvalue()


def report_payload(**overrides: Any) -> dict[str, Any]:
    """A valid camelCase report as the model would return it."""
    payload: dict[str, Any] = {
        "riskScore": 62,
        "briefingPoints": [
            {
                "content": "Recurring water ingress on level 4 noted in three AGMs",
                "source": {"fileName": "minutes.pdf", "pageNumber": 12},
            }
        ],
        "timeline": [
            {
                "year": 2027,
                "event": "Facade remediation",
                "cost": 180000,
                "severity": "high",
                "description": "Cladding replacement quoted at AGM",
                "resolution": "Special levy expected",
            },
            {
                "year": 2026,
                "event": "Lift modernisation",
                "cost": "65000",
                "severity": "medium",
            },
        ],
        "lifestyleConflicts": [
            {
                "bylaw": "By-law 14: no drying on balconies",
                "conflict": "Occupier relies on balcony drying",
                "recommendation": "Budget for a dryer",
            }
        ],
        "financialProjection": [
            {"year": 2026, "expectedCost": 65000, "fundBalance": 240000, "levyImpact": 0},
            {"year": 2027, "expectedCost": 180000, "fundBalance": 60000, "levyImpact": 1200},
        ],
        "amenities": [
            {"name": "Lift", "condition": "Poor", "forecastedMaintenanceYear": 2026, "estimatedCost": 65000}
        ],
        "conclusion": "Proceed with caution: the sinking fund will not cover the facade.",
        "conclusionSource": {"fileName": "financials.pdf", "pageNumber": 3},
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def llm_config() -> LLMConfig:
    """Deterministic LLM config: 3 attempts, exact doubling backoff, streaming."""
    return LLMConfig(
        model="test/model",
        api_key="test-key",
        max_retries=3,
        retry_base_delay=1.0,
        retry_max_delay=30.0,
        retry_jitter_factor=0.0,
        streaming=True,
        enable_web_search=True,
    )


@pytest.fixture
def make_pdf() -> Callable[..., SourceDocument]:
    """Factory: ``make_pdf(300, name="minutes.pdf")`` -> SourceDocument."""

    def _make(pages: int, name: str = "doc.pdf") -> SourceDocument:
        return SourceDocument(name=name, mime_type=PDF_MIME_TYPE, content=build_pdf(pages))

    return _make


@pytest.fixture
def sample_report() -> dict[str, Any]:
    return report_payload()


@pytest.fixture
def sample_report_json(sample_report: dict[str, Any]) -> str:
    return json.dumps(sample_report)
