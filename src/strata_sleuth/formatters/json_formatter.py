"""JSON output formatter for final reports."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from strata_sleuth.synthesis.models import FinalReport


class JSONFormatter:
    """Renders a FinalReport as indented camelCase JSON bytes."""

    def format(self, report: FinalReport, **kwargs: Any) -> bytes:
        """Serialize *report* to pretty-printed JSON bytes."""
        indent = kwargs.get("indent", 2)
        return json.dumps(report.to_wire(), indent=indent, ensure_ascii=False).encode()

    def format_to_file(self, report: FinalReport, path: Path, **kwargs: Any) -> Path:
        """Write JSON to *path* and return it."""
        path.write_bytes(self.format(report, **kwargs))
        return path

    @property
    def content_type(self) -> str:
        return "application/json"
