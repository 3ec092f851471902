"""CLI for strata-sleuth: analyze strata documents into a 10-year forecast."""

from __future__ import annotations

import asyncio
import json
import mimetypes
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from strata_sleuth.config import AppSettings
from strata_sleuth.exceptions import SleuthError
from strata_sleuth.formatters.json_formatter import JSONFormatter
from strata_sleuth.hooks.logging_config import setup_logging
from strata_sleuth.hooks.run_tracker import AnalysisRun
from strata_sleuth.models import Persona, SourceDocument, UserProfile
from strata_sleuth.services.analysis_service import AnalysisOrchestrator
from strata_sleuth.synthesis.models import FinalReport

app = typer.Typer(name="strata-sleuth", help="Forensic 10-year strata risk forecasts")
console = Console()


@app.callback()
def main() -> None:
    """strata-sleuth command-line interface."""


def _build_settings(model: Optional[str], page_budget: Optional[int]) -> AppSettings:
    """Build settings, overriding env defaults with CLI flags."""
    settings = AppSettings()
    if model:
        settings.llm = settings.llm.model_copy(update={"model": model})
    if page_budget:
        settings.batching = settings.batching.model_copy(
            update={"page_budget": page_budget, "batch_page_budget": page_budget}
        )
    return settings


def load_document(path: Path) -> SourceDocument:
    """Read a file from disk as a SourceDocument, guessing its MIME type."""
    mime_type, _ = mimetypes.guess_type(path.name)
    return SourceDocument(
        name=path.name,
        mime_type=mime_type or "application/octet-stream",
        content=path.read_bytes(),
    )


def load_profile(persona: Persona, profile_file: Optional[Path]) -> UserProfile:
    """Profile from a JSON file, or the form defaults for *persona*."""
    if profile_file is None:
        return UserProfile.default_for(persona)
    raw = json.loads(profile_file.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise typer.BadParameter(f"Expected a JSON object in {profile_file}")
    raw["persona"] = persona.value
    return UserProfile.model_validate(raw)


def _print_summary(report: FinalReport, run: AnalysisRun) -> None:
    console.print(f"\n[bold]Risk score:[/bold] {report.risk_score:g}/100")
    for point in report.briefing_points[:5]:
        cite = f" [dim]({point.source.file_name} p.{point.source.page_number})[/dim]" if point.source else ""
        console.print(f"  • {point.content}{cite}")
    console.print(f"\n[bold]Conclusion:[/bold] {report.conclusion}")

    table = Table(title=f"Run {run.run_id}")
    table.add_column("Stage")
    table.add_column("Duration (ms)", justify="right")
    for stage in run.stages:
        table.add_row(stage.stage, f"{stage.duration_ms:.0f}")
    console.print(table)
    console.print(
        f"{run.document_count} document(s), {run.chunk_count} chunk(s), "
        f"{run.batch_count} batch(es), {run.invocations} invocation(s)"
    )


@app.command()
def analyze(
    files: List[Path] = typer.Argument(..., exists=True, dir_okay=False, help="Strata documents"),
    persona: Persona = typer.Option(Persona.OCCUPIER, help="Who the forecast is for"),
    profile_file: Optional[Path] = typer.Option(None, "--profile", exists=True, help="Profile JSON"),
    output: Optional[Path] = typer.Option(None, help="Write the report JSON here"),
    model: Optional[str] = typer.Option(None, "--model", help="LiteLLM model identifier"),
    page_budget: Optional[int] = typer.Option(None, "--page-budget", min=1, help="Pages per chunk and batch"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Analyze documents for a persona and print or save the report."""
    settings = _build_settings(model, page_budget)
    if verbose:
        settings.observability = settings.observability.model_copy(update={"log_level": "DEBUG"})
    setup_logging(settings.observability)

    documents = [load_document(p) for p in files]
    profile = load_profile(persona, profile_file)
    console.print(f"[bold]Analyzing {len(documents)} document(s) as {persona.value}[/bold]")

    orchestrator = AnalysisOrchestrator.from_settings(settings)
    try:
        report, run = asyncio.run(orchestrator.analyze_with_analytics(documents, profile))
    except SleuthError as e:
        console.print(f"[red]Analysis failed:[/red] {e}")
        raise typer.Exit(code=1) from e

    if output:
        JSONFormatter().format_to_file(report, output)
        console.print(f"[green]Report saved to {output}[/green]")
    else:
        console.print_json(JSONFormatter().format(report).decode())
    _print_summary(report, run)


if __name__ == "__main__":
    app()
