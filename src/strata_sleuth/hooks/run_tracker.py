"""Per-run analytics tracker using ContextVars.

Every analysis request owns one ``AnalysisRun``. It records the state machine
position, chunk and batch counts, and per-stage timings, and binds ``run_id``
and ``stage`` to the structlog context so every log line of the run carries
them. asyncio tasks copy their context, so concurrent runs never see each
other's tracker.

Usage::

    run = start_run()
    run.transition(AnalysisState.SPLITTING)
    with track_stage("splitting") as stage:
        stage.success_count = 3
    run = end_run()
    print(run.total_duration_ms)
"""

from __future__ import annotations

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from enum import Enum
from typing import Generator, Optional

import structlog
from pydantic import BaseModel, Field

from strata_sleuth.exceptions import InvalidStateTransition


class AnalysisState(str, Enum):
    IDLE = "idle"
    SPLITTING = "splitting"
    PLANNING = "planning"
    INVOKING = "invoking"
    SYNTHESIZING = "synthesizing"
    DONE = "done"
    FAILED = "failed"


_TRANSITIONS: dict[AnalysisState, set[AnalysisState]] = {
    AnalysisState.IDLE: {AnalysisState.SPLITTING},
    AnalysisState.SPLITTING: {AnalysisState.PLANNING},
    AnalysisState.PLANNING: {AnalysisState.INVOKING},
    AnalysisState.INVOKING: {AnalysisState.SYNTHESIZING, AnalysisState.DONE},
    AnalysisState.SYNTHESIZING: {AnalysisState.DONE},
    AnalysisState.DONE: set(),
    AnalysisState.FAILED: set(),
}

_TERMINAL = {AnalysisState.DONE, AnalysisState.FAILED}


def _now() -> datetime:
    return datetime.now(timezone.utc)


class StageMetrics(BaseModel):
    """Timing for one named stage of a run."""

    stage: str
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    duration_ms: float = 0.0
    success_count: int = 0


class AnalysisRun(BaseModel):
    """Analytics and state for a single analysis request."""

    run_id: str
    state: AnalysisState = AnalysisState.IDLE
    started_at: datetime = Field(default_factory=_now)
    ended_at: Optional[datetime] = None
    document_count: int = 0
    chunk_count: int = 0
    batch_count: int = 0
    invocations: int = 0
    stages: list[StageMetrics] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    @property
    def total_duration_ms(self) -> float:
        end = self.ended_at or _now()
        return (end - self.started_at).total_seconds() * 1000

    def transition(self, new_state: AnalysisState) -> None:
        """Advance the state machine.

        ``FAILED`` is reachable from any non-terminal state; every other move
        must follow the linear order (only ``SYNTHESIZING`` may be skipped).

        Raises:
            InvalidStateTransition: the move is not allowed.
        """
        if self.state in _TERMINAL:
            raise InvalidStateTransition(f"run {self.run_id} already {self.state.value}")
        if new_state is not AnalysisState.FAILED and new_state not in _TRANSITIONS[self.state]:
            raise InvalidStateTransition(
                f"cannot move from {self.state.value} to {new_state.value}"
            )
        self.state = new_state
        structlog.contextvars.bind_contextvars(state=new_state.value)
        if new_state in _TERMINAL:
            self.ended_at = _now()

    def fail(self, error: BaseException) -> None:
        self.errors.append(f"{type(error).__name__}: {error}")
        if self.state not in _TERMINAL:
            self.transition(AnalysisState.FAILED)


_current_run: ContextVar[Optional[AnalysisRun]] = ContextVar("strata_current_run", default=None)


def get_current_run() -> Optional[AnalysisRun]:
    """Get the active AnalysisRun, or None if no run is active."""
    return _current_run.get()


def start_run(run_id: Optional[str] = None) -> AnalysisRun:
    """Create and activate a new AnalysisRun for the current context."""
    run = AnalysisRun(run_id=run_id or uuid.uuid4().hex[:12])
    _current_run.set(run)
    structlog.contextvars.bind_contextvars(run_id=run.run_id)
    return run


def end_run() -> Optional[AnalysisRun]:
    """Deactivate the current run and return it. Returns None if no run is active."""
    run = _current_run.get()
    if run is None:
        return None
    _current_run.set(None)
    structlog.contextvars.unbind_contextvars("run_id", "stage", "state")
    return run


@contextmanager
def track_stage(name: str) -> Generator[StageMetrics, None, None]:
    """Record a StageMetrics entry on the current run.

    No-op bookkeeping if no run is active.
    """
    run = _current_run.get()
    stage = StageMetrics(stage=name, started_at=_now())
    structlog.contextvars.bind_contextvars(stage=name)

    try:
        yield stage
    finally:
        stage.ended_at = _now()
        if stage.started_at:
            stage.duration_ms = (stage.ended_at - stage.started_at).total_seconds() * 1000
        if run is not None:
            run.stages.append(stage)
