"""Exception hierarchy for strata-sleuth."""

from __future__ import annotations


class SleuthError(Exception):
    """Base exception for all strata-sleuth errors."""


# ── Documents / planning ─────────────────────────────────────────────


class DocumentError(SleuthError):
    """Raised for problems with the submitted documents."""


class NoDocumentsProvided(DocumentError):
    """The analysis request contained no documents."""

    def __init__(self, message: str = "At least one document is required for analysis.") -> None:
        super().__init__(message)


class DocumentSplitFailure(DocumentError):
    """Page counting or splitting failed for a single document.

    Absorbed by the splitter: the document is kept whole instead.
    """

    def __init__(self, document_name: str, reason: str) -> None:
        super().__init__(f"Could not split {document_name!r}: {reason}")
        self.document_name = document_name
        self.reason = reason


class PlanningError(SleuthError):
    """Raised when batch planning cannot produce a usable plan."""


class NoBatchesProduced(PlanningError):
    """Planning produced zero batches (no chunks survived splitting)."""

    def __init__(self, message: str = "No batches could be planned from the submitted documents.") -> None:
        super().__init__(message)


# ── LLM ──────────────────────────────────────────────────────────────


class LLMClientError(SleuthError):
    """Raised when LLM API calls fail."""


class EmptyModelResponse(LLMClientError):
    """The model returned no text, or only whitespace."""

    def __init__(self, message: str = "The model returned an empty response.") -> None:
        super().__init__(message)


class SchemaViolation(LLMClientError):
    """Parsed model output does not match the report schema."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class NonRetryableError(LLMClientError):
    """Auth errors or unknown models, where retrying cannot help."""


class ModelInvocationFailed(LLMClientError):
    """A model invocation failed after exhausting its attempts."""

    def __init__(self, message: str, *, attempts: int = 0, last_error: Exception | None = None) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


# ── Response parsing ─────────────────────────────────────────────────


class JSONParseError(SleuthError):
    """LLM response could not be parsed as JSON."""

    def __init__(self, message: str, snippet: str = "") -> None:
        super().__init__(message)
        self.snippet = snippet


class NoJsonObjectFound(JSONParseError):
    """The response text contains no ``{ ... }`` region."""


class UnrecoverableMalformedResponse(JSONParseError):
    """The response stayed unparseable after the fallback repair pass."""

    def __init__(self, parse_error: str, snippet: str) -> None:
        super().__init__(f"Malformed model response ({parse_error}) near: {snippet!r}", snippet)
        self.parse_error = parse_error


# ── Run lifecycle ────────────────────────────────────────────────────


class AnalysisCancelled(SleuthError):
    """The caller cancelled the analysis before it completed."""


class InvalidStateTransition(SleuthError):
    """An analysis run attempted to move backwards or out of a terminal state."""


__all__ = [
    "SleuthError",
    "DocumentError",
    "NoDocumentsProvided",
    "DocumentSplitFailure",
    "PlanningError",
    "NoBatchesProduced",
    "LLMClientError",
    "EmptyModelResponse",
    "SchemaViolation",
    "NonRetryableError",
    "ModelInvocationFailed",
    "JSONParseError",
    "NoJsonObjectFound",
    "UnrecoverableMalformedResponse",
    "AnalysisCancelled",
    "InvalidStateTransition",
]
