"""Response sanitizer: repairs near-valid JSON returned by the model.

The model's structured-output mode is best-effort. Two failure modes dominate
in practice: missing separators between adjacent objects/arrays (``}{``) and
pathological numeric tokens (``0.05711764705882353407999...``, ``1e-320``).
Repairs only ever touch text outside string literals.

Order matters:

1. strip markdown code fences
2. isolate the outermost ``{ ... }``
3. quote-aware scan: insert missing ``,`` between ``}``/``]`` and ``{``/``[``,
   rewrite every numeric literal as a rounded plain decimal
4. parse; on failure drop trailing commas, quote bare keys and map Python
   literals, then parse once more
5. give up with a bounded diagnostic snippet
"""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any

from strata_sleuth.exceptions import NoJsonObjectFound, UnrecoverableMalformedResponse

log = logging.getLogger(__name__)

TINY_MAGNITUDE = 1e-15

_FENCE_OPEN = re.compile(r"^\s*```[A-Za-z0-9_-]*[ \t]*\r?\n?")
_FENCE_CLOSE = re.compile(r"\r?\n?[ \t]*```\s*$")
_NUMBER = re.compile(r"[-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?")
_NON_FINITE = re.compile(r"[-+]?(?:Infinity|NaN)")
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")
_BARE_KEY = re.compile(r"([{,]\s*)([A-Za-z_$][\w$-]*)(\s*:)")
_PY_LITERALS = re.compile(r"\b(None|True|False)\b")
_PY_TO_JSON = {"None": "null", "True": "true", "False": "false"}

_NUMBER_START = set("+-.0123456789")


def strip_code_fences(text: str) -> str:
    """Remove a leading ```` ```json ```` and trailing ```` ``` ```` if present."""
    text = _FENCE_OPEN.sub("", text, count=1)
    return _FENCE_CLOSE.sub("", text, count=1).strip()


def isolate_object(text: str) -> str:
    """Substring from the first ``{`` to the last ``}`` inclusive."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end < start:
        raise NoJsonObjectFound(
            "No JSON object found in model response",
            snippet=text[:80],
        )
    return text[start : end + 1]


def _is_word_char(ch: str) -> bool:
    return ch.isalnum() or ch in "_$"


def split_string_segments(text: str) -> list[tuple[bool, str]]:
    """Split *text* into ``(is_string, segment)`` runs.

    String segments include their surrounding quotes. An unterminated string
    runs to the end of the text.
    """
    segments: list[tuple[bool, str]] = []
    buf: list[str] = []
    in_string = False
    escape = False
    for ch in text:
        if in_string:
            buf.append(ch)
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                segments.append((True, "".join(buf)))
                buf = []
                in_string = False
        elif ch == '"':
            if buf:
                segments.append((False, "".join(buf)))
            buf = [ch]
            in_string = True
        else:
            buf.append(ch)
    if buf:
        segments.append((in_string, "".join(buf)))
    return segments


class ResponseSanitizer:
    """Deterministic repair + parse of raw model text into a dict."""

    def __init__(self, *, decimal_places: int = 4, snippet_chars: int = 200) -> None:
        self._decimal_places = decimal_places
        self._snippet_chars = snippet_chars

    def sanitize(self, raw: str) -> dict[str, Any]:
        """Parse *raw* model output into a dict.

        Raises:
            NoJsonObjectFound: no ``{ ... }`` region in the text.
            UnrecoverableMalformedResponse: still unparseable after repair.
        """
        text = isolate_object(strip_code_fences(raw))
        text = self.repair(text)

        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            log.debug("First parse failed (%s); applying fallback repair", e.msg)

        text = self.fallback_repair(text)
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            log.warning(
                "Model response unparseable after repair",
                extra={"response_length": len(text), "error": e.msg, "position": e.pos},
            )
            raise UnrecoverableMalformedResponse(
                f"{e.msg} at line {e.lineno} column {e.colno}",
                self.snippet(text, e.pos),
            ) from e

    # ── step 3 ───────────────────────────────────────────────────────

    def repair(self, text: str) -> str:
        """Insert missing separators and normalize numerics outside strings."""
        out: list[str] = []
        i = 0
        n = len(text)
        in_string = False
        escape = False

        while i < n:
            ch = text[i]

            if in_string:
                out.append(ch)
                if escape:
                    escape = False
                elif ch == "\\":
                    escape = True
                elif ch == '"':
                    in_string = False
                i += 1
                continue

            if ch == '"':
                in_string = True
                out.append(ch)
                i += 1
                continue

            if ch in "}]":
                out.append(ch)
                j = i + 1
                while j < n and text[j].isspace():
                    j += 1
                if j < n and text[j] in "{[":
                    out.append(",")
                i += 1
                continue

            at_boundary = i == 0 or not (_is_word_char(text[i - 1]) or text[i - 1] == ".")
            if at_boundary and (ch in _NUMBER_START or ch in "IN"):
                m = _NON_FINITE.match(text, i)
                if m and not (m.end() < n and _is_word_char(text[m.end()])):
                    out.append("0")
                    i = m.end()
                    continue
                m = _NUMBER.match(text, i)
                if m:
                    out.append(self.format_number(m.group()))
                    i = m.end()
                    continue

            out.append(ch)
            i += 1

        return "".join(out)

    def format_number(self, token: str) -> str:
        """Render a numeric token rounded, in plain decimal notation."""
        try:
            value = float(token)
        except ValueError:
            return token
        if not math.isfinite(value) or (value != 0 and abs(value) < TINY_MAGNITUDE):
            return "0"
        rendered = f"{value:.{self._decimal_places}f}"
        if "." in rendered:
            rendered = rendered.rstrip("0").rstrip(".")
        if rendered in ("-0", "", "-"):
            rendered = "0"
        return rendered

    # ── step 4 ───────────────────────────────────────────────────────

    @staticmethod
    def fallback_repair(text: str) -> str:
        """Drop trailing commas, quote bare keys, map ``None``/``True``/``False``."""
        parts: list[str] = []
        for is_string, segment in split_string_segments(text):
            if not is_string:
                segment = _TRAILING_COMMA.sub(r"\1", segment)
                segment = _BARE_KEY.sub(r'\1"\2"\3', segment)
                segment = _PY_LITERALS.sub(lambda m: _PY_TO_JSON[m.group(1)], segment)
            parts.append(segment)
        return "".join(parts)

    # ── diagnostics ──────────────────────────────────────────────────

    def snippet(self, text: str, position: int) -> str:
        """A window of at most ``snippet_chars`` around *position*."""
        half = self._snippet_chars // 2
        start = max(0, min(position - half, len(text) - self._snippet_chars))
        end = min(len(text), start + self._snippet_chars)
        window = text[start:end]
        if start > 0:
            window = "..." + window
        if end < len(text):
            window = window + "..."
        return window


_default = ResponseSanitizer()


def sanitize(raw: str) -> dict[str, Any]:
    """Sanitize with the default settings (4 decimal places)."""
    return _default.sanitize(raw)
