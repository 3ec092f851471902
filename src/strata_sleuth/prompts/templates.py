"""Prompt templates for extraction and synthesis calls.

Prompts are stored in ``_PROMPT_DATA`` and read through ``get_prompt``.
Templates use ``str.format`` placeholders, so literal braces are doubled.
"""

from __future__ import annotations

_PROMPT_DATA: dict[str, str] = {
    "SYSTEM_INSTRUCTION": """You are StrataSleuth, a forensic strata analyst. \
Simulate owning the property described by the supplied documents (contract of \
sale, strata minutes, financial statements, by-laws) for ten years and surface \
hidden liabilities.

Persona handling:
- Investor: analyse yield erosion from levy increases, forecast cashflow from \
the loan size and interest rate, check by-laws for short-term rental (Airbnb) \
restrictions, and recommend a weekly rent. Fill "investorWealth"; never fill \
"rentVsBuy".
- Occupier: focus on quality of life (balcony drying, soundproofing, pets, \
noise, recurring neighbour complaints). When the occupier has a mortgage, fill \
"rentVsBuy"; never fill "investorWealth".

Core directives:
- Track recurring structural issues across years of minutes.
- Audit building amenities (lifts, pools, gyms) and forecast repair cycles.
- Compare the maintenance plan against the sinking fund in "financialProjection".
- Every briefing point must cite the file name and page number it came from.

Output rules:
- Respond with a single valid JSON object only. No markdown.
- At most 10 timeline entries.
- Only the first 5 forecast years of "financialProjection" may carry "yieldImpact".""",
    "EXTRACTION_PROMPT": """Conduct a 10-year forensic living simulation for the \
attached documents ({document_names}).

Profile: {profile_description}

Key objectives:
1. Search for real rental market data for the address or suburb found in the documents.
2. For an occupier with a mortgage, provide a rent vs buy comparison.
3. For a light sleeper, scrutinise the minutes for night-time noise issues.

{numeric_rules}""",
    "SYNTHESIS_PROMPT": """Synthesis task: merge these {report_count} partial reports \
into one final, cohesive 10-year forensic living simulation.

Profile: {profile_description}

Instructions:
1. De-duplicate "briefingPoints" and keep accurate source citations.
2. Merge per-year "financialProjection" and "timeline" rows into a single \
unified 10-year span.
3. When the same risk appears in several partial reports, keep the most severe \
cited evidence.
4. Cap "timeline" at 10 entries.

{numeric_rules}

Partial reports:
{partial_reports}""",
    "NUMERIC_RULES": """Numeric rules: round every decimal value to at most 4 \
decimal places and never use scientific notation. Respond strictly in valid \
JSON with no trailing commas.""",
}


def get_prompt(name: str) -> str:
    """Look up a prompt template by name.

    Raises:
        KeyError: unknown prompt name.
    """
    return _PROMPT_DATA[name]


def build_extraction_prompt(profile_description: str, document_names: list[str]) -> str:
    return get_prompt("EXTRACTION_PROMPT").format(
        document_names=", ".join(document_names) or "none",
        profile_description=profile_description,
        numeric_rules=get_prompt("NUMERIC_RULES"),
    )


def build_synthesis_prompt(profile_description: str, partial_reports: str, report_count: int) -> str:
    return get_prompt("SYNTHESIS_PROMPT").format(
        report_count=report_count,
        profile_description=profile_description,
        numeric_rules=get_prompt("NUMERIC_RULES"),
        partial_reports=partial_reports,
    )
