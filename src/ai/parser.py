"""Best-effort parser for the critic's templated free-text reply.

The oracle is only asked (not forced) to follow the template, so every field is
optional: the first line starting with a label wins, a missing field falls back
to its default, and a malformed score becomes 0. Only a reply that is not text
at all is an error.
"""

import logging
import re

from src.ai.schema import ScoreSection, TreeRating
from src.core.errors import ParseError

_log = logging.getLogger(__name__)

AESTHETICS_SCORE = "Aesthetics Score:"
AESTHETICS_EXPLANATION = "Aesthetics Explanation:"
ORIGINALITY_SCORE = "Originality Score:"
ORIGINALITY_EXPLANATION = "Originality Explanation:"
GREAT_FEATURE = "Great Feature:"
IMPROVEMENTS = "Improvements:"

_NUMBER_RE = re.compile(r"[-+]?(?:\d+(?:\.\d*)?|\.\d+)")
_IMPROVEMENT_RE = re.compile(r"^\d\.")
_IMPROVEMENT_PREFIX_RE = re.compile(r"^\d\.\s*")


def _find_value(lines: list[str], label: str) -> str | None:
    """Text after label on the first line that starts with it, or None."""
    for line in lines:
        if line.startswith(label):
            return line[len(label):]
    return None


def _parse_score(value: str | None) -> float:
    if value is None:
        return 0
    match = _NUMBER_RE.search(value)
    if match is None:
        return 0
    try:
        return float(match.group(0))
    except ValueError:
        return 0


def _parse_text(value: str | None) -> str:
    return value.strip() if value is not None else ""


def _parse_improvements(lines: list[str]) -> list[str]:
    start = 0
    for i, line in enumerate(lines):
        if line.startswith(IMPROVEMENTS):
            start = i + 1
            break
    items: list[str] = []
    for line in lines[start:]:
        stripped = line.strip()
        if _IMPROVEMENT_RE.match(stripped):
            items.append(_IMPROVEMENT_PREFIX_RE.sub("", stripped).strip())
    return items


def parse_rating(text: str) -> TreeRating:
    """Turn the critic reply into a TreeRating. Raises ParseError if text cannot be split into lines."""
    if not isinstance(text, str):
        raise ParseError(f"Failed to parse critic response: expected text, got {type(text).__name__}")

    lines = text.strip().split("\n")
    rating = TreeRating(
        aesthetics=ScoreSection(
            score=_parse_score(_find_value(lines, AESTHETICS_SCORE)),
            explanation=_parse_text(_find_value(lines, AESTHETICS_EXPLANATION)),
        ),
        originality=ScoreSection(
            score=_parse_score(_find_value(lines, ORIGINALITY_SCORE)),
            explanation=_parse_text(_find_value(lines, ORIGINALITY_EXPLANATION)),
        ),
        great_features=_parse_text(_find_value(lines, GREAT_FEATURE)),
        improvements=_parse_improvements(lines),
    )
    _log.debug("Parsed rating: %s", rating.model_dump(by_alias=True))
    return rating
