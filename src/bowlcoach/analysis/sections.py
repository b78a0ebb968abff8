"""Mandatory five-section layout of every coaching report."""

from __future__ import annotations

from typing import List

from ..errors import StructuralMismatch

REQUIRED_SECTIONS = (
    "1. Action Overview",
    "2. Observed Technical Points",
    "3. Performance & Risk Implications",
    "4. Coaching Cues & Focus Areas",
    "5. Disclaimer",
)

FALLBACK_REPORT = """1. Action Overview
   - A reliable action summary could not be generated from the current model response.

2. Observed Technical Points
   - Visual cues could not be extracted with enough confidence from this run.

3. Performance & Risk Implications
   - Because observations were limited, performance or loading implications remain uncertain.

4. Coaching Cues & Focus Areas
   - Re-check video quality and side-on alignment, then re-run analysis with a shorter, clearer clip.

5. Disclaimer
   - This feedback is informational and should be reviewed with a qualified cricket coach.
"""


def missing_sections(text: str) -> List[str]:
    return [section for section in REQUIRED_SECTIONS if section not in text]


def is_valid(text: str) -> bool:
    """True when every required heading appears somewhere in ``text``."""
    return all(section in text for section in REQUIRED_SECTIONS)


def require_structure(text: str) -> str:
    missing = missing_sections(text)
    if missing:
        raise StructuralMismatch(missing)
    return text


__all__ = ["FALLBACK_REPORT", "REQUIRED_SECTIONS", "is_valid", "missing_sections", "require_structure"]
