"""Bounded repair of model output into the mandatory section layout.

The pipeline is a small finite-state machine::

    RAW ──valid──────────────▶ VALID
     └─invalid─▶ REFORMATTING ─valid──▶ VALID
                      └─invalid / budget spent─▶ FALLBACK

Exactly one reformat call is made at most. FALLBACK discards the model text
and substitutes a fixed placeholder report, so every outcome carries the five
required headings.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, List

from pydantic import BaseModel, ConfigDict, Field

from ..errors import StructuralMismatch
from ..util.logging import emit_event, get_logger
from .sections import FALLBACK_REPORT, require_structure

logger = get_logger(__name__)


class RepairState(str, Enum):
    RAW = "raw"
    REFORMATTING = "reformatting"
    VALID = "valid"
    FALLBACK = "fallback"


TERMINAL_STATES = {RepairState.VALID, RepairState.FALLBACK}


class AnalysisResult(BaseModel):
    """Final coaching report. ``structurally_valid`` is False when the fallback was used."""

    model_config = ConfigDict(frozen=True)

    text: str
    structurally_valid: bool
    outcome: RepairState
    reformat_attempts: int = 0
    trail: List[RepairState] = Field(default_factory=list)


class RepairPipeline:
    def __init__(self, reformat: Callable[[str], str], *, max_reformats: int = 1) -> None:
        self._reformat = reformat
        self._max_reformats = max_reformats

    def run(self, raw_text: str) -> AnalysisResult:
        state = RepairState.RAW
        text = raw_text
        attempts = 0
        trail = [state]

        while state not in TERMINAL_STATES:
            if state is RepairState.REFORMATTING:
                attempts += 1
                text = self._reformat(text).strip()
            try:
                require_structure(text)
            except StructuralMismatch as exc:
                emit_event(logger, "analysis.repair.mismatch", state=state.value, missing=len(exc.missing))
                state = RepairState.REFORMATTING if attempts < self._max_reformats else RepairState.FALLBACK
            else:
                state = RepairState.VALID
            trail.append(state)

        if state is RepairState.FALLBACK:
            emit_event(logger, "analysis.repair.fallback", reformat_attempts=attempts)
            text = FALLBACK_REPORT

        return AnalysisResult(
            text=text,
            structurally_valid=state is RepairState.VALID,
            outcome=state,
            reformat_attempts=attempts,
            trail=trail,
        )


__all__ = ["AnalysisResult", "RepairPipeline", "RepairState"]
