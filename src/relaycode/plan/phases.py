"""Plan phases and transition detection.

The model announces phase changes in prose ("Moving to the design phase").
A detector scans each response for those announcements; only transitions
strictly ahead of the current phase are reported.
"""

import re
from enum import Enum
from typing import Optional, Protocol


class PlanPhase(Enum):
    """Phases of the plan workflow, in order."""
    UNDERSTANDING = "understanding"
    DESIGN = "design"
    REVIEW = "review"
    FINAL = "final"
    EXIT = "exit"

    @property
    def ordinal(self) -> int:
        return _ORDER.index(self)

    @property
    def label(self) -> str:
        return PHASE_LABELS[self]

    def __lt__(self, other):
        if not isinstance(other, PlanPhase):
            return NotImplemented
        return self.ordinal < other.ordinal

    def __le__(self, other):
        if not isinstance(other, PlanPhase):
            return NotImplemented
        return self.ordinal <= other.ordinal

    def __gt__(self, other):
        if not isinstance(other, PlanPhase):
            return NotImplemented
        return self.ordinal > other.ordinal

    def __ge__(self, other):
        if not isinstance(other, PlanPhase):
            return NotImplemented
        return self.ordinal >= other.ordinal


_ORDER = [
    PlanPhase.UNDERSTANDING,
    PlanPhase.DESIGN,
    PlanPhase.REVIEW,
    PlanPhase.FINAL,
    PlanPhase.EXIT,
]

PHASE_LABELS = {
    PlanPhase.UNDERSTANDING: "Understanding",
    PlanPhase.DESIGN: "Design",
    PlanPhase.REVIEW: "Review",
    PlanPhase.FINAL: "Final Plan",
    PlanPhase.EXIT: "Exit",
}


class PhaseTransitionDetector(Protocol):
    """Anything that can spot a phase announcement in model output."""

    def detect_transition(self, text: str, current: PlanPhase) -> Optional[PlanPhase]:
        ...


def _compile(*patterns: str) -> list:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


# Announcement phrases per target phase, checked in phase order
TRANSITION_PATTERNS = {
    PlanPhase.DESIGN: _compile(
        r"moving to the design phase",
        r"transitioning to design phase",
        r"entering the design phase",
        r"now in the design phase",
        r"design phase:",
        r"##\s*Design Phase",
        r"\*\*Design Phase\*\*",
        r"proceeding to design",
        r"beginning design phase",
    ),
    PlanPhase.REVIEW: _compile(
        r"moving to the review phase",
        r"transitioning to review phase",
        r"entering the review phase",
        r"now in the review phase",
        r"review phase:",
        r"##\s*Review Phase",
        r"\*\*Review Phase\*\*",
        r"proceeding to review",
        r"beginning review phase",
        r"consolidat(ing|e the) plan",
    ),
    PlanPhase.FINAL: _compile(
        r"moving to the final plan phase",
        r"transitioning to final plan phase",
        r"entering the final plan phase",
        r"now in the final plan phase",
        r"final plan phase:",
        r"moving to the final phase",
        r"##\s*Final Plan Phase",
        r"\*\*Final Plan Phase\*\*",
        r"proceeding to final",
        r"beginning final plan",
        r"create(ing)? the final plan",
        r"moving to create the executable",
    ),
    PlanPhase.EXIT: _compile(
        r"plan is complete",
        r"plan is ready",
        r"calling exit-plan-mode",
        r"exiting plan mode",
        r"\[EXIT_PLAN_MODE\]",
        r"exit.?plan.?mode",
    ),
}


class RegexPhaseDetector:
    """Detects phase announcements with a fixed table of regular expressions."""

    def __init__(self, patterns: dict = None):
        self.patterns = patterns if patterns is not None else TRANSITION_PATTERNS

    def detect_transition(self, text: str, current: PlanPhase) -> Optional[PlanPhase]:
        """Return the first announced phase strictly ahead of `current`.

        Announcements of the current or an earlier phase are ignored, so a
        response that recaps earlier phases never moves the plan backwards.
        """
        if not text:
            return None
        for target in _ORDER:
            if target <= current:
                continue
            for pattern in self.patterns.get(target, ()):
                if pattern.search(text):
                    return target
        return None
