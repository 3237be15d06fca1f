"""Plan mode: phases, plan directories and the active plan session."""

from relaycode.plan.phases import (
    PlanPhase,
    PhaseTransitionDetector,
    RegexPhaseDetector,
    PHASE_LABELS,
)
from relaycode.plan.manager import (
    PlanManager,
    PlanInfo,
    PlanModeError,
    DirectoryValidation,
    PLAN_DOCUMENTS,
)
from relaycode.plan.session import PlanSession, PlanState
from relaycode.plan.slug import generate_slug, generate_unique_slug, is_valid_slug

__all__ = [
    "PlanPhase",
    "PhaseTransitionDetector",
    "RegexPhaseDetector",
    "PHASE_LABELS",
    "PlanManager",
    "PlanInfo",
    "PlanModeError",
    "DirectoryValidation",
    "PLAN_DOCUMENTS",
    "PlanSession",
    "PlanState",
    "generate_slug",
    "generate_unique_slug",
    "is_valid_slug",
]
