"""Continuation detection.

Local models often narrate ("Let me check the config...") and stop without
calling a tool. This heuristic scores such a reply to decide whether the
conversation loop should nudge the model to keep going.
"""

from dataclasses import dataclass, field
from enum import Enum


@dataclass
class ContinuationPatterns:
    """Phrase lists and length bounds used by the detector."""
    starting_phrases: list[str] = field(default_factory=lambda: [
        "let me",
        "i'll",
        "i will",
        "now let me",
        "now i'll",
        "now i will",
        "next, i",
        "next i",
        "first, i",
        "first i",
        "going to",
        "i need to",
    ])
    conclusive_phrases: list[str] = field(default_factory=lambda: [
        "based on my analysis",
        "in summary",
        "to summarize",
        "to conclude",
        "in conclusion",
        "to answer your question",
        "to answer the question",
        "here is the answer",
        "here are the results",
        "the solution is",
        "this completes",
        "i have completed",
        "task completed",
        "done",
        "finished",
    ])
    action_verbs: list[str] = field(default_factory=lambda: [
        "check",
        "examine",
        "search",
        "read",
        "look at",
        "inspect",
        "investigate",
        "explore",
        "analyze",
        "review",
        "find",
        "locate",
        "identify",
    ])
    min_length: int = 10
    max_length: int = 1000


DEFAULT_PATTERNS = ContinuationPatterns()

CONTINUE_THRESHOLD = 0.4


@dataclass
class ContinuationResult:
    should_continue: bool
    confidence: float
    detected_patterns: list[str] = field(default_factory=list)
    reason: str = ""


class AutoContinueMode(Enum):
    """How the loop uses the detector."""
    ALWAYS = "always"
    SMART = "smart"
    NEVER = "never"

    @classmethod
    def parse(cls, value: "str | AutoContinueMode") -> "AutoContinueMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(
                f"Invalid auto_continue mode: {value!r} (expected always, smart or never)"
            ) from None


def detect_continuation(
    text: str,
    had_recent_tool_results: bool = False,
    patterns: ContinuationPatterns = DEFAULT_PATTERNS,
) -> ContinuationResult:
    """Score a tool-call-free reply for unfinished intent."""
    trimmed = text.strip()
    lower = trimmed.lower()

    if len(trimmed) < patterns.min_length:
        return ContinuationResult(False, 0.0, [], "Response too short")

    if len(trimmed) > patterns.max_length:
        return ContinuationResult(False, 0.0, [], "Response too long (likely complete)")

    detected: list[str] = []
    score = 0.0

    conclusive = next((p for p in patterns.conclusive_phrases if p in lower), None)
    if conclusive:
        detected.append(f"conclusive:{conclusive}")
        score -= 0.6

    starting = next((p for p in patterns.starting_phrases if lower.startswith(p)), None)
    if starting:
        detected.append(f"starting:{starting}")
        score += 0.5

    verbs = [v for v in patterns.action_verbs if v in lower]
    for verb in verbs:
        detected.append(f"action:{verb}")
    if verbs:
        score += min(len(verbs) * 0.15, 0.3)

    if had_recent_tool_results:
        score += 0.3
        detected.append("recent tool results")

    if trimmed.endswith(":"):
        score += 0.2
        detected.append("ends with colon")

    if trimmed.endswith("..."):
        score += 0.2
        detected.append("ends with ellipsis")

    if "?" in lower:
        score -= 0.2
        detected.append("contains question")

    confidence = max(0.0, min(1.0, score))
    should_continue = confidence >= CONTINUE_THRESHOLD

    if should_continue:
        reason = f"Detected continuation intent (confidence: {confidence:.2f})"
    else:
        reason = f"No clear continuation intent (confidence: {confidence:.2f})"

    return ContinuationResult(should_continue, confidence, detected, reason)


def should_auto_continue(mode: "AutoContinueMode | str", result: ContinuationResult) -> bool:
    """Apply the configured auto-continue mode to a detection result."""
    mode = AutoContinueMode.parse(mode)
    if mode is AutoContinueMode.ALWAYS:
        return True
    if mode is AutoContinueMode.SMART:
        return result.should_continue
    return False
