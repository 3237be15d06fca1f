"""Active plan state: current phase and the plan-mode tool policy."""

from pathlib import Path
from typing import Callable, Optional

from relaycode.plan.manager import PLAN_DOCUMENTS
from relaycode.plan.phases import PlanPhase, PhaseTransitionDetector, RegexPhaseDetector
from relaycode.style import debug_block


# Tools that never change the workspace
READ_ONLY_TOOLS = frozenset({
    "read_file",
    "find_files",
    "search_file_contents",
    "list_directory",
})

PLAN_CONTROL_TOOLS = frozenset({"enter-plan-mode", "exit-plan-mode"})

DOCUMENT_TOOLS = frozenset({"write_file", "string_replace"})

PhaseListener = Callable[[PlanPhase, PlanPhase], None]


class PlanSession:
    """One plan being worked on in plan mode."""

    def __init__(
        self,
        slug: str,
        directory: Path,
        detector: Optional[PhaseTransitionDetector] = None,
        workspace_root: Optional[Path] = None,
        read_only_tools=READ_ONLY_TOOLS,
        debug: bool = False,
    ):
        self.slug = slug
        self.directory = Path(directory)
        self.detector = detector or RegexPhaseDetector()
        # .relaycode/plans/<slug> sits three levels below the workspace root
        self.workspace_root = Path(workspace_root) if workspace_root else self.directory.parents[2]
        self.read_only_tools = frozenset(read_only_tools)
        self.debug = debug
        self._phase = PlanPhase.UNDERSTANDING
        self._listeners: list[PhaseListener] = []

    @property
    def phase(self) -> PlanPhase:
        return self._phase

    def on_phase_change(self, callback: PhaseListener) -> None:
        self._listeners.append(callback)

    def advance_to(self, phase: PlanPhase) -> bool:
        """Move to `phase` if it is strictly ahead of the current phase.

        Returns:
            True if the phase changed.
        """
        if phase <= self._phase:
            self._log_debug("PHASE", {
                "ignored": phase.value,
                "current": self._phase.value,
            })
            return False

        old = self._phase
        self._phase = phase
        self._log_debug("PHASE", {"from": old.value, "to": phase.value})
        for listener in self._listeners:
            listener(old, phase)
        return True

    def observe(self, text: str) -> Optional[PlanPhase]:
        """Scan model output for a phase announcement and apply it.

        Returns:
            The new phase, or None if nothing changed.
        """
        target = self.detector.detect_transition(text or "", self._phase)
        if target is not None and self.advance_to(target):
            return target
        return None

    def _plan_document(self, path) -> Optional[str]:
        """Return the document name if `path` targets this plan, else None."""
        if not isinstance(path, str) or not path:
            return None
        target = Path(path).expanduser()
        if not target.is_absolute():
            target = self.workspace_root / target
        target = target.resolve()
        if target.parent == self.directory.resolve() and target.name in PLAN_DOCUMENTS:
            return target.name
        return None

    def is_tool_allowed(self, name: str, arguments: dict = None) -> tuple[bool, str]:
        """Check a tool call against the plan-mode policy.

        Returns:
            (allowed, reason) where reason is empty when allowed.
        """
        if name in self.read_only_tools or name in PLAN_CONTROL_TOOLS:
            return True, ""

        phase = self._phase.value
        if name in DOCUMENT_TOOLS:
            path = (arguments or {}).get("path")
            document = self._plan_document(path)
            if document is None:
                return False, (
                    f"Tool '{name}' is not available in plan mode ({phase} phase). "
                    f"Only the plan documents in {self.directory} may be written."
                )
            if document == "tasks.md" and self._phase < PlanPhase.FINAL:
                return False, (
                    f"tasks.md can only be written in the final plan phase "
                    f"(current: {phase} phase)."
                )
            return True, ""

        return False, (
            f"Tool '{name}' is not available in plan mode ({phase} phase). "
            "Use read-only tools to explore and write findings to the plan documents."
        )

    def _log_debug(self, label: str, data) -> None:
        if self.debug:
            print(debug_block(label, data))


class PlanState:
    """Holds the active plan session, if any, for the tools and the loop."""

    def __init__(self):
        self.session: Optional[PlanSession] = None

    @property
    def active(self) -> bool:
        return self.session is not None

    def start(self, session: PlanSession) -> None:
        self.session = session

    def clear(self) -> None:
        self.session = None
