"""Tools that enter and leave plan mode."""

from pathlib import Path
from typing import Callable, Iterable, Optional

from relaycode.mode import DevelopmentMode, PLAN_ENTRY_MODES
from relaycode.permissions import Risk
from relaycode.plan import PlanManager, PlanPhase, PlanSession, PlanState, PHASE_LABELS
from relaycode.tools.base import Tool, ToolResult


# Called when exit-plan-mode gets no next_mode; None falls back to normal
ModeSelector = Callable[[], Optional[DevelopmentMode]]

EXIT_MODES = ("normal", "auto-accept")


class _PlanModeTool(Tool):
    risk = Risk.READ_ONLY

    def __init__(
        self,
        mode_manager=None,
        config=None,
        workspace=None,
        plan_state: PlanState = None,
        mode_selector: ModeSelector = None,
    ):
        super().__init__(mode_manager, config, workspace)
        self.plan_state = plan_state if plan_state is not None else PlanState()
        self.mode_selector = mode_selector

    def needs_approval(self, mode: DevelopmentMode, always_allow: Iterable[str] = ()) -> bool:
        # Mode changes are user-visible and reversible
        return False

    def _workspace_root(self) -> Path:
        if self.workspace and self.workspace.is_initialized:
            return self.workspace.root
        return Path.cwd().resolve()

    def _current_mode(self) -> DevelopmentMode:
        if self.mode:
            return self.mode.mode
        return DevelopmentMode.PLAN if self.plan_state.active else DevelopmentMode.NORMAL


class EnterPlanModeTool(_PlanModeTool):
    """Start a new plan and switch to plan mode."""

    name = "enter-plan-mode"
    description = (
        "Enter Plan Mode for structured planning. Creates a new plan directory and starts "
        "the phase workflow (Understanding -> Design -> Review -> Final Plan -> Exit). "
        "In plan mode only read-only tools and writes to the plan documents are allowed."
    )

    def execute(self, skip_directory_validation: bool = False) -> ToolResult:
        current = self._current_mode()
        if current not in PLAN_ENTRY_MODES or self.plan_state.active:
            return ToolResult.fail(
                f"Cannot enter plan mode from {current.label}. "
                "Plan mode can only be entered from normal or auto-accept mode."
            )

        root = self._workspace_root()
        manager = PlanManager(root)

        if not skip_directory_validation:
            validation = manager.validate_directory()
            if not validation.valid:
                return ToolResult.fail(
                    f"Directory validation failed: {validation.reason}. "
                    "To skip validation, set skip_directory_validation=true."
                )

        try:
            plan = manager.create_plan()
        except OSError as e:
            return ToolResult.fail(f"Failed to enter plan mode: {e}")

        debug = bool(self.config and self.config.debug)
        session = PlanSession(plan.slug, plan.path, workspace_root=root, debug=debug)
        self.plan_state.start(session)
        if self.mode:
            self.mode.set_mode(DevelopmentMode.PLAN)

        directory = self._display_path(plan.path)
        output = (
            f"Entered Plan Mode\n\n"
            f"Plan: {plan.slug}\n"
            f"Directory: {directory}\n"
            f"Phase: {PHASE_LABELS[PlanPhase.UNDERSTANDING]}\n\n"
            "Use read-only tools to explore the codebase and write your findings to the "
            "plan documents (proposal.md, design.md, spec.md, plan.md; tasks.md in the "
            "final phase). Announce each phase as you reach it:\n"
            "1. Understanding - Gather requirements\n"
            "2. Design - Explore approaches\n"
            "3. Review - Present plan for feedback\n"
            "4. Final Plan - Create task list\n"
            "5. Exit - Call exit-plan-mode to present the plan\n"
        )
        return ToolResult.ok(output)

    def get_schema(self) -> dict:
        return {
            "properties": {
                "skip_directory_validation": {
                    "type": "boolean",
                    "description": "Skip the read/write checks on the plans directory"
                }
            },
            "required": []
        }


class ExitPlanModeTool(_PlanModeTool):
    """Finish the active plan, show its documents and leave plan mode."""

    name = "exit-plan-mode"
    description = (
        "Exit Plan Mode and present the completed plan. Reads back all plan documents and "
        "switches to the next mode (normal or auto-accept) for implementation."
    )

    def execute(self, next_mode: str = None) -> ToolResult:
        session = self.plan_state.session
        current = self._current_mode()
        if session is None or current != DevelopmentMode.PLAN:
            return ToolResult.fail(
                f"Cannot exit plan mode from {current.label}. Plan mode is not currently active."
            )

        if next_mode is not None:
            if next_mode not in EXIT_MODES:
                return ToolResult.fail(
                    f'Invalid next_mode: "{next_mode}". Must be "normal" or "auto-accept".'
                )
            target = DevelopmentMode.parse(next_mode)
        else:
            target = self.mode_selector() if self.mode_selector else None
            if target not in PLAN_ENTRY_MODES:
                target = DevelopmentMode.NORMAL

        manager = PlanManager(session.workspace_root)
        documents = manager.read_all(session.slug)

        final_phase = session.phase
        session.advance_to(PlanPhase.EXIT)
        self.plan_state.clear()
        if self.mode:
            self.mode.set_mode(target)

        directory = self._display_path(session.directory)
        parts = [
            "Exited Plan Mode\n",
            f"Plan: {session.slug}",
            f"Final Phase: {PHASE_LABELS[final_phase]}",
            f"Directory: {directory}",
            f"Next Mode: {target.label}\n",
            "--- PLAN CONTENT ---\n",
        ]
        for name, content in documents.items():
            parts.append(f"=== {name} ===")
            parts.append(content.rstrip("\n") + "\n")
        parts.append("--- END OF PLAN ---\n")
        parts.append(f"You can now proceed with implementation in {target.label}.")
        return ToolResult.ok("\n".join(parts))

    def get_schema(self) -> dict:
        return {
            "properties": {
                "next_mode": {
                    "type": "string",
                    "enum": list(EXIT_MODES),
                    "description": "Mode to switch to after exiting (default: normal)"
                }
            },
            "required": []
        }
