"""Development mode state (normal / auto-accept / plan)."""

from enum import Enum
from typing import Callable


class DevelopmentMode(Enum):
    """How much autonomy the agent has over tool execution."""
    NORMAL = "normal"            # Ask before writes and commands
    AUTO_ACCEPT = "auto-accept"  # File edits run without asking
    PLAN = "plan"                # Read-only exploration plus plan documents

    @property
    def label(self) -> str:
        return f"{self.value} mode"

    @classmethod
    def parse(cls, value: "str | DevelopmentMode") -> "DevelopmentMode":
        """Parse a mode name, accepting underscores as well as dashes."""
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower().replace("_", "-")
        for mode in cls:
            if mode.value == normalized:
                return mode
        raise ValueError(
            f"Unknown mode '{value}'. Choose one of: "
            + ", ".join(m.value for m in cls)
        )


# Modes from which plan mode may be entered, and the only valid starting modes
PLAN_ENTRY_MODES = (DevelopmentMode.NORMAL, DevelopmentMode.AUTO_ACCEPT)


def starting_mode(value: "str | DevelopmentMode") -> DevelopmentMode:
    """Parse a configured starting mode.

    Plan mode needs an active plan, so it is only entered through the
    enter-plan-mode tool; a plan start falls back to normal mode.

    Raises:
        ValueError: If the name is not a mode at all.
    """
    mode = DevelopmentMode.parse(value)
    if mode not in PLAN_ENTRY_MODES:
        return DevelopmentMode.NORMAL
    return mode


class ModeManager:
    """Holds the current development mode and notifies listeners on change."""

    def __init__(self, initial_mode: DevelopmentMode = DevelopmentMode.NORMAL):
        self._mode = initial_mode
        self._listeners: list[Callable[[DevelopmentMode, DevelopmentMode], None]] = []

    @property
    def mode(self) -> DevelopmentMode:
        """Current development mode."""
        return self._mode

    @property
    def is_normal(self) -> bool:
        return self._mode == DevelopmentMode.NORMAL

    @property
    def is_auto_accept(self) -> bool:
        return self._mode == DevelopmentMode.AUTO_ACCEPT

    @property
    def is_plan(self) -> bool:
        return self._mode == DevelopmentMode.PLAN

    def set_mode(self, mode: DevelopmentMode) -> None:
        """Switch to a new mode. Listeners get (old, new) only on change."""
        old_mode = self._mode
        self._mode = mode
        if old_mode != mode:
            for listener in self._listeners:
                listener(old_mode, mode)

    def on_mode_change(
        self, callback: Callable[[DevelopmentMode, DevelopmentMode], None]
    ) -> None:
        """Register a listener for mode changes."""
        self._listeners.append(callback)

    def can_enter_plan_mode(self) -> bool:
        return self._mode in PLAN_ENTRY_MODES
