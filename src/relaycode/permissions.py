"""Approval gate for tool execution.

Each tool carries a risk tier. The gate maps (tool, development mode,
always-allow set) to "needs human approval" and runs the confirmation prompt
when it does.
"""

import sys
from enum import Enum
from typing import Callable, Iterable, Optional, TYPE_CHECKING

from relaycode.cancellation import CancellationToken
from relaycode.mode import DevelopmentMode
from relaycode.style import yellow, green, red, cyan

if TYPE_CHECKING:
    from relaycode.tools.base import Tool


class Risk(Enum):
    """Risk tiers for tools."""
    READ_ONLY = "read-only"  # Never asks
    MEDIUM = "medium"        # File writes, renames; auto-accept skips the prompt
    HIGH = "high"            # Arbitrary command execution; always asks


class PermissionDenied(Exception):
    """Raised when the user declines a tool call."""
    pass


class FeedbackProvided(Exception):
    """Raised when the user wants to redirect the model instead of answering."""

    def __init__(self, feedback: str):
        self.feedback = feedback
        super().__init__(f"User feedback: {feedback}")


PromptFn = Callable[[str, str], str]


def needs_approval_for_risk(
    risk: Risk,
    mode: DevelopmentMode,
    tool_name: str = "",
    always_allow: Iterable[str] = (),
) -> bool:
    """Default approval policy for a risk tier.

    An explicit always-allow entry wins over every tier.
    """
    if tool_name and tool_name in set(always_allow):
        return False
    if risk == Risk.READ_ONLY:
        return False
    if risk == Risk.HIGH:
        return True
    return mode != DevelopmentMode.AUTO_ACCEPT


class ApprovalGate:
    """Decides whether a tool call needs confirmation and asks for it."""

    def __init__(
        self,
        always_allow: Optional[Iterable[str]] = None,
        prompt_fn: Optional[PromptFn] = None,
    ):
        """Initialize the gate.

        Args:
            always_allow: Tool names that never need approval.
            prompt_fn: Called as prompt_fn(tool_name, description) and must
                return "yes", "always", "no" or "feedback:<text>". Defaults
                to an interactive terminal prompt.
        """
        self._always_allow: set[str] = set(always_allow or ())
        self._prompt_fn = prompt_fn or default_prompt

    @property
    def always_allow(self) -> frozenset[str]:
        return frozenset(self._always_allow)

    def allow_always(self, tool_name: str) -> None:
        """Add a tool to the always-allow set for the rest of the session."""
        self._always_allow.add(tool_name)

    def needs_approval(self, tool: "Tool", mode: DevelopmentMode) -> bool:
        """Check whether `tool` must be confirmed in `mode`."""
        return tool.needs_approval(mode, self.always_allow)

    def request(
        self,
        tool_name: str,
        description: str,
        token: Optional[CancellationToken] = None,
    ) -> bool:
        """Ask the user to approve a call.

        Returns:
            True if approved.

        Raises:
            PermissionDenied: If the user declines.
            FeedbackProvided: If the user answers with feedback instead.
            OperationCancelled: If the turn was cancelled while waiting.
        """
        if token:
            token.raise_if_cancelled()

        response = self._prompt_fn(tool_name, description).strip()

        if token:
            token.raise_if_cancelled()

        lowered = response.lower()
        if lowered in ("yes", "allow"):
            return True
        if lowered == "always":
            self.allow_always(tool_name)
            return True
        if lowered.startswith("feedback:"):
            raise FeedbackProvided(response[len("feedback:"):].strip())
        raise PermissionDenied(f"Tool call '{tool_name}' was declined by the user.")


def decline_prompt(tool_name: str, description: str) -> str:
    """Prompt used for unattended sessions: never approves."""
    return "no"


def default_prompt(tool_name: str, description: str) -> str:
    """Interactive confirmation prompt."""
    print()
    print(yellow(f"+-- APPROVE: {tool_name} " + "-" * max(40 - len(tool_name), 0) + "+"))
    for line in description.split("\n"):
        print(f"|  {line}")
    print("+" + "-" * 57 + "+")
    print(f"|  {green('[y]es')}  {green('[a]lways')}  {red('[n]o')}  {cyan('[f]eedback')}")
    print("+" + "-" * 57 + "+")

    if not sys.stdin.isatty():
        print("  > [Declining in non-interactive mode]")
        return "no"

    try:
        response = input("  > ").strip().lower()
    except EOFError:
        print("  > [Declining on EOF]")
        return "no"

    if response in ("f", "feedback"):
        print(cyan("  What should the assistant do instead?"))
        try:
            feedback_text = input("  > ").strip()
        except EOFError:
            return "no"
        if feedback_text:
            return f"feedback:{feedback_text}"
        print("  [No feedback provided, declining]")
        return "no"

    mapping = {
        "y": "yes",
        "yes": "yes",
        "a": "always",
        "always": "always",
        "n": "no",
        "no": "no",
    }
    return mapping.get(response, "no")
