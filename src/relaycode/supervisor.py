"""Tool execution supervisor.

Runs the tool calls of one model response in order: resolve the tool,
apply the plan-mode policy, ask for approval when needed, execute, and turn
every outcome (including failures) into a ToolResult for the model.
"""

from typing import Any, Callable, Optional, TYPE_CHECKING

from relaycode.cancellation import CancellationToken, OperationCancelled
from relaycode.llm.base import ToolCall, ToolResult
from relaycode.mode import DevelopmentMode
from relaycode.permissions import ApprovalGate, PermissionDenied, FeedbackProvided
from relaycode.style import debug_block, red, cyan, dim

if TYPE_CHECKING:
    from relaycode.mode import ModeManager
    from relaycode.plan import PlanState
    from relaycode.tools.registry import ToolRegistry


CANCELLED_OUTPUT = "Cancelled before execution."

EventHook = Callable[[str, Any], None]


def unknown_tool_message(name: str) -> str:
    return (
        f"Error: Unknown tool '{name}'. This tool does not exist. "
        "Please use only the tools that are available in the system."
    )


def declined_message(name: str, feedback: str = "") -> str:
    message = f"Tool call '{name}' was declined by the user."
    if feedback:
        message += f" User feedback - do this instead: {feedback}"
    return message


class ToolSupervisor:
    """Executes tool calls with approval and plan-mode checks."""

    def __init__(
        self,
        registry: "ToolRegistry",
        gate: ApprovalGate,
        mode_manager: "ModeManager" = None,
        plan_state: "PlanState" = None,
        on_event: Optional[EventHook] = None,
        verbose: bool = True,
        debug: bool = False,
    ):
        self.registry = registry
        self.gate = gate
        self.mode_manager = mode_manager
        self.plan_state = plan_state
        self.on_event = on_event
        self.verbose = verbose
        self.debug = debug

    @property
    def mode(self) -> DevelopmentMode:
        if self.mode_manager:
            return self.mode_manager.mode
        return DevelopmentMode.NORMAL

    def _emit(self, kind: str, payload: Any) -> None:
        if self.on_event:
            self.on_event(kind, payload)

    def _print(self, text: str) -> None:
        if self.verbose:
            print(text)

    def execute(
        self,
        tool_calls: list[ToolCall],
        token: Optional[CancellationToken] = None,
        fill_cancelled: bool = True,
    ) -> list[ToolResult]:
        """Execute tool calls in order.

        Args:
            tool_calls: Calls from one model response.
            token: Cancellation token, checked before each tool starts.
            fill_cancelled: When cancelled, give the remaining calls a
                "Cancelled before execution." result instead of dropping them.

        Returns:
            One result per executed call, in call order.
        """
        results: list[ToolResult] = []

        for index, call in enumerate(tool_calls):
            if token and token.is_cancelled:
                if fill_cancelled:
                    results.extend(self._cancelled(c) for c in tool_calls[index:])
                break

            try:
                result = self._execute_one(call, token)
            except OperationCancelled:
                if fill_cancelled:
                    results.extend(self._cancelled(c) for c in tool_calls[index:])
                break

            results.append(result)
            self._emit("tool_result", result)

        return results

    def _cancelled(self, call: ToolCall) -> ToolResult:
        return ToolResult(
            tool_call_id=call.id,
            output=CANCELLED_OUTPUT,
            name=call.name,
            is_error=True,
        )

    def _error(self, call: ToolCall, message: str) -> ToolResult:
        self._print(red(f"[Error] {message}"))
        return ToolResult(tool_call_id=call.id, output=message, name=call.name, is_error=True)

    def _execute_one(self, call: ToolCall, token: Optional[CancellationToken]) -> ToolResult:
        """Run a single call.

        Raises:
            OperationCancelled: If the turn is cancelled during approval.
        """
        self._emit("tool_call", call)
        self._log_debug("TOOL CALL", {"id": call.id, "name": call.name, "arguments": call.arguments})

        try:
            tool = self.registry.get(call.name)
        except KeyError:
            return self._error(call, unknown_tool_message(call.name))

        session = self.plan_state.session if self.plan_state else None
        if session is not None and self.mode == DevelopmentMode.PLAN:
            try:
                allowed, reason = session.is_tool_allowed(call.name, call.arguments)
            except Exception as e:
                return self._error(call, f"Error: Plan mode check failed: {e}")
            if not allowed:
                return self._error(call, f"Error: {reason}")

        if self.gate.needs_approval(tool, self.mode):
            description = tool.describe_call(call.arguments)
            try:
                self.gate.request(call.name, description, token=token)
            except PermissionDenied:
                self._print(red(f"[Denied] {call.name}"))
                return ToolResult(
                    tool_call_id=call.id,
                    output=declined_message(call.name),
                    name=call.name,
                    is_error=True,
                )
            except FeedbackProvided as e:
                self._print(cyan(f"[Feedback] {e.feedback}"))
                return ToolResult(
                    tool_call_id=call.id,
                    output=declined_message(call.name, e.feedback),
                    name=call.name,
                    is_error=True,
                )

        if token:
            token.raise_if_cancelled()

        try:
            output = tool.invoke(call.arguments)
        except OperationCancelled:
            raise
        except Exception as e:
            return self._error(call, f"Error: {e}")

        self._print(dim(f"[{call.name}] done"))
        return ToolResult(tool_call_id=call.id, output=output or "Success", name=call.name)

    def _log_debug(self, label: str, data: Any) -> None:
        if self.debug:
            print(debug_block(label, data))
