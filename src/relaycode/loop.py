"""Conversation loop: model call, normalize, run tools, repeat.

One call to ConversationLoop.run() processes a user turn until the model
gives a final answer, the turn is cancelled, or an unrecoverable error is
raised. History is only ever appended to; the pre-send filter works on a
copy.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Optional, TYPE_CHECKING

from relaycode.cancellation import CancellationToken, OperationCancelled
from relaycode.continuation import AutoContinueMode, detect_continuation, should_auto_continue
from relaycode.llm.base import LLMProvider, LLMResponse, Message, StreamCallbacks
from relaycode.llm.normalizer import (
    NormalizeOptions,
    NormalizedResponse,
    format_normalized_response,
    normalize,
    normalize_native,
)
from relaycode.mode import DevelopmentMode
from relaycode.style import debug_block, dim

if TYPE_CHECKING:
    from relaycode.mode import ModeManager
    from relaycode.plan import PlanState
    from relaycode.supervisor import ToolSupervisor


CONTINUE_NUDGE = "continue"

EventHook = Callable[[str, Any], None]


class LoopOutcome(Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass
class LoopResult:
    """How a turn ended.

    Attributes:
        outcome: completed or cancelled. Errors are raised, never returned.
        final_content: Text of the last assistant message.
        iterations: Model responses processed.
        model_calls: Requests sent to the model.
        messages: The history the loop appended to.
        cancel_reason: Why the turn was cancelled, if it was.
    """
    outcome: LoopOutcome
    final_content: str = ""
    iterations: int = 0
    model_calls: int = 0
    messages: list[Message] = field(default_factory=list)
    cancel_reason: str = ""

    @property
    def cancelled(self) -> bool:
        return self.outcome is LoopOutcome.CANCELLED

    def mark_cancelled(self, reason: str) -> "LoopResult":
        self.outcome = LoopOutcome.CANCELLED
        self.cancel_reason = reason
        return self


def _join(first: str, second: str) -> str:
    return "\n\n".join(part for part in (first, second) if part)


def filter_messages(messages: list[Message]) -> list[Message]:
    """Prepare history for sending.

    Drops assistant messages with neither content nor tool calls (and the
    tool messages right after them) and merges consecutive user/user or
    assistant/assistant messages. System and tool messages are never merged.
    The input list and its messages are left untouched.
    """
    filtered: list[Message] = []
    skipping_tools = False

    for message in messages:
        if message.role == "assistant" and not (message.content or "").strip() and not message.tool_calls:
            skipping_tools = True
            continue
        if message.role == "tool" and skipping_tools:
            continue
        skipping_tools = False

        previous = filtered[-1] if filtered else None
        if previous is not None and message.role in ("user", "assistant") and previous.role == message.role:
            filtered[-1] = replace(
                previous,
                content=_join(previous.content, message.content),
                tool_calls=list(previous.tool_calls) + list(message.tool_calls),
            )
            continue

        filtered.append(replace(message, tool_calls=list(message.tool_calls)))

    return filtered


def malformed_feedback(error: str) -> str:
    """User-role message asking the model to resend a broken tool call."""
    return (
        f"Your last response contained a malformed tool call and nothing was executed.\n"
        f"{error}\n"
        "Please resend the tool call with both a \"name\" and an \"arguments\" object, "
        "or answer without using a tool."
    )


class ConversationLoop:
    """Drives one user turn through the model and the tools."""

    def __init__(
        self,
        llm: LLMProvider,
        supervisor: "ToolSupervisor",
        mode_manager: "ModeManager" = None,
        plan_state: "PlanState" = None,
        system_prompt: Optional[str] = None,
        stream: bool = False,
        auto_continue: "AutoContinueMode | str" = AutoContinueMode.SMART,
        max_iterations: int = 0,
        max_malformed_retries: int = 2,
        normalize_options: Optional[NormalizeOptions] = None,
        on_event: Optional[EventHook] = None,
        debug: bool = False,
    ):
        self.llm = llm
        self.supervisor = supervisor
        self.mode_manager = mode_manager
        self.plan_state = plan_state
        self.system_prompt = system_prompt
        self.stream = stream
        self.auto_continue = AutoContinueMode.parse(auto_continue)
        self.max_iterations = max_iterations
        self.max_malformed_retries = max_malformed_retries
        self.normalize_options = normalize_options or NormalizeOptions(
            tool_names=supervisor.registry.tool_names()
        )
        self.on_event = on_event
        self.debug = debug

    def _emit(self, kind: str, payload: Any) -> None:
        if self.on_event:
            self.on_event(kind, payload)

    def _tool_schemas(self) -> list[dict]:
        return self.supervisor.registry.get_anthropic_tools()

    def _call_model(self, messages: list[Message], token: Optional[CancellationToken]) -> LLMResponse:
        filtered = filter_messages(messages)
        self._log_debug("REQUEST", {"messages": len(filtered), "stream": self.stream})
        if self.stream:
            callbacks = StreamCallbacks(
                on_token=lambda text: self._emit("token", text),
            )
            return self.llm.chat_stream(
                filtered,
                tools=self._tool_schemas(),
                callbacks=callbacks,
                system=self.system_prompt,
                token=token,
            )
        return self.llm.chat(
            filtered,
            tools=self._tool_schemas(),
            system=self.system_prompt,
            token=token,
        )

    def _normalize(self, response: LLMResponse) -> NormalizedResponse:
        # Provider-native calls win over anything found in the text
        if response.tool_calls:
            return normalize_native(response.content or "", response.tool_calls)
        if response.raw is not None:
            return normalize(response.raw, self.normalize_options)
        return normalize(response.content, self.normalize_options)

    def _observe_plan(self, content: str) -> None:
        if self.plan_state is None or self.plan_state.session is None:
            return
        if self.mode_manager and self.mode_manager.mode != DevelopmentMode.PLAN:
            return
        phase = self.plan_state.session.observe(content)
        if phase is not None:
            self._emit("phase", phase)

    def run(self, messages: list[Message], token: Optional[CancellationToken] = None) -> LoopResult:
        """Process the turn whose user message is already in `messages`.

        Returns:
            LoopResult with outcome completed or cancelled.

        Raises:
            LLMError: Or any other non-cancellation error from the model
                client. Messages appended before the failure are kept.
        """
        token = token or CancellationToken()
        result = LoopResult(outcome=LoopOutcome.COMPLETED, messages=messages)
        consumed_tool_results = False
        malformed_retries = 0

        while True:
            if token.is_cancelled:
                return result.mark_cancelled(token.reason)

            if self.max_iterations and result.iterations >= self.max_iterations:
                self._log_debug("LOOP", {"stopped": "max_iterations", "iterations": result.iterations})
                return result

            result.model_calls += 1
            try:
                response = self._call_model(messages, token)
            except OperationCancelled as e:
                return result.mark_cancelled(e.reason)

            result.iterations += 1
            normalized = self._normalize(response)
            if self.debug:
                print(dim(format_normalized_response(normalized)))

            self._observe_plan(normalized.content)

            if normalized.has_tool_calls:
                messages.append(Message(
                    role="assistant",
                    content=normalized.content,
                    tool_calls=list(normalized.tool_calls),
                ))
                self._emit("assistant", messages[-1])

                tool_results = self.supervisor.execute(normalized.tool_calls, token=token)
                for tool_result in tool_results:
                    messages.append(tool_result.to_message())
                consumed_tool_results = True
                malformed_retries = 0
                result.final_content = normalized.content

                if token.is_cancelled:
                    return result.mark_cancelled(token.reason)
                continue

            messages.append(Message(role="assistant", content=normalized.content))
            self._emit("assistant", messages[-1])
            result.final_content = normalized.content

            metadata = normalized.metadata
            if metadata.is_malformed and malformed_retries < self.max_malformed_retries:
                malformed_retries += 1
                self._emit("malformed", metadata.malformed_error)
                messages.append(Message(role="user", content=malformed_feedback(metadata.malformed_error)))
                consumed_tool_results = False
                continue

            if consumed_tool_results and self.auto_continue is not AutoContinueMode.NEVER:
                detection = detect_continuation(normalized.content, had_recent_tool_results=True)
                self._log_debug("CONTINUATION", {
                    "should_continue": detection.should_continue,
                    "reason": detection.reason,
                    "patterns": detection.detected_patterns,
                })
                if should_auto_continue(self.auto_continue, detection):
                    self._emit("continue", detection)
                    messages.append(Message(role="user", content=CONTINUE_NUDGE))
                    consumed_tool_results = False
                    continue

            return result

    def _log_debug(self, label: str, data: Any) -> None:
        if self.debug:
            print(debug_block(label, data))
