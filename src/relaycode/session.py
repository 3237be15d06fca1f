"""Chat session: owns the history and runs one conversation at a time.

Also persists conversations to .relaycode/sessions/ as JSON.
"""

import threading
from dataclasses import dataclass, asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from relaycode.cancellation import CancellationToken, OperationCancelled
from relaycode.config import Config
from relaycode.llm.base import LLMProvider, Message
from relaycode.loop import ConversationLoop, LoopResult, EventHook
from relaycode.mode import DevelopmentMode, ModeManager, starting_mode
from relaycode.permissions import ApprovalGate
from relaycode.plan import PlanState
from relaycode.storage import read_json, write_json
from relaycode.supervisor import ToolSupervisor
from relaycode.tools.registry import ToolRegistry, create_default_registry
from relaycode.tools.plan_mode import ModeSelector
from relaycode.workspace import Workspace


class SessionBusy(Exception):
    """A conversation is already running in this session."""
    pass


BASE_PROMPT = """You are a coding assistant working in the user's project directory.

Call tools to inspect and change files. Call at most the tools you need, and stop
once the task is done with a short summary of what you did.

Available tools:
{tools}

Current mode: {mode}
"""

PLAN_PROMPT = """
You are in plan mode. Only read-only tools and writes to the plan documents in
{directory} are allowed. Announce each phase as you reach it ("Moving to the design
phase", "Moving to the review phase", "Moving to the final plan phase") and call
exit-plan-mode when the plan is complete.
Current phase: {phase}
"""


def build_system_prompt(registry: ToolRegistry, mode: DevelopmentMode, plan_state: PlanState = None) -> str:
    prompt = BASE_PROMPT.format(tools=registry.get_tool_descriptions(), mode=mode.value)
    session = plan_state.session if plan_state else None
    if mode == DevelopmentMode.PLAN and session is not None:
        prompt += PLAN_PROMPT.format(directory=session.directory, phase=session.phase.label)
    return prompt


class ChatSession:
    """Conversation history plus the machinery to run turns on it.

    At most one loop runs at a time; `busy` guards entry.
    """

    def __init__(
        self,
        llm: LLMProvider,
        config: Optional[Config] = None,
        workspace: Optional[Workspace] = None,
        mode_manager: Optional[ModeManager] = None,
        gate: Optional[ApprovalGate] = None,
        plan_state: Optional[PlanState] = None,
        mode_selector: Optional[ModeSelector] = None,
        on_event: Optional[EventHook] = None,
        verbose: bool = True,
    ):
        self.config = config or Config()
        self.workspace = workspace
        self.llm = llm
        self.mode_manager = mode_manager or ModeManager(starting_mode(self.config.default_mode))
        self.gate = gate or ApprovalGate(always_allow=self.config.always_allow)
        self.plan_state = plan_state or PlanState()
        self.on_event = on_event

        self.registry = create_default_registry(
            mode_manager=self.mode_manager,
            config=self.config,
            workspace=workspace,
            plan_state=self.plan_state,
            mode_selector=mode_selector,
        )
        self.supervisor = ToolSupervisor(
            self.registry,
            self.gate,
            mode_manager=self.mode_manager,
            plan_state=self.plan_state,
            on_event=self._emit,
            verbose=verbose,
            debug=self.config.debug,
        )
        self.loop = ConversationLoop(
            llm,
            self.supervisor,
            mode_manager=self.mode_manager,
            plan_state=self.plan_state,
            stream=self.config.stream,
            auto_continue=self.config.auto_continue,
            max_iterations=self.config.max_iterations,
            max_malformed_retries=self.config.max_malformed_retries,
            on_event=self._emit,
            debug=self.config.debug,
        )

        self.messages: list[Message] = []
        self.last_result: Optional[LoopResult] = None
        self.last_error: Optional[BaseException] = None
        self._token: Optional[CancellationToken] = None
        self._lock = threading.Lock()
        self._busy = False
        self._idle = threading.Event()
        self._idle.set()

    def _emit(self, kind: str, payload: Any) -> None:
        if self.on_event:
            self.on_event(kind, payload)

    @property
    def busy(self) -> bool:
        with self._lock:
            return self._busy

    def _acquire(self) -> CancellationToken:
        with self._lock:
            if self._busy:
                raise SessionBusy("A conversation is already in progress")
            self._busy = True
            self._idle.clear()
            self._token = CancellationToken()
            self.last_error = None
            return self._token

    def _release(self) -> None:
        with self._lock:
            self._busy = False
            self._token = None
            self._idle.set()

    def _run(self, text: str, token: CancellationToken) -> LoopResult:
        try:
            self.messages.append(Message(role="user", content=text))
            self.loop.system_prompt = build_system_prompt(
                self.registry, self.mode_manager.mode, self.plan_state
            )
            result = self.loop.run(self.messages, token=token)
            self.last_result = result
            return result
        except BaseException as e:
            self.last_error = e
            raise
        finally:
            self._release()

    def submit(self, text: str) -> LoopResult:
        """Run a turn and wait for it.

        Raises:
            SessionBusy: If another turn is running.
            LLMError: If the model client fails.
        """
        token = self._acquire()
        return self._run(text, token)

    def submit_async(self, text: str) -> threading.Thread:
        """Start a turn on a background thread.

        Errors are kept in `last_error` and reported as an "error" event.

        Raises:
            SessionBusy: If another turn is running.
        """
        token = self._acquire()

        def worker():
            try:
                self._run(text, token)
            except Exception as e:
                self._emit("error", e)

        thread = threading.Thread(target=worker, name="relaycode-turn", daemon=True)
        thread.start()
        return thread

    def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no turn is running. Returns False on timeout."""
        return self._idle.wait(timeout)

    def wait_for_completion(self, timeout: Optional[float] = None, raise_on_cancel: bool = False) -> bool:
        """Wait for the running turn and re-raise its error, if any.

        Args:
            timeout: Seconds to wait, or None to wait forever.
            raise_on_cancel: Report a cancelled turn as OperationCancelled
                instead of a normal completion.

        Returns:
            False if the wait timed out, True otherwise.

        Raises:
            OperationCancelled: If the turn was cancelled and raise_on_cancel is set.
        """
        if not self.wait_until_idle(timeout):
            return False
        if self.last_error is not None:
            raise self.last_error
        result = self.last_result
        if raise_on_cancel and result is not None and result.cancelled:
            raise OperationCancelled(result.cancel_reason or "Conversation cancelled")
        return True

    def cancel(self, reason: str = "Cancelled by user") -> bool:
        """Cancel the running turn. Returns False when idle."""
        with self._lock:
            token = self._token
        if token is None:
            return False
        token.cancel(reason)
        return True

    def clear(self) -> None:
        """Drop the history.

        Raises:
            SessionBusy: If a turn is running.
        """
        if self.busy:
            raise SessionBusy("Cannot clear history while a conversation is in progress")
        self.messages.clear()
        self.last_result = None


@dataclass
class SessionMetadata:
    """Metadata about a saved session."""
    id: str
    name: str
    created_at: str
    updated_at: str
    message_count: int
    workspace: str
    summary: str = ""

    @classmethod
    def from_dict(cls, data: dict, default_id: str = "") -> "SessionMetadata":
        return cls(
            id=data.get("id", default_id),
            name=data.get("name", ""),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
            message_count=data.get("message_count", 0),
            workspace=data.get("workspace", ""),
            summary=data.get("summary", ""),
        )


class SessionStore:
    """Save and load conversations under .relaycode/sessions/."""

    def __init__(self, sessions_dir: Path, workspace_root: Optional[Path] = None):
        self.sessions_dir = Path(sessions_dir)
        self.workspace_root = workspace_root or Path.cwd()

    def save(
        self,
        messages: list[Message],
        name: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> str:
        """Save a conversation.

        Args:
            messages: The conversation history to save.
            name: Optional human-readable name for the session.
            session_id: Optional existing session ID to overwrite.

        Returns:
            The session ID.
        """
        sid = session_id or datetime.now().strftime("%Y%m%d_%H%M%S")

        if not name:
            # First user message makes a reasonable title
            for msg in messages:
                if msg.role == "user" and msg.content:
                    name = msg.content[:50].strip()
                    if len(msg.content) > 50:
                        name += "..."
                    break
            if not name:
                name = f"Session {sid}"

        now = datetime.now().isoformat()
        session_file = self.sessions_dir / f"{sid}.json"
        existing = read_json(session_file, {}) or {}
        created_at = existing.get("metadata", {}).get("created_at", now)

        metadata = SessionMetadata(
            id=sid,
            name=name,
            created_at=created_at,
            updated_at=now,
            message_count=len(messages),
            workspace=str(self.workspace_root),
            summary=self._generate_summary(messages),
        )
        write_json(session_file, {
            "metadata": asdict(metadata),
            "messages": [m.to_dict() for m in messages],
        })
        return sid

    def _session_file(self, session_id: str) -> Optional[Path]:
        """Path of a session file, or None for ids that leave the sessions directory."""
        if not session_id or Path(session_id).name != session_id or session_id in (".", ".."):
            return None
        return self.sessions_dir / f"{session_id}.json"

    def load(self, session_id: str) -> tuple[list[Message], SessionMetadata]:
        """Load a session by ID.

        Raises:
            FileNotFoundError: If the session doesn't exist or is unreadable.
        """
        session_file = self._session_file(session_id)
        data = read_json(session_file) if session_file else None
        if not isinstance(data, dict):
            raise FileNotFoundError(f"Session not found: {session_id}")

        messages = [Message.from_dict(m) for m in data.get("messages", [])]
        metadata = SessionMetadata.from_dict(data.get("metadata", {}), session_id)
        if not metadata.message_count:
            metadata.message_count = len(messages)
        return messages, metadata

    def list_sessions(self, limit: int = 20) -> list[SessionMetadata]:
        """Saved sessions, most recently updated first."""
        if not self.sessions_dir.is_dir():
            return []
        sessions = []
        for session_file in self.sessions_dir.glob("*.json"):
            data = read_json(session_file)
            if isinstance(data, dict):
                sessions.append(SessionMetadata.from_dict(data.get("metadata", {}), session_file.stem))
        sessions.sort(key=lambda s: s.updated_at, reverse=True)
        return sessions[:limit]

    def delete(self, session_id: str) -> bool:
        """Remove a saved session. Returns False if there is no such session."""
        session_file = self._session_file(session_id)
        if session_file is not None and session_file.is_file():
            session_file.unlink()
            return True
        return False

    def get_latest(self) -> Optional[str]:
        sessions = self.list_sessions(limit=1)
        return sessions[0].id if sessions else None

    def _generate_summary(self, messages: list[Message], max_length: int = 100) -> str:
        user_messages = [m.content for m in messages if m.role == "user" and m.content]
        if not user_messages:
            return ""

        if len(user_messages) == 1:
            summary = user_messages[0]
        else:
            summary = f"{user_messages[0][:40]}... -> {user_messages[-1][:40]}"

        if len(summary) > max_length:
            summary = summary[:max_length - 3] + "..."
        return summary


def format_session_list(sessions: list[SessionMetadata]) -> str:
    """Format session list for display."""
    if not sessions:
        return "No saved sessions."

    lines = ["Saved sessions:", ""]
    for s in sessions:
        try:
            date_str = datetime.fromisoformat(s.updated_at).strftime("%Y-%m-%d %H:%M")
        except ValueError:
            date_str = s.updated_at[:16] if s.updated_at else "unknown"

        lines.append(f"  [{s.id}] {s.name}")
        lines.append(f"       {date_str} | {s.message_count} messages")
        if s.summary:
            lines.append(f"       {s.summary[:60]}")
        lines.append("")

    return "\n".join(lines)
