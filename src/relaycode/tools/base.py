"""Tool base class with LLM schema support."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, TYPE_CHECKING

from relaycode.mode import DevelopmentMode
from relaycode.permissions import Risk, needs_approval_for_risk
from relaycode.workspace import WorkspaceError

if TYPE_CHECKING:
    from relaycode.mode import ModeManager
    from relaycode.config import Config
    from relaycode.workspace import Workspace


class ToolExecutionError(Exception):
    """A tool ran but reported failure."""
    pass


@dataclass
class ToolResult:
    """Result of a tool execution.

    Attributes:
        success: Whether the tool succeeded.
        output: Output to display to user (may be truncated).
        error: Error message if failed.
        _llm_output: Full output for LLM (if different from display output).
                     If None, `output` is used for both display and LLM.
    """
    success: bool
    output: str
    error: str = ""
    _llm_output: str = None

    @property
    def llm_output(self) -> str:
        """Get output to send to LLM (full content)."""
        return self._llm_output if self._llm_output is not None else self.output

    @classmethod
    def ok(cls, output: str = "", llm_output: str = None) -> "ToolResult":
        """Create a successful result."""
        return cls(success=True, output=output, _llm_output=llm_output)

    @classmethod
    def fail(cls, error: str, output: str = "") -> "ToolResult":
        """Create a failed result."""
        return cls(success=False, output=output, error=error)


class Tool(ABC):
    """Base class for all tools.

    To create a new tool:
    1. Subclass Tool
    2. Set name, description and risk
    3. Implement execute() and get_schema()
    4. Register it in tools/registry.py BUILTIN_TOOLS
    """

    name: str = "base"
    description: str = "Base tool"
    risk: Risk = Risk.READ_ONLY

    def __init__(
        self,
        mode_manager: "ModeManager" = None,
        config: "Config" = None,
        workspace: "Workspace" = None,
    ):
        self.mode = mode_manager
        self.config = config
        self.workspace = workspace

    def _resolve_path(self, path: str) -> Path:
        """Resolve path within workspace boundaries.

        Raises:
            ValueError: If path is outside workspace boundaries.
        """
        if self.workspace:
            try:
                return self.workspace.resolve_path(path)
            except WorkspaceError as e:
                raise ValueError(str(e))

        # No workspace - resolve relative to cwd
        p = Path(path).expanduser()
        if not p.is_absolute():
            p = Path.cwd() / p
        return p.resolve()

    def _display_path(self, path: Path) -> str:
        if self.workspace:
            return self.workspace.relative_path(path)
        return str(path)

    def needs_approval(self, mode: DevelopmentMode, always_allow: Iterable[str] = ()) -> bool:
        """Whether a call to this tool must be confirmed first.

        Tools with special rules override this; the default derives it from
        the risk tier.
        """
        return needs_approval_for_risk(self.risk, mode, self.name, always_allow)

    def describe_call(self, arguments: dict) -> str:
        """One-line summary shown in the approval prompt."""
        if not arguments:
            return self.name
        parts = []
        for key, value in arguments.items():
            text = str(value)
            if len(text) > 60:
                text = text[:57] + "..."
            parts.append(f"{key}={text}")
        return f"{self.name}({', '.join(parts)})"

    def invoke(self, arguments: dict[str, Any]) -> str:
        """Run the tool and return the text fed back to the model.

        Raises:
            ToolExecutionError: If the tool reports failure.
        """
        result = self.execute(**(arguments or {}))
        if not result.success:
            message = result.error
            if result.output:
                message = f"{message}\n{result.output}"
            raise ToolExecutionError(message)
        return result.llm_output

    @abstractmethod
    def execute(self, **kwargs) -> ToolResult:
        """Execute the tool with given arguments."""
        pass

    @abstractmethod
    def get_schema(self) -> dict:
        """Return {"properties": ..., "required": [...]} for the arguments."""
        pass

    def to_anthropic_tool(self) -> dict:
        """Convert to Anthropic tool format."""
        schema = self.get_schema()
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": {
                "type": "object",
                "properties": schema.get("properties", {}),
                "required": schema.get("required", []),
            }
        }

    def to_openai_tool(self) -> dict:
        """Convert to OpenAI function format."""
        schema = self.get_schema()
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": schema.get("properties", {}),
                    "required": schema.get("required", []),
                }
            }
        }
