"""Tool registry."""

from typing import TYPE_CHECKING, Optional, Type

from relaycode.tools.base import Tool
from relaycode.tools.read_file import ReadFileTool
from relaycode.tools.find_files import FindFilesTool
from relaycode.tools.search_file_contents import SearchFileContentsTool
from relaycode.tools.list_directory import ListDirectoryTool
from relaycode.tools.write_file import WriteFileTool
from relaycode.tools.string_replace import StringReplaceTool
from relaycode.tools.execute_bash import ExecuteBashTool
from relaycode.tools.plan_mode import EnterPlanModeTool, ExitPlanModeTool, ModeSelector

if TYPE_CHECKING:
    from relaycode.mode import ModeManager
    from relaycode.config import Config
    from relaycode.workspace import Workspace
    from relaycode.plan import PlanState


BUILTIN_TOOLS: tuple[Type[Tool], ...] = (
    ReadFileTool,
    FindFilesTool,
    SearchFileContentsTool,
    ListDirectoryTool,
    WriteFileTool,
    StringReplaceTool,
    ExecuteBashTool,
)

PLAN_TOOLS = (EnterPlanModeTool, ExitPlanModeTool)


class ToolRegistry:
    """Registry of available tools, keyed by name."""

    def __init__(
        self,
        mode_manager: "ModeManager" = None,
        config: "Config" = None,
        workspace: "Workspace" = None,
    ):
        self._tools: dict[str, Tool] = {}
        self._mode_manager = mode_manager
        self._config = config
        self._workspace = workspace

    def register(self, tool_class: Type[Tool], **kwargs) -> Tool:
        """Register a tool class and instantiate it.

        Args:
            tool_class: The Tool subclass to register.
            **kwargs: Extra constructor arguments for the tool.

        Returns:
            The instantiated tool.
        """
        tool = tool_class(
            mode_manager=self._mode_manager,
            config=self._config,
            workspace=self._workspace,
            **kwargs,
        )
        self._tools[tool.name] = tool
        return tool

    def register_instance(self, tool: Tool) -> None:
        """Register an already instantiated tool."""
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool:
        """Get a tool by name.

        Raises:
            KeyError: If tool not found.
        """
        if name not in self._tools:
            raise KeyError(f"Unknown tool: {name}")
        return self._tools[name]

    def has(self, name: str) -> bool:
        return name in self._tools

    def list_tools(self) -> list[str]:
        """List all registered tool names."""
        return list(self._tools.keys())

    def tool_names(self) -> frozenset[str]:
        return frozenset(self._tools)

    def all_tools(self) -> list[Tool]:
        return list(self._tools.values())

    def get_anthropic_tools(self) -> list[dict]:
        """Get all tools in Anthropic format."""
        return [tool.to_anthropic_tool() for tool in self._tools.values()]

    def get_openai_tools(self) -> list[dict]:
        """Get all tools in OpenAI format."""
        return [tool.to_openai_tool() for tool in self._tools.values()]

    def get_tool_descriptions(self) -> str:
        """Get formatted tool descriptions for the system prompt."""
        lines = []
        for tool in self._tools.values():
            lines.append(f"- {tool.name} [{tool.risk.value}]: {tool.description}")
        return "\n".join(lines)


def create_default_registry(
    mode_manager: "ModeManager" = None,
    config: "Config" = None,
    workspace: "Workspace" = None,
    plan_state: "PlanState" = None,
    mode_selector: Optional[ModeSelector] = None,
) -> ToolRegistry:
    """Registry holding every built-in tool, plan-mode tools included."""
    registry = ToolRegistry(mode_manager=mode_manager, config=config, workspace=workspace)
    for tool_class in BUILTIN_TOOLS:
        registry.register(tool_class)
    for tool_class in PLAN_TOOLS:
        registry.register(tool_class, plan_state=plan_state, mode_selector=mode_selector)
    return registry
