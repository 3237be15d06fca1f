"""Modular tool system.

Provides:
- ToolRegistry and the built-in tool set
- Tool base class

Adding a new tool:
1. Create tools/mytool.py
2. Subclass Tool, implement execute() and get_schema()
3. Add the class to BUILTIN_TOOLS in tools/registry.py
"""

from relaycode.tools.base import Tool, ToolResult, ToolExecutionError
from relaycode.tools.registry import ToolRegistry, BUILTIN_TOOLS, create_default_registry
from relaycode.tools.read_file import ReadFileTool
from relaycode.tools.find_files import FindFilesTool
from relaycode.tools.search_file_contents import SearchFileContentsTool
from relaycode.tools.list_directory import ListDirectoryTool
from relaycode.tools.write_file import WriteFileTool
from relaycode.tools.string_replace import StringReplaceTool
from relaycode.tools.execute_bash import ExecuteBashTool
from relaycode.tools.plan_mode import EnterPlanModeTool, ExitPlanModeTool

__all__ = [
    "Tool",
    "ToolResult",
    "ToolExecutionError",
    "ToolRegistry",
    "BUILTIN_TOOLS",
    "create_default_registry",
    "ReadFileTool",
    "FindFilesTool",
    "SearchFileContentsTool",
    "ListDirectoryTool",
    "WriteFileTool",
    "StringReplaceTool",
    "ExecuteBashTool",
    "EnterPlanModeTool",
    "ExitPlanModeTool",
]
