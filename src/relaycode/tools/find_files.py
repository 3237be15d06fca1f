"""Find files by glob pattern."""

from pathlib import Path

from relaycode.permissions import Risk
from relaycode.tools.base import Tool, ToolResult


# Directories never worth returning
SKIP_DIRS = {".git", "node_modules", "__pycache__", ".venv", "venv"}

MAX_RESULTS = 50


class FindFilesTool(Tool):
    """Find files matching a glob pattern."""

    name = "find_files"
    description = "Find files matching a glob pattern (e.g., '**/*.py', 'src/**/*.ts')"
    risk = Risk.READ_ONLY

    def execute(self, pattern: str, path: str = None) -> ToolResult:
        """Find files matching a glob pattern.

        Args:
            pattern: Glob pattern to match (e.g., '**/*.py', 'src/*.ts').
            path: Optional directory to search in (defaults to workspace root).
        """
        try:
            if path:
                search_root = self._resolve_path(path)
            elif self.workspace and self.workspace.is_initialized:
                search_root = self.workspace.root
            else:
                search_root = Path.cwd()
        except ValueError as e:
            return ToolResult.fail(str(e))

        if not search_root.is_dir():
            return ToolResult.fail(f"Not a directory: {path or search_root}")

        try:
            files = sorted(
                f for f in search_root.glob(pattern)
                if f.is_file() and not SKIP_DIRS.intersection(f.relative_to(search_root).parts)
            )
        except ValueError as e:
            return ToolResult.fail(f"Invalid pattern '{pattern}': {e}")

        if not files:
            return ToolResult.ok(f"No files found matching '{pattern}'")

        truncated = len(files) > MAX_RESULTS
        shown = files[:MAX_RESULTS]

        output = "\n".join(str(f.relative_to(search_root)) for f in shown)
        if truncated:
            output += f"\n\n... and {len(files) - MAX_RESULTS} more (showing first {MAX_RESULTS} results)"

        header = f"Found {len(files)} file(s) matching '{pattern}':\n"
        return ToolResult.ok(header + output)

    def get_schema(self) -> dict:
        return {
            "properties": {
                "pattern": {
                    "type": "string",
                    "description": "Glob pattern to match files (e.g., '**/*.py', 'src/**/*.ts', '*.md')"
                },
                "path": {
                    "type": "string",
                    "description": "Optional directory to search in (defaults to workspace root)"
                }
            },
            "required": ["pattern"]
        }
