"""List directory tool - display directory structure."""

from pathlib import Path

from relaycode.permissions import Risk
from relaycode.tools.base import Tool, ToolResult


SKIP_DIRS = {
    "node_modules", ".git", "__pycache__", ".venv", "venv",
    "dist", "build", ".tox", "target", ".pytest_cache",
    ".mypy_cache", ".ruff_cache", "htmlcov",
}

SKIP_SUFFIXES = (".pyc", ".pyo", ".so", ".dll", ".exe", ".bin")


def format_size(size: int) -> str:
    """Format file size in human-readable form."""
    if size < 1024:
        return f"{size}B"
    elif size < 1024 * 1024:
        return f"{size / 1024:.1f}KB"
    elif size < 1024 * 1024 * 1024:
        return f"{size / (1024 * 1024):.1f}MB"
    return f"{size / (1024 * 1024 * 1024):.1f}GB"


class ListDirectoryTool(Tool):
    """Display directory structure as a tree."""

    name = "list_directory"
    description = "List a directory as a tree (default depth 2)"
    risk = Risk.READ_ONLY

    def execute(self, path: str = ".", depth: int = 2, show_hidden: bool = False) -> ToolResult:
        """Display directory structure.

        Args:
            path: Root path to display (default: workspace root).
            depth: Maximum depth to traverse.
            show_hidden: Show hidden files/directories.
        """
        try:
            root_path = self._resolve_path(path)
        except ValueError as e:
            return ToolResult.fail(str(e))

        if not root_path.is_dir():
            return ToolResult.fail(f"Not a directory: {path}")

        lines: list[str] = []
        self._build_tree(root_path, lines, "", max(1, int(depth)), 0, show_hidden)

        if not lines:
            return ToolResult.ok(f"{root_path.name}/ (empty)")

        return ToolResult.ok(f"{root_path.name}/\n" + "\n".join(lines))

    def _build_tree(
        self,
        dir_path: Path,
        lines: list,
        prefix: str,
        depth: int,
        current_depth: int,
        show_hidden: bool,
    ) -> None:
        """Recursively build tree structure."""
        if current_depth >= depth:
            return

        try:
            entries = sorted(dir_path.iterdir(), key=lambda x: (not x.is_dir(), x.name.lower()))
        except PermissionError:
            lines.append(f"{prefix}[permission denied]")
            return

        filtered = []
        for entry in entries:
            if not show_hidden and entry.name.startswith('.'):
                continue
            if entry.is_dir() and entry.name in SKIP_DIRS:
                continue
            if entry.is_file() and entry.name.endswith(SKIP_SUFFIXES):
                continue
            filtered.append(entry)

        for i, entry in enumerate(filtered):
            is_last = (i == len(filtered) - 1)
            connector = "`-- " if is_last else "|-- "
            child_prefix = prefix + ("    " if is_last else "|   ")

            if entry.is_dir():
                lines.append(f"{prefix}{connector}{entry.name}/")
                self._build_tree(entry, lines, child_prefix, depth, current_depth + 1, show_hidden)
            else:
                try:
                    lines.append(f"{prefix}{connector}{entry.name} ({format_size(entry.stat().st_size)})")
                except OSError:
                    lines.append(f"{prefix}{connector}{entry.name}")

    def get_schema(self) -> dict:
        return {
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Directory to list (default: workspace root)"
                },
                "depth": {
                    "type": "integer",
                    "description": "Maximum depth to traverse (default: 2)"
                },
                "show_hidden": {
                    "type": "boolean",
                    "description": "Show hidden files/directories (default: false)"
                }
            },
            "required": []
        }
