"""Search file contents by regular expression."""

import re
from pathlib import Path

from relaycode.permissions import Risk
from relaycode.tools.base import Tool, ToolResult


SKIP_DIRS = {".git", "node_modules", "__pycache__", ".venv", "venv", "dist", "build"}

# Lines longer than this are cut in the output
MAX_LINE_WIDTH = 200


class SearchFileContentsTool(Tool):
    """Search for a regex in files (like grep)."""

    name = "search_file_contents"
    description = "Search for a regex pattern in file contents. Returns matching files and lines."
    risk = Risk.READ_ONLY

    def execute(
        self,
        pattern: str,
        path: str = None,
        file_pattern: str = None,
        ignore_case: bool = False,
        max_results: int = 50,
        context: int = 0,
    ) -> ToolResult:
        """Search for a pattern in files.

        Args:
            pattern: Regex pattern to search for.
            path: Optional directory or file to search (defaults to workspace root).
            file_pattern: Optional glob to filter files (e.g., '*.py').
            ignore_case: Whether to ignore case in matching.
            max_results: Maximum number of matching lines to return.
            context: Lines to show before and after each match.
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

        if not search_root.exists():
            return ToolResult.fail(f"Path not found: {path or search_root}")

        flags = re.IGNORECASE if ignore_case else 0
        try:
            regex = re.compile(pattern, flags)
        except re.error as e:
            return ToolResult.fail(f"Invalid regex pattern: {e}")

        max_results = max(1, int(max_results))
        context = max(0, int(context))

        output_lines = []
        total_matches = 0
        total_files = 0

        for file_path in self._iter_files(search_root, file_pattern):
            if total_matches >= max_results:
                break
            try:
                lines = file_path.read_text(encoding="utf-8").splitlines()
            except (OSError, UnicodeDecodeError):
                continue  # Binary or unreadable

            shown: set[int] = set()
            file_output = []
            for idx, line in enumerate(lines):
                if not regex.search(line):
                    continue
                total_matches += 1
                for i in range(max(0, idx - context), min(len(lines), idx + context + 1)):
                    if i in shown:
                        continue
                    shown.add(i)
                    marker = ":" if i == idx else "-"
                    text = lines[i]
                    if len(text) > MAX_LINE_WIDTH:
                        text = text[:MAX_LINE_WIDTH] + "..."
                    file_output.append(f"  {i + 1}{marker} {text}")
                if total_matches >= max_results:
                    break

            if file_output:
                total_files += 1
                rel = file_path.relative_to(search_root) if search_root.is_dir() else file_path.name
                output_lines.append(str(rel))
                output_lines.extend(file_output)
                output_lines.append("")

        if not output_lines:
            return ToolResult.ok(f"No matches found for '{pattern}'")

        header = f"Found {total_matches} match(es) in {total_files} file(s) for '{pattern}':\n"
        output = header + "\n".join(output_lines).rstrip()
        if total_matches >= max_results:
            output += f"\n\n... (showing first {max_results} matches)"
        return ToolResult.ok(output)

    def _iter_files(self, root: Path, file_pattern: str = None):
        if root.is_file():
            yield root
            return
        candidates = root.glob(f"**/{file_pattern}") if file_pattern else root.rglob("*")
        for f in sorted(candidates):
            if f.is_file() and not SKIP_DIRS.intersection(f.relative_to(root).parts):
                yield f

    def get_schema(self) -> dict:
        return {
            "properties": {
                "pattern": {
                    "type": "string",
                    "description": "Regex pattern to search for (e.g., 'def login', 'class.*User')"
                },
                "path": {
                    "type": "string",
                    "description": "Optional directory or file to search in (defaults to workspace root)"
                },
                "file_pattern": {
                    "type": "string",
                    "description": "Optional glob pattern to filter files (e.g., '*.py', '*.ts')"
                },
                "ignore_case": {
                    "type": "boolean",
                    "description": "Whether to ignore case when matching (default: false)"
                },
                "max_results": {
                    "type": "integer",
                    "description": "Maximum matching lines to return (default: 50)"
                },
                "context": {
                    "type": "integer",
                    "description": "Number of lines to show before AND after each match (like grep -C)"
                }
            },
            "required": ["pattern"]
        }
