"""Read file tool."""

from relaycode.permissions import Risk
from relaycode.tools.base import Tool, ToolResult


# Maximum lines to display to user (full content still sent to LLM)
MAX_DISPLAY_LINES = 10

# Files longer than this are returned in pages unless a range is given
MAX_READ_LINES = 2000


class ReadFileTool(Tool):
    """Read a text file with line numbers."""

    name = "read_file"
    description = (
        "Read a text file. Returns numbered lines. "
        "Use 'lines' (e.g. '10-20') to read part of a large file."
    )
    risk = Risk.READ_ONLY

    def execute(self, path: str, lines: str = None) -> ToolResult:
        try:
            file_path = self._resolve_path(path)
        except ValueError as e:
            return ToolResult.fail(str(e))

        if not file_path.exists():
            return ToolResult.fail(f"File not found: {path}")
        if file_path.is_dir():
            return ToolResult.fail(f"Is a directory: {path} (use list_directory)")

        try:
            content = file_path.read_text(encoding='utf-8')
        except UnicodeDecodeError:
            size = file_path.stat().st_size
            return ToolResult.ok(
                output=f"Binary file: {path}",
                llm_output=f"[BINARY FILE: {file_path.name}]\nSize: {size:,} bytes\n"
                           "This file cannot be read as text.",
            )
        except OSError as e:
            return ToolResult.fail(f"Cannot read {path}: {e}")

        all_lines = content.splitlines()
        total = len(all_lines)

        try:
            start, end = self._parse_line_range(lines, total) if lines else (0, total)
        except ValueError:
            return ToolResult.fail(f"Invalid line range: '{lines}' (expected '10-20' or '10')")

        truncated = False
        if end - start > MAX_READ_LINES:
            end = start + MAX_READ_LINES
            truncated = True

        numbered = "\n".join(
            f"{i + 1:4d}| {line}" for i, line in enumerate(all_lines[start:end], start=start)
        )

        header = f"Path: {path}\nTotal lines: {total}"
        if lines or truncated:
            header += f"\nShowing lines {start + 1}-{end}"
        if truncated:
            header += f" (use lines='{end + 1}-{min(total, end + MAX_READ_LINES)}' for more)"

        display = "\n".join(numbered.splitlines()[:MAX_DISPLAY_LINES])
        if end - start > MAX_DISPLAY_LINES:
            display += f"\n   ... ({end - start - MAX_DISPLAY_LINES} more lines)"

        return ToolResult.ok(output=display, llm_output=f"{header}\n```\n{numbered}\n```")

    def _parse_line_range(self, lines: str, total: int) -> tuple[int, int]:
        """Parse a line range like '10-20' or '10'."""
        lines = str(lines).strip()
        if "-" in lines:
            first, last = lines.split("-", 1)
            start = int(first) - 1  # Convert to 0-indexed
            end = int(last)
        else:
            start = int(lines) - 1
            end = start + 1
        return max(0, start), min(total, end)

    def get_schema(self) -> dict:
        return {
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Path to the file to read"
                },
                "lines": {
                    "type": "string",
                    "description": "Optional line range (e.g., '10-20' or '10')"
                }
            },
            "required": ["path"]
        }
