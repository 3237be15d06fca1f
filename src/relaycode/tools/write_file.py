"""Write file tool (create or overwrite)."""

import difflib

from relaycode.permissions import Risk
from relaycode.storage import write_text_atomic
from relaycode.tools.base import Tool, ToolResult

# Max lines to include in LLM output (to avoid context explosion)
MAX_LLM_LINES = 500


def generate_unified_diff(old_content: str, new_content: str, path: str) -> str:
    """Generate a git-style unified diff between old and new content."""
    old_lines = old_content.splitlines(keepends=True)
    new_lines = new_content.splitlines(keepends=True)

    # Ensure lines end with newline for proper diff formatting
    if old_lines and not old_lines[-1].endswith('\n'):
        old_lines[-1] += '\n'
    if new_lines and not new_lines[-1].endswith('\n'):
        new_lines[-1] += '\n'

    diff = difflib.unified_diff(
        old_lines,
        new_lines,
        fromfile=f"a/{path}",
        tofile=f"b/{path}",
        lineterm=''
    )
    return '\n'.join(line.rstrip('\n') for line in diff)


def number_lines(content: str) -> tuple[str, str]:
    """Numbered file state for the model, trimmed to head and tail when long.

    Returns (numbered_content, truncation_note).
    """
    lines = content.splitlines()
    if len(lines) <= MAX_LLM_LINES:
        return "\n".join(f"{i+1:4d}| {line}" for i, line in enumerate(lines)), ""

    half = MAX_LLM_LINES // 2
    head = "\n".join(f"{i+1:4d}| {line}" for i, line in enumerate(lines[:half]))
    tail = "\n".join(
        f"{i+1:4d}| {line}" for i, line in enumerate(lines[-half:], start=len(lines) - half)
    )
    numbered = f"{head}\n...\n[{len(lines) - MAX_LLM_LINES} lines omitted]\n...\n{tail}"
    note = f" [TRUNCATED: Showing first {half} and last {half} of {len(lines)} lines]"
    return numbered, note


class WriteFileTool(Tool):
    """Write content to a file (create or overwrite)."""

    name = "write_file"
    description = "Write content to a file, creating it if it doesn't exist or overwriting if it does"
    risk = Risk.MEDIUM

    def execute(self, path: str, content: str) -> ToolResult:
        try:
            file_path = self._resolve_path(path)
        except ValueError as e:
            return ToolResult.fail(str(e))

        if file_path.is_dir():
            return ToolResult.fail(f"Is a directory: {path}")

        is_new = not file_path.exists()
        old_content = ""
        if not is_new:
            try:
                old_content = file_path.read_text(encoding='utf-8')
            except (OSError, UnicodeDecodeError):
                old_content = ""

        try:
            write_text_atomic(file_path, content)
        except OSError as e:
            return ToolResult.fail(f"Cannot write {path}: {e}")

        lines = content.splitlines()
        numbered, truncation_note = number_lines(content)

        if is_new:
            display_output = f"Created {path} ({len(content)} bytes, {len(lines)} lines)"
            llm_output = (
                f"Created {path} ({len(content)} bytes)\n\n"
                f"[CURRENT FILE STATE]\n"
                f"Path: {path}\n"
                f"Total lines: {len(lines)}{truncation_note}\n"
                f"```\n{numbered}\n```"
            )
        else:
            diff_output = generate_unified_diff(old_content, content, path)
            display_output = f"Overwrote {path} ({len(content)} bytes)"
            if diff_output:
                display_output += f"\n\n{diff_output}"
            llm_output = (
                f"Overwrote {path} ({len(content)} bytes)\n\n"
                f"[DIFF]\n{diff_output or '(no changes)'}\n\n"
                f"[CURRENT FILE STATE after write]\n"
                f"Path: {path}\n"
                f"Total lines: {len(lines)}{truncation_note}\n"
                f"```\n{numbered}\n```"
            )

        return ToolResult.ok(output=display_output, llm_output=llm_output)

    def get_schema(self) -> dict:
        return {
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Path to the file to write"
                },
                "content": {
                    "type": "string",
                    "description": "Content to write to the file"
                }
            },
            "required": ["path", "content"]
        }
