"""String replace tool (exact find and replace)."""

from relaycode.permissions import Risk
from relaycode.storage import write_text_atomic
from relaycode.tools.base import Tool, ToolResult
from relaycode.tools.write_file import generate_unified_diff, number_lines


class StringReplaceTool(Tool):
    """Edit a file by replacing one exact occurrence of a string."""

    name = "string_replace"
    description = (
        "Edit a file by replacing an exact string. old_str must occur exactly once; "
        "include surrounding lines to make it unique."
    )
    risk = Risk.MEDIUM

    def execute(self, path: str, old_str: str, new_str: str) -> ToolResult:
        """Replace old_str with new_str in a file.

        Args:
            path: Path to the file.
            old_str: Text to find (must be unique in file).
            new_str: Text to replace with.
        """
        try:
            file_path = self._resolve_path(path)
        except ValueError as e:
            return ToolResult.fail(str(e))

        if not file_path.exists():
            return ToolResult.fail(f"File not found: {path}")
        if not file_path.is_file():
            return ToolResult.fail(f"Not a file: {path}")
        if not old_str:
            return ToolResult.fail("old_str must not be empty")

        try:
            content = file_path.read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as e:
            return ToolResult.fail(f"Cannot read {path}: {e}")

        count = content.count(old_str)
        if count == 0:
            return ToolResult.fail(f"String not found in {path}: '{old_str[:50]}'")
        if count > 1:
            return ToolResult.fail(
                f"Ambiguous: '{old_str[:50]}' found {count} times. "
                "Provide more context to make it unique."
            )

        new_content = content.replace(old_str, new_str, 1)
        try:
            write_text_atomic(file_path, new_content)
        except OSError as e:
            return ToolResult.fail(f"Cannot write {path}: {e}")

        diff = generate_unified_diff(content, new_content, path)
        numbered, truncation_note = number_lines(new_content)
        llm_output = (
            f"Edited {path}\n\n"
            f"[DIFF]\n{diff}\n\n"
            f"[CURRENT FILE STATE after edit]\n"
            f"Path: {path}\n"
            f"Total lines: {len(new_content.splitlines())}{truncation_note}\n"
            f"```\n{numbered}\n```"
        )
        return ToolResult.ok(output=f"Edited {path}\n\n{diff}", llm_output=llm_output)

    def get_schema(self) -> dict:
        return {
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Path to the file to edit"
                },
                "old_str": {
                    "type": "string",
                    "description": "The exact string to find and replace (must be unique in file)"
                },
                "new_str": {
                    "type": "string",
                    "description": "The string to replace it with"
                }
            },
            "required": ["path", "old_str", "new_str"]
        }
