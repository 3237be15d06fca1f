"""Shell command tool."""

import subprocess

from relaycode.permissions import Risk
from relaycode.tools.base import Tool, ToolResult


# Output lines kept for the model
MAX_OUTPUT_LINES = 200


class ExecuteBashTool(Tool):
    """Execute shell commands."""

    name = "execute_bash"
    description = "Execute a shell command in the workspace root and return its output"
    risk = Risk.HIGH

    def execute(self, command: str, timeout: int = None) -> ToolResult:
        """Execute a shell command.

        Args:
            command: The shell command to run.
            timeout: Seconds before the command is killed (defaults to config bash_timeout).
        """
        if not command or not command.strip():
            return ToolResult.fail("Empty command")

        if timeout is None:
            timeout = self.config.bash_timeout if self.config else 30

        cwd = None
        if self.workspace and self.workspace.is_initialized:
            cwd = str(self.workspace.root)

        try:
            completed = subprocess.run(
                command,
                shell=True,
                capture_output=True,
                text=True,
                timeout=timeout,
                cwd=cwd,
            )
        except subprocess.TimeoutExpired:
            return ToolResult.fail(f"Command timed out after {timeout}s")
        except OSError as e:
            return ToolResult.fail(str(e))

        output = completed.stdout.rstrip("\n")
        if completed.stderr.strip():
            output += "\n[stderr]\n" + completed.stderr.rstrip("\n")

        lines = output.splitlines()
        if len(lines) > MAX_OUTPUT_LINES:
            output = "\n".join(lines[:MAX_OUTPUT_LINES]) + f"\n... ({len(lines) - MAX_OUTPUT_LINES} more lines)"

        if completed.returncode == 0:
            return ToolResult.ok(output or "(no output)")
        return ToolResult.fail(f"Exit code {completed.returncode}", output=output)

    def get_schema(self) -> dict:
        return {
            "properties": {
                "command": {
                    "type": "string",
                    "description": "The shell command to execute"
                },
                "timeout": {
                    "type": "integer",
                    "description": "Optional timeout in seconds"
                }
            },
            "required": ["command"]
        }
