"""Tests for the tool execution supervisor."""

from relaycode.cancellation import CancellationToken
from relaycode.llm import ToolCall
from relaycode.mode import DevelopmentMode, ModeManager
from relaycode.permissions import ApprovalGate
from relaycode.plan import PlanManager, PlanSession, PlanState
from relaycode.supervisor import (
    CANCELLED_OUTPUT,
    ToolSupervisor,
    declined_message,
    unknown_tool_message,
)
from relaycode.tools.registry import create_default_registry


class RecordingPrompt:
    """Approval prompt that answers from a script and records what it was asked."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.asked = []

    def __call__(self, tool_name, description):
        self.asked.append((tool_name, description))
        return self.answers.pop(0) if self.answers else "no"


def make_supervisor(workspace, prompt=None, mode=DevelopmentMode.NORMAL, plan_state=None):
    manager = ModeManager(mode)
    registry = create_default_registry(mode_manager=manager, workspace=workspace, plan_state=plan_state)
    events = []
    supervisor = ToolSupervisor(
        registry,
        ApprovalGate(prompt_fn=prompt or RecordingPrompt()),
        mode_manager=manager,
        plan_state=plan_state,
        on_event=lambda kind, payload: events.append((kind, payload)),
        verbose=False,
    )
    return supervisor, events


def write_call(call_id="c1", path="out.txt", content="data\n"):
    return ToolCall(call_id, "write_file", {"path": path, "content": content})


class TestToolSupervisor:
    """Tests for ToolSupervisor.execute."""

    def test_unknown_tool(self, temp_workspace):
        """Test unknown names produce an error result, not an exception."""
        supervisor, _ = make_supervisor(temp_workspace)

        [result] = supervisor.execute([ToolCall("c1", "delete_everything", {})])

        assert result.is_error is True
        assert result.output == unknown_tool_message("delete_everything")
        assert result.tool_call_id == "c1"

    def test_declined(self, temp_workspace):
        """Test a declined call reports the refusal and does nothing."""
        prompt = RecordingPrompt("no")
        supervisor, _ = make_supervisor(temp_workspace, prompt)

        [result] = supervisor.execute([write_call()])

        assert result.output == "Tool call 'write_file' was declined by the user."
        assert result.is_error is True
        assert prompt.asked[0][0] == "write_file"
        assert not (temp_workspace.root / "out.txt").exists()

    def test_feedback(self, temp_workspace):
        """Test feedback is passed back to the model with the refusal."""
        supervisor, _ = make_supervisor(temp_workspace, RecordingPrompt("feedback: use string_replace"))

        [result] = supervisor.execute([write_call()])

        assert result.output == declined_message("write_file", "use string_replace")
        assert result.output.endswith("User feedback - do this instead: use string_replace")

    def test_always_skips_later_prompts(self, temp_workspace):
        """Test 'always' approves this call and every later one."""
        prompt = RecordingPrompt("always")
        supervisor, _ = make_supervisor(temp_workspace, prompt)

        results = supervisor.execute([write_call("c1", "a.txt"), write_call("c2", "b.txt")])

        assert [r.is_error for r in results] == [False, False]
        assert len(prompt.asked) == 1
        assert "write_file" in supervisor.gate.always_allow
        assert (temp_workspace.root / "b.txt").read_text() == "data\n"

    def test_tool_failure_becomes_error_result(self, temp_workspace):
        """Test a failing tool is reported as 'Error: ...'."""
        supervisor, _ = make_supervisor(temp_workspace)

        [result] = supervisor.execute([ToolCall("c1", "read_file", {"path": "missing.py"})])

        assert result.is_error is True
        assert result.output == "Error: File not found: missing.py"

    def test_bad_arguments_become_error_result(self, temp_workspace):
        """Test unexpected arguments do not escape as exceptions."""
        supervisor, _ = make_supervisor(temp_workspace)

        [result] = supervisor.execute([ToolCall("c1", "read_file", {"file": "a.py"})])

        assert result.is_error is True
        assert result.output.startswith("Error: ")

    def test_results_and_events_in_call_order(self, temp_workspace, sample_file):
        """Test each call emits tool_call then tool_result, in order."""
        supervisor, events = make_supervisor(temp_workspace)
        calls = [
            ToolCall("c1", "read_file", {"path": "sample.py"}),
            ToolCall("c2", "nope", {}),
            ToolCall("c3", "find_files", {"pattern": "*.py"}),
        ]

        results = supervisor.execute(calls)

        assert [r.tool_call_id for r in results] == ["c1", "c2", "c3"]
        assert [kind for kind, _ in events] == ["tool_call", "tool_result"] * 3
        assert events[0][1] is calls[0]
        assert events[1][1] is results[0]

    def test_cancelled_calls_are_filled(self, temp_workspace):
        """Test a cancelled token gives every remaining call a cancelled result."""
        supervisor, _ = make_supervisor(temp_workspace)
        token = CancellationToken()
        token.cancel()

        results = supervisor.execute([write_call("c1"), write_call("c2")], token=token)

        assert [r.output for r in results] == [CANCELLED_OUTPUT, CANCELLED_OUTPUT]
        assert [r.tool_call_id for r in results] == ["c1", "c2"]
        assert supervisor.execute([write_call()], token=token, fill_cancelled=False) == []

    def test_auto_accept_skips_file_prompts(self, temp_workspace):
        """Test file writes run without asking in auto-accept mode."""
        prompt = RecordingPrompt()
        supervisor, _ = make_supervisor(temp_workspace, prompt, mode=DevelopmentMode.AUTO_ACCEPT)

        [result] = supervisor.execute([write_call()])

        assert result.is_error is False
        assert prompt.asked == []

    def test_shell_prompts_in_auto_accept(self, temp_workspace):
        """Test shell commands still ask in auto-accept mode."""
        prompt = RecordingPrompt("no")
        supervisor, _ = make_supervisor(temp_workspace, prompt, mode=DevelopmentMode.AUTO_ACCEPT)

        supervisor.execute([ToolCall("c1", "execute_bash", {"command": "echo hi"})])

        assert prompt.asked[0][1] == "execute_bash(command=echo hi)"


class TestPlanPolicy:
    """Tests for plan-mode restrictions in the supervisor."""

    def _plan(self, workspace):
        plan = PlanManager(workspace.root).create_plan()
        state = PlanState()
        state.start(PlanSession(plan.slug, plan.path, workspace_root=workspace.root))
        return plan, state

    def test_source_write_is_refused_without_prompt(self, temp_workspace):
        """Test writes outside the plan are refused before approval."""
        _, state = self._plan(temp_workspace)
        prompt = RecordingPrompt("yes")
        supervisor, _ = make_supervisor(temp_workspace, prompt, DevelopmentMode.PLAN, state)

        [result] = supervisor.execute([write_call(path="src/app.py")])

        assert result.output.startswith("Error: Tool 'write_file' is not available in plan mode")
        assert prompt.asked == []

    def test_plan_document_write_is_allowed(self, temp_workspace):
        """Test the plan documents can be written after approval."""
        plan, state = self._plan(temp_workspace)
        supervisor, _ = make_supervisor(temp_workspace, RecordingPrompt("yes"), DevelopmentMode.PLAN, state)

        [result] = supervisor.execute([write_call(path=str(plan.path / "design.md"), content="# Design\n")])

        assert result.is_error is False
        assert (plan.path / "design.md").read_text() == "# Design\n"

    def test_read_only_tools_allowed(self, temp_workspace, sample_file):
        """Test exploration keeps working in plan mode."""
        _, state = self._plan(temp_workspace)
        supervisor, _ = make_supervisor(temp_workspace, mode=DevelopmentMode.PLAN, plan_state=state)

        [result] = supervisor.execute([ToolCall("c1", "read_file", {"path": "sample.py"})])

        assert result.is_error is False

    def test_policy_ignored_outside_plan_mode(self, temp_workspace):
        """Test a lingering plan session does not restrict normal mode."""
        _, state = self._plan(temp_workspace)
        supervisor, _ = make_supervisor(temp_workspace, RecordingPrompt("yes"), DevelopmentMode.NORMAL, state)

        [result] = supervisor.execute([write_call(path="src/app.py")])

        assert result.is_error is False

    def test_non_string_path_does_not_abort_batch(self, temp_workspace):
        """Test a malformed path is refused and later calls still run."""
        _, state = self._plan(temp_workspace)
        supervisor, _ = make_supervisor(temp_workspace, RecordingPrompt("yes"), DevelopmentMode.PLAN, state)

        results = supervisor.execute([
            ToolCall("c1", "write_file", {"path": 123, "content": "x"}),
            ToolCall("c2", "read_file", {"path": "nope.txt"}),
        ])

        assert [r.tool_call_id for r in results] == ["c1", "c2"]
        assert results[0].is_error is True
        assert "not available in plan mode" in results[0].output
        assert results[1].output == "Error: File not found: nope.txt"
