"""CLI entry point and interactive REPL."""

import click
import atexit
import sys
import time
from pathlib import Path
from typing import Any, Optional

# No readline on Windows; input() still works without history
try:
    import readline
except ImportError:
    readline = None

from relaycode import __version__
from relaycode.config import Config
from relaycode.llm import LLMError, LLMProvider, create_provider, PROVIDERS
from relaycode.mode import DevelopmentMode, ModeManager, starting_mode
from relaycode.permissions import ApprovalGate, decline_prompt
from relaycode.plan import PlanManager, PlanState, PHASE_LABELS
from relaycode.schedule import (
    ScheduleRunner,
    ScheduleRunnerCallbacks,
    ScheduleStore,
    format_cron_human,
    parse_command_file,
    validate_cron,
)
from relaycode.session import ChatSession, SessionBusy, SessionStore, format_session_list
from relaycode.style import bold, cyan, dim, green, red, yellow
from relaycode.workspace import Workspace, ensure_global_config


MODE_CHOICES = [m.value for m in DevelopmentMode]


def _format_event_summary(kind: str, payload: Any) -> Optional[str]:
    """One-line status text for loop events that are not plain output."""
    if kind == "tool_call":
        args = []
        for key, value in payload.arguments.items():
            if isinstance(value, str) and len(value) > 60:
                value = value[:60] + "..."
            args.append(f"{key}={value!r}")
        return cyan(f"[{payload.name}] {', '.join(args)}")
    if kind == "phase":
        return yellow(f"[PLAN] Now in {PHASE_LABELS[payload]} phase")
    if kind == "malformed":
        return yellow(f"[Malformed tool call] {payload}. Asking the model to retry.")
    if kind == "continue":
        return dim(f"[Auto-continue] {payload.reason}")
    return None


def select_exit_mode() -> Optional[DevelopmentMode]:
    """Ask which mode to switch to after a plan is finished."""
    if not sys.stdin.isatty():
        return None
    print()
    print(yellow("Plan complete. Continue in which mode?"))
    print(f"  {green('[n]ormal')}  {green('[a]uto-accept')}")
    try:
        answer = input("  > ").strip().lower()
    except EOFError:
        return None
    if answer in ("a", "auto", "auto-accept"):
        return DevelopmentMode.AUTO_ACCEPT
    return DevelopmentMode.NORMAL


class RelaycodeREPL:
    """Interactive chat REPL on top of a ChatSession."""

    def __init__(self, config: Config = None, workspace: Workspace = None, llm: LLMProvider = None):
        self.workspace = workspace or Workspace()
        self.config = config or Config.load(workspace=self.workspace)
        self.llm = llm or create_provider(self.config)

        self.mode_manager = ModeManager(starting_mode(self.config.default_mode))
        self.mode_manager.on_mode_change(self._on_mode_change)
        self.plan_state = PlanState()

        self.session: Optional[ChatSession] = None
        if self.llm:
            self.session = ChatSession(
                self.llm,
                config=self.config,
                workspace=self.workspace,
                mode_manager=self.mode_manager,
                gate=ApprovalGate(always_allow=self.config.always_allow),
                plan_state=self.plan_state,
                mode_selector=select_exit_mode,
                on_event=self._on_event,
            )

        self.store = SessionStore(self.workspace.sessions_dir, workspace_root=self.workspace.root)
        self.current_session_id: Optional[str] = None
        self._streaming = False

        self._setup_readline()

    # -- terminal ----------------------------------------------------------

    def _setup_readline(self) -> None:
        """Load input history and save it on exit."""
        if readline is None:
            self.history_file = None
            return

        self.history_file = self.workspace.sessions_dir.parent / "history"
        self.history_file.parent.mkdir(parents=True, exist_ok=True)
        try:
            if self.history_file.exists():
                readline.read_history_file(str(self.history_file))
        except OSError:
            pass

        readline.set_history_length(1000)
        atexit.register(self._save_history)

    def _save_history(self) -> None:
        if readline is None or self.history_file is None:
            return
        try:
            readline.write_history_file(str(self.history_file))
        except OSError:
            pass

    def _get_prompt(self) -> str:
        mode = self.mode_manager.mode
        if mode == DevelopmentMode.PLAN and self.plan_state.session:
            phase = self.plan_state.session.phase.value
            return f"[plan:{phase}] > "
        return f"[{mode.value}] > "

    def _on_mode_change(self, old: DevelopmentMode, new: DevelopmentMode) -> None:
        print(f"\n[MODE] {old.label} -> {new.label}")

    def _on_event(self, kind: str, payload: Any) -> None:
        if kind == "token":
            if not self._streaming:
                self._streaming = True
            sys.stdout.write(payload)
            sys.stdout.flush()
            return

        if kind == "assistant":
            if self._streaming:
                print()
                self._streaming = False
            elif payload.content:
                print(payload.content)
            return

        if kind == "error":
            return  # reported after the turn

        summary = _format_event_summary(kind, payload)
        if summary:
            if self._streaming:
                print()
                self._streaming = False
            print(summary)

    # -- main loop ---------------------------------------------------------

    def run(self) -> None:
        """Run the REPL until /quit or EOF."""
        print(bold(f"relaycode v{__version__}"))
        print(f"Provider: {self.config.llm_provider} | Model: {self.config.llm_model}")
        print(f"Mode: {self.mode_manager.mode.label}")
        if self.workspace.is_initialized:
            print(f"Workspace: {self.workspace.root}")

        if not self.session:
            print(red("\n[Error] No LLM provider configured."))
            print("\nFor Anthropic (default):")
            print("  export ANTHROPIC_API_KEY='your-key-here'")
            print("\nFor OpenAI:")
            print("  export OPENAI_API_KEY='your-key-here'")
            print("\nFor custom providers (Ollama, LM Studio, etc.):")
            print("  export RELAYCODE_BASE_URL='http://localhost:11434/v1'")
            print("  export RELAYCODE_LLM_MODEL='llama3'")
            return

        print("\nType /help for commands, /quit to exit. Ctrl+C cancels a running turn.\n")

        while True:
            try:
                line = input(self._get_prompt()).strip()
                if not line:
                    continue
                if not self._handle_input(line):
                    break
            except KeyboardInterrupt:
                print("\n[Use /quit to exit]")
            except EOFError:
                break

        print("\nGoodbye.")

    def _handle_input(self, line: str) -> bool:
        """Route one line of input. Returns False to leave the REPL."""
        if line.startswith("/"):
            return self._handle_command(line)
        self._handle_chat(line)
        return True

    def _handle_chat(self, text: str) -> None:
        """Run a turn in the background so Ctrl+C can cancel it."""
        try:
            self.session.submit_async(text)
        except SessionBusy as e:
            print(yellow(f"[Busy] {e}"))
            return

        while True:
            try:
                if self.session.wait_until_idle(timeout=0.1):
                    break
            except KeyboardInterrupt:
                if self.session.cancel("Cancelled by user"):
                    print(yellow("\n[Cancelling...]"))

        if self._streaming:
            print()
            self._streaming = False

        error = self.session.last_error
        if error is not None:
            if isinstance(error, LLMError):
                print(red(f"[LLM Error] {error}"))
            else:
                print(red(f"[Error] {error}"))
            return

        result = self.session.last_result
        if result is not None and result.cancelled:
            print(yellow("[Cancelled by user]"))

    # -- slash commands ----------------------------------------------------

    def _handle_command(self, line: str) -> bool:
        cmd, _, args = line[1:].partition(" ")
        cmd = cmd.lower()
        args = args.strip()

        if cmd in ("quit", "exit"):
            return False

        commands = {
            "help": self._cmd_help,
            "mode": self._cmd_mode,
            "plan": self._cmd_plan,
            "plans": self._cmd_plans,
            "clear": self._cmd_clear,
            "save": self._cmd_save,
            "load": self._cmd_load,
            "sessions": self._cmd_sessions,
            "delete": self._cmd_delete,
            "config": self._cmd_config,
            "tools": self._cmd_tools,
        }

        if cmd in commands:
            commands[cmd](args)
        else:
            print(f"Unknown command: /{cmd}")
            print("Type /help for available commands")
        return True

    def _cmd_help(self, args: str) -> None:
        print("""
Commands:
  /mode [name]      Show or switch mode (normal, auto-accept, plan)
  /plan             Enter plan mode
  /plans            List plans in this workspace
  /tools            List available tools
  /clear            Clear conversation history
  /save [name]      Save the conversation
  /load <id>        Load a saved conversation
  /sessions         List saved conversations
  /delete <id>      Delete a saved conversation
  /config           Show configuration
  /quit             Exit

Anything else is sent to the assistant. Ctrl+C cancels a running turn.
""")

    def _cmd_mode(self, args: str) -> None:
        if not args:
            print(f"Current mode: {self.mode_manager.mode.label}")
            return
        try:
            target = DevelopmentMode.parse(args)
        except ValueError as e:
            print(red(str(e)))
            return

        if target == DevelopmentMode.PLAN:
            self._cmd_plan("")
            return
        if self.mode_manager.is_plan and self.plan_state.session:
            print(dim(f"Leaving plan '{self.plan_state.session.slug}' without finishing it."))
            self.plan_state.clear()
        self.mode_manager.set_mode(target)

    def _cmd_plan(self, args: str) -> None:
        """Enter plan mode the same way the model does."""
        tool = self.session.registry.get("enter-plan-mode")
        output = tool.invoke({"skip_directory_validation": args == "--force"})
        print(output)

    def _cmd_plans(self, args: str) -> None:
        manager = PlanManager(self.workspace.root or Path.cwd())
        print(format_plan_list(manager))

    def _cmd_tools(self, args: str) -> None:
        print(self.session.registry.get_tool_descriptions())

    def _cmd_clear(self, args: str) -> None:
        try:
            self.session.clear()
        except SessionBusy as e:
            print(yellow(str(e)))
            return
        self.current_session_id = None
        print("Conversation cleared.")

    def _cmd_save(self, args: str) -> None:
        if not self.session.messages:
            print("No conversation to save.")
            return
        self.current_session_id = self.store.save(
            self.session.messages,
            name=args or None,
            session_id=self.current_session_id,
        )
        print(f"Session saved: {self.current_session_id}")

    def _cmd_load(self, args: str) -> None:
        session_id = args or self.store.get_latest()
        if not session_id:
            print("No saved sessions.")
            return
        try:
            messages, metadata = self.store.load(session_id)
        except FileNotFoundError as e:
            print(red(str(e)))
            return
        try:
            self.session.clear()
        except SessionBusy as e:
            print(yellow(str(e)))
            return
        self.session.messages.extend(messages)
        self.current_session_id = metadata.id
        print(f"Loaded session {metadata.id}: {metadata.name} ({metadata.message_count} messages)")

    def _cmd_sessions(self, args: str) -> None:
        print(format_session_list(self.store.list_sessions()))

    def _cmd_delete(self, args: str) -> None:
        if not args:
            print("Usage: /delete <id>")
            return
        if not self.store.delete(args):
            print(red(f"Session not found: {args}"))
            return
        if args == self.current_session_id:
            self.current_session_id = None
        print(f"Deleted session {args}")

    def _cmd_config(self, args: str) -> None:
        print(self.config.show_config_info())


def format_plan_list(manager: PlanManager) -> str:
    plans = manager.list_plans()
    if not plans:
        return "No plans yet."
    lines = ["Plans:", ""]
    for plan in plans:
        lines.append(f"  {plan.slug}")
        lines.append(dim(f"       {plan.path}"))
    return "\n".join(lines)


def _load_workspace(auto_init: bool = False) -> Workspace:
    workspace = Workspace()
    if not workspace.is_initialized and auto_init:
        print(f"Initializing workspace in {Path.cwd()}...")
        workspace.init(Path.cwd())
        print("Created .relaycode/ directory\n")
    return workspace


HELP_EPILOG = """
\b
MODES
=====
  normal       Ask before file writes and shell commands (default)
  auto-accept  File edits run without asking; shell commands still ask
  plan         Read-only exploration; only the plan documents may be written

\b
SCHEDULES
=========
Put a prompt in .relaycode/schedules/<name>.md, then:
  relaycode schedule add "0 9 * * 1-5" standup.md
  relaycode schedule start

\b
QUICK START
===========
1. Set your API key:
   export ANTHROPIC_API_KEY="sk-ant-..."
2. Start the agent:
   relaycode
"""


@click.group(invoke_without_command=True, epilog=HELP_EPILOG)
@click.option("--version", "-v", is_flag=True, help="Show version and exit")
@click.pass_context
def cli(ctx, version):
    """relaycode: a terminal coding agent.

    \b
    Talks to Anthropic, OpenAI or any OpenAI-compatible API and works in
    your project through a small set of file and shell tools.

    \b
    USAGE:
      relaycode              Start the interactive REPL (default)
      relaycode init [PATH]  Initialize workspace in directory
      relaycode run [OPTS]   Start REPL with specific options
      relaycode config       Show current configuration
      relaycode plans        List plans
      relaycode schedule     Manage scheduled prompts
    """
    if version:
        click.echo(f"relaycode v{__version__}")
        ctx.exit()

    if ctx.invoked_subcommand is None:
        ctx.invoke(run)


@cli.command("init")
@click.argument("path", required=False, type=click.Path())
def init_cmd(path):
    """Initialize a new workspace.

    \b
    Creates a .relaycode/ directory with:
      - config.toml     Local configuration (overrides global)
      - workspace.json  Workspace metadata
      - plans/ schedules/ sessions/

    \b
    EXAMPLES:
      relaycode init           # Initialize in current directory
      relaycode init ./myproj  # Initialize in specific directory
    """
    workspace = Workspace()

    if workspace.is_initialized:
        print(f"Workspace already initialized at: {workspace.root}")
        return

    target = Path(path).resolve() if path else Path.cwd()
    workspace.init(target)

    print(f"Workspace initialized at: {workspace.root}")
    print("Created:")
    print("  .relaycode/")
    print("    - config.toml (local config)")
    print("    - workspace.json")
    print("    - plans/ schedules/ sessions/")
    print("Run 'relaycode' to start.")


@cli.command("run")
@click.option(
    "--mode", "-m",
    type=click.Choice(MODE_CHOICES),
    default=None,
    help="Initial development mode"
)
@click.option(
    "--provider", "-p",
    type=click.Choice(PROVIDERS),
    help="LLM provider"
)
@click.option(
    "--model",
    type=str,
    help="Model name (e.g., gpt-4o, claude-sonnet-4-20250514, llama3)"
)
@click.option(
    "--base-url",
    type=str,
    help="Base URL for custom OpenAI-compatible APIs"
)
@click.option("--no-stream", is_flag=True, help="Wait for whole responses instead of streaming")
@click.option("--debug", is_flag=True, help="Print requests, normalized responses and tool calls")
def run(mode: str, provider: str, model: str, base_url: str, no_stream: bool, debug: bool):
    """Start the interactive REPL.

    \b
    Command-line options override config file settings.

    \b
    EXAMPLES:
      relaycode run                     # Default settings
      relaycode run -m auto-accept      # Edit files without asking
      relaycode run -m plan             # Start by writing a plan
      relaycode run -p openai           # Use OpenAI
      relaycode run --model llama3 --base-url http://localhost:11434/v1
    """
    ensure_global_config()
    workspace = _load_workspace(auto_init=True)
    config = Config.load(workspace=workspace, debug=debug)

    if provider:
        config.llm_provider = provider
    if model:
        config.llm_model = model
    if base_url:
        config.base_url = base_url
        if config.llm_provider == "anthropic":
            config.llm_provider = "custom"
    if no_stream:
        config.stream = False
    if mode and mode != DevelopmentMode.PLAN.value:
        config.default_mode = mode

    repl = RelaycodeREPL(config=config, workspace=workspace)
    if mode == DevelopmentMode.PLAN.value and repl.session:
        repl._cmd_plan("")
    repl.run()


@cli.command("config")
@click.option("--global", "global_", is_flag=True, help="Show global config")
def config_cmd(global_):
    """Show current configuration.

    \b
    CONFIG LOCATIONS:
      Global:  ~/.relaycode/config.toml
      Local:   .relaycode/config.toml (per-project)

    \b
    PRIORITY (highest to lowest):
      1. Environment variables (RELAYCODE_*, ANTHROPIC_API_KEY, etc.)
      2. Local config (.relaycode/config.toml)
      3. Global config (~/.relaycode/config.toml)
    """
    workspace = Workspace()

    if global_:
        config_path = Workspace.global_config_path()
    elif workspace.is_initialized and workspace.local_config_path:
        config_path = workspace.local_config_path
    else:
        config_path = Workspace.global_config_path()

    if config_path.exists():
        print(f"Config: {config_path}\n")
        print(config_path.read_text(encoding="utf-8"))
    else:
        print(f"Config not found: {config_path}")

    print("-" * 60)
    print(Config.load(workspace=workspace).show_config_info())


@cli.command("plans")
def plans_cmd():
    """List plans in the current workspace."""
    workspace = Workspace()
    print(format_plan_list(PlanManager(workspace.root or Path.cwd())))


@cli.group("schedule")
def schedule():
    """Manage prompts that run on a cron schedule.

    \b
    A schedule pairs a cron expression with a prompt file in
    .relaycode/schedules/. `relaycode schedule start` runs them.
    """


def _schedule_store() -> tuple[Workspace, ScheduleStore]:
    workspace = Workspace()
    return workspace, ScheduleStore(workspace.root or Path.cwd())


@schedule.command("list")
def schedule_list():
    """List schedules."""
    _, store = _schedule_store()
    schedules = store.load_schedules()
    if not schedules:
        print("No schedules.")
        return
    for s in schedules:
        state = green("enabled") if s.enabled else dim("disabled")
        print(f"  [{s.id}] {s.cron:<15} {s.command}  ({state})")
        print(dim(f"       {format_cron_human(s.cron)} | last run: {s.last_run_at or 'never'}"))


@schedule.command("add")
@click.argument("cron")
@click.argument("command")
@click.option("--disabled", is_flag=True, help="Add without enabling")
def schedule_add(cron, command, disabled):
    """Add a schedule.

    \b
    CRON is a 5-field cron expression, COMMAND a file in .relaycode/schedules/.

    \b
    EXAMPLES:
      relaycode schedule add "*/30 * * * *" check-ci.md
      relaycode schedule add "0 9 * * 1-5" standup.md
    """
    error = validate_cron(cron)
    if error:
        raise click.BadParameter(error, param_hint="CRON")

    workspace, store = _schedule_store()
    if not (workspace.schedules_dir / command).is_file():
        print(yellow(f"Warning: {command} does not exist in {workspace.schedules_dir} yet."))

    s = store.add_schedule(cron, command, enabled=not disabled)
    print(f"Added schedule {s.id}: {format_cron_human(cron)} -> {command}")


@schedule.command("remove")
@click.argument("schedule_id")
def schedule_remove(schedule_id):
    """Remove a schedule."""
    _, store = _schedule_store()
    if not store.remove_schedule(schedule_id):
        raise click.ClickException(f"Schedule not found: {schedule_id}")
    print(f"Removed schedule {schedule_id}")


@schedule.command("enable")
@click.argument("schedule_id")
def schedule_enable(schedule_id):
    """Enable a schedule."""
    _, store = _schedule_store()
    if not store.set_enabled(schedule_id, True):
        raise click.ClickException(f"Schedule not found: {schedule_id}")
    print(f"Enabled schedule {schedule_id}")


@schedule.command("disable")
@click.argument("schedule_id")
def schedule_disable(schedule_id):
    """Disable a schedule."""
    _, store = _schedule_store()
    if not store.set_enabled(schedule_id, False):
        raise click.ClickException(f"Schedule not found: {schedule_id}")
    print(f"Disabled schedule {schedule_id}")


@schedule.command("runs")
@click.option("--limit", "-n", type=int, default=20, show_default=True, help="Runs to show")
def schedule_runs(limit):
    """Show recent scheduled runs, newest first."""
    _, store = _schedule_store()
    runs = list(reversed(store.load_runs()))[:limit]
    if not runs:
        print("No runs yet.")
        return
    for r in runs:
        status = {"success": green, "error": red}.get(r.status, yellow)(r.status)
        print(f"  {r.started_at}  [{r.schedule_id}] {r.command}  {status}")
        if r.error:
            print(dim(f"       {r.error}"))


@schedule.command("show")
@click.argument("command")
def schedule_show(command):
    """Print a command file's prompt."""
    workspace, _ = _schedule_store()
    path = workspace.schedules_dir / command
    if not path.is_file():
        raise click.ClickException(f"Schedule file not found: {command}")
    parsed = parse_command_file(path)
    if parsed.description:
        print(dim(parsed.description))
    print(parsed.content)


@schedule.command("start")
@click.option("--debug", is_flag=True, help="Print requests and normalized responses")
def schedule_start(debug):
    """Run enabled schedules until interrupted.

    \b
    Jobs run one at a time in a fresh conversation. Tool calls that would
    need approval are declined, so give unattended jobs the tools they need
    through always_allow in the config.
    """
    ensure_global_config()
    workspace, store = _schedule_store()
    config = Config.load(workspace=workspace, debug=debug)

    llm = create_provider(config)
    if llm is None:
        raise click.ClickException("No LLM provider configured. Run 'relaycode config' to check.")

    session = ChatSession(
        llm,
        config=config,
        workspace=workspace,
        gate=ApprovalGate(always_allow=config.always_allow, prompt_fn=decline_prompt),
        verbose=debug,
    )

    def on_start(s):
        print(cyan(f"[{time.strftime('%H:%M:%S')}] Running {s.command} ({s.id})"))

    def on_complete(s, r):
        print(green(f"[{time.strftime('%H:%M:%S')}] Finished {s.command}"))
        if session.last_result and session.last_result.final_content:
            print(dim(session.last_result.final_content))

    def on_error(s, message):
        print(red(f"[{time.strftime('%H:%M:%S')}] {s.command} failed: {message}"))

    runner = ScheduleRunner(
        ScheduleRunnerCallbacks(
            handle_message_submit=session.submit_async,
            clear_messages=session.clear,
            on_job_start=on_start,
            on_job_complete=on_complete,
            on_job_error=on_error,
            wait_for_conversation_complete=lambda timeout: session.wait_for_completion(
                timeout, raise_on_cancel=True
            ),
            cancel_conversation=session.cancel,
        ),
        store,
        commands_dir=workspace.schedules_dir,
        job_timeout=config.job_timeout_seconds,
        poll_interval=config.schedule_poll_interval,
    )

    runner.start()
    print(f"Scheduler running with {runner.active_job_count} active schedule(s). Ctrl+C to stop.")
    try:
        while runner.is_running:
            time.sleep(0.5)
    except KeyboardInterrupt:
        print("\nStopping scheduler...")
    finally:
        runner.stop()
        session.cancel("Scheduler stopped")


def main():
    """Entry point for the relaycode CLI."""
    cli()


if __name__ == "__main__":
    main()
