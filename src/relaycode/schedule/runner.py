"""Scheduled job runner.

Enabled schedules get a cron trigger on a ticker thread. Fired schedules go
into a queue (one entry per schedule id) that is drained by a single worker,
so jobs never overlap: each job clears the conversation, submits the
command file's prompt and waits for the conversation to finish.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from relaycode.cancellation import OperationCancelled
from relaycode.schedule.cron import next_run_time, validate_cron
from relaycode.schedule.storage import ScheduleStore, generate_run_id
from relaycode.schedule.types import (
    Schedule,
    ScheduleError,
    ScheduleRun,
    STATUS_ERROR,
    STATUS_RUNNING,
    STATUS_SUCCESS,
    utc_now_iso,
)
from relaycode.style import dim


@dataclass
class CommandFile:
    """A prompt file with optional front matter."""
    content: str
    metadata: dict = field(default_factory=dict)

    @property
    def description(self) -> str:
        return self.metadata.get("description", "")


def parse_command_file(path: Path) -> CommandFile:
    """Read a command file, splitting off a leading `---` front matter block."""
    text = Path(path).read_text(encoding="utf-8")
    metadata = {}

    lines = text.splitlines()
    if lines and lines[0].strip() == "---":
        for end in range(1, len(lines)):
            if lines[end].strip() == "---":
                for line in lines[1:end]:
                    key, sep, value = line.partition(":")
                    if sep and key.strip():
                        metadata[key.strip()] = value.strip().strip("\"'")
                text = "\n".join(lines[end + 1:])
                break

    return CommandFile(content=text.strip(), metadata=metadata)


def _noop(*args, **kwargs):
    return None


def _always_complete(timeout: Optional[float] = None) -> bool:
    return True


@dataclass
class ScheduleRunnerCallbacks:
    """How the runner drives a conversation.

    wait_for_conversation_complete(timeout) returns False when the timeout
    expired. A failed conversation re-raises its error; a cancelled one
    raises OperationCancelled.
    """
    handle_message_submit: Callable[[str], None] = _noop
    clear_messages: Callable[[], None] = _noop
    on_job_start: Callable[[Schedule], None] = _noop
    on_job_complete: Callable[[Schedule, ScheduleRun], None] = _noop
    on_job_error: Callable[[Schedule, str], None] = _noop
    wait_for_conversation_complete: Callable[[Optional[float]], bool] = _always_complete
    cancel_conversation: Callable[[], None] = _noop


@dataclass
class _Trigger:
    schedule: Schedule
    next_at: Optional[datetime]


def _format_seconds(seconds: float) -> str:
    return str(int(seconds)) if float(seconds).is_integer() else str(seconds)


class ScheduleRunner:
    """Runs enabled schedules one job at a time."""

    def __init__(
        self,
        callbacks: ScheduleRunnerCallbacks,
        store: ScheduleStore,
        commands_dir: Path,
        job_timeout: Optional[float] = None,
        poll_interval: float = 1.0,
    ):
        self.callbacks = callbacks
        self.store = store
        self.commands_dir = Path(commands_dir)
        self.job_timeout = job_timeout
        self.poll_interval = poll_interval

        self._lock = threading.Lock()
        self._triggers: dict[str, _Trigger] = {}
        self._queue: list[Schedule] = []
        self._running = False
        self._processing = False
        self._stop_event = threading.Event()
        self._ticker: Optional[threading.Thread] = None

    # -- state -------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    @property
    def is_processing(self) -> bool:
        with self._lock:
            return self._processing

    @property
    def active_job_count(self) -> int:
        with self._lock:
            return len(self._triggers)

    @property
    def queue_length(self) -> int:
        with self._lock:
            return len(self._queue)

    # -- lifecycle ---------------------------------------------------------

    def start(self) -> None:
        """Register a trigger for every enabled schedule. No-op if already running.

        Jobs enqueued while the runner was stopped start running right away.
        """
        with self._lock:
            if self._running:
                return
            self._running = True
            self._stop_event = threading.Event()

        for schedule in self.store.load_schedules():
            if schedule.enabled:
                self._register(schedule)

        self._ticker = threading.Thread(
            target=self._tick_loop,
            args=(self._stop_event,),
            name="relaycode-schedule-ticker",
            daemon=True,
        )
        self._ticker.start()
        self._process_queue()

    def stop(self) -> None:
        """Drop triggers and pending jobs. A job already running is not interrupted."""
        with self._lock:
            self._running = False
            self._triggers.clear()
            self._queue.clear()
            self._stop_event.set()

    def _register(self, schedule: Schedule) -> None:
        error = validate_cron(schedule.cron)
        if error:
            print(dim(f"[schedule] skipping {schedule.id}: invalid cron '{schedule.cron}' ({error})"))
            return
        with self._lock:
            self._triggers[schedule.id] = _Trigger(schedule, next_run_time(schedule.cron))

    def _tick_loop(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.poll_interval):
            self.tick()

    def tick(self, now: Optional[datetime] = None) -> list[Schedule]:
        """Enqueue every schedule whose trigger time has passed.

        Returns:
            The schedules that fired.
        """
        now = now or datetime.now()
        fired = []
        with self._lock:
            for trigger in self._triggers.values():
                if trigger.next_at is not None and trigger.next_at <= now:
                    fired.append(trigger.schedule)
                    trigger.next_at = next_run_time(trigger.schedule.cron, now)
        for schedule in fired:
            self.enqueue(schedule)
        return fired

    # -- queue -------------------------------------------------------------

    def enqueue(self, schedule: Schedule) -> bool:
        """Queue a schedule unless it is already queued.

        Returns:
            True if it was added.
        """
        with self._lock:
            if any(s.id == schedule.id for s in self._queue):
                return False
            self._queue.append(schedule)
        self._process_queue()
        return True

    def _process_queue(self) -> None:
        with self._lock:
            if self._processing or not self._queue or not self._running:
                return
            self._processing = True
        worker = threading.Thread(target=self._drain, name="relaycode-schedule-worker", daemon=True)
        worker.start()

    def _drain(self) -> None:
        try:
            while True:
                with self._lock:
                    if not self._running or not self._queue:
                        break
                    schedule = self._queue.pop(0)
                self.execute_job(schedule)
        finally:
            with self._lock:
                self._processing = False
        # Something may have been queued after the last check
        self._process_queue()

    # -- jobs --------------------------------------------------------------

    def _command_path(self, command: str) -> Path:
        path = (self.commands_dir / command).resolve()
        try:
            path.relative_to(self.commands_dir.resolve())
        except ValueError:
            raise ScheduleError(f"Schedule file not found: {command}. Ensure it exists in .relaycode/schedules/")
        if not path.is_file():
            raise ScheduleError(f"Schedule file not found: {command}. Ensure it exists in .relaycode/schedules/")
        return path

    def execute_job(self, schedule: Schedule) -> ScheduleRun:
        """Run one schedule now and record the outcome.

        Errors are recorded on the run and reported through on_job_error;
        they are never raised.
        """
        run = ScheduleRun(
            id=generate_run_id(),
            schedule_id=schedule.id,
            command=schedule.command,
            started_at=utc_now_iso(),
            status=STATUS_RUNNING,
        )
        self.store.add_run(run)
        self.callbacks.on_job_start(schedule)

        try:
            self.callbacks.clear_messages()

            parsed = parse_command_file(self._command_path(schedule.command))
            prompt = f"[Executing scheduled command: {schedule.command}]\n\n{parsed.content}"
            self.callbacks.handle_message_submit(prompt)

            try:
                completed = self.callbacks.wait_for_conversation_complete(self.job_timeout)
            except OperationCancelled as e:
                raise ScheduleError(f"Scheduled job cancelled: {e.reason}")
            if not completed:
                self.callbacks.cancel_conversation()
                raise ScheduleError(
                    f"Scheduled job timed out after {_format_seconds(self.job_timeout)}s"
                )

            run.completed_at = utc_now_iso()
            run.status = STATUS_SUCCESS
            self.store.update_run(run.id, completed_at=run.completed_at, status=STATUS_SUCCESS)
            self.store.mark_run(schedule.id, run.completed_at)
            self.callbacks.on_job_complete(schedule, run)
        except Exception as e:
            message = str(e) or e.__class__.__name__
            run.completed_at = utc_now_iso()
            run.status = STATUS_ERROR
            run.error = message
            self.store.update_run(
                run.id, completed_at=run.completed_at, status=STATUS_ERROR, error=message
            )
            self.callbacks.on_job_error(schedule, message)

        return run
