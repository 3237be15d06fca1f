"""Cron-scheduled prompts run through the conversation loop."""

from relaycode.schedule.types import (
    Schedule,
    ScheduleRun,
    ScheduleError,
    STATUS_RUNNING,
    STATUS_SUCCESS,
    STATUS_ERROR,
)
from relaycode.schedule.storage import ScheduleStore, generate_schedule_id, MAX_RUNS
from relaycode.schedule.cron import validate_cron, next_run_time, format_cron_human
from relaycode.schedule.runner import (
    ScheduleRunner,
    ScheduleRunnerCallbacks,
    CommandFile,
    parse_command_file,
)

__all__ = [
    "Schedule",
    "ScheduleRun",
    "ScheduleError",
    "STATUS_RUNNING",
    "STATUS_SUCCESS",
    "STATUS_ERROR",
    "ScheduleStore",
    "generate_schedule_id",
    "MAX_RUNS",
    "validate_cron",
    "next_run_time",
    "format_cron_human",
    "ScheduleRunner",
    "ScheduleRunnerCallbacks",
    "CommandFile",
    "parse_command_file",
]
