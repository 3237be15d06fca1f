"""Schedule records as stored in .relaycode/schedules.json and schedule-runs.json."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


STATUS_RUNNING = "running"
STATUS_SUCCESS = "success"
STATUS_ERROR = "error"


class ScheduleError(Exception):
    """A scheduled job could not be set up or run."""
    pass


def utc_now_iso() -> str:
    """Current time as an ISO-8601 UTC string with millisecond precision."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class Schedule:
    id: str
    cron: str
    command: str
    enabled: bool = True
    created_at: str = ""
    last_run_at: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cron": self.cron,
            "command": self.command,
            "enabled": self.enabled,
            "createdAt": self.created_at,
            "lastRunAt": self.last_run_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Schedule":
        return cls(
            id=str(data.get("id", "")),
            cron=str(data.get("cron", "")),
            command=str(data.get("command", "")),
            enabled=bool(data.get("enabled", True)),
            created_at=data.get("createdAt") or "",
            last_run_at=data.get("lastRunAt"),
        )


@dataclass
class ScheduleRun:
    """One execution of a schedule."""
    id: str
    schedule_id: str
    command: str
    started_at: str
    completed_at: Optional[str] = None
    status: str = STATUS_RUNNING
    error: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "scheduleId": self.schedule_id,
            "command": self.command,
            "startedAt": self.started_at,
            "completedAt": self.completed_at,
            "status": self.status,
        }
        if self.error is not None:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ScheduleRun":
        return cls(
            id=str(data.get("id", "")),
            schedule_id=str(data.get("scheduleId", "")),
            command=str(data.get("command", "")),
            started_at=data.get("startedAt") or "",
            completed_at=data.get("completedAt"),
            status=data.get("status", STATUS_RUNNING),
            error=data.get("error"),
        )
