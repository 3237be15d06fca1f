"""Schedule and run-log persistence.

Missing or corrupt files read as empty lists; first runs rely on that.
"""

import uuid
from pathlib import Path
from typing import Optional

from relaycode.schedule.types import Schedule, ScheduleRun, utc_now_iso
from relaycode.storage import read_json, write_json
from relaycode.workspace import WORKSPACE_DIR


SCHEDULES_FILE = "schedules.json"
SCHEDULE_RUNS_FILE = "schedule-runs.json"

# Only the newest runs are kept
MAX_RUNS = 100


def generate_schedule_id() -> str:
    """Eight hex characters."""
    return uuid.uuid4().hex[:8]


def generate_run_id() -> str:
    return f"run-{generate_schedule_id()}"


class ScheduleStore:
    """Reads and writes schedules under <root>/.relaycode/."""

    def __init__(self, root: Path):
        self.root = Path(root)

    @property
    def data_dir(self) -> Path:
        return self.root / WORKSPACE_DIR

    @property
    def schedules_path(self) -> Path:
        return self.data_dir / SCHEDULES_FILE

    @property
    def runs_path(self) -> Path:
        return self.data_dir / SCHEDULE_RUNS_FILE

    # -- schedules ---------------------------------------------------------

    def load_schedules(self) -> list[Schedule]:
        data = read_json(self.schedules_path, {})
        if not isinstance(data, dict):
            return []
        entries = data.get("schedules") or []
        return [Schedule.from_dict(e) for e in entries if isinstance(e, dict)]

    def save_schedules(self, schedules: list[Schedule]) -> None:
        write_json(self.schedules_path, {"schedules": [s.to_dict() for s in schedules]})

    def get(self, schedule_id: str) -> Optional[Schedule]:
        return next((s for s in self.load_schedules() if s.id == schedule_id), None)

    def add_schedule(self, cron: str, command: str, enabled: bool = True) -> Schedule:
        schedules = self.load_schedules()
        schedule = Schedule(
            id=generate_schedule_id(),
            cron=cron,
            command=command,
            enabled=enabled,
            created_at=utc_now_iso(),
        )
        schedules.append(schedule)
        self.save_schedules(schedules)
        return schedule

    def remove_schedule(self, schedule_id: str) -> bool:
        schedules = self.load_schedules()
        remaining = [s for s in schedules if s.id != schedule_id]
        if len(remaining) == len(schedules):
            return False
        self.save_schedules(remaining)
        return True

    def set_enabled(self, schedule_id: str, enabled: bool) -> bool:
        schedules = self.load_schedules()
        for schedule in schedules:
            if schedule.id == schedule_id:
                schedule.enabled = enabled
                self.save_schedules(schedules)
                return True
        return False

    def mark_run(self, schedule_id: str, when: str) -> None:
        """Record `when` as the schedule's last run time."""
        schedules = self.load_schedules()
        for schedule in schedules:
            if schedule.id == schedule_id:
                schedule.last_run_at = when
                self.save_schedules(schedules)
                return

    # -- runs --------------------------------------------------------------

    def load_runs(self) -> list[ScheduleRun]:
        data = read_json(self.runs_path, {})
        if not isinstance(data, dict):
            return []
        entries = data.get("runs") or []
        return [ScheduleRun.from_dict(e) for e in entries if isinstance(e, dict)]

    def save_runs(self, runs: list[ScheduleRun]) -> None:
        capped = runs[-MAX_RUNS:]
        write_json(self.runs_path, {"runs": [r.to_dict() for r in capped]})

    def add_run(self, run: ScheduleRun) -> None:
        runs = self.load_runs()
        runs.append(run)
        self.save_runs(runs)

    def update_run(self, run_id: str, **updates) -> bool:
        """Update completed_at / status / error of a logged run."""
        runs = self.load_runs()
        for run in runs:
            if run.id == run_id:
                for key in ("completed_at", "status", "error"):
                    if key in updates:
                        setattr(run, key, updates[key])
                self.save_runs(runs)
                return True
        return False
