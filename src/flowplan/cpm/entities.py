"""
Input records for the scheduling core.

Everything here is already deserialized by the data-access layer. Schedule
outputs (ES/EF/LS/LF/slack) are deliberately absent from Task: they live in
TaskSchedule records of a ScheduleResult and are recomputed on every call.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from flowplan.cpm.errors import InvalidDependencyError, SelfDependencyError


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class DependencyType(str, Enum):
    FS = "FS"  # Finish-to-Start
    SS = "SS"  # Start-to-Start
    FF = "FF"  # Finish-to-Finish
    SF = "SF"  # Start-to-Finish


class PhaseStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"


class CalendarExceptionType(str, Enum):
    HOLIDAY = "holiday"
    NON_WORKING = "non_working"


class TimeOffStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Task:
    id: str
    duration: int = 0
    phase_id: Optional[str] = None
    status: TaskStatus = TaskStatus.PENDING
    name: str = ""
    estimated_hours: Optional[float] = None
    assignee_id: Optional[str] = None

    def __post_init__(self):
        # Accept plain strings coming from JSON / DataFrames
        if not isinstance(self.status, TaskStatus):
            object.__setattr__(self, "status", TaskStatus(self.status))

    @property
    def is_done(self) -> bool:
        return self.status is TaskStatus.DONE


@dataclass(frozen=True)
class Dependency:
    """
    Directed edge predecessor -> successor.

    Self-loops are rejected here, at construction, independent of any engine
    call. Lag is in workdays and may be negative (a lead).
    """

    predecessor_id: str
    successor_id: str
    type: DependencyType = DependencyType.FS
    lag: int = 0

    def __post_init__(self):
        if self.predecessor_id == self.successor_id:
            raise SelfDependencyError(self.predecessor_id)

        dep_type = self.type
        if dep_type is None or dep_type == "":
            dep_type = DependencyType.FS
        try:
            dep_type = DependencyType(str(getattr(dep_type, "value", dep_type)).upper())
        except ValueError:
            raise InvalidDependencyError(
                f"Unknown dependency type {self.type!r} "
                f"({self.predecessor_id} -> {self.successor_id})"
            ) from None
        object.__setattr__(self, "type", dep_type)

        lag = self.lag
        if lag is None:
            lag = 0
        try:
            whole = not isinstance(lag, bool) and float(lag).is_integer()
        except (TypeError, ValueError):
            whole = False
        if not whole:
            raise InvalidDependencyError(
                f"Lag must be a whole number of days, got {self.lag!r} "
                f"({self.predecessor_id} -> {self.successor_id})"
            )
        object.__setattr__(self, "lag", int(float(lag)))


@dataclass(frozen=True)
class ProjectPhase:
    id: str
    name: str
    phase_order: int
    project_id: Optional[str] = None
    status: PhaseStatus = PhaseStatus.PENDING
    # Informational only; lock status is derived from the live task list.
    task_count: int = 0
    completed_task_count: int = 0
    created_at: Optional[datetime.datetime] = None

    def __post_init__(self):
        if not isinstance(self.status, PhaseStatus):
            object.__setattr__(self, "status", PhaseStatus(self.status))


@dataclass(frozen=True)
class CalendarException:
    date: datetime.date
    type: CalendarExceptionType = CalendarExceptionType.HOLIDAY
    end_date: Optional[datetime.date] = None
    name: Optional[str] = None

    def dates(self) -> Tuple[datetime.date, ...]:
        """Every calendar day covered, end_date inclusive."""
        end = self.end_date or self.date
        if end < self.date:
            return (self.date,)
        span = (end - self.date).days
        return tuple(self.date + datetime.timedelta(days=i) for i in range(span + 1))


@dataclass(frozen=True)
class TimeOff:
    team_member_id: str
    start_date: datetime.date
    end_date: datetime.date
    status: TimeOffStatus = TimeOffStatus.PENDING

    def __post_init__(self):
        if not isinstance(self.status, TimeOffStatus):
            object.__setattr__(self, "status", TimeOffStatus(self.status))


@dataclass(frozen=True)
class TeamMember:
    id: str
    work_hours_per_day: float = 8
    # Python weekday numbers (Mon=0); None means "use the project calendar"
    work_days: Optional[Tuple[int, ...]] = None
    user_id: Optional[str] = None
    display_name: str = ""
