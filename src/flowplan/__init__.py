from flowplan.cpm.calendar import WorkCalendar
from flowplan.cpm.durations import DurationEstimate, duration_with_time_off, effective_duration
from flowplan.cpm.entities import (
    CalendarException,
    CalendarExceptionType,
    Dependency,
    DependencyType,
    PhaseStatus,
    ProjectPhase,
    Task,
    TaskStatus,
    TeamMember,
    TimeOff,
    TimeOffStatus,
)
from flowplan.cpm.errors import (
    CycleDetectedError,
    DanglingReferenceError,
    DuplicateTaskError,
    InvalidDependencyError,
    InvalidDurationError,
    ScheduleInvariantError,
    SchedulingError,
    SelfDependencyError,
)
from flowplan.cpm.graph import DependencyGraph, find_cycle
from flowplan.cpm.resource_schedule import compute_schedule_with_resources, member_calendars
from flowplan.cpm.schedule_engine import (
    CriticalNetwork,
    ScheduleResult,
    TaskSchedule,
    compute_schedule,
    critical_chains,
    critical_network,
)
from flowplan.phases.phase_lock import (
    LockReason,
    PhaseLockStatus,
    compute_phase_lock_status,
    is_phase_locked,
)
from flowplan.phases.unlock_notifier import PhaseUnlockTracker, UnlockEvent

__version__ = "0.3.0"
