import datetime
import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from flowplan.config import load_settings
from flowplan.cpm.calendar import WorkCalendar, to_date
from flowplan.cpm.entities import TeamMember, TimeOff, TimeOffStatus

logger = logging.getLogger(__name__)


def effective_duration(estimated_hours: float, work_hours_per_day: Optional[float] = None) -> int:
    """
    Workdays needed for `estimated_hours` at `work_hours_per_day` (rounded up).
    """
    per_day = work_hours_per_day or load_settings().work_hours_per_day
    if estimated_hours is None or estimated_hours <= 0:
        return 0
    return int(math.ceil(estimated_hours / per_day))


@dataclass(frozen=True)
class DurationEstimate:
    base_duration: int
    effective_duration: int
    time_off_days: int = 0
    affected_time_off: List[TimeOff] = field(default_factory=list)


def duration_with_time_off(
    estimated_hours: float,
    start_date,
    member: TeamMember,
    time_off: Sequence[TimeOff],
    calendar: Optional[WorkCalendar] = None,
) -> DurationEstimate:
    """
    Extend a task's duration by the member's approved time-off inside it.

    The base window runs from start_date for base_duration working days on
    the member's own work week (else the calendar's). Each approved time-off
    period overlapping that window adds one day per working day it covers
    inside the window.
    """
    base = effective_duration(estimated_hours, member.work_hours_per_day)

    calendar = calendar or WorkCalendar()
    if member.work_days:
        calendar = WorkCalendar(member.work_days, calendar.holidays)

    approved = [t for t in time_off if t.status is TimeOffStatus.APPROVED]
    ignored = len(time_off) - len(approved)
    if ignored:
        logger.debug("Ignoring %d non-approved time-off record(s) for %s", ignored, member.id)

    if not approved:
        return DurationEstimate(base_duration=base, effective_duration=base)

    start = to_date(start_date)
    window_end = calendar.add_working_days(start, base)

    affected = []
    extra_days = 0
    for t in approved:
        t_start = to_date(t.start_date)
        t_end = to_date(t.end_date)
        if t_end < start or t_start > window_end:
            continue
        affected.append(t)

        lo = max(t_start, start)
        hi = min(t_end, window_end)
        day = lo
        while day <= hi:
            if calendar.is_working_day(day):
                extra_days += 1
            day += datetime.timedelta(days=1)

    return DurationEstimate(
        base_duration=base,
        effective_duration=base + extra_days,
        time_off_days=extra_days,
        affected_time_off=affected,
    )
