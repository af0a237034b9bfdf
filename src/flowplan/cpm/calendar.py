import datetime
import logging
from typing import Iterable, Optional, Sequence

import numpy as np

from flowplan.config import load_settings
from flowplan.cpm.entities import CalendarException, CalendarExceptionType

logger = logging.getLogger(__name__)

_BLOCKING_EXCEPTIONS = {CalendarExceptionType.HOLIDAY.value, CalendarExceptionType.NON_WORKING.value}


def to_date(value) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, np.datetime64):
        return value.astype("datetime64[D]").item()
    if isinstance(value, str):
        return datetime.date.fromisoformat(value[:10])
    # pandas Timestamp and friends
    if hasattr(value, "date"):
        return value.date()
    raise TypeError(f"Cannot interpret {value!r} as a date")


def _d64(value) -> np.datetime64:
    return np.datetime64(to_date(value), "D")


class WorkCalendar:
    """
    Working-day arithmetic over a weekly pattern plus holiday dates.

    work_days are Python weekday numbers (Mon=0 ... Sun=6). The default is
    Sunday-Thursday, overridable with FLOWPLAN_WORK_DAYS. Backed by numpy's
    business-day functions.
    """

    def __init__(self, work_days: Optional[Sequence[int]] = None, holidays: Iterable = ()):
        if work_days is None:
            work_days = load_settings().work_days
        days = sorted(set(int(d) for d in work_days))
        if not days:
            raise ValueError("A work calendar needs at least one working weekday")
        bad = [d for d in days if not 0 <= d <= 6]
        if bad:
            raise ValueError(f"Weekday numbers must be 0-6, got {bad}")

        self.work_days = tuple(days)
        self.holidays = tuple(sorted({to_date(h) for h in holidays}))

        weekmask = "".join("1" if d in self.work_days else "0" for d in range(7))
        self._cal = np.busdaycalendar(
            weekmask=weekmask,
            holidays=[np.datetime64(h, "D") for h in self.holidays],
        )

    @classmethod
    def from_exceptions(
        cls,
        exceptions: Iterable[CalendarException],
        work_days: Optional[Sequence[int]] = None,
    ) -> "WorkCalendar":
        """
        Expand holiday / non_working exception ranges into single dates.
        """
        dates = []
        for ex in exceptions:
            ex_type = getattr(ex.type, "value", ex.type)
            if ex_type not in _BLOCKING_EXCEPTIONS:
                continue
            dates.extend(ex.dates())
        logger.debug("Calendar built with %d exception dates", len(dates))
        return cls(work_days=work_days, holidays=dates)

    def __repr__(self):
        return f"WorkCalendar(work_days={self.work_days}, holidays={len(self.holidays)})"

    # -----------------------------------------------------
    # Single-day checks
    # -----------------------------------------------------

    def is_working_day(self, day) -> bool:
        return bool(np.is_busday(_d64(day), busdaycal=self._cal))

    def next_working_day(self, day) -> datetime.date:
        """day itself when it is a working day, else the next one."""
        return np.busday_offset(_d64(day), 0, roll="forward", busdaycal=self._cal).item()

    def previous_working_day(self, day) -> datetime.date:
        return np.busday_offset(_d64(day), 0, roll="backward", busdaycal=self._cal).item()

    # -----------------------------------------------------
    # Spans
    # -----------------------------------------------------

    def add_working_days(self, start, days: int) -> datetime.date:
        """
        Date on which a task of `days` working days starting at `start` ends.

        A one-day task ends on the (rolled-forward) start day itself.
        """
        if days <= 0:
            return to_date(start)
        return np.busday_offset(_d64(start), days - 1, roll="forward", busdaycal=self._cal).item()

    def subtract_working_days(self, end, days: int) -> datetime.date:
        """Mirror of add_working_days, walking back from `end`."""
        if days <= 0:
            return to_date(end)
        return np.busday_offset(_d64(end), -(days - 1), roll="backward", busdaycal=self._cal).item()

    def working_days_between(self, start, end) -> int:
        """
        Working days stepped over walking from start to end.

        Counts (start, end] going forward. When end is before start the
        count covers [end, start) and is returned negative.
        """
        s = _d64(start)
        e = _d64(end)
        if s == e:
            return 0
        one = np.timedelta64(1, "D")
        if e > s:
            return int(np.busday_count(s + one, e + one, busdaycal=self._cal))
        return -int(np.busday_count(e, s, busdaycal=self._cal))

    # -----------------------------------------------------
    # Offset <-> date mapping used by the CPM engine
    # -----------------------------------------------------

    def offset_to_date(self, project_start, offset: int) -> datetime.date:
        """The `offset`-th working day counting from the rolled-forward start (0-based)."""
        return np.busday_offset(_d64(project_start), int(offset), roll="forward", busdaycal=self._cal).item()

    def offset_of(self, project_start, day) -> int:
        """Working days in [project_start, day); inverse of offset_to_date."""
        return int(np.busday_count(_d64(project_start), _d64(day), busdaycal=self._cal))

    def finish_date(self, project_start, start_offset: int, duration: int) -> datetime.date:
        """
        Inclusive last working day of a span. Milestones finish on their start day.
        """
        last = start_offset + max(duration, 1) - 1
        return self.offset_to_date(project_start, last)
