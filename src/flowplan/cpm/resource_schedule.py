"""
CPM with per-assignee working calendars.

A task with an assignee is placed on that team member's calendar: their own
work week (else the project's) plus the project holidays and every day of
their approved time-off. The forward pass runs in dates, so leave pushes the
task and everything it drives.

ES/EF/LS/LF are then read back as project-calendar offsets and the backward
pass runs on those, the way the project calendar drives late dates in the
plain engine. EF - ES therefore includes any leave days inside the task.
"""

import datetime
import logging
from collections import OrderedDict
from typing import Dict, List, Optional, Sequence

from flowplan.cpm.calendar import WorkCalendar, to_date
from flowplan.cpm.entities import Dependency, DependencyType, Task, TeamMember, TimeOff, TimeOffStatus
from flowplan.cpm.graph import DependencyGraph
from flowplan.cpm.schedule_engine import (
    ScheduleResult,
    TaskSchedule,
    backward_pass,
    checked_slack,
    earliest_start_bound,
)

logger = logging.getLogger(__name__)


def _leave_days(entry: TimeOff) -> List[datetime.date]:
    start = to_date(entry.start_date)
    end = to_date(entry.end_date)
    return [start + datetime.timedelta(days=i) for i in range((end - start).days + 1)]


def member_calendars(
    members: Sequence[TeamMember],
    time_off: Sequence[TimeOff],
    calendar: WorkCalendar,
) -> Dict[str, WorkCalendar]:
    """
    One WorkCalendar per team member, keyed by member id and by user id
    (a task's assignee_id may carry either).
    """
    leave: Dict[str, List[datetime.date]] = {}
    for entry in time_off:
        if entry.status is not TimeOffStatus.APPROVED:
            continue
        leave.setdefault(entry.team_member_id, []).extend(_leave_days(entry))

    known = {m.id for m in members}
    orphaned = sorted(set(leave) - known)
    if orphaned:
        logger.debug("Time-off for unknown team member(s) ignored: %s", ", ".join(orphaned))

    calendars: Dict[str, WorkCalendar] = {}
    for member in members:
        cal = WorkCalendar(
            member.work_days or calendar.work_days,
            calendar.holidays + tuple(leave.get(member.id, ())),
        )
        calendars[member.id] = cal
        if member.user_id:
            calendars[member.user_id] = cal
    return calendars


def _candidate_start(cal: WorkCalendar, dep_type, lag, pred_start, pred_end, duration) -> datetime.date:
    """Earliest start one incoming edge allows, counted on the successor's calendar."""
    if dep_type is DependencyType.SS:
        return cal.offset_to_date(pred_start, lag)
    if dep_type is DependencyType.FF:
        return cal.offset_to_date(pred_end, lag - duration)
    if dep_type is DependencyType.SF:
        return cal.offset_to_date(pred_start, lag - duration)
    return cal.offset_to_date(pred_end, lag)


def compute_schedule_with_resources(
    tasks: Sequence[Task],
    dependencies: Sequence[Dependency],
    project_start_date,
    members: Sequence[TeamMember] = (),
    time_off: Sequence[TimeOff] = (),
    calendar: Optional[WorkCalendar] = None,
) -> ScheduleResult:
    """
    Schedule tasks on their assignees' calendars.

    Unassigned tasks, and tasks whose assignee matches no member, use the
    project calendar; with no members at all the result equals
    compute_schedule(tasks, dependencies, project_start_date, calendar).

    Raises the same SchedulingError subclasses as compute_schedule.
    """
    graph = DependencyGraph.build(tasks, dependencies)
    topo = graph.topological_order()

    calendar = calendar or WorkCalendar()
    start = calendar.next_working_day(project_start_date)

    logger.info(
        "Starting resource-aware CPM on %d tasks, %d team member(s).", len(graph), len(members)
    )

    by_member = member_calendars(members, time_off, calendar)
    cals: List[WorkCalendar] = []
    for task in tasks:
        cal = calendar
        if task.assignee_id is not None:
            cal = by_member.get(task.assignee_id)
            if cal is None:
                logger.warning(
                    "Task %r is assigned to unknown member %r; using the project calendar.",
                    task.id, task.assignee_id,
                )
                cal = calendar
        cals.append(cal)

    # forward pass in dates; `end` is exclusive like EF
    n = len(graph)
    begin = [start] * n
    end = [start] * n
    for i in topo:
        cal = cals[i]
        d = graph.durations[i]
        first = cal.next_working_day(start)
        for pred, dep_type, lag in graph.edges_to[i]:
            first = max(first, _candidate_start(cal, dep_type, lag, begin[pred], end[pred], d))
        begin[i] = first
        end[i] = cal.offset_to_date(first, d)

    es = [calendar.offset_of(start, day) for day in begin]
    ef = [calendar.offset_of(start, day) for day in end]
    spans = [f - s for s, f in zip(es, ef)]
    horizon = max(ef) if ef else 0

    # Lags as realised on the project calendar, never more than requested,
    # so the forward offsets are a feasible schedule for the backward pass.
    edges_from = [[] for _ in range(n)]
    edges_to = [[] for _ in range(n)]
    for succ in range(n):
        for pred, dep_type, lag in graph.edges_to[succ]:
            room = es[succ] - earliest_start_bound(dep_type, 0, es[pred], ef[pred], spans[succ])
            realised = min(lag, room)
            edges_to[succ].append((pred, dep_type, realised))
            edges_from[pred].append((succ, dep_type, realised))

    ls, lf = backward_pass(DependencyGraph(list(graph.ids), spans, edges_from, edges_to), topo, horizon)

    schedules: "OrderedDict[str, TaskSchedule]" = OrderedDict()
    last_day = start
    for i, tid in enumerate(graph.ids):
        slack = checked_slack(tid, es[i], ef[i], ls[i], lf[i])
        d = graph.durations[i]
        last_day = max(last_day, cals[i].offset_to_date(end[i], -1))

        schedules[tid] = TaskSchedule(
            task_id=tid,
            duration=d,
            es=es[i],
            ef=ef[i],
            ls=ls[i],
            lf=lf[i],
            slack=slack,
            is_critical=slack == 0,
            start_date=begin[i],
            finish_date=cals[i].finish_date(begin[i], 0, d),
            late_start_date=calendar.offset_to_date(start, ls[i]),
            late_finish_date=calendar.finish_date(start, ls[i], spans[i]),
        )

    critical = [graph.ids[i] for i in topo if schedules[graph.ids[i]].is_critical]

    logger.info(
        "Resource-aware CPM complete: project duration %d workdays, ends %s.",
        horizon, last_day.isoformat(),
    )

    return ScheduleResult(
        tasks=schedules,
        project_duration=horizon,
        critical_path=critical,
        topological_order=[graph.ids[i] for i in topo],
        project_start=start,
        project_end_date=last_day,
    )
