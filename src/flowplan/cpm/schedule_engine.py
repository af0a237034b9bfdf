"""
Critical Path Method over typed, lagged dependencies.

Times are integer workday offsets from project start; EF and LF are
exclusive ends, so EF = ES + duration and a milestone has ES == EF.

    FS  successor ES >= predecessor EF + lag   (default type)
    SS  successor ES >= predecessor ES + lag
    FF  successor EF >= predecessor EF + lag
    SF  successor EF >= predecessor ES + lag

The forward pass takes the maximum over every incoming bound (and 0, the
project start). The backward pass mirrors it with minimums, seeded with the
project horizon (max EF). Any input error aborts the whole computation.
"""

import datetime
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from flowplan.cpm.calendar import WorkCalendar
from flowplan.cpm.entities import Dependency, DependencyType, Task
from flowplan.cpm.errors import ScheduleInvariantError
from flowplan.cpm.graph import DependencyGraph

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaskSchedule:
    task_id: str
    duration: int
    es: int
    ef: int
    ls: int
    lf: int
    slack: int
    is_critical: bool
    start_date: Optional[datetime.date] = None
    finish_date: Optional[datetime.date] = None
    late_start_date: Optional[datetime.date] = None
    late_finish_date: Optional[datetime.date] = None

    def to_dict(self) -> dict:
        def iso(d):
            return d.isoformat() if d is not None else None

        return {
            "task_id": self.task_id,
            "duration": self.duration,
            "es": self.es,
            "ef": self.ef,
            "ls": self.ls,
            "lf": self.lf,
            "slack": self.slack,
            "is_critical": self.is_critical,
            "start_date": iso(self.start_date),
            "finish_date": iso(self.finish_date),
            "late_start_date": iso(self.late_start_date),
            "late_finish_date": iso(self.late_finish_date),
        }


@dataclass(frozen=True)
class ScheduleResult:
    tasks: "OrderedDict[str, TaskSchedule]"
    project_duration: int
    critical_path: List[str]
    topological_order: List[str]
    project_start: Optional[datetime.date] = None
    project_end_date: Optional[datetime.date] = None
    # A cycle is raised, never returned
    has_cycle: bool = field(default=False, init=False)

    def __getitem__(self, task_id: str) -> TaskSchedule:
        return self.tasks[task_id]

    def __contains__(self, task_id) -> bool:
        return task_id in self.tasks

    def __len__(self):
        return len(self.tasks)

    def to_dict(self) -> dict:
        return {
            "has_cycle": self.has_cycle,
            "project_duration": self.project_duration,
            "project_start": self.project_start.isoformat() if self.project_start else None,
            "project_end_date": self.project_end_date.isoformat() if self.project_end_date else None,
            "critical_path": list(self.critical_path),
            "topological_order": list(self.topological_order),
            "tasks": [s.to_dict() for s in self.tasks.values()],
        }


# ---------------------------------------------------------
# EDGE BOUNDS
# ---------------------------------------------------------

def earliest_start_bound(dep_type, lag, pred_es, pred_ef, duration):
    """Lower bound on a successor's ES imposed by one incoming edge."""
    if dep_type is DependencyType.SS:
        return pred_es + lag
    if dep_type is DependencyType.FF:
        return pred_ef + lag - duration
    if dep_type is DependencyType.SF:
        return pred_es + lag - duration
    return pred_ef + lag


def _latest_finish_bound(dep_type, lag, succ_ls, succ_lf, duration):
    """Upper bound on a predecessor's LF imposed by one outgoing edge."""
    if dep_type is DependencyType.SS:
        return succ_ls - lag + duration
    if dep_type is DependencyType.FF:
        return succ_lf - lag
    if dep_type is DependencyType.SF:
        return succ_lf - lag + duration
    return succ_ls - lag


# ---------------------------------------------------------
# PASSES
# ---------------------------------------------------------

def forward_pass(graph: DependencyGraph, topo: Sequence[int]):
    n = len(graph)
    es = [0] * n
    ef = [0] * n

    for i in topo:
        d = graph.durations[i]
        start = 0
        for pred, dep_type, lag in graph.edges_to[i]:
            start = max(start, earliest_start_bound(dep_type, lag, es[pred], ef[pred], d))
        es[i] = start
        ef[i] = start + d

    return es, ef


def backward_pass(graph: DependencyGraph, topo: Sequence[int], horizon: int):
    n = len(graph)
    ls = [horizon] * n
    lf = [horizon] * n

    for i in reversed(topo):
        d = graph.durations[i]
        finish = horizon
        for succ, dep_type, lag in graph.edges_from[i]:
            finish = min(finish, _latest_finish_bound(dep_type, lag, ls[succ], lf[succ], d))
        lf[i] = finish
        ls[i] = finish - d

    return ls, lf


def checked_slack(task_id: str, es: int, ef: int, ls: int, lf: int) -> int:
    slack = ls - es
    if slack != lf - ef:
        raise ScheduleInvariantError(
            f"Slack mismatch for task {task_id!r}: LS-ES={slack}, LF-EF={lf - ef}"
        )
    if slack < 0:
        raise ScheduleInvariantError(f"Negative slack {slack} for task {task_id!r}")
    return slack


# ---------------------------------------------------------
# EXPORTED ENTRY POINT
# ---------------------------------------------------------

def compute_schedule(
    tasks: Sequence[Task],
    dependencies: Sequence[Dependency],
    project_start_date=None,
    calendar: Optional[WorkCalendar] = None,
) -> ScheduleResult:
    """
    Full pipeline:
      1. Build and validate the dependency graph
      2. Order it (raises CycleDetectedError on a cycle)
      3. Forward pass  -> ES / EF
      4. Backward pass -> LS / LF
      5. Slack and critical flags
      6. Calendar dates, when a project start date is given

    Raises a SchedulingError subclass on any invalid input; no partial
    result is ever returned.
    """
    graph = DependencyGraph.build(tasks, dependencies)
    topo = graph.topological_order()

    logger.info("Starting CPM analysis on %d tasks, %d dependencies.", len(graph), len(dependencies))

    es, ef = forward_pass(graph, topo)
    horizon = max(ef) if ef else 0
    ls, lf = backward_pass(graph, topo, horizon)

    if project_start_date is not None and calendar is None:
        calendar = WorkCalendar()
    start = calendar.next_working_day(project_start_date) if project_start_date is not None else None

    schedules: "OrderedDict[str, TaskSchedule]" = OrderedDict()
    for i, tid in enumerate(graph.ids):
        slack = checked_slack(tid, es[i], ef[i], ls[i], lf[i])

        d = graph.durations[i]
        dates = {}
        if start is not None:
            dates = {
                "start_date": calendar.offset_to_date(start, es[i]),
                "finish_date": calendar.finish_date(start, es[i], d),
                "late_start_date": calendar.offset_to_date(start, ls[i]),
                "late_finish_date": calendar.finish_date(start, ls[i], d),
            }

        schedules[tid] = TaskSchedule(
            task_id=tid,
            duration=d,
            es=es[i],
            ef=ef[i],
            ls=ls[i],
            lf=lf[i],
            slack=slack,
            is_critical=slack == 0,
            **dates,
        )

    critical = [graph.ids[i] for i in topo if schedules[graph.ids[i]].is_critical]

    end_date = None
    if start is not None:
        end_date = calendar.finish_date(start, 0, horizon) if horizon else start

    logger.info(
        "CPM complete: project duration %d workdays, %d critical task(s).",
        horizon, len(critical),
    )

    return ScheduleResult(
        tasks=schedules,
        project_duration=horizon,
        critical_path=critical,
        topological_order=[graph.ids[i] for i in topo],
        project_start=start,
        project_end_date=end_date,
    )


@dataclass(frozen=True)
class CriticalNetwork:
    """
    Driving edges between zero-slack tasks.

    successors / predecessors map each critical task id to the critical
    tasks it drives / is driven by, in dependency input order. sources have
    no driving predecessor and sinks no driving successor; both lists follow
    topological order.
    """

    successors: Dict[str, List[str]]
    predecessors: Dict[str, List[str]]
    sources: List[str]
    sinks: List[str]


def critical_network(result: ScheduleResult, dependencies: Sequence[Dependency]) -> CriticalNetwork:
    """
    An edge is driving when both ends have zero slack and the edge's bound
    equals the successor's ES in the forward pass. Linear in tasks + edges.
    """
    successors: Dict[str, List[str]] = {tid: [] for tid in result.critical_path}
    predecessors: Dict[str, List[str]] = {tid: [] for tid in result.critical_path}
    seen = set()

    for dep in dependencies:
        pred = result.tasks.get(dep.predecessor_id)
        succ = result.tasks.get(dep.successor_id)
        if pred is None or succ is None or not (pred.is_critical and succ.is_critical):
            continue
        bound = earliest_start_bound(dep.type, dep.lag, pred.es, pred.ef, succ.duration)
        if bound != succ.es:
            continue
        edge = (pred.task_id, succ.task_id)
        if edge in seen:
            continue
        seen.add(edge)
        successors[pred.task_id].append(succ.task_id)
        predecessors[succ.task_id].append(pred.task_id)

    return CriticalNetwork(
        successors=successors,
        predecessors=predecessors,
        sources=[tid for tid in result.critical_path if not predecessors[tid]],
        sinks=[tid for tid in result.critical_path if not successors[tid]],
    )


def _pick(candidates: List[str], covered: set) -> str:
    for tid in candidates:
        if tid not in covered:
            return tid
    return candidates[0]


def critical_chains(result: ScheduleResult, dependencies: Sequence[Dependency]) -> List[List[str]]:
    """
    Cover the critical path with source-to-sink chains of driving edges.

    Every critical task lies on at least one chain. A chain is only started
    for a task no earlier chain reached, so there are never more chains than
    critical tasks; walks prefer tasks not yet covered. Parallel critical
    branches are not expanded into every combination; critical_network()
    gives the full driving structure.
    """
    network = critical_network(result, dependencies)
    covered = set()
    chains: List[List[str]] = []

    for tid in result.critical_path:
        if tid in covered:
            continue

        back = []
        node = tid
        while network.predecessors[node]:
            node = _pick(network.predecessors[node], covered)
            back.append(node)

        chain = list(reversed(back)) + [tid]
        node = tid
        while network.successors[node]:
            node = _pick(network.successors[node], covered)
            chain.append(node)

        covered.update(chain)
        chains.append(chain)

    return chains
