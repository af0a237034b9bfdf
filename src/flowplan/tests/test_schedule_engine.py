import datetime

import pytest

from flowplan import (
    CycleDetectedError,
    DanglingReferenceError,
    Dependency,
    DuplicateTaskError,
    InvalidDurationError,
    SelfDependencyError,
    Task,
    WorkCalendar,
    compute_schedule,
    critical_chains,
    critical_network,
)


def T(tid, duration, **kw):
    return Task(id=tid, duration=duration, **kw)


def D(pred, succ, dep_type="FS", lag=0):
    return Dependency(pred, succ, dep_type, lag)


ABC_TASKS = [T("A", 5), T("B", 3), T("C", 2)]
ABC_DEPS = [D("A", "B"), D("B", "C")]


# ----------------------------------------------------------------
# 1. SCENARIOS
# ----------------------------------------------------------------

def test_simple_fs_chain():
    """
    A (5) -> B (3) -> C (2), all FS lag 0
    Expected:
      A: ES=0, EF=5
      B: ES=5, EF=8
      C: ES=8, EF=10
      all critical
    """
    res = compute_schedule(ABC_TASKS, ABC_DEPS)

    assert (res["A"].es, res["A"].ef) == (0, 5)
    assert (res["B"].es, res["B"].ef) == (5, 8)
    assert (res["C"].es, res["C"].ef) == (8, 10)
    assert all(res[t].slack == 0 for t in "ABC")
    assert res.critical_path == ["A", "B", "C"]
    assert res.project_duration == 10
    assert res.has_cycle is False


def test_isolated_task_slack_measured_to_horizon():
    """
    D (1) with no dependencies next to the A->B->C chain:
      ES=0, EF=1, LF=10 (horizon), LS=9, slack=9
    """
    res = compute_schedule(ABC_TASKS + [T("D", 1)], ABC_DEPS)

    d = res["D"]
    assert (d.es, d.ef, d.ls, d.lf, d.slack) == (0, 1, 9, 10, 9)
    assert not d.is_critical
    assert res.critical_path == ["A", "B", "C"]


def test_ss_dependency_with_lag():
    """
    Task 1 (Dur 10)
    Task 2 (Dur 5) depends on 1SS+2
    Expected:
      T2 ES = 0 + 2 = 2, EF = 7
      Project ends at 10, so T2 LF = 10, LS = 5, slack 3
    """
    res = compute_schedule([T("1", 10), T("2", 5)], [D("1", "2", "SS", 2)])

    assert res["2"].es == 2 and res["2"].ef == 7
    assert res["2"].ls == 5 and res["2"].slack == 3
    assert res["1"].slack == 0


def test_ff_dependency():
    """
    Task 1 (Dur 10)
    Task 2 (Dur 2) depends on 1FF
    T2 cannot finish before T1 finishes, so T2 EF = 10 and ES = 8.
    """
    res = compute_schedule([T("1", 10), T("2", 2)], [D("1", "2", "FF")])

    assert res["1"].ef == 10
    assert res["2"].ef == 10
    assert res["2"].es == 8
    assert res["1"].is_critical and res["2"].is_critical


def test_sf_dependency():
    """
    A (4), B (3) depends on A SF+5: B EF >= A ES + 5 = 5, so B ES = 2.
    Horizon 5. A's start drives B's finish: both critical.
    """
    res = compute_schedule([T("A", 4), T("B", 3)], [D("A", "B", "SF", 5)])

    assert (res["B"].es, res["B"].ef) == (2, 5)
    assert res.project_duration == 5
    assert (res["A"].ls, res["A"].lf) == (0, 4)
    assert res["A"].slack == 0 and res["B"].slack == 0


def test_multiple_paths_convergence():
    """
    A (5) -> C (2)
    B (10) -> C (2)
    C starts at max(5, 10) = 10; the binding predecessor wins.
    """
    res = compute_schedule(
        [T("A", 5), T("B", 10), T("C", 2)],
        [D("A", "C"), D("B", "C")],
    )

    assert res["C"].es == 10
    assert res["A"].slack == 5
    assert res["B"].slack == 0


def test_negative_lag_overlaps_tasks():
    """
    A (5) -> B (3) with FS-2: B may start 2 days before A finishes.
    """
    res = compute_schedule([T("A", 5), T("B", 3)], [D("A", "B", "FS", -2)])

    assert (res["B"].es, res["B"].ef) == (3, 6)
    assert res["A"].lf == 5
    assert res["A"].slack == 0 and res["B"].slack == 0


def test_lead_before_project_start_is_clamped():
    """
    B (5) depends on A (2) SS-3. The candidate start -3 is before project
    start, so B starts at 0. A keeps 3 days of slack.
    """
    res = compute_schedule([T("A", 2), T("B", 5)], [D("A", "B", "SS", -3)])

    assert res["B"].es == 0
    assert res.project_duration == 5
    assert res["A"].ls == 3 and res["A"].slack == 3


def test_zero_duration_milestone():
    res = compute_schedule([T("A", 3), T("M", 0)], [D("A", "M")])

    m = res["M"]
    assert m.es == m.ef == 3
    assert m.ls == m.lf == 3
    assert m.is_critical


def test_empty_task_list():
    res = compute_schedule([], [])

    assert len(res) == 0
    assert res.project_duration == 0
    assert res.critical_path == []


# ----------------------------------------------------------------
# 2. FATAL INPUT ERRORS
# ----------------------------------------------------------------

def test_circular_dependency_error():
    """
    A -> B -> C -> A loop should raise, not return a result
    """
    deps = [D("A", "B"), D("B", "C"), D("C", "A")]
    with pytest.raises(CycleDetectedError, match="Graph is not acyclic") as exc:
        compute_schedule(ABC_TASKS, deps)

    assert exc.value.task_ids == ["A", "B", "C"]


def test_cycle_is_a_value_error():
    with pytest.raises(ValueError):
        compute_schedule([T("1", 5), T("2", 5)], [D("1", "2"), D("2", "1")])


def test_cycle_fails_whole_computation_even_with_valid_tasks():
    tasks = ABC_TASKS + [T("X", 4), T("Y", 1)]
    deps = [D("X", "Y"), D("A", "B"), D("B", "A")]

    with pytest.raises(CycleDetectedError) as exc:
        compute_schedule(tasks, deps)

    assert "X" not in exc.value.task_ids
    assert exc.value.task_ids[:2] == ["A", "B"]


def test_dangling_reference():
    with pytest.raises(DanglingReferenceError) as exc:
        compute_schedule(ABC_TASKS, ABC_DEPS + [D("Z", "C")])

    assert exc.value.missing_ids == ["Z"]


@pytest.mark.parametrize("duration", [-1, 2.5, "3"])
def test_invalid_duration(duration):
    with pytest.raises(InvalidDurationError):
        compute_schedule([T("A", duration)], [])


def test_whole_float_duration_accepted():
    res = compute_schedule([T("A", 4.0)], [])
    assert res["A"].ef == 4


def test_duplicate_task_ids():
    with pytest.raises(DuplicateTaskError):
        compute_schedule([T("A", 1), T("A", 2)], [])


def test_self_dependency_rejected_at_construction():
    with pytest.raises(SelfDependencyError):
        Dependency("A", "A")


# ----------------------------------------------------------------
# 3. INVARIANTS
# ----------------------------------------------------------------

NETWORK_TASKS = [
    T("start", 0),
    T("design", 4),
    T("procure", 6),
    T("build", 8),
    T("docs", 3),
    T("test", 5),
    T("audit", 2),
    T("train", 1),
    T("done", 0),
]

NETWORK_DEPS = [
    D("start", "design"),
    D("start", "procure"),
    D("design", "build", "FS", 1),
    D("procure", "build", "SS", 2),
    D("design", "docs", "SS", 1),
    D("build", "test", "FF", 3),
    D("build", "test"),
    D("docs", "audit", "FS", -1),
    D("test", "audit", "SF", 4),
    D("docs", "train"),
    D("audit", "done"),
    D("test", "done"),
    D("train", "done"),
]


def test_schedule_invariants_hold():
    res = compute_schedule(NETWORK_TASKS, NETWORK_DEPS)
    has_preds = {d.successor_id for d in NETWORK_DEPS}

    for s in res.tasks.values():
        if s.task_id not in has_preds:
            assert s.es == 0
        assert s.ef == s.es + s.duration
        assert s.lf == s.ls + s.duration
        assert s.slack == s.ls - s.es == s.lf - s.ef
        assert s.slack >= 0
        assert s.lf <= res.project_duration

    assert res.project_duration == max(s.ef for s in res.tasks.values())


def test_critical_tasks_form_source_to_sink_chain():
    res = compute_schedule(NETWORK_TASKS, NETWORK_DEPS)
    chains = critical_chains(res, NETWORK_DEPS)

    assert chains
    for chain in chains:
        assert res[chain[0]].es == 0
        assert res[chain[-1]].ef == res.project_duration
        assert all(res[t].is_critical for t in chain)

    on_chain = {t for chain in chains for t in chain}
    assert on_chain == set(res.critical_path)


def test_critical_chains_simple():
    res = compute_schedule(ABC_TASKS + [T("D", 1)], ABC_DEPS)
    assert critical_chains(res, ABC_DEPS) == [["A", "B", "C"]]


def test_critical_chains_parallel_drivers():
    tasks = [T("A", 3), T("B", 3), T("C", 2)]
    deps = [D("A", "C"), D("B", "C")]
    res = compute_schedule(tasks, deps)

    assert critical_chains(res, deps) == [["A", "C"], ["B", "C"]]


def _diamond_ladder(k):
    """
    J0 -> (Ai, Bi) -> Ji for i = 1..k, every task 1 day.
    All tasks are critical; there are 2**k source-to-sink paths.
    """
    tasks = [T("J0", 1)]
    deps = []
    for i in range(1, k + 1):
        tasks += [T(f"A{i}", 1), T(f"B{i}", 1), T(f"J{i}", 1)]
        deps += [
            D(f"J{i - 1}", f"A{i}"),
            D(f"J{i - 1}", f"B{i}"),
            D(f"A{i}", f"J{i}"),
            D(f"B{i}", f"J{i}"),
        ]
    return tasks, deps


def test_critical_chains_stay_small_on_parallel_branches():
    tasks, deps = _diamond_ladder(30)
    res = compute_schedule(tasks, deps)

    chains = critical_chains(res, deps)

    assert len(res.critical_path) == 91
    assert len(chains) == 2
    assert chains[0] == ["J0"] + [t for i in range(1, 31) for t in (f"A{i}", f"J{i}")]
    assert chains[1] == ["J0"] + [t for i in range(1, 31) for t in (f"B{i}", f"J{i}")]
    assert {t for chain in chains for t in chain} == set(res.critical_path)


def test_critical_network_lists_every_driving_edge():
    tasks, deps = _diamond_ladder(30)
    res = compute_schedule(tasks, deps)

    net = critical_network(res, deps)

    assert sum(len(v) for v in net.successors.values()) == 4 * 30
    assert net.sources == ["J0"]
    assert net.sinks == ["J30"]
    assert net.successors["J0"] == ["A1", "B1"]
    assert net.predecessors["J1"] == ["A1", "B1"]


def test_critical_network_skips_non_driving_edges():
    res = compute_schedule(ABC_TASKS + [T("D", 1)], ABC_DEPS + [D("D", "C")])
    net = critical_network(res, ABC_DEPS + [D("D", "C")])

    assert "D" not in net.successors
    assert net.predecessors["C"] == ["B"]


def test_idempotent():
    first = compute_schedule(NETWORK_TASKS, NETWORK_DEPS, datetime.date(2025, 1, 5))
    second = compute_schedule(NETWORK_TASKS, NETWORK_DEPS, datetime.date(2025, 1, 5))

    assert first.to_dict() == second.to_dict()
    assert repr(first.to_dict()) == repr(second.to_dict())


def test_input_order_does_not_change_numbers():
    forward = compute_schedule(NETWORK_TASKS, NETWORK_DEPS)
    backward = compute_schedule(list(reversed(NETWORK_TASKS)), list(reversed(NETWORK_DEPS)))

    for tid, s in forward.tasks.items():
        b = backward[tid]
        assert (s.es, s.ef, s.ls, s.lf, s.slack) == (b.es, b.ef, b.ls, b.lf, b.slack)


# ----------------------------------------------------------------
# 4. CALENDAR DATES
# ----------------------------------------------------------------

def test_dates_on_sunday_thursday_week():
    """
    Project starts Sunday 2025-01-05 on the default Sun-Thu week.
      A (5): Jan 5 - Jan 9
      B (3): Jan 12 - Jan 14
      C (2): Jan 15 - Jan 16
      D (1): Jan 5, late start Jan 16
    """
    res = compute_schedule(ABC_TASKS + [T("D", 1)], ABC_DEPS, datetime.date(2025, 1, 5))

    assert res.project_start == datetime.date(2025, 1, 5)
    assert res["A"].start_date == datetime.date(2025, 1, 5)
    assert res["A"].finish_date == datetime.date(2025, 1, 9)
    assert res["B"].start_date == datetime.date(2025, 1, 12)
    assert res["B"].finish_date == datetime.date(2025, 1, 14)
    assert res["C"].finish_date == datetime.date(2025, 1, 16)
    assert res["D"].late_start_date == datetime.date(2025, 1, 16)
    assert res["D"].late_finish_date == datetime.date(2025, 1, 16)
    assert res.project_end_date == datetime.date(2025, 1, 16)


def test_start_on_weekend_rolls_forward():
    res = compute_schedule([T("A", 1)], [], datetime.date(2025, 1, 3))  # Friday

    assert res.project_start == datetime.date(2025, 1, 5)
    assert res["A"].start_date == res["A"].finish_date == datetime.date(2025, 1, 5)


def test_holidays_push_dates():
    cal = WorkCalendar(holidays=[datetime.date(2025, 1, 7)])
    res = compute_schedule([T("A", 5)], [], datetime.date(2025, 1, 5), calendar=cal)

    assert res["A"].finish_date == datetime.date(2025, 1, 12)


def test_offsets_without_start_date_have_no_dates():
    res = compute_schedule(ABC_TASKS, ABC_DEPS)

    assert res["A"].start_date is None
    assert res.project_end_date is None
    assert res.to_dict()["tasks"][0]["start_date"] is None
