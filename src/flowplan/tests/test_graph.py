import pytest

from flowplan import (
    CycleDetectedError,
    DanglingReferenceError,
    Dependency,
    DependencyGraph,
    DependencyType,
    InvalidDependencyError,
    Task,
    find_cycle,
)


def tasks(*ids):
    return [Task(id=i, duration=1) for i in ids]


def test_build_indexes_tasks_in_input_order():
    g = DependencyGraph.build(tasks("b", "a", "c"), [Dependency("b", "c", "SS", 2)])

    assert g.ids == ["b", "a", "c"]
    assert g.index == {"b": 0, "a": 1, "c": 2}
    assert g.edges_from[0] == [(2, DependencyType.SS, 2)]
    assert g.edges_to[2] == [(0, DependencyType.SS, 2)]


def test_topological_order_is_deterministic():
    """
    Sources are seeded in input order, successors released in dependency order.
    """
    deps = [Dependency("a", "c"), Dependency("b", "c"), Dependency("a", "d")]
    g = DependencyGraph.build(tasks("a", "b", "c", "d"), deps)

    order = [g.ids[i] for i in g.topological_order()]
    assert order == ["a", "b", "d", "c"]


def test_topological_order_raises_on_cycle():
    deps = [Dependency("a", "b"), Dependency("b", "a")]
    g = DependencyGraph.build(tasks("a", "b", "c"), deps)

    with pytest.raises(CycleDetectedError) as exc:
        g.topological_order()
    assert exc.value.task_ids == ["a", "b"]


def test_find_cycle_reports_without_raising():
    assert find_cycle(tasks("a", "b"), [Dependency("a", "b")]) == []
    assert find_cycle(tasks("a", "b"), [Dependency("a", "b"), Dependency("b", "a")]) == ["a", "b"]


def test_dangling_references_are_all_reported():
    deps = [Dependency("a", "x"), Dependency("y", "a")]
    with pytest.raises(DanglingReferenceError) as exc:
        DependencyGraph.build(tasks("a"), deps)

    assert exc.value.missing_ids == ["x", "y"]
    assert ("a", "x", "x") in exc.value.references


def test_dependency_defaults_and_coercion():
    dep = Dependency("a", "b", None, 2.0)
    assert dep.type is DependencyType.FS
    assert dep.lag == 2

    assert Dependency("a", "b", "ff").type is DependencyType.FF
    assert Dependency("a", "b", "SS", "2.0").lag == 2
    assert Dependency("a", "b", "SS", "-3").lag == -3


@pytest.mark.parametrize("dep_type,lag", [("XX", 0), ("FS", 1.5), ("FS", "2.5"), ("FS", "two"), ("FS", True)])
def test_dependency_rejects_bad_shapes(dep_type, lag):
    with pytest.raises(InvalidDependencyError):
        Dependency("a", "b", dep_type, lag)
