import logging
from collections import deque
from numbers import Integral
from typing import Dict, List, Sequence, Tuple

from flowplan.cpm.entities import Dependency, DependencyType, Task
from flowplan.cpm.errors import (
    CycleDetectedError,
    DanglingReferenceError,
    DuplicateTaskError,
    InvalidDurationError,
)

logger = logging.getLogger(__name__)

# (other task index, dependency type, lag)
Edge = Tuple[int, DependencyType, int]


def _checked_duration(task: Task) -> int:
    d = task.duration
    if isinstance(d, bool):
        raise InvalidDurationError(task.id, d)
    if isinstance(d, Integral):
        d = int(d)
    elif isinstance(d, float) and d.is_integer():
        d = int(d)
    else:
        raise InvalidDurationError(task.id, d)
    if d < 0:
        raise InvalidDurationError(task.id, d)
    return d


class DependencyGraph:
    """
    Dependency-aware DAG over an arena of tasks:

      ids:        task ids in input order (index -> id)
      index:      {task_id: index}
      durations:  [workdays] by index
      edges_from: [[(succ, dep_type, lag), ...]] by predecessor index
      edges_to:   [[(pred, dep_type, lag), ...]] by successor index

    Build with DependencyGraph.build(); it validates the inputs and raises
    instead of dropping anything it cannot use.
    """

    def __init__(self, ids, durations, edges_from, edges_to):
        self.ids: List[str] = ids
        self.index: Dict[str, int] = {tid: i for i, tid in enumerate(ids)}
        self.durations: List[int] = durations
        self.edges_from: List[List[Edge]] = edges_from
        self.edges_to: List[List[Edge]] = edges_to

    def __len__(self):
        return len(self.ids)

    @classmethod
    def build(cls, tasks: Sequence[Task], dependencies: Sequence[Dependency]) -> "DependencyGraph":
        # 1. Nodes
        ids: List[str] = []
        seen = set()
        dups = []
        durations: List[int] = []
        for task in tasks:
            if task.id in seen:
                dups.append(task.id)
                continue
            seen.add(task.id)
            ids.append(task.id)
            durations.append(_checked_duration(task))

        if dups:
            raise DuplicateTaskError(dups)

        index = {tid: i for i, tid in enumerate(ids)}

        # 2. Edges
        edges_from: List[List[Edge]] = [[] for _ in ids]
        edges_to: List[List[Edge]] = [[] for _ in ids]
        dangling = []

        for dep in dependencies:
            pred = index.get(dep.predecessor_id)
            succ = index.get(dep.successor_id)
            if pred is None:
                dangling.append((dep.predecessor_id, dep.successor_id, dep.predecessor_id))
            if succ is None:
                dangling.append((dep.predecessor_id, dep.successor_id, dep.successor_id))
            if pred is None or succ is None:
                continue
            edges_from[pred].append((succ, dep.type, dep.lag))
            edges_to[succ].append((pred, dep.type, dep.lag))

        if dangling:
            raise DanglingReferenceError(dangling)

        logger.debug("Built dependency graph: %d tasks, %d edges", len(ids), len(dependencies))
        return cls(ids, durations, edges_from, edges_to)

    def unresolved(self) -> List[str]:
        """
        Ids left with residual in-degree after Kahn's algorithm (empty for a DAG).
        """
        _, remaining = self._kahn()
        return remaining

    def topological_order(self) -> List[int]:
        """
        Task indices in topological order. Sources are seeded in input order
        and successors released in dependency input order, so the result
        only depends on the order of the inputs.
        """
        topo, remaining = self._kahn()
        if remaining:
            raise CycleDetectedError(remaining)
        return topo

    def _kahn(self):
        indeg = [len(preds) for preds in self.edges_to]

        q = deque(i for i, d in enumerate(indeg) if d == 0)
        topo = []
        while q:
            n = q.popleft()
            topo.append(n)
            for succ, _, _ in self.edges_from[n]:
                indeg[succ] -= 1
                if indeg[succ] == 0:
                    q.append(succ)

        remaining = sorted(self.ids[i] for i, d in enumerate(indeg) if d > 0)
        return topo, remaining


def find_cycle(tasks: Sequence[Task], dependencies: Sequence[Dependency]) -> List[str]:
    """
    Non-raising cycle check: ids of tasks caught in (or behind) a cycle.

    Useful before saving a new dependency. Other input errors (dangling ids,
    bad durations) still raise.
    """
    return DependencyGraph.build(tasks, dependencies).unresolved()
