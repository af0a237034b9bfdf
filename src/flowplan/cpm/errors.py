from typing import Iterable, List, Sequence, Tuple


class SchedulingError(ValueError):
    """Base class for fatal scheduling input errors."""


class CycleDetectedError(SchedulingError):
    """
    The dependency graph is not a DAG.

    task_ids holds every task left with a residual in-degree after
    topological ordering, sorted.
    """

    def __init__(self, task_ids: Iterable[str]):
        self.task_ids: List[str] = sorted(task_ids)
        super().__init__(
            "Graph is not acyclic; cannot compute CPM. "
            f"Unresolved tasks: {', '.join(self.task_ids)}"
        )


class DanglingReferenceError(SchedulingError):
    """A dependency points at a task id absent from the task set."""

    def __init__(self, references: Sequence[Tuple[str, str, str]]):
        # (predecessor_id, successor_id, missing_id)
        self.references = list(references)
        missing = sorted({ref[2] for ref in self.references})
        self.missing_ids: List[str] = missing
        super().__init__(
            f"Dependencies reference unknown task ids: {', '.join(missing)}"
        )


class InvalidDurationError(SchedulingError):
    def __init__(self, task_id: str, duration):
        self.task_id = task_id
        self.duration = duration
        super().__init__(
            f"Task {task_id!r} has invalid duration {duration!r}; "
            "expected a non-negative whole number of workdays."
        )


class DuplicateTaskError(SchedulingError):
    def __init__(self, task_ids: Iterable[str]):
        self.task_ids: List[str] = sorted(set(task_ids))
        super().__init__(f"Duplicate task ids: {', '.join(self.task_ids)}")


class SelfDependencyError(SchedulingError):
    """Raised when a Dependency is built with predecessor == successor."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task {task_id!r} cannot depend on itself.")


class InvalidDependencyError(SchedulingError):
    pass


class ScheduleInvariantError(SchedulingError):
    """LS - ES and LF - EF disagree. Indicates an engine bug, not bad input."""
