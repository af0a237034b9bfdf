import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence

from flowplan.cpm.entities import ProjectPhase
from flowplan.phases.phase_lock import PhaseLockStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnlockEvent:
    phase_id: str
    phase_name: str
    completed_phase_name: str

    @property
    def id(self) -> str:
        # Stable per phase, so a repeated notification replaces the old one
        return f"unlock-{self.phase_id}"

    @property
    def message(self) -> str:
        return f'השלב "{self.completed_phase_name}" הושלם!'

    @property
    def description(self) -> str:
        return f'השלב "{self.phase_name}" נפתח לעבודה'


class PhaseUnlockTracker:
    """
    Remembers the previous lock snapshot and reports phases that went from
    locked to unlocked.

    The first snapshot of a project is a baseline and yields nothing, as
    does a project switch, so page loads never fire notifications.
    """

    def __init__(self):
        self._previous: Optional[Dict[str, PhaseLockStatus]] = None
        self._project_id: Optional[str] = None

    def reset(self):
        self._previous = None
        self._project_id = None

    def update(
        self,
        project_id: str,
        lock_status: Mapping[str, PhaseLockStatus],
        phases: Sequence[ProjectPhase],
        is_loading: bool = False,
    ) -> List[UnlockEvent]:
        if is_loading or not lock_status:
            return []

        if self._project_id is not None and self._project_id != project_id:
            logger.debug("Project switched %s -> %s; new baseline", self._project_id, project_id)
            self._project_id = project_id
            self._previous = dict(lock_status)
            return []

        self._project_id = project_id

        if self._previous is None:
            self._previous = dict(lock_status)
            return []

        names = {p.id: p.name for p in phases}
        events = []
        for phase_id, current in lock_status.items():
            before = self._previous.get(phase_id)
            if before is None or not before.is_locked or current.is_locked:
                continue

            # The phase that was blocking this one is the one just completed
            completed = before.blocked_by_phase_name
            unlocked = names.get(phase_id)
            if completed and unlocked:
                events.append(UnlockEvent(phase_id, unlocked, completed))

        self._previous = dict(lock_status)
        if events:
            logger.info("Phases unlocked: %s", ", ".join(e.phase_id for e in events))
        return events
