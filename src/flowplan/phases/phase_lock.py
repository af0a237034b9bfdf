"""
Phase gating.

A phase is locked while any earlier phase (by phase_order) still has a task
that is not done. The first phase is always open. Empty or fully-done phases
never block, and blocked_by names the nearest blocking phase, which may sit
several phases back.

Phases are re-sorted on every call; callers need not pre-sort and the input
list is not mutated. Ties on phase_order fall back to created_at (missing
first), then id. This function never raises on data: lock status only gates
UI actions, so it always answers for every known phase.
"""

import datetime
import logging
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence

from flowplan.cpm.entities import ProjectPhase, Task

logger = logging.getLogger(__name__)


class LockReason(str, Enum):
    FIRST_PHASE = "first_phase"
    PREVIOUS_PHASE_COMPLETE = "previous_phase_complete"
    PREVIOUS_PHASE_INCOMPLETE = "previous_phase_incomplete"


@dataclass(frozen=True)
class PhaseLockStatus:
    phase_id: str
    is_locked: bool
    reason: LockReason
    blocked_by_phase_id: Optional[str] = None
    blocked_by_phase_name: Optional[str] = None


_EARLIEST = datetime.datetime.min


def _sort_key(phase: ProjectPhase):
    created = phase.created_at
    if created is not None and created.tzinfo is not None:
        created = created.replace(tzinfo=None) - created.utcoffset()
    return (phase.phase_order, created or _EARLIEST, str(phase.id))


def sort_phases(phases: Iterable[ProjectPhase]) -> List[ProjectPhase]:
    ordered = sorted(phases, key=_sort_key)

    seen = {}
    for p in ordered:
        seen.setdefault(p.phase_order, []).append(p.id)
    ties = {order: ids for order, ids in seen.items() if len(ids) > 1}
    if ties:
        logger.warning("Phases share phase_order; ordering by created_at then id: %s", ties)

    return ordered


def _incomplete_phase_ids(tasks: Iterable[Task]) -> set:
    # Unassigned tasks (phase_id None) never block anything
    return {t.phase_id for t in tasks if t.phase_id is not None and not t.is_done}


def compute_phase_lock_status(
    phases: Sequence[ProjectPhase],
    tasks: Sequence[Task],
) -> Dict[str, PhaseLockStatus]:
    """
    Lock status for every phase, keyed by phase id, in sorted phase order.
    """
    result: Dict[str, PhaseLockStatus] = OrderedDict()
    if not phases:
        return result

    ordered = sort_phases(phases)
    incomplete = _incomplete_phase_ids(tasks)

    first = ordered[0]
    result[first.id] = PhaseLockStatus(first.id, False, LockReason.FIRST_PHASE)

    # Nearest preceding phase with at least one unfinished task
    blocker: Optional[ProjectPhase] = first if first.id in incomplete else None

    for phase in ordered[1:]:
        if blocker is None:
            result[phase.id] = PhaseLockStatus(phase.id, False, LockReason.PREVIOUS_PHASE_COMPLETE)
        else:
            result[phase.id] = PhaseLockStatus(
                phase.id,
                True,
                LockReason.PREVIOUS_PHASE_INCOMPLETE,
                blocked_by_phase_id=blocker.id,
                blocked_by_phase_name=blocker.name,
            )

        if phase.id in incomplete:
            blocker = phase

    locked = sum(1 for s in result.values() if s.is_locked)
    logger.debug("Phase locks: %d of %d phases locked", locked, len(result))
    return result


def is_phase_locked(phase_id: str, phases: Sequence[ProjectPhase], tasks: Sequence[Task]) -> bool:
    """
    Convenience: is this phase locked? Unknown phase ids are reported unlocked.
    """
    status = compute_phase_lock_status(phases, tasks).get(phase_id)
    return status.is_locked if status is not None else False
