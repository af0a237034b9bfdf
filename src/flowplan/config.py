import os
from dataclasses import dataclass
from typing import Optional, Tuple

# ---------------------------------------------------------
# DEFAULTS
# ---------------------------------------------------------

# Python weekday numbers (Mon=0 ... Sun=6). Sunday-Thursday work week.
DEFAULT_WORK_DAYS: Tuple[int, ...] = (6, 0, 1, 2, 3)

DEFAULT_WORK_HOURS_PER_DAY = 8

# Tasks with 0 < slack <= threshold are reported as near-critical
NEAR_CRITICAL_THRESHOLD = 1

DEFAULT_LOG_LEVEL = "INFO"


@dataclass(frozen=True)
class Settings:
    work_days: Tuple[int, ...] = DEFAULT_WORK_DAYS
    work_hours_per_day: float = DEFAULT_WORK_HOURS_PER_DAY
    near_critical_threshold: int = NEAR_CRITICAL_THRESHOLD
    log_level: str = DEFAULT_LOG_LEVEL


def _parse_work_days(raw: str) -> Tuple[int, ...]:
    """
    Parse "6,0,1,2,3" into a tuple of weekday numbers.
    """
    days = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        day = int(part)
        if not 0 <= day <= 6:
            raise ValueError(f"Weekday out of range 0-6: {day}")
        days.append(day)
    if not days:
        raise ValueError("FLOWPLAN_WORK_DAYS must name at least one weekday")
    return tuple(sorted(set(days)))


def load_settings(environ: Optional[dict] = None) -> Settings:
    """
    Build Settings from FLOWPLAN_* environment variables, falling back to
    the module defaults for anything unset.
    """
    env = os.environ if environ is None else environ

    work_days = DEFAULT_WORK_DAYS
    if env.get("FLOWPLAN_WORK_DAYS"):
        work_days = _parse_work_days(env["FLOWPLAN_WORK_DAYS"])

    hours = float(env.get("FLOWPLAN_WORK_HOURS_PER_DAY", DEFAULT_WORK_HOURS_PER_DAY))
    if hours <= 0:
        raise ValueError("FLOWPLAN_WORK_HOURS_PER_DAY must be positive")

    threshold = int(env.get("FLOWPLAN_NEAR_CRITICAL_THRESHOLD", NEAR_CRITICAL_THRESHOLD))

    return Settings(
        work_days=work_days,
        work_hours_per_day=hours,
        near_critical_threshold=threshold,
        log_level=env.get("FLOWPLAN_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
    )
