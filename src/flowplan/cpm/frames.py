"""
pandas boundary of the scheduling core.

Frames coming from exports or the data-access layer are normalised here and
turned into Task / Dependency / ProjectPhase records before the engine sees
them; results go back out as frames for tables and charts.
"""

import logging
import re
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd

from flowplan.cpm.entities import Dependency, ProjectPhase, Task, TaskStatus
from flowplan.cpm.schedule_engine import ScheduleResult

logger = logging.getLogger(__name__)

# snake_case (database) names -> export-style names
COLUMN_ALIASES = {
    "id": "TaskID",
    "task_id": "TaskID",
    "name": "Name",
    "title": "Name",
    "duration": "Duration",
    "phase_id": "PhaseID",
    "status": "Status",
    "estimated_hours": "EstimatedHours",
    "assignee_id": "AssigneeID",
    "predecessors": "Predecessors",
}

# ---------------------------------------------------------
# FIELD CLEANUP
# ---------------------------------------------------------

def clean_id(value) -> Optional[str]:
    """Stable string id; 5, 5.0 and "5" all become "5". Blank -> None."""
    if value is None:
        return None
    if isinstance(value, float):
        if np.isnan(value):
            return None
        if value.is_integer():
            return str(int(value))
    if isinstance(value, (np.integer, int)) and not isinstance(value, bool):
        return str(int(value))
    text = str(value).strip()
    return text or None


def _normalise_columns(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    df.columns = [str(c).strip() for c in df.columns]
    renames = {c: COLUMN_ALIASES[c] for c in df.columns if c in COLUMN_ALIASES and COLUMN_ALIASES[c] not in df.columns}
    return df.rename(columns=renames)


def _optional(row, col):
    if col not in row.index:
        return None
    value = row[col]
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return None
    return value


def tasks_from_frame(df_input: pd.DataFrame) -> List[Task]:
    """
    Build Task records from a frame.

    Required: TaskID, Duration. Optional: Name, PhaseID, Status,
    EstimatedHours, AssigneeID. Durations must be numeric; range checks
    (negative, fractional) are left to the engine so they surface as
    InvalidDurationError.
    """
    df = _normalise_columns(df_input)

    for col in ("TaskID", "Duration"):
        if col not in df.columns:
            raise ValueError(f"Missing required column: '{col}'")

    ids = df["TaskID"].map(clean_id)
    if ids.isna().any():
        raise ValueError(f"Blank TaskID values found at rows: {list(df.index[ids.isna()])}")

    durations = pd.to_numeric(df["Duration"], errors="coerce")
    if durations.isna().any():
        bad = df[durations.isna()][["TaskID", "Duration"]].head()
        raise ValueError(
            "Non-numeric Duration values found. Example rows:\n"
            f"{bad.to_string(index=False)}"
        )

    tasks = []
    for idx, row in df.iterrows():
        duration = durations.loc[idx]
        if float(duration).is_integer():
            duration = int(duration)
        else:
            duration = float(duration)

        status = _optional(row, "Status") or TaskStatus.PENDING.value
        hours = _optional(row, "EstimatedHours")

        tasks.append(
            Task(
                id=ids.loc[idx],
                duration=duration,
                phase_id=clean_id(_optional(row, "PhaseID")),
                status=str(status).strip().lower(),
                name=str(_optional(row, "Name") or ""),
                estimated_hours=float(hours) if hours is not None else None,
                assignee_id=clean_id(_optional(row, "AssigneeID")),
            )
        )

    logger.debug("Loaded %d tasks from frame", len(tasks))
    return tasks


# ---------------------------------------------------------
# PREDECESSOR PARSING
# ---------------------------------------------------------

_PRED_PATTERN = re.compile(
    r"""
    ^\s*
    (?P<pred>[A-Za-z0-9_]+?)
    \s*
    (?P<type>FS|SS|FF|SF)?    # optional type
    \s*
    (?P<lag>[+-]\s*\d+)?      # optional +N or -N
    \s*[dD]?                  # optional 'd'
    \s*$
    """,
    re.VERBOSE | re.IGNORECASE,
)


def parse_predecessor_cell(cell) -> List[Tuple[str, str, int]]:
    """
    Parse a Predecessors cell like:
      "5"
      "5FS+3d"
      "12SS-2"
      "7FF+1d, 9SS"
    into a list of tuples:
      [("5", "FS", 3), ("12", "SS", -2), ...]

    Raises ValueError on a part it cannot read instead of skipping it.
    """
    if cell is None or (isinstance(cell, float) and np.isnan(cell)):
        return []

    if isinstance(cell, (int, np.integer, float)):
        return [(clean_id(cell), "FS", 0)]

    text = str(cell).strip()
    if not text:
        return []

    results = []
    for raw in re.split(r"[;,]", text):
        s = raw.strip()
        if not s:
            continue
        m = _PRED_PATTERN.match(s)
        if not m:
            raise ValueError(f"Invalid predecessor entry: '{s}'")

        dep_type = (m.group("type") or "FS").upper()
        lag_str = m.group("lag")
        lag = int(lag_str.replace(" ", "")) if lag_str else 0

        results.append((m.group("pred"), dep_type, lag))

    return results


def dependencies_from_predecessors(df_input: pd.DataFrame) -> List[Dependency]:
    """Dependencies encoded in a TaskID / Predecessors frame."""
    df = _normalise_columns(df_input)
    if "TaskID" not in df.columns:
        raise ValueError("Missing required column: 'TaskID'")
    if "Predecessors" not in df.columns:
        return []

    deps = []
    for _, row in df.iterrows():
        succ = clean_id(row["TaskID"])
        for pred, dep_type, lag in parse_predecessor_cell(row["Predecessors"]):
            deps.append(Dependency(pred, succ, dep_type, lag))
    return deps


def dependencies_from_frame(df_input: pd.DataFrame) -> List[Dependency]:
    """
    Dependencies from an edge-list frame:
    predecessor_id, successor_id, [type], [lag_days | lag].
    """
    df = df_input.copy()
    df.columns = [str(c).strip() for c in df.columns]

    for col in ("predecessor_id", "successor_id"):
        if col not in df.columns:
            raise ValueError(f"Missing required column: '{col}'")

    lag_col = "lag_days" if "lag_days" in df.columns else ("lag" if "lag" in df.columns else None)

    deps = []
    for _, row in df.iterrows():
        dep_type = _optional(row, "type") or "FS"
        lag = _optional(row, lag_col) if lag_col else None
        deps.append(
            Dependency(
                clean_id(row["predecessor_id"]),
                clean_id(row["successor_id"]),
                dep_type,
                0 if lag is None else lag,
            )
        )
    return deps


def phases_from_frame(df_input: pd.DataFrame) -> List[ProjectPhase]:
    """Phases from id, name, phase_order, [project_id, status, created_at]."""
    df = df_input.copy()
    df.columns = [str(c).strip() for c in df.columns]

    for col in ("id", "name", "phase_order"):
        if col not in df.columns:
            raise ValueError(f"Missing required column: '{col}'")

    orders = pd.to_numeric(df["phase_order"], errors="coerce")
    if orders.isna().any():
        raise ValueError("Non-numeric phase_order values found.")

    created = None
    if "created_at" in df.columns:
        created = pd.to_datetime(df["created_at"], errors="coerce")

    phases = []
    for idx, row in df.iterrows():
        created_at = None
        if created is not None and not pd.isna(created.loc[idx]):
            created_at = created.loc[idx].to_pydatetime()
        phases.append(
            ProjectPhase(
                id=clean_id(row["id"]),
                name=str(row["name"]),
                phase_order=int(orders.loc[idx]),
                project_id=clean_id(_optional(row, "project_id")),
                status=str(_optional(row, "status") or "pending"),
                created_at=created_at,
            )
        )
    return phases


# ---------------------------------------------------------
# RESULTS
# ---------------------------------------------------------

def schedule_to_frame(result: ScheduleResult, df: Optional[pd.DataFrame] = None) -> pd.DataFrame:
    """
    One row per task: TaskID, Duration, ES, EF, LS, LF, Slack, IsCritical,
    plus Start / Finish / LateStart / LateFinish when the schedule is dated.

    When `df` is given, the schedule columns are mapped onto a copy of it
    by TaskID instead.
    """
    rows = []
    dated = result.project_start is not None
    for s in result.tasks.values():
        row = {
            "TaskID": s.task_id,
            "Duration": s.duration,
            "ES": s.es,
            "EF": s.ef,
            "LS": s.ls,
            "LF": s.lf,
            "Slack": s.slack,
            "IsCritical": s.is_critical,
        }
        if dated:
            row["Start"] = pd.Timestamp(s.start_date)
            row["Finish"] = pd.Timestamp(s.finish_date)
            row["LateStart"] = pd.Timestamp(s.late_start_date)
            row["LateFinish"] = pd.Timestamp(s.late_finish_date)
        rows.append(row)

    columns = ["TaskID", "Duration", "ES", "EF", "LS", "LF", "Slack", "IsCritical"]
    if dated:
        columns += ["Start", "Finish", "LateStart", "LateFinish"]
    out = pd.DataFrame(rows, columns=columns)

    if df is None:
        return out

    df2 = _normalise_columns(df)
    keys = df2["TaskID"].map(clean_id)
    indexed = out.set_index("TaskID")
    for col in columns[2:]:
        df2[col] = keys.map(indexed[col])
    return df2
