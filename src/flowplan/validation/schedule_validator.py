import re

import pandas as pd

from flowplan.cpm.frames import COLUMN_ALIASES, clean_id


# ------------------------------------------------------------------
# Helper: make a consistent issue dictionary
# ------------------------------------------------------------------
def make_issue(task_id, name, severity, issue_type, description, suggestion):
    return {
        "TaskID": task_id,
        "Name": name,
        "Severity": severity,
        "IssueType": issue_type,
        "Description": description,
        "SuggestedFix": suggestion,
    }


# ------------------------------------------------------------------
# VALID PREDECESSOR REGEX
# Supports:
#  - 5
#  - 12FS
#  - 12FS+2
#  - 12FS+2d
#  - 5SS-3
#  - T10, 12FS+2d, 99SS
# ------------------------------------------------------------------
_ENTRY = r"[A-Za-z0-9_]+?\s*(?:FS|SS|FF|SF)?\s*(?:[+-]\s*\d+\s*d?)?"

PRED_PATTERN = re.compile(
    rf"""
    ^\s*
    {_ENTRY}
    (?:\s*[,;]\s*{_ENTRY})*
    \s*$
    """,
    re.IGNORECASE | re.VERBOSE,
)

_ENTRY_ID = re.compile(r"^\s*([A-Za-z0-9_]+?)\s*(?:FS|SS|FF|SF)?\s*(?:[+-]\s*\d+\s*d?)?\s*$", re.IGNORECASE)


def valid_pred_format(cell):
    if cell is None or pd.isna(cell):
        return True
    s = str(cell).strip()
    if s == "":
        return True
    return bool(PRED_PATTERN.match(s))


# ------------------------------------------------------------------
# MAIN VALIDATION ENGINE
# ------------------------------------------------------------------
def validate_schedule(df):
    """
    Report problems in a task frame before it reaches the CPM engine.

    Never raises on bad data; returns a list of issue dicts instead.
    """
    issues = []

    df = df.copy()
    df.columns = [str(c).strip() for c in df.columns]
    df = df.rename(columns={c: COLUMN_ALIASES[c] for c in df.columns
                            if c in COLUMN_ALIASES and COLUMN_ALIASES[c] not in df.columns})

    # --- Required Columns ---
    required = ["TaskID", "Duration"]
    missing = [c for c in required if c not in df.columns]

    if missing:
        issues.append(
            make_issue(
                "N/A", "N/A", "critical", "MissingColumns",
                f"Missing required columns: {missing}",
                "Add the missing columns before computing the schedule."
            )
        )
        return issues

    if "Name" not in df.columns:
        df["Name"] = ""
    if "Predecessors" not in df.columns:
        df["Predecessors"] = ""

    ids = df["TaskID"].map(clean_id)

    # ------------------------------------------------------------------
    # 1. TaskID validation
    # ------------------------------------------------------------------
    if ids.isna().any():
        issues.append(
            make_issue(
                None, None, "critical", "TaskIDBlank",
                "Some TaskID values are blank.",
                "Every task needs an id."
            )
        )

    dups = sorted(set(ids[ids.duplicated() & ids.notna()]))
    if dups:
        issues.append(
            make_issue(
                ", ".join(dups), "",
                "critical", "DuplicateTaskID",
                f"Duplicate TaskIDs detected: {dups}",
                "Give every task a unique id."
            )
        )

    # ------------------------------------------------------------------
    # 2. Duration validation
    # ------------------------------------------------------------------
    dur = pd.to_numeric(df["Duration"], errors="coerce")
    if dur.isna().any():
        issues.append(make_issue(
            None, None, "error", "DurationInvalid",
            "Some durations contain text or invalid values.",
            "Remove values like 'TBD'. Only use whole numbers of workdays."
        ))

    for idx in df.index[dur < 0]:
        issues.append(make_issue(
            ids.loc[idx], df.loc[idx, "Name"],
            "critical", "NegativeDuration",
            f"Duration is negative ({df.loc[idx, 'Duration']}).",
            "Duration must be zero (milestone) or positive."
        ))

    fractional = dur.notna() & (dur >= 0) & (dur % 1 != 0)
    for idx in df.index[fractional]:
        issues.append(make_issue(
            ids.loc[idx], df.loc[idx, "Name"],
            "error", "FractionalDuration",
            f"Duration is not a whole number of workdays ({df.loc[idx, 'Duration']}).",
            "Round the duration to whole workdays."
        ))

    # ------------------------------------------------------------------
    # 3. Predecessor validation
    # ------------------------------------------------------------------
    all_ids = set(ids.dropna())

    for idx, row in df.iterrows():
        tid = ids.loc[idx]
        name = row["Name"]
        cell = row["Predecessors"]

        if cell is None or pd.isna(cell) or str(cell).strip() in ["", "nan", "None"]:
            continue
        cell = str(clean_id(cell))

        if not valid_pred_format(cell):
            issues.append(make_issue(
                tid, name,
                "critical", "InvalidPredecessorFormat",
                f"Invalid predecessor format: '{cell}'",
                "Valid examples: 5, 12FS, 12FS+2d, 5SS-3, T10, 12FS+1d"
            ))
            continue

        for part in re.split(r"[;,]", cell):
            if not part.strip():
                continue

            m = _ENTRY_ID.match(part)
            if not m:
                continue
            pred_id = m.group(1)
            if pred_id == tid:
                issues.append(make_issue(
                    tid, name,
                    "critical", "SelfDependency",
                    "Task lists itself as a predecessor.",
                    "Remove the self-reference."
                ))
            elif pred_id not in all_ids:
                issues.append(make_issue(
                    tid, name,
                    "error", "MissingPredecessorTask",
                    f"Task depends on missing TaskID {pred_id}.",
                    "Fix dependency: remove or correct missing TaskID."
                ))

    return issues
