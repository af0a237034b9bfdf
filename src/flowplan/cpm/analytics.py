# flowplan/cpm/analytics.py

from __future__ import annotations

from typing import Any, Dict, Optional

import pandas as pd

from flowplan.config import load_settings


def add_criticality_flags(df: pd.DataFrame, near_crit_threshold: Optional[float] = None) -> pd.DataFrame:
    """
    Add IsNearCritical (0 < Slack <= threshold) and CriticalityWeight
    (1.0 critical, 0.6 near-critical, else 0.1) to a schedule frame.
    """
    if near_crit_threshold is None:
        near_crit_threshold = load_settings().near_critical_threshold

    df = df.copy()
    slack = pd.to_numeric(df["Slack"], errors="coerce")

    df["IsNearCritical"] = (slack > 0) & (slack <= near_crit_threshold)

    def crit_weight(row):
        if row["IsCritical"]:
            return 1.0
        if row["IsNearCritical"]:
            return 0.6
        return 0.1

    df["CriticalityWeight"] = df.apply(crit_weight, axis=1) if len(df) else pd.Series(dtype=float)
    return df


def compute_kpis(df: pd.DataFrame, near_crit_threshold: Optional[float] = None) -> Dict[str, Any]:
    """
    Compute high-level schedule KPIs from a schedule_to_frame() frame.

    Returns a dict with:
      - total_tasks
      - critical_tasks
      - near_critical_tasks
      - milestones
      - project_duration
      - avg_slack
      - max_slack
    """
    if near_crit_threshold is None:
        near_crit_threshold = load_settings().near_critical_threshold

    out: Dict[str, Any] = {}

    out["total_tasks"] = int(len(df))

    if df.empty:
        out.update(
            critical_tasks=0,
            near_critical_tasks=0,
            milestones=0,
            project_duration=0,
            avg_slack=0.0,
            max_slack=0,
        )
        return out

    slack = pd.to_numeric(df["Slack"], errors="coerce").fillna(0)

    out["critical_tasks"] = int(df["IsCritical"].sum())
    out["near_critical_tasks"] = int(((slack > 0) & (slack <= near_crit_threshold)).sum())
    out["milestones"] = int((df["Duration"] == 0).sum())
    out["project_duration"] = int(df["EF"].max())
    out["avg_slack"] = float(slack.mean())
    out["max_slack"] = int(slack.max())

    return out


def add_slack_bucket(df: pd.DataFrame) -> pd.DataFrame:
    """
    Add a 'SlackBucket' column grouping slack into friendly buckets.
    """
    df = df.copy()

    if "Slack" not in df.columns:
        df["SlackBucket"] = "Unknown"
        return df

    s = pd.to_numeric(df["Slack"], errors="coerce").fillna(0)

    bins = [-0.5, 0.5, 1.5, 5.5, 10.5, 999999999]
    labels = [
        "Critical (0)",
        "1 day",
        "2–5 days",
        "6–10 days",
        "> 10 days",
    ]
    df["SlackBucket"] = pd.cut(s, bins=bins, labels=labels).astype(str)

    return df
