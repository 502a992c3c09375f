# services/analytics.py
"""
Analytics over snapshots of tasks and time entries.

Everything in here is a plain function of its arguments: callers load the
rows, pass them in, and get numbers back. No session, no clock reads unless
`now` is omitted.
"""
import math
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from core.utils import as_date, ceil_div_percent, round_half_up, utcnow
from models.models import TaskStatus

MILESTONE_THRESHOLDS = (25, 50, 75, 100)


def _in_window(entries: Iterable, window_days: int, now: datetime) -> List:
    since = now - timedelta(days=window_days)
    return [e for e in entries if since < e.date <= now]


# ============================================================
# Velocity
# ============================================================
def velocity(entries: Sequence, window_days: int, now: Optional[datetime] = None) -> float:
    """Hours per calendar day over the trailing window."""
    if window_days <= 0:
        raise ValueError("window_days must be positive")
    now = now or utcnow()
    hours = sum(e.hours for e in _in_window(entries, window_days, now))
    return round_half_up(hours / window_days, 2)


def velocity_summary(entries: Sequence, now: Optional[datetime] = None) -> Dict[str, float]:
    now = now or utcnow()
    last_7 = sum(e.hours for e in _in_window(entries, 7, now))
    last_30 = sum(e.hours for e in _in_window(entries, 30, now))
    return {
        "last_7_days": round_half_up(last_7, 2),
        "last_30_days": round_half_up(last_30, 2),
        "avg_per_day_7": velocity(entries, 7, now),
        "avg_per_day_30": velocity(entries, 30, now),
    }


# ============================================================
# Burndown
# ============================================================
def burndown(estimated_hours: float, entries: Sequence) -> List[Dict]:
    """
    Remaining-work curve: one starting point at the full estimate, then one
    point per entry in chronological order. Logged time beyond the estimate
    does not push remaining below zero. No entries means no curve.
    """
    ordered = sorted(entries, key=lambda e: e.date)
    if not ordered:
        return []

    estimated = estimated_hours or 0
    points = [{"date": ordered[0].date, "remaining": round_half_up(estimated, 2), "logged": 0.0}]
    logged = 0.0
    for entry in ordered:
        logged += entry.hours
        remaining = max(0.0, estimated - min(logged, estimated))
        points.append({
            "date": entry.date,
            "remaining": round_half_up(remaining, 2),
            "logged": round_half_up(logged, 2),
        })
    return points


# ============================================================
# Milestones
# ============================================================
def milestones(tasks: Sequence) -> List[Dict]:
    total = len(tasks)
    completed = sum(1 for t in tasks if t.status == TaskStatus.DONE.value)
    result = []
    for percent in MILESTONE_THRESHOLDS:
        required = ceil_div_percent(total, percent)
        result.append({
            "percent": percent,
            "required": required,
            "completed": min(completed, required),
            "achieved": completed >= required,
            "remaining_tasks": max(0, required - completed),
        })
    return result


# ============================================================
# Forecast
# ============================================================
def estimated_completion(
    remaining_hours: float,
    status: str,
    completed_date: Optional[datetime],
    entries: Sequence,
    now: Optional[datetime] = None,
) -> Optional[datetime]:
    """
    Project the finish date from the average hours per worked day over the
    last 30 days. Done tasks report their completion date; no recent work
    means no forecast.
    """
    if not remaining_hours:
        return completed_date if status == TaskStatus.DONE.value else None

    now = now or utcnow()
    recent = _in_window(entries, 30, now)
    if not recent:
        return None

    worked_days = {as_date(e.date) for e in recent}
    per_day = sum(e.hours for e in recent) / len(worked_days)
    if per_day <= 0:
        return None
    return now + timedelta(days=math.ceil(remaining_hours / per_day))


# ============================================================
# Aggregates
# ============================================================
def task_status_counts(tasks: Iterable) -> Dict[str, int]:
    counts = OrderedDict((s.value, 0) for s in TaskStatus)
    total = 0
    for task in tasks:
        counts[task.status] = counts.get(task.status, 0) + 1
        total += 1
    counts["total"] = total
    return dict(counts)


def time_totals(entries: Iterable) -> Dict[str, float]:
    total = billable = 0.0
    count = 0
    for entry in entries:
        total += entry.hours
        if entry.billable:
            billable += entry.hours
        count += 1
    return {
        "total_hours": round_half_up(total, 2),
        "billable_hours": round_half_up(billable, 2),
        "non_billable_hours": round_half_up(total - billable, 2),
        "total_entries": count,
    }


def time_progress(estimated_hours: float, logged_hours: float) -> int:
    """Logged time as a percentage of the estimate (may exceed 100)."""
    if not estimated_hours or estimated_hours <= 0:
        return 0
    return round_half_up((logged_hours or 0) / estimated_hours * 100)


def group_entries(entries: Iterable, key) -> List[Dict]:
    """Bucket entries by `key(entry)` with totals per bucket, sorted by key."""
    buckets: Dict = {}
    for entry in entries:
        bucket = buckets.setdefault(key(entry), {"total_hours": 0.0, "billable_hours": 0.0, "entries": 0})
        bucket["total_hours"] += entry.hours
        if entry.billable:
            bucket["billable_hours"] += entry.hours
        bucket["entries"] += 1

    rows = []
    for bucket_key in sorted(buckets, key=lambda k: (k is None, k)):
        data = buckets[bucket_key]
        rows.append({
            "key": bucket_key,
            "total_hours": round_half_up(data["total_hours"], 2),
            "billable_hours": round_half_up(data["billable_hours"], 2),
            "entries": data["entries"],
        })
    return rows


def team_performance(tasks: Sequence, entries: Sequence) -> List[Dict]:
    """Per-user hours, tasks touched and tasks completed, for users with logged time."""
    per_user: Dict[int, Dict] = {}
    for entry in entries:
        perf = per_user.setdefault(entry.user_id, {"total_hours": 0.0, "task_ids": set()})
        perf["total_hours"] += entry.hours
        perf["task_ids"].add(entry.task_id)

    completed: Dict[int, int] = {}
    for task in tasks:
        if task.assignee_id is not None and task.status == TaskStatus.DONE.value:
            completed[task.assignee_id] = completed.get(task.assignee_id, 0) + 1

    result = []
    for user_id in sorted(per_user):
        perf = per_user[user_id]
        worked_on = len(perf["task_ids"])
        result.append({
            "user_id": user_id,
            "total_hours": round_half_up(perf["total_hours"], 2),
            "tasks_worked_on": worked_on,
            "completed_tasks": completed.get(user_id, 0),
            "avg_hours_per_task": round_half_up(perf["total_hours"] / worked_on, 2) if worked_on else 0.0,
        })
    return result


# ============================================================
# Trends
# ============================================================
TIMEFRAME_DAYS = {"7d": 7, "30d": 30, "90d": 90}
TIMEFRAMES = ("7d", "30d", "90d", "1y")


def timeframe_start(timeframe: str, now: datetime) -> datetime:
    """Start of a reporting window ending at `now`; "1y" is one calendar year back."""
    if timeframe == "1y":
        try:
            return now.replace(year=now.year - 1)
        except ValueError:
            # 29 February
            return now.replace(year=now.year - 1, day=28)
    if timeframe not in TIMEFRAME_DAYS:
        raise ValueError(f"Unknown timeframe '{timeframe}'")
    return now - timedelta(days=TIMEFRAME_DAYS[timeframe])


def completion_rate(completed: int, created: int) -> int:
    """Completed as a percentage of created, capped at 100."""
    if not created or not completed:
        return 0
    return min(100, round_half_up(completed / created * 100))


def daily_counts(timestamps: Iterable[datetime]) -> List[Dict]:
    counts: Dict = {}
    for ts in timestamps:
        day = as_date(ts)
        counts[day] = counts.get(day, 0) + 1
    return [{"date": day.isoformat(), "count": counts[day]} for day in sorted(counts)]


def count_by(items: Iterable, key) -> Dict:
    counts: Dict = {}
    for item in items:
        bucket = key(item)
        counts[bucket] = counts.get(bucket, 0) + 1
    return counts


def monthly_trend(items: Iterable, is_completed) -> List[Dict]:
    """Created and completed counts per calendar month of `created_at`."""
    buckets: Dict = {}
    for item in items:
        month = (item.created_at.year, item.created_at.month)
        bucket = buckets.setdefault(month, {"created": 0, "completed": 0})
        bucket["created"] += 1
        if is_completed(item):
            bucket["completed"] += 1
    return [{"year": year, "month": month, **buckets[(year, month)]} for year, month in sorted(buckets)]
