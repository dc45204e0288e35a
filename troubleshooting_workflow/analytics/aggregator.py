"""
Analytics Aggregator - Derived Workflow Numbers

Pure functions that derive progress, timing, bottlenecks and trends from
the current step list, the recorded step durations and the history ledger.
Nothing is cached: callers recompute after every mutation. Given the same
inputs (and the same `now`), every function returns the same output.
"""

import logging
import math
import re
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from ..schemas.analytics import (
    AnalyticsSnapshot,
    CategoryCompletion,
    StatusCount,
    StepAverageTime,
    StepOutcomeCounts,
    TrendPoint,
    WorkflowMetrics,
)
from ..state.models import HistoryEntry, WorkflowStep

logger = logging.getLogger(__name__)

# A step is a bottleneck when its duration is strictly greater than this
# multiple of the mean duration across measured steps.
BOTTLENECK_FACTOR = 1.5

UNKNOWN_TIME = "Unknown"

_TIME_RANGE_PATTERN = re.compile(r"^\s*(\d+)\s*d?\s*$")


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def format_duration(ms: float) -> str:
    """Formats milliseconds as '4m 5s' or '45s'."""
    seconds = int(ms // 1000)
    minutes, remaining_seconds = divmod(seconds, 60)
    if minutes > 0:
        return f"{minutes}m {remaining_seconds}s"
    return f"{remaining_seconds}s"


def parse_time_range(value: str) -> int:
    """
    Parses '7d' / '30d' / '90d' (or a bare day count) into a number of days.

    Raises ValueError for anything else.
    """
    match = _TIME_RANGE_PATTERN.match(str(value))
    if not match or int(match.group(1)) <= 0:
        raise ValueError(f"Invalid time range '{value}', expected e.g. '7d'.")
    return int(match.group(1))


# ==============================================================================
# Progress Snapshot
# ==============================================================================

def find_bottlenecks(
    steps: Sequence[WorkflowStep], durations_by_step: Mapping[str, float]
) -> List[str]:
    """
    Titles of steps whose duration exceeds 1.5x the mean duration.

    A single measurement cannot establish a bottleneck, so fewer than two
    recorded durations yield an empty list.
    """
    if len(durations_by_step) < 2:
        return []

    mean = sum(durations_by_step.values()) / len(durations_by_step)
    threshold = mean * BOTTLENECK_FACTOR
    titles = {s.id: s.title for s in steps}

    return [
        titles.get(step_id, step_id)
        for step_id, duration in durations_by_step.items()
        if duration > threshold
    ]


def compute_analytics(
    steps: Sequence[WorkflowStep], durations_by_step: Mapping[str, float]
) -> AnalyticsSnapshot:
    completed = sum(1 for s in steps if s.status == "completed")
    skipped = sum(1 for s in steps if s.status == "skipped")
    failed = sum(1 for s in steps if s.status == "failed")

    # Optional steps only count once they have been completed.
    denominator = sum(1 for s in steps if not s.optional or s.status == "completed")
    progress = _round_half_up(completed / denominator * 100) if denominator else 0

    durations = list(durations_by_step.values())
    mean_ms = sum(durations) / len(durations) if durations else 0
    average_step_time = _round_half_up(mean_ms / 1000)

    remaining = sum(1 for s in steps if s.status in ("pending", "active"))
    if average_step_time == 0:
        estimated = UNKNOWN_TIME
    else:
        estimated = format_duration(average_step_time * remaining * 1000)

    return AnalyticsSnapshot(
        total_steps=len(steps),
        completed_steps=completed,
        skipped_steps=skipped,
        failed_steps=failed,
        progress_percent=progress,
        estimated_time_remaining=estimated,
        average_step_time=average_step_time,
        bottleneck_steps=find_bottlenecks(steps, durations_by_step),
    )


# ==============================================================================
# History Metrics
# ==============================================================================

def _as_utc(timestamp: datetime) -> datetime:
    # Naive timestamps are taken to be UTC
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)


def _mean_seconds(durations_ms: List[float]) -> float:
    if not durations_ms:
        return 0.0
    return round(sum(durations_ms) / len(durations_ms) / 1000, 1)


def compute_metrics(
    history: Iterable[HistoryEntry],
    steps: Sequence[WorkflowStep],
    time_range_days: int,
    now: Optional[datetime] = None,
) -> WorkflowMetrics:
    """
    Per-step timing and outcome counts plus a daily completion trend over
    the last `time_range_days` days.

    Entries for step ids that are not in `steps` are ignored. The trend
    groups completed entries by UTC calendar day, oldest day first.
    """
    now = _as_utc(now) if now else datetime.now(timezone.utc)
    cutoff = now - timedelta(days=time_range_days)
    known = {s.id for s in steps}
    filtered = [
        e for e in history if e.step_id in known and _as_utc(e.timestamp) >= cutoff
    ]

    times: Dict[str, List[float]] = {s.id: [] for s in steps}
    outcomes: Dict[str, Dict[str, int]] = {
        s.id: {"completed": 0, "failed": 0, "skipped": 0} for s in steps
    }
    for entry in filtered:
        times[entry.step_id].append(entry.duration)
        outcomes[entry.step_id][entry.status] += 1

    per_step_average_time = [
        StepAverageTime(step_id=s.id, name=s.title, time=_mean_seconds(times[s.id]))
        for s in steps
    ]
    per_step_outcome_counts = [
        StepOutcomeCounts(step_id=s.id, name=s.title, **outcomes[s.id])
        for s in steps
    ]

    by_day: Dict[str, List[float]] = defaultdict(list)
    for entry in filtered:
        if entry.status == "completed":
            by_day[_as_utc(entry.timestamp).date().isoformat()].append(entry.duration)

    daily_trend = [
        TrendPoint(date=day, avg_time=_mean_seconds(durations), completions=len(durations))
        for day, durations in sorted(by_day.items())
    ]

    logger.debug(
        f"Computed metrics over {time_range_days}d: {len(filtered)} entries, {len(daily_trend)} days"
    )
    return WorkflowMetrics(
        per_step_average_time=per_step_average_time,
        per_step_outcome_counts=per_step_outcome_counts,
        daily_trend=daily_trend,
    )


# ==============================================================================
# Dashboard Breakdown
# ==============================================================================

def compute_category_completion(steps: Sequence[WorkflowStep]) -> List[CategoryCompletion]:
    """Completed vs. total steps per category, in first-seen order."""
    totals: Dict[str, List[int]] = {}
    for step in steps:
        bucket = totals.setdefault(step.category, [0, 0])
        bucket[1] += 1
        if step.status == "completed":
            bucket[0] += 1

    return [
        CategoryCompletion(
            category=category,
            completed=completed,
            total=total,
            completion=_round_half_up(completed / total * 100),
        )
        for category, (completed, total) in totals.items()
    ]


def compute_status_distribution(steps: Sequence[WorkflowStep]) -> List[StatusCount]:
    """Step counts per status, leaving out statuses no step has."""
    order = ["completed", "active", "pending", "skipped", "failed"]
    counts = {status: 0 for status in order}
    for step in steps:
        counts[step.status] += 1
    return [StatusCount(status=s, count=counts[s]) for s in order if counts[s] > 0]
