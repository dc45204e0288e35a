from datetime import datetime, timezone

import pytest

from troubleshooting_workflow.analytics.aggregator import (
    compute_analytics,
    compute_category_completion,
    compute_metrics,
    compute_status_distribution,
    find_bottlenecks,
    format_duration,
    parse_time_range,
)
from troubleshooting_workflow.data.step_catalog import build_initial_steps
from troubleshooting_workflow.state.models import HistoryEntry, WorkflowStep


def step(step_id, status="pending", optional=False, category="analysis"):
    return WorkflowStep(
        id=step_id, title=step_id.upper(), status=status, optional=optional, category=category
    )


def at(day, hour=12):
    return datetime(2024, 5, day, hour, tzinfo=timezone.utc)


# --- compute_analytics ---

def test_no_durations():
    snapshot = compute_analytics([step("a", "active"), step("b")], {})

    assert snapshot.average_step_time == 0
    assert snapshot.bottleneck_steps == []
    assert snapshot.estimated_time_remaining == "Unknown"
    assert snapshot.total_steps == 2


def test_progress_ignores_unfinished_optional_steps():
    steps = [
        step("a", "completed"),
        step("b", "completed"),
        step("c", "active"),
        step("d"),
        step("opt", "skipped", optional=True),
    ]

    assert compute_analytics(steps, {}).progress_percent == 50

    steps[-1] = step("opt", "completed", optional=True)
    assert compute_analytics(steps, {}).progress_percent == 60


def test_progress_rounds_half_up():
    steps = [step("a", "completed")] + [step(f"s{i}") for i in range(7)]

    # 1 / 8 = 12.5%
    assert compute_analytics(steps, {}).progress_percent == 13


def test_counts_and_estimate():
    steps = [
        step("a", "completed"),
        step("b", "failed"),
        step("c", "active"),
        step("d"),
        step("e", "skipped", optional=True),
    ]

    snapshot = compute_analytics(steps, {"a": 4000, "b": 6000})

    assert snapshot.completed_steps == 1
    assert snapshot.failed_steps == 1
    assert snapshot.skipped_steps == 1
    assert snapshot.average_step_time == 5
    # 5s average x 2 remaining steps
    assert snapshot.estimated_time_remaining == "10s"


@pytest.mark.parametrize(
    "slowest, flagged",
    [
        (3000, []),  # exactly 1.5x the mean
        (3001, ["A"]),
        (2999, []),
    ],
)
def test_bottleneck_boundary(slowest, flagged):
    steps = [step("a"), step("b"), step("c")]
    durations = {"a": slowest, "b": 1000, "c": 2000}

    assert find_bottlenecks(steps, durations) == flagged
    assert compute_analytics(steps, durations).bottleneck_steps == flagged


def test_single_measurement_is_never_a_bottleneck():
    assert find_bottlenecks([step("a")], {"a": 90000}) == []


# --- formatting ---

def test_format_duration():
    assert format_duration(65000) == "1m 5s"
    assert format_duration(45000) == "45s"
    assert format_duration(0) == "0s"


def test_parse_time_range():
    assert parse_time_range("7d") == 7
    assert parse_time_range("90d") == 90
    assert parse_time_range("30") == 30
    with pytest.raises(ValueError):
        parse_time_range("a week")
    with pytest.raises(ValueError):
        parse_time_range("0d")


# --- compute_metrics ---

def test_metrics_per_step_and_trend():
    steps = build_initial_steps("analyze")
    history = [
        HistoryEntry(step_id="analyze", step_title="Problem Analysis", status="completed",
                     duration=4000, timestamp=at(9, 10)),
        HistoryEntry(step_id="analyze", step_title="Problem Analysis", status="completed",
                     duration=6000, timestamp=at(10, 9)),
        HistoryEntry(step_id="solutions", step_title="Review Solutions", status="failed",
                     duration=1000, timestamp=at(10, 10)),
        HistoryEntry(step_id="collaborate", step_title="Team Collaboration", status="skipped",
                     timestamp=at(10, 11)),
        # Outside the range
        HistoryEntry(step_id="analyze", step_title="Problem Analysis", status="completed",
                     duration=100000, timestamp=datetime(2024, 4, 1, tzinfo=timezone.utc)),
        # Not part of this workflow
        HistoryEntry(step_id="ghost", step_title="Ghost", status="completed",
                     duration=9999, timestamp=at(10)),
    ]

    metrics = compute_metrics(history, steps, 7, now=at(10, 12))

    times = {p.step_id: p.time for p in metrics.per_step_average_time}
    assert times == {
        "analyze": 5.0,
        "solutions": 1.0,
        "execute": 0.0,
        "collaborate": 0.0,
        "feedback": 0.0,
    }
    counts = {c.step_id: (c.completed, c.failed, c.skipped) for c in metrics.per_step_outcome_counts}
    assert counts["analyze"] == (2, 0, 0)
    assert counts["solutions"] == (0, 1, 0)
    assert counts["collaborate"] == (0, 0, 1)
    assert [(t.date, t.avg_time, t.completions) for t in metrics.daily_trend] == [
        ("2024-05-09", 4.0, 1),
        ("2024-05-10", 6.0, 1),
    ]
    assert metrics.collaboration_data == []


def test_metrics_are_deterministic():
    steps = build_initial_steps("analyze")
    history = [
        HistoryEntry(step_id="analyze", step_title="Problem Analysis", status="completed",
                     duration=1234, timestamp=at(10)),
    ]

    first = compute_metrics(history, steps, 30, now=at(11))
    second = compute_metrics(history, steps, 30, now=at(11))

    assert first == second


# --- dashboard breakdown ---

def test_category_completion_and_status_distribution():
    steps = [
        step("a", "completed", category="analysis"),
        step("b", "active", category="analysis"),
        step("c", "completed", category="execution"),
    ]

    completion = [(c.category, c.completed, c.total, c.completion)
                  for c in compute_category_completion(steps)]
    assert completion == [("analysis", 1, 2, 50), ("execution", 1, 1, 100)]

    distribution = [(s.status, s.count) for s in compute_status_distribution(steps)]
    assert distribution == [("completed", 2), ("active", 1)]
