"""Shared fixtures for the workflow engine tests."""

import pytest

from troubleshooting_workflow.data.step_catalog import DEFAULT_STEP_DEFINITIONS
from troubleshooting_workflow.execution.engine import WorkflowEngine
from troubleshooting_workflow.notifications.interface import InMemoryNotificationSink
from troubleshooting_workflow.state.models import TroubleshootingContext


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sink():
    return InMemoryNotificationSink(limit=20)


@pytest.fixture
def ready_context():
    """Context that satisfies every validation rule in the default catalog."""
    return TroubleshootingContext(
        problem_description="Kitchen sink drains slowly",
        solutions=[{"id": "sol-1", "title": "Clear the P-trap"}],
        selected_solution_id="sol-1",
    )


@pytest.fixture
def make_engine(clock, sink):
    def _make(entry="analyze", context=None, definitions=DEFAULT_STEP_DEFINITIONS, **kwargs):
        return WorkflowEngine.create(
            "session-1",
            entry_step_id=entry,
            definitions=definitions,
            context=context or TroubleshootingContext(),
            notifications=sink,
            clock=clock,
            **kwargs,
        )

    return _make
