import asyncio
import json

import pytest

from troubleshooting_workflow.collaboration.interface import StaticCollaborationChannel
from troubleshooting_workflow.config import settings
from troubleshooting_workflow.domain.models import StepDefinition, ValidationRule
from troubleshooting_workflow.exceptions import (
    InvalidSchemaError,
    MalformedDocumentError,
    NotSkippableError,
    ValidationFailedError,
)
from troubleshooting_workflow.repositories.session import (
    InMemorySessionRepository,
    KeyValueSessionRepository,
)
from troubleshooting_workflow.repositories.storage import InMemoryKeyValueStore
from troubleshooting_workflow.serialization.snapshot import dump_snapshot
from troubleshooting_workflow.services.exceptions import SessionNotFoundError
from troubleshooting_workflow.services.workflow_session import WorkflowSessionService

PREFIX = "troubleshoot-session:"


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def service(store, clock):
    return WorkflowSessionService(InMemorySessionRepository(), store, clock=clock, validation_timeout=1.0)


def statuses(instance):
    return {s.id: s.status for s in instance.steps}


def test_create_session(service):
    instance = service.create_session(problem_description="Fridge is warm")

    assert instance.current_step_id == "analyze"
    assert instance.context.problem_description == "Fridge is warm"
    assert service.get_session(instance.session_id) is instance


def test_create_session_at_entry_step(service):
    instance = service.create_session(entry_step_id="execute")

    assert statuses(instance)["solutions"] == "completed"
    assert instance.active_step.id == "execute"


@pytest.mark.asyncio
async def test_full_workflow(service, clock):
    session_id = service.create_session(
        problem_description="Sink is clogged", solutions=[{"id": "sol-1"}]
    ).session_id

    clock.advance(1000)
    await service.advance(session_id, "solutions")
    clock.advance(2000)
    await service.advance(session_id, "execute")

    with pytest.raises(ValidationFailedError):
        await service.advance(session_id, "feedback")

    service.update_context(session_id, selected_solution_id="sol-1")
    clock.advance(3000)
    await service.advance(session_id, "feedback")
    await service.complete(session_id)

    instance = service.get_session(session_id)
    assert statuses(instance) == {
        "analyze": "completed",
        "solutions": "completed",
        "execute": "completed",
        "collaborate": "pending",
        "feedback": "completed",
    }
    history = service.list_history(session_id)
    assert [e.step_id for e in history] == ["feedback", "execute", "solutions", "analyze"]
    assert [e.duration for e in history[1:]] == [3000, 2000, 1000]
    assert service.get_analytics(session_id).progress_percent == 100
    assert service.list_notifications(session_id)[0].title == "Workflow Complete!"


def test_unknown_session(service):
    with pytest.raises(SessionNotFoundError):
        service.get_session("missing")
    with pytest.raises(SessionNotFoundError):
        service.skip("missing", "collaborate")


@pytest.mark.asyncio
async def test_rejected_advance_persists_validation_errors(store, clock):
    service = WorkflowSessionService(KeyValueSessionRepository(store, PREFIX), store, clock=clock)
    session_id = service.create_session().session_id

    with pytest.raises(ValidationFailedError):
        await service.advance(session_id, "solutions")

    saved = json.loads(store.get(f"{PREFIX}{session_id}"))
    assert saved["validationErrors"]["analyze"] == ["Please provide a detailed problem description"]
    assert saved["currentStepId"] == "analyze"


@pytest.mark.asyncio
async def test_session_reloads_from_repository(store, clock):
    repo = KeyValueSessionRepository(store, PREFIX)
    first = WorkflowSessionService(repo, store, clock=clock)
    session_id = first.create_session(problem_description="Garage door sticks").session_id
    await first.advance(session_id, "solutions")

    second = WorkflowSessionService(repo, store, clock=clock)

    assert second.get_session(session_id).current_step_id == "solutions"
    assert [e.step_id for e in second.list_history(session_id)] == ["analyze"]


def test_skip_fail_and_navigate(service):
    session_id = service.create_session().session_id

    with pytest.raises(NotSkippableError):
        service.skip(session_id, "feedback")
    service.skip(session_id, "collaborate")
    service.fail(session_id, "solutions", reason="No solutions found")
    step = service.navigate(session_id, "collaborate")

    instance = service.get_session(session_id)
    assert step.status == "skipped"
    assert instance.viewed_step_id == "collaborate"
    assert statuses(instance)["solutions"] == "failed"
    assert [e.status for e in service.list_history(session_id)] == ["failed", "skipped"]


@pytest.mark.asyncio
async def test_validate(service):
    session_id = service.create_session().session_id

    assert await service.validate(session_id, "analyze") == (
        False, ["Please provide a detailed problem description"]
    )
    service.update_context(session_id, problem_description="Oven won't heat")
    assert await service.validate(session_id, "analyze") == (True, [])


def test_export_and_import(service):
    source = service.create_session(entry_step_id="execute").session_id
    target = service.create_session().session_id

    document = service.export_snapshot(source, include_progress=True)
    assert document.progress.current_step_id == "execute"

    instance = service.import_snapshot(target, dump_snapshot(document))

    assert statuses(instance) == statuses(service.get_session(source))
    assert instance.current_step_id == "execute"
    assert service.list_history(target) == []


def test_rejected_import_leaves_session_untouched(service):
    session_id = service.create_session().session_id
    before = statuses(service.get_session(session_id))

    with pytest.raises(InvalidSchemaError):
        service.import_snapshot(session_id, '{"workflow":{}}')
    with pytest.raises(MalformedDocumentError):
        service.import_snapshot(session_id, "{not json")

    assert statuses(service.get_session(session_id)) == before
    assert service.list_notifications(session_id)[0].title == "Import Failed"


def test_share_token(service):
    source = service.create_session(entry_step_id="feedback").session_id
    target = service.create_session().session_id

    instance = service.import_share_token(target, service.share_token(source))

    assert instance.current_step_id == "feedback"


@pytest.mark.asyncio
async def test_delete_session_removes_history(service, store):
    session_id = service.create_session(problem_description="Fan rattles").session_id
    await service.advance(session_id, "solutions")
    history_key = f"{settings.HISTORY_STORAGE_KEY}:{session_id}"
    assert store.get(history_key) is not None

    assert service.delete_session(session_id) is True

    assert store.get(history_key) is None
    assert service.delete_session(session_id) is False
    with pytest.raises(SessionNotFoundError):
        service.get_session(session_id)


@pytest.mark.asyncio
async def test_clear_history(service):
    session_id = service.create_session(problem_description="Fan rattles").session_id
    await service.advance(session_id, "solutions")

    service.clear_history(session_id)

    assert service.list_history(session_id) == []


def test_metrics(store, clock):
    activity = [{"date": "2024-05-01", "collaborators": 3}]
    service = WorkflowSessionService(
        InMemorySessionRepository(),
        store,
        collaboration=StaticCollaborationChannel(activity_data=activity),
        clock=clock,
    )
    session_id = service.create_session().session_id

    metrics = service.get_metrics(session_id, "30d")

    assert len(metrics.per_step_average_time) == 5
    assert metrics.collaboration_data == activity
    with pytest.raises(ValueError):
        service.get_metrics(session_id, "forever")


def test_breakdown_and_elapsed(service, clock):
    session_id = service.create_session(entry_step_id="solutions").session_id
    clock.advance(4000)

    category_completion, status_distribution = service.get_breakdown(session_id)

    assert category_completion[0].category == "analysis"
    assert category_completion[0].completion == 100
    assert [(s.status, s.count) for s in status_distribution] == [
        ("completed", 1), ("active", 1), ("pending", 3)
    ]
    assert service.elapsed_ms(session_id) == 4000


def test_dismiss_notifications(service):
    session_id = service.create_session().session_id
    service.skip(session_id, "collaborate")
    [notification] = service.list_notifications(session_id)

    assert service.dismiss_notification(session_id, notification.id) is True
    assert service.dismiss_notification(session_id, notification.id) is False

    service.skip(session_id, "collaborate")
    service.dismiss_all_notifications(session_id)
    assert service.list_notifications(session_id) == []


@pytest.mark.asyncio
async def test_idle_sessions_are_evicted_and_reloaded(store, clock):
    service = WorkflowSessionService(
        KeyValueSessionRepository(store, PREFIX), store, clock=clock, max_live_sessions=2
    )
    oldest = service.create_session(problem_description="Fridge hums").session_id
    await service.advance(oldest, "solutions")
    service.create_session()
    service.create_session()

    assert oldest not in service._engines
    assert len(service._engines) == 2

    assert service.get_session(oldest).current_step_id == "solutions"
    assert [e.step_id for e in service.list_history(oldest)] == ["analyze"]
    assert list(service._engines)[-1] == oldest


@pytest.mark.asyncio
async def test_busy_session_is_not_evicted(store, clock):
    gate = asyncio.Event()

    async def wait_for_gate(context):
        await gate.wait()
        return True

    definitions = [
        StepDefinition(
            "a", "A", "", "analysis",
            validation_rules=[ValidationRule("gate", "Waits for the gate", wait_for_gate, "Closed")],
        ),
        StepDefinition("b", "B", "", "solution", requirements=["a"]),
    ]
    service = WorkflowSessionService(
        InMemorySessionRepository(), store, definitions=definitions, clock=clock, max_live_sessions=1
    )
    busy_id = service.create_session(entry_step_id="a").session_id
    pending = asyncio.ensure_future(service.advance(busy_id, "b"))
    await asyncio.sleep(0)

    service.create_session(entry_step_id="a")
    assert busy_id in service._engines

    gate.set()
    await pending
    assert service.get_session(busy_id).current_step_id == "b"
