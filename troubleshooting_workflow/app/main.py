import logging
import uuid
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Depends, Request, status
from fastapi.responses import JSONResponse, Response

from ..config import settings
from ..exceptions import (
    NotSkippableError,
    RequirementsNotMetError,
    SnapshotImportError,
    StepAlreadyFinishedError,
    StepNotActiveError,
    StepNotFoundError,
    ValidationFailedError,
    WorkflowBusyError,
    WorkflowError,
)
from ..notifications.interface import Notification
from ..repositories.bookmarks import BookmarkedSolution, BookmarkRepository
from ..schemas.analytics import WorkflowMetrics
from ..serialization.snapshot import dump_snapshot
from ..services.exceptions import SessionNotFoundError
from ..services.workflow_session import WorkflowSessionService
from ..state.models import HistoryEntry, TroubleshootingContext, WorkflowStep
from .dependencies import get_bookmark_repository, get_workflow_session_service
from .schemas import (
    AdvanceRequest,
    BookmarkCreate,
    BookmarkToggleResponse,
    CompleteRequest,
    ContextUpdate,
    CreateSessionRequest,
    DashboardResponse,
    FailRequest,
    ImportRequest,
    SessionRead,
    ShareToken,
    ValidationResponse,
)

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Troubleshooting Workflow Engine")

# --- Error Mapping ---

# Checked in order; the first matching class wins
_STATUS_BY_ERROR = [
    (StepNotFoundError, 404),
    (ValidationFailedError, 422),
    (RequirementsNotMetError, 409),
    (NotSkippableError, 409),
    (StepNotActiveError, 409),
    (StepAlreadyFinishedError, 409),
    (WorkflowBusyError, 409),
]


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    status_code = next(
        (code for error_type, code in _STATUS_BY_ERROR if isinstance(exc, error_type)),
        409,
    )
    logger.info(f"Rejected {request.method} {request.url.path}: {exc}")
    body = {"detail": str(exc)}
    if isinstance(exc, ValidationFailedError):
        body["errors"] = exc.errors
    if isinstance(exc, RequirementsNotMetError):
        body["missing"] = exc.missing
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(SessionNotFoundError)
async def session_not_found_handler(request: Request, exc: SessionNotFoundError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(SnapshotImportError)
async def snapshot_import_handler(request: Request, exc: SnapshotImportError):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


def _session_read(service: WorkflowSessionService, session_id: str) -> SessionRead:
    return SessionRead(
        session=service.get_session(session_id),
        analytics=service.get_analytics(session_id),
        active_elapsed_ms=service.elapsed_ms(session_id),
    )

# --- Sessions ---

@app.post(
    "/sessions",
    response_model=SessionRead,
    status_code=status.HTTP_201_CREATED
)
def create_session(
    request: CreateSessionRequest,
    service: WorkflowSessionService = Depends(get_workflow_session_service)
):
    """Starts a new session seeded from the step catalog."""
    instance = service.create_session(
        entry_step_id=request.entry_step_id,
        problem_description=request.problem_description,
        solutions=request.solutions,
    )
    return _session_read(service, instance.session_id)


@app.get("/sessions/{session_id}", response_model=SessionRead)
def get_session(
    session_id: str,
    service: WorkflowSessionService = Depends(get_workflow_session_service)
):
    return _session_read(service, session_id)


@app.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_session(
    session_id: str,
    service: WorkflowSessionService = Depends(get_workflow_session_service)
):
    """
    Deletes a session and its history. Returns 204 No Content on success.
    """
    success = service.delete_session(session_id)
    if not success:
        raise HTTPException(status_code=404, detail="Session not found")

    # For 204, we must explicitly return a Response object with no content
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.patch("/sessions/{session_id}/context", response_model=TroubleshootingContext)
def update_context(
    session_id: str,
    update: ContextUpdate,
    service: WorkflowSessionService = Depends(get_workflow_session_service)
):
    return service.update_context(
        session_id,
        problem_description=update.problem_description,
        solutions=update.solutions,
        selected_solution_id=update.selected_solution_id,
    )

# --- Step Transitions ---

@app.post("/sessions/{session_id}/advance", response_model=SessionRead)
async def advance(
    session_id: str,
    request: AdvanceRequest,
    service: WorkflowSessionService = Depends(get_workflow_session_service)
):
    await service.advance(
        session_id,
        request.target_step_id,
        skip_validation=request.skip_validation,
        notes=request.notes,
    )
    return _session_read(service, session_id)


@app.post("/sessions/{session_id}/complete", response_model=SessionRead)
async def complete(
    session_id: str,
    request: CompleteRequest,
    service: WorkflowSessionService = Depends(get_workflow_session_service)
):
    await service.complete(session_id, skip_validation=request.skip_validation, notes=request.notes)
    return _session_read(service, session_id)


@app.post("/sessions/{session_id}/steps/{step_id}/skip", response_model=SessionRead)
def skip_step(
    session_id: str,
    step_id: str,
    service: WorkflowSessionService = Depends(get_workflow_session_service)
):
    service.skip(session_id, step_id)
    return _session_read(service, session_id)


@app.post("/sessions/{session_id}/steps/{step_id}/fail", response_model=SessionRead)
def fail_step(
    session_id: str,
    step_id: str,
    request: FailRequest,
    service: WorkflowSessionService = Depends(get_workflow_session_service)
):
    service.fail(session_id, step_id, reason=request.reason)
    return _session_read(service, session_id)


@app.post("/sessions/{session_id}/steps/{step_id}/validate", response_model=ValidationResponse)
async def validate_step(
    session_id: str,
    step_id: str,
    service: WorkflowSessionService = Depends(get_workflow_session_service)
):
    is_valid, errors = await service.validate(session_id, step_id)
    return ValidationResponse(step_id=step_id, is_valid=is_valid, errors=errors)


@app.post("/sessions/{session_id}/steps/{step_id}/view", response_model=WorkflowStep)
def view_step(
    session_id: str,
    step_id: str,
    service: WorkflowSessionService = Depends(get_workflow_session_service)
):
    """Revisits a step without changing any status."""
    return service.navigate(session_id, step_id)

# --- Analytics & History ---

@app.get("/sessions/{session_id}/analytics", response_model=DashboardResponse)
def get_analytics(
    session_id: str,
    service: WorkflowSessionService = Depends(get_workflow_session_service)
):
    category_completion, status_distribution = service.get_breakdown(session_id)
    return DashboardResponse(
        analytics=service.get_analytics(session_id),
        category_completion=category_completion,
        status_distribution=status_distribution,
    )


@app.get("/sessions/{session_id}/metrics", response_model=WorkflowMetrics)
def get_metrics(
    session_id: str,
    time_range: Optional[str] = None,
    service: WorkflowSessionService = Depends(get_workflow_session_service)
):
    try:
        return service.get_metrics(session_id, time_range)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/sessions/{session_id}/history", response_model=List[HistoryEntry])
def list_history(
    session_id: str,
    service: WorkflowSessionService = Depends(get_workflow_session_service)
):
    """Step outcomes, most recent first."""
    return service.list_history(session_id)


@app.delete("/sessions/{session_id}/history", status_code=status.HTTP_204_NO_CONTENT)
def clear_history(
    session_id: str,
    service: WorkflowSessionService = Depends(get_workflow_session_service)
):
    service.clear_history(session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

# --- Export / Import ---

@app.get("/sessions/{session_id}/export")
def export_workflow(
    session_id: str,
    include_progress: bool = False,
    service: WorkflowSessionService = Depends(get_workflow_session_service)
):
    document = service.export_snapshot(session_id, include_progress=include_progress)
    filename = f"troubleshooting-workflow-{document.timestamp.date().isoformat()}.json"
    return Response(
        content=dump_snapshot(document),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.post("/sessions/{session_id}/import", response_model=SessionRead)
def import_workflow(
    session_id: str,
    request: ImportRequest,
    service: WorkflowSessionService = Depends(get_workflow_session_service)
):
    service.import_snapshot(session_id, request.document)
    return _session_read(service, session_id)


@app.get("/sessions/{session_id}/share", response_model=ShareToken)
def get_share_token(
    session_id: str,
    service: WorkflowSessionService = Depends(get_workflow_session_service)
):
    return ShareToken(token=service.share_token(session_id))


@app.post("/sessions/{session_id}/share", response_model=SessionRead)
def import_share_token(
    session_id: str,
    request: ShareToken,
    service: WorkflowSessionService = Depends(get_workflow_session_service)
):
    service.import_share_token(session_id, request.token)
    return _session_read(service, session_id)

# --- Notifications ---

@app.get("/sessions/{session_id}/notifications", response_model=List[Notification])
def list_notifications(
    session_id: str,
    service: WorkflowSessionService = Depends(get_workflow_session_service)
):
    return service.list_notifications(session_id)


@app.delete(
    "/sessions/{session_id}/notifications/{notification_id}",
    status_code=status.HTTP_204_NO_CONTENT
)
def dismiss_notification(
    session_id: str,
    notification_id: str,
    service: WorkflowSessionService = Depends(get_workflow_session_service)
):
    if not service.dismiss_notification(session_id, notification_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.delete("/sessions/{session_id}/notifications", status_code=status.HTTP_204_NO_CONTENT)
def dismiss_all_notifications(
    session_id: str,
    service: WorkflowSessionService = Depends(get_workflow_session_service)
):
    service.dismiss_all_notifications(session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

# --- Bookmarks ---

@app.get("/bookmarks", response_model=List[BookmarkedSolution])
def list_bookmarks(
    bookmarks: BookmarkRepository = Depends(get_bookmark_repository)
):
    return bookmarks.list()


@app.post(
    "/bookmarks",
    response_model=BookmarkedSolution,
    status_code=status.HTTP_201_CREATED
)
def add_bookmark(
    request: BookmarkCreate,
    bookmarks: BookmarkRepository = Depends(get_bookmark_repository)
):
    bookmark = BookmarkedSolution(id=str(uuid.uuid4()), **request.model_dump())
    return bookmarks.add(bookmark)


@app.post("/bookmarks/toggle", response_model=BookmarkToggleResponse)
def toggle_bookmark(
    request: BookmarkCreate,
    bookmarks: BookmarkRepository = Depends(get_bookmark_repository)
):
    bookmark = BookmarkedSolution(id=str(uuid.uuid4()), **request.model_dump())
    is_bookmarked = bookmarks.toggle(bookmark)
    return BookmarkToggleResponse(solution_id=request.solution_id, bookmarked=is_bookmarked)


@app.delete("/bookmarks/{bookmark_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_bookmark(
    bookmark_id: str,
    bookmarks: BookmarkRepository = Depends(get_bookmark_repository)
):
    if not bookmarks.remove(bookmark_id):
        raise HTTPException(status_code=404, detail="Bookmark not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
