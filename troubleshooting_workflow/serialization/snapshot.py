"""
Snapshot Serializer - Workflow Export / Import

Exports the current steps, analytics and metadata as one versioned JSON
document, and parses such documents back into a step list. An import is
destructive by contract: the caller replaces its whole step list with the
result, it never merges with existing progress.

Import failures come in two kinds so callers can tell the user which one
happened: MalformedDocumentError (the text is not parseable at all) and
InvalidSchemaError (it parses, but is not a workflow snapshot).
"""

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ..config import settings
from ..exceptions import InvalidSchemaError, MalformedDocumentError
from ..schemas.analytics import AnalyticsSnapshot
from ..schemas.snapshot import (
    SnapshotDocument,
    SnapshotMetadata,
    SnapshotProgress,
    SnapshotWorkflow,
)
from ..state.models import WorkflowStep, utcnow

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

REQUIRED_STEP_FIELDS = ("id", "title", "status")


@dataclass
class ImportedSnapshot:
    """
    Result of a successful import.

    `analytics` and `progress` are hints: present only when the document
    carried a well-formed value for them.
    """

    steps: List[WorkflowStep]
    analytics: Optional[AnalyticsSnapshot] = None
    progress: Optional[SnapshotProgress] = None
    version: Optional[str] = None


def export_snapshot(
    steps: Sequence[WorkflowStep],
    analytics: AnalyticsSnapshot,
    exported_by: str = settings.SNAPSHOT_EXPORTED_BY,
    progress: Optional[SnapshotProgress] = None,
    version: str = settings.SNAPSHOT_VERSION,
    now: Optional[datetime] = None,
) -> SnapshotDocument:
    steps = [s.model_copy(deep=True) for s in steps]
    return SnapshotDocument(
        version=version,
        timestamp=now or utcnow(),
        workflow=SnapshotWorkflow(
            steps=steps,
            analytics=analytics,
            metadata=SnapshotMetadata(
                total_steps=len(steps),
                completed_steps=sum(1 for s in steps if s.status == "completed"),
                exported_by=exported_by,
            ),
        ),
        progress=progress,
    )


def dump_snapshot(document: SnapshotDocument) -> str:
    """Serializes a document to indented camelCase JSON."""
    return document.model_dump_json(by_alias=True, exclude_none=True, indent=2)


def _is_supported_version(version: Any) -> bool:
    return str(version).split(".")[0] == settings.SNAPSHOT_VERSION.split(".")[0]


def _optional_hint(model: Type[T], raw: Any, label: str) -> Optional[T]:
    if raw is None:
        return None
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        logger.warning(f"Ignoring unreadable {label} in imported snapshot: {e.error_count()} errors")
        return None


def _parse_step(position: int, raw: Any) -> WorkflowStep:
    if not isinstance(raw, dict):
        raise InvalidSchemaError(f"Invalid workflow format: step {position} is not an object")

    missing = [f for f in REQUIRED_STEP_FIELDS if f not in raw]
    if missing:
        raise InvalidSchemaError(
            f"Invalid workflow format: step {position} is missing {', '.join(missing)}"
        )

    try:
        return WorkflowStep.model_validate(raw)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise InvalidSchemaError(
            f"Invalid workflow format: step {position} field '{location}': {first['msg']}"
        ) from e


def import_snapshot(raw_text: str) -> ImportedSnapshot:
    """
    Parses an exported document.

    Raises:
        MalformedDocumentError: `raw_text` is not JSON.
        InvalidSchemaError: the JSON lacks workflow.steps, a step lacks
            id/title/status or carries an unknown status, step ids repeat,
            more than one step is active, or the version is unsupported.
    """
    try:
        data = json.loads(raw_text)
    except (TypeError, ValueError, RecursionError) as e:
        raise MalformedDocumentError("Invalid JSON format") from e

    if not isinstance(data, dict):
        raise InvalidSchemaError("Invalid workflow format: expected a JSON object")

    version = data.get("version")
    if version is not None and not _is_supported_version(version):
        raise InvalidSchemaError(f"Unsupported workflow version '{version}'")

    workflow = data.get("workflow")
    if not isinstance(workflow, dict):
        raise InvalidSchemaError("Invalid workflow format: missing workflow data")

    raw_steps = workflow.get("steps")
    if not isinstance(raw_steps, list):
        raise InvalidSchemaError("Invalid workflow format: missing steps")
    if not raw_steps:
        raise InvalidSchemaError("Invalid workflow format: workflow has no steps")

    steps = [_parse_step(position, raw) for position, raw in enumerate(raw_steps)]

    ids = [s.id for s in steps]
    if len(set(ids)) != len(ids):
        raise InvalidSchemaError("Invalid workflow format: duplicate step ids")

    if sum(1 for s in steps if s.status == "active") > 1:
        raise InvalidSchemaError("Invalid workflow format: more than one active step")

    logger.info(f"Parsed snapshot with {len(steps)} steps (version {version})")
    return ImportedSnapshot(
        steps=steps,
        analytics=_optional_hint(AnalyticsSnapshot, workflow.get("analytics"), "analytics"),
        progress=_optional_hint(SnapshotProgress, data.get("progress"), "progress"),
        version=str(version) if version is not None else None,
    )


# ==============================================================================
# Share Tokens
# ==============================================================================

def encode_share_token(document: SnapshotDocument) -> str:
    """URL-safe base64 of the document's JSON, for share links."""
    return base64.urlsafe_b64encode(dump_snapshot(document).encode("utf-8")).decode("ascii")


def decode_share_token(token: str) -> ImportedSnapshot:
    try:
        raw_text = base64.urlsafe_b64decode(token.encode("ascii")).decode("utf-8")
    except (binascii.Error, ValueError) as e:
        raise MalformedDocumentError("Invalid share token") from e
    return import_snapshot(raw_text)
