"""Collaborator sinks and the failure log for side effects.

``add_notifications`` / ``add_activity`` stage rows for the notification and
activity-log collaborators; callers own the commit. ``record_failure`` keeps a
durable note of a side effect that could not be written so
``reconciliation_service.replay_pending`` can try it again later.
"""
import logging
from typing import Any, Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from donorlink.models.activity_log import ActivityLog
from donorlink.models.notification import Notification
from donorlink.models.reconciliation_task import ReconciliationTask, TaskKind
from donorlink.schemas.notification import NotificationDraft

logger = logging.getLogger(__name__)


def add_notifications(db: Session, drafts: Iterable[NotificationDraft]) -> int:
    rows = [
        Notification(
            recipient_id=draft.recipient_id,
            title=draft.title,
            message=draft.message,
            category=draft.category,
            priority=draft.priority,
            action_ref=draft.action_ref,
            kind=draft.payload.kind,
            data=draft.payload.model_dump(mode="json"),
        )
        for draft in drafts
    ]
    db.add_all(rows)
    return len(rows)


def add_activity(db: Session, entry: dict[str, Any]) -> ActivityLog:
    log = ActivityLog(**entry)
    db.add(log)
    return log


def record_failure(db: Session, kind: TaskKind, payload: dict[str, Any], exc: BaseException) -> None:
    """Persist a reconciliation task; if even that fails, the log line is all we have."""
    try:
        db.add(ReconciliationTask(kind=kind, payload=payload, error=repr(exc)))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Could not record %s reconciliation task, payload=%s", kind.value, payload)
        return
    logger.warning("Queued %s side effect for replay: %r", kind.value, exc)
