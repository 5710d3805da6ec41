"""Replay of side effects that failed after their transition committed.

Nothing in the engine schedules this; an external job (cron, the ops
endpoint) calls ``replay_pending``.
"""
import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from donorlink.models.reconciliation_task import ReconciliationTask, TaskKind
from donorlink.schemas.notification import NotificationDraft
from donorlink.schemas.transition import TransitionEvent
from donorlink.services import notification_service, outbox, request_store

logger = logging.getLogger(__name__)


def _replay(db: Session, task: ReconciliationTask) -> None:
    """Stage the side effect described by ``task``; the caller commits."""
    payload = task.payload
    if task.kind == TaskKind.notification:
        if "drafts" in payload:
            drafts = [NotificationDraft.model_validate(d) for d in payload["drafts"]]
        else:
            event = TransitionEvent.model_validate(payload["event"])
            request = request_store.get_request(db, event.request_id, include_inactive=True)
            if request is None:
                raise LookupError(f"Request {event.request_id} no longer exists")
            drafts = notification_service.drafts_for_event(db, event, request)
        outbox.add_notifications(db, drafts)
    elif task.kind == TaskKind.audit:
        outbox.add_activity(db, payload)
    elif task.kind == TaskKind.donor_stats:
        request_store.apply_donor_stats(db, payload["request_id"])
    else:
        raise ValueError(f"Unknown reconciliation task kind {task.kind!r}")


def replay_pending(db: Session, limit: int = 100) -> int:
    """Retry unresolved tasks oldest first; returns how many were resolved."""
    tasks = (
        db.query(ReconciliationTask)
        .filter(ReconciliationTask.resolved.is_(False))
        .order_by(ReconciliationTask.created_at)
        .limit(limit)
        .all()
    )
    task_ids = [task.task_id for task in tasks]

    resolved = 0
    for task_id in task_ids:
        task = db.get(ReconciliationTask, task_id)
        try:
            _replay(db, task)
            task.resolved = True
            task.resolved_at = datetime.now(timezone.utc)
            db.commit()
        except Exception as exc:
            db.rollback()
            task = db.get(ReconciliationTask, task_id)
            task.attempts += 1
            task.error = repr(exc)
            db.commit()
            logger.warning("Replay of %s task %s failed (attempt %d): %r", task.kind.value, task_id, task.attempts, exc)
            continue
        resolved += 1
        logger.info("Replayed %s task %s", task.kind.value, task_id)
    return resolved
