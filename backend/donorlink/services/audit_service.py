"""Audit recorder: one activity-log entry per engine mutation.

Writes are best-effort. The state change they describe is already committed,
so a failed audit write is logged and queued for replay rather than undone.
"""
import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from donorlink.models.activity_log import ActionType, ActivityLog
from donorlink.models.donation_request import DonationRequest, RequestStatus
from donorlink.models.reconciliation_task import TaskKind
from donorlink.schemas.transition import TransitionEvent
from donorlink.services import outbox

logger = logging.getLogger(__name__)


def record(
    db: Session,
    actor_id: str,
    action: str,
    action_type: ActionType,
    request: DonationRequest,
    description: str,
    details: Optional[str] = None,
    from_status: Optional[str] = None,
    to_status: Optional[str] = None,
) -> Optional[ActivityLog]:
    entry: dict[str, Any] = {
        "actor_id": actor_id,
        "action": action,
        "action_type": action_type.value,
        "entity_id": request.request_id,
        "entity_name": request.recipient_name,
        "description": description,
        "details": details,
        "from_status": from_status,
        "to_status": to_status,
        "status": "success",
    }
    try:
        log = outbox.add_activity(db, entry)
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.exception("Audit write failed for request %s (%s)", entry["entity_id"], action)
        outbox.record_failure(db, TaskKind.audit, entry, exc)
        return None
    return log


def _transition_action(event: TransitionEvent) -> tuple[str, ActionType]:
    if event.from_status is None:
        return "Created Donation Request", ActionType.create
    if event.from_status == RequestStatus.pending.value and event.to_status == RequestStatus.inprogress.value:
        return "Accepted Donation Request", ActionType.update
    return "Updated Donation Status", ActionType.update


def record_transition(
    db: Session,
    event: TransitionEvent,
    request: DonationRequest,
    action: Optional[str] = None,
    action_type: Optional[ActionType] = None,
) -> Optional[ActivityLog]:
    """Audit a transition event; ``action``/``action_type`` override the defaults."""
    default_action, default_type = _transition_action(event)
    action = action or default_action
    action_type = action_type or default_type

    recipient = request.recipient_name
    if event.from_status is None:
        description = f"Created donation request for {recipient}"
        details = f"Blood Group: {request.blood_group}, Hospital: {request.hospital_name}, Date: {request.donation_date}"
    elif action_type == ActionType.delete:
        description = f"Deleted donation request for {recipient}"
        details = f"Status was: {event.from_status}"
    else:
        description = f"Changed status from {event.from_status} to {event.to_status} for {recipient}"
        details = f"Reason: {event.note}" if event.note else None

    return record(
        db,
        actor_id=event.actor_id,
        action=action,
        action_type=action_type,
        request=request,
        description=description,
        details=details,
        from_status=event.from_status,
        to_status=event.to_status,
    )
