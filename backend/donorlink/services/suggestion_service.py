"""Volunteer suggestions: advisory donor matches that never change state."""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from donorlink.config import settings
from donorlink.errors import Forbidden, InvalidState, NotEligible, NotFound
from donorlink.models.activity_log import ActionType
from donorlink.models.donation_request import RequestStatus
from donorlink.models.user import UserRole
from donorlink.services import audit_service, eligibility, notification_service, request_store, user_directory

logger = logging.getLogger(__name__)


def suggest_donor(
    db: Session,
    volunteer_id: str,
    request_id: str,
    donor_id: str,
    note: Optional[str] = None,
    now: Optional[datetime] = None,
) -> None:
    """Record that ``volunteer_id`` thinks ``donor_id`` fits ``request_id``.

    The insert is conditional on the request still being pending, so a
    donor who accepts first wins and the suggestion is refused. Volunteers
    never block each other. The suggested donor and the requester are notified;
    the donor still has to accept the request themselves.
    """
    now = now or datetime.now(timezone.utc)
    request = request_store.get_request(db, request_id, include_inactive=True)
    if not request:
        raise NotFound(f"Donation request {request_id} not found")
    volunteer = user_directory.get_user(db, volunteer_id)
    if not volunteer.is_staff:
        raise Forbidden("Only volunteers and admins can suggest donors")
    if not request.is_active or request.status != RequestStatus.pending:
        status = "deleted" if not request.is_active else request.status.value
        raise InvalidState(f"Cannot suggest a donor for a {status} donation request")

    donor = user_directory.get_user(db, donor_id)
    if donor.role != UserRole.donor:
        raise NotEligible("user is not a donor", rule="not_a_donor")
    result = eligibility.check_eligibility(
        donor, request, now, rest_days=settings.DONATION_REST_DAYS, tz_name=settings.SERVICE_TIMEZONE,
    )
    if not result.eligible:
        raise NotEligible(result.reason, rule=result.rule.value)

    note = (note or "").strip() or None
    try:
        if not request_store.append_suggestion(db, request.request_id, volunteer.user_id, donor.user_id, now, note):
            db.rollback()
            logger.warning("Suggestion for request %s dropped: no longer pending", request_id)
            raise InvalidState("Donation request is no longer pending; re-read and retry")
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    logger.info("Volunteer %s suggested donor %s for request %s", volunteer.user_id, donor.user_id, request_id)

    notification_service.notify_suggestion(db, request, volunteer, donor, note)
    audit_service.record(
        db,
        actor_id=volunteer.user_id,
        action="Suggested Donor for Donation",
        action_type=ActionType.update,
        request=request,
        description=f"Suggested donor {donor.name} for donation request",
        details=f"Donor: {donor.name} ({donor.blood_group}), Note: {note or 'No note'}",
        from_status=RequestStatus.pending.value,
        to_status=RequestStatus.pending.value,
    )
