"""Notification fan-out: who hears about each transition, and what they read.

| event              | recipients                                          |
|--------------------|-----------------------------------------------------|
| created            | active staff + matching area donors (batched)       |
| → inprogress       | requester, with donor contact details               |
| → done             | requester and bound donor, distinct copy per role   |
| → canceled         | requester and the donor bound before cancellation   |
| suggestion added   | suggested donor and requester                       |

Dispatch never raises into the caller: a failed batch is rolled back, logged
and queued for replay, and the transition that triggered it stands.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from donorlink.config import settings
from donorlink.models.donation_request import DonationRequest, RequestStatus, Urgency
from donorlink.models.reconciliation_task import TaskKind
from donorlink.models.user import User
from donorlink.schemas.notification import (
    NotificationDraft,
    RequestCreatedPayload,
    RequestAcceptedPayload,
    RequestCompletedPayload,
    RequestCancelledPayload,
    DonorSuggestedPayload,
)
from donorlink.schemas.transition import TransitionEvent
from donorlink.services import outbox, user_directory

logger = logging.getLogger(__name__)


def _action_ref(request: DonationRequest) -> str:
    return f"/donation-requests/{request.request_id}"


def _created_drafts(db: Session, request: DonationRequest) -> list[NotificationDraft]:
    critical = request.urgency == Urgency.critical
    urgency = getattr(request.urgency, "value", request.urgency)
    payload = RequestCreatedPayload(
        request_id=request.request_id,
        blood_group=request.blood_group,
        urgency=urgency,
        hospital=request.hospital_name,
        location=request.recipient_location,
    )

    drafts = []
    notified = {request.requester_id}
    for staff_id in user_directory.active_staff_ids(db):
        if staff_id in notified:
            continue
        notified.add(staff_id)
        drafts.append(NotificationDraft(
            recipient_id=staff_id,
            title="New Donation Request",
            message=(
                f"New blood donation request for {request.blood_group} at {request.hospital_name}. "
                f"Patient: {request.recipient_name}"
            ),
            priority="high" if critical else "medium",
            action_ref=_action_ref(request),
            payload=payload,
        ))

    for donor in user_directory.area_donors(db, request.blood_group, request.recipient_district):
        if donor.user_id in notified:
            continue
        notified.add(donor.user_id)
        drafts.append(NotificationDraft(
            recipient_id=donor.user_id,
            title="Urgent: Blood Donation Needed",
            message=(
                f"A patient with {request.blood_group} blood needs your help at {request.hospital_name}. "
                f"Location: {request.recipient_location}"
            ),
            priority="critical" if critical else "high",
            action_ref=_action_ref(request),
            payload=payload,
        ))
    return drafts


def _accepted_draft(event: TransitionEvent, request: DonationRequest) -> NotificationDraft:
    # donor details come from the event; by replay time the request may be bound to someone else
    contact = event.donor_email + (f", {event.donor_phone}" if event.donor_phone else "")
    return NotificationDraft(
        recipient_id=request.requester_id,
        title="Donation Request Accepted",
        message=(
            f"{event.donor_name} has accepted your donation request for {request.recipient_name}. "
            f"Contact: {contact}. Please reach out to coordinate."
        ),
        priority="high",
        action_ref=_action_ref(request),
        payload=RequestAcceptedPayload(
            request_id=request.request_id,
            donor_id=event.donor_id,
            donor_name=event.donor_name,
            donor_email=event.donor_email,
            donor_phone=event.donor_phone,
        ),
    )


def _completed_drafts(event: TransitionEvent, request: DonationRequest) -> list[NotificationDraft]:
    drafts = [NotificationDraft(
        recipient_id=request.requester_id,
        title="Donation Completed Successfully",
        message=(
            f"The blood donation for {request.recipient_name} has been completed successfully. "
            "Thank you for using our platform!"
        ),
        action_ref=_action_ref(request),
        payload=RequestCompletedPayload(
            request_id=request.request_id, recipient_role="requester", completed_by=event.actor_id,
        ),
    )]
    if event.donor_id:
        drafts.append(NotificationDraft(
            recipient_id=event.donor_id,
            title="Thank You for Your Donation!",
            message=(
                f"You have successfully donated blood for {request.recipient_name}. "
                "Your contribution saves lives!"
            ),
            action_ref="/dashboard",
            payload=RequestCompletedPayload(
                request_id=request.request_id, recipient_role="donor", completed_by=event.actor_id,
            ),
        ))
    return drafts


def _cancelled_drafts(event: TransitionEvent, request: DonationRequest) -> list[NotificationDraft]:
    reason = event.note or "Not specified"
    payload = RequestCancelledPayload(
        request_id=request.request_id, cancelled_by=event.actor_id, reason=event.note,
    )
    drafts = [NotificationDraft(
        recipient_id=request.requester_id,
        title="Donation Request Cancelled",
        message=f"The donation request for {request.recipient_name} has been cancelled. Reason: {reason}",
        action_ref="/dashboard",
        payload=payload,
    )]
    if event.donor_id and event.donor_id != request.requester_id:
        drafts.append(NotificationDraft(
            recipient_id=event.donor_id,
            title="Donation Request Cancelled",
            message=f"The donation request you accepted has been cancelled. Reason: {reason}",
            action_ref="/dashboard",
            payload=payload,
        ))
    return drafts


def drafts_for_event(db: Session, event: TransitionEvent, request: DonationRequest) -> list[NotificationDraft]:
    """Resolve recipients and copy for a transition event."""
    if event.from_status is None:
        return _created_drafts(db, request)
    if event.to_status == RequestStatus.inprogress.value:
        return [_accepted_draft(event, request)]
    if event.to_status == RequestStatus.done.value:
        return _completed_drafts(event, request)
    if event.to_status == RequestStatus.canceled.value:
        return _cancelled_drafts(event, request)
    # revert to pending notifies nobody
    return []


def suggestion_drafts(
    request: DonationRequest, volunteer: User, donor: User, note: Optional[str] = None,
) -> list[NotificationDraft]:
    payload = DonorSuggestedPayload(
        request_id=request.request_id,
        volunteer_id=volunteer.user_id,
        volunteer_name=volunteer.name,
        donor_id=donor.user_id,
        donor_name=donor.name,
        note=note,
    )
    suffix = f" Note: {note}" if note else ""
    return [
        NotificationDraft(
            recipient_id=donor.user_id,
            title="You Have Been Suggested as a Donor",
            message=(
                f"Volunteer {volunteer.name} thinks you could help with a request for {request.blood_group} "
                f"blood at {request.hospital_name}. Patient: {request.recipient_name}. "
                f"Have a look and accept it if you can.{suffix}"
            ),
            action_ref=_action_ref(request),
            payload=payload,
        ),
        NotificationDraft(
            recipient_id=request.requester_id,
            title="Potential Donor Found",
            message=(
                f"Volunteer {volunteer.name} has found a potential donor ({donor.name}) for your request. "
                "The donor has been notified."
            ),
            action_ref=_action_ref(request),
            payload=payload,
        ),
    ]


def dispatch(db: Session, drafts: list[NotificationDraft], batch_size: Optional[int] = None) -> int:
    """Write drafts in bounded batches; returns how many were written."""
    batch_size = batch_size or settings.NOTIFICATION_BATCH_SIZE
    written = 0
    for start in range(0, len(drafts), batch_size):
        batch = drafts[start:start + batch_size]
        try:
            outbox.add_notifications(db, batch)
            db.commit()
        except Exception as exc:
            db.rollback()
            logger.exception("Notification batch of %d failed", len(batch))
            outbox.record_failure(
                db, TaskKind.notification, {"drafts": [d.model_dump(mode="json") for d in batch]}, exc,
            )
            continue
        written += len(batch)
    return written


def fan_out(db: Session, event: TransitionEvent, request: DonationRequest) -> int:
    """Compute recipients for ``event`` and dispatch; never raises."""
    try:
        drafts = drafts_for_event(db, event, request)
    except Exception as exc:
        db.rollback()
        logger.exception("Could not resolve recipients for request %s", event.request_id)
        outbox.record_failure(db, TaskKind.notification, {"event": event.model_dump(mode="json")}, exc)
        return 0
    written = dispatch(db, drafts)
    logger.info(
        "Fan-out for request %s (%s -> %s): %d/%d notifications written",
        event.request_id, event.from_status, event.to_status, written, len(drafts),
    )
    return written


def notify_suggestion(
    db: Session, request: DonationRequest, volunteer: User, donor: User, note: Optional[str] = None,
) -> int:
    return dispatch(db, suggestion_drafts(request, volunteer, donor, note))
