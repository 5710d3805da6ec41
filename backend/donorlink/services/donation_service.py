"""Donation request engine: the state machine and its guarded transitions.

    pending ──accept──▶ inprogress ──▶ done
       │                    │
       └──────▶ canceled ◀──┘          (inprogress ──revert──▶ pending, staff only)

Every mutation follows the same shape:

1. validate input and load the actors (no writes yet)
2. check the actor's relationship to the request (``Forbidden``)
3. check the state guard (``InvalidTransition`` / ``AlreadyClaimed`` / ...)
4. one conditional UPDATE carrying the observed state, plus a history row,
   committed together; a zero rowcount means the observed state was stale
5. hand a ``TransitionEvent`` to notification fan-out and the audit recorder,
   both best-effort

If step 4 fails nothing else runs. Failures in step 5 never reach the caller.
"""
import logging
import re
from datetime import date, datetime, timezone
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from donorlink.config import settings
from donorlink.errors import (
    AlreadyClaimed,
    Expired,
    Forbidden,
    InvalidState,
    InvalidTransition,
    NotEligible,
    NotFound,
    ValidationError,
)
from donorlink.models.activity_log import ActionType
from donorlink.models.donation_request import (
    BLOOD_GROUPS,
    DONOR_BOUND_STATUSES,
    DonationRequest,
    RequestStatus,
    Urgency,
)
from donorlink.models.reconciliation_task import TaskKind
from donorlink.models.user import User, UserRole, AccountStatus
from donorlink.schemas.transition import TransitionEvent
from donorlink.services import audit_service, eligibility, notification_service, outbox, request_store, user_directory
from donorlink.services.eligibility import Rule

logger = logging.getLogger(__name__)

TIME_PATTERN = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")

# target -> statuses it may be reached from (inprogress goes through _bind_donor)
ALLOWED_FROM = {
    RequestStatus.done: (RequestStatus.inprogress,),
    RequestStatus.canceled: (RequestStatus.pending, RequestStatus.inprogress),
    RequestStatus.pending: (RequestStatus.inprogress,),
}

DEFAULT_NOTES = {
    RequestStatus.done: "Marked as completed",
    RequestStatus.canceled: "Cancelled by user",
    RequestStatus.pending: "Reverted to pending",
}

EDITABLE_FIELDS = (
    "recipient_name", "recipient_district", "recipient_sub_district", "hospital_name", "hospital_address",
    "blood_group", "donation_date", "donation_time", "request_message", "urgency", "units_required",
    "contact_name", "contact_phone", "contact_relationship",
)


def _now(now: Optional[datetime] = None) -> datetime:
    return now or datetime.now(timezone.utc)


def _required_text(field: str, value: Any, max_length: int, min_length: int = 1) -> str:
    text = (value or "").strip()
    if len(text) < min_length:
        if min_length == 1:
            raise ValidationError(f"{field} is required")
        raise ValidationError(f"{field} must be at least {min_length} characters")
    if len(text) > max_length:
        raise ValidationError(f"{field} cannot exceed {max_length} characters")
    return text


def _validate_details(values: dict[str, Any], today: date) -> dict[str, Any]:
    """Normalise and check whichever request fields are present in ``values``."""
    clean: dict[str, Any] = {}
    for field in ("recipient_district", "recipient_sub_district"):
        if field in values:
            clean[field] = _required_text(field, values[field], 100)
    if "recipient_name" in values:
        clean["recipient_name"] = _required_text("recipient_name", values["recipient_name"], 100, min_length=2)
    if "hospital_name" in values:
        clean["hospital_name"] = _required_text("hospital_name", values["hospital_name"], 200)
    if "hospital_address" in values:
        clean["hospital_address"] = _required_text("hospital_address", values["hospital_address"], 500)

    if "blood_group" in values:
        group = (values["blood_group"] or "").strip().upper()
        if group not in BLOOD_GROUPS:
            raise ValidationError(f"Invalid blood group {values['blood_group']!r}. Valid: {', '.join(BLOOD_GROUPS)}")
        clean["blood_group"] = group

    if "donation_date" in values:
        if values["donation_date"] is None or values["donation_date"] < today:
            raise ValidationError("Donation date cannot be in the past")
        clean["donation_date"] = values["donation_date"]

    if "donation_time" in values:
        match = TIME_PATTERN.match((values["donation_time"] or "").strip())
        if not match:
            raise ValidationError("Please enter a valid time (HH:MM)")
        clean["donation_time"] = f"{int(match.group(1)):02d}:{match.group(2)}"

    if "request_message" in values:
        clean["request_message"] = _required_text(
            "request_message", values["request_message"], 1000, min_length=settings.MIN_REQUEST_MESSAGE_LENGTH,
        )

    if "urgency" in values:
        try:
            clean["urgency"] = Urgency(values["urgency"])
        except ValueError:
            raise ValidationError(f"Invalid urgency {values['urgency']!r}") from None

    if "units_required" in values:
        units = values["units_required"]
        if units is None or not 1 <= units <= 10:
            raise ValidationError("units_required must be between 1 and 10")
        clean["units_required"] = units

    for field in ("contact_name", "contact_phone", "contact_relationship"):
        if field in values:
            clean[field] = (values[field] or "").strip() or None
    return clean


def _load(db: Session, request_id: str) -> DonationRequest:
    request = request_store.get_request(db, request_id, include_inactive=True)
    if not request:
        raise NotFound(f"Donation request {request_id} not found")
    return request


def _parse_status(value: str) -> RequestStatus:
    try:
        return RequestStatus(value)
    except ValueError:
        valid = ", ".join(s.value for s in RequestStatus)
        raise ValidationError(f"Invalid status {value!r}. Valid statuses: {valid}") from None


def _emit(
    db: Session,
    event: TransitionEvent,
    request: DonationRequest,
    audit_action: Optional[str] = None,
    audit_type: Optional[ActionType] = None,
) -> None:
    notification_service.fan_out(db, event, request)
    audit_service.record_transition(db, event, request, action=audit_action, action_type=audit_type)


def _status_value(status) -> str:
    return getattr(status, "value", status)


# ---------------------------------------------------------------------------
# create / read / edit
# ---------------------------------------------------------------------------

def create_request(
    db: Session,
    requester_id: str,
    recipient_name: str,
    recipient_district: str,
    recipient_sub_district: str,
    hospital_name: str,
    hospital_address: str,
    blood_group: str,
    donation_date: date,
    donation_time: str,
    request_message: str,
    urgency: str = "medium",
    units_required: int = 1,
    contact_name: Optional[str] = None,
    contact_phone: Optional[str] = None,
    contact_relationship: Optional[str] = None,
    now: Optional[datetime] = None,
) -> DonationRequest:
    """Open a new pending request and announce it to staff and area donors."""
    now = _now(now)
    fields = _validate_details(
        {
            "recipient_name": recipient_name,
            "recipient_district": recipient_district,
            "recipient_sub_district": recipient_sub_district,
            "hospital_name": hospital_name,
            "hospital_address": hospital_address,
            "blood_group": blood_group,
            "donation_date": donation_date,
            "donation_time": donation_time,
            "request_message": request_message,
            "urgency": urgency,
            "units_required": units_required,
            "contact_name": contact_name,
            "contact_phone": contact_phone,
            "contact_relationship": contact_relationship,
        },
        today=eligibility.local_today(now, settings.SERVICE_TIMEZONE),
    )

    requester = user_directory.get_user(db, requester_id)
    if requester.status == AccountStatus.blocked:
        raise Forbidden("Your account is blocked. Cannot create donation requests.")

    request = DonationRequest(
        requester_id=requester.user_id,
        requester_name=requester.name,
        requester_email=requester.email,
        **fields,
    )
    try:
        request_store.add_request(db, request, requester.user_id, now, note="Request created")
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(request)
    logger.info(
        "Created donation request %s (%s at %s) by %s",
        request.request_id, request.blood_group, request.hospital_name, requester.user_id,
    )

    event = TransitionEvent(
        request_id=request.request_id,
        from_status=None,
        to_status=RequestStatus.pending.value,
        actor_id=requester.user_id,
        timestamp=now,
        note="Request created",
    )
    _emit(db, event, request)
    return request


def get_request(db: Session, request_id: str) -> DonationRequest:
    """Fetch an active request; soft-deleted ones are invisible."""
    request = request_store.get_request(db, request_id)
    if not request:
        raise NotFound(f"Donation request {request_id} not found")
    return request


def update_request(
    db: Session,
    actor_id: str,
    request_id: str,
    changes: dict[str, Any],
    now: Optional[datetime] = None,
) -> DonationRequest:
    """Edit the details of a pending request (requester or admin)."""
    now = _now(now)
    request = _load(db, request_id)
    actor = user_directory.get_user(db, actor_id)
    if actor.role != UserRole.admin and actor.user_id != request.requester_id:
        raise Forbidden("Not authorized to update this donation request")

    edits = {key: value for key, value in changes.items() if key in EDITABLE_FIELDS}
    if not edits:
        raise ValidationError("No editable fields supplied")
    clean = _validate_details(edits, today=eligibility.local_today(now, settings.SERVICE_TIMEZONE))

    if not request.is_active or request.status != RequestStatus.pending:
        raise InvalidState(f"Cannot update donation request with status: {_status_value(request.status)}")

    try:
        if not request_store.update_details(db, request.request_id, clean, now):
            db.rollback()
            raise InvalidState("Donation request is no longer pending; re-read and retry")
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(request)
    logger.info("Updated donation request %s fields %s", request_id, sorted(clean))

    audit_service.record(
        db,
        actor_id=actor.user_id,
        action="Updated Donation Request",
        action_type=ActionType.update,
        request=request,
        description=f"Updated donation request for {request.recipient_name}",
        details=f"Updated fields: {', '.join(sorted(clean))}",
    )
    return request


# ---------------------------------------------------------------------------
# acceptance (the one real race)
# ---------------------------------------------------------------------------

def _not_pending_error(request: DonationRequest):
    if not request.is_active:
        return InvalidTransition("Donation request has been deleted")
    if request.status in DONOR_BOUND_STATUSES:
        return AlreadyClaimed(f"This donation request is already {_status_value(request.status)}")
    return InvalidTransition(f"This donation request is already {_status_value(request.status)}")


def _apply_donor_stats(db: Session, request_id: str) -> None:
    """Credit the winning donor; a failure here never undoes the claim."""
    try:
        request_store.apply_donor_stats(db, request_id)
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.exception("Donor counter update failed for request %s", request_id)
        outbox.record_failure(db, TaskKind.donor_stats, {"request_id": request_id}, exc)


def _bind_donor(db: Session, request: DonationRequest, donor: User, actor: User, now: datetime, note: str):
    result = eligibility.check_eligibility(
        donor, request, now, rest_days=settings.DONATION_REST_DAYS, tz_name=settings.SERVICE_TIMEZONE,
    )
    if not result.eligible:
        if result.rule == Rule.request_expired:
            raise Expired("This donation request has expired")
        if result.rule == Rule.request_not_pending:
            raise _not_pending_error(request)
        raise NotEligible(result.reason, rule=result.rule.value)

    try:
        if not request_store.claim(db, request.request_id, donor, now):
            db.rollback()
            logger.warning("Donor %s lost the race for request %s", donor.user_id, request.request_id)
            raise AlreadyClaimed("This donation request has already been accepted by another donor")
        request_store.append_history(db, request.request_id, RequestStatus.inprogress, actor.user_id, now, note)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    logger.info("Request %s accepted by donor %s", request.request_id, donor.user_id)

    _apply_donor_stats(db, request.request_id)
    db.refresh(request)

    event = TransitionEvent(
        request_id=request.request_id,
        from_status=RequestStatus.pending.value,
        to_status=RequestStatus.inprogress.value,
        actor_id=actor.user_id,
        timestamp=now,
        note=note,
        donor_id=donor.user_id,
        donor_name=donor.name,
        donor_email=donor.email,
        donor_phone=donor.phone,
    )
    _emit(db, event, request)
    return request


def accept_request(db: Session, donor_id: str, request_id: str, now: Optional[datetime] = None) -> DonationRequest:
    """A donor claims a pending request. At most one concurrent caller wins."""
    now = _now(now)
    request = _load(db, request_id)
    donor = user_directory.get_user(db, donor_id)
    if donor.role != UserRole.donor:
        raise Forbidden("Only donors can accept donation requests")
    return _bind_donor(db, request, donor, donor, now, note=f"Accepted by donor: {donor.name}")


# ---------------------------------------------------------------------------
# other transitions
# ---------------------------------------------------------------------------

def _authorize(request: DonationRequest, actor: User, target: RequestStatus) -> None:
    if actor.is_staff:
        return
    if target == RequestStatus.done and actor.user_id == request.donor_id and request.donor_id:
        return
    if target == RequestStatus.canceled and actor.user_id in (request.requester_id, request.donor_id):
        return
    raise Forbidden("Not authorized to update status")


def _check_guard(request: DonationRequest, target: RequestStatus) -> None:
    if not request.is_active:
        raise InvalidTransition("Donation request has been deleted")
    if request.status not in ALLOWED_FROM[target]:
        raise InvalidTransition(
            f"Cannot move request from {_status_value(request.status)} to {target.value}"
        )
    if target == RequestStatus.done and not request.donor_id:
        raise InvalidTransition("Cannot complete a request with no bound donor")


def _transition(
    db: Session,
    request: DonationRequest,
    actor: User,
    target: RequestStatus,
    note: str,
    now: datetime,
    deactivate: bool = False,
    audit_action: Optional[str] = None,
    audit_type: Optional[ActionType] = None,
) -> DonationRequest:
    from_status = request.status
    bound_donor = request.donor_id
    bound_donor_name = request.donor_name
    bound_donor_email = request.donor_email
    try:
        if target == RequestStatus.pending and bound_donor:
            # revert undoes a mistaken binding, including the donor's credit
            request_store.revoke_donor_stats(db, request.request_id, bound_donor)
        changed = request_store.compare_and_set_status(
            db,
            request.request_id,
            expected_status=from_status,
            expected_donor_id=bound_donor,
            new_status=target,
            at=now,
            clear_donor=target in (RequestStatus.pending, RequestStatus.canceled),
            deactivate=deactivate,
        )
        if not changed:
            db.rollback()
            logger.warning(
                "Stale transition on request %s: %s -> %s by %s",
                request.request_id, from_status.value, target.value, actor.user_id,
            )
            raise InvalidTransition("Donation request changed concurrently; re-read and retry")
        request_store.append_history(db, request.request_id, target, actor.user_id, now, note)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(request)
    logger.info("Request %s moved %s -> %s by %s", request.request_id, from_status.value, target.value, actor.user_id)

    event = TransitionEvent(
        request_id=request.request_id,
        from_status=from_status.value,
        to_status=target.value,
        actor_id=actor.user_id,
        timestamp=now,
        note=note,
        donor_id=bound_donor,
        donor_name=bound_donor_name,
        donor_email=bound_donor_email,
    )
    _emit(db, event, request, audit_action=audit_action, audit_type=audit_type)
    return request


def change_status(
    db: Session,
    actor_id: str,
    request_id: str,
    target_status: str,
    note: Optional[str] = None,
    donor_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> DonationRequest:
    """Move a request to ``target_status`` if the actor and current state allow it.

    Moving to inprogress is always an acceptance: a donor accepts for
    themselves, staff must name the donor they are binding.
    """
    now = _now(now)
    target = _parse_status(target_status)
    request = _load(db, request_id)
    actor = user_directory.get_user(db, actor_id)

    if target == RequestStatus.inprogress:
        if actor.is_staff:
            if not donor_id:
                raise ValidationError("donor_id is required to move a request to inprogress")
            donor = user_directory.get_user(db, donor_id)
            if donor.role != UserRole.donor:
                raise NotEligible("user is not a donor", rule="not_a_donor")
            return _bind_donor(
                db, request, donor, actor, now, note=note or f"Assigned to donor {donor.name} by {actor.name}",
            )
        if actor.role == UserRole.donor and donor_id in (None, actor.user_id):
            return accept_request(db, actor.user_id, request_id, now=now)
        raise Forbidden("Not authorized to update status")

    _authorize(request, actor, target)
    _check_guard(request, target)
    return _transition(db, request, actor, target, note or DEFAULT_NOTES[target], now)


def cancel_request(
    db: Session,
    actor_id: str,
    request_id: str,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> DonationRequest:
    return change_status(db, actor_id, request_id, RequestStatus.canceled.value, note=reason, now=now)


def delete_request(
    db: Session,
    actor_id: str,
    request_id: str,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> DonationRequest:
    """Soft-delete a request. Open requests are cancelled on the way out."""
    now = _now(now)
    request = _load(db, request_id)
    actor = user_directory.get_user(db, actor_id)
    _authorize(request, actor, RequestStatus.canceled)
    if not request.is_active:
        raise InvalidTransition("Donation request has already been deleted")

    if request.status in ALLOWED_FROM[RequestStatus.canceled]:
        return _transition(
            db, request, actor, RequestStatus.canceled, reason or "Request deleted", now,
            deactivate=True, audit_action="Deleted Donation Request", audit_type=ActionType.delete,
        )

    try:
        if not request_store.deactivate(db, request.request_id, now):
            db.rollback()
            raise InvalidTransition("Donation request has already been deleted")
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(request)
    logger.info("Soft-deleted %s request %s by %s", request.status.value, request_id, actor.user_id)

    audit_service.record(
        db,
        actor_id=actor.user_id,
        action="Deleted Donation Request",
        action_type=ActionType.delete,
        request=request,
        description=f"Deleted donation request for {request.recipient_name}",
        details=f"Status was: {request.status.value}",
        from_status=request.status.value,
        to_status=request.status.value,
    )
    return request


# ---------------------------------------------------------------------------
# matching
# ---------------------------------------------------------------------------

def find_candidate_donors(
    db: Session, request_id: str, limit: int = 20, now: Optional[datetime] = None,
) -> list[User]:
    """Eligible area donors not yet suggested for this request."""
    now = _now(now)
    request = get_request(db, request_id)
    excluded = request_store.suggested_donor_ids(db, request_id) | {request.requester_id}
    candidates = []
    for donor in user_directory.area_donors(db, request.blood_group, request.recipient_district):
        if donor.user_id in excluded:
            continue
        result = eligibility.check_eligibility(
            donor, request, now, rest_days=settings.DONATION_REST_DAYS, tz_name=settings.SERVICE_TIMEZONE,
        )
        if result.eligible:
            candidates.append(donor)
        if len(candidates) >= limit:
            break
    return candidates
