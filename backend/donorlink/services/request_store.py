"""Request store: persistence for donation requests and their history.

Every status change goes through a single conditional UPDATE whose WHERE
clause carries the state the caller observed. A rowcount of zero means
somebody else got there first; callers decide which domain error that is.
None of these functions commit.
"""
import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import DateTime, String, insert, literal, select, update
from sqlalchemy.orm import Session

from donorlink.models.donation_request import (
    DonationRequest,
    RequestStatus,
    StatusHistoryEntry,
    VolunteerSuggestion,
)
from donorlink.models.user import User
from donorlink.services import user_directory

logger = logging.getLogger(__name__)


def get_request(db: Session, request_id: str, include_inactive: bool = False) -> Optional[DonationRequest]:
    query = db.query(DonationRequest).filter(DonationRequest.request_id == request_id)
    if not include_inactive:
        query = query.filter(DonationRequest.is_active.is_(True))
    return query.first()


def add_request(db: Session, request: DonationRequest, actor_id: str, at: datetime, note: str) -> DonationRequest:
    """Insert a new pending request together with its first history entry."""
    request.status = RequestStatus.pending
    request.is_active = True
    request.created_at = at
    request.updated_at = at
    db.add(request)
    db.flush()
    append_history(db, request.request_id, RequestStatus.pending, actor_id, at, note)
    return request


def append_history(
    db: Session,
    request_id: str,
    status: RequestStatus,
    actor_id: Optional[str],
    at: datetime,
    note: Optional[str] = None,
) -> StatusHistoryEntry:
    entry = StatusHistoryEntry(
        request_id=request_id,
        status=status,
        changed_by=actor_id,
        changed_at=at,
        note=note,
    )
    db.add(entry)
    return entry


def claim(db: Session, request_id: str, donor: User, at: datetime) -> bool:
    """Compare-and-swap pending/unbound → inprogress/bound to ``donor``.

    One UPDATE statement, so at most one concurrent caller can win.
    """
    result = db.execute(
        update(DonationRequest)
        .where(
            DonationRequest.request_id == request_id,
            DonationRequest.status == RequestStatus.pending,
            DonationRequest.donor_id.is_(None),
            DonationRequest.is_active.is_(True),
        )
        .values(
            status=RequestStatus.inprogress,
            donor_id=donor.user_id,
            donor_name=donor.name,
            donor_email=donor.email,
            donor_stats_applied=False,
            updated_at=at,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def compare_and_set_status(
    db: Session,
    request_id: str,
    expected_status: RequestStatus,
    expected_donor_id: Optional[str],
    new_status: RequestStatus,
    at: datetime,
    clear_donor: bool = False,
    deactivate: bool = False,
) -> bool:
    """Move an active request from ``expected_status`` to ``new_status``.

    The observed donor is part of the guard so a request that went
    inprogress → pending → inprogress under a different donor is not
    mistaken for the one the caller saw.
    """
    conditions = [
        DonationRequest.request_id == request_id,
        DonationRequest.status == expected_status,
        DonationRequest.is_active.is_(True),
    ]
    if expected_donor_id is None:
        conditions.append(DonationRequest.donor_id.is_(None))
    else:
        conditions.append(DonationRequest.donor_id == expected_donor_id)

    values: dict[str, Any] = {"status": new_status, "updated_at": at}
    if clear_donor:
        values.update(donor_id=None, donor_name=None, donor_email=None)
    if deactivate:
        values["is_active"] = False

    result = db.execute(
        update(DonationRequest)
        .where(*conditions)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def update_details(db: Session, request_id: str, changes: dict[str, Any], at: datetime) -> bool:
    """Apply field edits, only while the request is still pending and active."""
    result = db.execute(
        update(DonationRequest)
        .where(
            DonationRequest.request_id == request_id,
            DonationRequest.status == RequestStatus.pending,
            DonationRequest.is_active.is_(True),
        )
        .values(updated_at=at, **changes)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def deactivate(db: Session, request_id: str, at: datetime) -> bool:
    result = db.execute(
        update(DonationRequest)
        .where(DonationRequest.request_id == request_id, DonationRequest.is_active.is_(True))
        .values(is_active=False, updated_at=at)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def append_suggestion(
    db: Session,
    request_id: str,
    volunteer_id: str,
    donor_id: str,
    at: datetime,
    note: Optional[str] = None,
) -> bool:
    """Insert a suggestion only if the request is still pending and active.

    INSERT ... SELECT from the request row, so the guard and the write are
    one statement. Never modifies the request itself.
    """
    source = select(
        DonationRequest.request_id,
        literal(volunteer_id, String),
        literal(donor_id, String),
        literal(at, DateTime(timezone=True)),
        literal(note, String),
    ).where(
        DonationRequest.request_id == request_id,
        DonationRequest.status == RequestStatus.pending,
        DonationRequest.is_active.is_(True),
    )
    result = db.execute(
        insert(VolunteerSuggestion).from_select(
            ["request_id", "volunteer_id", "donor_id", "suggested_at", "note"], source,
        )
    )
    return result.rowcount == 1


def suggested_donor_ids(db: Session, request_id: str) -> set[str]:
    rows = db.query(VolunteerSuggestion.donor_id).filter(VolunteerSuggestion.request_id == request_id).all()
    return {row.donor_id for row in rows}


def apply_donor_stats(db: Session, request_id: str) -> bool:
    """Credit the bound donor with this donation, at most once per claim.

    The ``donor_stats_applied`` flag flips in the same transaction as the
    counter update, so replaying this after a failure cannot double count.
    The donor's previous last-donation date is kept on the request so a
    revert can restore it.
    """
    row = db.execute(
        select(DonationRequest.donor_id, DonationRequest.donation_date).where(
            DonationRequest.request_id == request_id,
            DonationRequest.donor_id.isnot(None),
            DonationRequest.donor_stats_applied.is_(False),
        )
    ).first()
    if row is None:
        return False

    previous = select(User.last_donation_date).where(User.user_id == row.donor_id).scalar_subquery()
    flagged = db.execute(
        update(DonationRequest)
        .where(
            DonationRequest.request_id == request_id,
            DonationRequest.donor_id == row.donor_id,
            DonationRequest.donor_stats_applied.is_(False),
        )
        .values(donor_stats_applied=True, donor_prior_donation_date=previous)
        .execution_options(synchronize_session=False)
    )
    if flagged.rowcount != 1:
        return False

    user_directory.record_donation(db, row.donor_id, row.donation_date)
    return True


def revoke_donor_stats(db: Session, request_id: str, donor_id: str) -> bool:
    """Take back the credit ``apply_donor_stats`` gave ``donor_id`` (caller commits).

    A no-op when the credit was never applied, e.g. its replay task is
    still pending; that task then finds no bound donor and does nothing.
    """
    row = db.execute(
        select(DonationRequest.donation_date, DonationRequest.donor_prior_donation_date).where(
            DonationRequest.request_id == request_id,
            DonationRequest.donor_id == donor_id,
            DonationRequest.donor_stats_applied.is_(True),
        )
    ).first()
    if row is None:
        return False

    flagged = db.execute(
        update(DonationRequest)
        .where(
            DonationRequest.request_id == request_id,
            DonationRequest.donor_id == donor_id,
            DonationRequest.status == RequestStatus.inprogress,
            DonationRequest.is_active.is_(True),
            DonationRequest.donor_stats_applied.is_(True),
        )
        .values(donor_stats_applied=False, donor_prior_donation_date=None)
        .execution_options(synchronize_session=False)
    )
    if flagged.rowcount != 1:
        return False

    user_directory.unrecord_donation(db, donor_id, row.donation_date, row.donor_prior_donation_date)
    return True
