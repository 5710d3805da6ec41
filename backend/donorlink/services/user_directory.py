"""User directory: lookups the engine needs, plus the one donor-profile write."""
import logging
from datetime import date
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from donorlink.errors import NotFound
from donorlink.models.user import User, UserRole, AccountStatus, STAFF_ROLES

logger = logging.getLogger(__name__)


def find_user(db: Session, user_id: Optional[str]) -> Optional[User]:
    if not user_id:
        return None
    return db.query(User).filter(User.user_id == user_id).first()


def get_user(db: Session, user_id: str) -> User:
    user = find_user(db, user_id)
    if not user:
        raise NotFound(f"User {user_id} not found")
    return user


def active_staff_ids(db: Session) -> list[str]:
    """Admins and volunteers whose accounts are not blocked."""
    rows = (
        db.query(User.user_id)
        .filter(User.role.in_(STAFF_ROLES), User.status == AccountStatus.active)
        .order_by(User.created_at, User.user_id)
        .all()
    )
    return [row.user_id for row in rows]


def area_donors(db: Session, blood_group: str, district: str) -> list[User]:
    """Active, available donors of exactly ``blood_group`` living in ``district``."""
    return (
        db.query(User)
        .filter(
            User.role == UserRole.donor,
            User.status == AccountStatus.active,
            User.is_available.is_(True),
            User.blood_group == blood_group,
            User.district == district,
        )
        .order_by(User.created_at, User.user_id)
        .all()
    )


def record_donation(db: Session, donor_id: str, donation_date: date) -> None:
    """Stamp the donor's last donation date and bump their counter (caller commits)."""
    db.execute(
        update(User)
        .where(User.user_id == donor_id)
        .values(last_donation_date=donation_date, total_donations=User.total_donations + 1)
        .execution_options(synchronize_session=False)
    )
    logger.info("Recorded donation on %s for donor %s", donation_date, donor_id)


def unrecord_donation(db: Session, donor_id: str, donation_date: date, previous_date: Optional[date]) -> None:
    """Undo ``record_donation`` (caller commits).

    The last donation date is only restored if nothing newer has been
    recorded since.
    """
    db.execute(
        update(User)
        .where(User.user_id == donor_id, User.total_donations > 0)
        .values(total_donations=User.total_donations - 1)
        .execution_options(synchronize_session=False)
    )
    db.execute(
        update(User)
        .where(User.user_id == donor_id, User.last_donation_date == donation_date)
        .values(last_donation_date=previous_date)
        .execution_options(synchronize_session=False)
    )
    logger.info("Reverted donation on %s for donor %s", donation_date, donor_id)
