"""User API routes: minimal account surface the engine reads from."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from donorlink.database import get_db
from donorlink.models.donation_request import BLOOD_GROUPS
from donorlink.models.user import User, UserRole, AccountStatus
from donorlink.schemas.user import UserCreate, UserUpdate, UserOut
from donorlink.services.eligibility import COMPATIBLE_DONOR_GROUPS

logger = logging.getLogger(__name__)
router = APIRouter()


def _clean_fields(fields: dict) -> dict:
    """Coerce enum-backed fields, rejecting unknown values with a 400."""
    if fields.get("role") is not None:
        try:
            fields["role"] = UserRole(fields["role"])
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid role: {fields['role']}")
    if fields.get("status") is not None:
        try:
            fields["status"] = AccountStatus(fields["status"])
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid account status: {fields['status']}")
    if fields.get("blood_group") is not None:
        fields["blood_group"] = fields["blood_group"].strip().upper()
        if fields["blood_group"] not in BLOOD_GROUPS:
            raise HTTPException(status_code=400, detail=f"Invalid blood group: {fields['blood_group']}")
    return fields


@router.post("/", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_user(payload: UserCreate, db: Session = Depends(get_db)):
    """Create a user with their donor profile."""
    user = User(**_clean_fields(payload.model_dump()))
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Email already registered")
    db.refresh(user)
    logger.info("Created user %s (%s, %s)", user.user_id, user.name, user.role.value)
    return user


@router.get("/", response_model=list[UserOut])
def list_users(
    role: Optional[str] = None,
    blood_group: Optional[str] = None,
    district: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """List users, optionally narrowed by role, blood group and district."""
    query = db.query(User)
    filters = _clean_fields({"role": role, "blood_group": blood_group})
    if filters["role"] is not None:
        query = query.filter(User.role == filters["role"])
    if filters["blood_group"] is not None:
        query = query.filter(User.blood_group == filters["blood_group"])
    if district:
        query = query.filter(User.district == district)
    return query.order_by(User.created_at, User.user_id).all()


@router.get("/{user_id}", response_model=UserOut)
def get_user(user_id: str, db: Session = Depends(get_db)):
    """Fetch a single user by ID."""
    user = db.query(User).filter(User.user_id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.patch("/{user_id}", response_model=UserOut)
def update_user(user_id: str, payload: UserUpdate, db: Session = Depends(get_db)):
    """Update profile, availability or account status (partial update)."""
    user = db.query(User).filter(User.user_id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    for field, value in _clean_fields(payload.model_dump(exclude_unset=True)).items():
        setattr(user, field, value)
    db.commit()
    db.refresh(user)
    logger.info("Updated user %s", user_id)
    return user


@router.get("/{user_id}/compatibility")
def get_compatibility(user_id: str, db: Session = Depends(get_db)):
    """Informational blood compatibility chart for the user's profile page.

    Request matching does not use this; it requires an exact group match.
    """
    user = db.query(User).filter(User.user_id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if not user.blood_group:
        return {"blood_group": None, "can_receive_from": [], "can_donate_to": []}
    donate_to = [
        recipient for recipient, donors in COMPATIBLE_DONOR_GROUPS.items() if user.blood_group in donors
    ]
    return {
        "blood_group": user.blood_group,
        "can_receive_from": list(COMPATIBLE_DONOR_GROUPS[user.blood_group]),
        "can_donate_to": donate_to,
    }
