"""Donation request API routes: delegates to the engine services."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from donorlink.database import get_db
from donorlink.schemas.donation_request import (
    AcceptRequest,
    CancelRequest,
    DonationRequestCreate,
    DonationRequestOut,
    DonationRequestUpdate,
    StatusChangeRequest,
    SuggestionCreate,
)
from donorlink.schemas.user import UserOut
from donorlink.services import donation_service, suggestion_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=DonationRequestOut, status_code=status.HTTP_201_CREATED)
def create_donation_request(payload: DonationRequestCreate, db: Session = Depends(get_db)):
    """Open a new blood request and notify staff and matching donors."""
    return donation_service.create_request(db=db, **payload.model_dump())


@router.get("/{request_id}", response_model=DonationRequestOut)
def get_donation_request(request_id: str, db: Session = Depends(get_db)):
    """Fetch a single request with its status history and suggestions."""
    return donation_service.get_request(db, request_id)


@router.put("/{request_id}", response_model=DonationRequestOut)
def update_donation_request(
    request_id: str,
    payload: DonationRequestUpdate,
    actor_id: str = Query(..., description="ID of the user performing the update"),
    db: Session = Depends(get_db),
):
    """Edit a pending request (requester or admin)."""
    return donation_service.update_request(
        db=db,
        actor_id=actor_id,
        request_id=request_id,
        changes=payload.model_dump(exclude_unset=True),
    )


@router.delete("/{request_id}", response_model=DonationRequestOut)
def delete_donation_request(
    request_id: str,
    actor_id: str = Query(..., description="ID of the user deleting the request"),
    reason: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    """Soft-delete a request; open requests are cancelled first."""
    return donation_service.delete_request(db=db, actor_id=actor_id, request_id=request_id, reason=reason)


@router.post("/{request_id}/accept", response_model=DonationRequestOut)
def accept_donation_request(request_id: str, payload: AcceptRequest, db: Session = Depends(get_db)):
    """A donor claims the request. Losing a concurrent race returns 409."""
    return donation_service.accept_request(db=db, donor_id=payload.donor_id, request_id=request_id)


@router.patch("/{request_id}/status", response_model=DonationRequestOut)
def change_donation_status(request_id: str, payload: StatusChangeRequest, db: Session = Depends(get_db)):
    return donation_service.change_status(
        db=db,
        actor_id=payload.actor_id,
        request_id=request_id,
        target_status=payload.status,
        note=payload.note,
        donor_id=payload.donor_id,
    )


@router.post("/{request_id}/cancel", response_model=DonationRequestOut)
def cancel_donation_request(request_id: str, payload: CancelRequest, db: Session = Depends(get_db)):
    return donation_service.cancel_request(
        db=db, actor_id=payload.actor_id, request_id=request_id, reason=payload.reason,
    )


@router.post("/{request_id}/suggestions", status_code=status.HTTP_204_NO_CONTENT)
def suggest_donor(request_id: str, payload: SuggestionCreate, db: Session = Depends(get_db)):
    """Volunteer suggests a donor; request state is untouched."""
    suggestion_service.suggest_donor(
        db=db,
        volunteer_id=payload.volunteer_id,
        request_id=request_id,
        donor_id=payload.donor_id,
        note=payload.note,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{request_id}/candidates", response_model=list[UserOut])
def list_candidate_donors(
    request_id: str,
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """Eligible area donors who have not been suggested for this request yet."""
    return donation_service.find_candidate_donors(db, request_id, limit=limit)
