"""Ops route for replaying failed side effects."""
import logging
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from donorlink.database import get_db
from donorlink.services import reconciliation_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/replay")
def replay_reconciliation(limit: int = Query(100, ge=1, le=1000), db: Session = Depends(get_db)):
    """Retry queued notification, audit and donor-counter writes."""
    resolved = reconciliation_service.replay_pending(db, limit=limit)
    logger.info("Reconciliation replay resolved %d task(s)", resolved)
    return {"resolved": resolved}
