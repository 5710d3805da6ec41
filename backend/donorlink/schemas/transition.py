"""Transition event: emitted after every committed state change."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class TransitionEvent(BaseModel):
    request_id: str
    from_status: Optional[str] = None  # None for creation
    to_status: str
    actor_id: str
    timestamp: datetime
    note: Optional[str] = None
    # Donor bound when the transition happened. A cancel or revert clears the
    # request's donor, so the event is the only place the old binding survives
    # and replayed notifications are built from it.
    donor_id: Optional[str] = None
    donor_name: Optional[str] = None
    donor_email: Optional[str] = None
    donor_phone: Optional[str] = None
