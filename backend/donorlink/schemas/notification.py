"""Notification drafts and their closed set of payload variants.

Each event type the fan-out table knows about has exactly one payload model;
``NotificationPayload`` is the tagged union over them, discriminated on
``kind``.
"""
from typing import Annotated, Literal, Optional, Union
from pydantic import BaseModel, Field


class RequestCreatedPayload(BaseModel):
    kind: Literal["created"] = "created"
    request_id: str
    blood_group: str
    urgency: str
    hospital: str
    location: str


class RequestAcceptedPayload(BaseModel):
    kind: Literal["accepted"] = "accepted"
    request_id: str
    donor_id: str
    donor_name: str
    donor_email: str
    donor_phone: Optional[str] = None


class RequestCompletedPayload(BaseModel):
    kind: Literal["completed"] = "completed"
    request_id: str
    recipient_role: Literal["requester", "donor"]
    completed_by: str


class RequestCancelledPayload(BaseModel):
    kind: Literal["cancelled"] = "cancelled"
    request_id: str
    cancelled_by: str
    reason: Optional[str] = None


class DonorSuggestedPayload(BaseModel):
    kind: Literal["suggested"] = "suggested"
    request_id: str
    volunteer_id: str
    volunteer_name: str
    donor_id: str
    donor_name: str
    note: Optional[str] = None


NotificationPayload = Annotated[
    Union[
        RequestCreatedPayload,
        RequestAcceptedPayload,
        RequestCompletedPayload,
        RequestCancelledPayload,
        DonorSuggestedPayload,
    ],
    Field(discriminator="kind"),
]


class NotificationDraft(BaseModel):
    """What the orchestrator hands to the notification sink."""

    recipient_id: str
    title: str
    message: str
    category: str = "donation"
    priority: str = "medium"
    action_ref: Optional[str] = None
    payload: NotificationPayload
