"""Pydantic schemas for DonationRequests.

Field rules (blood group set, message length, date not in the past) are
enforced in ``donation_service`` so the engine rejects bad input the same way
whether it is called over HTTP or directly.
"""
from __future__ import annotations
from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel


class DonationRequestCreate(BaseModel):
    requester_id: str
    recipient_name: str
    recipient_district: str
    recipient_sub_district: str
    hospital_name: str
    hospital_address: str
    blood_group: str
    donation_date: date
    donation_time: str
    request_message: str
    urgency: str = "medium"
    units_required: int = 1
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_relationship: Optional[str] = None


class DonationRequestUpdate(BaseModel):
    recipient_name: Optional[str] = None
    recipient_district: Optional[str] = None
    recipient_sub_district: Optional[str] = None
    hospital_name: Optional[str] = None
    hospital_address: Optional[str] = None
    blood_group: Optional[str] = None
    donation_date: Optional[date] = None
    donation_time: Optional[str] = None
    request_message: Optional[str] = None
    urgency: Optional[str] = None
    units_required: Optional[int] = None
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_relationship: Optional[str] = None


class AcceptRequest(BaseModel):
    donor_id: str


class StatusChangeRequest(BaseModel):
    actor_id: str
    status: str
    note: Optional[str] = None
    donor_id: Optional[str] = None  # required when staff move a request to inprogress


class CancelRequest(BaseModel):
    actor_id: str
    reason: Optional[str] = None


class SuggestionCreate(BaseModel):
    volunteer_id: str
    donor_id: str
    note: Optional[str] = None


class StatusHistoryOut(BaseModel):
    status: str
    changed_by: Optional[str] = None
    changed_at: datetime
    note: Optional[str] = None

    model_config = {"from_attributes": True}


class SuggestionOut(BaseModel):
    volunteer_id: str
    donor_id: str
    suggested_at: datetime
    note: Optional[str] = None

    model_config = {"from_attributes": True}


class DonationRequestOut(BaseModel):
    request_id: str
    requester_id: str
    requester_name: str
    requester_email: str
    recipient_name: str
    recipient_district: str
    recipient_sub_district: str
    hospital_name: str
    hospital_address: str
    blood_group: str
    donation_date: date
    donation_time: str
    request_message: str
    urgency: str
    units_required: int
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_relationship: Optional[str] = None
    donor_id: Optional[str] = None
    donor_name: Optional[str] = None
    donor_email: Optional[str] = None
    status: str
    is_active: bool
    created_at: datetime
    updated_at: datetime
    status_history: list[StatusHistoryOut] = []
    volunteer_suggestions: list[SuggestionOut] = []

    model_config = {"from_attributes": True}
