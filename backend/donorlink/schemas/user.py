"""Pydantic schemas for Users."""
from __future__ import annotations
from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel


class UserCreate(BaseModel):
    name: str
    email: str
    phone: Optional[str] = None
    role: str = "donor"
    blood_group: Optional[str] = None
    district: Optional[str] = None
    sub_district: Optional[str] = None
    is_available: bool = True
    last_donation_date: Optional[date] = None


class UserUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None
    blood_group: Optional[str] = None
    district: Optional[str] = None
    sub_district: Optional[str] = None
    status: Optional[str] = None
    is_available: Optional[bool] = None
    last_donation_date: Optional[date] = None


class UserOut(BaseModel):
    user_id: str
    name: str
    email: str
    phone: Optional[str] = None
    role: str
    blood_group: Optional[str] = None
    district: Optional[str] = None
    sub_district: Optional[str] = None
    status: str
    is_available: bool
    last_donation_date: Optional[date] = None
    total_donations: int
    created_at: datetime

    model_config = {"from_attributes": True}
