"""DonationRequest aggregate and its append-only child rows."""
import uuid
import enum
from sqlalchemy import (
    Column, String, Text, Date, DateTime, Integer, Boolean, ForeignKey, Enum as SAEnum,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from donorlink.database import Base


BLOOD_GROUPS = ("A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-")


class RequestStatus(str, enum.Enum):
    pending = "pending"
    inprogress = "inprogress"
    done = "done"
    canceled = "canceled"


class Urgency(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


TERMINAL_STATUSES = (RequestStatus.done, RequestStatus.canceled)
DONOR_BOUND_STATUSES = (RequestStatus.inprogress, RequestStatus.done)


class DonationRequest(Base):
    __tablename__ = "donation_requests"

    request_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    requester_id = Column(String(36), ForeignKey("users.user_id"), nullable=False)
    requester_name = Column(String(100), nullable=False)
    requester_email = Column(String(255), nullable=False)

    recipient_name = Column(String(100), nullable=False)
    recipient_district = Column(String(100), nullable=False)
    recipient_sub_district = Column(String(100), nullable=False)
    hospital_name = Column(String(200), nullable=False)
    hospital_address = Column(String(500), nullable=False)

    blood_group = Column(String(3), nullable=False)
    donation_date = Column(Date, nullable=False)
    donation_time = Column(String(5), nullable=False)  # HH:MM, service time zone
    request_message = Column(Text, nullable=False)
    urgency = Column(SAEnum(Urgency), nullable=False, default=Urgency.medium)
    units_required = Column(Integer, nullable=False, default=1)

    contact_name = Column(String(100), nullable=True)
    contact_phone = Column(String(30), nullable=True)
    contact_relationship = Column(String(50), nullable=True)

    donor_id = Column(String(36), ForeignKey("users.user_id"), nullable=True)
    donor_name = Column(String(100), nullable=True)
    donor_email = Column(String(255), nullable=True)

    status = Column(SAEnum(RequestStatus), nullable=False, default=RequestStatus.pending)
    is_active = Column(Boolean, nullable=False, default=True)
    donor_stats_applied = Column(Boolean, nullable=False, default=False)
    donor_prior_donation_date = Column(Date, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    status_history = relationship(
        "StatusHistoryEntry",
        back_populates="request",
        order_by="StatusHistoryEntry.entry_id",
        cascade="all, delete-orphan",
    )
    volunteer_suggestions = relationship(
        "VolunteerSuggestion",
        back_populates="request",
        order_by="VolunteerSuggestion.suggestion_id",
        cascade="all, delete-orphan",
    )

    @property
    def recipient_location(self) -> str:
        return f"{self.recipient_sub_district}, {self.recipient_district}"


class StatusHistoryEntry(Base):
    __tablename__ = "request_status_history"

    entry_id = Column(Integer, primary_key=True, autoincrement=True)
    request_id = Column(String(36), ForeignKey("donation_requests.request_id"), nullable=False, index=True)
    status = Column(SAEnum(RequestStatus), nullable=False)
    changed_by = Column(String(36), ForeignKey("users.user_id"), nullable=True)
    changed_at = Column(DateTime(timezone=True), nullable=False)
    note = Column(String(1000), nullable=True)

    request = relationship("DonationRequest", back_populates="status_history")


class VolunteerSuggestion(Base):
    __tablename__ = "volunteer_suggestions"

    suggestion_id = Column(Integer, primary_key=True, autoincrement=True)
    request_id = Column(String(36), ForeignKey("donation_requests.request_id"), nullable=False, index=True)
    volunteer_id = Column(String(36), ForeignKey("users.user_id"), nullable=False)
    donor_id = Column(String(36), ForeignKey("users.user_id"), nullable=False)
    suggested_at = Column(DateTime(timezone=True), nullable=False)
    note = Column(String(1000), nullable=True)

    request = relationship("DonationRequest", back_populates="volunteer_suggestions")
