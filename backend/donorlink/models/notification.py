"""Notification ORM model: storage behind the notification sink."""
import uuid
import enum
from sqlalchemy import Column, String, DateTime, JSON, Enum as SAEnum
from sqlalchemy.sql import func
from donorlink.database import Base


class Priority(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


class Notification(Base):
    __tablename__ = "notifications"

    notification_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    recipient_id = Column(String(36), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    message = Column(String(1000), nullable=False)
    category = Column(String(30), nullable=False, default="donation")
    priority = Column(SAEnum(Priority), nullable=False, default=Priority.medium)
    action_ref = Column(String(255), nullable=True)
    kind = Column(String(20), nullable=False)
    data = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
