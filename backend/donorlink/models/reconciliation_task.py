"""ReconciliationTask ORM model: failed side effects awaiting replay."""
import uuid
import enum
from sqlalchemy import Column, String, Text, DateTime, Integer, Boolean, JSON, Enum as SAEnum
from sqlalchemy.sql import func
from donorlink.database import Base


class TaskKind(str, enum.Enum):
    notification = "notification"
    audit = "audit"
    donor_stats = "donor_stats"


class ReconciliationTask(Base):
    __tablename__ = "reconciliation_tasks"

    task_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    kind = Column(SAEnum(TaskKind), nullable=False)
    payload = Column(JSON, nullable=False)
    error = Column(Text, nullable=True)
    attempts = Column(Integer, nullable=False, default=1)
    resolved = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    resolved_at = Column(DateTime(timezone=True), nullable=True)
