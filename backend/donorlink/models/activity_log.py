"""ActivityLog ORM model: audit trail of engine mutations."""
import uuid
import enum
from sqlalchemy import Column, String, DateTime, Enum as SAEnum
from sqlalchemy.sql import func
from donorlink.database import Base


class ActionType(str, enum.Enum):
    create = "create"
    update = "update"
    delete = "delete"


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    log_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    actor_id = Column(String(36), nullable=False, index=True)
    action = Column(String(100), nullable=False)
    action_type = Column(SAEnum(ActionType), nullable=False)
    category = Column(String(30), nullable=False, default="donation")
    entity_type = Column(String(50), nullable=False, default="donation_request")
    entity_id = Column(String(36), nullable=False, index=True)
    entity_name = Column(String(100), nullable=True)
    description = Column(String(500), nullable=False)
    details = Column(String(1000), nullable=True)
    from_status = Column(String(20), nullable=True)
    to_status = Column(String(20), nullable=True)
    status = Column(String(20), nullable=False, default="success")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
