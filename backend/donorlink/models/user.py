"""User ORM model: donor-relevant projection of an account."""
import uuid
import enum
from sqlalchemy import Column, String, Boolean, Date, DateTime, Integer, Enum as SAEnum
from sqlalchemy.sql import func
from donorlink.database import Base


class UserRole(str, enum.Enum):
    donor = "donor"
    volunteer = "volunteer"
    admin = "admin"


class AccountStatus(str, enum.Enum):
    active = "active"
    blocked = "blocked"


STAFF_ROLES = (UserRole.admin, UserRole.volunteer)


class User(Base):
    __tablename__ = "users"

    user_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    phone = Column(String(30), nullable=True)
    role = Column(SAEnum(UserRole), nullable=False, default=UserRole.donor)
    blood_group = Column(String(3), nullable=True)
    district = Column(String(100), nullable=True)
    sub_district = Column(String(100), nullable=True)
    status = Column(SAEnum(AccountStatus), nullable=False, default=AccountStatus.active)
    is_available = Column(Boolean, nullable=False, default=True)
    last_donation_date = Column(Date, nullable=True)
    total_donations = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES
