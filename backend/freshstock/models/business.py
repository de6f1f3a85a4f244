from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint

from freshstock.core.database import Base

BUSINESS_TYPES = ("grocery", "restaurant", "retail", "pharmacy", "other")
ROLES = ("owner", "manager", "viewer")


class Business(Base):
    __tablename__ = "businesses"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    business_type = Column(String, nullable=False, default="grocery")

    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)


class BusinessMember(Base):
    """A user's access to a business. `User.business_id` picks the current one."""

    __tablename__ = "business_members"

    __table_args__ = (
        UniqueConstraint("business_id", "user_id", name="uq_business_members_business_user"),
    )

    id = Column(Integer, primary_key=True, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    role = Column(String, nullable=False, default="viewer")  # one of ROLES

    created_at = Column(DateTime, default=datetime.utcnow)
