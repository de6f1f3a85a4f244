from sqlalchemy import Boolean, Column, ForeignKey, Integer, String
from freshstock.core.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    username = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True)

    # "owner" | "manager" | "viewer"
    role = Column(String, nullable=False, default="viewer")

    password_hash = Column(String, nullable=False)

    # current tenant; notifications fan out to active users of a business
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
