from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text, func
from freshstock.core.database import Base

NOTIFICATION_TYPES = (
    "low_stock",
    "out_of_stock",
    "payment_pending",
    "payment_success",
    "system_alert",
    "order_placed",
    "order_delivered",
)
PRIORITIES = ("low", "medium", "high", "urgent")


class Notification(Base):
    __tablename__ = "notifications"

    __table_args__ = (
        Index("ix_notifications_recipient_read", "recipient_id", "is_read"),
    )

    id = Column(Integer, primary_key=True, index=True)

    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=True, index=True)
    recipient_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String, nullable=False)  # one of NOTIFICATION_TYPES
    priority = Column(String, nullable=False, default="medium")

    # ids/amounts of the entity that triggered it
    data = Column(JSON, nullable=False, default=dict)

    is_read = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
