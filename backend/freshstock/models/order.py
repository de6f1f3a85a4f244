import random
import time
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
    select,
)
from sqlalchemy.orm import Session, object_session, relationship

from freshstock.core.database import Base

ORDER_STATUSES = ("pending", "confirmed", "processing", "shipped", "delivered", "cancelled")
# no edits, no status changes once reached
TERMINAL_STATUSES = ("delivered", "cancelled")
ORDER_TYPES = ("automatic", "manual")
PAYMENT_STATUSES = ("pending", "processing", "completed", "failed", "refunded")
ORDER_NUMBER_ATTEMPTS = 5


def generate_order_number() -> str:
    timestamp = str(int(time.time() * 1000))
    return f"ORD-{timestamp[-6:]}-{random.randint(0, 999):03d}"


class Order(Base):
    __tablename__ = "orders"

    __table_args__ = (
        UniqueConstraint("business_id", "order_number", name="uq_orders_business_order_number"),
        Index("ix_orders_business", "business_id"),
        Index("ix_orders_status", "status"),
        Index("ix_orders_order_type", "order_type"),
        Index("ix_orders_created_at", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False)

    order_number = Column(String, nullable=False)

    # recomputed from items on every flush
    total_amount = Column(Float, nullable=False, default=0.0)

    status = Column(String, nullable=False, default="pending")
    order_type = Column(String, nullable=False, default="manual")
    payment_status = Column(String, nullable=False, default="pending")
    payment_date = Column(DateTime, nullable=True)

    # supplier snapshot at order time
    supplier_name = Column(String, nullable=True)
    supplier_email = Column(String, nullable=True)
    supplier_phone = Column(String, nullable=True)

    expected_delivery_date = Column(DateTime, nullable=True)
    actual_delivery_date = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)

    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )

    def recalculate_total(self) -> float:
        self.total_amount = sum(item.total_price for item in self.items)
        return self.total_amount


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)

    # weak reference: products are soft-deleted, never cascaded
    product_id = Column(Integer, nullable=False, index=True)

    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)
    total_price = Column(Float, nullable=False)

    order = relationship("Order", back_populates="items")


@event.listens_for(Order, "before_insert")
def _assign_order_number(mapper, connection, target):
    if target.order_number:
        return

    # numbers already handed to other orders in this flush are not in the table yet
    session = object_session(target)
    pending = set()
    if session is not None:
        pending = {o.order_number for o in session.new if isinstance(o, Order) and o is not target}

    for _ in range(ORDER_NUMBER_ATTEMPTS):
        number = generate_order_number()
        if number in pending:
            continue
        taken = connection.execute(
            select(Order.id).where(Order.business_id == target.business_id, Order.order_number == number)
        ).first()
        if taken is None:
            break
    target.order_number = number


@event.listens_for(Session, "before_flush")
def _sync_order_totals(session, flush_context, instances):
    orders = set()
    for obj in list(session.new) + list(session.dirty):
        if isinstance(obj, Order):
            orders.add(obj)
        elif isinstance(obj, OrderItem) and obj.order is not None:
            orders.add(obj.order)

    for order in orders:
        order.recalculate_total()
