from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, func
from freshstock.core.database import Base

MOVEMENT_ACTIONS = (
    "product_create",
    "product_update",
    "product_delete",
    "restock",
    "manual_reorder",
    "bulk_reorder",
    "delivery",
)


class StockMovement(Base):
    """One row per stock-affecting change. Name and SKU are copied so history survives edits."""

    __tablename__ = "stock_movements"

    __table_args__ = (
        Index("ix_stock_movements_business_created", "business_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    action = Column(String, nullable=False)  # one of MOVEMENT_ACTIONS

    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False, index=True)
    product_id = Column(Integer, nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=True)

    sku = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)

    prev_quantity = Column(Integer, nullable=False, default=0)
    new_quantity = Column(Integer, nullable=False, default=0)
    delta = Column(Integer, nullable=False, default=0)

    # display name of the user, or "system" for scheduled jobs
    actor = Column(String, nullable=False, default="system")

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
