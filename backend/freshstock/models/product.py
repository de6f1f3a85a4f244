from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import validates
from datetime import datetime
from freshstock.core.database import Base

CATEGORIES = (
    "fruits",
    "vegetables",
    "dairy",
    "meat",
    "seafood",
    "bakery",
    "pantry",
    "beverages",
    "snacks",
    "canned",
    "frozen",
    "other",
)

UNITS = ("kg", "g", "lb", "oz", "liter", "ml", "piece", "box", "pack", "bag", "bottle", "dozen")


class Product(Base):
    __tablename__ = "products"

    __table_args__ = (
        # SAFETY CONSTRAINTS
        CheckConstraint("current_stock >= 0", name="ck_current_stock_non_negative"),
        CheckConstraint("min_stock_level >= 0", name="ck_min_stock_non_negative"),
        CheckConstraint("max_stock_level >= 0", name="ck_max_stock_non_negative"),
        CheckConstraint("cost_price >= 0", name="ck_cost_price_non_negative"),
        CheckConstraint("selling_price >= 0", name="ck_selling_price_non_negative"),
        CheckConstraint("reorder_quantity >= 1", name="ck_reorder_quantity_positive"),

        # per-tenant identity (NULL barcodes never collide)
        UniqueConstraint("business_id", "sku", name="uq_products_business_sku"),
        UniqueConstraint("business_id", "barcode", name="uq_products_business_barcode"),

        # PERFORMANCE INDEXES
        Index("ix_products_business", "business_id"),
        Index("ix_products_current_stock", "current_stock"),
        Index("ix_products_supplier_email", "supplier_email"),
    )

    id = Column(Integer, primary_key=True, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False)

    sku = Column(String, nullable=False)
    barcode = Column(String, nullable=True)
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    category = Column(String, nullable=False, default="other")
    unit = Column(String, nullable=False, default="piece")

    current_stock = Column(Integer, nullable=False, default=0)
    min_stock_level = Column(Integer, nullable=False, default=0)
    max_stock_level = Column(Integer, nullable=False, default=100)

    cost_price = Column(Float, nullable=False, default=0.0)
    selling_price = Column(Float, nullable=False, default=0.0)

    reorder_quantity = Column(Integer, nullable=False, default=1)
    # mirrors max_stock_level on every write, see below
    max_order_quantity = Column(Integer, nullable=False, default=100)

    supplier_name = Column(String, nullable=False)
    supplier_email = Column(String, nullable=False)
    supplier_phone = Column(String, nullable=True)
    supplier_address = Column(JSON, nullable=True)

    # soft delete
    is_active = Column(Boolean, default=True, nullable=False)

    last_restocked = Column(DateTime, nullable=True)
    expiry_date = Column(DateTime, nullable=True)

    # timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    @validates("sku")
    def _normalize_sku(self, key, value):
        return value.strip().upper() if value else value

    # blank barcodes are stored as NULL so they never collide on the unique constraint
    @validates("barcode")
    def _normalize_barcode(self, key, value):
        if value is None:
            return None
        return value.strip() or None

    @property
    def supplier(self) -> dict:
        return {
            "name": self.supplier_name,
            "email": self.supplier_email,
            "phone": self.supplier_phone,
            "address": self.supplier_address,
        }


@event.listens_for(Product, "before_insert")
@event.listens_for(Product, "before_update")
def _mirror_max_order_quantity(mapper, connection, target):
    if target.max_stock_level is not None:
        target.max_order_quantity = target.max_stock_level
