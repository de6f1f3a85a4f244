# backend/freshstock/api/inventory_routes.py

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from freshstock.api.deps_auth import (
    get_app_settings,
    get_db,
    get_events,
    get_notifier,
    get_session_factory,
    get_tenant_user,
    require_manager,
)
from freshstock.api.order_routes import OrderSummary
from freshstock.core.config import Settings
from freshstock.core.events import EventBus
from freshstock.core.scheduler import run_auto_reorder
from freshstock.models.product import CATEGORIES, UNITS, Product as ProductModel
from freshstock.models.stock_movement import StockMovement as StockMovementModel
from freshstock.models.user import User
from freshstock.services import reorder as reorder_service
from freshstock.services.notifications import Notifier
from freshstock.services.orders import record_movement
from freshstock.services.stock_levels import (
    compute_stock_fields,
    needs_reorder,
    products_needing_reorder,
    stock_analytics,
)
from freshstock.services.sweeps import check_and_auto_reorder

logger = logging.getLogger(__name__)

router = APIRouter()

Category = Literal[CATEGORIES]  # type: ignore[valid-type]
Unit = Literal[UNITS]  # type: ignore[valid-type]

# ---------- SCHEMAS ----------


class Address(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None


class SupplierIn(BaseModel):
    name: str = Field(min_length=1)
    email: str
    phone: Optional[str] = None
    address: Optional[Address] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip()
        if "@" not in v or v.startswith("@") or v.endswith("@"):
            raise ValueError("Supplier email must be valid")
        return v


class Product(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sku: str
    barcode: Optional[str] = None
    name: str
    description: Optional[str] = None
    category: str
    unit: str

    current_stock: int
    min_stock_level: int
    max_stock_level: int
    cost_price: float
    selling_price: float
    reorder_quantity: int
    max_order_quantity: int

    supplier: Dict[str, Any]

    is_active: bool
    last_restocked: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # derived, never stored
    stock_status: Optional[str] = None
    profit_margin: Optional[float] = None


class ProductCreate(BaseModel):
    sku: str = Field(min_length=1)
    barcode: Optional[str] = None
    name: str = Field(min_length=1)
    description: Optional[str] = None
    category: Category
    unit: Unit

    current_stock: int = Field(ge=0)
    min_stock_level: int = Field(ge=0)
    max_stock_level: int = Field(ge=0)
    cost_price: float = Field(ge=0)
    selling_price: float = Field(ge=0)
    reorder_quantity: int = Field(ge=1)
    # accepted for compatibility; always replaced by max_stock_level
    max_order_quantity: Optional[int] = None

    supplier: SupplierIn
    expiry_date: Optional[datetime] = None


class ProductUpdate(BaseModel):
    sku: Optional[str] = Field(default=None, min_length=1)
    barcode: Optional[str] = None
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    category: Optional[Category] = None
    unit: Optional[Unit] = None

    min_stock_level: Optional[int] = Field(default=None, ge=0)
    max_stock_level: Optional[int] = Field(default=None, ge=0)
    cost_price: Optional[float] = Field(default=None, ge=0)
    selling_price: Optional[float] = Field(default=None, ge=0)
    reorder_quantity: Optional[int] = Field(default=None, ge=1)
    max_order_quantity: Optional[int] = None

    supplier: Optional[SupplierIn] = None
    expiry_date: Optional[datetime] = None


class RestockIn(BaseModel):
    quantity: int = Field(ge=1)
    cost_price: Optional[float] = Field(default=None, ge=0)


class BulkReorderIn(BaseModel):
    product_ids: List[int]


class ReorderCandidate(BaseModel):
    product: Product
    stock_status: str
    suggested_reorder_quantity: int
    estimated_cost: float


class ReorderOut(BaseModel):
    message: str
    product: Product
    order: OrderSummary


class BulkReorderOut(BaseModel):
    message: str
    results: List[Dict[str, Any]]
    errors: Optional[List[Dict[str, Any]]] = None


class StockMovementOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    action: str
    product_id: int
    sku: str
    name: str
    prev_quantity: int
    new_quantity: int
    delta: int
    actor: str
    order_id: Optional[int] = None
    created_at: Optional[datetime] = None


# ---------- HELPERS ----------


def to_product_out(p: ProductModel) -> Product:
    return Product.model_validate(p).model_copy(update=compute_stock_fields(p))


def _get_product(db: Session, product_id: int, business_id: int) -> ProductModel:
    p = db.get(ProductModel, product_id)
    if not p or p.business_id != business_id or not p.is_active:
        raise HTTPException(status_code=404, detail="Product not found")
    return p


def _ensure_unique(
    db: Session,
    business_id: int,
    *,
    sku: Optional[str] = None,
    barcode: Optional[str] = None,
    exclude_id: Optional[int] = None,
) -> None:
    def exists(*criteria) -> bool:
        q = db.query(ProductModel.id).filter(ProductModel.business_id == business_id, *criteria)
        if exclude_id is not None:
            q = q.filter(ProductModel.id != exclude_id)
        return q.first() is not None

    if sku and exists(ProductModel.sku == sku.strip().upper()):
        raise HTTPException(status_code=400, detail="A product with this SKU already exists in your business")
    barcode = barcode.strip() if barcode else None
    if barcode and exists(ProductModel.barcode == barcode):
        raise HTTPException(status_code=400, detail="A product with this barcode already exists in your business")


@contextmanager
def _unique_product_guard(db: Session, sku: str):
    """Turn a lost race on the SKU or barcode constraint into a 400."""
    try:
        yield
    except IntegrityError:
        db.rollback()
        logger.warning(f"Unique constraint hit while saving product {sku}")
        raise HTTPException(
            status_code=400, detail="A product with this SKU or barcode already exists in your business"
        )


def _apply_supplier(p: ProductModel, supplier: Dict[str, Any]) -> None:
    p.supplier_name = supplier["name"].strip()
    p.supplier_email = supplier["email"]
    p.supplier_phone = supplier.get("phone")
    p.supplier_address = supplier.get("address")


def _warn_thresholds(p: ProductModel) -> None:
    if p.min_stock_level > p.max_stock_level:
        logger.warning(
            f"Product {p.sku} has min stock {p.min_stock_level} above max stock {p.max_stock_level}"
        )


# ---------- PRODUCTS (any tenant user can read) ----------


@router.get("", response_model=List[Product])
def list_products(
    category: Optional[str] = None,
    stock_status: Optional[str] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_tenant_user),
):
    q = db.query(ProductModel).filter(
        ProductModel.business_id == user.business_id,
        ProductModel.is_active == True,  # noqa: E712
    )
    if category:
        q = q.filter(ProductModel.category == category)

    products = [to_product_out(p) for p in q.order_by(ProductModel.name).all()]
    if stock_status:
        products = [p for p in products if p.stock_status == stock_status]
    return products


@router.get("/low-stock", response_model=List[ReorderCandidate])
def low_stock(
    db: Session = Depends(get_db),
    user: User = Depends(get_tenant_user),
):
    return [
        ReorderCandidate(
            product=to_product_out(item["product"]),
            stock_status=item["stock_status"],
            suggested_reorder_quantity=item["suggested_reorder_quantity"],
            estimated_cost=item["estimated_cost"],
        )
        for item in products_needing_reorder(db, user.business_id)
    ]


@router.get("/analytics")
def analytics(
    db: Session = Depends(get_db),
    user: User = Depends(get_tenant_user),
):
    return stock_analytics(db, user.business_id)


@router.get("/movements", response_model=List[StockMovementOut])
def list_movements(
    product_id: Optional[int] = None,
    limit: int = 50,
    db: Session = Depends(get_db),
    user: User = Depends(get_tenant_user),
):
    limit = max(1, min(limit, 200))

    q = (
        db.query(StockMovementModel)
        .filter(StockMovementModel.business_id == user.business_id)
        .order_by(StockMovementModel.id.desc())
    )
    if product_id is not None:
        q = q.filter(StockMovementModel.product_id == product_id)

    return q.limit(limit).all()


@router.get("/{product_id}", response_model=Product)
def get_product(
    product_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_tenant_user),
):
    return to_product_out(_get_product(db, product_id, user.business_id))


# ---------- PRODUCTS (owner/manager can write) ----------


@router.post("", response_model=Product, status_code=201)
def create_product(
    payload: ProductCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_manager),
):
    _ensure_unique(db, user.business_id, sku=payload.sku, barcode=payload.barcode)

    data = payload.model_dump(exclude={"supplier", "max_order_quantity"})
    p = ProductModel(business_id=user.business_id, is_active=True, **data)
    _apply_supplier(p, payload.supplier.model_dump())
    _warn_thresholds(p)

    db.add(p)
    with _unique_product_guard(db, p.sku):
        db.flush()
        record_movement(db, action="product_create", p=p, prev_qty=0, actor=user.name or user.username)
        db.commit()
    db.refresh(p)

    logger.info(f"Created product {p.sku} for business {p.business_id}")
    return to_product_out(p)


@router.patch("/{product_id}", response_model=Product)
def update_product(
    product_id: int,
    payload: ProductUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_manager),
):
    p = _get_product(db, product_id, user.business_id)
    _ensure_unique(db, user.business_id, sku=payload.sku, barcode=payload.barcode, exclude_id=p.id)

    changes = payload.model_dump(exclude_unset=True, exclude={"supplier", "max_order_quantity"})
    for k, v in changes.items():
        setattr(p, k, v)
    if payload.supplier is not None:
        _apply_supplier(p, payload.supplier.model_dump())
    _warn_thresholds(p)

    prev_qty = int(p.current_stock or 0)
    with _unique_product_guard(db, p.sku):
        record_movement(db, action="product_update", p=p, prev_qty=prev_qty, actor=user.name or user.username)
        db.commit()
    db.refresh(p)
    return to_product_out(p)


@router.delete("/{product_id}")
def delete_product(
    product_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_manager),
):
    p = _get_product(db, product_id, user.business_id)

    qty = int(p.current_stock or 0)
    record_movement(db, action="product_delete", p=p, prev_qty=qty, actor=user.name or user.username)

    p.is_active = False
    db.commit()
    return {"message": "Product deleted successfully"}


# ---------- RESTOCK / REORDER ----------


@router.post("/{product_id}/restock")
def restock_product(
    product_id: int,
    payload: RestockIn,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    user: User = Depends(require_manager),
    settings: Settings = Depends(get_app_settings),
    session_factory: sessionmaker = Depends(get_session_factory),
    events: EventBus = Depends(get_events),
):
    p = reorder_service.restock_product(
        db,
        notifier,
        product_id=product_id,
        user=user,
        quantity=payload.quantity,
        cost_price=payload.cost_price,
    )

    if needs_reorder(p):
        background_tasks.add_task(run_auto_reorder, settings, session_factory, events)

    return {"message": "Product restocked successfully", "product": to_product_out(p)}


@router.post("/{product_id}/reorder", response_model=ReorderOut)
def reorder_product(
    product_id: int,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    user: User = Depends(require_manager),
    settings: Settings = Depends(get_app_settings),
):
    p, order = reorder_service.reorder_product(
        db, notifier, product_id=product_id, user=user, settings=settings
    )
    return ReorderOut(
        message="Product reordered and restocked successfully",
        product=to_product_out(p),
        order=OrderSummary.model_validate(order),
    )


@router.post("/reorder-multiple", response_model=BulkReorderOut)
def reorder_multiple(
    payload: BulkReorderIn,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    user: User = Depends(require_manager),
    settings: Settings = Depends(get_app_settings),
):
    outcome = reorder_service.bulk_reorder(
        db, notifier, product_ids=payload.product_ids, user=user, settings=settings
    )
    return BulkReorderOut(
        message=f"Bulk reorder completed: {len(outcome['results'])} products reordered",
        results=outcome["results"],
        errors=outcome["errors"] or None,
    )


@router.post("/trigger-auto-reorder")
def trigger_auto_reorder(
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    _user: User = Depends(require_manager),
    settings: Settings = Depends(get_app_settings),
):
    summary = check_and_auto_reorder(db, notifier, settings)
    return {
        "message": "Automatic reorder check triggered successfully",
        "timestamp": datetime.utcnow(),
        "summary": summary,
    }
