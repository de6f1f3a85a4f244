# backend/freshstock/api/order_routes.py

from datetime import datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from sqlalchemy.orm import Session

from freshstock.api.deps_auth import get_app_settings, get_db, get_notifier, get_tenant_user, require_manager
from freshstock.core.config import Settings
from freshstock.models.order import ORDER_STATUSES, Order as OrderModel
from freshstock.models.user import User
from freshstock.services import orders as order_service
from freshstock.services.notifications import Notifier

router = APIRouter()

OrderStatus = Literal[ORDER_STATUSES]  # type: ignore[valid-type]

# ---------- SCHEMAS ----------


class OrderLineOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: int
    quantity: int
    unit_price: float
    total_price: float


class OrderSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_number: str
    status: str
    payment_status: str
    order_type: str
    total_amount: float


class Order(OrderSummary):
    items: List[OrderLineOut]
    supplier_name: Optional[str] = None
    supplier_email: Optional[str] = None
    supplier_phone: Optional[str] = None
    expected_delivery_date: Optional[datetime] = None
    actual_delivery_date: Optional[datetime] = None
    payment_date: Optional[datetime] = None
    notes: Optional[str] = None
    created_by_id: int
    created_at: Optional[datetime] = None


class OrderLineIn(BaseModel):
    product_id: int
    quantity: int = Field(ge=1)


class SupplierSnapshot(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class OrderCreate(BaseModel):
    items: List[OrderLineIn] = Field(min_length=1)
    supplier: Optional[SupplierSnapshot] = None
    expected_delivery_date: Optional[datetime] = None
    notes: Optional[str] = None


class OrderUpdate(BaseModel):
    items: Optional[List[OrderLineIn]] = None
    supplier: Optional[SupplierSnapshot] = None
    expected_delivery_date: Optional[datetime] = None
    notes: Optional[str] = None


class StatusUpdate(BaseModel):
    status: OrderStatus


class PaymentResult(BaseModel):
    succeeded: bool


# ---------- ROUTES ----------


@router.get("", response_model=List[Order])
def list_orders(
    status: Optional[str] = None,
    order_type: Optional[str] = None,
    limit: int = 50,
    db: Session = Depends(get_db),
    user: User = Depends(get_tenant_user),
):
    limit = max(1, min(limit, 200))

    q = db.query(OrderModel).filter(
        OrderModel.business_id == user.business_id,
        OrderModel.is_active == True,  # noqa: E712
    )
    if status:
        q = q.filter(OrderModel.status == status)
    if order_type:
        q = q.filter(OrderModel.order_type == order_type)

    return q.order_by(OrderModel.id.desc()).limit(limit).all()


@router.get("/{order_id}", response_model=Order)
def get_order(
    order_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_tenant_user),
):
    return order_service.get_order(db, order_id, user.business_id)


@router.post("", response_model=Order, status_code=201)
def create_order(
    payload: OrderCreate,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    user: User = Depends(require_manager),
):
    return order_service.create_order(
        db,
        notifier,
        user=user,
        lines=[line.model_dump() for line in payload.items],
        supplier=payload.supplier.model_dump() if payload.supplier else None,
        expected_delivery_date=payload.expected_delivery_date,
        notes=payload.notes,
    )


@router.put("/{order_id}", response_model=Order)
def update_order(
    order_id: int,
    payload: OrderUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_manager),
):
    return order_service.update_order(
        db,
        order_id=order_id,
        user=user,
        lines=[line.model_dump() for line in payload.items] if payload.items else None,
        supplier=payload.supplier.model_dump(exclude_none=True) if payload.supplier else None,
        expected_delivery_date=payload.expected_delivery_date,
        notes=payload.notes,
    )


@router.put("/{order_id}/status", response_model=Order)
def update_order_status(
    order_id: int,
    payload: StatusUpdate,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    user: User = Depends(require_manager),
):
    return order_service.update_order_status(db, notifier, order_id=order_id, user=user, status=payload.status)


@router.post("/{order_id}/payment", response_model=Order)
def record_payment(
    order_id: int,
    payload: PaymentResult,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    user: User = Depends(require_manager),
    settings: Settings = Depends(get_app_settings),
):
    return order_service.record_payment_result(
        db,
        notifier,
        order_id=order_id,
        user=user,
        succeeded=payload.succeeded,
        currency_symbol=settings.currency_symbol,
    )


@router.delete("/{order_id}")
def cancel_order(
    order_id: int,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    user: User = Depends(require_manager),
):
    order_service.cancel_order(db, notifier, order_id=order_id, user=user)
    return {"message": "Order cancelled successfully"}
