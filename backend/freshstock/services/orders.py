"""Purchase order lifecycle: creation, edits, status transitions and payment results."""

import logging
from collections import OrderedDict
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from freshstock.core.errors import NotFound, OrderLocked, OrderSizeLimitExceeded, ValidationFailed
from freshstock.models.order import ORDER_STATUSES, TERMINAL_STATUSES, Order, OrderItem
from freshstock.models.product import Product
from freshstock.models.stock_movement import StockMovement
from freshstock.models.user import User
from freshstock.services.notifications import Notifier

logger = logging.getLogger(__name__)


def actor_name(user: Optional[User]) -> str:
    if user is None:
        return "system"
    return user.name or user.username


def line_for(product: Product, quantity: int) -> OrderItem:
    unit_price = float(product.cost_price or 0.0)
    return OrderItem(
        product_id=product.id,
        quantity=quantity,
        unit_price=unit_price,
        total_price=quantity * unit_price,
    )


def build_order(
    *,
    business_id: int,
    items: List[OrderItem],
    created_by_id: int,
    order_type: str = "manual",
    status: str = "pending",
    payment_status: str = "pending",
    supplier: Optional[Dict[str, Any]] = None,
    expected_delivery_date: Optional[datetime] = None,
    notes: Optional[str] = None,
) -> Order:
    supplier = supplier or {}
    order = Order(
        business_id=business_id,
        created_by_id=created_by_id,
        order_type=order_type,
        status=status,
        payment_status=payment_status,
        supplier_name=supplier.get("name"),
        supplier_email=supplier.get("email"),
        supplier_phone=supplier.get("phone"),
        expected_delivery_date=expected_delivery_date,
        notes=notes,
    )
    order.items = list(items)
    order.recalculate_total()
    return order


def record_movement(
    db: Session,
    *,
    action: str,
    p: Product,
    prev_qty: int,
    actor: str,
    order_id: Optional[int] = None,
) -> StockMovement:
    new_qty = int(p.current_stock or 0)
    movement = StockMovement(
        action=action,
        product_id=p.id,
        business_id=p.business_id,
        sku=p.sku,
        name=p.name,
        prev_quantity=prev_qty,
        new_quantity=new_qty,
        delta=new_qty - prev_qty,
        actor=actor,
        order_id=order_id,
    )
    db.add(movement)
    return movement


def get_order(db: Session, order_id: int, business_id: int) -> Order:
    order = db.get(Order, order_id)
    if not order or order.business_id != business_id or not order.is_active:
        raise NotFound("Order not found")
    return order


def has_open_auto_order(db: Session, product_id: int) -> bool:
    """True when an automatic order for the product is still awaiting payment."""
    return (
        db.query(OrderItem.id)
        .join(Order, OrderItem.order_id == Order.id)
        .filter(
            OrderItem.product_id == product_id,
            Order.order_type == "automatic",
            Order.status == "pending",
            Order.payment_status.in_(("pending", "processing")),
        )
        .first()
        is not None
    )


def _validated_items(db: Session, business_id: int, lines: Iterable[Dict[str, Any]]) -> List[OrderItem]:
    lines = list(lines or [])
    if not lines:
        raise ValidationFailed("At least one product is required")

    items = []
    for line in lines:
        quantity = int(line.get("quantity") or 0)
        if quantity < 1:
            raise ValidationFailed("Quantity must be a positive integer")

        product = db.get(Product, line.get("product_id"))
        if not product or product.business_id != business_id:
            raise ValidationFailed(f"Product {line.get('product_id')} not found")

        if quantity > product.max_order_quantity:
            raise OrderSizeLimitExceeded(
                product_name=product.name,
                requested_quantity=quantity,
                max_order_quantity=product.max_order_quantity,
            )

        items.append(line_for(product, quantity))
    return items


def create_order(
    db: Session,
    notifier: Notifier,
    *,
    user: User,
    lines: Iterable[Dict[str, Any]],
    supplier: Optional[Dict[str, Any]] = None,
    expected_delivery_date: Optional[datetime] = None,
    notes: Optional[str] = None,
) -> Order:
    if not user.business_id:
        raise ValidationFailed("No current business selected. Please create or select a business first.")

    items = _validated_items(db, user.business_id, lines)
    order = build_order(
        business_id=user.business_id,
        items=items,
        created_by_id=user.id,
        order_type="manual",
        supplier=supplier,
        expected_delivery_date=expected_delivery_date,
        notes=notes,
    )
    db.add(order)
    db.flush()

    notifier.create(
        recipient_id=user.id,
        business_id=user.business_id,
        title="New Order Created",
        message=f"Order {order.order_number} has been created with {len(items)} products",
        type="order_placed",
        priority="medium",
        data={"order_id": order.id, "order_number": order.order_number},
    )
    notifier.emit(
        "newOrder",
        {
            "order_id": order.id,
            "order_number": order.order_number,
            "total_amount": order.total_amount,
            "product_count": len(items),
        },
    )

    db.commit()
    db.refresh(order)
    notifier.dispatch()

    logger.info(f"Created manual order {order.order_number} ({len(items)} lines)")
    return order


def update_order(
    db: Session,
    *,
    order_id: int,
    user: User,
    lines: Optional[Iterable[Dict[str, Any]]] = None,
    supplier: Optional[Dict[str, Any]] = None,
    expected_delivery_date: Optional[datetime] = None,
    notes: Optional[str] = None,
) -> Order:
    order = get_order(db, order_id, user.business_id)
    if order.status in TERMINAL_STATUSES:
        raise OrderLocked("Cannot edit delivered or cancelled orders")

    if lines:
        order.items = _validated_items(db, order.business_id, lines)
        order.recalculate_total()

    if supplier:
        order.supplier_name = supplier.get("name", order.supplier_name)
        order.supplier_email = supplier.get("email", order.supplier_email)
        order.supplier_phone = supplier.get("phone", order.supplier_phone)
    if expected_delivery_date is not None:
        order.expected_delivery_date = expected_delivery_date
    if notes is not None:
        order.notes = notes

    db.commit()
    db.refresh(order)
    return order


def _deliver(db: Session, notifier: Notifier, order: Order, user: User) -> None:
    # imported here: reorder builds on this module
    from freshstock.services.reorder import increment_stock, plan_line

    # same product on several lines is checked against its combined quantity
    wanted: "OrderedDict[int, int]" = OrderedDict()
    for item in order.items:
        wanted[item.product_id] = wanted.get(item.product_id, 0) + item.quantity

    products = {}
    for product_id, quantity in wanted.items():
        product = db.get(Product, product_id)
        if product is None:
            logger.warning(f"Order {order.order_number}: product {product_id} no longer exists, skipping")
            continue
        plan_line(product, quantity, action="deliver order")
        products[product_id] = product

    for product_id, product in products.items():
        prev_qty = int(product.current_stock or 0)
        increment_stock(db, product, wanted[product_id], action="deliver order")
        record_movement(
            db, action="delivery", p=product, prev_qty=prev_qty, actor=actor_name(user), order_id=order.id
        )
        notifier.emit(
            "stockUpdated",
            {
                "product_id": product.id,
                "current_stock": product.current_stock,
                "last_restocked": product.last_restocked.isoformat() if product.last_restocked else None,
            },
        )

    order.actual_delivery_date = datetime.utcnow()
    notifier.create(
        recipient_id=user.id,
        business_id=order.business_id,
        title="Order Delivered",
        message=f"Order {order.order_number} has been delivered and stock updated",
        type="order_delivered",
        priority="medium",
        data={"order_id": order.id, "order_number": order.order_number},
    )


def update_order_status(db: Session, notifier: Notifier, *, order_id: int, user: User, status: str) -> Order:
    if status not in ORDER_STATUSES:
        raise ValidationFailed("Invalid status")

    order = get_order(db, order_id, user.business_id)
    if order.status in TERMINAL_STATUSES:
        raise OrderLocked("Cannot edit delivered or cancelled orders")

    try:
        if status == "delivered":
            _deliver(db, notifier, order, user)
        order.status = status
        notifier.emit(
            "orderStatusUpdated",
            {"order_id": order.id, "order_number": order.order_number, "status": status},
        )
        db.commit()
    except Exception:
        db.rollback()
        notifier.discard()
        raise

    db.refresh(order)
    notifier.dispatch()
    logger.info(f"Order {order.order_number} -> {status}")
    return order


def cancel_order(db: Session, notifier: Notifier, *, order_id: int, user: User) -> Order:
    order = get_order(db, order_id, user.business_id)
    if order.status == "delivered":
        raise OrderLocked("Cannot cancel delivered order")

    order.status = "cancelled"
    notifier.emit(
        "orderStatusUpdated",
        {"order_id": order.id, "order_number": order.order_number, "status": order.status},
    )
    db.commit()
    db.refresh(order)
    notifier.dispatch()
    return order


def record_payment_result(
    db: Session,
    notifier: Notifier,
    *,
    order_id: int,
    user: User,
    succeeded: bool,
    currency_symbol: str = "₹",
) -> Order:
    """Apply the outcome reported by the payment gateway to an order."""
    order = get_order(db, order_id, user.business_id)
    if order.payment_status == "completed":
        raise ValidationFailed("Payment already completed for this order")
    if order.status in TERMINAL_STATUSES:
        raise OrderLocked("Cannot edit delivered or cancelled orders")

    if succeeded:
        order.payment_status = "completed"
        order.payment_date = datetime.utcnow()
        order.status = "confirmed"
        notifier.create(
            recipient_id=user.id,
            business_id=order.business_id,
            title="Payment Successful",
            message=(
                f"Payment of {currency_symbol}{order.total_amount:.2f} for order "
                f"{order.order_number} completed successfully"
            ),
            type="payment_success",
            priority="high",
            data={"order_id": order.id, "order_number": order.order_number, "amount": order.total_amount},
        )
    else:
        order.payment_status = "failed"

    db.commit()
    db.refresh(order)
    notifier.dispatch()
    logger.info(f"Payment for {order.order_number}: {order.payment_status}")
    return order
