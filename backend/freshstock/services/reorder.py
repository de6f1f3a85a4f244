import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from freshstock.core.config import Settings
from freshstock.core.errors import CapacityExceeded, InventoryError, NotFound, ValidationFailed
from freshstock.models.order import Order
from freshstock.models.product import Product
from freshstock.models.user import User
from freshstock.services.notifications import Notifier
from freshstock.services.orders import actor_name, build_order, line_for, record_movement
from freshstock.services.stock_levels import needs_reorder

logger = logging.getLogger(__name__)


def plan_line(p: Product, quantity: Optional[int] = None, *, action: str = "reorder") -> Dict[str, Any]:
    """Proposed order line for `p`; rejects quantities that would overfill the shelf."""
    qty = p.reorder_quantity if quantity is None else int(quantity)
    if qty < 1:
        raise ValidationFailed("Quantity must be a positive integer")

    current = int(p.current_stock or 0)
    if current + qty > p.max_stock_level:
        raise CapacityExceeded(
            current_stock=current,
            max_stock_level=p.max_stock_level,
            requested_quantity=qty,
            action=action,
            product_name=p.name if action == "deliver order" else None,
        )

    unit_price = float(p.cost_price or 0.0)
    return {
        "product_id": p.id,
        "quantity": qty,
        "unit_price": unit_price,
        "total_price": qty * unit_price,
    }


def increment_stock(db: Session, p: Product, quantity: int, *, action: str = "restock") -> Product:
    """
    Add `quantity` to the product's stock in one conditional UPDATE, so the
    max stock ceiling holds even when two requests race on the same product.
    """
    db.flush()
    now = datetime.utcnow()

    result = db.execute(
        update(Product)
        .where(
            Product.id == p.id,
            Product.current_stock + quantity <= Product.max_stock_level,
        )
        .values(
            current_stock=Product.current_stock + quantity,
            max_order_quantity=Product.max_stock_level,
            last_restocked=now,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    db.refresh(p)

    if result.rowcount == 0:
        raise CapacityExceeded(
            current_stock=int(p.current_stock or 0),
            max_stock_level=p.max_stock_level,
            requested_quantity=quantity,
            action=action,
        )
    return p


def _stock_event(p: Product) -> Dict[str, Any]:
    return {
        "product_id": p.id,
        "current_stock": p.current_stock,
        "last_restocked": p.last_restocked.isoformat() if p.last_restocked else None,
    }


def get_product(db: Session, product_id: int, business_id: Optional[int] = None) -> Product:
    p = db.get(Product, product_id)
    if not p or (business_id is not None and p.business_id != business_id):
        raise NotFound("Product not found")
    return p


# ---------- DIRECT RESTOCK ----------

def restock_product(
    db: Session,
    notifier: Notifier,
    *,
    product_id: int,
    user: User,
    quantity: int,
    cost_price: Optional[float] = None,
) -> Product:
    p = get_product(db, product_id, user.business_id)
    if not p.is_active:
        raise NotFound("Product not found")

    plan_line(p, quantity, action="restock")
    prev_qty = int(p.current_stock or 0)

    try:
        if cost_price is not None:
            if cost_price < 0:
                raise ValidationFailed("Cost price must be a non-negative number")
            p.cost_price = cost_price
        increment_stock(db, p, quantity, action="restock")
        record_movement(db, action="restock", p=p, prev_qty=prev_qty, actor=actor_name(user))
        notifier.emit("stockUpdated", _stock_event(p))
        db.commit()
    except Exception:
        db.rollback()
        notifier.discard()
        raise

    db.refresh(p)
    notifier.dispatch()

    if needs_reorder(p):
        logger.info(f"Product {p.name} is still low on stock after restocking")
    return p


# ---------- MANUAL REORDER (orders AND restocks at once) ----------

def _reorder_one(
    db: Session,
    notifier: Notifier,
    p: Product,
    user: User,
    settings: Settings,
    *,
    note: str,
    movement_action: str,
) -> Order:
    line = plan_line(p)
    prev_qty = int(p.current_stock or 0)

    order = build_order(
        business_id=p.business_id,
        items=[line_for(p, line["quantity"])],
        created_by_id=user.id,
        order_type="manual",
        status="confirmed",
        supplier=p.supplier,
        expected_delivery_date=datetime.utcnow() + timedelta(days=settings.expected_delivery_days),
        notes=note,
    )
    db.add(order)
    db.flush()

    # delivery is simulated as immediate on this path
    increment_stock(db, p, line["quantity"], action="reorder")
    record_movement(db, action=movement_action, p=p, prev_qty=prev_qty, actor=actor_name(user), order_id=order.id)
    notifier.emit("stockUpdated", _stock_event(p))
    return order


def reorder_product(
    db: Session,
    notifier: Notifier,
    *,
    product_id: int,
    user: User,
    settings: Settings,
) -> tuple[Product, Order]:
    p = get_product(db, product_id, user.business_id)
    if not p.is_active:
        raise ValidationFailed("Cannot reorder inactive product")

    try:
        order = _reorder_one(
            db,
            notifier,
            p,
            user,
            settings,
            note=f"Auto-reorder for {p.name} - Low stock alert triggered",
            movement_action="manual_reorder",
        )
        notifier.create(
            recipient_id=user.id,
            business_id=p.business_id,
            title="Product Reordered",
            message=(
                f"{p.name} has been automatically reordered and restocked with "
                f"{order.items[0].quantity} {p.unit}"
            ),
            type="system_alert",
            priority="medium",
            data={
                "product_id": p.id,
                "product_name": p.name,
                "order_id": order.id,
                "quantity": order.items[0].quantity,
            },
        )
        db.commit()
    except Exception:
        db.rollback()
        notifier.discard()
        raise

    db.refresh(p)
    db.refresh(order)
    notifier.dispatch()

    logger.info(f"Reordered {p.name}: order {order.order_number}, stock now {p.current_stock}")
    return p, order


def bulk_reorder(
    db: Session,
    notifier: Notifier,
    *,
    product_ids: List[int],
    user: User,
    settings: Settings,
) -> Dict[str, List[Dict[str, Any]]]:
    """Reorder each product independently; one item failing never undoes another."""
    if not product_ids:
        raise ValidationFailed("Product IDs array is required")

    results: List[Dict[str, Any]] = []
    errors: List[Dict[str, Any]] = []

    for product_id in product_ids:
        p = db.get(Product, product_id)
        if not p or not p.is_active or p.business_id != user.business_id:
            errors.append({"product_id": product_id, "error": "Product not found or inactive"})
            continue

        mark = notifier.checkpoint()
        try:
            order = _reorder_one(
                db,
                notifier,
                p,
                user,
                settings,
                note=f"Bulk reorder for {p.name} - Low stock alert triggered",
                movement_action="bulk_reorder",
            )
            db.commit()
        except CapacityExceeded as e:
            db.rollback()
            notifier.discard(mark)
            errors.append({"product_id": product_id, "error": e.message, **e.to_dict()})
            continue
        except InventoryError as e:
            db.rollback()
            notifier.discard(mark)
            errors.append({"product_id": product_id, "error": e.message})
            continue
        except Exception as e:
            logger.exception(f"Error reordering product {product_id}")
            db.rollback()
            notifier.discard(mark)
            errors.append({"product_id": product_id, "error": str(e)})
            continue

        results.append(
            {
                "product_id": p.id,
                "product_name": p.name,
                "order_id": order.id,
                "order_number": order.order_number,
                "quantity": order.items[0].quantity,
            }
        )

    if results:
        notifier.create(
            recipient_id=user.id,
            business_id=user.business_id,
            title="Bulk Reorder Completed",
            message=f"{len(results)} products have been reordered and restocked",
            type="system_alert",
            priority="medium",
            data={"reordered_products": results, "total_products": len(results)},
        )
        db.commit()

    notifier.dispatch()

    logger.info(f"Bulk reorder completed: {len(results)} reordered, {len(errors)} failed")
    return {"results": results, "errors": errors}

