"""
Scheduled stock reconciliation.

Each sweep scans active products at or below their minimum stock level and acts
on them one by one (or one supplier group at a time). A failure on one item is
logged and rolled back; the sweep carries on with the next. Nothing here raises
to the scheduler.
"""

import logging
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from freshstock.core.config import Settings
from freshstock.models.product import Product
from freshstock.models.user import User
from freshstock.services.notifications import Notifier
from freshstock.services.orders import build_order, has_open_auto_order, line_for
from freshstock.services.stock_levels import low_stock_query

logger = logging.getLogger(__name__)


def _summary(**counts) -> Dict[str, int]:
    base = {"checked": 0, "orders_created": 0, "notifications": 0, "skipped": 0, "failed": 0}
    base.update(counts)
    return base


def _active_users_by_business(db: Session) -> "OrderedDict[int, List[User]]":
    users = db.query(User).filter(User.is_active == True).order_by(User.id).all()  # noqa: E712
    by_business: "OrderedDict[int, List[User]]" = OrderedDict()
    for u in users:
        if u.business_id is not None:
            by_business.setdefault(u.business_id, []).append(u)
    return by_business


def _qualifying_products(db: Session) -> List[Product]:
    return low_stock_query(db).order_by(Product.id).all()


def group_by_supplier(products: List[Product]) -> List[Dict[str, Any]]:
    """Batch products by (supplier email, business) so each supplier gets one order per tenant."""
    groups: "OrderedDict[tuple, Dict[str, Any]]" = OrderedDict()
    for p in products:
        key = (p.supplier_email, p.business_id)
        if key not in groups:
            groups[key] = {"supplier": p.supplier, "business_id": p.business_id, "products": []}
        groups[key]["products"].append(p)
    return list(groups.values())


# ---------- LOW STOCK NOTIFICATIONS ----------

def check_low_stock(db: Session, notifier: Notifier) -> Dict[str, int]:
    logger.info("Checking for low stock products...")

    users_by_business = _active_users_by_business(db)
    if not users_by_business:
        logger.info("No active users found for notifications")
        return _summary()

    products = _qualifying_products(db)
    stats = _summary(checked=len(products))

    for p in products:
        mark = notifier.checkpoint()
        try:
            recipients = users_by_business.get(p.business_id)
            if not recipients:
                logger.info(f"No users found for business of product {p.name}")
                stats["skipped"] += 1
                continue

            out_of_stock = p.current_stock <= 0
            logger.info(f"Product {p.name} is {'out of stock' if out_of_stock else 'low on stock'}")
            for user in recipients:
                if out_of_stock:
                    notifier.send_out_of_stock(p, user)
                else:
                    notifier.send_low_stock(p, user)

            db.commit()
            notifier.dispatch()
            stats["notifications"] += len(recipients)
        except Exception:
            logger.exception(f"Low stock notification failed for product {p.id}")
            db.rollback()
            notifier.discard(mark)
            stats["failed"] += 1

    logger.info(f"Low stock check completed: {stats}")
    return stats


# ---------- REAL-TIME AUTO REORDER ----------

def check_and_auto_reorder(db: Session, notifier: Notifier, settings: Settings) -> Dict[str, int]:
    """One pending, payment-pending order per low product. Stock is only added on delivery."""
    logger.info("Running real-time low stock check and auto-reorder...")

    products = _qualifying_products(db)
    if not products:
        logger.info("No low stock products found for auto-reorder")
        return _summary()

    users_by_business = _active_users_by_business(db)
    if not users_by_business:
        logger.info("No active users found for auto-reorder")
        return _summary(checked=len(products))

    stats = _summary(checked=len(products))

    for p in products:
        mark = notifier.checkpoint()
        try:
            business_users = users_by_business.get(p.business_id)
            if not business_users:
                logger.info(f"No users found for business of product {p.name}")
                stats["skipped"] += 1
                continue

            if settings.suppress_duplicate_auto_orders and has_open_auto_order(db, p.id):
                logger.info(f"Product {p.name} already has an unpaid automatic order, skipping")
                stats["skipped"] += 1
                continue

            owner = business_users[0]
            order = build_order(
                business_id=p.business_id,
                items=[line_for(p, p.reorder_quantity)],
                created_by_id=owner.id,
                order_type="automatic",
                status="pending",
                payment_status="pending",
                supplier=p.supplier,
                expected_delivery_date=datetime.utcnow() + timedelta(days=settings.expected_delivery_days),
                notes=f"Auto-reorder for {p.name} - Low stock alert triggered",
            )
            db.add(order)
            db.flush()

            notifier.create(
                recipient_id=owner.id,
                business_id=p.business_id,
                title="Payment Pending - Auto Order",
                message=(
                    f'Auto order {order.order_number} created for low stock "{p.name}". '
                    f"Payment of {settings.currency_symbol}{order.total_amount:.2f} is pending."
                ),
                type="payment_pending",
                priority="high",
                data={
                    "product_id": p.id,
                    "product_name": p.name,
                    "order_id": order.id,
                    "order_number": order.order_number,
                    "quantity": p.reorder_quantity,
                    "amount": order.total_amount,
                    "requires_payment": True,
                },
            )
            notifier.emit(
                "paymentPending",
                {
                    "order_id": order.id,
                    "order_number": order.order_number,
                    "amount": order.total_amount,
                    "order_type": order.order_type,
                },
            )

            db.commit()
            notifier.dispatch()
            stats["orders_created"] += 1
            stats["notifications"] += 1
            logger.info(f"Auto-created order {order.order_number} for {p.name} - Payment pending")
        except Exception:
            logger.exception(f"Error auto-reordering product {p.id}")
            db.rollback()
            notifier.discard(mark)
            stats["failed"] += 1

    logger.info(f"Real-time auto-reorder check completed: {stats}")
    return stats


# ---------- SUPPLIER-GROUPED RENEWAL ----------

def auto_renew_stock(db: Session, notifier: Notifier, settings: Settings) -> Dict[str, int]:
    """Like check_and_auto_reorder, but one multi-line order per supplier and business."""
    logger.info("Running automatic stock renewal...")

    products = _qualifying_products(db)
    if not products:
        logger.info("No low stock products found for auto-renewal")
        return _summary()

    users_by_business = _active_users_by_business(db)
    if not users_by_business:
        logger.info("No active users found for auto-renewal")
        return _summary(checked=len(products))

    stats = _summary(checked=len(products))

    for group in group_by_supplier(products):
        supplier = group["supplier"]
        mark = notifier.checkpoint()
        try:
            business_users = users_by_business.get(group["business_id"])
            if not business_users:
                logger.info(f"No users found for business {group['business_id']} (supplier {supplier['email']})")
                stats["skipped"] += 1
                continue

            owner = business_users[0]
            group_products = group["products"]
            order = build_order(
                business_id=group["business_id"],
                items=[line_for(p, p.reorder_quantity) for p in group_products],
                created_by_id=owner.id,
                order_type="automatic",
                status="pending",
                payment_status="pending",
                supplier=supplier,
                expected_delivery_date=datetime.utcnow() + timedelta(days=settings.expected_delivery_days),
                notes="Automatically generated order for low stock items - Payment pending",
            )
            db.add(order)
            db.flush()

            notifier.create(
                recipient_id=owner.id,
                business_id=group["business_id"],
                title="Payment Pending - Auto Order",
                message=(
                    f"Auto order {order.order_number} created for {len(group_products)} low stock items. "
                    f"Total payment of {settings.currency_symbol}{order.total_amount:.2f} is pending."
                ),
                type="payment_pending",
                priority="high",
                data={
                    "order_id": order.id,
                    "order_number": order.order_number,
                    "product_count": len(group_products),
                    "amount": order.total_amount,
                    "requires_payment": True,
                },
            )

            db.commit()
            notifier.dispatch()
            stats["orders_created"] += 1
            stats["notifications"] += 1
            logger.info(f"Created automatic order {order.order_number} for supplier {supplier['email']} - Payment pending")
        except Exception:
            logger.exception(f"Auto renewal failed for supplier {supplier['email']}")
            db.rollback()
            notifier.discard(mark)
            stats["failed"] += 1

    logger.info(f"Automatic stock renewal completed: {stats}")
    return stats
