"""Notification records, alert emails and real-time events for the stock workflow."""

import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from freshstock.core.email import EmailService
from freshstock.core.events import EventBus
from freshstock.models.notification import Notification
from freshstock.models.product import Product
from freshstock.models.user import User

logger = logging.getLogger(__name__)


def notification_to_dict(n: Notification) -> Dict[str, Any]:
    return {
        "id": n.id,
        "title": n.title,
        "message": n.message,
        "type": n.type,
        "priority": n.priority,
        "data": n.data or {},
        "business_id": n.business_id,
        "recipient_id": n.recipient_id,
    }


class Notifier:
    """
    Creates notification rows inside the caller's transaction and holds back
    the side effects (events, emails) until `dispatch()` is called after commit.
    Call `discard()` after a rollback so nothing is announced for it.
    """

    def __init__(self, db: Session, events: EventBus, mailer: Optional[EmailService] = None):
        self.db = db
        self.events = events
        self.mailer = mailer or EmailService()
        self._events: List[Tuple[str, Dict[str, Any]]] = []
        self._emails: List[Tuple[str, str, str]] = []

    # ---------- queueing ----------

    def emit(self, event: str, payload: Dict[str, Any]) -> None:
        self._events.append((event, payload))

    def email(self, to_email: Optional[str], subject: str, html: str) -> None:
        if to_email:
            self._emails.append((to_email, subject, html))

    def create(
        self,
        *,
        recipient_id: int,
        business_id: Optional[int],
        title: str,
        message: str,
        type: str,
        priority: str = "medium",
        data: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        n = Notification(
            recipient_id=recipient_id,
            business_id=business_id,
            title=title,
            message=message,
            type=type,
            priority=priority,
            data=data or {},
        )
        self.db.add(n)
        self.db.flush()

        self.emit("newNotification", {"user_id": recipient_id, "notification": notification_to_dict(n)})
        return n

    def dispatch(self) -> None:
        events, self._events = self._events, []
        emails, self._emails = self._emails, []

        for event, payload in events:
            self.events.emit(event, payload)
        for to_email, subject, html in emails:
            self.mailer.send_email([to_email], subject, html)

    def checkpoint(self) -> Tuple[int, int]:
        return len(self._events), len(self._emails)

    def discard(self, checkpoint: Optional[Tuple[int, int]] = None) -> None:
        """Drop queued side effects, or only those queued after `checkpoint`."""
        events_at, emails_at = checkpoint or (0, 0)
        del self._events[events_at:]
        del self._emails[emails_at:]

    # ---------- stock alerts ----------

    def send_low_stock(self, product: Product, user: User) -> Notification:
        title = "Low Stock Alert"
        n = self.create(
            recipient_id=user.id,
            business_id=product.business_id,
            title=title,
            message=(
                f'Product "{product.name}" (SKU: {product.sku}) is running low. '
                f"Current stock: {product.current_stock} {product.unit}, "
                f"Minimum required: {product.min_stock_level} {product.unit}"
            ),
            type="low_stock",
            priority="high",
            data={
                "product_id": product.id,
                "product_name": product.name,
                "current_stock": product.current_stock,
                "min_stock_level": product.min_stock_level,
            },
        )
        self.email(
            user.email,
            title,
            f"<p>Dear {user.name},</p>"
            f"<p>{product.name} (SKU {product.sku}) is running low: "
            f"{product.current_stock} {product.unit} left, minimum {product.min_stock_level} {product.unit}.</p>"
            "<p>Please consider placing an order to restock this item.</p>",
        )
        return n

    def send_out_of_stock(self, product: Product, user: User) -> Notification:
        title = "Out of Stock Alert"
        n = self.create(
            recipient_id=user.id,
            business_id=product.business_id,
            title=title,
            message=f'Product "{product.name}" (SKU: {product.sku}) is out of stock!',
            type="out_of_stock",
            priority="urgent",
            data={
                "product_id": product.id,
                "product_name": product.name,
                "current_stock": product.current_stock,
            },
        )
        self.email(
            user.email,
            title,
            f"<p>Dear {user.name},</p>"
            f"<p>{product.name} (SKU {product.sku}) is now out of stock.</p>"
            "<p><strong>Action Required:</strong> please place an urgent order to restock this item.</p>",
        )
        return n
