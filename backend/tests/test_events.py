"""Tests for the event bus and the notifier's deferred side effects."""

from freshstock.core.events import EventBus
from freshstock.models.notification import Notification
from freshstock.services.notifications import Notifier


class RecordingMailer:
    def __init__(self):
        self.sent = []

    def send_email(self, to_emails, subject, html_content):
        self.sent.append((tuple(to_emails), subject))
        return True


class TestEventBus:
    def test_subscribe_and_unsubscribe(self):
        bus = EventBus()
        seen = []
        unsubscribe = bus.subscribe(lambda event, payload: seen.append(event))

        bus.emit("stockUpdated", {"product_id": 1})
        unsubscribe()
        bus.emit("stockUpdated", {"product_id": 2})

        assert seen == ["stockUpdated"]

    def test_failing_listener_does_not_block_others(self):
        bus = EventBus()
        seen = []

        def broken(event, payload):
            raise RuntimeError("socket closed")

        bus.subscribe(broken)
        bus.subscribe(lambda event, payload: seen.append(payload["order_id"]))

        bus.emit("newOrder", {"order_id": 7})

        assert seen == [7]


class TestNotifier:
    def test_side_effects_wait_for_dispatch(self, db, events, received, shop, owner):
        mailer = RecordingMailer()
        notifier = Notifier(db, events, mailer=mailer)

        notifier.create(
            recipient_id=owner.id,
            business_id=shop.id,
            title="Order Delivered",
            message="Order ORD-000001-001 has been delivered",
            type="order_delivered",
        )
        notifier.email(owner.email, "Order Delivered", "<p>done</p>")

        assert received == []
        assert mailer.sent == []

        db.commit()
        notifier.dispatch()

        assert [name for name, _ in received] == ["newNotification"]
        assert received[0][1]["user_id"] == owner.id
        assert mailer.sent == [(("owner@example.com",), "Order Delivered")]

    def test_discard_from_checkpoint(self, db, events, received):
        notifier = Notifier(db, events, mailer=RecordingMailer())
        notifier.emit("stockUpdated", {"product_id": 1})
        mark = notifier.checkpoint()
        notifier.emit("stockUpdated", {"product_id": 2})

        notifier.discard(mark)
        notifier.dispatch()

        assert [p["product_id"] for _, p in received] == [1]

    def test_low_stock_alert_emails_recipient(self, db, events, shop, owner, make_product):
        mailer = RecordingMailer()
        notifier = Notifier(db, events, mailer=mailer)
        p = make_product(shop, name="Greek Yogurt", current_stock=3, unit="piece")

        n = notifier.send_low_stock(p, owner)
        db.commit()
        notifier.dispatch()

        stored = db.get(Notification, n.id)
        assert stored.priority == "high"
        assert "Current stock: 3 piece" in stored.message
        assert mailer.sent == [(("owner@example.com",), "Low Stock Alert")]
