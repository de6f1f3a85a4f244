"""Tests for scheduler wiring and the job runners."""

from freshstock.core import scheduler as scheduler_module
from freshstock.core.email import EmailService
from freshstock.core.scheduler import build_scheduler, run_auto_renew, run_auto_reorder, run_low_stock_check
from freshstock.models.notification import Notification
from freshstock.models.order import Order


class TestBuildScheduler:
    def test_registers_stock_jobs(self, settings, session_factory, events):
        scheduler = build_scheduler(settings, session_factory, events)

        assert not scheduler.running
        assert sorted(job.id for job in scheduler.get_jobs()) == [
            "auto_stock_renewal",
            "daily_stock_check",
            "frequent_auto_reorder",
            "hourly_stock_check",
        ]

    def test_cron_expressions_come_from_settings(self, settings, session_factory, events):
        settings.auto_reorder_cron = "*/5 * * * *"
        scheduler = build_scheduler(settings, session_factory, events)

        job = next(j for j in scheduler.get_jobs() if j.id == "frequent_auto_reorder")
        assert "*/5" in str(job.trigger)


class TestJobRunners:
    def test_runners_use_their_own_session(self, db, session_factory, events, settings, shop, owner, make_product):
        make_product(shop, current_stock=2)

        assert run_low_stock_check(settings, session_factory, events)["notifications"] == 1
        assert run_auto_reorder(settings, session_factory, events)["orders_created"] == 1
        assert run_auto_renew(settings, session_factory, events)["orders_created"] == 1

        assert db.query(Order).count() == 2
        assert db.query(Notification).filter_by(type="low_stock").count() == 1

    def test_setup_failure_is_logged_not_raised(self, settings, session_factory, events, monkeypatch):
        def broken(db, notifier):
            raise RuntimeError("database unavailable")

        monkeypatch.setattr(scheduler_module, "check_low_stock", broken)

        assert run_low_stock_check(settings, session_factory, events) is None

    def test_alert_emails_use_the_given_settings(
        self, session_factory, events, settings, shop, owner, make_product, monkeypatch
    ):
        seen = []

        def fake_send(self, to_emails, subject, html_content):
            seen.append((self.settings.send_emails, to_emails))
            return True

        monkeypatch.setattr(EmailService, "send_email", fake_send)
        settings.send_emails = True
        make_product(shop, current_stock=2)

        run_low_stock_check(settings, session_factory, events)

        assert seen == [(True, ["owner@example.com"])]
