# backend/freshstock/core/scheduler.py

import logging
from typing import Callable, Dict, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.orm import Session, sessionmaker

from freshstock.core.config import Settings, settings as default_settings
from freshstock.core.database import SessionLocal
from freshstock.core.email import EmailService
from freshstock.core.events import EventBus, event_bus
from freshstock.services.notifications import Notifier
from freshstock.services.sweeps import auto_renew_stock, check_and_auto_reorder, check_low_stock

logger = logging.getLogger(__name__)


def _run(
    name: str,
    sweep: Callable[[Session, Notifier], Dict[str, int]],
    settings: Settings,
    session_factory: sessionmaker,
    events: EventBus,
) -> Optional[Dict[str, int]]:
    db = session_factory()
    try:
        logger.info(f"Running {name}...")
        return sweep(db, Notifier(db, events, EmailService(settings)))
    except Exception:
        # sweeps handle per-item errors; this is a setup failure (db down, ...)
        logger.exception(f"{name} failed")
        return None
    finally:
        db.close()


def run_low_stock_check(
    settings: Settings = default_settings,
    session_factory: sessionmaker = SessionLocal,
    events: EventBus = event_bus,
) -> Optional[Dict[str, int]]:
    return _run("low stock check", check_low_stock, settings, session_factory, events)


def run_auto_reorder(
    settings: Settings = default_settings,
    session_factory: sessionmaker = SessionLocal,
    events: EventBus = event_bus,
) -> Optional[Dict[str, int]]:
    return _run(
        "auto-reorder check",
        lambda db, notifier: check_and_auto_reorder(db, notifier, settings),
        settings,
        session_factory,
        events,
    )


def run_auto_renew(
    settings: Settings = default_settings,
    session_factory: sessionmaker = SessionLocal,
    events: EventBus = event_bus,
) -> Optional[Dict[str, int]]:
    return _run(
        "automatic stock renewal",
        lambda db, notifier: auto_renew_stock(db, notifier, settings),
        settings,
        session_factory,
        events,
    )


def build_scheduler(
    settings: Settings = default_settings,
    session_factory: sessionmaker = SessionLocal,
    events: EventBus = event_bus,
) -> BackgroundScheduler:
    """Scheduler with the four stock jobs registered, not yet started."""
    scheduler = BackgroundScheduler(
        timezone=settings.scheduler_timezone,
        job_defaults={"coalesce": True, "max_instances": 1},
    )
    tz = settings.scheduler_timezone

    # same sweep on two schedules
    scheduler.add_job(
        run_low_stock_check,
        trigger=CronTrigger.from_crontab(settings.low_stock_hourly_cron, timezone=tz),
        kwargs={"settings": settings, "session_factory": session_factory, "events": events},
        id="hourly_stock_check",
        name="Hourly low stock check",
        replace_existing=True,
    )
    scheduler.add_job(
        run_low_stock_check,
        trigger=CronTrigger.from_crontab(settings.low_stock_daily_cron, timezone=tz),
        kwargs={"settings": settings, "session_factory": session_factory, "events": events},
        id="daily_stock_check",
        name="Daily low stock check",
        replace_existing=True,
    )
    scheduler.add_job(
        run_auto_renew,
        trigger=CronTrigger.from_crontab(settings.auto_renew_cron, timezone=tz),
        kwargs={"settings": settings, "session_factory": session_factory, "events": events},
        id="auto_stock_renewal",
        name="Supplier-grouped automatic stock renewal",
        replace_existing=True,
    )
    scheduler.add_job(
        run_auto_reorder,
        trigger=CronTrigger.from_crontab(settings.auto_reorder_cron, timezone=tz),
        kwargs={"settings": settings, "session_factory": session_factory, "events": events},
        id="frequent_auto_reorder",
        name="Real-time auto-reorder check",
        replace_existing=True,
    )
    return scheduler


def start_scheduler(settings: Settings = default_settings) -> Optional[BackgroundScheduler]:
    scheduler = build_scheduler(settings)
    try:
        scheduler.start()
        logger.info("✅ Scheduler started successfully")
        logger.info(f"Active jobs: {len(scheduler.get_jobs())}")
        return scheduler
    except Exception as e:
        logger.error(f"Failed to start scheduler: {e}")
        return None


def stop_scheduler(scheduler: Optional[BackgroundScheduler]) -> None:
    if scheduler is None:
        return
    try:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
    except Exception as e:
        logger.error(f"Error stopping scheduler: {e}")
