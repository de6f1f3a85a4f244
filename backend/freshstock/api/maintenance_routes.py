# backend/freshstock/api/maintenance_routes.py

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from freshstock.api.deps_auth import get_app_settings, get_db, get_notifier, require_manager
from freshstock.core.config import Settings
from freshstock.models.user import User
from freshstock.services.notifications import Notifier
from freshstock.services.sweeps import auto_renew_stock, check_low_stock

router = APIRouter()


@router.post("/low-stock-check")
def low_stock_check(
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    _user: User = Depends(require_manager),
):
    summary = check_low_stock(db, notifier)
    return {"message": "Low stock check executed", "summary": summary}


@router.post("/auto-renew")
def auto_renew(
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    _user: User = Depends(require_manager),
    settings: Settings = Depends(get_app_settings),
):
    summary = auto_renew_stock(db, notifier, settings)
    return {"message": "Automatic stock renewal executed", "summary": summary}
