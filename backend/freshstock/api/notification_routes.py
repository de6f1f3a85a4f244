# backend/freshstock/api/notification_routes.py

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from freshstock.api.deps_auth import get_current_user, get_db
from freshstock.models.notification import Notification as NotificationModel
from freshstock.models.user import User

router = APIRouter()


class Notification(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    message: str
    type: str
    priority: str
    data: Dict[str, Any]
    is_read: bool
    business_id: Optional[int] = None
    created_at: Optional[datetime] = None


@router.get("", response_model=List[Notification])
def list_notifications(
    unread_only: bool = False,
    limit: int = 50,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    limit = max(1, min(limit, 200))

    q = db.query(NotificationModel).filter(NotificationModel.recipient_id == user.id)
    if unread_only:
        q = q.filter(NotificationModel.is_read == False)  # noqa: E712

    return q.order_by(NotificationModel.id.desc()).limit(limit).all()


@router.patch("/{notification_id}/read", response_model=Notification)
def mark_read(
    notification_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    n = db.get(NotificationModel, notification_id)
    if not n or n.recipient_id != user.id:
        raise HTTPException(status_code=404, detail="Notification not found")

    n.is_read = True
    db.commit()
    db.refresh(n)
    return n
