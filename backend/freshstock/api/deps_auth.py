# backend/freshstock/api/deps_auth.py

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session, sessionmaker

from freshstock.core.config import Settings, get_settings
from freshstock.core.database import SessionLocal
from freshstock.core.email import EmailService
from freshstock.core.events import EventBus, event_bus
from freshstock.core.security import decode_token
from freshstock.models.user import User as UserModel
from freshstock.services.notifications import Notifier

# ✅ This is ONLY used by Swagger UI for the "Authorize" flow.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token")

WRITE_ROLES = ("owner", "manager")


def get_session_factory() -> sessionmaker:
    return SessionLocal


def get_db(session_factory: sessionmaker = Depends(get_session_factory)):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


def get_events() -> EventBus:
    return event_bus


def get_app_settings() -> Settings:
    return get_settings()


def get_notifier(
    db: Session = Depends(get_db),
    events: EventBus = Depends(get_events),
    settings: Settings = Depends(get_app_settings),
) -> Notifier:
    return Notifier(db, events, EmailService(settings))


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> UserModel:
    cred_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not token or not isinstance(token, str):
        raise cred_exc

    try:
        payload = decode_token(token)
    except ValueError:
        raise cred_exc

    # sub is the user id
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise cred_exc

    user = db.get(UserModel, user_id)
    if not user or not user.is_active:
        raise cred_exc

    return user


def get_tenant_user(user: UserModel = Depends(get_current_user)) -> UserModel:
    if not user.business_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No current business selected. Please create or select a business first.",
        )
    return user


def require_manager(user: UserModel = Depends(get_tenant_user)) -> UserModel:
    if user.role not in WRITE_ROLES:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Manager role required")
    return user
