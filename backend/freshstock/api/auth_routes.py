# backend/freshstock/api/auth_routes.py

from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from freshstock.api.deps_auth import get_current_user, get_db
from freshstock.core.security import create_access_token, hash_password, verify_password
from freshstock.models.business import BUSINESS_TYPES, Business, BusinessMember
from freshstock.models.user import User

router = APIRouter()


class LoginIn(BaseModel):
    username: str
    password: str


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    name: str
    email: Optional[str] = None
    role: str
    business_id: Optional[int] = None


class LoginOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


def _authenticate(db: Session, username: str, password: str) -> LoginOut:
    user = db.query(User).filter(User.username == username.strip()).first()
    if not user or not user.is_active or not verify_password(password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid username or password")

    token = create_access_token({"sub": str(user.id), "role": user.role})
    return LoginOut(access_token=token, user=UserOut.model_validate(user))


# JSON login (frontend)
@router.post("/login", response_model=LoginOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    return _authenticate(db, payload.username, payload.password)


# OAuth2 form endpoint (Swagger Authorize uses this)
@router.post("/token", response_model=LoginOut)
def token(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    return _authenticate(db, form_data.username or "", form_data.password or "")


@router.get("/me", response_model=UserOut)
def me(current_user: User = Depends(get_current_user)):
    return UserOut.model_validate(current_user)


# --- onboarding: registration and business membership ---


class RegisterIn(BaseModel):
    username: str = Field(min_length=3)
    name: str = Field(min_length=2)
    email: str
    password: str = Field(min_length=6)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v or v.startswith("@") or v.endswith("@"):
            raise ValueError("Please provide a valid email")
        return v


class BusinessCreate(BaseModel):
    name: str = Field(min_length=2)
    description: Optional[str] = None
    business_type: Literal[BUSINESS_TYPES] = "grocery"


class BusinessOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    business_type: str
    is_active: bool


class MembershipOut(BaseModel):
    business: BusinessOut
    role: str
    is_current: bool


@router.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    username = payload.username.strip()
    email = payload.email
    taken = (
        db.query(User)
        .filter(or_(User.username == username, func.lower(User.email) == email))
        .first()
    )
    if taken:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User already exists")

    # no business yet: the user creates or joins one next
    user = User(
        username=username,
        name=payload.name.strip(),
        email=email,
        role="viewer",
        password_hash=hash_password(payload.password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return UserOut.model_validate(user)


@router.post("/business", status_code=status.HTTP_201_CREATED)
def create_business(
    payload: BusinessCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    business = Business(
        name=payload.name.strip(),
        description=payload.description,
        business_type=payload.business_type,
    )
    db.add(business)
    db.flush()
    db.add(BusinessMember(business_id=business.id, user_id=current_user.id, role="owner"))

    if not current_user.business_id:
        current_user.business_id = business.id
        current_user.role = "owner"

    db.commit()
    db.refresh(business)
    return {
        "message": "Business created successfully",
        "business": BusinessOut.model_validate(business),
        "user": UserOut.model_validate(current_user),
    }


@router.put("/business/{business_id}/switch")
def switch_business(
    business_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    membership = (
        db.query(BusinessMember)
        .join(Business, Business.id == BusinessMember.business_id)
        .filter(
            BusinessMember.business_id == business_id,
            BusinessMember.user_id == current_user.id,
            Business.is_active.is_(True),
        )
        .first()
    )
    if not membership:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied to this business")

    current_user.business_id = membership.business_id
    current_user.role = membership.role
    db.commit()
    db.refresh(current_user)

    # the role claim changed, so hand back a fresh token
    token = create_access_token({"sub": str(current_user.id), "role": current_user.role})
    return {
        "message": "Business switched successfully",
        "access_token": token,
        "user": UserOut.model_validate(current_user),
    }


@router.get("/businesses")
def list_businesses(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    rows = (
        db.query(BusinessMember, Business)
        .join(Business, Business.id == BusinessMember.business_id)
        .filter(BusinessMember.user_id == current_user.id, Business.is_active.is_(True))
        .order_by(Business.name)
        .all()
    )
    return {
        "businesses": [
            MembershipOut(
                business=BusinessOut.model_validate(business),
                role=member.role,
                is_current=business.id == current_user.business_id,
            )
            for member, business in rows
        ]
    }
