"""
Authentication router: login, company code verification and password change.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_user
from app.models.user import Company, User
from app.services.audit import log_action
from app.services.auth import create_access_token, get_password_hash, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


# ---------- schemas ----------

class VerifyCodeRequest(BaseModel):
    code: str

class VerifyCodeResponse(BaseModel):
    company_id: UUID
    company_name: str

class LoginRequest(BaseModel):
    email: str
    password: str
    company_code: str | None = None

class UserOut(BaseModel):
    user_id: UUID
    email: str
    name: str
    role: str
    company_id: UUID

class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut

class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(min_length=8)


def _user_out(user: User) -> UserOut:
    return UserOut(
        user_id=user.user_id,
        email=user.email,
        name=user.name,
        role=user.role,
        company_id=user.company_id,
    )


def _find_company(db: Session, code: str) -> Company | None:
    return (
        db.query(Company)
        .filter(Company.company_code == code.strip().lower(), Company.is_active.is_(True))
        .first()
    )


# ---------- endpoints ----------

@router.post("/verify-code", response_model=VerifyCodeResponse)
def verify_code(body: VerifyCodeRequest, db: Session = Depends(get_db)):
    company = _find_company(db, body.code)
    if not company:
        raise HTTPException(status_code=404, detail="Company code not found")
    return VerifyCodeResponse(company_id=company.company_id, company_name=company.name)


@router.post("/login", response_model=LoginResponse)
def login(body: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == body.email.strip().lower()).first()
    if not user or not verify_password(body.password, user.password_hash):
        logger.info("Failed login for %s", body.email.strip().lower())
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account disabled")

    # If company_code provided, verify the user belongs to that company
    if body.company_code:
        company = _find_company(db, body.company_code)
        if not company:
            raise HTTPException(status_code=404, detail="Company code not found")
        if user.company_id != company.company_id:
            raise HTTPException(status_code=403, detail="You do not belong to this company")

    return LoginResponse(access_token=create_access_token(user.user_id), user=_user_out(user))


@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)):
    return _user_out(user)


@router.post("/change-password")
def change_password(
    body: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not verify_password(body.current_password, user.password_hash):
        raise HTTPException(status_code=400, detail="Current password is incorrect")

    user.password_hash = get_password_hash(body.new_password)
    log_action(db, user.company_id, user.user_id, "PASSWORD_CHANGE", "User", user.user_id)
    db.commit()
    logger.info("Password changed for user %s", user.user_id)
    return {"ok": True, "message": "Password changed"}
