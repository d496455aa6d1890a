from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from budgetwatch.core.auth import create_session_token, get_current_user, hash_password, verify_password
from budgetwatch.core.config import settings
from budgetwatch.db.session import get_db
from budgetwatch.models.user import User

router = APIRouter(prefix="/auth", tags=["auth"])


class RegisterRequest(BaseModel):
    username: str = Field(min_length=1, max_length=64)
    email: str = Field(min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(min_length=1, max_length=128)
    name: str | None = Field(None, max_length=128)


class LoginRequest(BaseModel):
    username: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=1, max_length=128)


def _user_payload(user: User) -> dict:
    return {
        "id": str(user.id),
        "username": user.username,
        "email": user.email,
        "name": user.name,
    }


def _set_session_cookie(response: Response, user: User) -> None:
    token = create_session_token(user_id=str(user.id), username=user.username)
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token,
        httponly=True,
        samesite="lax",
        secure=settings.app_env.lower() == "prod",
        max_age=int(settings.auth_session_hours * 3600),
        path="/",
    )


@router.post("/register", status_code=201)
def register(payload: RegisterRequest, response: Response, db: Session = Depends(get_db)) -> dict:
    username = payload.username.strip()
    if not username:
        raise HTTPException(status_code=400, detail="Username cannot be empty")
    taken = db.execute(select(User).where(func.lower(User.username) == username.lower())).scalars().first()
    if taken:
        raise HTTPException(status_code=409, detail="Username already exists")
    try:
        password_hash, password_salt = hash_password(payload.password)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    user = User(
        username=username,
        email=payload.email.strip().lower(),
        name=(payload.name or "").strip() or None,
        password_hash=password_hash,
        password_salt=password_salt,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    _set_session_cookie(response, user)
    return {"ok": True, "user": _user_payload(user)}


@router.post("/login")
def login(payload: LoginRequest, response: Response, db: Session = Depends(get_db)) -> dict:
    username = payload.username.strip()
    user = db.execute(select(User).where(func.lower(User.username) == username.lower())).scalars().first()
    if not user or not user.is_active or not verify_password(payload.password, user.password_hash, user.password_salt):
        raise HTTPException(status_code=401, detail="Invalid username or password")
    _set_session_cookie(response, user)
    return {"ok": True, "user": _user_payload(user)}


@router.post("/logout")
def logout(response: Response) -> dict:
    response.delete_cookie(key=settings.auth_cookie_name, path="/")
    return {"ok": True}


@router.get("/me")
def me(current=Depends(get_current_user), db: Session = Depends(get_db)) -> dict:
    user = db.get(User, current.id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return {"authenticated": True, "user": _user_payload(user)}
