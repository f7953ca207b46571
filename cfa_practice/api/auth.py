from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from sqlalchemy.orm import Session
from cfa_practice.core.auth import hash_password, verify_password, login_session, logout_session, get_current_user
from cfa_practice.core.cache import rate_limit
from cfa_practice.core.config import settings
from cfa_practice.core.database import get_db
from cfa_practice.models.orm import User
from cfa_practice.models.schemas import UserOut
from cfa_practice.services import storage
from cfa_practice.services.accounts import record_login

router = APIRouter()

login_limit = rate_limit("login", settings.RATE_LIMIT_LOGIN_PER_MINUTE, 60)

class RegisterIn(BaseModel):
    username: str = Field(min_length=3, max_length=50)
    password: str = Field(min_length=settings.PASSWORD_MIN_LENGTH, max_length=100)
    email: Optional[EmailStr] = None
    level: Optional[str] = None

class LoginIn(BaseModel):
    username: str
    password: str

@router.post("/register", response_model=UserOut, status_code=201, dependencies=[Depends(login_limit)])
def register(payload: RegisterIn, request: Request, db: Session = Depends(get_db)):
    if storage.username_owner(db, payload.username) is not None:
        raise HTTPException(400, "Username already exists")
    user = storage.create_user(db, payload.username, hash_password(payload.password), email=payload.email, level=payload.level)
    storage.update_user_streak(db, user, 1)
    db.commit()
    login_session(request, user)
    return user

@router.post("/login", response_model=UserOut, dependencies=[Depends(login_limit)])
def login(payload: LoginIn, request: Request, db: Session = Depends(get_db)):
    user = storage.get_user_by_username(db, payload.username)
    if not user or not verify_password(payload.password, user.password):
        raise HTTPException(401, "Invalid username or password")
    record_login(db, user)
    db.commit()
    login_session(request, user)
    return user

@router.post("/logout")
def logout(request: Request):
    logout_session(request)
    return {"message": "Logged out"}

@router.get("/user", response_model=UserOut)
def current_user(user: User = Depends(get_current_user)):
    return user
