from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, EmailStr, Field
from typing import List, Literal, Optional
from sqlalchemy.orm import Session
from cfa_practice.core.auth import require_roles, hash_password
from cfa_practice.core.config import settings
from cfa_practice.core.database import get_db
from cfa_practice.models.orm import User
from cfa_practice.models.schemas import UserOut
from cfa_practice.services import storage

router = APIRouter()

class UserAdminUpdate(BaseModel):
    username: Optional[str] = Field(default=None, min_length=3, max_length=50)
    email: Optional[EmailStr] = None
    level: Optional[str] = None
    role: Optional[Literal["student", "admin"]] = None
    isPremium: Optional[bool] = None
    password: Optional[str] = Field(default=None, min_length=settings.PASSWORD_MIN_LENGTH, max_length=100)

@router.get("", response_model=List[UserOut], dependencies=[Depends(require_roles("admin"))])
def list_users(db: Session = Depends(get_db)):
    return storage.list_users(db)

@router.patch("/{user_id}", response_model=UserOut, dependencies=[Depends(require_roles("admin"))])
def update_user(user_id: int, payload: UserAdminUpdate, db: Session = Depends(get_db)):
    user = storage.get_user(db, user_id)
    if not user: raise HTTPException(404, "User not found")
    data = payload.model_dump(exclude_none=True)
    if "username" in data:
        owner = storage.username_owner(db, data["username"])
        if owner is not None and owner != user_id: raise HTTPException(400, "Username already exists")
    if "password" in data: data["password"] = hash_password(data["password"])
    if "isPremium" in data: data["is_premium"] = data.pop("isPremium")
    storage.update_user(db, user, data)
    db.commit()
    return user

@router.delete("/{user_id}", status_code=204)
def delete_user(user_id: int, admin: User = Depends(require_roles("admin")), db: Session = Depends(get_db)):
    user = storage.get_user(db, user_id)
    if not user: raise HTTPException(404, "User not found")
    if user.id == admin.id: raise HTTPException(400, "Admins cannot delete their own account")
    storage.delete_user(db, user)
    db.commit()
    return Response(status_code=204)
