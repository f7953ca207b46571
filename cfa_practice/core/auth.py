from fastapi import Depends, HTTPException, Request, status
from passlib.context import CryptContext
from sqlalchemy.orm import Session
from cfa_practice.core.database import get_db
from cfa_practice.models.orm import User

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

SESSION_USER_KEY = "user_id"

def hash_password(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)

def login_session(request: Request, user: User) -> None:
    request.session.clear()
    request.session[SESSION_USER_KEY] = user.id

def logout_session(request: Request) -> None:
    request.session.clear()

def get_optional_user(request: Request, db: Session = Depends(get_db)) -> User | None:
    user_id = request.session.get(SESSION_USER_KEY)
    if user_id is None:
        return None
    user = db.get(User, user_id)
    if not user or user.is_deleted:
        request.session.clear()
        return None
    return user

def get_current_user(user: User | None = Depends(get_optional_user)) -> User:
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return user

def require_roles(*required: str):
    def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in required:
            raise HTTPException(status_code=403, detail="Unauthorized. Admin access required." if required == ("admin",) else "Insufficient role")
        return user
    return checker

def require_premium(user: User = Depends(get_current_user)) -> User:
    if not user.is_premium:
        raise HTTPException(status_code=403, detail={"message": "Premium subscription required", "requiresUpgrade": True})
    return user

def ensure_self_or_admin(user: User, user_id: int) -> None:
    if user.id != user_id and user.role != "admin":
        raise HTTPException(status_code=403, detail="Not allowed to access another user's data")
