import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy.orm import Session

from cfa_practice.core.config import settings
from cfa_practice.models.orm import User, utcnow, as_utc
from cfa_practice.services import storage

logger = logging.getLogger(__name__)

def next_streak(current: int, last_login: Optional[datetime], now: datetime) -> int:
    """Same calendar day keeps the streak, the following day extends it, any gap restarts at 1."""
    if last_login is None:
        return 1
    gap = (now.date() - as_utc(last_login).date()).days
    if gap <= 0:
        return max(current, 1)
    if gap == 1:
        return current + 1
    return 1

def record_login(db: Session, user: User) -> User:
    streak = next_streak(user.streak_days, user.last_login_date, utcnow())
    return storage.update_user_streak(db, user, streak)

def generate_reset_code() -> str:
    return f"{secrets.randbelow(900000) + 100000}"

def issue_reset_code(db: Session, user: User) -> str:
    code = generate_reset_code()
    storage.update_user(db, user, {
        "reset_password_token": code,
        "reset_password_expires": utcnow() + timedelta(minutes=settings.RESET_CODE_TTL_MINUTES),
    })
    logger.info(f"Issued password reset code for user {user.id}")
    return code

def find_user_with_valid_code(db: Session, email: str, code: str) -> Optional[User]:
    user = storage.get_user_by_email(db, email)
    if user is None or not user.reset_password_token or not user.reset_password_expires:
        return None
    if not secrets.compare_digest(user.reset_password_token, code):
        return None
    if as_utc(user.reset_password_expires) < utcnow():
        return None
    return user
