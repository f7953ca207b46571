import logging
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from sqlalchemy.orm import Session
from cfa_practice.core.auth import get_current_user, get_optional_user, hash_password, verify_password
from cfa_practice.core.cache import rate_limit
from cfa_practice.core.config import settings
from cfa_practice.core.database import get_db
from cfa_practice.models.orm import User, utcnow
from cfa_practice.models.schemas import UserOut
from cfa_practice.services import storage
from cfa_practice.services.accounts import issue_reset_code, find_user_with_valid_code
from cfa_practice.services.email import send_password_reset_email, send_contact_form_email

logger = logging.getLogger(__name__)

router = APIRouter()

reset_limit = rate_limit("password_reset", settings.RATE_LIMIT_RESET_PER_HOUR, 3600)

DEFAULT_NOTIFICATIONS = {"practiceReminders": True, "newContentAlerts": True, "progressUpdates": False}

class UpdateProfile(BaseModel):
    username: Optional[str] = Field(default=None, min_length=3, max_length=50)
    email: Optional[EmailStr] = None

class UpdateNotifications(BaseModel):
    practiceReminders: Optional[bool] = None
    newContentAlerts: Optional[bool] = None
    progressUpdates: Optional[bool] = None

class ChangePassword(BaseModel):
    currentPassword: str = Field(min_length=settings.PASSWORD_MIN_LENGTH)
    newPassword: str = Field(min_length=settings.PASSWORD_MIN_LENGTH, max_length=100)

class ContactForm(BaseModel):
    subject: str = Field(min_length=5, max_length=100)
    message: str = Field(min_length=10)

class ForgotPassword(BaseModel):
    email: EmailStr

class VerifyResetCode(BaseModel):
    email: EmailStr
    resetCode: str = Field(min_length=1)

class ResetPassword(VerifyResetCode):
    newPassword: str = Field(min_length=settings.PASSWORD_MIN_LENGTH, max_length=100)

@router.put("/updateProfile")
def update_profile(payload: UpdateProfile, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    data = payload.model_dump(exclude_none=True)
    if "username" in data:
        owner = storage.username_owner(db, data["username"])
        if owner is not None and owner != user.id: raise HTTPException(400, "Username already exists")
    storage.update_user(db, user, data)
    storage.create_user_activity(db, user.id, "profile_updated", details={"changes": sorted(data), "timestamp": utcnow().isoformat()})
    db.commit()
    return {"user": UserOut.model_validate(user).model_dump(by_alias=True), "message": "Profile updated successfully"}

@router.get("/notifications")
def get_notifications(user: User = Depends(get_current_user)):
    return {"preferences": {**DEFAULT_NOTIFICATIONS, **(user.notification_preferences or {})}}

@router.put("/updateNotifications")
def update_notifications(payload: UpdateNotifications, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    preferences = {**DEFAULT_NOTIFICATIONS, **(user.notification_preferences or {}), **payload.model_dump(exclude_none=True)}
    storage.update_user(db, user, {"notification_preferences": preferences})
    storage.create_user_activity(db, user.id, "notification_settings_updated", details={"timestamp": utcnow().isoformat()})
    db.commit()
    return {"preferences": preferences, "message": "Notification preferences updated successfully"}

@router.put("/changePassword")
def change_password(payload: ChangePassword, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not verify_password(payload.currentPassword, user.password):
        raise HTTPException(400, "Current password is incorrect")
    storage.update_user(db, user, {"password": hash_password(payload.newPassword)})
    storage.create_user_activity(db, user.id, "password_changed", details={"timestamp": utcnow().isoformat()})
    db.commit()
    return {"message": "Password changed successfully"}

@router.post("/contactSupport")
def contact_support(payload: ContactForm, user: Optional[User] = Depends(get_optional_user), db: Session = Depends(get_db)):
    user_info = {"name": user.username, "email": user.email or "No email provided"} if user else None
    if not send_contact_form_email(payload.subject, payload.message, user_info):
        raise HTTPException(500, "Failed to send message")
    if user:
        storage.create_user_activity(db, user.id, "contact_support", details={"subject": payload.subject, "timestamp": utcnow().isoformat()})
        db.commit()
    return {"message": "Message sent successfully"}

@router.post("/forgot-password", dependencies=[Depends(reset_limit)])
def forgot_password(payload: ForgotPassword, db: Session = Depends(get_db)):
    user = storage.get_user_by_email(db, payload.email)
    if user:
        code = issue_reset_code(db, user)
        db.commit()
        send_password_reset_email(payload.email, code)
    # same answer either way so accounts cannot be enumerated
    return {"message": "If the email exists in our system, a reset code has been sent."}

@router.post("/verify-reset-code", dependencies=[Depends(reset_limit)])
def verify_reset_code(payload: VerifyResetCode, db: Session = Depends(get_db)):
    if not find_user_with_valid_code(db, payload.email, payload.resetCode):
        raise HTTPException(400, "Invalid or expired reset code")
    return {"message": "Reset code verified"}

@router.post("/reset-password", dependencies=[Depends(reset_limit)])
def reset_password(payload: ResetPassword, db: Session = Depends(get_db)):
    user = find_user_with_valid_code(db, payload.email, payload.resetCode)
    if not user:
        raise HTTPException(400, "Invalid or expired reset code")
    storage.update_user(db, user, {"password": hash_password(payload.newPassword), "reset_password_token": None, "reset_password_expires": None})
    storage.create_user_activity(db, user.id, "password_reset", details={"timestamp": utcnow().isoformat()})
    db.commit()
    logger.info(f"Password reset completed for user {user.id}")
    return {"message": "Password has been reset successfully"}
