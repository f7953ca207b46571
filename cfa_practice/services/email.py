"""
Development mail sink: messages are written to the log instead of being delivered.
"""
import logging
from typing import Optional, Dict
from cfa_practice.core.config import settings

logger = logging.getLogger(__name__)

def send_email(to: str, subject: str, text: str) -> bool:
    logger.info(f"----- Email would have been sent -----\nFrom: {settings.MAIL_FROM}\nTo: {to}\nSubject: {subject}\n{text}")
    return True

def send_password_reset_email(email: str, reset_code: str) -> bool:
    text = (
        "Hello,\n\n"
        "You recently requested to reset your password for your CFA Practice Hub account.\n\n"
        f"Your reset code is: {reset_code}\n\n"
        f"This code will expire in {settings.RESET_CODE_TTL_MINUTES} minutes. "
        "If you did not request a password reset, please ignore this email.\n"
    )
    return send_email(email, "CFA Practice Hub - Password Reset", text)

def send_contact_form_email(subject: str, message: str, user_info: Optional[Dict[str, str]] = None) -> bool:
    sender = f"{user_info['name']} <{user_info['email']}>" if user_info else "Anonymous user"
    return send_email(settings.SUPPORT_EMAIL, f"Contact Form: {subject}", f"From: {sender}\n\n{message}")
