import logging
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from typing import Optional
from sqlalchemy.orm import Session
from cfa_practice.core.auth import get_current_user, require_premium
from cfa_practice.core.config import settings
from cfa_practice.core.database import get_db
from cfa_practice.models.orm import User, utcnow
from cfa_practice.services import storage
from cfa_practice.services.payments import (
    SUBSCRIPTION_PLANS, RazorpayClient, get_gateway, verify_payment_signature,
    create_subscription_order, capture_payment, payment_summary,
)

logger = logging.getLogger(__name__)

router = APIRouter()

class CreateOrder(BaseModel):
    planId: str = Field(min_length=1)

class VerifyPayment(BaseModel):
    razorpay_order_id: str = Field(min_length=1)
    razorpay_payment_id: str = Field(min_length=1)
    razorpay_signature: str = Field(min_length=1)

class CancelSubscription(BaseModel):
    reason: Optional[str] = None

PREMIUM_CONTENT = [
    {"id": 1, "title": "Advanced CFA Level 1 Strategies",
     "description": "Exclusive strategies to tackle the most challenging CFA Level 1 topics"},
    {"id": 2, "title": "Mock Exam Bundle",
     "description": "Full-length mock exams with detailed solutions and performance analysis"},
    {"id": 3, "title": "Expert Q&A Sessions",
     "description": "Recorded Q&A sessions with CFA charterholders"},
]

@router.get("/subscription/plans")
def list_plans():
    return list(SUBSCRIPTION_PLANS.values())

@router.post("/subscription/create-order")
def create_order(payload: CreateOrder, user: User = Depends(get_current_user), db: Session = Depends(get_db),
                 gateway: RazorpayClient = Depends(get_gateway)):
    order = create_subscription_order(db, gateway, user, payload.planId)
    return {
        "order_id": order["orderId"],
        "amount": order["amount"],
        "currency": order["currency"],
        "key_id": settings.RAZORPAY_KEY_ID,
        "plan_type": order["planType"],
    }

@router.post("/subscription/verify-payment")
def verify_payment(payload: VerifyPayment, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not verify_payment_signature(payload.razorpay_order_id, payload.razorpay_payment_id, payload.razorpay_signature):
        logger.warning(f"Payment signature verification failed for user {user.id} order {payload.razorpay_order_id}")
        raise HTTPException(400, "Invalid payment signature")
    capture_payment(db, user, payload.razorpay_order_id, payload.razorpay_payment_id, payload.razorpay_signature)
    return {"success": True, "message": "Payment verified successfully", "premium_activated": True}

@router.get("/subscription/status")
def subscription_status(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    payments = storage.list_user_payments(db, user.id)
    latest = next((p for p in payments if p.status in ("captured", "authorized")), None)
    return {
        "is_premium": user.is_premium,
        "payment_history": [payment_summary(p) for p in payments],
        "latest_payment": payment_summary(latest) if latest else None,
    }

@router.post("/subscription/cancel")
def cancel_subscription(payload: Optional[CancelSubscription] = None, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    # Razorpay orders are one-off; cancelling only revokes premium access
    storage.update_user_premium_status(db, user, False)
    storage.create_user_activity(db, user.id, "subscription_cancelled", details={
        "timestamp": utcnow().isoformat(),
        "reason": (payload.reason if payload and payload.reason else "User initiated cancellation"),
    })
    db.commit()
    logger.info(f"Subscription cancelled for user {user.id}")
    return {"success": True, "message": "Subscription cancelled successfully", "is_premium": False}

@router.get("/premium-content")
def premium_content(user: User = Depends(require_premium)):
    return {"message": "You have access to premium content", "premium_content": PREMIUM_CONTENT}
