"""
Razorpay integration: subscription plans, order creation and payment signature checks.
"""
import hashlib
import hmac
import logging
import time
from typing import Any, Dict, Optional

import httpx
from sqlalchemy.orm import Session

from cfa_practice.core.config import settings
from cfa_practice.core.errors import ConflictError, InvalidInputError, NotFoundError, PaymentGatewayError
from cfa_practice.models.orm import Payment, User
from cfa_practice.services import storage

logger = logging.getLogger(__name__)

SUBSCRIPTION_PLANS: Dict[str, Dict[str, Any]] = {
    "monthly": {
        "id": "monthly",
        "name": "Monthly Subscription",
        "description": "Access to all premium features for one month",
        "amount": 499,
        "currency": "INR",
        "duration": "1 month",
    },
    "quarterly": {
        "id": "quarterly",
        "name": "Quarterly Subscription",
        "description": "Access to all premium features for three months",
        "amount": 1299,
        "currency": "INR",
        "duration": "3 months",
    },
    "yearly": {
        "id": "yearly",
        "name": "Annual Subscription",
        "description": "Access to all premium features for one year",
        "amount": 4999,
        "currency": "INR",
        "duration": "1 year",
    },
}

class RazorpayClient:
    """Thin client for the Razorpay Orders API."""

    def __init__(self, key_id: str, key_secret: str, base_url: str, timeout: float = 10.0):
        self.key_id = key_id
        self.key_secret = key_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def create_order(self, amount: int, currency: str, receipt: str, notes: Dict[str, str]) -> Dict[str, Any]:
        """Create an order; `amount` is in the smallest currency unit (paise)."""
        try:
            r = httpx.post(
                f"{self.base_url}/orders",
                auth=(self.key_id, self.key_secret),
                json={"amount": amount, "currency": currency, "receipt": receipt, "notes": notes},
                timeout=self.timeout,
            )
            r.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Error creating Razorpay order: {e}")
            raise PaymentGatewayError("Failed to create payment order") from e
        return r.json()

def get_gateway() -> RazorpayClient:
    return RazorpayClient(settings.RAZORPAY_KEY_ID, settings.RAZORPAY_KEY_SECRET.get_secret_value(),
                          settings.RAZORPAY_API_URL, settings.RAZORPAY_TIMEOUT)

def verify_payment_signature(order_id: str, payment_id: str, signature: str, secret: Optional[str] = None) -> bool:
    secret = secret if secret is not None else settings.RAZORPAY_KEY_SECRET.get_secret_value()
    expected = hmac.new(secret.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)

def create_subscription_order(db: Session, gateway: RazorpayClient, user: User, plan_id: str) -> Dict[str, Any]:
    plan = SUBSCRIPTION_PLANS.get(plan_id)
    if plan is None:
        raise InvalidInputError(f"Invalid plan: {plan_id}")
    order = gateway.create_order(
        amount=plan["amount"] * 100,
        currency=plan["currency"],
        receipt=f"receipt_order_{user.id}_{int(time.time() * 1000)}",
        notes={"userId": str(user.id), "planId": plan["id"]},
    )
    storage.create_payment(db, {
        "user_id": user.id,
        "status": "created",
        "amount": plan["amount"],
        "currency": plan["currency"],
        "razorpay_order_id": order["id"],
        "plan_type": plan["id"],
        "payment_metadata": {"planDetails": plan},
    })
    db.commit()
    logger.info(f"Created order {order['id']} for user {user.id} plan {plan['id']}")
    return {"orderId": order["id"], "amount": plan["amount"], "currency": plan["currency"], "planType": plan["id"]}

def capture_payment(db: Session, user: User, order_id: str, payment_id: str, signature: str) -> Payment:
    """Mark a signature-verified order as captured and grant premium access."""
    payment = storage.get_payment_by_order_id(db, order_id)
    if payment is None or payment.user_id != user.id:
        raise NotFoundError("Payment record not found")
    if not storage.capture_created_payment(db, payment, payment_id, signature):
        logger.warning(f"Rejected replay of order {order_id} for user {user.id}")
        raise ConflictError("Payment already processed")
    storage.update_user_premium_status(db, user, True)
    storage.create_user_activity(db, user.id, "subscription_purchased", details={
        "planType": payment.plan_type,
        "orderId": order_id,
        "amount": payment.amount,
    })
    db.commit()
    logger.info(f"Payment {payment_id} captured for user {user.id}; premium activated")
    return payment

def payment_summary(p: Payment) -> Dict[str, Any]:
    return {
        "id": p.id,
        "status": p.status,
        "amount": p.amount,
        "currency": p.currency,
        "plan_type": p.plan_type,
        "created_at": p.created_at,
    }
