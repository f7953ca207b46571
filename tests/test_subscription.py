import hashlib
import hmac
import httpx
import pytest
from cfa_practice.core.errors import PaymentGatewayError
from cfa_practice.main import app
from cfa_practice.models.orm import ErrorLog, Payment
from cfa_practice.services import storage
from cfa_practice.services.payments import RazorpayClient, get_gateway, verify_payment_signature

SECRET = "test_secret"

class FakeGateway:
    def __init__(self):
        self.orders = []

    def create_order(self, amount, currency, receipt, notes):
        self.orders.append({"amount": amount, "currency": currency, "receipt": receipt, "notes": notes})
        return {"id": f"order_{len(self.orders)}", "amount": amount, "currency": currency, "status": "created"}

@pytest.fixture
def gateway():
    fake = FakeGateway()
    app.dependency_overrides[get_gateway] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_gateway, None)

def sign(order_id, payment_id, secret=SECRET):
    return hmac.new(secret.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()

def test_plans(client):
    plans = {p["id"]: p for p in client.get("/api/subscription/plans").json()}
    assert (plans["monthly"]["amount"], plans["quarterly"]["amount"], plans["yearly"]["amount"]) == (499, 1299, 4999)
    assert all(p["currency"] == "INR" for p in plans.values())

def test_signature_check():
    good = sign("order_1", "pay_1")
    assert verify_payment_signature("order_1", "pay_1", good, secret=SECRET)
    assert not verify_payment_signature("order_1", "pay_2", good, secret=SECRET)
    assert not verify_payment_signature("order_1", "pay_1", sign("order_1", "pay_1", "other"), secret=SECRET)

def test_create_order_in_paise(student_client, student, gateway, db):
    r = student_client.post("/api/subscription/create-order", json={"planId": "quarterly"})
    assert r.status_code == 200
    body = r.json()
    assert body["order_id"] == "order_1" and body["amount"] == 1299 and body["plan_type"] == "quarterly"
    assert gateway.orders[0]["amount"] == 129900 and gateway.orders[0]["notes"]["userId"] == str(student.id)
    p = db.query(Payment).one()
    assert p.status == "created" and p.user_id == student.id and p.razorpay_order_id == "order_1"

def test_unknown_plan_and_login_required(client, student_client, gateway):
    assert student_client.post("/api/subscription/create-order", json={"planId": "weekly"}).status_code == 400
    assert client.post("/api/subscription/create-order", json={"planId": "monthly"}).status_code == 401

def test_verify_payment_activates_premium(student_client, student, gateway, db):
    student_client.post("/api/subscription/create-order", json={"planId": "monthly"})
    r = student_client.post("/api/subscription/verify-payment", json={
        "razorpay_order_id": "order_1", "razorpay_payment_id": "pay_9", "razorpay_signature": sign("order_1", "pay_9")})
    assert r.status_code == 200 and r.json()["premium_activated"] is True
    assert student_client.get("/api/user").json()["isPremium"] is True
    status = student_client.get("/api/subscription/status").json()
    assert status["is_premium"] is True and status["latest_payment"]["status"] == "captured"
    assert len(status["payment_history"]) == 1
    assert storage.count_user_activity(db, student.id, "subscription_purchased") == 1
    assert student_client.get("/api/premium-content").status_code == 200

def test_bad_signature_is_rejected_and_logged(student_client, student, gateway, db):
    student_client.post("/api/subscription/create-order", json={"planId": "monthly"})
    r = student_client.post("/api/subscription/verify-payment", json={
        "razorpay_order_id": "order_1", "razorpay_payment_id": "pay_9", "razorpay_signature": "forged"})
    assert r.status_code == 400 and r.json()["error"]["message"] == "Invalid payment signature"
    logged = db.query(ErrorLog).filter_by(route="/api/subscription/verify-payment", user_id=student.id).all()
    assert [row.log_metadata["status"] for row in logged] == [400]
    assert student_client.get("/api/user").json()["isPremium"] is False
    assert student_client.post("/api/subscription/verify-payment", json={"razorpay_order_id": "order_1"}).status_code == 400

def test_cannot_capture_someone_elses_order(student_client, gateway, login_as, make_user):
    make_user("other")
    other_client = login_as("other")
    other_client.post("/api/subscription/create-order", json={"planId": "monthly"})
    r = student_client.post("/api/subscription/verify-payment", json={
        "razorpay_order_id": "order_1", "razorpay_payment_id": "pay_1", "razorpay_signature": sign("order_1", "pay_1")})
    assert r.status_code == 404
    r = student_client.post("/api/subscription/verify-payment", json={
        "razorpay_order_id": "order_404", "razorpay_payment_id": "pay_1", "razorpay_signature": sign("order_404", "pay_1")})
    assert r.status_code == 404

def test_cancel_revokes_premium(student_client, student, db):
    student.is_premium = True; db.commit()
    r = student_client.post("/api/subscription/cancel", json={"reason": "Exam passed"})
    assert r.status_code == 200 and r.json()["is_premium"] is False
    assert student_client.get("/api/premium-content").status_code == 403
    assert storage.count_user_activity(db, student.id, "subscription_cancelled") == 1

def test_gateway_failure_is_502(student_client, monkeypatch):
    def refuse(*args, **kwargs):
        raise httpx.ConnectError("connection refused")
    monkeypatch.setattr(httpx, "post", refuse)
    r = student_client.post("/api/subscription/create-order", json={"planId": "monthly"})
    assert r.status_code == 502 and r.json()["error"]["type"] == "payment_gateway_error"

def test_razorpay_client_wraps_http_errors(monkeypatch):
    def refuse(*args, **kwargs):
        raise httpx.ReadTimeout("timed out")
    monkeypatch.setattr(httpx, "post", refuse)
    client = RazorpayClient("key", "secret", "https://api.razorpay.test/v1/")
    with pytest.raises(PaymentGatewayError):
        client.create_order(49900, "INR", "receipt_1", {})

def test_captured_order_cannot_be_replayed(student_client, student, gateway, db):
    student_client.post("/api/subscription/create-order", json={"planId": "monthly"})
    body = {"razorpay_order_id": "order_1", "razorpay_payment_id": "pay_9", "razorpay_signature": sign("order_1", "pay_9")}
    assert student_client.post("/api/subscription/verify-payment", json=body).status_code == 200
    assert student_client.post("/api/subscription/cancel").status_code == 200
    r = student_client.post("/api/subscription/verify-payment", json=body)
    assert r.status_code == 409 and r.json()["error"]["message"] == "Payment already processed"
    assert student_client.get("/api/user").json()["isPremium"] is False
    assert storage.count_user_activity(db, student.id, "subscription_purchased") == 1
    assert db.query(Payment).one().status == "captured"
