import os, tempfile

_tmp = tempfile.mkdtemp(prefix="cfa_practice_tests_")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_tmp, 'test.db')}"
os.environ["ENVIRONMENT"] = "testing"
os.environ["PROMETHEUS_ENABLED"] = "false"
os.environ["RAZORPAY_KEY_SECRET"] = "test_secret"
os.environ["LOG_LEVEL"] = "WARNING"

import fakeredis
import pytest
from fastapi.testclient import TestClient

from cfa_practice.core import cache
from cfa_practice.core.auth import hash_password
from cfa_practice.core.database import engine, SessionLocal
from cfa_practice.main import app
from cfa_practice.models.orm import Base
from cfa_practice.services import storage

PASSWORD = "secret123"

@pytest.fixture(autouse=True)
def fresh_state(monkeypatch):
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    monkeypatch.setattr(cache, "redis_client", fakeredis.FakeRedis(decode_responses=True))
    yield

@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()

def _make_user(db, username, role="student", email=None, premium=False):
    user = storage.create_user(db, username, hash_password(PASSWORD), email=email, role=role)
    user.is_premium = premium
    db.commit()
    return user

def _login(username):
    c = TestClient(app)
    r = c.post("/api/login", json={"username": username, "password": PASSWORD})
    assert r.status_code == 200, r.text
    return c

@pytest.fixture
def client():
    return TestClient(app)

@pytest.fixture
def student(db):
    return _make_user(db, "student", email="student@example.com")

@pytest.fixture
def admin(db):
    return _make_user(db, "admin", role="admin", email="admin@example.com")

@pytest.fixture
def student_client(student):
    return _login("student")

@pytest.fixture
def admin_client(admin):
    return _login("admin")

@pytest.fixture
def content(db):
    """Two topics: Ethics with two questions, Quant with one four-option question."""
    ethics = storage.create_topic(db, {"name": "Ethics", "description": "Ethical and Professional Standards", "icon": "scale"})
    quant = storage.create_topic(db, {"name": "Quant", "description": "Quantitative Methods", "icon": "calculator"})
    ch = storage.create_chapter(db, {"topic_id": ethics.id, "name": "Code and Standards", "order": 1})
    q1 = storage.create_question(db, {
        "topic_id": ethics.id, "chapter_id": ch.id, "question_text": "Which standard covers misconduct?",
        "option_a": "I(A)", "option_b": "I(D)", "option_c": "II(A)", "correct_option": "B",
        "explanation": "Standard I(D) Misconduct.", "difficulty": 1,
    })
    q2 = storage.create_question(db, {
        "topic_id": ethics.id, "chapter_id": ch.id, "question_text": "Which standard covers loyalty?",
        "option_a": "III(A)", "option_b": "IV(A)", "option_c": "V(A)", "correct_option": "A",
        "explanation": "Standard III(A) Loyalty, Prudence and Care.", "difficulty": 2,
    })
    q3 = storage.create_question(db, {
        "topic_id": quant.id, "question_text": "What is the mean of 1, 2 and 3?",
        "option_a": "1", "option_b": "1.5", "option_c": "3", "option_d": "2", "correct_option": "D",
        "explanation": "(1+2+3)/3 = 2", "difficulty": 1,
    })
    db.commit()
    return {"ethics": ethics.id, "quant": quant.id, "chapter": ch.id, "q1": q1.id, "q2": q2.id, "q3": q3.id}

@pytest.fixture
def make_user(db):
    return lambda username, **kw: _make_user(db, username, **kw)

@pytest.fixture
def login_as():
    return _login
