import os

# Settings are read at import time.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["JWT_SECRET"] = "test-secret"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from coin_wallet import users
from coin_wallet.db import Base, get_db, init_db
from coin_wallet.main import app
from coin_wallet.models import ROLE_ADMIN, User
from coin_wallet.session import SessionHolder

PNG = b"\x89PNG\r\n\x1a\n fake image bytes"


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory):
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def client(session_factory):
    def _get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    """Sign a user up through the real path; returns the stored User row."""
    counter = {"n": 0}

    def _make(name="Asha", phone=None, password="secret1", balance=None, role=None):
        counter["n"] += 1
        phone = phone or f"90000000{counter['n']:02d}"
        session, _ = users.signup(db, SessionHolder(), name, phone, password)
        u = db.get(User, session.id)
        if balance is not None:
            u.balance = balance
        if role is not None:
            u.role = role
        db.commit()
        db.refresh(u)
        return u

    return _make


@pytest.fixture
def admin_user(make_user):
    return make_user(name="Admin", phone="9999999999", password="admin-pw", role=ROLE_ADMIN)


@pytest.fixture
def login_as(client):
    """Log in as someone and return their bearer headers."""

    def _login(phone, password):
        resp = client.post("/login", json={"phone": phone, "password": password})
        assert resp.status_code == 200, resp.text
        token = resp.cookies.get("session")
        client.cookies.clear()
        return {"Authorization": f"Bearer {token}"}

    return _login
