import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from settleup.database import Base, get_db
from settleup.dependencies import get_rate_fetcher
from settleup.main import app
from fakes import FakeRateFetcher

SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def rate_fetcher():
    fetcher = FakeRateFetcher({"USD": {"INR": 83.5, "EUR": 0.92}})
    app.dependency_overrides[get_rate_fetcher] = lambda: fetcher
    yield fetcher
    app.dependency_overrides.pop(get_rate_fetcher, None)


@pytest.fixture
def client(rate_fetcher):
    return TestClient(app)


def _register(client, email, name):
    res = client.post("/api/auth/register", json={"email": email, "password": "testpass123", "name": name})
    data = res.json()
    return {"id": data["user"]["id"], "headers": {"Authorization": f"Bearer {data['access_token']}"}}


@pytest.fixture
def auth_headers(client):
    return _register(client, "test@example.com", "Test User")["headers"]


@pytest.fixture
def users(client):
    """Three registered users: alice (creates events), bob and carol."""
    return {
        "alice": _register(client, "alice@example.com", "Alice"),
        "bob": _register(client, "bob@example.com", "Bob"),
        "carol": _register(client, "carol@example.com", "Carol"),
    }


@pytest.fixture
def event_id(client, users):
    """USD event created by alice with bob and carol as participants."""
    alice = users["alice"]["headers"]
    res = client.post("/api/events", json={"name": "Goa trip", "currency": "USD"}, headers=alice)
    eid = res.json()["id"]
    for email in ("bob@example.com", "carol@example.com"):
        client.post(f"/api/events/{eid}/participants", json={"email": email}, headers=alice)
    return eid


@pytest.fixture
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
