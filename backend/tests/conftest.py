"""Pytest fixtures — file-backed SQLite database, fresh schema per test."""
from datetime import datetime, timedelta, timezone
import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from donorlink.database import Base, get_db
from donorlink.main import app

# Import all models so they register with Base.metadata
from donorlink.models.user import User                                   # noqa: F401
from donorlink.models.donation_request import DonationRequest            # noqa: F401
from donorlink.models.notification import Notification                   # noqa: F401
from donorlink.models.activity_log import ActivityLog                    # noqa: F401
from donorlink.models.reconciliation_task import ReconciliationTask      # noqa: F401

# A file (not :memory:) so the race tests can open one connection per thread
SQLITE_URL = "sqlite:///./test.db"


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh SQLite engine for each test."""
    engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False, "timeout": 30})

    # Enable WAL mode for better concurrency
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db(session_factory):
    """Yield a database session, closed after the test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(session_factory):
    """FastAPI TestClient with the database dependency overridden to use SQLite."""

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers: create users / requests via the API, return the JSON response dict
# ---------------------------------------------------------------------------
def future_date(days: int = 2) -> str:
    return (datetime.now(timezone.utc).date() + timedelta(days=days)).isoformat()


def create_test_user(
    client: TestClient,
    name: str = "Test User",
    role: str = "donor",
    blood_group: str = "O+",
    district: str = "Dhaka",
    sub_district: str = "Mirpur",
    **extra,
) -> dict:
    """Helper — POST /api/users and return response JSON."""
    email = extra.pop("email", f"{name.lower().replace(' ', '.')}@example.com")
    resp = client.post("/api/users/", json={
        "name": name,
        "email": email,
        "role": role,
        "blood_group": blood_group,
        "district": district,
        "sub_district": sub_district,
        **extra,
    })
    assert resp.status_code == 201, resp.text
    return resp.json()


def request_payload(requester_id: str, **overrides) -> dict:
    payload = {
        "requester_id": requester_id,
        "recipient_name": "Rahim Uddin",
        "recipient_district": "Dhaka",
        "recipient_sub_district": "Mirpur",
        "hospital_name": "Dhaka Medical College Hospital",
        "hospital_address": "Secretariat Rd, Dhaka 1000",
        "blood_group": "O+",
        "donation_date": future_date(),
        "donation_time": "10:30",
        "request_message": "Patient needs blood for surgery",
        "urgency": "high",
        "units_required": 1,
    }
    payload.update(overrides)
    return payload


def create_test_request(client: TestClient, requester_id: str, **overrides) -> dict:
    """Helper — POST /api/donation-requests and return response JSON."""
    resp = client.post("/api/donation-requests/", json=request_payload(requester_id, **overrides))
    assert resp.status_code == 201, resp.text
    return resp.json()
