"""Pytest fixtures: a fresh SQLite database file per test."""
from datetime import datetime, timedelta, timezone
import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from felicity.config import Settings
from felicity.database import Database
from felicity.main import create_app
from felicity.models.account import Admin


@pytest.fixture(scope="function")
def settings(tmp_path):
    return Settings(
        DATABASE_URL=f"sqlite:///{tmp_path / 'test.db'}",
        SMTP_HOST="",
        BCRYPT_ROUNDS=4,
        LOG_LEVEL="WARNING",
    )


@pytest.fixture(scope="function")
def database(settings):
    """The application's Database, schema created up front."""
    database = Database(settings.DATABASE_URL)
    database.create_all()
    yield database
    database.dispose()


@pytest.fixture(scope="function")
def db_engine(database):
    """Separate inspection engine; plain SELECTs never hold the write lock."""
    engine = create_engine(database.url, connect_args={"check_same_thread": False})

    # Enable WAL mode for better concurrency
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def db(db_engine):
    """Yield a session for inspecting what the API persisted."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def app(settings, database):
    return create_app(settings, database)


@pytest.fixture(scope="function")
def client(app):
    """FastAPI TestClient; entering it runs startup (admin bootstrap)."""
    with TestClient(app) as c:
        yield c


@pytest.fixture(scope="function")
def admin_id(client, db):
    return db.query(Admin).one().account_id


@pytest.fixture(scope="function")
def sent_mail(app, monkeypatch):
    """Capture confirmation mails instead of talking to SMTP."""
    outbox = []
    monkeypatch.setattr(app.state.notifier, "send_registration_confirmation", lambda **kw: outbox.append(kw))
    return outbox


def in_hours(hours: float) -> str:
    return (datetime.now(timezone.utc) + timedelta(hours=hours)).isoformat()


# ---------------------------------------------------------------------------
# Helpers: create accounts and events via the API, return the response JSON
# ---------------------------------------------------------------------------
def create_participant(client: TestClient, email: str = "p1@students.iiit.ac.in", first_name: str = "Asha",
                       last_name: str = "Rao", interests: list = None) -> dict:
    """Helper: POST /api/users and return response JSON."""
    resp = client.post("/api/users/", json={
        "email": email,
        "password": "secret123",
        "first_name": first_name,
        "last_name": last_name,
        "participant_type": "iiit",
        "college": "IIIT Hyderabad",
        "contact_number": "9999999999",
        "interests": interests or [],
    })
    assert resp.status_code == 201, resp.text
    return resp.json()


def create_organizer(client: TestClient, admin_id: str, name: str = "Robotics Club", category: str = "club") -> dict:
    """Helper: POST /api/admin/organizers and return the organizer part of the response."""
    resp = client.post(f"/api/admin/organizers?actor_id={admin_id}", json={
        "organizer_name": name,
        "category": category,
        "description": f"{name} at IIIT",
    })
    assert resp.status_code == 201, resp.text
    return resp.json()["organizer"]


def event_payload(**overrides) -> dict:
    """A complete, publishable normal event starting tomorrow."""
    payload = {
        "name": "Robo Wars",
        "event_type": "normal",
        "status": "published",
        "description": "Build a bot, break a bot.",
        "eligibility": "Open to All",
        "registration_deadline": in_hours(20),
        "start_time": in_hours(24),
        "end_time": in_hours(28),
        "registration_limit": 50,
        "registration_fee": 100,
        "tags": ["robotics"],
        "custom_form": [],
    }
    payload.update(overrides)
    return payload


def create_event(client: TestClient, organizer_id: str, **overrides) -> dict:
    """Helper: POST /api/events and return response JSON."""
    resp = client.post(f"/api/events/?actor_id={organizer_id}", json=event_payload(**overrides))
    assert resp.status_code == 201, resp.text
    return resp.json()


def create_merch(client: TestClient, organizer_id: str, variants: list = None, **overrides) -> dict:
    payload = {
        "name": "Fest Hoodie",
        "event_type": "merchandise",
        "registration_fee": 500,
        "purchase_limit": 3,
        "tags": ["merch"],
        "variants": variants if variants is not None else [
            {"product_name": "Hoodie", "size": "M", "stock": 5},
            {"product_name": "Hoodie", "size": "L", "stock": 1},
        ],
    }
    payload.update(overrides)
    return create_event(client, organizer_id, **payload)


def register(client: TestClient, participant_id: str, event_id: str, **body):
    """POST /api/registrations with a camelCase body; returns the raw response."""
    return client.post(f"/api/registrations/?actor_id={participant_id}", json={"eventId": event_id, **body})
