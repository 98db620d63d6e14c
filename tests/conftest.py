"""
Pytest configuration and fixtures.

Every test gets its own in-memory SQLite database; the app's session and
email dependencies are overridden so nothing touches a real database or
mail server.
"""
import os

# Settings are read at import time
os.environ["SECRET_KEY"] = "test-secret-key-not-for-production"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DEBUG"] = "true"
os.environ["LOG_FILE"] = ""
os.environ["SMTP_HOST"] = ""
os.environ["PUBLIC_URL"] = "http://testserver"

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine
from sqlalchemy.pool import StaticPool

from ddsportal.core.dependencies import get_email_service
from ddsportal.core.exceptions import DeliveryError
from ddsportal.core.rate_limit import general_limiter, strict_limiter
from ddsportal.db import core as db_core
from ddsportal.db.core import get_session
from ddsportal.db.schema import AdminSupplierLink, AdminUser, LinkState, Organisation
from ddsportal.main import app
from ddsportal.services.email import EmailService
from ddsportal.services.password import get_password_hash
from ddsportal.services.supplier_link import SupplierLinkService, supplier_url


ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "correct-horse-battery"


class RecordingEmailService(EmailService):
    """Captures messages instead of sending them."""

    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, to, kind, payload):
        if self.fail:
            raise DeliveryError()
        self.sent.append({"to": to, "kind": kind, "payload": payload})

    def last(self, kind):
        return [m for m in self.sent if m["kind"] == kind][-1]


@pytest.fixture
def engine(monkeypatch):
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    # Background audit writes open their own session on the module engine
    monkeypatch.setattr(db_core, "engine", engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def outbox():
    return RecordingEmailService()


@pytest.fixture
def client(engine, outbox):
    def override_get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_email_service] = lambda: outbox
    general_limiter.reset()
    strict_limiter.reset()

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def admin(session):
    admin = AdminUser(email=ADMIN_EMAIL, password_hash=get_password_hash(ADMIN_PASSWORD))
    session.add(admin)
    session.commit()
    session.refresh(admin)
    return admin


@pytest.fixture
def admin_client(client, admin):
    """A client carrying the admin session cookie."""
    response = client.post(
        "/api/admin/auth/login",
        json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD}
    )
    assert response.status_code == 200
    return client


@pytest.fixture
def organisation(session):
    organisation = Organisation(name="Northwind Timber Ltd")
    session.add(organisation)
    session.commit()
    session.refresh(organisation)
    return organisation


@pytest.fixture
def make_link(session):
    """Creates a supplier link plus an admin grant in the given state."""

    def _make(email="supplier@x.com", state=LinkState.PENDING, valid_days=30):
        supplier_link = SupplierLinkService(session).create_supplier_link(email)
        admin_link = AdminSupplierLink(
            shared_with=email,
            supplier_link_id=supplier_link.id,
            url=supplier_url(supplier_link.id),
            state=state,
            valid_until=datetime.utcnow() + timedelta(days=valid_days),
        )
        if state == LinkState.FROZEN:
            supplier_link.is_active = False
            session.add(supplier_link)
        session.add(admin_link)
        session.commit()
        session.refresh(admin_link)
        session.refresh(supplier_link)
        return supplier_link, admin_link

    return _make
