import uuid

import pytest

from ddsportal.core.config import settings
from ddsportal.core.exceptions import (
    ConflictError, ForbiddenError, NotFoundError, ValidationError
)
from ddsportal.db.schema import AdminUser, EventDirection, Organisation
from ddsportal.models.connection import (
    ConnectionCreate, ConnectionUpdate, OrganisationCreate, ReferenceEventCreate
)
from ddsportal.services.connection import ConnectionService, flip_direction
from ddsportal.utils import identifiers


@pytest.fixture
def connections(session):
    return ConnectionService(session)


@pytest.fixture
def other_organisation(session):
    organisation = Organisation(name="Contoso Logistics")
    session.add(organisation)
    session.commit()
    session.refresh(organisation)
    return organisation


@pytest.fixture
def connected(connections, admin, organisation):
    return connections.create_connection(admin, ConnectionCreate(organisation_id=organisation.id))


def _event(reference="REF1", **kwargs):
    return ReferenceEventCreate(po_number="PO1", reference_number=reference, **kwargs)


def test_flip_direction():
    assert flip_direction(EventDirection.SENT) == EventDirection.RECEIVED
    assert flip_direction(EventDirection.RECEIVED) == EventDirection.SENT


def test_one_connection_per_organisation(connections, admin, organisation, other_organisation):
    first = connections.create_connection(admin, ConnectionCreate(organisation_id=organisation.id))

    with pytest.raises(ConflictError):
        connections.create_connection(admin, ConnectionCreate(organisation_id=organisation.id))

    third = connections.create_connection(
        admin, ConnectionCreate(organisation_id=other_organisation.id))

    assert identifiers.is_valid(first.token)
    assert identifiers.is_valid(third.token)
    assert first.token != third.token
    assert first.is_active and third.is_active


def test_connection_unknown_organisation(connections, admin):
    with pytest.raises(NotFoundError):
        connections.create_connection(admin, ConnectionCreate(organisation_id=uuid.uuid4()))


def test_connections_scoped_to_admin(connections, session, connected):
    stranger = AdminUser(email="other@example.com", password_hash="x")
    session.add(stranger)
    session.commit()

    assert connections.list_connections(stranger) == []
    with pytest.raises(NotFoundError):
        connections.get_connection(stranger, connected.id)


def test_organisation_search(connections, organisation, other_organisation):
    names = [o.name for o in connections.list_organisations("north")]
    assert names == ["Northwind Timber Ltd"]
    assert len(connections.list_organisations()) == 2

    created = connections.create_organisation(OrganisationCreate(name="  Fabrikam  "))
    assert created.name == "Fabrikam"


def test_org_submit_and_info(connections, connected):
    submitted = connections.org_submit(connected.token, _event(email="ops@northwind.com"))

    assert submitted.organisation == "Northwind Timber Ltd"
    assert submitted.reference.direction == EventDirection.SENT
    assert submitted.reference.submitted_by_email == "ops@northwind.com"

    info = connections.org_info(connected.token)
    assert info.last_used is not None
    assert info.is_active is True


def test_org_submit_inactive_connection(connections, admin, connected):
    connections.update_connection(admin, connected.id, ConnectionUpdate(is_active=False))

    with pytest.raises(ForbiddenError):
        connections.org_submit(connected.token, _event())


@pytest.mark.parametrize("token", ["bad", "k7qd-2m9x", "K7QD2M9X"])
def test_malformed_token_is_validation_error(connections, token):
    with pytest.raises(ValidationError):
        connections.org_info(token)


def test_unknown_token_not_found(connections):
    with pytest.raises(NotFoundError):
        connections.org_history("ZZZZ-ZZZZ")


def test_org_history_and_retrieve(connections, admin, connected):
    connections.org_submit(connected.token, _event("FROM-ORG"))
    connections.admin_submit(admin, connected.id, _event("FROM-ADMIN"))

    everything = connections.org_history(connected.token)
    assert len(everything.references) == 2

    sent = connections.org_history(connected.token, EventDirection.SENT)
    assert [r.reference_number for r in sent.references] == ["FROM-ORG"]

    retrieved = connections.org_retrieve(connected.token)
    assert [r.reference_number for r in retrieved.references] == ["FROM-ADMIN"]
    assert retrieved.references[0].submitted_by_email == admin.email


def test_admin_history_flips_labels(connections, admin, connected, monkeypatch):
    monkeypatch.setattr(settings, "admin_history_flip_direction", True)
    connections.org_submit(connected.token, _event("FROM-ORG"))
    connections.admin_submit(admin, connected.id, _event("FROM-ADMIN"))

    received = connections.admin_history(admin, connected.id, EventDirection.RECEIVED)

    assert [r.reference_number for r in received.references] == ["FROM-ORG"]
    assert received.references[0].direction == EventDirection.RECEIVED


def test_admin_history_without_flip(connections, admin, connected, monkeypatch):
    monkeypatch.setattr(settings, "admin_history_flip_direction", False)
    connections.org_submit(connected.token, _event("FROM-ORG"))

    sent = connections.admin_history(admin, connected.id, EventDirection.SENT)

    assert [r.reference_number for r in sent.references] == ["FROM-ORG"]
    assert sent.references[0].direction == EventDirection.SENT
