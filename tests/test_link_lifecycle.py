import uuid
from datetime import datetime, timedelta

import pytest
from sqlmodel import select

from ddsportal.core.exceptions import ConflictError, NotFoundError
from ddsportal.db.schema import (
    LinkState, SupplierDirectActivation, SupplierLink
)
from ddsportal.models.admin import SupplierLinkCreate
from ddsportal.services.link import LinkService
from ddsportal.services.supplier_auth import decode_bypass_credential
from ddsportal.utils import identifiers


@pytest.fixture
def links(session, outbox):
    return LinkService(session, outbox)


def _create(email="supplier@x.com", **kwargs):
    return SupplierLinkCreate(
        supplier_email=email,
        valid_until=datetime.utcnow() + timedelta(days=30),
        **kwargs
    )


def _supplier_active(session, supplier_link_id):
    session.expire_all()
    return session.get(SupplierLink, supplier_link_id).is_active


def test_generate_link_starts_pending(links, outbox):
    admin_link = links.generate_link(_create(supplier_name="Acme", admin_notes="first"))

    assert admin_link.state == LinkState.PENDING
    assert identifiers.is_valid(admin_link.supplier_link_id)
    assert admin_link.url.endswith(f"/supplier/{admin_link.supplier_link_id}")
    assert admin_link.supplier_name == "Acme"
    assert outbox.last("supplier_link")["payload"]["url"] == admin_link.url


def test_generate_link_reuses_supplier_identity(links, session):
    first = links.generate_link(_create())
    second = links.generate_link(_create())

    assert first.id != second.id
    assert first.supplier_link_id == second.supplier_link_id
    assert len(session.exec(select(SupplierLink)).all()) == 1


def test_generate_link_survives_email_failure(links, outbox):
    outbox.fail = True

    admin_link = links.generate_link(_create())

    assert admin_link.state == LinkState.PENDING


def test_set_state_keeps_supplier_link_in_step(links, session):
    admin_link = links.generate_link(_create())

    links.set_state(admin_link.id, LinkState.FROZEN)
    assert _supplier_active(session, admin_link.supplier_link_id) is False

    links.set_state(admin_link.id, LinkState.PENDING)
    assert _supplier_active(session, admin_link.supplier_link_id) is True

    updated = links.set_state(admin_link.id, LinkState.ACTIVE)
    assert updated.state == LinkState.ACTIVE
    assert _supplier_active(session, admin_link.supplier_link_id) is True


def test_set_state_unknown_link(links):
    with pytest.raises(NotFoundError):
        links.set_state(uuid.uuid4(), LinkState.ACTIVE)


def test_freeze_is_soft(links, session):
    admin_link = links.generate_link(_create())

    frozen = links.freeze(admin_link.id)

    assert frozen.state == LinkState.FROZEN
    assert links.get_link(admin_link.id).id == admin_link.id
    assert _supplier_active(session, admin_link.supplier_link_id) is False


def test_direct_activate_after_freeze(links, session):
    admin_link = links.generate_link(_create())
    links.freeze(admin_link.id)

    result = links.direct_activate(admin_link.id, admin_notes="vip")

    assert result.link.state == LinkState.ACTIVE
    assert result.supplier_link_id == admin_link.supplier_link_id
    assert decode_bypass_credential(result.token) == admin_link.supplier_link_id
    assert _supplier_active(session, admin_link.supplier_link_id) is True

    audit = session.exec(select(SupplierDirectActivation)).one()
    assert audit.supplier_link_id == admin_link.supplier_link_id
    assert audit.activated_by_admin == "admin"
    assert audit.admin_notes == "vip"
    assert result.link.admin_notes == "vip"


def test_direct_activate_keeps_existing_notes(links, session):
    admin_link = links.generate_link(_create(admin_notes="onboarded by phone"))

    result = links.direct_activate(admin_link.id)

    assert result.link.admin_notes == "onboarded by phone"
    audit = session.exec(select(SupplierDirectActivation)).one()
    assert audit.admin_notes == "Directly activated by admin"


def test_direct_activate_twice_conflicts(links):
    admin_link = links.generate_link(_create())
    links.direct_activate(admin_link.id)

    with pytest.raises(ConflictError):
        links.direct_activate(admin_link.id)


def test_direct_activate_unknown_link(links):
    with pytest.raises(NotFoundError):
        links.direct_activate(uuid.uuid4())


def test_list_links_newest_first(links):
    first = links.generate_link(_create("a@x.com"))
    second = links.generate_link(_create("b@x.com"))

    listing = links.list_links()

    assert listing.total_items == 2
    assert [l.id for l in listing.links] == [second.id, first.id]
