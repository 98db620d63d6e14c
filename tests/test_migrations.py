from datetime import datetime, timedelta

import pytest
from sqlmodel import select

import migrate_ids
from ddsportal.core.exceptions import NotFoundError
from ddsportal.db.schema import (
    AdminSupplierLink, LinkState, ReferenceSubmission, SupplierLink
)
from ddsportal.services.supplier_link import SupplierLinkService
from ddsportal.utils import identifiers


LEGACY_ID = "5f0c2a9e-legacy-link"


@pytest.fixture
def service(session):
    return SupplierLinkService(session)


@pytest.fixture
def legacy_link(session):
    link = SupplierLink(id=LEGACY_ID, supplier_identifier="old@x.com", is_active=True)
    session.add(link)
    session.add(AdminSupplierLink(
        shared_with="old@x.com",
        supplier_link_id=LEGACY_ID,
        url=f"http://testserver/supplier/{LEGACY_ID}",
        state=LinkState.ACTIVE,
        valid_until=datetime.utcnow() + timedelta(days=30),
    ))
    session.add(ReferenceSubmission(
        supplier_link_id=LEGACY_ID,
        po_number="PO1",
        delivery_postcode="1234",
        reference_number="REF1",
    ))
    session.commit()
    return link


def test_validate_reports_legacy_ids(service, legacy_link, make_link):
    make_link()

    report = service.validate_all_supplier_ids()

    assert report.total == 2
    assert report.invalid == 1
    assert report.invalid_ids == [LEGACY_ID]


def test_migrate_repoints_dependents(service, session, legacy_link):
    report = service.migrate_supplier_ids()

    assert report.total == 1
    assert report.failed == []
    new_id = report.migrated[0].new_id
    assert identifiers.is_valid(new_id)

    session.expire_all()
    assert session.get(SupplierLink, LEGACY_ID).is_active is False
    assert session.get(SupplierLink, new_id).supplier_identifier == "old@x.com"

    submission = session.exec(select(ReferenceSubmission)).one()
    assert submission.supplier_link_id == new_id

    admin_link = session.exec(select(AdminSupplierLink)).one()
    assert admin_link.supplier_link_id == new_id
    assert admin_link.url.endswith(f"/supplier/{new_id}")

    assert service.validate_all_supplier_ids().invalid == 0
    assert [r.new_id for r in service.migration_history()] == [new_id]


def test_migrate_with_nothing_to_do(service, make_link):
    make_link()

    report = service.migrate_supplier_ids()

    assert report.total == 0
    assert report.migrated == []


def test_rollback_restores_legacy_id(service, session, legacy_link):
    new_id = service.migrate_supplier_ids().migrated[0].new_id

    record = service.rollback_migration(new_id)

    assert record.old_id == LEGACY_ID
    session.expire_all()
    assert session.get(SupplierLink, LEGACY_ID).is_active is True
    assert session.get(SupplierLink, new_id).is_active is False
    assert session.exec(select(ReferenceSubmission)).one().supplier_link_id == LEGACY_ID
    assert service.migration_history() == []


def test_rollback_unknown_migration(service):
    with pytest.raises(NotFoundError):
        service.rollback_migration("ZZZZ-ZZZZ")


def test_cli_exit_codes(engine, legacy_link):
    assert migrate_ids.run("validate") == 1
    assert migrate_ids.run("migrate") == 0
    assert migrate_ids.run("validate") == 0
    assert migrate_ids.run("history") == 0
