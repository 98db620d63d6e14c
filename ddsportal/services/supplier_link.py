from typing import List, Optional
from datetime import datetime

from loguru import logger
from sqlalchemy import update
from sqlmodel import Session, select, col

from ddsportal.core.config import settings
from ddsportal.core.exceptions import NotFoundError
from ddsportal.db.schema import (
    SupplierLink, SupplierIdMigration, AdminSupplierLink,
    ReferenceSubmission, OtpToken, SupplierSession
)
from ddsportal.models.supplier_link import (
    MigrationRecord, MigrationReport, IdValidationReport
)
from ddsportal.utils import identifiers


# Tables that carry a supplier_link_id and must follow an id migration
_LINKED_TABLES = (ReferenceSubmission, OtpToken, SupplierSession)


def supplier_url(supplier_link_id: str) -> str:
    return f"{settings.public_url.rstrip('/')}/supplier/{supplier_link_id}"


class SupplierLinkService:
    def __init__(self, session: Session):
        self.session = session

    def _id_exists(self, candidate: str) -> bool:
        return self.session.get(SupplierLink, candidate) is not None

    def get_link(self, supplier_link_id: str) -> Optional[SupplierLink]:
        return self.session.get(SupplierLink, supplier_link_id)

    def get_active_link(self, supplier_link_id: str) -> Optional[SupplierLink]:
        return self.session.exec(
            select(SupplierLink)
            .where(SupplierLink.id == supplier_link_id)
            .where(SupplierLink.is_active == True)
        ).first()

    def find_by_identifier(self, identifier: str) -> Optional[SupplierLink]:
        """Prefers an active link, then the most recent one."""
        return self.session.exec(
            select(SupplierLink)
            .where(SupplierLink.supplier_identifier == identifier)
            .order_by(col(SupplierLink.is_active).desc(), col(SupplierLink.created_at).desc())
        ).first()

    def generate_id(self) -> str:
        return identifiers.generate_unique(
            self._id_exists, max_attempts=settings.identifier_max_attempts)

    def create_supplier_link(self, identifier: str, commit: bool = True) -> SupplierLink:
        link = SupplierLink(
            id=self.generate_id(),
            supplier_identifier=identifier,
            is_active=True
        )
        self.session.add(link)

        if commit:
            self.session.commit()
            self.session.refresh(link)
        else:
            self.session.flush()

        logger.info(f"Created supplier link {link.id}")
        return link

    def touch(self, supplier_link_id: str):
        """Stamps last_used. Caller commits."""
        self.session.exec(
            update(SupplierLink)
            .where(SupplierLink.id == supplier_link_id)
            .values(last_used=datetime.utcnow())
        )

    # ==========================================================================
    # ID FORMAT MIGRATION (administrative batch job)
    # ==========================================================================

    def _repoint(self, old_id: str, new_id: str):
        for table in _LINKED_TABLES:
            self.session.exec(
                update(table)
                .where(table.supplier_link_id == old_id)
                .values(supplier_link_id=new_id)
            )

        admin_links = self.session.exec(
            select(AdminSupplierLink).where(AdminSupplierLink.supplier_link_id == old_id)
        ).all()
        for admin_link in admin_links:
            admin_link.supplier_link_id = new_id
            admin_link.url = supplier_url(new_id)
            self.session.add(admin_link)

    def migrate_supplier_ids(self) -> MigrationReport:
        """
        Replaces every legacy (non 'XXXX-XXXX') supplier link id.
        Each link is migrated in its own transaction; failures are collected
        per item and never abort the batch.
        """
        legacy_ids = [
            link.id for link in self.session.exec(select(SupplierLink)).all()
            if not identifiers.is_valid(link.id)
        ]

        report = MigrationReport(total=len(legacy_ids))
        if not legacy_ids:
            logger.info("No legacy supplier links found to migrate")
            return report

        logger.info(f"Found {len(legacy_ids)} legacy supplier links to migrate")

        for old_id in legacy_ids:
            try:
                old_link = self.session.get(SupplierLink, old_id)
                new_link = self.create_supplier_link(
                    old_link.supplier_identifier, commit=False)

                self._repoint(old_id, new_link.id)
                self.session.add(SupplierIdMigration(old_id=old_id, new_id=new_link.id))
                old_link.is_active = False
                self.session.add(old_link)
                self.session.commit()

                report.migrated.append(MigrationRecord(
                    old_id=old_id, new_id=new_link.id, migrated_at=datetime.utcnow()))
                logger.info(f"Migrated supplier link {old_id} -> {new_link.id}")

            except Exception as e:
                self.session.rollback()
                logger.exception(f"Failed to migrate supplier link {old_id}")
                report.failed.append({"old_id": old_id, "error": str(e)})

        logger.info(
            f"Supplier ID migration completed: {len(report.migrated)} migrated, "
            f"{len(report.failed)} failed")
        return report

    def migration_history(self) -> List[MigrationRecord]:
        rows = self.session.exec(
            select(SupplierIdMigration).order_by(col(SupplierIdMigration.migrated_at).desc())
        ).all()
        return [
            MigrationRecord(old_id=r.old_id, new_id=r.new_id, migrated_at=r.migrated_at)
            for r in rows
        ]

    def rollback_migration(self, new_id: str) -> MigrationRecord:
        record = self.session.exec(
            select(SupplierIdMigration).where(SupplierIdMigration.new_id == new_id)
        ).first()
        if not record:
            raise NotFoundError("Migration record not found")

        old_link = self.session.get(SupplierLink, record.old_id)
        new_link = self.session.get(SupplierLink, new_id)

        self._repoint(new_id, record.old_id)
        if old_link:
            old_link.is_active = True
            self.session.add(old_link)
        if new_link:
            new_link.is_active = False
            self.session.add(new_link)

        rolled_back = MigrationRecord(
            old_id=record.old_id, new_id=record.new_id, migrated_at=record.migrated_at)
        self.session.delete(record)
        self.session.commit()

        logger.info(f"Rollback completed: {new_id} -> {rolled_back.old_id}")
        return rolled_back

    def validate_all_supplier_ids(self) -> IdValidationReport:
        ids = self.session.exec(
            select(SupplierLink.id).where(SupplierLink.is_active == True)
        ).all()

        invalid_ids = [i for i in ids if not identifiers.is_valid(i)]
        return IdValidationReport(
            total=len(ids),
            valid=len(ids) - len(invalid_ids),
            invalid=len(invalid_ids),
            invalid_ids=invalid_ids
        )
