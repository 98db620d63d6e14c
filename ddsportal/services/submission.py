from typing import List

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select, col

from ddsportal.db.schema import ReferenceSubmission
from ddsportal.models.supplier import (
    BulkItemResult, BulkSubmissionResult, BulkSummary,
    ReferenceSubmissionCreate, ReferenceSubmissionRead, SubmissionList, SupplierContext
)
from ddsportal.services.supplier_link import SupplierLinkService


class SubmissionService:
    """Append-only reference submissions made by an authenticated supplier."""

    def __init__(self, session: Session):
        self.session = session
        self.links = SupplierLinkService(session)

    def _build(self, supplier: SupplierContext, data: ReferenceSubmissionCreate) -> ReferenceSubmission:
        return ReferenceSubmission(
            supplier_link_id=supplier.supplier_link_id,
            po_number=data.po_number,
            delivery_id=data.delivery_id,
            delivery_postcode=data.delivery_postcode.strip(),
            reference_number=data.reference_number.strip(),
            validation_number=data.validation_number,
            submitted_by_email=supplier.email
        )

    def submit(self, supplier: SupplierContext, data: ReferenceSubmissionCreate) -> ReferenceSubmission:
        submission = self._build(supplier, data)
        self.session.add(submission)
        self.links.touch(supplier.supplier_link_id)
        self.session.commit()
        self.session.refresh(submission)

        logger.info(f"Reference submitted for supplier link {supplier.supplier_link_id}")
        return submission

    def bulk_submit(
        self, supplier: SupplierContext, items: List[ReferenceSubmissionCreate]
    ) -> BulkSubmissionResult:
        """Each row is committed on its own; a failing row is reported, not raised."""
        results = []

        for index, data in enumerate(items):
            outcome = BulkItemResult(
                index=index,
                status="created",
                po_number=data.po_number,
                delivery_id=data.delivery_id,
                reference_number=data.reference_number
            )
            try:
                self.session.add(self._build(supplier, data))
                self.session.commit()
            except SQLAlchemyError as e:
                self.session.rollback()
                logger.warning(f"Bulk row {index} rejected for link {supplier.supplier_link_id}: {e}")
                outcome.status = "error"
                outcome.error = "Failed to store submission"
            results.append(outcome)

        self.links.touch(supplier.supplier_link_id)
        self.session.commit()

        created = sum(1 for r in results if r.status == "created")
        logger.info(
            f"Bulk submission for link {supplier.supplier_link_id}: "
            f"{created}/{len(results)} created")

        return BulkSubmissionResult(
            results=results,
            summary=BulkSummary(total=len(results), created=created, errors=len(results) - created)
        )

    def list_submissions(self, supplier: SupplierContext) -> SubmissionList:
        rows = self.session.exec(
            select(ReferenceSubmission)
            .where(ReferenceSubmission.supplier_link_id == supplier.supplier_link_id)
            .order_by(col(ReferenceSubmission.submitted_at).desc())
        ).all()
        return SubmissionList(
            submissions=[ReferenceSubmissionRead.model_validate(r) for r in rows]
        )
