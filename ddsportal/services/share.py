import csv
import io
import re
import secrets
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple, Union

from loguru import logger
from sqlalchemy import update
from sqlmodel import Session, select, col, func

from ddsportal.core.config import settings
from ddsportal.core.exceptions import DeliveryError, NotFoundError
from ddsportal.db.schema import (
    AccessMethod, AccessToken, CustomerAccessLog, ReferenceSubmission
)
from ddsportal.models.customer import (
    AccessMessage, CustomerAccessRequest, RedemptionResult, ReferenceGroup,
    ReferenceList, ReferenceView, ShareableLinkCreate, ShareableLinkRead
)
from ddsportal.services.email import EmailService
from ddsportal.services.password import get_password_hash, verify_password


NO_REFERENCES = "No references found for the provided PO/Delivery"

CSV_COLUMNS = ["PO Number", "Delivery ID", "Reference Number", "Validation Number", "Submitted At"]


def normalise_postcode(value: Optional[str]) -> str:
    """'sw1a 1aa' and 'SW1A1AA' compare equal."""
    return re.sub(r"\s+", "", value or "").upper()


def share_url(token: str) -> str:
    return f"{settings.public_url.rstrip('/')}/api/customer/access/{token}"


def group_references(rows: List[ReferenceSubmission]) -> List[ReferenceGroup]:
    """Groups by (PO, Delivery), keeping first-seen order and each group's newest timestamp."""
    groups: Dict[Tuple[Optional[str], Optional[str]], ReferenceGroup] = {}

    for row in rows:
        key = (row.po_number, row.delivery_id)
        group = groups.get(key)
        if group is None:
            group = ReferenceGroup(
                po_number=row.po_number,
                delivery_id=row.delivery_id,
                references=[],
                latest_submission=row.submitted_at
            )
            groups[key] = group

        group.references.append(_view(row))
        if row.submitted_at > group.latest_submission:
            group.latest_submission = row.submitted_at

    return list(groups.values())


def _view(row: ReferenceSubmission) -> ReferenceView:
    return ReferenceView(
        po_number=row.po_number,
        delivery_id=row.delivery_id,
        reference_number=row.reference_number,
        validation_number=row.validation_number,
        submitted_at=row.submitted_at
    )


class ShareService:
    """
    Customer access to reference data: by postcode, by emailed link, or by
    a caller-generated shareable link. All links redeem through `redeem`.
    """

    def __init__(self, session: Session, email_service: EmailService):
        self.session = session
        self.email_service = email_service

    def _matching(self, po_number: Optional[str], delivery_id: Optional[str]) -> List[ReferenceSubmission]:
        """Case-insensitive match; an empty identifier does not constrain."""
        statement = select(ReferenceSubmission)
        if po_number:
            statement = statement.where(
                func.lower(ReferenceSubmission.po_number) == po_number.lower())
        if delivery_id:
            statement = statement.where(
                func.lower(ReferenceSubmission.delivery_id) == delivery_id.lower())

        statement = statement.order_by(col(ReferenceSubmission.submitted_at).desc())
        return self.session.exec(statement).all()

    def _log_access(
        self,
        po_number: Optional[str],
        delivery_id: Optional[str],
        method: AccessMethod,
        email: Optional[str] = None,
        ip_address: Optional[str] = None
    ):
        self.session.add(CustomerAccessLog(
            po_number=po_number or "",
            delivery_id=delivery_id or "",
            access_method=method,
            accessed_by_email=email,
            ip_address=ip_address
        ))

    def _mint(
        self,
        po_number: Optional[str],
        delivery_id: Optional[str],
        expires_in_hours: int,
        password: Optional[str] = None
    ) -> AccessToken:
        access = AccessToken(
            token=secrets.token_urlsafe(32),
            po_number=po_number or "",
            delivery_id=delivery_id or "",
            expires_at=datetime.utcnow() + timedelta(hours=expires_in_hours),
            max_uses=settings.access_token_max_uses,
            password_hash=get_password_hash(password) if password else None
        )
        self.session.add(access)
        return access

    def request_access(
        self, data: CustomerAccessRequest, ip_address: Optional[str] = None
    ) -> Union[ReferenceList, AccessMessage]:
        """
        Postcode: checked against the delivery postcode on record and answered
        inline. Email: a share link is mailed out. A wrong postcode looks
        exactly like missing data.
        """
        rows = self._matching(data.po_number, data.delivery_id)
        if not rows:
            raise NotFoundError(NO_REFERENCES)

        if data.postcode:
            postcode = normalise_postcode(data.postcode)
            matched = [r for r in rows if normalise_postcode(r.delivery_postcode) == postcode]
            if not matched:
                logger.warning("Customer postcode access rejected: postcode mismatch")
                raise NotFoundError(NO_REFERENCES)

            self._log_access(data.po_number, data.delivery_id, AccessMethod.POSTCODE,
                             ip_address=ip_address)
            self.session.commit()
            return ReferenceList(references=[_view(r) for r in matched])

        access = self._mint(data.po_number, data.delivery_id, settings.access_token_expire_hours)
        self._log_access(data.po_number, data.delivery_id, AccessMethod.EMAIL,
                         email=data.email, ip_address=ip_address)
        self.session.commit()

        logger.info("Customer access link issued by email")
        try:
            self.email_service.send(data.email, "access_link", {
                "po_number": access.po_number,
                "delivery_id": access.delivery_id,
                "url": share_url(access.token),
                "expires_hours": settings.access_token_expire_hours,
            })
        except DeliveryError:
            logger.warning("Customer access link email not delivered")

        return AccessMessage(message="Access link sent to your email")

    def generate_shareable_link(self, data: ShareableLinkCreate) -> ShareableLinkRead:
        if not self._matching(data.po_number, data.delivery_id):
            raise NotFoundError(NO_REFERENCES)

        access = self._mint(data.po_number, data.delivery_id, data.expires_in_hours, data.password)
        self.session.commit()
        self.session.refresh(access)

        logger.info(f"Shareable link created (expires in {data.expires_in_hours}h)")
        return ShareableLinkRead(
            share_url=share_url(access.token),
            expires_at=access.expires_at,
            password_protected=access.password_hash is not None
        )

    def redeem(self, token: str, password: Optional[str] = None,
               ip_address: Optional[str] = None) -> RedemptionResult:
        """
        A password challenge never consumes a use. A successful redemption
        is counted with a conditional increment so concurrent redeemers can
        never push uses_count past max_uses.
        """
        now = datetime.utcnow()
        access = self.session.exec(
            select(AccessToken)
            .where(AccessToken.token == token)
            .where(AccessToken.expires_at > now)
            .where(AccessToken.uses_count < AccessToken.max_uses)
        ).first()

        if not access:
            raise NotFoundError("Invalid or expired access token")

        if access.password_hash:
            if not password:
                return RedemptionResult(status="password_required")
            if not verify_password(password, access.password_hash):
                logger.warning("Share link password rejected")
                return RedemptionResult(
                    status="invalid_password",
                    error="Invalid password. Please try again."
                )

        result = self.session.exec(
            update(AccessToken)
            .where(AccessToken.token == token)
            .where(AccessToken.uses_count < AccessToken.max_uses)
            .where(AccessToken.expires_at > now)
            .values(uses_count=AccessToken.uses_count + 1)
        )
        if result.rowcount != 1:
            self.session.rollback()
            raise NotFoundError("Invalid or expired access token")

        self._log_access(access.po_number, access.delivery_id, AccessMethod.LINK,
                         ip_address=ip_address)
        self.session.commit()

        rows = self._matching(access.po_number, access.delivery_id)
        logger.info(f"Share token redeemed ({len(rows)} references)")

        return RedemptionResult(
            status="granted",
            po_number=access.po_number or None,
            delivery_id=access.delivery_id or None,
            total_references=len(rows),
            groups=group_references(rows)
        )

    def lookup(self, identifier: str, delivery_id: Optional[str] = None) -> ReferenceList:
        rows = self._matching(identifier, delivery_id)
        if not rows:
            raise NotFoundError("No references found")
        return ReferenceList(references=[_view(r) for r in rows])

    def export_csv(self, identifier: str, delivery_id: Optional[str] = None) -> str:
        rows = self._matching(identifier, delivery_id)
        if not rows:
            raise NotFoundError("No references found")

        out = io.StringIO()
        writer = csv.writer(out)
        writer.writerow(CSV_COLUMNS)
        for r in rows:
            writer.writerow([
                r.po_number or "",
                r.delivery_id or "",
                r.reference_number,
                r.validation_number or "",
                r.submitted_at.isoformat(),
            ])
        return out.getvalue()
