import secrets
from datetime import datetime, timedelta

from loguru import logger
from sqlalchemy import update
from sqlmodel import Session, select

from ddsportal.core.config import settings
from ddsportal.core.exceptions import NotFoundError, UnauthorizedError
from ddsportal.db.schema import OtpToken
from ddsportal.models.supplier import SupplierSessionToken
from ddsportal.services.email import EmailService
from ddsportal.services.supplier_auth import SupplierAuthService
from ddsportal.services.supplier_link import SupplierLinkService


def generate_code() -> str:
    """Uniform over 000000-999999."""
    return f"{secrets.randbelow(10 ** 6):06d}"


class OtpService:
    """
    Issues and consumes one-time codes that bind an email to a supplier link.
    Codes may collide across requests; lookups always match on
    email + link + code + unused + unexpired together.
    """

    def __init__(self, session: Session, email_service: EmailService):
        self.session = session
        self.email_service = email_service
        self.links = SupplierLinkService(session)
        self.auth = SupplierAuthService(session)

    def request_otp(self, email: str, supplier_link_id: str) -> OtpToken:
        if not self.links.get_active_link(supplier_link_id):
            logger.warning(f"OTP requested for unknown or inactive link {supplier_link_id}")
            raise NotFoundError("Invalid supplier link")

        otp = OtpToken(
            email=email,
            otp_code=generate_code(),
            supplier_link_id=supplier_link_id,
            expires_at=datetime.utcnow() + timedelta(minutes=settings.otp_expire_minutes)
        )
        self.session.add(otp)
        self.session.commit()
        self.session.refresh(otp)

        logger.info(f"OTP issued for supplier link {supplier_link_id}")

        # The code stays valid even when delivery fails
        self.email_service.send(
            email,
            "otp",
            {"code": otp.otp_code, "expires_minutes": settings.otp_expire_minutes}
        )
        return otp

    def validate_otp(self, email: str, code: str, supplier_link_id: str) -> SupplierSessionToken:
        now = datetime.utcnow()
        otp = self.session.exec(
            select(OtpToken)
            .where(OtpToken.email == email)
            .where(OtpToken.otp_code == code)
            .where(OtpToken.supplier_link_id == supplier_link_id)
            .where(OtpToken.used == False)
            .where(OtpToken.expires_at > now)
        ).first()

        if not otp:
            logger.warning(f"Rejected OTP for supplier link {supplier_link_id}")
            raise UnauthorizedError("Invalid or expired OTP")

        # Conditional on the current state: of two racing requests only one
        # sees a changed row.
        result = self.session.exec(
            update(OtpToken)
            .where(OtpToken.id == otp.id)
            .where(OtpToken.used == False)
            .values(used=True)
        )
        if result.rowcount != 1:
            self.session.rollback()
            logger.warning(f"OTP replay rejected for supplier link {supplier_link_id}")
            raise UnauthorizedError("Invalid or expired OTP")

        # The link may have been frozen since the code was issued
        if not self.links.get_active_link(supplier_link_id):
            self.session.commit()
            raise UnauthorizedError("Invalid or expired OTP")

        token = self.auth.create_session(supplier_link_id, email, commit=False)
        self.links.touch(supplier_link_id)
        self.session.commit()

        logger.info(f"Supplier session minted for link {supplier_link_id}")
        return SupplierSessionToken(token=token, email=email)
