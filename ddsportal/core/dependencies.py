from typing import Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlmodel import Session

from ddsportal.db.core import get_session
from ddsportal.db.schema import AdminUser
from ddsportal.models.supplier import SupplierContext

from ddsportal.services.admin_auth import AdminAuthService
from ddsportal.services.connection import ConnectionService
from ddsportal.services.email import EmailService
from ddsportal.services.link import LinkService
from ddsportal.services.otp import OtpService
from ddsportal.services.share import ShareService
from ddsportal.services.submission import SubmissionService
from ddsportal.services.supplier_auth import SupplierAuthService


ADMIN_COOKIE = "admin_token"

# auto_error=False: a missing header must fall through to our own 401 body
supplier_scheme = OAuth2PasswordBearer(tokenUrl="/api/supplier/validate-otp", auto_error=False)
admin_scheme = OAuth2PasswordBearer(tokenUrl="/api/admin/auth/login", auto_error=False)

_email_service = EmailService()


def get_email_service() -> EmailService:
    return _email_service


def get_supplier_auth_service(session: Session = Depends(get_session)) -> SupplierAuthService:
    return SupplierAuthService(session)


def get_otp_service(
    session: Session = Depends(get_session),
    email_service: EmailService = Depends(get_email_service)
) -> OtpService:
    return OtpService(session, email_service)


def get_submission_service(session: Session = Depends(get_session)) -> SubmissionService:
    return SubmissionService(session)


def get_link_service(
    session: Session = Depends(get_session),
    email_service: EmailService = Depends(get_email_service)
) -> LinkService:
    return LinkService(session, email_service)


def get_connection_service(session: Session = Depends(get_session)) -> ConnectionService:
    return ConnectionService(session)


def get_share_service(
    session: Session = Depends(get_session),
    email_service: EmailService = Depends(get_email_service)
) -> ShareService:
    return ShareService(session, email_service)


def get_admin_auth_service(session: Session = Depends(get_session)) -> AdminAuthService:
    """Creates an AdminAuthService instance using the active DB session."""
    return AdminAuthService(session)


def get_client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def get_current_supplier(
    token: Optional[str] = Depends(supplier_scheme),
    service: SupplierAuthService = Depends(get_supplier_auth_service)
) -> SupplierContext:
    """
    Gatekeeper for supplier routes. Accepts a bypass credential or a signed
    session token in the Authorization header.
    """
    return service.authenticate(token)


def get_current_admin(
    request: Request,
    token: Optional[str] = Depends(admin_scheme),
    service: AdminAuthService = Depends(get_admin_auth_service)
) -> AdminUser:
    """
    Gatekeeper for admin routes. The httpOnly cookie set at login wins over
    a bearer header.
    """
    return service.resolve_admin(request.cookies.get(ADMIN_COOKIE) or token)
