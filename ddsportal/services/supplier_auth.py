import base64
import binascii
import json
import secrets
from datetime import datetime, timedelta
from typing import Optional

import jwt
from loguru import logger
from sqlmodel import Session, select, col

from ddsportal.core.config import settings
from ddsportal.core.exceptions import NotFoundError, UnauthorizedError
from ddsportal.db.schema import AdminSupplierLink, LinkState, SupplierLink, SupplierSession
from ddsportal.models.supplier import DirectAccessRead, SupplierContext, SupplierSessionToken


SESSION_TOKEN_TYPE = "supplier_session"
DEV_LOGIN_EMAIL = "test@example.com"


def encode_bypass_credential(supplier_link_id: str) -> str:
    """
    Self-contained grant for an admin-activated link. Carries no signature:
    it is only honoured while the referenced link is active in storage.
    """
    blob = json.dumps({"isActive": True, "supplierLinkId": supplier_link_id})
    return base64.b64encode(blob.encode("utf-8")).decode("ascii")


def decode_bypass_credential(credential: str) -> Optional[str]:
    """Returns the supplier link id, or None when `credential` is not a bypass blob."""
    try:
        data = json.loads(base64.b64decode(credential, validate=True).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None

    if not isinstance(data, dict) or data.get("isActive") is not True:
        return None

    supplier_link_id = data.get("supplierLinkId")
    if not isinstance(supplier_link_id, str) or not supplier_link_id:
        return None
    return supplier_link_id


class SupplierAuthService:
    ALGORITHM = "HS256"

    def __init__(self, session: Session):
        self.session = session

    def _is_link_active(self, supplier_link_id: str) -> bool:
        link = self.session.get(SupplierLink, supplier_link_id)
        return link is not None and link.is_active

    def create_session(self, supplier_link_id: str, email: Optional[str], commit: bool = True) -> str:
        """Signs a session token and stores the row that keeps it alive."""
        expires_at = datetime.utcnow() + timedelta(days=settings.supplier_session_expire_days)
        to_encode = {
            "sub": supplier_link_id,
            "email": email,
            "type": SESSION_TOKEN_TYPE,
            "jti": secrets.token_hex(16),
            "exp": expires_at,
        }
        token = jwt.encode(to_encode, settings.secret_key, algorithm=self.ALGORITHM)

        self.session.add(SupplierSession(
            supplier_link_id=supplier_link_id,
            session_token=token,
            email=email,
            expires_at=expires_at
        ))
        if commit:
            self.session.commit()
        return token

    def authenticate(self, credential: Optional[str]) -> SupplierContext:
        """
        Binds a bearer credential to a supplier link.
        Bypass blobs are tried first, then signed session tokens. Every
        failure surfaces as the same Unauthorized error.
        """
        if not credential:
            raise UnauthorizedError("Access token required")

        # 1. Bypass credential
        supplier_link_id = decode_bypass_credential(credential)
        if supplier_link_id is not None:
            if self._is_link_active(supplier_link_id):
                return SupplierContext(supplier_link_id=supplier_link_id, via_bypass=True)
            logger.warning(f"Bypass credential rejected for inactive link {supplier_link_id}")

        # 2. Signed session token, backed by a live session row
        try:
            payload = jwt.decode(credential, settings.secret_key, algorithms=[self.ALGORITHM])
        except jwt.PyJWTError:
            raise UnauthorizedError()

        if payload.get("type") != SESSION_TOKEN_TYPE:
            raise UnauthorizedError()

        supplier_session = self.session.exec(
            select(SupplierSession)
            .join(SupplierLink, SupplierSession.supplier_link_id == SupplierLink.id)
            .where(SupplierSession.session_token == credential)
            .where(SupplierSession.expires_at > datetime.utcnow())
            .where(SupplierLink.is_active == True)
        ).first()

        if not supplier_session:
            logger.warning("Supplier session rejected: revoked, expired or link inactive")
            raise UnauthorizedError()

        return SupplierContext(
            supplier_link_id=supplier_session.supplier_link_id,
            email=supplier_session.email
        )

    def issue_direct_access(self, supplier_link_id: str) -> DirectAccessRead:
        """
        Hands out the bypass credential, but only while the most recent admin
        grant for the link is Active and inside its validity window.
        """
        if not self._is_link_active(supplier_link_id):
            raise NotFoundError("Supplier link not found or inactive")

        latest = self.session.exec(
            select(AdminSupplierLink)
            .where(AdminSupplierLink.supplier_link_id == supplier_link_id)
            .order_by(col(AdminSupplierLink.created_on).desc())
        ).first()

        if (
            not latest
            or latest.state != LinkState.ACTIVE
            or latest.valid_until <= datetime.utcnow()
        ):
            raise NotFoundError("Supplier link not found or inactive")

        return DirectAccessRead(
            supplier_link_id=supplier_link_id,
            token=encode_bypass_credential(supplier_link_id)
        )

    def dev_login(self, supplier_link_id: str) -> SupplierSessionToken:
        """Development shortcut that skips the OTP round trip."""
        if not self._is_link_active(supplier_link_id):
            raise NotFoundError("Invalid supplier link")

        token = self.create_session(supplier_link_id, DEV_LOGIN_EMAIL)
        logger.warning(f"Development login used for supplier link {supplier_link_id}")
        return SupplierSessionToken(
            token=token,
            message="Test login successful",
            email=DEV_LOGIN_EMAIL
        )
