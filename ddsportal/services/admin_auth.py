from typing import Optional
import uuid
import secrets
from datetime import datetime, timedelta

import jwt
from loguru import logger
from sqlmodel import Session, select

from ddsportal.core.config import settings
from ddsportal.core.exceptions import ConflictError, UnauthorizedError
from ddsportal.db.schema import AdminUser
from ddsportal.models.admin import AdminCreate
from ddsportal.models.auth import TokenData
from .password import get_password_hash, verify_password


ADMIN_TOKEN_TYPE = "admin"


class AdminAuthService:
    """
    Admin identities and their signed tokens. Admin tokens are separate from
    supplier sessions: different `type` claim, no server-side session row.
    """
    ALGORITHM = "HS256"

    def __init__(self, session: Session):
        self.session = session

    def _create_jwt(self, subject: str, expires_delta: timedelta, type: str) -> str:
        """Helper to sign JWTs with specific types."""
        to_encode = {
            "sub": str(subject),
            "exp": datetime.utcnow() + expires_delta,
            "type": type,
            "jti": secrets.token_hex(16)
        }
        return jwt.encode(to_encode, settings.secret_key, algorithm=self.ALGORITHM)

    def get_admin_by_id(self, admin_id: uuid.UUID) -> Optional[AdminUser]:
        return self.session.get(AdminUser, admin_id)

    def get_admin_by_email(self, email: str) -> Optional[AdminUser]:
        statement = select(AdminUser).where(AdminUser.email == email.lower())
        return self.session.exec(statement).first()

    def create_admin(self, admin_in: AdminCreate) -> AdminUser:
        if self.get_admin_by_email(admin_in.email):
            raise ConflictError("An admin with this email already exists.")

        admin = AdminUser(
            email=admin_in.email.lower(),
            password_hash=get_password_hash(admin_in.password)
        )
        self.session.add(admin)
        self.session.commit()
        self.session.refresh(admin)

        logger.info(f"Admin registered: {admin.id}")
        return admin

    def authenticate_admin(self, email: str, password: str) -> AdminUser:
        """Verify email and password hash. One message for every failure."""
        admin = self.get_admin_by_email(email)
        if not admin or not verify_password(password, admin.password_hash):
            logger.warning("Admin login rejected")
            raise UnauthorizedError("Invalid credentials")
        return admin

    def generate_token(self, admin: AdminUser) -> str:
        return self._create_jwt(
            subject=admin.id,
            expires_delta=timedelta(minutes=settings.admin_token_expire_minutes),
            type=ADMIN_TOKEN_TYPE
        )

    def verify_token(self, token: str) -> Optional[TokenData]:
        try:
            payload = jwt.decode(token, settings.secret_key,
                                 algorithms=[self.ALGORITHM])
            admin_id = payload.get("sub")
            token_type = payload.get("type")

            if not admin_id or token_type != ADMIN_TOKEN_TYPE:
                return None

            return TokenData(admin_id=uuid.UUID(admin_id))
        except (jwt.PyJWTError, ValueError):
            return None

    def resolve_admin(self, token: Optional[str]) -> AdminUser:
        """
        Token -> live admin row. A valid signature for a deleted admin is
        still rejected.
        """
        if not token:
            raise UnauthorizedError("Access token required")

        token_data = self.verify_token(token)
        if not token_data:
            raise UnauthorizedError()

        admin = self.get_admin_by_id(token_data.admin_id)
        if admin is None:
            raise UnauthorizedError()
        return admin
