from typing import Optional, Dict, Any
from datetime import datetime
import uuid
from enum import Enum

from sqlalchemy import UniqueConstraint, CheckConstraint
from sqlmodel import SQLModel, Field, JSON


class LinkState(str, Enum):
    PENDING = "Pending"   # Issued, supplier has not been let in yet
    ACTIVE = "Active"     # Supplier may authenticate (OTP or bypass)
    FROZEN = "Frozen"     # Soft deleted; supplier link deactivated


class EventDirection(str, Enum):
    """Labels are from the organisation's point of view."""
    SENT = "sent"          # organisation -> admin
    RECEIVED = "received"  # admin -> organisation


class AccessMethod(str, Enum):
    POSTCODE = "postcode"
    EMAIL = "email"
    LINK = "link"


class AuditAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class TimestampMixin(SQLModel):
    """
    Standard audit timestamps for records that are edited after creation.
    """
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="UTC timestamp when this record was first persisted. Example: '2023-10-27 14:30:00'"
    )
    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        sa_column_kwargs={"onupdate": datetime.utcnow},
        description="UTC timestamp when this record was last modified. Updates automatically."
    )


# ==============================================================================
# SUPPLIER ACCESS
# ==============================================================================

class SupplierLink(SQLModel, table=True):
    """
    A supplier's access channel, identified by a compact 'XXXX-XXXX' token.
    The id never changes once assigned. Links are deactivated, never deleted,
    because submissions keep pointing at them.
    """
    __tablename__ = "supplier_links"

    id: str = Field(
        primary_key=True,
        max_length=255,
        description="Compact token. Example: 'K7QD-2M9X'"
    )
    supplier_identifier: str = Field(
        index=True,
        max_length=255,
        description="Usually the supplier's email. One link per identifier by convention."
    )
    is_active: bool = Field(
        default=True,
        description="False excludes the link from every authentication path."
    )
    created_at: datetime = Field(default_factory=datetime.utcnow)
    last_used: Optional[datetime] = Field(default=None)


class AdminSupplierLink(SQLModel, table=True):
    """
    An admin-issued grant pointing at a SupplierLink. One supplier identity
    may accumulate many of these over time (renewed access windows).
    Invariant kept by LinkService: state != Frozen <=> SupplierLink.is_active.
    """
    __tablename__ = "admin_supplier_links"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    shared_with: str = Field(index=True, max_length=255)
    supplier_link_id: str = Field(foreign_key="supplier_links.id", index=True)
    url: str = Field(max_length=500)
    created_on: datetime = Field(default_factory=datetime.utcnow)
    state: LinkState = Field(default=LinkState.PENDING)
    valid_until: datetime
    supplier_name: Optional[str] = Field(default=None, max_length=255)
    admin_notes: Optional[str] = Field(default=None)


class SupplierDirectActivation(SQLModel, table=True):
    """Audit trail for admin activations that skipped the OTP round trip."""
    __tablename__ = "supplier_direct_activations"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    supplier_link_id: str = Field(foreign_key="supplier_links.id", index=True)
    activated_by_admin: str = Field(default="admin", max_length=255)
    activated_at: datetime = Field(default_factory=datetime.utcnow)
    admin_notes: Optional[str] = Field(default=None)


class SupplierIdMigration(SQLModel, table=True):
    __tablename__ = "supplier_id_migrations"

    old_id: str = Field(primary_key=True, max_length=255)
    new_id: str = Field(index=True, max_length=9)
    migrated_at: datetime = Field(default_factory=datetime.utcnow)


class OtpToken(SQLModel, table=True):
    """
    A one-time code binding an email to a supplier link.
    Consumed exactly once: `used` only ever flips false -> true.
    """
    __tablename__ = "otp_tokens"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    email: str = Field(index=True, max_length=255)
    otp_code: str = Field(max_length=6)
    supplier_link_id: str = Field(foreign_key="supplier_links.id", index=True)
    expires_at: datetime = Field(index=True)
    used: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class SupplierSession(SQLModel, table=True):
    """
    Server-side record backing a signed supplier session token. Deleting the
    row revokes the token even though its signature stays valid.
    """
    __tablename__ = "supplier_sessions"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    supplier_link_id: str = Field(foreign_key="supplier_links.id", index=True)
    session_token: str = Field(unique=True, index=True)
    email: Optional[str] = Field(default=None, max_length=255)
    expires_at: datetime = Field(index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)


# ==============================================================================
# REFERENCE DATA
# ==============================================================================

class ReferenceSubmission(TimestampMixin, SQLModel, table=True):
    """
    Append-only: several submissions for the same PO/Delivery are history,
    not replacements.
    """
    __tablename__ = "reference_submissions"
    __table_args__ = (
        CheckConstraint(
            "(po_number IS NOT NULL AND po_number != '') OR "
            "(delivery_id IS NOT NULL AND delivery_id != '')",
            name="check_po_or_delivery",
        ),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    supplier_link_id: str = Field(foreign_key="supplier_links.id", index=True)
    po_number: Optional[str] = Field(default=None, index=True, max_length=255)
    delivery_id: Optional[str] = Field(default=None, index=True, max_length=255)
    delivery_postcode: str = Field(max_length=10)
    reference_number: str = Field(max_length=255)
    validation_number: Optional[str] = Field(default=None, max_length=255)
    submitted_by_email: Optional[str] = Field(
        default=None,
        max_length=255,
        description="Null when submitted through a bypass credential."
    )
    submitted_at: datetime = Field(default_factory=datetime.utcnow, index=True)


class AccessToken(SQLModel, table=True):
    """
    Customer-facing share token. Dead for good once expired or once
    uses_count reaches max_uses.
    """
    __tablename__ = "access_tokens"

    token: str = Field(primary_key=True, max_length=255)
    po_number: str = Field(max_length=255)
    delivery_id: str = Field(default="", max_length=255)
    expires_at: datetime = Field(index=True)
    max_uses: int = Field(default=10)
    uses_count: int = Field(default=0)
    password_hash: Optional[str] = Field(default=None, max_length=255)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class CustomerAccessLog(SQLModel, table=True):
    __tablename__ = "customer_access_logs"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    po_number: str = Field(index=True, max_length=255)
    delivery_id: str = Field(default="", max_length=255)
    access_method: AccessMethod
    accessed_by_email: Optional[str] = Field(default=None, max_length=255)
    accessed_at: datetime = Field(default_factory=datetime.utcnow)
    ip_address: Optional[str] = Field(default=None, max_length=45)


# ==============================================================================
# ADMINS, ORGANISATIONS & CONNECTIONS
# ==============================================================================

class AdminUser(SQLModel, table=True):
    __tablename__ = "admin_users"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    email: str = Field(unique=True, index=True, max_length=255)
    password_hash: str = Field(
        description="Salted hash, never plain text."
    )
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Organisation(SQLModel, table=True):
    __tablename__ = "organisations"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(index=True, max_length=255)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Connection(SQLModel, table=True):
    """
    Pairs one admin with one organisation. The token shares the supplier
    link format but lives in its own namespace.
    """
    __tablename__ = "connections"
    __table_args__ = (
        UniqueConstraint("admin_user_id", "organisation_id",
                         name="uq_connection_admin_organisation"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    admin_user_id: uuid.UUID = Field(foreign_key="admin_users.id", index=True)
    organisation_id: uuid.UUID = Field(foreign_key="organisations.id", index=True)
    token: str = Field(unique=True, index=True, max_length=9)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    last_used: Optional[datetime] = Field(default=None)


class ReferenceEvent(SQLModel, table=True):
    __tablename__ = "reference_events"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    connection_id: uuid.UUID = Field(foreign_key="connections.id", index=True)
    po_number: Optional[str] = Field(default=None, max_length=255)
    delivery_id: Optional[str] = Field(default=None, max_length=255)
    reference_number: str = Field(max_length=255)
    validation_number: Optional[str] = Field(default=None, max_length=255)
    direction: EventDirection
    submitted_by_email: Optional[str] = Field(default=None, max_length=255)
    submitted_at: datetime = Field(default_factory=datetime.utcnow, index=True)


class SystemAuditLog(SQLModel, table=True):
    __tablename__ = "system_audit_logs"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    actor_user_id: Optional[uuid.UUID] = Field(default=None, index=True)
    entity_type: str = Field(max_length=100)
    entity_id: str = Field(max_length=255)
    action: AuditAction
    changes: Dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    ip_address: Optional[str] = Field(default=None, max_length=45)
    timestamp: datetime = Field(default_factory=datetime.utcnow)
