from uuid import UUID
from datetime import datetime
from typing import List, Optional
from sqlmodel import SQLModel, Field
from pydantic import EmailStr, StringConstraints
from typing_extensions import Annotated

from ddsportal.db.schema import LinkState


class AdminRead(SQLModel):
    id: UUID
    email: str
    created_at: datetime


class AdminSignin(SQLModel):
    email: Annotated[EmailStr, StringConstraints(to_lower=True)] = Field(
        description="Registered email address of the admin.",
        max_length=255
    )
    password: str = Field(
        min_length=1,
        max_length=128,
        description="Plain text password."
    )


class AdminCreate(SQLModel):
    email: Annotated[EmailStr, StringConstraints(to_lower=True)] = Field(
        description="Unique email address for signin.",
        max_length=255
    )
    password: str = Field(
        min_length=8,
        max_length=128,
        description="Plain text password."
    )


# ==============================================================================
# SUPPLIER LINKS
# ==============================================================================

class SupplierLinkCreate(SQLModel):
    """
    Payload for issuing a supplier link.
    Re-issuing for a known email reuses that supplier's link id.
    """
    supplier_email: Annotated[EmailStr, StringConstraints(to_lower=True)] = Field(
        max_length=255,
        schema_extra={"examples": ["contact@supplier.com"]},
        description="The supplier the link is shared with."
    )
    valid_until: datetime = Field(
        description="End of the access window (UTC)."
    )
    supplier_name: Optional[str] = Field(default=None, max_length=255)
    admin_notes: Optional[str] = Field(default=None, max_length=2000)


class AdminSupplierLinkRead(SQLModel):
    id: UUID
    shared_with: str
    supplier_link_id: str
    url: str
    created_on: datetime
    state: LinkState
    valid_until: datetime
    supplier_name: Optional[str]
    admin_notes: Optional[str]


class LinkList(SQLModel):
    links: List[AdminSupplierLinkRead]
    total_items: int


class LinkStateUpdate(SQLModel):
    state: LinkState = Field(description="One of 'Pending', 'Active' or 'Frozen'.")


class DirectActivateRequest(SQLModel):
    admin_notes: Optional[str] = Field(default=None, max_length=2000)


class DirectActivationRead(SQLModel):
    message: str = "Supplier link activated directly"
    link: AdminSupplierLinkRead
    supplier_link_id: str
    token: str = Field(description="Bypass credential for the supplier.")
