from uuid import UUID
from datetime import datetime
from typing import List, Optional
from sqlmodel import SQLModel, Field
from pydantic import EmailStr, model_validator

from ddsportal.db.schema import EventDirection


class OrganisationCreate(SQLModel):
    name: str = Field(
        min_length=1,
        max_length=255,
        schema_extra={"examples": ["Northwind Timber Ltd"]},
    )


class OrganisationRead(SQLModel):
    id: UUID
    name: str
    created_at: datetime


class ConnectionCreate(SQLModel):
    organisation_id: UUID = Field(description="The organisation to pair with the calling admin.")


class ConnectionUpdate(SQLModel):
    is_active: bool


class ConnectionRead(SQLModel):
    """Admin-side view of a connection, including its shared token."""
    id: UUID
    organisation_id: UUID
    organisation_name: str
    token: str = Field(description="Example: 'K7QD-2M9X'")
    is_active: bool
    created_at: datetime
    last_used: Optional[datetime] = None


class ConnectionInfo(SQLModel):
    """Public details an organisation may see for its own token."""
    token: str
    organisation_name: str
    is_active: bool
    created_at: datetime
    last_used: Optional[datetime] = None


class ReferenceEventCreate(SQLModel):
    po_number: Optional[str] = Field(default=None, max_length=255)
    delivery_id: Optional[str] = Field(default=None, max_length=255)
    reference_number: str = Field(min_length=1, max_length=255)
    validation_number: Optional[str] = Field(default=None, max_length=255)
    email: Optional[EmailStr] = Field(
        default=None,
        description="Optional contact recorded as the submitter."
    )

    @model_validator(mode="after")
    def check_po_or_delivery(self):
        self.po_number = (self.po_number or "").strip() or None
        self.delivery_id = (self.delivery_id or "").strip() or None

        if not self.po_number and not self.delivery_id:
            raise ValueError("Either PO Number or Delivery ID is required")
        return self


class ReferenceEventRead(SQLModel):
    id: UUID
    po_number: Optional[str]
    delivery_id: Optional[str]
    reference_number: str
    validation_number: Optional[str]
    direction: EventDirection
    submitted_by_email: Optional[str]
    submitted_at: datetime


class ReferenceEventSubmitted(SQLModel):
    reference: ReferenceEventRead
    organisation: str


class ReferenceHistory(SQLModel):
    references: List[ReferenceEventRead]
    organisation: str
