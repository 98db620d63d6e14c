from datetime import datetime
from typing import List, Optional
from sqlmodel import SQLModel, Field
from pydantic import EmailStr, StringConstraints, model_validator
from typing_extensions import Annotated


class CustomerAccessRequest(SQLModel):
    """
    Either identifier (PO or Delivery) plus either proof (postcode or email).
    Postcode returns the data immediately; email sends a share link.
    """
    po_number: Optional[str] = Field(default=None, max_length=255)
    delivery_id: Optional[str] = Field(default=None, max_length=255)
    postcode: Optional[str] = Field(default=None, min_length=3, max_length=10)
    email: Optional[Annotated[EmailStr, StringConstraints(to_lower=True)]] = None

    @model_validator(mode="after")
    def check_identifier_and_proof(self):
        self.po_number = (self.po_number or "").strip() or None
        self.delivery_id = (self.delivery_id or "").strip() or None

        if not self.po_number and not self.delivery_id:
            raise ValueError("Either PO Number or Delivery ID is required")
        if not self.postcode and not self.email:
            raise ValueError("Either postcode or email is required")
        return self


class ShareableLinkCreate(SQLModel):
    po_number: str = Field(min_length=1, max_length=255)
    delivery_id: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(
        default=None,
        min_length=4,
        max_length=50,
        description="Optional. Stored hashed; redemption then requires it."
    )
    expires_in_hours: int = Field(default=24, ge=1, le=168)


class AccessPasswordRequest(SQLModel):
    """Answer to a password challenge, sent in the body rather than the URL."""
    password: str = Field(min_length=1, max_length=50)


class ShareableLinkRead(SQLModel):
    share_url: str
    expires_at: datetime
    password_protected: bool


class ReferenceView(SQLModel):
    po_number: Optional[str]
    delivery_id: Optional[str]
    reference_number: str
    validation_number: Optional[str]
    submitted_at: datetime


class ReferenceList(SQLModel):
    references: List[ReferenceView]


class ReferenceGroup(SQLModel):
    """All references for one PO/Delivery pair."""
    po_number: Optional[str]
    delivery_id: Optional[str]
    references: List[ReferenceView]
    latest_submission: datetime


class AccessMessage(SQLModel):
    message: str


class RedemptionResult(SQLModel):
    """
    status is 'granted' (groups filled), 'password_required' or
    'invalid_password' (no data, token not consumed).
    """
    status: str
    po_number: Optional[str] = None
    delivery_id: Optional[str] = None
    total_references: int = 0
    groups: List[ReferenceGroup] = Field(default_factory=list)
    error: Optional[str] = None
