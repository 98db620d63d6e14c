from datetime import datetime
from typing import List, Optional
from sqlmodel import SQLModel, Field
from pydantic import EmailStr, StringConstraints, model_validator
from typing_extensions import Annotated


SupplierLinkId = Annotated[str, StringConstraints(
    strip_whitespace=True, pattern=r"^[A-Z0-9]{4}-[A-Z0-9]{4}$")]

OtpCode = Annotated[str, StringConstraints(strip_whitespace=True, pattern=r"^\d{6}$")]


class VerifyEmailRequest(SQLModel):
    email: Annotated[EmailStr, StringConstraints(to_lower=True)] = Field(
        description="Address the one-time code is sent to.",
        max_length=255
    )
    supplier_link_id: SupplierLinkId = Field(
        description="The supplier link from the access URL. Example: 'K7QD-2M9X'"
    )


class ValidateOtpRequest(SQLModel):
    email: Annotated[EmailStr, StringConstraints(to_lower=True)] = Field(max_length=255)
    otp: OtpCode = Field(description="The 6 digit code from the email.")
    supplier_link_id: SupplierLinkId


class DevLoginRequest(SQLModel):
    supplier_link_id: SupplierLinkId


class SupplierSessionToken(SQLModel):
    token: str
    message: str = "Authentication successful"
    email: Optional[str] = None


class DirectAccessRead(SQLModel):
    supplier_link_id: str
    token: str = Field(description="Bypass credential for an admin-activated link.")


class SupplierContext(SQLModel):
    """The identity bound to an authenticated supplier request."""
    supplier_link_id: str
    email: Optional[str] = Field(
        default=None,
        description="None for bypass credentials (anonymous supplier)."
    )
    via_bypass: bool = False


class ReferenceSubmissionCreate(SQLModel):
    po_number: Optional[str] = Field(default=None, max_length=255)
    delivery_id: Optional[str] = Field(default=None, max_length=255)
    delivery_postcode: str = Field(min_length=3, max_length=10)
    reference_number: str = Field(min_length=1, max_length=255)
    validation_number: Optional[str] = Field(default=None, max_length=255)

    @model_validator(mode="after")
    def check_po_or_delivery(self):
        self.po_number = (self.po_number or "").strip() or None
        self.delivery_id = (self.delivery_id or "").strip() or None
        self.validation_number = (self.validation_number or "").strip() or None

        if not self.po_number and not self.delivery_id:
            raise ValueError("Either PO Number or Delivery ID is required")
        return self


class BulkSubmissionRequest(SQLModel):
    submissions: List[ReferenceSubmissionCreate] = Field(
        min_length=1,
        max_length=100,
        description="Validated as a whole; each row is then stored independently."
    )


class SubmissionAccepted(SQLModel):
    message: str = "Reference submitted successfully"


class ReferenceSubmissionRead(SQLModel):
    po_number: Optional[str]
    delivery_id: Optional[str]
    delivery_postcode: str
    reference_number: str
    validation_number: Optional[str]
    submitted_by_email: Optional[str]
    submitted_at: datetime
    updated_at: datetime


class SubmissionList(SQLModel):
    submissions: List[ReferenceSubmissionRead]


class BulkItemResult(SQLModel):
    index: int
    status: str = Field(description="'created' or 'error'.")
    po_number: Optional[str] = None
    delivery_id: Optional[str] = None
    reference_number: Optional[str] = None
    error: Optional[str] = None


class BulkSummary(SQLModel):
    total: int
    created: int
    errors: int


class BulkSubmissionResult(SQLModel):
    message: str = "Bulk upload completed"
    results: List[BulkItemResult]
    summary: BulkSummary
