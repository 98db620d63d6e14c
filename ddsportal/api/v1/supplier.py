from fastapi import APIRouter, Depends, status

from ddsportal.core.config import settings
from ddsportal.core.dependencies import (
    get_current_supplier, get_otp_service, get_submission_service,
    get_supplier_auth_service
)
from ddsportal.core.exceptions import NotFoundError
from ddsportal.core.rate_limit import strict_limiter
from ddsportal.models.supplier import (
    BulkSubmissionRequest, BulkSubmissionResult, DevLoginRequest, DirectAccessRead,
    ReferenceSubmissionCreate, SubmissionAccepted, SubmissionList, SupplierContext,
    SupplierSessionToken, SupplierLinkId, ValidateOtpRequest, VerifyEmailRequest
)
from ddsportal.services.otp import OtpService
from ddsportal.services.submission import SubmissionService
from ddsportal.services.supplier_auth import SupplierAuthService


router = APIRouter()


# ==============================================================================
# AUTHENTICATION
# ==============================================================================

@router.post(
    "/verify-email",
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(strict_limiter)],
    summary="Request OTP",
    description="Emails a 6 digit one-time code for an active supplier link."
)
def verify_email(
    data: VerifyEmailRequest,
    service: OtpService = Depends(get_otp_service)
):
    service.request_otp(data.email, data.supplier_link_id)
    return {"message": "OTP sent to your email"}


@router.post(
    "/validate-otp",
    response_model=SupplierSessionToken,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(strict_limiter)],
    summary="Exchange OTP for a session token",
    description="Consumes the code and returns a 30 day session token."
)
def validate_otp(
    data: ValidateOtpRequest,
    service: OtpService = Depends(get_otp_service)
):
    return service.validate_otp(data.email, data.otp, data.supplier_link_id)


@router.post(
    "/test-login",
    response_model=SupplierSessionToken,
    status_code=status.HTTP_200_OK,
    summary="Development login",
    description="Only available when debug is enabled."
)
def test_login(
    data: DevLoginRequest,
    service: SupplierAuthService = Depends(get_supplier_auth_service)
):
    if not settings.debug:
        raise NotFoundError("Not found")
    return service.dev_login(data.supplier_link_id)


@router.get(
    "/links/{supplier_link_id}/access",
    response_model=DirectAccessRead,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(strict_limiter)],
    summary="Direct access for an activated link",
    description="Returns the bypass credential when an admin has activated the link."
)
def direct_access(
    supplier_link_id: SupplierLinkId,
    service: SupplierAuthService = Depends(get_supplier_auth_service)
):
    return service.issue_direct_access(supplier_link_id)


# ==============================================================================
# SUBMISSIONS
# ==============================================================================

@router.get(
    "/submissions",
    response_model=SubmissionList,
    status_code=status.HTTP_200_OK,
    summary="List own submissions",
    description="Newest first."
)
def list_submissions(
    supplier: SupplierContext = Depends(get_current_supplier),
    service: SubmissionService = Depends(get_submission_service)
):
    return service.list_submissions(supplier)


@router.post(
    "/submit",
    response_model=SubmissionAccepted,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a reference number"
)
def submit_reference(
    data: ReferenceSubmissionCreate,
    supplier: SupplierContext = Depends(get_current_supplier),
    service: SubmissionService = Depends(get_submission_service)
):
    service.submit(supplier, data)
    return SubmissionAccepted()


@router.post(
    "/bulk-submit",
    response_model=BulkSubmissionResult,
    status_code=status.HTTP_200_OK,
    summary="Submit up to 100 reference numbers",
    description="Returns a per-row outcome and a summary."
)
def bulk_submit(
    data: BulkSubmissionRequest,
    supplier: SupplierContext = Depends(get_current_supplier),
    service: SubmissionService = Depends(get_submission_service)
):
    return service.bulk_submit(supplier, data.submissions)
