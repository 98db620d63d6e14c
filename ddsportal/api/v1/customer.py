from typing import Optional, Union
from fastapi import APIRouter, Depends, Query, Response, status

from ddsportal.core.dependencies import get_client_ip, get_share_service
from ddsportal.core.rate_limit import general_limiter, strict_limiter
from ddsportal.models.customer import (
    AccessMessage, AccessPasswordRequest, CustomerAccessRequest, RedemptionResult,
    ReferenceList, ShareableLinkCreate, ShareableLinkRead
)
from ddsportal.services.share import ShareService


router = APIRouter()


@router.post(
    "/request-access",
    response_model=Union[ReferenceList, AccessMessage],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(strict_limiter)],
    summary="Request access to references",
    description="Postcode answers inline; email sends a time-limited link."
)
def request_access(
    data: CustomerAccessRequest,
    ip_address: Optional[str] = Depends(get_client_ip),
    service: ShareService = Depends(get_share_service)
):
    return service.request_access(data, ip_address)


@router.get(
    "/access/{token}",
    response_model=RedemptionResult,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(general_limiter)],
    summary="Redeem an access link",
    description="Password protected links answer with a challenge; answer it with a POST."
)
def redeem_access(
    token: str,
    ip_address: Optional[str] = Depends(get_client_ip),
    service: ShareService = Depends(get_share_service)
):
    return service.redeem(token, None, ip_address)


@router.post(
    "/access/{token}",
    response_model=RedemptionResult,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(general_limiter)],
    summary="Redeem a password protected access link"
)
def redeem_access_with_password(
    token: str,
    data: AccessPasswordRequest,
    ip_address: Optional[str] = Depends(get_client_ip),
    service: ShareService = Depends(get_share_service)
):
    return service.redeem(token, data.password, ip_address)


@router.get(
    "/references/{identifier}",
    response_model=ReferenceList,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(general_limiter)],
    summary="Look up references by PO number"
)
def get_references(
    identifier: str,
    delivery_id: Optional[str] = Query(None, alias="deliveryId"),
    service: ShareService = Depends(get_share_service)
):
    return service.lookup(identifier, delivery_id)


@router.post(
    "/generate-link",
    response_model=ShareableLinkRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(general_limiter)],
    summary="Create a shareable link",
    description="Optional password; expiry between 1 and 168 hours."
)
def generate_link(
    data: ShareableLinkCreate,
    service: ShareService = Depends(get_share_service)
):
    return service.generate_shareable_link(data)


@router.get(
    "/download-csv/{identifier}",
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(general_limiter)],
    summary="Download references as CSV"
)
def download_csv(
    identifier: str,
    delivery_id: Optional[str] = Query(None, alias="deliveryId"),
    service: ShareService = Depends(get_share_service)
):
    content = service.export_csv(identifier, delivery_id)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="references-{identifier}.csv"'}
    )
