from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from ddsportal.core.dependencies import get_connection_service
from ddsportal.core.rate_limit import general_limiter
from ddsportal.db.schema import EventDirection
from ddsportal.models.connection import (
    ConnectionInfo, ReferenceEventCreate, ReferenceEventSubmitted, ReferenceHistory
)
from ddsportal.services.connection import ConnectionService

# The connection token in the path is the organisation's only credential
router = APIRouter(dependencies=[Depends(general_limiter)])


@router.post(
    "/{token}/submit",
    response_model=ReferenceEventSubmitted,
    status_code=status.HTTP_201_CREATED,
    summary="Send a reference to the admin"
)
def submit_reference(
    token: str,
    data: ReferenceEventCreate,
    service: ConnectionService = Depends(get_connection_service)
):
    return service.org_submit(token, data)


@router.get(
    "/{token}/history",
    response_model=ReferenceHistory,
    status_code=status.HTTP_200_OK,
    summary="Reference history for this connection"
)
def history(
    token: str,
    direction: Optional[EventDirection] = Query(None),
    service: ConnectionService = Depends(get_connection_service)
):
    return service.org_history(token, direction)


@router.get(
    "/{token}/retrieve",
    response_model=ReferenceHistory,
    status_code=status.HTTP_200_OK,
    summary="References sent by the admin"
)
def retrieve(
    token: str,
    service: ConnectionService = Depends(get_connection_service)
):
    return service.org_retrieve(token)


@router.get(
    "/{token}/info",
    response_model=ConnectionInfo,
    status_code=status.HTTP_200_OK,
    summary="Public connection details"
)
def info(
    token: str,
    service: ConnectionService = Depends(get_connection_service)
):
    return service.org_info(token)
