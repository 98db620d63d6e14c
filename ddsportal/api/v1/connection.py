import uuid
from typing import List, Optional
from fastapi import APIRouter, BackgroundTasks, Depends, Query, status

from ddsportal.core.dependencies import get_connection_service, get_current_admin
from ddsportal.db.schema import AdminUser, EventDirection
from ddsportal.models.connection import (
    ConnectionCreate, ConnectionRead, ConnectionUpdate, OrganisationCreate,
    OrganisationRead, ReferenceEventCreate, ReferenceEventSubmitted, ReferenceHistory
)
from ddsportal.services.connection import ConnectionService

router = APIRouter()

# ==============================================================================
# ORGANISATIONS
# ==============================================================================


@router.get(
    "/organisations",
    response_model=List[OrganisationRead],
    status_code=status.HTTP_200_OK,
    summary="Search organisations"
)
def list_organisations(
    search: Optional[str] = Query(None, description="Case-insensitive name filter"),
    current_admin: AdminUser = Depends(get_current_admin),
    service: ConnectionService = Depends(get_connection_service)
):
    return service.list_organisations(search)


@router.post(
    "/organisations",
    response_model=OrganisationRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create organisation"
)
def create_organisation(
    data: OrganisationCreate,
    current_admin: AdminUser = Depends(get_current_admin),
    service: ConnectionService = Depends(get_connection_service)
):
    return service.create_organisation(data)


# ==============================================================================
# CONNECTIONS (scoped to the calling admin)
# ==============================================================================

@router.post(
    "/connections",
    response_model=ConnectionRead,
    status_code=status.HTTP_201_CREATED,
    summary="Connect to an organisation",
    description="One connection per organisation; a second attempt is a conflict."
)
def create_connection(
    data: ConnectionCreate,
    background_tasks: BackgroundTasks,
    current_admin: AdminUser = Depends(get_current_admin),
    service: ConnectionService = Depends(get_connection_service)
):
    return service.create_connection(current_admin, data, background_tasks)


@router.get(
    "/connections",
    response_model=List[ConnectionRead],
    status_code=status.HTTP_200_OK,
    summary="List connections"
)
def list_connections(
    current_admin: AdminUser = Depends(get_current_admin),
    service: ConnectionService = Depends(get_connection_service)
):
    return service.list_connections(current_admin)


@router.get(
    "/connections/{connection_id}",
    response_model=ConnectionRead,
    status_code=status.HTTP_200_OK,
    summary="Get connection"
)
def get_connection(
    connection_id: uuid.UUID,
    current_admin: AdminUser = Depends(get_current_admin),
    service: ConnectionService = Depends(get_connection_service)
):
    return service.get_connection(current_admin, connection_id)


@router.patch(
    "/connections/{connection_id}",
    response_model=ConnectionRead,
    status_code=status.HTTP_200_OK,
    summary="Enable or disable a connection"
)
def update_connection(
    connection_id: uuid.UUID,
    data: ConnectionUpdate,
    background_tasks: BackgroundTasks,
    current_admin: AdminUser = Depends(get_current_admin),
    service: ConnectionService = Depends(get_connection_service)
):
    return service.update_connection(current_admin, connection_id, data, background_tasks)


@router.post(
    "/connections/{connection_id}/submit",
    response_model=ReferenceEventSubmitted,
    status_code=status.HTTP_201_CREATED,
    summary="Send a reference to the organisation"
)
def submit_to_organisation(
    connection_id: uuid.UUID,
    data: ReferenceEventCreate,
    current_admin: AdminUser = Depends(get_current_admin),
    service: ConnectionService = Depends(get_connection_service)
):
    return service.admin_submit(current_admin, connection_id, data)


@router.get(
    "/connections/{connection_id}/history",
    response_model=ReferenceHistory,
    status_code=status.HTTP_200_OK,
    summary="Connection history",
    description="Direction labels are shown from the admin's side when flipping is enabled."
)
def connection_history(
    connection_id: uuid.UUID,
    direction: Optional[EventDirection] = Query(None),
    current_admin: AdminUser = Depends(get_current_admin),
    service: ConnectionService = Depends(get_connection_service)
):
    return service.admin_history(current_admin, connection_id, direction)
