import uuid
from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Depends, Query, status

from ddsportal.core.dependencies import get_current_admin, get_link_service
from ddsportal.db.schema import AdminUser
from ddsportal.models.admin import (
    AdminSupplierLinkRead, DirectActivateRequest, DirectActivationRead,
    LinkList, LinkStateUpdate, SupplierLinkCreate
)
from ddsportal.services.link import LinkService


router = APIRouter()


@router.post(
    "/generate-link",
    response_model=AdminSupplierLinkRead,
    status_code=status.HTTP_201_CREATED,
    summary="Issue a supplier link",
    description="Creates a Pending grant and emails the supplier URL."
)
def generate_link(
    data: SupplierLinkCreate,
    current_admin: AdminUser = Depends(get_current_admin),
    service: LinkService = Depends(get_link_service)
):
    return service.generate_link(data)


@router.get(
    "/links",
    response_model=LinkList,
    status_code=status.HTTP_200_OK,
    summary="List supplier links",
    description="Newest first."
)
def list_links(
    offset: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    current_admin: AdminUser = Depends(get_current_admin),
    service: LinkService = Depends(get_link_service)
):
    return service.list_links(offset=offset, limit=limit)


@router.get(
    "/links/{link_id}",
    response_model=AdminSupplierLinkRead,
    status_code=status.HTTP_200_OK,
    summary="Get a supplier link"
)
def get_link(
    link_id: uuid.UUID,
    current_admin: AdminUser = Depends(get_current_admin),
    service: LinkService = Depends(get_link_service)
):
    return service.get_link(link_id)


@router.patch(
    "/links/{link_id}/state",
    response_model=AdminSupplierLinkRead,
    status_code=status.HTTP_200_OK,
    summary="Change link state",
    description="Frozen deactivates the supplier link; any other state activates it."
)
def set_link_state(
    link_id: uuid.UUID,
    data: LinkStateUpdate,
    background_tasks: BackgroundTasks,
    current_admin: AdminUser = Depends(get_current_admin),
    service: LinkService = Depends(get_link_service)
):
    return service.set_state(link_id, data.state, current_admin, background_tasks)


@router.delete(
    "/links/{link_id}",
    response_model=AdminSupplierLinkRead,
    status_code=status.HTTP_200_OK,
    summary="Freeze a supplier link",
    description="Soft delete: the link is frozen and kept."
)
def freeze_link(
    link_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    current_admin: AdminUser = Depends(get_current_admin),
    service: LinkService = Depends(get_link_service)
):
    return service.freeze(link_id, current_admin, background_tasks)


@router.post(
    "/links/{link_id}/activate",
    response_model=DirectActivationRead,
    status_code=status.HTTP_200_OK,
    summary="Activate without OTP",
    description="Returns a bypass credential the supplier can use directly."
)
def direct_activate(
    link_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    data: Optional[DirectActivateRequest] = None,
    current_admin: AdminUser = Depends(get_current_admin),
    service: LinkService = Depends(get_link_service)
):
    notes = data.admin_notes if data else None
    return service.direct_activate(link_id, notes, current_admin, background_tasks)
