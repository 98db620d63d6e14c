from fastapi import APIRouter, Depends, Response, status
from loguru import logger

from ddsportal.core.config import settings
from ddsportal.core.dependencies import (
    ADMIN_COOKIE, get_admin_auth_service, get_current_admin
)
from ddsportal.core.exceptions import NotFoundError
from ddsportal.db.schema import AdminUser
from ddsportal.models.admin import AdminCreate, AdminRead, AdminSignin
from ddsportal.models.auth import AdminToken
from ddsportal.services.admin_auth import AdminAuthService


router = APIRouter()


@router.post(
    "/login",
    response_model=AdminToken,
    status_code=status.HTTP_200_OK,
    summary="Admin signin",
    description="Sets an httpOnly session cookie and also returns the token for bearer use."
)
def login(
    signin_data: AdminSignin,
    response: Response,
    service: AdminAuthService = Depends(get_admin_auth_service)
):
    admin = service.authenticate_admin(signin_data.email, signin_data.password)
    token = service.generate_token(admin)

    response.set_cookie(
        key=ADMIN_COOKIE,
        value=token,
        httponly=True,
        secure=not settings.debug,
        samesite="strict",
        max_age=settings.admin_token_expire_minutes * 60,
    )

    logger.info(f"Admin logged in: {admin.id}")
    return AdminToken(access_token=token)


@router.post(
    "/logout",
    status_code=status.HTTP_200_OK,
    summary="Admin signout"
)
def logout(response: Response):
    response.delete_cookie(ADMIN_COOKIE)
    return {"message": "Logged out"}


@router.get(
    "/me",
    response_model=AdminRead,
    status_code=status.HTTP_200_OK,
    summary="Get current admin"
)
def get_me(current_admin: AdminUser = Depends(get_current_admin)):
    return current_admin


@router.post(
    "/register",
    response_model=AdminRead,
    status_code=status.HTTP_201_CREATED,
    summary="Register an admin",
    description="Only available when debug is enabled."
)
def register(
    admin_in: AdminCreate,
    service: AdminAuthService = Depends(get_admin_auth_service)
):
    if not settings.debug:
        raise NotFoundError("Not found")
    return service.create_admin(admin_in)
