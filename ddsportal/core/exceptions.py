"""Application-level exceptions and their FastAPI handlers.

Services raise these directly; routers never translate them. Authentication
failures always carry fixed, generic messages so a caller cannot tell which
part of a credential check failed.
"""
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from loguru import logger


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500, code: str = "INTERNAL_ERROR"):
        self.message = message
        self.status_code = status_code
        self.code = code
        super().__init__(message)


class ValidationError(AppException):
    def __init__(self, message: str):
        super().__init__(message, status_code=422, code="VALIDATION_ERROR")


class NotFoundError(AppException):
    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, status_code=404, code="NOT_FOUND")


class UnauthorizedError(AppException):
    def __init__(self, message: str = "Invalid token"):
        super().__init__(message, status_code=401, code="UNAUTHORIZED")


class ForbiddenError(AppException):
    def __init__(self, message: str = "Access denied"):
        super().__init__(message, status_code=403, code="FORBIDDEN")


class ConflictError(AppException):
    def __init__(self, message: str):
        super().__init__(message, status_code=409, code="CONFLICT")


class GenerationExhaustedError(AppException):
    """No free identifier found within the allowed attempts."""

    def __init__(self, attempts: int):
        super().__init__(
            f"Failed to generate a unique identifier after {attempts} attempts",
            status_code=500,
            code="GENERATION_EXHAUSTED",
        )


class DeliveryError(AppException):
    """Outbound email could not be handed to the mail server."""

    def __init__(self, message: str = "Failed to send email"):
        super().__init__(message, status_code=502, code="DELIVERY_ERROR")


class RateLimitedError(AppException):
    def __init__(self, message: str = "Too many requests from this IP, please try again later."):
        super().__init__(message, status_code=429, code="RATE_LIMITED")


def _error_body(code: str, message: str) -> dict:
    return {"error": {"code": code, "message": message}}


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all custom exception handlers to the FastAPI app."""

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.code, exc.message),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body("INTERNAL_ERROR", "An unexpected error occurred"),
        )
