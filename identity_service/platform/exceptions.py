from typing import Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from identity_service.platform.logger import get_logger
from identity_service.platform.response import api_response

logger = get_logger(__name__)


class AppError(Exception):
    """
    Base class for failures that are safe to show to API callers.

    Subclasses pin ``status_code``, ``error_code`` and a default message; the
    handler below turns them into the standard response envelope.
    """

    status_code: int = status.HTTP_400_BAD_REQUEST
    error_code: str = "APP_ERROR"
    message: str = "Request could not be completed"

    def __init__(self, message: Optional[str] = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


def add_exception_handlers(app):
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        headers = None
        if exc.status_code == status.HTTP_401_UNAUTHORIZED:
            headers = {"WWW-Authenticate": "Bearer"}
        return api_response(
            message=exc.message,
            status_code=exc.status_code,
            data={"error_code": exc.error_code},
            headers=headers,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return api_response(
            message=str(exc.detail) or "Error",
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return api_response(
            message="Validation failed",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            data={"errors": exc.errors()},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        # Store and crypto messages stay in the log, never in the response
        logger.exception(f"Unhandled exception on {request.method} {request.url.path}")
        return api_response(
            message="Internal server error",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
