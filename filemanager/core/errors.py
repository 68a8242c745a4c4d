"""
Error codes and exception handlers.

Services raise AppException subclasses; the handlers registered here turn
them into a rendered error page (HTML routes) or a JSON body (``/api/*``).
"""

import logging
from enum import IntEnum
from typing import Any, Dict, Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from filemanager.core.templating import templates

logger = logging.getLogger(__name__)


class ErrorCode(IntEnum):
    SUCCESS = 0

    # 1xxx: system
    INTERNAL_ERROR = 1000
    FILE_SYSTEM_ERROR = 1007
    STORAGE_ERROR = 1008

    # 3xxx: request / resource
    VALIDATION_ERROR = 3001
    RESOURCE_NOT_FOUND = 3002
    RESOURCE_EXISTS = 3003
    INVALID_OPERATION = 3006
    FILE_TOO_LARGE = 3009
    FILE_TYPE_NOT_ALLOWED = 3010
    PARTIAL_FAILURE = 3013


ERROR_MESSAGES: Dict[int, str] = {
    ErrorCode.SUCCESS: "OK",
    ErrorCode.INTERNAL_ERROR: "Something broke! Server Error",
    ErrorCode.FILE_SYSTEM_ERROR: "File system error",
    ErrorCode.STORAGE_ERROR: "Storage service error",
    ErrorCode.VALIDATION_ERROR: "Invalid request",
    ErrorCode.RESOURCE_NOT_FOUND: "Item not found",
    ErrorCode.RESOURCE_EXISTS: "Item already exists",
    ErrorCode.INVALID_OPERATION: "Operation not supported for this item",
    ErrorCode.FILE_TOO_LARGE: "File is too large",
    ErrorCode.FILE_TYPE_NOT_ALLOWED: "File type not allowed",
    ErrorCode.PARTIAL_FAILURE: "Some items could not be processed",
}

ERROR_HTTP_STATUS: Dict[int, int] = {
    ErrorCode.SUCCESS: status.HTTP_200_OK,
    ErrorCode.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.FILE_SYSTEM_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.STORAGE_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorCode.RESOURCE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.RESOURCE_EXISTS: status.HTTP_409_CONFLICT,
    ErrorCode.INVALID_OPERATION: status.HTTP_400_BAD_REQUEST,
    ErrorCode.FILE_TOO_LARGE: status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
    ErrorCode.FILE_TYPE_NOT_ALLOWED: status.HTTP_400_BAD_REQUEST,
    ErrorCode.PARTIAL_FAILURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class AppException(Exception):
    """
    Base application exception.

    Usage:
        raise AppException(ErrorCode.RESOURCE_NOT_FOUND, "File not found")
    """

    def __init__(
        self,
        code: int = ErrorCode.INTERNAL_ERROR,
        message: Optional[str] = None,
        data: Any = None,
    ):
        self.code = code
        self.message = message or ERROR_MESSAGES.get(code, "Unknown error")
        self.data = data
        self.http_status = ERROR_HTTP_STATUS.get(code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": int(self.code), "message": self.message, "data": self.data}


class ValidationException(AppException):
    def __init__(self, message: str = "Invalid request", data: Any = None):
        super().__init__(ErrorCode.VALIDATION_ERROR, message, data)


class NotFoundException(AppException):
    def __init__(self, message: str = "Item not found"):
        super().__init__(ErrorCode.RESOURCE_NOT_FOUND, message)


class ConflictException(AppException):
    def __init__(self, message: str = "Item already exists"):
        super().__init__(ErrorCode.RESOURCE_EXISTS, message)


class InvalidOperationException(AppException):
    def __init__(self, message: str):
        super().__init__(ErrorCode.INVALID_OPERATION, message)


class StorageException(AppException):
    """Read/write/delete failed in the storage backend."""

    def __init__(self, message: str = "File system error"):
        super().__init__(ErrorCode.FILE_SYSTEM_ERROR, message)


class FileTooLargeException(AppException):
    def __init__(self, message: str):
        super().__init__(ErrorCode.FILE_TOO_LARGE, message)


class FileTypeNotAllowedException(AppException):
    def __init__(self, message: str):
        super().__init__(ErrorCode.FILE_TYPE_NOT_ALLOWED, message)


class PartialFailureException(AppException):
    def __init__(self, message: str, data: Any = None):
        super().__init__(ErrorCode.PARTIAL_FAILURE, message, data)


# ==================== handlers ====================

def _wants_json(request: Request) -> bool:
    return request.url.path.startswith("/api/")


def _render(request: Request, status_code: int, payload: dict):
    if _wants_json(request):
        return JSONResponse(status_code=status_code, content=payload)
    return templates.TemplateResponse(
        request,
        "error.html",
        {"message": payload["message"], "status_code": status_code},
        status_code=status_code,
    )


def register_exception_handlers(app):
    """Install the handlers on ``app``; call once from create_app."""

    @app.exception_handler(AppException)
    async def handle_app_exception(request: Request, exc: AppException):
        if exc.http_status >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return _render(request, exc.http_status, exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        errors = [
            {
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
            }
            for error in exc.errors()
        ]
        payload = {
            "code": int(ErrorCode.VALIDATION_ERROR),
            "message": "Invalid request: " + "; ".join(f"{e['field']} {e['message']}" for e in errors),
            "data": {"errors": errors},
        }
        return _render(request, status.HTTP_400_BAD_REQUEST, payload)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
            message = f"404: The requested URL {request.url.path} was not found."
        else:
            message = str(exc.detail)
        code = ErrorCode.RESOURCE_NOT_FOUND if exc.status_code == 404 else ErrorCode.INTERNAL_ERROR
        return _render(request, exc.status_code, {"code": int(code), "message": message, "data": None})

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        payload = {
            "code": int(ErrorCode.INTERNAL_ERROR),
            "message": f"Something broke! Server Error: {exc}",
            "data": None,
        }
        return _render(request, status.HTTP_500_INTERNAL_SERVER_ERROR, payload)
