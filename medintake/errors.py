# medintake/errors.py
import logging
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .storage import BlobStoreError

logger = logging.getLogger(__name__)


class ApiError(HTTPException):
    """HTTP error carrying the `{error, message, details?}` response body."""

    status_code = 500
    error = "Internal server error"
    message = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None, error: Optional[str] = None,
                 details: Any = None, headers: Optional[dict] = None):
        self.error = error or self.error
        self.message = message or self.message
        self.details = details
        super().__init__(status_code=self.status_code, detail=self.message, headers=headers)

    def body(self) -> dict:
        out = {"error": self.error, "message": self.message}
        if self.details is not None:
            out["details"] = self.details
        return out


class ValidationFailed(ApiError):
    status_code = 400
    error = "Validation failed"
    message = "Please check your input data"


class InvalidFileType(ApiError):
    status_code = 400
    error = "Invalid file type"


class Unauthenticated(ApiError):
    status_code = 401
    error = "Authentication required"
    message = "Please login to access this resource"

    def __init__(self, message=None, error=None, details=None):
        super().__init__(message, error, details, headers={"WWW-Authenticate": "Bearer"})


class Forbidden(ApiError):
    status_code = 403
    error = "Insufficient permissions"
    message = "You do not have permission to access this resource"


class NotFound(ApiError):
    status_code = 404
    error = "Not found"
    message = "The requested resource was not found"


class Conflict(ApiError):
    status_code = 409
    error = "Conflict"
    message = "The resource already exists"


class PayloadTooLarge(ApiError):
    status_code = 413
    error = "File too large"


class InternalFailure(ApiError):
    status_code = 500


def _validation_details(exc: RequestValidationError) -> list:
    details = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path", "form")]
        value = err.get("input")
        if not isinstance(value, (str, int, float, bool, type(None))):
            value = None
        details.append({
            "field": ".".join(loc),
            "message": err.get("msg", "Invalid value"),
            "value": value,
        })
    return details


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        if isinstance(exc, ApiError):
            body = exc.body()
        else:
            body = {"error": "Request failed", "message": str(exc.detail)}
        return JSONResponse(status_code=exc.status_code, content=body, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def _request_validation_error(request: Request, exc: RequestValidationError):
        err = ValidationFailed(details=_validation_details(exc))
        return JSONResponse(status_code=err.status_code, content=err.body())

    @app.exception_handler(SQLAlchemyError)
    async def _database_error(request: Request, exc: SQLAlchemyError):
        logger.exception("Database error on %s %s", request.method, request.url.path)
        err = InternalFailure("An error occurred while accessing the database", "Database error")
        return JSONResponse(status_code=err.status_code, content=err.body())

    @app.exception_handler(BlobStoreError)
    async def _storage_error(request: Request, exc: BlobStoreError):
        logger.exception("Storage error on %s %s", request.method, request.url.path)
        err = InternalFailure("An error occurred while accessing file storage", "Storage error")
        return JSONResponse(status_code=err.status_code, content=err.body())
