# catalog_service/errors.py

"""
Error types raised by the Catalog Service and the handlers that turn them
into the `{success: false, errors: [...]}` response envelope.
"""
import logging
from typing import List, Union

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class CatalogError(Exception):
    """Base error carrying an HTTP status and one or more messages."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, errors: Union[str, List[str]]):
        self.errors = [errors] if isinstance(errors, str) else list(errors)
        super().__init__("; ".join(self.errors))


class ValidationError(CatalogError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(CatalogError):
    status_code = status.HTTP_404_NOT_FOUND


class InternalError(CatalogError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class AssetStoreError(Exception):
    """Raised when the media-hosting service cannot complete a call."""


def error_response(status_code: int, errors: List[str]) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content={"success": False, "errors": errors}
    )


def _describe(error: dict) -> str:
    # Drop the "body"/"path"/"query" prefix FastAPI puts on every location
    location = [str(part) for part in error.get("loc", ())[1:]]
    field = ".".join(location) or "request"
    return f"{field}: {error.get('msg', 'Invalid value')}"


def register_error_handlers(app: FastAPI) -> None:
    """Install the exception handlers that produce the error envelope."""

    @app.exception_handler(CatalogError)
    async def handle_catalog_error(request: Request, exc: CatalogError):
        return error_response(exc.status_code, exc.errors)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(
        request: Request, exc: RequestValidationError
    ):
        errors = [_describe(error) for error in exc.errors()]
        logger.warning(f"Rejected {request.method} {request.url.path}: {errors}")
        return error_response(status.HTTP_400_BAD_REQUEST, errors)
