"""
Response envelope and centralized error formatting
"""
import logging
import math
import traceback
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from bizpulse.core.exceptions import AppException

logger = logging.getLogger(__name__)


def api_response(
    data: Any = None,
    message: Optional[str] = None,
    status_code: int = status.HTTP_200_OK,
    pagination: Optional[Dict[str, int]] = None,
) -> JSONResponse:
    """Wrap a successful result: {success, data?, message?, pagination?}"""
    content: Dict[str, Any] = {"success": True}
    if message is not None:
        content["message"] = message
    if data is not None:
        content["data"] = data
    if pagination is not None:
        content["pagination"] = pagination
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))


def error_response(
    status_code: int,
    message: str,
    error: Optional[str] = None,
    validation_errors: Optional[List[Dict[str, Any]]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    content: Dict[str, Any] = {"success": False, "message": message}
    if error is not None:
        content["error"] = error
    if validation_errors:
        content["validationErrors"] = validation_errors
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content), headers=headers)


def build_pagination(page: int, limit: int, total: int) -> Dict[str, int]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
    }


def _field_from_loc(loc) -> str:
    # ("body", "products", 0, "quantity") -> "products.0.quantity"
    parts = [str(p) for p in loc if p not in ("body", "query", "path", "header", "form")]
    return ".".join(parts) or "request"


def _duplicate_field(exc: IntegrityError) -> str:
    text = str(exc.orig).lower()
    for field in ("email", "sku", "user_id"):
        if field in text:
            return field
    return "field"


def register_exception_handlers(app: FastAPI, expose_errors: bool):
    """Map every failure to the envelope. ``expose_errors`` adds the stack trace for 500s."""

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        return error_response(exc.status_code, exc.message, validation_errors=exc.validation_errors)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = []
        for err in exc.errors():
            item = {"field": _field_from_loc(err.get("loc", ())), "message": err.get("msg", "Invalid value")}
            if "input" in err and err["input"] is not None and not isinstance(err["input"], dict):
                item["value"] = err["input"]
            errors.append(item)
        message = "Validation Error: " + ", ".join(f"{e['field']}: {e['message']}" for e in errors)
        return error_response(status.HTTP_400_BAD_REQUEST, message, validation_errors=errors)

    @app.exception_handler(IntegrityError)
    async def integrity_exception_handler(request: Request, exc: IntegrityError):
        field = _duplicate_field(exc)
        logger.warning(f"Integrity error on {request.method} {request.url.path}: {exc.orig}")
        return error_response(
            status.HTTP_400_BAD_REQUEST,
            f"Duplicate value for {field}. Please use another value."
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
            message = f"Route {request.url.path} not found"
        else:
            message = str(exc.detail)
        return error_response(exc.status_code, message, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
        error = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)) if expose_errors else None
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error", error=error)
