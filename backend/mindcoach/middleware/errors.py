"""Exception handlers — every error leaves the API as `{"error": ...}`."""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from mindcoach.services.errors import (
    ConfigurationError,
    MalformedOutputError,
    NotFoundError,
    ProviderError,
    RoadmapGenerationError,
    provider_error_message,
    provider_status_code,
)

logger = logging.getLogger(__name__)

CONFIGURATION_ERROR_MESSAGE = "API configuration error. Please contact support."


def error_response(
    status_code: int,
    error: str,
    details: Optional[str] = None,
    headers: Optional[dict] = None,
) -> JSONResponse:
    content: dict = {"error": error}
    if details is not None:
        content["details"] = details
        content["timestamp"] = datetime.now(timezone.utc).isoformat()
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def validation_message(exc: RequestValidationError) -> str:
    """Describe the first validation error in one line."""
    errors = exc.errors()
    if not errors:
        return "Invalid request format."
    first = errors[0]
    fields = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
    if first.get("type") == "json_invalid":
        return "Invalid request format."
    if not fields:
        return "Request body is required"
    field = ".".join(fields)
    if first.get("type") == "missing":
        return f"{field} is required"
    return f"Invalid {field}: {first.get('msg', 'invalid value')}"


async def _validation_handler(request: Request, exc: RequestValidationError):
    return error_response(400, validation_message(exc))


async def _http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = "Method not allowed" if exc.status_code == 405 else exc.detail
    return error_response(exc.status_code, str(detail), headers=getattr(exc, "headers", None))


async def _configuration_handler(request: Request, exc: ConfigurationError):
    logger.error(f"Configuration error on {request.url.path}: {exc}")
    return error_response(500, CONFIGURATION_ERROR_MESSAGE)


async def _provider_handler(request: Request, exc: Exception):
    status_code = provider_status_code(exc)
    logger.error(f"Provider error on {request.url.path} ({status_code}): {exc}")
    return error_response(status_code, provider_error_message(status_code), details=str(exc))


async def _roadmap_handler(request: Request, exc: RoadmapGenerationError):
    return error_response(500, "Failed to generate roadmap", details=str(exc))


async def _not_found_handler(request: Request, exc: NotFoundError):
    return error_response(404, str(exc))


async def _unhandled_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.url.path}: {exc}")
    return error_response(500, "Internal server error", details=str(exc))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, _validation_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(ConfigurationError, _configuration_handler)
    app.add_exception_handler(ProviderError, _provider_handler)
    app.add_exception_handler(MalformedOutputError, _provider_handler)
    app.add_exception_handler(RoadmapGenerationError, _roadmap_handler)
    app.add_exception_handler(NotFoundError, _not_found_handler)
    app.add_exception_handler(Exception, _unhandled_handler)
