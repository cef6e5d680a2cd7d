"""
Problem-details (RFC 7807 style) envelopes for every error response.

Each body carries ``type``, ``title``, ``status``, ``detail`` and
``instance``, plus a machine ``code`` and ``errors`` list where known.
"""

from http import HTTPStatus
import logging
from typing import Any, Dict, Mapping, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.exceptions import DomainException, RepositoryException, is_db_pool_exhaustion

logger = logging.getLogger(__name__)

STORE_RETRY_AFTER_SECONDS = 2


def problem_response(
    request: Request,
    status: int,
    detail: Optional[str] = None,
    *,
    code: Optional[str] = None,
    errors: Any = None,
    headers: Optional[Mapping[str, str]] = None,
) -> JSONResponse:
    try:
        title = HTTPStatus(status).phrase
    except ValueError:
        title = "Error"
    body: Dict[str, Any] = {
        "type": "about:blank",
        "title": title,
        "status": status,
        "detail": detail or "",
        "instance": request.url.path,
    }
    if code:
        body["code"] = code
    if errors is not None:
        body["errors"] = jsonable_encoder(errors)
    return JSONResponse(body, status_code=status, headers=dict(headers) if headers else None)


def _unpack_detail(detail: Any) -> tuple[Optional[str], Optional[str], Any]:
    """Split an HTTPException detail into (message, code, errors)."""
    if detail is None:
        return None, None, None
    if not isinstance(detail, dict):
        return str(detail), None, None
    message = detail.get("message") or detail.get("detail")
    code = detail.get("code")
    return (
        message if isinstance(message, str) else None,
        code if isinstance(code, str) else None,
        detail.get("details") or detail.get("errors"),
    )


async def _on_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message, code, errors = _unpack_detail(exc.detail)
    return problem_response(
        request, exc.status_code, message, code=code, errors=errors, headers=exc.headers
    )


async def _on_domain_exception(request: Request, exc: DomainException) -> JSONResponse:
    # routes normally convert these; this covers anything raised outside a route body
    return await _on_http_exception(request, exc.to_http_exception())


async def _on_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return problem_response(
        request, 422, "Request validation failed", code="validation_error", errors=exc.errors()
    )


async def _on_repository_exception(request: Request, exc: RepositoryException) -> JSONResponse:
    if is_db_pool_exhaustion(exc):
        return problem_response(
            request,
            503,
            "Service temporarily overloaded. Please retry.",
            code="store_unavailable",
            headers={"Retry-After": str(STORE_RETRY_AFTER_SECONDS)},
        )
    logger.error(f"Repository failure on {request.url.path}: {exc}")
    return problem_response(
        request, 500, "The booking store failed to process the request", code="store_error"
    )


async def _on_unhandled(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.url.path}")
    return problem_response(
        request, 500, "Internal Server Error", code="internal_server_error"
    )


def register_error_handlers(app: FastAPI) -> None:
    # fastapi's HTTPException subclasses starlette's, so one handler covers both
    app.add_exception_handler(StarletteHTTPException, _on_http_exception)  # type: ignore[arg-type]
    app.add_exception_handler(DomainException, _on_domain_exception)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _on_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(RepositoryException, _on_repository_exception)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _on_unhandled)
