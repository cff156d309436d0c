import uuid
from http import HTTPStatus
from typing import Any

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from marina.domain.errors import DomainError, DuplicateScheduleError, NotFoundError

PROBLEM_TYPE_VALIDATION = "https://example.com/problems/validation-error"
PROBLEM_TYPE_HTTP = "https://example.com/problems/http-error"
PROBLEM_TYPE_SERVER = "https://example.com/problems/server-error"

# First match wins, so subclasses must precede their bases.
_DOMAIN_STATUS: tuple[tuple[type[DomainError], int], ...] = (
    (NotFoundError, 404),
    (DuplicateScheduleError, 409),
)
DOMAIN_DEFAULT_STATUS = 400

_REQUEST_PARTS = {"body", "query", "path"}


def status_for(exc: DomainError) -> int:
    """HTTP status a domain failure is reported with."""

    for error_cls, status_code in _DOMAIN_STATUS:
        if isinstance(exc, error_cls):
            return status_code
    return DOMAIN_DEFAULT_STATUS


def _request_id(request: Request) -> str:
    request_id = (
        getattr(request.state, "request_id", None)
        or request.headers.get("X-Request-ID")
        or str(uuid.uuid4())
    )
    request.state.request_id = request_id
    return request_id


def problem_details(
    request: Request,
    *,
    status: int,
    title: str,
    detail: str,
    type_: str,
    errors: list[dict[str, Any]] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    request_id = _request_id(request)
    response = JSONResponse(
        status_code=status,
        content={
            "type": type_,
            "title": title,
            "status": status,
            "detail": detail,
            "request_id": request_id,
            "errors": errors or [],
        },
        headers=headers,
        media_type="application/problem+json",
    )
    response.headers.setdefault("X-Request-ID", request_id)
    return response


def domain_problem(request: Request, exc: DomainError) -> JSONResponse:
    """Render a schedule, gate or lookup failure; the error class carries type and title."""

    return problem_details(
        request,
        status=status_for(exc),
        title=exc.title,
        detail=exc.detail,
        type_=exc.type,
        errors=exc.errors,
    )


def validation_problem(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = []
    for error in exc.errors():
        loc = error.get("loc", ())
        field = ".".join(str(part) for part in loc if part not in _REQUEST_PARTS) or "body"
        errors.append({"field": field, "message": error.get("msg", "Invalid value")})
    return problem_details(
        request,
        status=422,
        title="Validation Error",
        detail="Request validation failed",
        type_=PROBLEM_TYPE_VALIDATION,
        errors=errors,
    )


def http_problem(request: Request, exc: HTTPException) -> JSONResponse:
    try:
        phrase = HTTPStatus(exc.status_code).phrase
    except ValueError:
        phrase = "HTTP Error"
    return problem_details(
        request,
        status=exc.status_code,
        title=phrase,
        detail=exc.detail if isinstance(exc.detail, str) else phrase,
        type_=PROBLEM_TYPE_SERVER if exc.status_code >= 500 else PROBLEM_TYPE_HTTP,
        headers=exc.headers,
    )


def server_problem(request: Request) -> JSONResponse:
    return problem_details(
        request,
        status=500,
        title="Internal Server Error",
        detail="Unexpected error",
        type_=PROBLEM_TYPE_SERVER,
    )
