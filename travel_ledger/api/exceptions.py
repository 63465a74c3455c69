from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from travel_ledger.domain.exceptions import (
    Conflict,
    Forbidden,
    InvalidInput,
    LedgerError,
    NotFound,
    ServiceUnavailable,
    Unprocessable,
)

MEDIA_TYPE = "application/problem+json"

_STATUS_BY_CLASS: dict[type[LedgerError], int] = {
    NotFound: status.HTTP_404_NOT_FOUND,
    Forbidden: status.HTTP_403_FORBIDDEN,
    Conflict: status.HTTP_409_CONFLICT,
    InvalidInput: status.HTTP_400_BAD_REQUEST,
    Unprocessable: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ServiceUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
    LedgerError: status.HTTP_400_BAD_REQUEST,
}

_TITLES: dict[type[LedgerError], str] = {
    NotFound: "Not Found",
    Forbidden: "Forbidden",
    Conflict: "Conflict",
    InvalidInput: "Bad Request",
    Unprocessable: "Unprocessable Entity",
    ServiceUnavailable: "Service Unavailable",
    LedgerError: "Ledger Error",
}


def _status_for(exc: LedgerError) -> int:
    for cls in type(exc).mro():
        if cls in _STATUS_BY_CLASS:
            return _STATUS_BY_CLASS[cls]
    return status.HTTP_400_BAD_REQUEST


def _title_for(exc: LedgerError) -> str:
    for cls in type(exc).mro():
        if cls in _TITLES:
            return _TITLES[cls]
    return "Ledger Error"


def _problem(
    request: Request,
    *,
    http_status: int,
    title: str,
    error_type: str,
    detail: str | None = None,
    extra: dict | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = {
        "status": http_status,
        "title": title,
        "type": error_type,
        "detail": detail,
        "instance": str(request.url),
    }
    if extra:
        body.update({k: v for k, v in extra.items() if v is not None})
    return JSONResponse(status_code=http_status, content=body, media_type=MEDIA_TYPE, headers=headers or {})


def register_error_handler(app: FastAPI) -> None:
    @app.exception_handler(LedgerError)
    async def _ledger_error_handler(request: Request, exc: LedgerError):
        status_code = _status_for(exc)
        extra = {"context": exc.ctx} if exc.ctx else None

        headers: dict[str, str] | None = None
        if isinstance(exc, ServiceUnavailable):
            headers = {"Retry-After": "1"}

        return _problem(
            request,
            http_status=status_code,
            title=_title_for(exc),
            error_type=type(exc).__name__,
            detail=str(exc) or None,
            extra=extra,
            headers=headers,
        )
