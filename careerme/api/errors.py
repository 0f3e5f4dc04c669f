"""
Error responses and exception handlers shared by every router.
All error bodies are {code, message, correlationId}.
"""

from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from starlette.exceptions import HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..core.dao import ResumeNotFoundError
from ..core.record_store import RecordStoreConfigError, RecordStoreError
from ..core.schedule import CalendarTokenError, EventNotFoundError
from ..util.correlation import CORRELATION_HEADER, ensure_correlation_id
from ..util.logging import logger

STATUS_CODES = {
    400: "invalid_request",
    401: "unauthorized",
    404: "not_found",
    429: "rate_limited",
    500: "internal_error",
    502: "upstream_failed",
}


def get_correlation_id(request: Request) -> str:
    """Correlation id assigned by the middleware, or a fresh one outside it."""
    correlation_id = getattr(request.state, "correlation_id", None)
    if not correlation_id:
        correlation_id = ensure_correlation_id(request.headers.get(CORRELATION_HEADER))
        request.state.correlation_id = correlation_id
    return correlation_id


def error_response(request: Request, status_code: int, message: str, code: Optional[str] = None,
                   details: Any = None, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    correlation_id = get_correlation_id(request)
    body = {
        "code": code or STATUS_CODES.get(status_code, "error"),
        "message": message,
        "correlationId": correlation_id,
    }
    if details is not None:
        body["details"] = details

    response_headers = {CORRELATION_HEADER: correlation_id}
    if headers:
        response_headers.update(headers)
    return JSONResponse(status_code=status_code, content=body, headers=response_headers)


def _issue_message(error: Dict[str, Any]) -> str:
    message = str(error.get("msg", ""))
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
    return f"{location}: {message}" if location else message


def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        if any(error.get("type") == "json_invalid" for error in errors):
            return error_response(request, 400, "不正なJSONです。", code="invalid_json")

        message = ", ".join(_issue_message(error) for error in errors)
        details = [{"loc": list(error.get("loc", ())), "msg": error.get("msg")} for error in errors]
        return error_response(request, 400, message, details=details)

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        return error_response(request, exc.status_code, str(exc.detail), headers=exc.headers)

    @app.exception_handler(ResumeNotFoundError)
    async def resume_not_found_handler(request: Request, exc: ResumeNotFoundError):
        return error_response(request, 404, "Resume not found")

    @app.exception_handler(EventNotFoundError)
    async def event_not_found_handler(request: Request, exc: EventNotFoundError):
        return error_response(request, 404, "Event not found")

    @app.exception_handler(CalendarTokenError)
    async def calendar_token_handler(request: Request, exc: CalendarTokenError):
        return error_response(request, 404, "Calendar not found")

    @app.exception_handler(RecordStoreError)
    async def record_store_error_handler(request: Request, exc: RecordStoreError):
        logger.log_api_error(request.url.path, exc, get_correlation_id(request))
        if isinstance(exc, RecordStoreConfigError):
            return error_response(request, 500, "Record store is not configured", code="config_error")
        return error_response(
            request,
            502,
            "データ取得に失敗しました。時間をおいて再試行してください。",
            code="store_failed",
        )
