from __future__ import annotations

import logging
from pathlib import Path

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from starlette.exceptions import HTTPException as StarletteHTTPException

from file_ingestion.services.exceptions import IngestionError

logger = logging.getLogger(__name__)
templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))

_DEFAULT_BAD_REQUEST = "Some required information is missing or invalid."
_HTML_PATH_PREFIXES = ("/files",)
_HTML_ERROR_STATUSES = {400, 403, 404}
_DEFAULT_HTML_MESSAGES = {
    400: _DEFAULT_BAD_REQUEST,
    403: "You do not have permission to view this page.",
    404: "Page not found",
}


class AuthenticationRequired(Exception):
    """Raised by web routes when the caller has no valid session."""

    def __init__(self, redirect_url: str = "/login"):
        self.redirect_url = redirect_url
        super().__init__("Authentication required")


def _error_payload(message: str) -> dict:
    return {"message": message}


def _message_from_detail(detail: object, default: str) -> str:
    if isinstance(detail, str) and detail.strip():
        return detail.strip()
    if isinstance(detail, dict):
        for key in ("message", "detail", "error"):
            val = detail.get(key)
            if isinstance(val, str) and val.strip():
                return val.strip()
    return default


def _validation_message(exc: RequestValidationError) -> str:
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        if loc and error.get("type") == "missing":
            return f"Missing required field: {'.'.join(loc)}"
        if loc:
            return f"Invalid value for {'.'.join(loc)}"
    return _DEFAULT_BAD_REQUEST


def _is_html_request(request: Request) -> bool:
    if not request.url.path.startswith(_HTML_PATH_PREFIXES):
        return False
    accept = (request.headers.get("accept") or "").lower()
    if "application/json" in accept and "text/html" not in accept:
        return False
    return True


def _template_response(request: Request, status_code: int, message: str | None):
    return templates.TemplateResponse(
        request,
        f"errors/{status_code}.html",
        {"message": message or _DEFAULT_HTML_MESSAGES[status_code]},
        status_code=status_code,
    )


def register_error_handlers(app) -> None:
    @app.exception_handler(AuthenticationRequired)
    async def auth_required_handler(request: Request, exc: AuthenticationRequired):
        """Redirect to the identity provider login when a web page needs a session."""
        return RedirectResponse(url=exc.redirect_url, status_code=303)

    @app.exception_handler(IngestionError)
    async def ingestion_error_handler(request: Request, exc: IngestionError):
        if exc.status_code >= 500:
            logger.error("ingestion_error path=%s message=%s", request.url.path, exc.message)
        if exc.status_code in _HTML_ERROR_STATUSES and _is_html_request(request):
            return _template_response(request, exc.status_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=_error_payload(exc.message))

    async def _handle_http_exception(request: Request, status_code: int, detail: object):
        if status_code in _HTML_ERROR_STATUSES and _is_html_request(request):
            return _template_response(
                request, status_code, _message_from_detail(detail, "") or None
            )
        headers = None
        if status_code == 401:
            headers = {"WWW-Authenticate": "Bearer"}
        return JSONResponse(
            status_code=status_code,
            content=_error_payload(_message_from_detail(detail, "Request failed")),
            headers=headers,
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return await _handle_http_exception(request, exc.status_code, exc.detail)

    @app.exception_handler(StarletteHTTPException)
    async def starlette_http_exception_handler(request: Request, exc: StarletteHTTPException):
        detail = exc.detail if getattr(exc, "detail", None) is not None else "Request failed"
        return await _handle_http_exception(request, exc.status_code, detail)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        message = _validation_message(exc)
        if _is_html_request(request):
            return _template_response(request, 400, message)
        return JSONResponse(status_code=400, content=_error_payload(message))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(
            "Unhandled exception on %s %s",
            request.method,
            request.url.path,
            extra={"actor_id": getattr(request.state, "actor_id", None)},
        )
        return PlainTextResponse("Internal Server Error", status_code=500)
