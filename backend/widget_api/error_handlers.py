"""
Widget API Backend: Error Translator
=======================================

What:  Global exception handlers mapping every failure to one response shape.
Why:   Routes and services raise; only this module decides status codes,
       bodies and headers. Translation happens exactly once, here.
How:   register_exception_handlers(app) installs handlers on the FastAPI app.

Response shapes:
    Uniform:      {"error": <reason phrase>, "message": ..., "status": <code>}
    Field-level:  {"error": "Validation Error", "status": 400,
                   "violations": [{"field", "message", "invalidValue"}]}

    401 responses also carry:
        WWW-Authenticate: Bearer realm="<realm>", charset="UTF-8"

Security:
    500 bodies are always generic. Exception class names, SQL and stack
    traces go to the server log (with the request id), never to the client.
"""

import logging
from http import HTTPStatus
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from widget_api.auth.dependencies import challenge_header
from widget_api.exceptions import WidgetApiError
from widget_api.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

GENERIC_SERVER_ERROR = "An unexpected error occurred. Please try again later."

# Location prefixes FastAPI puts in front of a field path
_LOC_PREFIXES = {"body", "query", "path", "header", "cookie"}


def reason_phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


def error_body(status_code: int, message: str) -> Dict[str, Any]:
    return {
        "error": reason_phrase(status_code),
        "message": message,
        "status": status_code,
    }


def violations_body(violations: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"error": "Validation Error", "status": 400, "violations": violations}


def _field_path(loc) -> str:
    parts = [str(p) for p in loc]
    if len(parts) > 1 and parts[0] in _LOC_PREFIXES:
        parts = parts[1:]
    return ".".join(parts)


def _invalid_value(error: Dict[str, Any]) -> Optional[str]:
    if error.get("type") == "missing" or "input" not in error:
        return None
    value = error["input"]
    return None if value is None else str(value)


def unexpected_error_response(exc: Exception) -> JSONResponse:
    """
    Generic 500 for an exception nothing else handled.

    The stack trace is logged server-side only. Used by the catch-all handler
    and by RequestIDMiddleware, which sees the error first and can still tag
    the response with the request id.
    """
    rid = request_id_var.get("")
    logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=exc)
    return JSONResponse(status_code=500, content=error_body(500, GENERIC_SERVER_ERROR))


def request_validation_violations(exc: RequestValidationError) -> List[Dict[str, Any]]:
    """Flatten FastAPI's error list into {"field", "message", "invalidValue"} entries."""
    return [
        {
            "field": _field_path(err.get("loc", ())),
            "message": err.get("msg", "Invalid value"),
            "invalidValue": _invalid_value(err),
        }
        for err in exc.errors()
    ]


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register global exception handlers for consistent error responses.

    Handler table:
        WidgetApiError            → exc.status_code (400/401/403/404/409/500)
        RequestValidationError    → 400 with violations
        Starlette HTTPException   → its status (unknown route, wrong method)
        Exception (fallback)      → 500, generic message
    """

    @app.exception_handler(WidgetApiError)
    async def handle_widget_api_error(request: Request, exc: WidgetApiError):
        rid = request_id_var.get("")
        status_code = exc.status_code
        headers = None

        if status_code >= 500:
            # Details stay server-side
            logger.error("[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context)
            return JSONResponse(
                status_code=status_code,
                content=error_body(status_code, GENERIC_SERVER_ERROR),
            )

        if status_code == 401:
            headers = {"WWW-Authenticate": challenge_header()}
        elif status_code == 409:
            logger.warning("[%s] Conflict: %s | Context: %s", rid, exc.message, exc.context)
        else:
            logger.info("[%s] %s: %s", rid, reason_phrase(status_code), exc.message)

        violations = getattr(exc, "violations", None)
        content = violations_body(violations) if violations else error_body(status_code, exc.message)
        return JSONResponse(status_code=status_code, content=content, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        rid = request_id_var.get("")
        violations = request_validation_violations(exc)
        logger.info(
            "[%s] Request validation failed: %s",
            rid,
            ", ".join(v["field"] for v in violations),
        )
        return JSONResponse(status_code=400, content=violations_body(violations))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        message = exc.detail if isinstance(exc.detail, str) else reason_phrase(exc.status_code)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.status_code, message),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        return unexpected_error_response(exc)
