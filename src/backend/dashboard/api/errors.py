"""Exception handlers rendering the `{"success": false, "error": ...}` envelope."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.backend.common.models.errors import DashboardError, ErrorKind

logger = logging.getLogger(__name__)


def error_response(status_code: int, kind: ErrorKind, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": {"kind": kind.value, "message": message}},
    )


async def dashboard_error_handler(request: Request, exc: DashboardError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.to_dict()})


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    msg = first.get("msg", "validation failed")
    message = f"Invalid request {where}: {msg}" if where else f"Invalid request: {msg}"
    return error_response(400, ErrorKind.INVALID, message)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DashboardError, dashboard_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
