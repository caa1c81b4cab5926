"""Standard error handler — maps every failure to the ``{success, message, error}`` envelope."""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..engine.errors import ErrorKind, IncidentError
from ..utils.logging import get_logger

logger = get_logger("middleware.error_handler")

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.UNEXPECTED: 500,
}


def error_envelope(message: str, error: str | None = None) -> dict:
    body = {"success": False, "message": message}
    if error is not None:
        body["error"] = error
    return body


def _describe_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
        parts.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return "; ".join(parts)


def register_error_handlers(app: FastAPI, expose_error_details: bool = False) -> None:
    """Register standard error handlers on the app."""

    @app.exception_handler(IncidentError)
    async def incident_error_handler(request: Request, exc: IncidentError):
        status_code = STATUS_BY_KIND[exc.kind]
        logger.info("incident_request_rejected", path=str(request.url.path), **exc.to_dict())
        return JSONResponse(
            status_code=status_code,
            content=error_envelope(exc.message, exc.kind.value),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        return JSONResponse(
            status_code=exc.status_code,
            content=error_envelope(message),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content=error_envelope("Validation failed", _describe_validation_errors(exc)),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        request_id = getattr(request.state, "request_id", None)
        logger.error(
            "unhandled_exception",
            error=str(exc),
            request_id=request_id,
            path=str(request.url.path),
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content=error_envelope(
                "Internal server error",
                str(exc) if expose_error_details else None,
            ),
        )
