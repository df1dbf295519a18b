"""REST API error handlers."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from wpmcp_core.api.middleware.request_id import get_request_id
from wpmcp_core.errors import WpmcpError, create_error, get_error_factory

logger = logging.getLogger(__name__)


def _render(error: WpmcpError) -> JSONResponse:
    error_dict = error.to_dict()
    error_dict["request_id"] = get_request_id()
    return JSONResponse(status_code=error.http_status, content={"error": error_dict})


def setup_error_handlers(app: FastAPI) -> None:
    """Configure error handlers for the FastAPI app."""

    @app.exception_handler(WpmcpError)
    async def wpmcp_error_handler(request: Request, exc: WpmcpError) -> JSONResponse:
        return _render(exc)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": {
                    "code": f"HTTP_{exc.status_code}",
                    "category": "SYSTEM",
                    "message": str(exc.detail),
                    "request_id": get_request_id(),
                }
            },
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        first_error = errors[0] if errors else {"msg": "Validation error"}
        location = ".".join(str(p) for p in first_error.get("loc", ()) if p != "body")
        message = first_error.get("msg", "Validation error")
        if location:
            message = f"{location}: {message}"
        return _render(create_error("VALIDATION_ERROR", message=message))

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Unexpected exceptions. The exception text is not echoed to the client."""
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return _render(get_error_factory().from_exception(exc))
