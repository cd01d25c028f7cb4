"""
HTTP error mapping

Every error response is a JSON object with a single "error" key.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from notamproxy.services.errors import ServiceError, UpstreamError, ValidationError

GENERIC_MESSAGES = {
    status.HTTP_500_INTERNAL_SERVER_ERROR: "Internal server error",
    status.HTTP_502_BAD_GATEWAY: "Failed to get NOTAM data from upstream",
}


def error_response(
    status_code: int, message: str, headers: dict[str, str] | None = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content={"error": message}, headers=headers
    )


def register_exception_handlers(app: FastAPI, expose_details: bool = True) -> None:
    """Install handlers that turn service errors into {"error": ...} bodies."""

    async def handle_service_error(request: Request, exc: ServiceError) -> JSONResponse:
        if isinstance(exc, ValidationError):
            logger.info(f"Rejected {request.method} {request.url.path}: {exc}")
            return error_response(exc.status_code, str(exc))

        if isinstance(exc, UpstreamError):
            logger.error(f"Upstream failure ({exc.service_id}): {exc}")
        else:
            logger.error(f"{type(exc).__name__} on {request.url.path}: {exc}")

        message = (
            str(exc)
            if expose_details
            else GENERIC_MESSAGES.get(exc.status_code, "Internal server error")
        )
        return error_response(exc.status_code, message)

    async def handle_http_error(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        # Routing errors (404, 405) use the same body shape as service errors
        return error_response(exc.status_code, str(exc.detail), exc.headers)

    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.opt(exception=exc).error(f"Unhandled error on {request.url.path}")
        message = (
            f"{type(exc).__name__}: {exc}"
            if expose_details
            else GENERIC_MESSAGES[status.HTTP_500_INTERNAL_SERVER_ERROR]
        )
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, message)

    app.add_exception_handler(ServiceError, handle_service_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.add_exception_handler(Exception, handle_unexpected)
