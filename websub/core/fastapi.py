"""FastAPI helpers shared by the subscriber routes."""

import uuid

import structlog
from fastapi import Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = structlog.get_logger("websub")

REQUEST_ID_HEADER = "X-Request-ID"


def add_request_id_header(response: Response) -> str:
    """Attach a fresh request ID to ``response`` and return it."""
    request_id = str(uuid.uuid4())
    response.headers[REQUEST_ID_HEADER] = request_id
    return request_id


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Answer malformed query strings with 400 instead of 422."""
    logger.warning(
        "Invalid request parameters",
        path=request.url.path,
        errors=str(exc.errors())
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Invalid request parameters"},
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log unexpected errors and answer with a generic 500."""
    request_id = str(uuid.uuid4())
    logger.error(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
        request_id=request_id,
        error=str(exc),
        exc_info=True
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error", "request_id": request_id},
        headers={REQUEST_ID_HEADER: request_id},
    )
