"""Per-request logging and last-resort error responses."""

import time
import uuid

from fastapi import Request, Response
from fastapi.exceptions import HTTPException, RequestValidationError
from loguru import logger
from starlette.responses import JSONResponse

REQUEST_ID_HEADER = "X-Request-ID"


def _describe_failure(exc: Exception) -> tuple[int, object, str]:
    """Status code, response detail and log event for an escaped exception."""
    if isinstance(exc, HTTPException):
        return exc.status_code, exc.detail, "request.error"
    if isinstance(exc, RequestValidationError):
        return 422, exc.errors(), "request.validation_error"
    # Store failures from the reconciliation gate land here
    return 500, "Internal Server Error", "request.error"


async def log_requests(request: Request, call_next) -> Response:
    request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
    started = time.perf_counter()

    def elapsed_ms() -> float:
        return round((time.perf_counter() - started) * 1000, 1)

    # Everything logged while handling the request carries these fields
    with logger.contextualize(
        request_id=request_id,
        method=request.method,
        path=request.url.path,
        client_ip=request.client.host if request.client else "unknown",
    ):
        logger.info("request.start")
        try:
            response = await call_next(request)
        except Exception as exc:
            status_code, detail, event = _describe_failure(exc)
            logger.bind(
                status_code=status_code,
                duration_ms=elapsed_ms(),
                error_type=type(exc).__name__,
            ).exception(event)
            return JSONResponse(
                status_code=status_code,
                content={"detail": detail, "request_id": request_id},
                headers={REQUEST_ID_HEADER: request_id},
            )

        logger.bind(status_code=response.status_code, duration_ms=elapsed_ms()).info(
            "request.end"
        )
        response.headers.setdefault(REQUEST_ID_HEADER, request_id)
        return response
