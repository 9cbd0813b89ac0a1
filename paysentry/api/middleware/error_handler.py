"""Global exception handling."""

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse

from paysentry.domains.fraud.exceptions import ScoringError

logger = structlog.get_logger()


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = getattr(request.state, "request_id", "unknown")

    if isinstance(exc, ScoringError):
        logger.error(
            "scoring_unavailable",
            request_id=request_id,
            transaction_id=exc.transaction_id,
            stage=exc.stage,
            error=str(exc),
        )
        return JSONResponse(
            status_code=503,
            content={
                "error": "scoring_unavailable",
                "message": str(exc),
                "stage": exc.stage,
                "request_id": request_id,
            },
        )

    if isinstance(exc, TimeoutError):
        logger.error("scoring_timeout", request_id=request_id)
        return JSONResponse(
            status_code=504,
            content={
                "error": "scoring_timeout",
                "message": "Scoring did not complete in time",
                "request_id": request_id,
            },
        )

    if isinstance(exc, ValueError):
        logger.warning("bad_request", request_id=request_id, error=str(exc))
        return JSONResponse(
            status_code=400,
            content={"error": "bad_request", "message": str(exc), "request_id": request_id},
        )

    logger.exception("unhandled_exception", request_id=request_id, error=str(exc))
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred",
            "request_id": request_id,
        },
    )
