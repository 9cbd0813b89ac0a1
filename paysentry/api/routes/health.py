"""Health and readiness endpoints."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from paysentry.config import settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict:
    from paysentry.main import get_uptime

    return {
        "status": "healthy",
        "version": settings.app_version,
        "uptime_seconds": get_uptime(),
    }


@router.get("/ready")
async def ready(request: Request) -> JSONResponse:
    from paysentry.db.database import check_db

    db_ok = await check_db()
    kafka_ok = getattr(request.app.state, "kafka_producer", None) is not None
    classifier = getattr(request.app.state, "classifier", None)
    classifier_loaded = classifier is not None and classifier.is_loaded

    # The classifier is optional: the ensemble falls back without it
    all_ready = db_ok and kafka_ok
    return JSONResponse(
        status_code=200 if all_ready else 503,
        content={
            "status": "ready" if all_ready else "degraded",
            "database": db_ok,
            "kafka": kafka_ok,
            "classifier_loaded": classifier_loaded,
        },
    )
