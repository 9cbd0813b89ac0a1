"""FastAPI application entry point for PaySentry."""

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from paysentry.api.middleware.error_handler import global_exception_handler
from paysentry.api.middleware.logging import StructuredLoggingMiddleware
from paysentry.api.routes.fraud import router as fraud_router
from paysentry.api.routes.health import router as health_router
from paysentry.config import settings
from paysentry.domains.fraud.alerts import KafkaAlertSink
from paysentry.domains.fraud.classifier import ModelClassifier
from paysentry.domains.fraud.config import FraudConfig
from paysentry.domains.fraud.exceptions import ScoringError
from paysentry.domains.fraud.scorer import FraudScorer
from paysentry.domains.fraud.signals import HttpSignalProvider
from paysentry.shared.kafka_utils import create_producer
from paysentry.shared.logging import setup_logging

logger = structlog.get_logger()

# Track app start time for uptime calculation
APP_START_TIME: float = 0.0


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Wire the scorer and its collaborators; tear them down on shutdown."""
    global APP_START_TIME
    APP_START_TIME = time.time()
    setup_logging(settings.log_level)

    logger.info(
        "paysentry_starting",
        app_name=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
    )

    from paysentry.db.database import async_session_factory, engine, init_db
    from paysentry.db.repositories import SqlTransactionRepository, SqlUserProfileRepository

    await init_db()

    fraud_config = FraudConfig.from_env()
    producer = await create_producer(settings.kafka_bootstrap_servers)

    # Best-effort: the ensemble uses its fallback score while no model is loaded
    classifier = ModelClassifier()
    if settings.classifier_model_uri:
        classifier.load(settings.classifier_model_uri, tracking_uri=settings.mlflow_tracking_uri)
    else:
        logger.warning("classifier_model_uri_not_set")

    signal_provider = HttpSignalProvider(
        settings.signal_provider_url,
        api_key=settings.signal_provider_api_key,
        timeout_seconds=settings.signal_provider_timeout_seconds,
    )
    transactions = SqlTransactionRepository(async_session_factory)

    app.state.kafka_producer = producer
    app.state.classifier = classifier
    app.state.scorer = FraudScorer(
        profiles=SqlUserProfileRepository(async_session_factory),
        history=transactions,
        classifier=classifier,
        signal_provider=signal_provider,
        alert_sink=KafkaAlertSink(producer, fraud_config.alerts.kafka_topic),
        persistence=transactions,
        config=fraud_config,
    )

    yield

    logger.info("paysentry_shutting_down")
    await signal_provider.aclose()
    await producer.stop()
    await engine.dispose()


app = FastAPI(
    title="PaySentry",
    description="Real-time fraud scoring and decisioning for payment transactions",
    version=settings.app_version,
    lifespan=lifespan,
)

# Structured logging middleware
app.add_middleware(StructuredLoggingMiddleware)

# Domain errors map to specific status codes; anything else is a 500
app.add_exception_handler(ScoringError, global_exception_handler)
app.add_exception_handler(TimeoutError, global_exception_handler)
app.add_exception_handler(ValueError, global_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# Register routers
app.include_router(health_router)
app.include_router(fraud_router)


def get_uptime() -> int:
    """Get application uptime in seconds."""
    if APP_START_TIME == 0.0:
        return 0
    return int(time.time() - APP_START_TIME)
