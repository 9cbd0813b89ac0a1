"""Fraud scoring endpoints."""

import asyncio

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request

from paysentry.config import settings
from paysentry.domains.fraud.models import FraudDecision, Transaction
from paysentry.domains.fraud.scorer import FraudScorer

logger = structlog.get_logger()
router = APIRouter(prefix="/api/v1/fraud", tags=["fraud"])


def get_scorer(request: Request) -> FraudScorer:
    scorer = getattr(request.app.state, "scorer", None)
    if scorer is None:
        raise HTTPException(status_code=503, detail="Fraud scorer not initialized")
    return scorer


@router.post("/score", response_model=FraudDecision)
async def score_transaction(
    transaction: Transaction,
    scorer: FraudScorer = Depends(get_scorer),  # noqa: B008
) -> FraudDecision:
    """Score a single transaction. Raises 503 when a fail-fast stage fails."""
    structlog.contextvars.bind_contextvars(
        transaction_id=transaction.transaction_id,
        user_id=transaction.user_id,
    )
    return await asyncio.wait_for(
        scorer.score_transaction(transaction),
        timeout=settings.scoring_timeout_seconds,
    )
