"""HTTP client for the external fraud-signal provider."""

import math

import httpx
import structlog

from .models import ExternalSignalResult, Transaction

logger = structlog.get_logger()

STATUS_SUCCESS = "SUCCESS"
STATUS_NOT_CONFIGURED = "NOT_CONFIGURED"
STATUS_ERROR = "ERROR"


class HttpSignalProvider:
    """Scores transactions against a third-party fraud-signal API.

    The provider never raises for remote failures; it reports them through
    the result status, and the scorer decides how to treat a non-success.
    Task cancellation is not intercepted.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout_seconds: float = 2.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = base_url
        self._api_key = api_key
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def score(self, transaction: Transaction) -> ExternalSignalResult:
        if not self._api_key:
            logger.warning("signal_provider_not_configured", transaction_id=transaction.transaction_id)
            return ExternalSignalResult(
                score=0.0,
                status=STATUS_NOT_CONFIGURED,
                reasons=["Signal provider API key not configured"],
            )

        body = {
            "transaction_id": transaction.transaction_id,
            "user_id": transaction.user_id,
            "amount": str(transaction.amount),
            "currency": transaction.currency,
            "ip_address": transaction.ip_address,
            "device_id": transaction.device_id,
            "country": transaction.country,
            "timestamp": transaction.timestamp.isoformat(),
        }

        try:
            response = await self._client.post(
                self._url,
                json=body,
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
            response.raise_for_status()
            data = response.json()
            score = float(data["score"])
            if not math.isfinite(score):
                raise ValueError(f"non-finite score: {score}")
        except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
            logger.error(
                "signal_provider_failed",
                transaction_id=transaction.transaction_id,
                error=str(e),
            )
            return ExternalSignalResult(score=0.0, status=STATUS_ERROR, reasons=[str(e)])

        result = ExternalSignalResult(
            score=max(0.0, min(score, 1.0)),
            status=STATUS_SUCCESS,
            reasons=[str(r) for r in data.get("reasons", [])],
        )
        logger.info(
            "signal_provider_scored",
            transaction_id=transaction.transaction_id,
            score=result.score,
        )
        return result
