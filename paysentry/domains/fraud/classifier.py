"""Primary fraud classifier backed by an MLflow pyfunc model.

The model itself is opaque. This adapter only builds the feature frame,
runs inference off the event loop, and clamps the output to [0, 1].
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd
import structlog

from .exceptions import ClassifierUnavailableError
from .models import BehavioralSnapshot, Transaction, UserProfile

logger = structlog.get_logger()


@dataclass
class ClassifierFeatureSpec:
    """Input columns expected by the served model, in order."""

    features: list[str] = field(
        default_factory=lambda: [
            "amount",
            "amount_to_avg_ratio",
            "hour_of_day",
            "day_of_week",
            "velocity_count_1h",
            "velocity_count_24h",
            "velocity_amount_24h",
            "unique_devices_24h",
            "unique_ips_24h",
            "geo_risk_score",
            "anomaly_flag_count",
            "behavioral_risk_score",
            "is_new_device",
            "is_new_ip",
            "chargeback_count",
            "account_age_days",
        ]
    )


def build_feature_vector(
    transaction: Transaction,
    profile: UserProfile | None,
    snapshot: BehavioralSnapshot,
) -> dict[str, float]:
    amount = transaction.amount_float
    velocity = snapshot.velocity
    geo = snapshot.geo_location

    avg_amount = float(profile.avg_amount) if profile else 0.0
    account_age_days = 0.0
    if profile and profile.first_transaction_at:
        account_age_days = max(
            (transaction.timestamp - profile.first_transaction_at).total_seconds() / 86400, 0.0
        )

    return {
        "amount": amount,
        "amount_to_avg_ratio": amount / avg_amount if avg_amount > 0 else 0.0,
        "hour_of_day": float(transaction.timestamp.hour),
        "day_of_week": float(transaction.timestamp.weekday()),
        "velocity_count_1h": float(velocity.transactions_last_1h),
        "velocity_count_24h": float(velocity.transactions_last_24h),
        "velocity_amount_24h": float(velocity.amount_last_24h),
        "unique_devices_24h": float(velocity.unique_devices_24h),
        "unique_ips_24h": float(velocity.unique_ips_24h),
        "geo_risk_score": float(geo.risk_score) if geo else 0.0,
        "anomaly_flag_count": float(len(snapshot.anomaly_flags)),
        "behavioral_risk_score": snapshot.risk_score,
        "is_new_device": float(
            profile is not None and transaction.device_id not in profile.used_devices
        ),
        "is_new_ip": float(
            profile is not None and transaction.ip_address not in profile.used_ip_addresses
        ),
        "chargeback_count": float(profile.chargeback_count) if profile else 0.0,
        "account_age_days": account_age_days,
    }


class ModelClassifier:
    """Serves fraud probabilities from a loaded model.

    Until ``load`` succeeds (or a model is injected), ``predict`` raises
    ClassifierUnavailableError and the ensemble uses its fallback.
    """

    def __init__(
        self,
        model: Any = None,
        feature_spec: ClassifierFeatureSpec | None = None,
        model_uri: str = "",
    ) -> None:
        self._model = model
        self._feature_spec = feature_spec or ClassifierFeatureSpec()
        self._model_uri = model_uri
        self._load_error: str | None = None

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    @property
    def load_error(self) -> str | None:
        return self._load_error

    def load(self, model_uri: str, tracking_uri: str | None = None) -> bool:
        """Load a pyfunc model from MLflow. Returns True on success."""
        try:
            import mlflow

            if tracking_uri:
                mlflow.set_tracking_uri(tracking_uri)
            self._model = mlflow.pyfunc.load_model(model_uri)
            self._model_uri = model_uri
            self._load_error = None
            logger.info("classifier_model_loaded", model_uri=model_uri)
            return True
        except Exception as e:
            self._model = None
            self._load_error = str(e)
            logger.warning("classifier_model_load_failed", model_uri=model_uri, error=str(e))
            return False

    async def predict(
        self,
        transaction: Transaction,
        profile: UserProfile | None,
        snapshot: BehavioralSnapshot,
    ) -> float:
        if not self.is_loaded:
            raise ClassifierUnavailableError("No classifier model loaded")

        vector = build_feature_vector(transaction, profile, snapshot)
        frame = pd.DataFrame([{f: vector.get(f, 0.0) for f in self._feature_spec.features}])

        start = time.perf_counter()
        raw = await asyncio.to_thread(self._model.predict, frame)
        latency_ms = (time.perf_counter() - start) * 1000

        score = float(np.asarray(raw, dtype=float).ravel()[0])
        if not np.isfinite(score):
            raise ValueError(f"Classifier returned non-finite score: {score}")
        score = max(0.0, min(1.0, score))

        logger.debug(
            "classifier_predicted",
            transaction_id=transaction.transaction_id,
            score=score,
            latency_ms=round(latency_ms, 2),
        )
        return score
