"""Unit tests for the MLflow-backed classifier adapter."""

from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from paysentry.domains.fraud.classifier import (
    ClassifierFeatureSpec,
    ModelClassifier,
    build_feature_vector,
)
from paysentry.domains.fraud.exceptions import ClassifierUnavailableError
from paysentry.domains.fraud.models import BehavioralSnapshot, VelocityMetrics
from tests.fakes import make_txn

SNAPSHOT = BehavioralSnapshot(
    user_id="user-1",
    velocity=VelocityMetrics(transactions_last_1h=3, transactions_last_24h=7),
    anomaly_flags={"UNUSUAL_AMOUNT"},
    risk_score=25.0,
)


class TestFeatureVector:
    def test_without_profile(self):
        vector = build_feature_vector(make_txn(amount="250.00"), None, SNAPSHOT)
        assert set(vector) == set(ClassifierFeatureSpec().features)
        assert vector["amount"] == 250.0
        assert vector["amount_to_avg_ratio"] == 0.0
        assert vector["velocity_count_1h"] == 3.0
        assert vector["anomaly_flag_count"] == 1.0
        assert vector["is_new_device"] == 0.0
        assert vector["geo_risk_score"] == 0.0

    def test_with_profile(self, profile):
        txn = make_txn(amount="250.00", device_id="device-9")
        vector = build_feature_vector(txn, profile, SNAPSHOT)
        assert vector["amount_to_avg_ratio"] == 2.5
        assert vector["is_new_device"] == 1.0
        assert vector["is_new_ip"] == 0.0


class TestModelClassifier:
    @pytest.mark.asyncio
    async def test_unloaded_raises(self):
        classifier = ModelClassifier()
        assert not classifier.is_loaded
        with pytest.raises(ClassifierUnavailableError):
            await classifier.predict(make_txn(), None, SNAPSHOT)

    @pytest.mark.asyncio
    async def test_predict_uses_feature_order(self):
        model = MagicMock()
        model.predict.return_value = np.array([0.42])
        classifier = ModelClassifier(model=model)

        score = await classifier.predict(make_txn(), None, SNAPSHOT)

        assert score == pytest.approx(0.42)
        frame = model.predict.call_args.args[0]
        assert list(frame.columns) == ClassifierFeatureSpec().features
        assert len(frame) == 1

    @pytest.mark.asyncio
    async def test_predict_clamps(self):
        model = MagicMock()
        model.predict.return_value = [1.4]
        assert await ModelClassifier(model=model).predict(make_txn(), None, SNAPSHOT) == 1.0

    @pytest.mark.asyncio
    async def test_non_finite_raises(self):
        model = MagicMock()
        model.predict.return_value = np.array([np.nan])
        with pytest.raises(ValueError):
            await ModelClassifier(model=model).predict(make_txn(), None, SNAPSHOT)

    def test_load_failure_is_reported(self):
        classifier = ModelClassifier()
        with patch("mlflow.pyfunc.load_model", side_effect=OSError("registry unreachable")):
            assert classifier.load("models:/fraud-classifier/Production") is False
        assert not classifier.is_loaded
        assert "registry unreachable" in classifier.load_error

    def test_load_success(self):
        classifier = ModelClassifier()
        with patch("mlflow.pyfunc.load_model", return_value=MagicMock()):
            assert classifier.load("models:/fraud-classifier/1") is True
        assert classifier.is_loaded
        assert classifier.load_error is None
