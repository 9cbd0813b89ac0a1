"""Unit tests for the ensemble combiner."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from paysentry.domains.fraud.config import EnsembleWeights, FraudConfig
from paysentry.domains.fraud.ensemble import (
    BEHAVIORAL_MODEL,
    PRIMARY_CLASSIFIER,
    RULE_BASED_MODEL,
    STATISTICAL_MODEL,
    EnsembleCombiner,
    flag_classes,
    rule_based_score,
)
from paysentry.domains.fraud.exceptions import ClassifierUnavailableError
from paysentry.domains.fraud.models import RISK_FACTOR_KEYS, BehavioralSnapshot
from tests.fakes import NOW, make_txn


def _snapshot(risk_score: float = 0.0, flags: set[str] | None = None) -> BehavioralSnapshot:
    return BehavioralSnapshot(user_id="user-1", risk_score=risk_score, anomaly_flags=flags or set())


def _calculator(value: float = 0.5) -> AsyncMock:
    calc = AsyncMock()
    calc.compute_all.return_value = {key: value for key in RISK_FACTOR_KEYS}
    return calc


def _classifier(**kwargs) -> AsyncMock:
    classifier = AsyncMock()
    classifier.predict = AsyncMock(**kwargs)
    return classifier


class TestRuleBasedScore:
    def test_everything_fires_and_caps(self):
        txn = make_txn(amount="60000.00", timestamp=NOW.replace(hour=3))
        assert rule_based_score(txn, _snapshot(flags={"HIGH_VELOCITY_1H"})) == 1.0

    def test_amount_and_unusual_flag(self):
        txn = make_txn(amount="20000.00")
        assert rule_based_score(txn, _snapshot(flags={"UNUSUAL_AMOUNT"})) == pytest.approx(0.5)

    def test_velocity_class_counted_once(self):
        flags = {"HIGH_VELOCITY_1H", "HIGH_VELOCITY_24H"}
        assert flag_classes(flags) == {"HighVelocity"}
        assert rule_based_score(make_txn(), _snapshot(flags=flags)) == pytest.approx(0.3)

    def test_clean(self):
        assert rule_based_score(make_txn(), _snapshot()) == 0.0


class TestEnsembleCombiner:
    def test_weights_sum_to_one(self):
        combiner = EnsembleCombiner(_classifier(return_value=0.0), _calculator())
        assert sum(combiner.weights.values()) == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_weighted_sum(self):
        combiner = EnsembleCombiner(_classifier(return_value=0.8), _calculator(0.5))
        score = await combiner.predict(make_txn(), None, _snapshot(risk_score=20), NOW)
        # 0.40 * 0.8 + 0.25 * 0.0 + 0.20 * 0.5 + 0.15 * 0.2
        assert score == pytest.approx(0.45)

    @pytest.mark.asyncio
    async def test_unavailable_classifier_falls_back(self):
        classifier = _classifier(side_effect=ClassifierUnavailableError("no model"))
        combiner = EnsembleCombiner(classifier, _calculator(0.0))

        predictions = await combiner.sub_model_predictions(make_txn(), None, _snapshot(), NOW)

        assert predictions == {
            PRIMARY_CLASSIFIER: 0.5,
            RULE_BASED_MODEL: 0.0,
            STATISTICAL_MODEL: 0.0,
            BEHAVIORAL_MODEL: 0.0,
        }

    @pytest.mark.asyncio
    async def test_non_finite_classifier_output_falls_back(self):
        combiner = EnsembleCombiner(_classifier(return_value=float("nan")), _calculator(0.0))
        predictions = await combiner.sub_model_predictions(make_txn(), None, _snapshot(), NOW)
        assert predictions[PRIMARY_CLASSIFIER] == 0.5

    @pytest.mark.asyncio
    async def test_out_of_range_classifier_output_is_clamped(self):
        combiner = EnsembleCombiner(_classifier(return_value=2.5), _calculator(0.0))
        predictions = await combiner.sub_model_predictions(make_txn(), None, _snapshot(), NOW)
        assert predictions[PRIMARY_CLASSIFIER] == 1.0

    @pytest.mark.asyncio
    async def test_statistical_failure_falls_back(self):
        calc = AsyncMock()
        calc.compute_all.side_effect = RuntimeError("history down")
        combiner = EnsembleCombiner(_classifier(return_value=0.0), calc)

        predictions = await combiner.sub_model_predictions(make_txn(), None, _snapshot(), NOW)

        assert predictions[STATISTICAL_MODEL] == 0.5

    @pytest.mark.asyncio
    async def test_statistical_uses_mean_and_max(self):
        calc = AsyncMock()
        calc.compute_all.return_value = dict(zip(RISK_FACTOR_KEYS, [0.0, 0.0, 0.0, 0.0, 1.0]))
        combiner = EnsembleCombiner(_classifier(return_value=0.0), calc)

        predictions = await combiner.sub_model_predictions(make_txn(), None, _snapshot(), NOW)

        # 0.6 * 0.2 + 0.4 * 1.0
        assert predictions[STATISTICAL_MODEL] == pytest.approx(0.52)
        calc.compute_all.assert_awaited_once()
        assert calc.compute_all.await_args.args[1] is None

    @pytest.mark.asyncio
    async def test_all_failing_stays_in_range(self):
        calc = AsyncMock()
        calc.compute_all.side_effect = RuntimeError("down")
        combiner = EnsembleCombiner(_classifier(side_effect=RuntimeError("down")), calc)
        score = await combiner.predict(make_txn(), None, _snapshot(risk_score=100), NOW)
        assert 0.0 <= score <= 1.0


class TestSubModelTimeout:
    @staticmethod
    def _config(timeout: float) -> FraudConfig:
        return FraudConfig(ensemble=EnsembleWeights(sub_model_timeout_seconds=timeout))

    @staticmethod
    def _hung_classifier() -> AsyncMock:
        async def hang(*args):
            await asyncio.sleep(30)
            return 0.0

        return _classifier(side_effect=hang)

    @pytest.mark.asyncio
    async def test_hung_classifier_falls_back(self):
        combiner = EnsembleCombiner(self._hung_classifier(), _calculator(0.0), self._config(0.05))

        predictions = await asyncio.wait_for(
            combiner.sub_model_predictions(make_txn(), None, _snapshot(), NOW), timeout=2
        )

        assert predictions[PRIMARY_CLASSIFIER] == 0.5
        assert predictions[RULE_BASED_MODEL] == 0.0

    @pytest.mark.asyncio
    async def test_caller_cancellation_propagates(self):
        combiner = EnsembleCombiner(self._hung_classifier(), _calculator(0.0), self._config(10))

        with pytest.raises(TimeoutError):
            await asyncio.wait_for(
                combiner.predict(make_txn(), None, _snapshot(), NOW), timeout=0.05
            )


class TestReservedFlagClasses:
    def test_reserved_codes_score_when_present(self):
        flags = {"NEW_DEVICE", "FIRST_TIME_COUNTRY"}
        assert flag_classes(flags) == {"NewDevice", "FirstTimeCountry"}
        assert rule_based_score(make_txn(), _snapshot(flags=flags)) == pytest.approx(0.35)
