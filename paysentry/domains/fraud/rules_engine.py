"""Deterministic business rules: violations, hard blocks and manual review."""

from collections.abc import Iterable
from datetime import UTC, datetime

import structlog

from .config import FraudConfig, default_config
from .exceptions import RulesEvaluationError
from .interfaces import TransactionHistoryStore
from .models import RuleResult, Transaction, UserProfile, Violation
from .rules import ALL_RULES, FraudRule, RuleContext

logger = structlog.get_logger()

BLOCKING_VIOLATIONS: frozenset[str] = frozenset(
    {
        Violation.BLOCKED_COUNTRY,
        Violation.BLACKLISTED_USER,
        Violation.DUPLICATE_TRANSACTION,
    }
)

REVIEW_VIOLATIONS: frozenset[str] = frozenset(
    {
        Violation.HIGH_AMOUNT,
        Violation.VELOCITY_EXCEEDED,
        Violation.SUSPICIOUS_TIME_AMOUNT,
        Violation.MULTIPLE_COUNTRIES,
    }
)


class RulesEngine:
    """Evaluates a transaction against every rule in ALL_RULES.

    Unlike the probabilistic models, a rule failure is never downgraded to
    "no violation": it raises RulesEvaluationError so the caller cannot
    approve a transaction whose rules were not checked.
    """

    def __init__(
        self,
        history: TransactionHistoryStore,
        config: FraudConfig | None = None,
        rules: Iterable[FraudRule] | None = None,
    ) -> None:
        self._history = history
        self._config = config or default_config
        self._rules = list(rules if rules is not None else ALL_RULES)
        logger.info("rules_engine_initialized", rule_count=len(self._rules))

    async def evaluate_detailed(
        self,
        transaction: Transaction,
        profile: UserProfile | None = None,
        now: datetime | None = None,
    ) -> list[RuleResult]:
        """Run all rules and return every result, triggered or not."""
        now = now or datetime.now(UTC)
        cfg = self._config

        try:
            recent = await self._history.get_user_transactions(
                transaction.user_id, cfg.rules.history_limit
            )
        except Exception as exc:
            logger.exception(
                "rules_history_fetch_failed",
                transaction_id=transaction.transaction_id,
                user_id=transaction.user_id,
            )
            raise RulesEvaluationError(
                f"Could not load history for user {transaction.user_id}"
            ) from exc

        ctx = RuleContext(
            transaction=transaction,
            profile=profile,
            recent_transactions=recent,
            now=now,
            config=cfg,
        )

        results: list[RuleResult] = []
        for rule in self._rules:
            try:
                results.append(rule.evaluate(ctx))
            except Exception as exc:
                logger.exception(
                    "rule_evaluation_error",
                    rule_id=rule.rule_id,
                    transaction_id=transaction.transaction_id,
                )
                raise RulesEvaluationError(f"Rule {rule.rule_id} failed") from exc

        return results

    async def evaluate(
        self,
        transaction: Transaction,
        profile: UserProfile | None = None,
        now: datetime | None = None,
    ) -> list[str]:
        """Return the violation codes triggered by this transaction, in rule order."""
        results = await self.evaluate_detailed(transaction, profile, now)
        violations = [str(r.rule_name) for r in results if r.triggered]

        logger.info(
            "rules_evaluated",
            transaction_id=transaction.transaction_id,
            violation_count=len(violations),
            violations=violations,
        )
        return violations

    async def should_block(
        self,
        transaction: Transaction,
        profile: UserProfile | None = None,
        now: datetime | None = None,
    ) -> bool:
        violations = await self.evaluate(transaction, profile, now)
        return is_blocking(violations)

    async def requires_manual_review(
        self,
        transaction: Transaction,
        fraud_probability: float,
        violations: list[str] | None = None,
        now: datetime | None = None,
    ) -> bool:
        """True when the probability is inconclusive or a review rule fired.

        Violations are re-evaluated (without a profile) when not supplied.
        """
        decision = self._config.decision
        if decision.manual_review_threshold <= fraud_probability < decision.decline_threshold:
            return True

        if violations is None:
            violations = await self.evaluate(transaction, None, now)
        return bool(REVIEW_VIOLATIONS.intersection(violations))


def is_blocking(violations: Iterable[str]) -> bool:
    return bool(BLOCKING_VIOLATIONS.intersection(violations))
