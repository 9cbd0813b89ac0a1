"""Velocity and repetition fraud rules."""

from datetime import timedelta

from ..models import RuleResult, Violation
from .base import FraudRule, RuleContext


class VelocityExceededRule(FraudRule):
    """Triggers when the user made too many transactions in the last hour."""

    rule_id = Violation.VELOCITY_EXCEEDED
    category = "velocity"

    def evaluate(self, ctx: RuleContext) -> RuleResult:
        max_per_hour = ctx.config.rules.max_transactions_per_hour
        count = len(ctx.history_since(timedelta(hours=1)))
        if count <= max_per_hour:
            return self._not_triggered()

        return self._triggered(
            details=f"{count} transactions in last hour (threshold: {max_per_hour})",
            evidence={"count": count, "threshold": max_per_hour},
        )


class DuplicateTransactionRule(FraudRule):
    """Triggers on a same-amount transaction by the same user within minutes."""

    rule_id = Violation.DUPLICATE_TRANSACTION
    category = "velocity"

    def evaluate(self, ctx: RuleContext) -> RuleResult:
        txn = ctx.transaction
        window = timedelta(minutes=ctx.config.rules.duplicate_window_minutes)
        duplicates = [
            t.transaction_id
            for t in ctx.history_since(window)
            if t.amount == txn.amount and t.transaction_id != txn.transaction_id
        ]
        if not duplicates:
            return self._not_triggered()

        return self._triggered(
            details=f"{len(duplicates)} identical amount(s) within {window}",
            evidence={"duplicate_ids": duplicates},
        )
