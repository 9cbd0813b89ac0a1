"""Amount-based fraud rules."""

from ..models import RuleResult, Violation
from .base import FraudRule, RuleContext


class HighAmountRule(FraudRule):
    """Triggers for single transactions above the high-amount threshold."""

    rule_id = Violation.HIGH_AMOUNT
    category = "amount"

    def evaluate(self, ctx: RuleContext) -> RuleResult:
        amount = ctx.transaction.amount_float
        threshold = ctx.config.rules.high_amount
        if amount <= threshold:
            return self._not_triggered()

        return self._triggered(
            details=f"Amount {amount:,.2f} exceeds {threshold:,.2f}",
            evidence={"amount": amount, "threshold": threshold},
        )


class SuspiciousTimeAmountRule(FraudRule):
    """Triggers for large transactions in the small hours."""

    rule_id = Violation.SUSPICIOUS_TIME_AMOUNT
    category = "amount"

    def evaluate(self, ctx: RuleContext) -> RuleResult:
        cfg = ctx.config.rules
        hour = ctx.transaction.timestamp.hour
        start, end = cfg.suspicious_hours
        amount = ctx.transaction.amount_float
        if not (start <= hour <= end) or amount <= cfg.suspicious_amount:
            return self._not_triggered()

        return self._triggered(
            details=f"Amount {amount:,.2f} at {hour:02d}:00",
            evidence={"hour": hour, "amount": amount},
        )
