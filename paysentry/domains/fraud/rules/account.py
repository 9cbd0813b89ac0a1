"""Account-status fraud rules."""

from ..models import RuleResult, Violation
from .base import FraudRule, RuleContext


class BlacklistedUserRule(FraudRule):
    rule_id = Violation.BLACKLISTED_USER
    category = "account"

    def evaluate(self, ctx: RuleContext) -> RuleResult:
        if ctx.profile is None or not ctx.profile.is_blacklisted:
            return self._not_triggered()
        return self._triggered(details="User is blacklisted")
