"""Geography-based fraud rules."""

from datetime import timedelta

from ..models import RuleResult, Violation
from .base import FraudRule, RuleContext


class BlockedCountryRule(FraudRule):
    """Triggers for transactions originating in an embargoed country."""

    rule_id = Violation.BLOCKED_COUNTRY
    category = "geo"

    def evaluate(self, ctx: RuleContext) -> RuleResult:
        country = ctx.transaction.country
        if not country or country not in ctx.config.rules.blocked_countries:
            return self._not_triggered()

        return self._triggered(
            details=f"Transaction from blocked country: {country}",
            evidence={"country": country},
        )


class MultipleCountriesRule(FraudRule):
    """Triggers when the user transacted from too many countries in 24h."""

    rule_id = Violation.MULTIPLE_COUNTRIES
    category = "geo"

    def evaluate(self, ctx: RuleContext) -> RuleResult:
        max_countries = ctx.config.rules.max_countries_24h
        countries = {t.country for t in ctx.history_since(timedelta(hours=24)) if t.country}
        if len(countries) <= max_countries:
            return self._not_triggered()

        return self._triggered(
            details=f"{len(countries)} countries in last 24h (threshold: {max_countries})",
            evidence={"countries": sorted(countries), "threshold": max_countries},
        )
