"""Unit tests for the individual fraud rules."""

from datetime import timedelta

from paysentry.domains.fraud.config import FraudConfig
from paysentry.domains.fraud.models import UserProfile
from paysentry.domains.fraud.rules import (
    BlacklistedUserRule,
    BlockedCountryRule,
    DuplicateTransactionRule,
    HighAmountRule,
    MultipleCountriesRule,
    RuleContext,
    SuspiciousTimeAmountRule,
    VelocityExceededRule,
)
from tests.fakes import NOW, history_at, make_txn

CONFIG = FraudConfig()


def _ctx(txn=None, profile=None, recent=None) -> RuleContext:
    return RuleContext(
        transaction=txn or make_txn(),
        profile=profile,
        recent_transactions=recent or [],
        now=NOW,
        config=CONFIG,
    )


class TestBlockedCountryRule:
    def test_blocked(self):
        result = BlockedCountryRule().evaluate(_ctx(make_txn(country="KP")))
        assert result.triggered
        assert result.evidence["country"] == "KP"

    def test_allowed(self):
        assert not BlockedCountryRule().evaluate(_ctx(make_txn(country="US"))).triggered

    def test_missing_country(self):
        assert not BlockedCountryRule().evaluate(_ctx(make_txn(country=""))).triggered


class TestHighAmountRule:
    def test_threshold_is_exclusive(self):
        assert not HighAmountRule().evaluate(_ctx(make_txn(amount="10000.00"))).triggered

    def test_above_threshold(self):
        assert HighAmountRule().evaluate(_ctx(make_txn(amount="10000.01"))).triggered


class TestVelocityExceededRule:
    def test_sixteen_in_last_hour(self):
        recent = history_at([timedelta(minutes=3 * i + 1) for i in range(16)])
        assert VelocityExceededRule().evaluate(_ctx(recent=recent)).triggered

    def test_fifteen_in_last_hour(self):
        recent = history_at([timedelta(minutes=3 * i + 1) for i in range(15)])
        assert not VelocityExceededRule().evaluate(_ctx(recent=recent)).triggered

    def test_exactly_one_hour_ago_is_outside(self):
        recent = history_at([timedelta(minutes=1)] * 15 + [timedelta(hours=1)])
        assert not VelocityExceededRule().evaluate(_ctx(recent=recent)).triggered


class TestDuplicateTransactionRule:
    def test_same_amount_within_window(self):
        recent = history_at([timedelta(minutes=2)])
        result = DuplicateTransactionRule().evaluate(_ctx(recent=recent))
        assert result.triggered
        assert result.evidence["duplicate_ids"] == ["hist-0"]

    def test_same_transaction_id_is_not_a_duplicate(self):
        recent = [make_txn(timestamp=NOW - timedelta(minutes=2))]
        assert not DuplicateTransactionRule().evaluate(_ctx(recent=recent)).triggered

    def test_outside_window(self):
        recent = history_at([timedelta(minutes=6)])
        assert not DuplicateTransactionRule().evaluate(_ctx(recent=recent)).triggered

    def test_different_amount(self):
        recent = history_at([timedelta(minutes=2)], amount="99.99")
        assert not DuplicateTransactionRule().evaluate(_ctx(recent=recent)).triggered


class TestBlacklistedUserRule:
    def test_blacklisted(self):
        profile = UserProfile(user_id="user-1", is_blacklisted=True)
        assert BlacklistedUserRule().evaluate(_ctx(profile=profile)).triggered

    def test_no_profile(self):
        assert not BlacklistedUserRule().evaluate(_ctx()).triggered


class TestSuspiciousTimeAmountRule:
    def test_large_amount_at_3am(self):
        txn = make_txn(amount="6000.00", timestamp=NOW.replace(hour=3))
        assert SuspiciousTimeAmountRule().evaluate(_ctx(txn)).triggered

    def test_large_amount_at_5am(self):
        txn = make_txn(amount="6000.00", timestamp=NOW.replace(hour=5))
        assert not SuspiciousTimeAmountRule().evaluate(_ctx(txn)).triggered

    def test_small_amount_at_3am(self):
        txn = make_txn(amount="5000.00", timestamp=NOW.replace(hour=3))
        assert not SuspiciousTimeAmountRule().evaluate(_ctx(txn)).triggered


class TestMultipleCountriesRule:
    def test_six_countries_in_a_day(self):
        recent = [
            make_txn(transaction_id=f"hist-{i}", timestamp=NOW - timedelta(hours=i + 1), country=c)
            for i, c in enumerate(["US", "CA", "MX", "FR", "DE", "GB"])
        ]
        result = MultipleCountriesRule().evaluate(_ctx(recent=recent))
        assert result.triggered
        assert len(result.evidence["countries"]) == 6

    def test_old_countries_ignored(self):
        recent = [
            make_txn(transaction_id=f"hist-{i}", timestamp=NOW - timedelta(days=2), country=c)
            for i, c in enumerate(["US", "CA", "MX", "FR", "DE", "GB"])
        ]
        assert not MultipleCountriesRule().evaluate(_ctx(recent=recent)).triggered
