#!/usr/bin/env python3
"""
Feature Gate and Ad Provider Tests

Tests premium/unlock access decisions and the simulated ad provider.
"""

from datetime import datetime, timedelta

import pytest

from account import AdOutcomeType, FeatureUnlock, SimulatedAdProvider


class TestFeatureGate:
    """Tests for FeatureGate"""

    def test_costs(self, context):
        gate = context.feature_gate

        assert gate.cost_for("advancedAnalytics") == 5
        assert gate.cost_for("bulkActions") == 8
        assert gate.cost_for("customBranding") == 10
        assert gate.cost_for("somethingElse") == gate.DEFAULT_COST

    def test_no_access_by_default(self, context):
        allowed, reason = context.feature_gate.check_access("bulkActions", balance=3)

        assert not allowed
        assert "5 more reward units" in reason

    def test_hint_when_balance_covers_unlock(self, context):
        allowed, reason = context.feature_gate.check_access("bulkActions", balance=8)

        assert not allowed
        assert reason.startswith("Use 8 reward units to unlock bulkActions for 24 hours")

    def test_grant_unlocks_until_expiry(self, context):
        unlock = context.feature_gate.grant("bulkActions", 8)

        assert context.feature_gate.has_access("bulkActions")
        assert not context.feature_gate.has_access("customBranding")
        later = unlock.unlocked_at + timedelta(hours=24, seconds=1)
        assert not context.feature_gate.has_access("bulkActions", now=later)
        assert context.feature_gate.active_unlocks(now=later) == []

    @pytest.mark.asyncio
    async def test_premium_has_access_to_everything(self, logged_in):
        await logged_in.subscription.upgrade("SUB-123")

        allowed, reason = logged_in.feature_gate.check_access("customBranding")

        assert allowed
        assert reason is None

    @pytest.mark.asyncio
    async def test_unlocks_cleared_on_logout(self, logged_in):
        logged_in.feature_gate.grant("bulkActions", 8)

        await logged_in.identity.logout()

        assert logged_in.feature_gate.active_unlocks() == []


class TestFeatureUnlock:
    """Tests for the FeatureUnlock model"""

    def test_expiry(self):
        start = datetime(2026, 1, 1, 12, 0)
        unlock = FeatureUnlock("advancedAnalytics", 5, unlocked_at=start)

        assert unlock.expires_at == start + timedelta(hours=24)
        assert unlock.is_active(now=start + timedelta(hours=23))
        assert not unlock.is_active(now=start + timedelta(hours=24))


class FixedRandom:
    def __init__(self, value):
        self.value = value

    def random(self):
        return self.value


class TestSimulatedAdProvider:
    """Tests for SimulatedAdProvider"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("roll,kind", [
        (0.10, AdOutcomeType.EARNED),
        (0.92, AdOutcomeType.CANCELED),
        (0.99, AdOutcomeType.FAILED),
    ])
    async def test_outcome_split(self, roll, kind):
        provider = SimulatedAdProvider(reward_amount=2, load_delay=0, show_delay=0, rng=FixedRandom(roll))

        assert await provider.load()
        outcome = await provider.show()

        assert outcome.kind == kind
        if kind == AdOutcomeType.EARNED:
            assert outcome.amount == 2

    @pytest.mark.asyncio
    async def test_ad_is_shown_once(self):
        provider = SimulatedAdProvider(load_delay=0, show_delay=0, rng=FixedRandom(0.1))
        await provider.load()
        await provider.show()

        assert not provider.is_loaded
        outcome = await provider.show()
        assert outcome.kind == AdOutcomeType.FAILED
        assert outcome.reason == "No ad is loaded"
