"""
Feature Gate - Controls access to premium CRM features

A gated feature is available when:
- the user is premium (active subscription), or
- the user paid reward units for it within the unlock window (24h default)

Usage:
    allowed, reason = gate.check_access('advancedAnalytics', balance=ledger.balance)
    if not allowed:
        show_upgrade_prompt(reason)
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from account.models import FeatureUnlock, Profile
from account.profile_cache import ProfileCache

logger = logging.getLogger(__name__)


class FeatureGate:
    """Answers "may the current user use this feature right now?"."""

    # Reward unit cost of a temporary unlock per feature
    FEATURE_COSTS: Dict[str, int] = {
        'advancedAnalytics': 5,
        'bulkActions': 8,
        'customBranding': 10,
    }
    DEFAULT_COST = 5

    def __init__(self, profile_cache: ProfileCache, unlock_hours: int = 24):
        self._profile_cache = profile_cache
        self.unlock_hours = unlock_hours
        self._unlock_duration = timedelta(hours=unlock_hours)
        self._unlocks: Dict[str, FeatureUnlock] = {}
        profile_cache.add_listener(self._on_profile_change)

    def _on_profile_change(self, profile: Optional[Profile]) -> None:
        # Unlocks belong to the session that paid for them
        if profile is None and self._unlocks:
            self._unlocks.clear()

    @property
    def is_premium(self) -> bool:
        profile = self._profile_cache.profile
        return bool(profile and profile.is_premium)

    def cost_for(self, feature_name: str) -> int:
        return self.FEATURE_COSTS.get(feature_name, self.DEFAULT_COST)

    def grant(self, feature_name: str, units_spent: int) -> FeatureUnlock:
        """Record an unlock after the gateway confirmed the spend"""
        unlock = FeatureUnlock(
            feature_name=feature_name,
            units_spent=units_spent,
            duration=self._unlock_duration,
        )
        self._unlocks[feature_name] = unlock
        logger.info(f"Unlocked {feature_name} until {unlock.expires_at.isoformat()}")
        return unlock

    def get_unlock(self, feature_name: str, now: Optional[datetime] = None) -> Optional[FeatureUnlock]:
        unlock = self._unlocks.get(feature_name)
        if unlock and unlock.is_active(now):
            return unlock
        return None

    def active_unlocks(self, now: Optional[datetime] = None) -> List[FeatureUnlock]:
        return [u for u in self._unlocks.values() if u.is_active(now)]

    def has_access(self, feature_name: str, now: Optional[datetime] = None) -> bool:
        if self.is_premium:
            return True
        return self.get_unlock(feature_name, now) is not None

    def check_access(
        self,
        feature_name: str,
        balance: int = 0,
        now: Optional[datetime] = None,
    ) -> Tuple[bool, Optional[str]]:
        """
        Check whether a feature can be used.

        Args:
            feature_name: Gated feature
            balance: Current reward unit balance, used for the hint message

        Returns:
            Tuple of (is_allowed, reason_if_not)
        """
        if self.has_access(feature_name, now):
            return True, None

        cost = self.cost_for(feature_name)
        if balance >= cost:
            return False, f"Use {cost} reward units to unlock {feature_name} for {self.unlock_hours} hours, or upgrade to Premium."
        return False, (
            f"You need {cost - balance} more reward units to unlock {feature_name}. "
            "Watch ads to earn more, or upgrade to Premium."
        )
