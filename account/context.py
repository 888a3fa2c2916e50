"""
Account Context - One set of account services per session

Builds the gateway, caches and state machines once and wires them together.
Consumers receive the context (or the single service they need) by
reference instead of looking up globals.
"""

from dataclasses import dataclass
from typing import Optional

from config import Settings, settings as default_settings
from account.ad_provider import AdProvider, SimulatedAdProvider
from account.feature_gate import FeatureGate
from account.gateway import SessionGateway
from account.identity_store import IdentityStore
from account.profile_cache import ProfileCache
from account.reward_ledger import RewardLedger
from account.subscription_machine import SubscriptionStateMachine
from account.token_store import TokenStore


@dataclass
class AccountContext:
    gateway: SessionGateway
    profile_cache: ProfileCache
    identity: IdentityStore
    feature_gate: FeatureGate
    rewards: RewardLedger
    subscription: SubscriptionStateMachine

    def snapshot(self) -> dict:
        """Everything the UI needs to render the account area"""
        profile = self.profile_cache.profile
        details = self.subscription.details
        return {
            "isAuthenticated": self.identity.is_authenticated,
            "isLoading": self.identity.is_loading,
            "user": self.identity.identity.to_dict() if self.identity.identity else None,
            "profile": profile.to_dict() if profile else None,
            "profileStale": self.profile_cache.stale,
            "rewardUnits": self.rewards.balance,
            "premiumProgress": self.rewards.premium_progress(),
            "isWatchingAd": self.rewards.is_watching_ad,
            "isPremium": self.subscription.is_premium,
            "subscriptionStatus": self.subscription.status.value,
            "subscriptionPhase": self.subscription.phase.value,
            "subscriptionId": self.subscription.subscription_id,
            "subscriptionDetails": details.to_dict() if details else None,
            "unlockedFeatures": [
                {"feature": u.feature_name, "expiresAt": u.expires_at.isoformat()}
                for u in self.feature_gate.active_unlocks()
            ],
        }

    async def aclose(self) -> None:
        await self.gateway.close()


def build_account_context(
    app_settings: Optional[Settings] = None,
    *,
    gateway: Optional[SessionGateway] = None,
    ad_provider: Optional[AdProvider] = None,
    token_store: Optional[TokenStore] = None,
) -> AccountContext:
    """
    Construct and wire the account services.

    Args:
        app_settings: Settings to use (module settings by default)
        gateway: Gateway override, e.g. a test double
        ad_provider: Ad provider override; the simulated provider by default
        token_store: Token store override; built from settings by default
    """
    cfg = app_settings or default_settings

    if gateway is None:
        gateway = SessionGateway(cfg.API_BASE_URL, timeout=cfg.REQUEST_TIMEOUT_SECONDS)
    if ad_provider is None:
        ad_provider = SimulatedAdProvider(
            reward_amount=cfg.DEFAULT_AD_REWARD,
            load_delay=cfg.SIMULATED_AD_LOAD_DELAY,
            show_delay=cfg.SIMULATED_AD_SHOW_DELAY,
        )
    if token_store is None:
        token_store = TokenStore(cfg.session_file, cfg.SESSION_SECRET, cfg.SESSION_ENCRYPTION_SALT)

    profile_cache = ProfileCache(gateway)
    identity = IdentityStore(gateway, profile_cache, token_store)
    feature_gate = FeatureGate(profile_cache, unlock_hours=cfg.FEATURE_UNLOCK_HOURS)
    rewards = RewardLedger(
        identity,
        profile_cache,
        gateway,
        ad_provider,
        feature_gate=feature_gate,
        progress_target=cfg.PREMIUM_PROGRESS_TARGET,
    )
    subscription = SubscriptionStateMachine(identity, profile_cache, gateway)

    return AccountContext(
        gateway=gateway,
        profile_cache=profile_cache,
        identity=identity,
        feature_gate=feature_gate,
        rewards=rewards,
        subscription=subscription,
    )
