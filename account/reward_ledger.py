"""
Reward Ledger - Reward units earned from ads and spent on features

The balance shown to the user is read from the profile cache. It only
changes after the gateway confirmed an earn or a spend and the profile was
refetched; the ledger never adjusts it locally.
"""

import asyncio
import logging
from typing import Optional

from account.ad_provider import AdProvider
from account.errors import ErrorKind, GatewayError, OperationResult
from account.feature_gate import FeatureGate
from account.identity_store import IdentityStore
from account.models import AdOutcomeType
from account.profile_cache import ProfileCache

logger = logging.getLogger(__name__)


class RewardLedger:
    """Mediates every reward unit balance change through the gateway"""

    def __init__(
        self,
        identity_store: IdentityStore,
        profile_cache: ProfileCache,
        gateway,
        ad_provider: AdProvider,
        feature_gate: Optional[FeatureGate] = None,
        progress_target: int = 30,
    ):
        self._identity = identity_store
        self._profile_cache = profile_cache
        self._gateway = gateway
        self._ad_provider = ad_provider
        self._feature_gate = feature_gate
        self._progress_target = progress_target
        self._watch_lock = asyncio.Lock()
        self._spend_lock = asyncio.Lock()
        self.last_error: Optional[str] = None

    @property
    def balance(self) -> int:
        profile = self._profile_cache.profile
        return profile.reward_units if profile else 0

    @property
    def is_watching_ad(self) -> bool:
        return self._watch_lock.locked()

    def premium_progress(self) -> float:
        """Progress towards the reward unit goal, between 0.0 and 1.0"""
        if self._progress_target <= 0:
            return 1.0
        return min(1.0, self.balance / self._progress_target)

    def _fail(self, error: ErrorKind, message: str) -> OperationResult:
        self.last_error = message
        return OperationResult.failure(error, message)

    async def _reconcile(self) -> None:
        self._profile_cache.mark_stale()
        refreshed = await self._profile_cache.refresh()
        if not refreshed.ok:
            logger.warning(f"Balance refresh after mutation failed: {refreshed.message}")

    # ========== Earn ==========

    async def watch_ad(self) -> OperationResult:
        """
        Load and show a rewarded ad, then credit the reward on the server.

        Only one ad-watch runs at a time; a concurrent call is rejected.
        """
        if not self._identity.is_authenticated:
            return self._fail(ErrorKind.NOT_AUTHENTICATED, "You must be logged in to watch ads")
        if self._watch_lock.locked():
            return self._fail(ErrorKind.OPERATION_IN_PROGRESS, "An ad is already playing")

        async with self._watch_lock:
            self.last_error = None
            return await self._watch_ad(self._identity.identity)

    async def _watch_ad(self, owner) -> OperationResult:
        if not self._ad_provider.is_loaded:
            try:
                loaded = await self._ad_provider.load()
            except Exception as e:
                logger.error(f"Ad provider failed while loading: {e}")
                loaded = False
            if not loaded:
                return self._fail(ErrorKind.AD_LOAD_FAILED, "Failed to load ad")

        try:
            outcome = await self._ad_provider.show()
        except Exception as e:
            logger.error(f"Ad provider failed while showing: {e}")
            return self._fail(ErrorKind.AD_FAILED, f"Failed to display ad: {e}")

        if outcome.kind == AdOutcomeType.CANCELED:
            return self._fail(ErrorKind.USER_CANCELED, "Ad viewing was canceled")
        if outcome.kind != AdOutcomeType.EARNED:
            return self._fail(ErrorKind.AD_FAILED, outcome.reason or "Failed to earn reward")
        if outcome.amount <= 0:
            return self._fail(ErrorKind.AD_FAILED, "Ad finished without a reward")

        # The reward belongs to the session that started the ad
        if self._identity.identity is not owner:
            logger.warning("Session changed while the ad was playing, reward not credited")
            return self._fail(ErrorKind.NOT_AUTHENTICATED, "Session changed while the ad was playing")

        try:
            await self._gateway.add_rewards(outcome.amount)
        except GatewayError as e:
            logger.warning(f"Reward credit of {outcome.amount} units failed: {e.message}")
            return self._fail(e.kind, e.message)

        logger.info(f"Credited {outcome.amount} reward units")
        await self._reconcile()
        return OperationResult.success(f"You earned {outcome.amount} reward units!", value=True)

    # ========== Spend ==========

    async def spend(self, amount: int, feature_name: str) -> OperationResult:
        """
        Spend reward units to unlock a feature.

        Fails fast with INSUFFICIENT_BALANCE when the cached balance is too low;
        the server re-validates otherwise. Spends are serialized.
        """
        if not self._identity.is_authenticated:
            return self._fail(ErrorKind.NOT_AUTHENTICATED, "You must be logged in to use reward units")
        if not isinstance(amount, int) or amount <= 0:
            return self._fail(ErrorKind.INVALID_REQUEST, "Amount must be a positive number of units")

        owner = self._identity.identity
        async with self._spend_lock:
            self.last_error = None
            if self._identity.identity is not owner:
                return self._fail(ErrorKind.NOT_AUTHENTICATED, "Session changed before the spend started")
            if self.balance < amount:
                return self._fail(
                    ErrorKind.INSUFFICIENT_BALANCE,
                    f"Not enough reward units. You need {amount} units to access this feature.",
                )

            try:
                await self._gateway.use_rewards(amount, feature_name)
            except GatewayError as e:
                logger.warning(f"Spending {amount} units on {feature_name} rejected: {e.message}")
                return self._fail(e.kind, e.message)

            if self._feature_gate:
                self._feature_gate.grant(feature_name, amount)
            await self._reconcile()
            return OperationResult.success(
                f"You've used {amount} reward units to access {feature_name}.", value=True
            )

    async def refresh(self) -> OperationResult:
        if not self._identity.is_authenticated:
            return OperationResult.success("Not logged in", value=None)
        return await self._profile_cache.refresh()
