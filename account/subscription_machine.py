"""
Subscription State Machine - Premium tier tracking

Phases:
    free -> pending_upgrade -> active
    active -> pending_cancel -> free | cancelled
    active -> suspended -> active | expired   (server-driven)

The settled status is always read from the profile cache, so it only changes
after the gateway confirmed an upgrade or cancellation and the profile was
refetched. The pending phases exist only while such a request is in flight.
"""

import logging
from typing import Dict, FrozenSet, Optional

from account.errors import ErrorKind, GatewayError, OperationResult
from account.identity_store import IdentityStore
from account.models import Profile, SubscriptionDetails, SubscriptionPhase, SubscriptionStatus
from account.profile_cache import ProfileCache

logger = logging.getLogger(__name__)

P = SubscriptionPhase

TRANSITIONS: Dict[SubscriptionPhase, FrozenSet[SubscriptionPhase]] = {
    P.FREE: frozenset({P.PENDING_UPGRADE, P.ACTIVE}),
    P.PENDING_UPGRADE: frozenset({P.ACTIVE, P.FREE, P.CANCELLED, P.EXPIRED}),
    P.ACTIVE: frozenset({P.PENDING_CANCEL, P.SUSPENDED, P.CANCELLED, P.EXPIRED, P.FREE}),
    P.PENDING_CANCEL: frozenset({P.FREE, P.CANCELLED, P.ACTIVE}),
    P.SUSPENDED: frozenset({P.ACTIVE, P.EXPIRED}),
    P.CANCELLED: frozenset({P.PENDING_UPGRADE, P.ACTIVE, P.FREE, P.EXPIRED}),
    P.EXPIRED: frozenset({P.PENDING_UPGRADE, P.ACTIVE, P.FREE}),
}


def can_transition(current: SubscriptionPhase, target: SubscriptionPhase) -> bool:
    return current == target or target in TRANSITIONS.get(current, frozenset())


class SubscriptionStateMachine:
    """Tracks premium status and drives upgrade/cancel through the gateway"""

    def __init__(self, identity_store: IdentityStore, profile_cache: ProfileCache, gateway):
        self._identity = identity_store
        self._profile_cache = profile_cache
        self._gateway = gateway
        self._pending: Optional[SubscriptionPhase] = None
        self._details: Optional[SubscriptionDetails] = None
        # None until the first profile of a session is seen
        self._observed: Optional[SubscriptionPhase] = (
            self._settled_phase(profile_cache.profile) if profile_cache.profile else None
        )
        self.last_error: Optional[str] = None
        profile_cache.add_listener(self._on_profile_change)

    # ========== State ==========

    @staticmethod
    def _settled_phase(profile: Optional[Profile]) -> SubscriptionPhase:
        if profile is None:
            return SubscriptionPhase.FREE
        return SubscriptionPhase(profile.subscription_status.value)

    @property
    def status(self) -> SubscriptionStatus:
        profile = self._profile_cache.profile
        return profile.subscription_status if profile else SubscriptionStatus.FREE

    @property
    def phase(self) -> SubscriptionPhase:
        return self._pending or self._settled_phase(self._profile_cache.profile)

    @property
    def is_premium(self) -> bool:
        profile = self._profile_cache.profile
        return bool(profile and profile.is_premium)

    @property
    def subscription_id(self) -> Optional[str]:
        profile = self._profile_cache.profile
        return profile.subscription_id if profile else None

    @property
    def details(self) -> Optional[SubscriptionDetails]:
        return self._details

    @property
    def is_busy(self) -> bool:
        return self._pending is not None

    def _on_profile_change(self, profile: Optional[Profile]) -> None:
        if profile is None:
            self._details = None
            self._observed = None
            return

        settled = self._settled_phase(profile)
        if self._observed is not None and not can_transition(self._observed, settled):
            logger.warning(f"Unexpected subscription transition {self._observed.value} -> {settled.value}")
        self._observed = settled

        if self._details and self._details.subscription_id != profile.subscription_id:
            self._details = None

    def _fail(self, error: ErrorKind, message: str) -> OperationResult:
        self.last_error = message
        return OperationResult.failure(error, message)

    def _session_changed(self) -> OperationResult:
        logger.warning("Session changed during a subscription change, result discarded")
        return self._fail(ErrorKind.NOT_AUTHENTICATED, "Session changed during the subscription change")

    # ========== Operations ==========

    async def upgrade(self, external_subscription_id: str) -> OperationResult:
        """
        Verify a subscription approved in the billing widget.

        Args:
            external_subscription_id: Subscription id from the PayPal approval callback
        """
        if not self._identity.is_authenticated:
            return self._fail(ErrorKind.NOT_AUTHENTICATED, "You must be logged in to upgrade")
        if not external_subscription_id:
            return self._fail(ErrorKind.INVALID_REQUEST, "Subscription id is required")
        if self._pending:
            return self._fail(ErrorKind.OPERATION_IN_PROGRESS, "A subscription change is already in progress")

        owner = self._identity.identity
        self.last_error = None
        self._pending = SubscriptionPhase.PENDING_UPGRADE
        try:
            try:
                await self._gateway.verify_subscription(external_subscription_id)
            except GatewayError as e:
                logger.warning(f"Subscription verification failed for {external_subscription_id}: {e.message}")
                return self._fail(e.kind, e.message)

            if self._identity.identity is not owner:
                return self._session_changed()
            logger.info(f"Subscription {external_subscription_id} verified")
            await self._reconcile()
        finally:
            self._pending = None

        if self.is_premium:
            return OperationResult.success("Welcome to Premium!")
        return OperationResult.success(f"Subscription received, current status: {self.status.value}")

    async def cancel(self) -> OperationResult:
        """Cancel the current subscription"""
        subscription_id = self.subscription_id
        if not subscription_id:
            return self._fail(ErrorKind.NO_ACTIVE_SUBSCRIPTION, "No active subscription to cancel")
        if not self._identity.is_authenticated:
            return self._fail(ErrorKind.NOT_AUTHENTICATED, "You must be logged in to cancel")
        if self._pending:
            return self._fail(ErrorKind.OPERATION_IN_PROGRESS, "A subscription change is already in progress")

        owner = self._identity.identity
        self.last_error = None
        self._pending = SubscriptionPhase.PENDING_CANCEL
        try:
            try:
                await self._gateway.cancel_subscription(subscription_id)
            except GatewayError as e:
                logger.warning(f"Cancelling subscription {subscription_id} failed: {e.message}")
                return self._fail(e.kind, e.message)

            if self._identity.identity is not owner:
                return self._session_changed()
            logger.info(f"Subscription {subscription_id} cancelled")
            await self._reconcile()
        finally:
            self._pending = None

        return OperationResult.success("Subscription cancelled successfully")

    async def refresh(self) -> OperationResult:
        """Refetch the profile, then subscription details when there is a subscription"""
        if not self._identity.is_authenticated:
            self._details = None
            return OperationResult.success("Not logged in", value=None)

        refreshed = await self._profile_cache.refresh()
        if not refreshed.ok:
            return self._fail(refreshed.error, refreshed.message)
        return await self._load_details()

    async def _reconcile(self) -> None:
        self._profile_cache.mark_stale()
        refreshed = await self._profile_cache.refresh()
        if not refreshed.ok:
            logger.warning(f"Profile refresh after subscription change failed: {refreshed.message}")
            return
        await self._load_details()

    async def _load_details(self) -> OperationResult:
        subscription_id = self.subscription_id
        if not subscription_id:
            self._details = None
            return OperationResult.success("No subscription", value=None)

        try:
            details = await self._gateway.get_subscription(subscription_id)
        except GatewayError as e:
            logger.warning(f"Could not load subscription {subscription_id}: {e.message}")
            return self._fail(e.kind, e.message)

        # The session may have changed while the request was in flight
        if self.subscription_id != subscription_id:
            return OperationResult.success("Subscription changed during refresh", value=None)

        self._details = details
        return OperationResult.success(value=details)
