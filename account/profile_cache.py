"""
Profile Cache - Read-through mirror of the server profile

The cached profile is never the system of record. It is refetched whenever
the identity changes and after every confirmed entitlement or subscription
mutation.

Ordering rules:
- Concurrent refresh() calls share one in-flight fetch, unless the cache was
  marked stale after that fetch was dispatched; then a new fetch is issued.
- A result dispatched before the currently applied one is dropped.
- Results that arrive after clear() (logout) are dropped.
"""

import asyncio
import logging
from typing import Callable, List, Optional

from account.errors import ErrorKind, GatewayError, OperationResult
from account.models import Profile

logger = logging.getLogger(__name__)

ProfileListener = Callable[[Optional[Profile]], None]


class ProfileCache:
    """Holds the current profile and coordinates refreshes"""

    def __init__(self, gateway):
        self._gateway = gateway
        self._profile: Optional[Profile] = None
        self._listeners: List[ProfileListener] = []

        # Identity epoch: bumped on clear() so late results can be discarded
        self._epoch = 0
        self._dispatch_seq = 0
        self._applied_seq = 0
        self._invalidated_seq = 0

        self._inflight: Optional[asyncio.Future] = None
        self._inflight_seq = 0
        self._inflight_epoch = 0

        self.stale = False
        self.last_error: Optional[str] = None

    @property
    def profile(self) -> Optional[Profile]:
        return self._profile

    @property
    def is_refreshing(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def add_listener(self, listener: ProfileListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ProfileListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def mark_stale(self) -> None:
        """Invalidate after a confirmed mutation; in-flight fetches can no longer be joined"""
        self.stale = True
        self._invalidated_seq = self._dispatch_seq

    async def refresh(self) -> OperationResult:
        """
        Fetch the profile from the gateway and apply it.

        Returns:
            OperationResult whose value is the applied Profile on success
        """
        task = self._inflight
        joinable = (
            task is not None
            and not task.done()
            and self._inflight_epoch == self._epoch
            and self._inflight_seq > self._invalidated_seq
        )
        if not joinable:
            self._dispatch_seq += 1
            self._inflight_seq = self._dispatch_seq
            self._inflight_epoch = self._epoch
            task = asyncio.ensure_future(self._fetch(self._inflight_seq, self._epoch))
            self._inflight = task

        # Shielded so a cancelled caller does not cancel the fetch for everyone else
        return await asyncio.shield(task)

    def clear(self) -> None:
        """Drop the profile immediately (identity became unset)"""
        self._epoch += 1
        self._inflight = None
        self.stale = False
        self.last_error = None
        if self._profile is not None:
            self._profile = None
            self._notify()

    async def _fetch(self, seq: int, epoch: int) -> OperationResult:
        try:
            profile = await self._gateway.get_profile()
        except GatewayError as e:
            if epoch == self._epoch:
                self.last_error = e.message
            logger.warning(f"Profile refresh failed: {e.message}")
            return OperationResult.from_gateway_error(e)

        if epoch != self._epoch:
            logger.debug("Discarding profile fetched for a previous session")
            return OperationResult.failure(
                ErrorKind.NOT_AUTHENTICATED, "Session ended before the profile refresh completed"
            )
        if seq < self._applied_seq:
            return OperationResult.success("A newer profile is already applied", value=self._profile)

        self._apply(profile, seq)
        return OperationResult.success(value=profile)

    def _apply(self, profile: Profile, seq: int) -> None:
        changed = profile != self._profile
        self._profile = profile
        self._applied_seq = seq
        self.last_error = None
        if seq > self._invalidated_seq:
            self.stale = False
        if changed:
            self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._profile)
            except Exception as e:
                logger.error(f"Profile listener failed: {e}")
