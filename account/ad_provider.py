"""
Rewarded Ad Providers

Abstract capability interface for rewarded video ads. The reward ledger only
talks to this interface, so a real SDK bridge or a deterministic test double
can be swapped in without touching it.
"""

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from typing import Optional

from account.models import AdOutcome

logger = logging.getLogger(__name__)


class AdProvider(ABC):
    """Rewarded ad capability: load one ad, then show it"""

    @property
    @abstractmethod
    def is_loaded(self) -> bool:
        """Whether an ad is ready to be shown"""
        pass

    @abstractmethod
    async def load(self) -> bool:
        """Load an ad. Returns False if none could be loaded."""
        pass

    @abstractmethod
    async def show(self) -> AdOutcome:
        """Show the loaded ad and report what the user did"""
        pass

    async def is_available(self) -> bool:
        """Whether ads can be served at all right now"""
        return True


class SimulatedAdProvider(AdProvider):
    """
    Stand-in for the mobile ads SDK.

    Outcomes are random: 90% earned, 5% canceled, 5% failed. These odds are a
    placeholder and carry no business meaning.
    """

    EARN_PROBABILITY = 0.90
    CANCEL_PROBABILITY = 0.05

    def __init__(
        self,
        reward_amount: int = 2,
        load_delay: float = 1.0,
        show_delay: float = 3.0,
        rng: Optional[random.Random] = None,
    ):
        self.reward_amount = reward_amount
        self.load_delay = load_delay
        self.show_delay = show_delay
        self._rng = rng or random.Random()
        self._loaded = False

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    async def load(self) -> bool:
        await asyncio.sleep(self.load_delay)
        self._loaded = True
        logger.debug("Simulated rewarded ad loaded")
        return True

    async def show(self) -> AdOutcome:
        if not self._loaded:
            return AdOutcome.failed("No ad is loaded")

        await asyncio.sleep(self.show_delay)
        # An ad can only be shown once
        self._loaded = False

        roll = self._rng.random()
        if roll < self.EARN_PROBABILITY:
            return AdOutcome.earned(self.reward_amount)
        elif roll < self.EARN_PROBABILITY + self.CANCEL_PROBABILITY:
            return AdOutcome.canceled()
        return AdOutcome.failed("Failed to display ad")
