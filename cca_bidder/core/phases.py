"""
Phase Tracker - monotonic auction phases for the bid engine.

SUBMIT -> AWAIT_END -> EXIT -> AWAIT_CLAIM -> CLAIM -> DONE

The tracker only ever moves forward. Post-auction settlement (exiting
the bid, waiting for and executing the claim) is delegated to a
SettlementHandler; the default handler does no on-chain work.
"""

from abc import ABC, abstractmethod
from enum import IntEnum

from cca_bidder.core.auction import AuctionWindow
from cca_bidder.core.registry import BidRegistry
from cca_bidder.utils.logger import get_logger

logger = get_logger("phases")


class Phase(IntEnum):
    """Engine phases, in the only order they can occur."""
    SUBMIT = 0
    AWAIT_END = 1
    EXIT = 2
    AWAIT_CLAIM = 3
    CLAIM = 4
    DONE = 5


class PhaseTracker:
    """Current phase plus the window boundaries that drive transitions."""

    def __init__(self, window: AuctionWindow):
        self._current = Phase.SUBMIT
        self.contributor_period_end_block = window.contributor_period_end_block
        self.end_block = window.end_block

    @property
    def phase(self) -> Phase:
        return self._current

    @property
    def is_done(self) -> bool:
        return self._current == Phase.DONE

    def is_open(self, block_number: int) -> bool:
        """The contributor period is over and this track may act."""
        return block_number >= self.contributor_period_end_block

    def is_ended(self, block_number: int) -> bool:
        return block_number >= self.end_block

    def advance(self, next_phase: Phase) -> bool:
        """
        Move forward to next_phase.

        Returns:
            True if the phase changed. Requests to stay or go back are ignored.
        """
        if next_phase <= self._current:
            if next_phase < self._current:
                logger.warning(
                    f"Refusing to move phase back from {self._current.name} to {next_phase.name}"
                )
            return False
        logger.info(f"Phase advanced: {self._current.name} -> {next_phase.name}")
        self._current = next_phase
        return True


# =============================================================================
# Settlement Extension Point
# =============================================================================


class SettlementHandler(ABC):
    """
    Post-auction work for the EXIT, AWAIT_CLAIM and CLAIM phases.

    Each hook returns True when its phase is complete. Returning False
    holds the engine in that phase until a later block.
    """

    @abstractmethod
    async def exit_bids(self, block_number: int, registry: BidRegistry) -> bool:
        """Exit submitted bids once the auction has ended."""

    @abstractmethod
    async def await_claim(self, block_number: int, registry: BidRegistry) -> bool:
        """Wait until tokens become claimable."""

    @abstractmethod
    async def claim(self, block_number: int, registry: BidRegistry) -> bool:
        """Claim purchased tokens."""


class UnimplementedSettlement(SettlementHandler):
    """Settlement is not implemented yet: every hook logs and completes."""

    async def exit_bids(self, block_number: int, registry: BidRegistry) -> bool:
        logger.info("exit phase not implemented yet")
        return True

    async def await_claim(self, block_number: int, registry: BidRegistry) -> bool:
        logger.info("await claim phase not implemented yet")
        return True

    async def claim(self, block_number: int, registry: BidRegistry) -> bool:
        logger.info("claim phase not implemented yet")
        return True


__all__ = [
    "Phase",
    "PhaseTracker",
    "SettlementHandler",
    "UnimplementedSettlement",
]
