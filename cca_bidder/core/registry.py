"""
Bid Registry - lifecycle bookkeeping for every planned bid.

Each TrackedBid owns one bid's mutable state:
- PENDING until it is confirmed on chain or runs out of attempts
- SUBMITTED with the confirmed transaction hash
- FAILED with the error that exhausted it

SUBMITTED and FAILED are terminal. The registry is built once, never
grows or shrinks, and keeps submission order.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from cca_bidder.core.auction import AuctionParams, AuctionWindow
from cca_bidder.core.config import DEFAULT_MAX_RETRIES, BidParams
from cca_bidder.utils.logger import get_logger

logger = get_logger("registry")


# =============================================================================
# Enums
# =============================================================================


class BidStatus(IntEnum):
    """Lifecycle state of a tracked bid."""
    PENDING = 0     # Waiting for a successful submission
    SUBMITTED = 1   # Confirmed on chain
    FAILED = 2      # Gave up

    @property
    def is_terminal(self) -> bool:
        return self != BidStatus.PENDING


@dataclass(frozen=True)
class RetryStatus:
    """Result of recording a failed attempt."""
    attempts: int
    exhausted: bool

    @property
    def retrying(self) -> bool:
        return not self.exhausted


# =============================================================================
# Tracked Bid
# =============================================================================


@dataclass
class TrackedBid:
    """
    One bid and its lifecycle.

    Attributes:
        bid_params: Immutable bid definition
        max_retries: Attempts allowed before the bid fails for good
        status: Current lifecycle state
        attempts: Failed attempts so far
        last_error: Most recent failure message
        tx_hash: Confirmed transaction (SUBMITTED only)
        error: Final error (FAILED only)
    """
    bid_params: BidParams
    max_retries: int = DEFAULT_MAX_RETRIES
    status: BidStatus = BidStatus.PENDING
    attempts: int = 0
    last_error: Optional[str] = None
    tx_hash: Optional[str] = None
    error: Optional[str] = None

    def __post_init__(self):
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {self.max_retries}")

    @property
    def is_pending(self) -> bool:
        return self.status == BidStatus.PENDING

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def record_failure(self, error: str) -> RetryStatus:
        """
        Record a failed attempt.

        The bid fails for good once attempts reach max_retries. A bid
        that is already terminal is left untouched.

        Returns:
            RetryStatus with the attempt count and whether retries are exhausted
        """
        if self.is_terminal:
            logger.warning(f"Ignoring failure for {self.status.name.lower()} bid of {self.bid_params.owner}")
            return RetryStatus(attempts=self.attempts, exhausted=True)

        self.attempts += 1
        self.last_error = error
        if self.attempts >= self.max_retries:
            self.status = BidStatus.FAILED
            self.error = error
            return RetryStatus(attempts=self.attempts, exhausted=True)

        return RetryStatus(attempts=self.attempts, exhausted=False)

    def mark_submitted(self, tx_hash: str) -> bool:
        """Move to SUBMITTED. Returns False if the bid was already terminal."""
        if self.is_terminal:
            logger.warning(f"Ignoring submission for {self.status.name.lower()} bid of {self.bid_params.owner}")
            return False
        self.status = BidStatus.SUBMITTED
        self.tx_hash = tx_hash
        self.last_error = None
        return True

    def mark_failed(self, error: str) -> bool:
        """Fail immediately without spending the remaining retries."""
        if self.is_terminal:
            logger.warning(f"Ignoring failure for {self.status.name.lower()} bid of {self.bid_params.owner}")
            return False
        self.attempts += 1
        self.status = BidStatus.FAILED
        self.error = error
        self.last_error = error
        return True

    def outcome(self) -> "BidOutcome":
        return BidOutcome(
            owner=self.bid_params.owner,
            amount=self.bid_params.amount,
            max_bid=self.bid_params.max_bid,
            status=self.status,
            attempts=self.attempts,
            max_retries=self.max_retries,
            tx_hash=self.tx_hash,
            error=self.error,
            last_error=self.last_error,
        )


# =============================================================================
# Summaries
# =============================================================================


@dataclass(frozen=True)
class BidOutcome:
    """Read-only view of one bid for reporting."""
    owner: str
    amount: int
    max_bid: int
    status: BidStatus
    attempts: int
    max_retries: int
    tx_hash: Optional[str] = None
    error: Optional[str] = None
    last_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "owner": self.owner,
            "amount": str(self.amount),
            "max_bid": str(self.max_bid),
            "status": self.status.name.lower(),
        }
        if self.status == BidStatus.SUBMITTED:
            data["tx_hash"] = self.tx_hash
        elif self.status == BidStatus.FAILED:
            data["error"] = self.error
            data["attempts"] = self.attempts
        else:
            data["attempts"] = self.attempts
            data["max_retries"] = self.max_retries
            data["last_error"] = self.last_error
        return data


@dataclass(frozen=True)
class BidSummary:
    """Counts and per-bid outcomes at one point in time."""
    submitted: int
    failed: int
    pending: int
    outcomes: List[BidOutcome] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.submitted + self.failed + self.pending

    def to_dict(self) -> Dict[str, Any]:
        return {
            "submitted": self.submitted,
            "failed": self.failed,
            "pending": self.pending,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


# =============================================================================
# Bid Registry
# =============================================================================


class BidRegistry:
    """
    Fixed, ordered collection of tracked bids plus the auction window.
    """

    def __init__(
        self,
        window: AuctionWindow,
        bids: Sequence[BidParams],
        max_retries: int = DEFAULT_MAX_RETRIES,
    ):
        """
        Args:
            window: Block boundaries of the auction
            bids: Planned bids, in submission order
            max_retries: Attempts allowed per bid
        """
        self._window = window
        self._bids: Tuple[TrackedBid, ...] = tuple(
            TrackedBid(bid_params=bid, max_retries=max_retries) for bid in bids
        )
        logger.info(
            f"BidRegistry initialized with {len(self._bids)} bid(s), max_retries={max_retries}"
        )

    @classmethod
    def from_params(
        cls,
        params: AuctionParams,
        bids: Sequence[BidParams],
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> "BidRegistry":
        return cls(params.window(), bids, max_retries)

    @property
    def window(self) -> AuctionWindow:
        return self._window

    @property
    def bids(self) -> Tuple[TrackedBid, ...]:
        """Tracked bids in submission order. The collection itself is fixed."""
        return self._bids

    def __len__(self) -> int:
        return len(self._bids)

    def __iter__(self) -> Iterator[TrackedBid]:
        return iter(self._bids)

    def pending_bids(self) -> List[TrackedBid]:
        """Non-terminal bids, in registry order."""
        return [b for b in self._bids if b.is_pending]

    def all_done(self) -> bool:
        """True iff every bid is terminal."""
        return all(b.is_terminal for b in self._bids)

    def has_pending(self) -> bool:
        return not self.all_done()

    def summary(self) -> BidSummary:
        """Project the current state without mutating it."""
        outcomes = [b.outcome() for b in self._bids]
        return BidSummary(
            submitted=sum(1 for o in outcomes if o.status == BidStatus.SUBMITTED),
            failed=sum(1 for o in outcomes if o.status == BidStatus.FAILED),
            pending=sum(1 for o in outcomes if o.status == BidStatus.PENDING),
            outcomes=outcomes,
        )


__all__ = [
    "BidStatus",
    "RetryStatus",
    "TrackedBid",
    "BidOutcome",
    "BidSummary",
    "BidRegistry",
]
