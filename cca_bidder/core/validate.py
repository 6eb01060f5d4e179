"""
Preflight Validator - reject a bid plan before touching the chain.

Checks every planned bid against the loaded auction parameters:
1. Amount is positive
2. Price does not exceed the auction's maximum bid price
3. Price sits on the tick grid (anchored at the floor price)
4. The running total of amounts, starting from what the signer already
   purchased, never exceeds the purchase limit

The first failing check aborts validation; no registry is built from a
partially valid plan. The eligibility (soulbound token) check is only
run when explicitly enabled.
"""

from typing import List, Sequence, Tuple

from cca_bidder.core.auction import AuctionParams
from cca_bidder.core.config import BidParams
from cca_bidder.utils.logger import get_logger

logger = get_logger("preflight")


class PreflightError(ValueError):
    """The bid plan is not valid for this auction."""


class PreflightValidator:
    """Validates an ordered batch of bids against auction parameters."""

    def __init__(
        self,
        params: AuctionParams,
        bids: Sequence[BidParams],
        require_eligibility: bool = False,
    ):
        """
        Args:
            params: Auction snapshot
            bids: Planned bids, in submission order
            require_eligibility: Also require the signer to hold the soulbound token
        """
        self.params = params
        self.bids: List[BidParams] = list(bids)
        self.require_eligibility = require_eligibility

    @staticmethod
    def _label(index: int, bid: BidParams) -> str:
        return f"bid #{index} (owner {bid.owner})"

    def run(self) -> Tuple[bool, str]:
        """
        Run all checks.

        Returns:
            (is_valid, error_message)
        """
        if self.require_eligibility:
            valid, err = self.ensure_eligible()
            if not valid:
                return False, err

        running_total = self.params.total_purchased
        for index, bid in enumerate(self.bids, start=1):
            for check in (
                self._check_amount_positive,
                self._check_price_within_cap,
                self._check_tick_aligned,
            ):
                valid, err = check(index, bid)
                if not valid:
                    return False, err

            running_total += bid.amount
            valid, err = self._check_allocation(index, bid, running_total)
            if not valid:
                return False, err

        logger.info(f"Preflight passed for {len(self.bids)} bid(s)")
        return True, ""

    def ensure(self) -> None:
        """Run all checks, raising PreflightError on the first failure."""
        valid, err = self.run()
        if not valid:
            logger.error(f"Preflight failed: {err}")
            raise PreflightError(err)

    # =========================================================================
    # Checks
    # =========================================================================

    def _check_amount_positive(self, index: int, bid: BidParams) -> Tuple[bool, str]:
        if bid.amount <= 0:
            return False, f"{self._label(index, bid)}: amount must be greater than zero"
        return True, ""

    def _check_price_within_cap(self, index: int, bid: BidParams) -> Tuple[bool, str]:
        if bid.max_bid > self.params.max_bid_price:
            return False, (
                f"{self._label(index, bid)}: max bid {bid.max_bid} exceeds "
                f"auction cap {self.params.max_bid_price}"
            )
        return True, ""

    def _check_tick_aligned(self, index: int, bid: BidParams) -> Tuple[bool, str]:
        if bid.max_bid < self.params.floor_price:
            return False, (
                f"{self._label(index, bid)}: max bid {bid.max_bid} is below "
                f"floor price {self.params.floor_price}"
            )
        if not self.params.is_tick_aligned(bid.max_bid):
            return False, (
                f"{self._label(index, bid)}: max bid {bid.max_bid} is not aligned to "
                f"tick spacing {self.params.tick_spacing} from floor {self.params.floor_price}"
            )
        return True, ""

    def _check_allocation(self, index: int, bid: BidParams, running_total: int) -> Tuple[bool, str]:
        cap = self.params.max_purchase_limit
        if running_total > cap:
            return False, (
                f"{self._label(index, bid)}: cumulative amount {running_total} "
                f"exceeds purchase limit {cap} "
                f"(already purchased {self.params.total_purchased})"
            )
        return True, ""

    def ensure_eligible(self) -> Tuple[bool, str]:
        """Signer must hold the soulbound eligibility token."""
        if not self.params.has_any_token:
            return False, "sender ineligible: missing required soulbound token"
        return True, ""


__all__ = [
    "PreflightValidator",
    "PreflightError",
]
