"""
Tests for the bid registry.

Tests cover:
1. Retry bookkeeping on TrackedBid
2. Terminal states never change
3. Registry ordering and summary arithmetic
"""

import pytest

from cca_bidder.core.auction import AuctionParams, AuctionWindow
from cca_bidder.core.config import BidParams
from cca_bidder.core.registry import BidRegistry, BidStatus, TrackedBid

OWNER = "0x" + "11" * 20
WINDOW = AuctionWindow(contributor_period_end_block=100, end_block=110)


def make_bid(amount=10, max_bid=1500):
    return BidParams(max_bid=max_bid, amount=amount, owner=OWNER)


class TestTrackedBidRetries:
    """Tests for failure accounting."""

    def test_failure_below_limit_keeps_pending(self):
        tracked = TrackedBid(make_bid(), max_retries=3)

        status = tracked.record_failure("boom")

        assert status.retrying
        assert status.attempts == 1
        assert tracked.is_pending
        assert tracked.last_error == "boom"

    def test_failure_at_limit_exhausts(self):
        tracked = TrackedBid(make_bid(), max_retries=3)

        tracked.record_failure("one")
        tracked.record_failure("two")
        status = tracked.record_failure("three")

        assert status.exhausted
        assert status.attempts == 3
        assert tracked.status == BidStatus.FAILED
        assert tracked.error == "three"

    def test_single_attempt_policy(self):
        tracked = TrackedBid(make_bid(), max_retries=1)

        assert tracked.record_failure("boom").exhausted
        assert tracked.is_terminal

    def test_invalid_max_retries(self):
        with pytest.raises(ValueError):
            TrackedBid(make_bid(), max_retries=0)

    def test_mark_failed_is_immediate(self):
        tracked = TrackedBid(make_bid(), max_retries=5)

        assert tracked.mark_failed("bad insertion point")

        assert tracked.status == BidStatus.FAILED
        assert tracked.attempts == 1
        assert tracked.error == "bad insertion point"


class TestTerminalStates:
    """Tests that SUBMITTED and FAILED are final."""

    def test_submitted_ignores_later_updates(self):
        tracked = TrackedBid(make_bid())
        tracked.mark_submitted("0xabc")

        status = tracked.record_failure("late failure")

        assert status.exhausted
        assert tracked.status == BidStatus.SUBMITTED
        assert tracked.tx_hash == "0xabc"
        assert tracked.attempts == 0
        assert not tracked.mark_failed("late")
        assert not tracked.mark_submitted("0xdef")
        assert tracked.tx_hash == "0xabc"

    def test_failed_ignores_later_updates(self):
        tracked = TrackedBid(make_bid(), max_retries=1)
        tracked.record_failure("boom")

        assert not tracked.mark_submitted("0xabc")
        tracked.record_failure("again")

        assert tracked.status == BidStatus.FAILED
        assert tracked.attempts == 1
        assert tracked.tx_hash is None

    def test_status_terminal_property(self):
        assert not BidStatus.PENDING.is_terminal
        assert BidStatus.SUBMITTED.is_terminal
        assert BidStatus.FAILED.is_terminal


class TestBidRegistry:
    """Tests for the registry collection."""

    def test_preserves_order(self):
        bids = [make_bid(amount=n) for n in (1, 2, 3)]
        registry = BidRegistry(WINDOW, bids)

        assert [t.bid_params.amount for t in registry] == [1, 2, 3]
        assert len(registry) == 3

    def test_collection_is_fixed(self):
        """Callers can update tracked bids but not add or remove them."""
        registry = BidRegistry(WINDOW, [make_bid(), make_bid()])

        with pytest.raises(AttributeError):
            registry.bids.append(TrackedBid(make_bid()))
        with pytest.raises(TypeError):
            del registry.bids[0]

        assert isinstance(registry.bids, tuple)
        assert len(registry) == 2

    def test_pending_bids_skip_terminal(self):
        registry = BidRegistry(WINDOW, [make_bid(amount=n) for n in (1, 2, 3)])
        registry.bids[1].mark_submitted("0x1")

        assert [t.bid_params.amount for t in registry.pending_bids()] == [1, 3]

    def test_all_done(self):
        registry = BidRegistry(WINDOW, [make_bid(), make_bid()], max_retries=1)
        assert registry.has_pending()

        registry.bids[0].mark_submitted("0x1")
        assert not registry.all_done()

        registry.bids[1].record_failure("boom")
        assert registry.all_done()
        assert not registry.has_pending()

    def test_summary_counts_sum_to_size(self):
        registry = BidRegistry(WINDOW, [make_bid() for _ in range(4)], max_retries=2)
        registry.bids[0].mark_submitted("0x1")
        registry.bids[1].mark_failed("boom")
        registry.bids[2].record_failure("transient")

        summary = registry.summary()

        assert (summary.submitted, summary.failed, summary.pending) == (1, 1, 2)
        assert summary.total == len(registry)

    def test_summary_does_not_mutate(self):
        registry = BidRegistry(WINDOW, [make_bid()])

        registry.summary()
        registry.summary()

        assert registry.bids[0].attempts == 0
        assert registry.bids[0].is_pending

    def test_summary_outcomes(self):
        registry = BidRegistry(WINDOW, [make_bid(), make_bid(), make_bid()], max_retries=3)
        registry.bids[0].mark_submitted("0x1")
        registry.bids[1].mark_failed("reverted")
        registry.bids[2].record_failure("timeout")

        outcomes = [o.to_dict() for o in registry.summary().outcomes]

        assert outcomes[0]["status"] == "submitted"
        assert outcomes[0]["tx_hash"] == "0x1"
        assert outcomes[1]["status"] == "failed"
        assert outcomes[1]["error"] == "reverted"
        assert outcomes[2]["status"] == "pending"
        assert outcomes[2]["attempts"] == 1
        assert outcomes[2]["max_retries"] == 3
        assert outcomes[2]["last_error"] == "timeout"

    def test_from_params(self):
        params = AuctionParams(
            contributor_period_end_block=100,
            end_block=110,
            floor_price=1000,
            tick_spacing=100,
            max_bid_price=10_000,
            total_purchased=0,
            max_purchase_limit=10**18,
            has_any_token=True,
        )

        registry = BidRegistry.from_params(params, [make_bid()], max_retries=2)

        assert registry.window == WINDOW
        assert registry.bids[0].max_retries == 2
