"""
Tests for the phase tracker and the default settlement handler.
"""

import asyncio

from cca_bidder.core.auction import AuctionWindow
from cca_bidder.core.phases import Phase, PhaseTracker, UnimplementedSettlement
from cca_bidder.core.registry import BidRegistry

WINDOW = AuctionWindow(contributor_period_end_block=100, end_block=110)


class TestPhaseTracker:
    """Tests for monotonic phase transitions."""

    def test_starts_in_submit(self):
        tracker = PhaseTracker(WINDOW)

        assert tracker.phase == Phase.SUBMIT
        assert not tracker.is_done

    def test_advance_forward(self):
        tracker = PhaseTracker(WINDOW)

        assert tracker.advance(Phase.AWAIT_END)
        assert tracker.phase == Phase.AWAIT_END

    def test_advance_may_skip(self):
        """SUBMIT goes straight to EXIT when the auction ends first."""
        tracker = PhaseTracker(WINDOW)

        assert tracker.advance(Phase.EXIT)
        assert tracker.phase == Phase.EXIT

    def test_backward_request_ignored(self):
        tracker = PhaseTracker(WINDOW)
        tracker.advance(Phase.CLAIM)

        assert not tracker.advance(Phase.SUBMIT)
        assert tracker.phase == Phase.CLAIM

    def test_same_phase_is_noop(self):
        tracker = PhaseTracker(WINDOW)
        assert not tracker.advance(Phase.SUBMIT)

    def test_full_sequence_is_monotonic(self):
        tracker = PhaseTracker(WINDOW)
        seen = [tracker.phase]
        for phase in Phase:
            tracker.advance(phase)
            seen.append(tracker.phase)

        assert seen == sorted(seen)
        assert tracker.is_done

    def test_window_boundaries(self):
        tracker = PhaseTracker(WINDOW)

        assert not tracker.is_open(99)
        assert tracker.is_open(100)
        assert not tracker.is_ended(109)
        assert tracker.is_ended(110)
        assert tracker.is_ended(111)


class TestUnimplementedSettlement:
    """Tests for the default settlement handler."""

    def test_every_hook_completes(self):
        settlement = UnimplementedSettlement()
        registry = BidRegistry(WINDOW, [])

        async def run_all():
            return [
                await settlement.exit_bids(110, registry),
                await settlement.await_claim(110, registry),
                await settlement.claim(110, registry),
            ]

        assert asyncio.run(run_all()) == [True, True, True]
