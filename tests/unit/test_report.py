"""
Tests for bid summary reporting.
"""

import json
import logging

from cca_bidder.core.auction import AuctionWindow
from cca_bidder.core.config import BidParams
from cca_bidder.core.engine import ShutdownReason
from cca_bidder.core.registry import BidRegistry
from cca_bidder.core.report import log_summary, persist_summary

OWNER = "0x" + "11" * 20


def make_summary():
    window = AuctionWindow(contributor_period_end_block=100, end_block=110)
    registry = BidRegistry(
        window,
        [BidParams(max_bid=1500, amount=n, owner=OWNER) for n in (1, 2, 3)],
        max_retries=3,
    )
    registry.bids[0].mark_submitted("0xabc")
    registry.bids[1].mark_failed("reverted")
    registry.bids[2].record_failure("timeout")
    return registry.summary()


class TestPersistSummary:
    """Tests for the JSON summary file."""

    def test_writes_json(self, tmp_path):
        path = persist_summary(make_summary(), ShutdownReason.AUCTION_ENDED_WITH_PENDING, tmp_path)

        data = json.loads(path.read_text())

        assert path.parent == tmp_path
        assert path.name.startswith("bid-summary-")
        assert data["reason"] == "AUCTION_ENDED_WITH_PENDING"
        assert (data["submitted"], data["failed"], data["pending"]) == (1, 1, 1)
        assert [o["status"] for o in data["outcomes"]] == ["submitted", "failed", "pending"]
        assert "timestamp" in data

    def test_creates_directory(self, tmp_path):
        target = tmp_path / "nested" / "summaries"

        path = persist_summary(make_summary(), ShutdownReason.ALL_BIDS_PROCESSED, target)

        assert path.exists()

    def test_amounts_are_strings(self, tmp_path):
        """Large integers survive JSON consumers that use doubles."""
        path = persist_summary(make_summary(), ShutdownReason.ALL_BIDS_PROCESSED, tmp_path)

        outcome = json.loads(path.read_text())["outcomes"][0]

        assert outcome["amount"] == "1"
        assert outcome["max_bid"] == "1500"

    def test_records_error(self, tmp_path):
        path = persist_summary(
            make_summary(), ShutdownReason.ENGINE_ERROR_WITH_PENDING, tmp_path, error="boom"
        )

        data = json.loads(path.read_text())

        assert data["reason"] == "ENGINE_ERROR_WITH_PENDING"
        assert data["error"] == "boom"

    def test_error_defaults_to_null(self, tmp_path):
        path = persist_summary(make_summary(), ShutdownReason.ALL_BIDS_PROCESSED, tmp_path)

        assert json.loads(path.read_text())["error"] is None


class TestLogSummary:
    """Tests for the shutdown log block."""

    def test_logs_each_outcome(self, caplog):
        with caplog.at_level(logging.INFO, logger="cca_bidder"):
            log_summary(make_summary(), ShutdownReason.AUCTION_ENDED_WITH_PENDING)

        text = caplog.text
        assert "AUCTION_ENDED_WITH_PENDING" in text
        assert "1 submitted, 1 failed, 1 pending" in text
        assert "SUBMITTED tx=0xabc" in text
        assert "FAILED after 1 attempt(s): reverted" in text
        assert "still pending" in text

    def test_logs_error(self, caplog):
        with caplog.at_level(logging.INFO, logger="cca_bidder"):
            log_summary(make_summary(), ShutdownReason.ENGINE_ERROR, error="settlement rpc down")

        assert "Shutdown error: settlement rpc down" in caplog.text
