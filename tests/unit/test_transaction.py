"""
Tests for the transaction pipeline.

Tests cover:
1. Successful submission and the submitBid request shape
2. Fee overrides and access-list modes
3. Failures attributed to the failing step
4. Non-retryable insertion point errors
"""

import asyncio

import pytest

from cca_bidder.chain.fake import InMemoryChain
from cca_bidder.core.auction import AuctionClient, InsertionPointError
from cca_bidder.core.config import BidParams, BotSettings
from cca_bidder.core.registry import TrackedBid
from cca_bidder.core.transaction import (
    AccessListMode,
    FeeOverrides,
    PipelineStep,
    TransactionPipeline,
    TxBuilder,
    TxConfig,
)

CCA = "0x" + "cc" * 20
HOOK = "0x" + "dd" * 20
SOULBOUND = "0x" + "ee" * 20
OWNER = "0x" + "11" * 20
PRIVATE_KEY = "0x" + "42" * 32


def make_pipeline(chain, config=None, client_cls=AuctionClient):
    auction = client_cls(chain, CCA, HOOK, SOULBOUND)
    params = asyncio.run(auction.load_params(chain.signer_address))
    builder = TxBuilder(chain, chain.signer_address, CCA, config)
    return TransactionPipeline(auction, params, builder)


def tracked_bid(max_bid=1500, amount=25):
    return TrackedBid(BidParams(max_bid=max_bid, amount=amount, owner=OWNER))


@pytest.fixture
def chain():
    return InMemoryChain()


class TestSubmitSuccess:
    """Tests for the happy path."""

    def test_returns_confirmed_hash(self, chain):
        pipeline = make_pipeline(chain)

        result = asyncio.run(pipeline.submit(tracked_bid()))

        assert result.ok
        assert result.tx_hash == "0x" + format(1, "064x")
        assert result.error == ""
        assert chain.tick_prices() == [1000, 1500]

    def test_request_shape(self, chain):
        pipeline = make_pipeline(chain)

        asyncio.run(pipeline.submit(tracked_bid(max_bid=1551, amount=25)))

        tx = chain.sent[0]
        assert tx.to == CCA
        assert tx.sender == chain.signer_address
        assert tx.value == 25
        assert tx.call.function == "submitBid"
        assert tx.call.args == (1600, 25, OWNER, 1000, b"")
        assert tx.max_fee_per_gas is None
        assert tx.access_list is None

    def test_simulates_before_sending(self, chain):
        pipeline = make_pipeline(chain)

        asyncio.run(pipeline.submit(tracked_bid()))

        assert len(chain.simulations) == 1
        assert chain.simulations[0] == chain.sent[0]

    def test_does_not_touch_tracked_state(self, chain):
        pipeline = make_pipeline(chain)
        tracked = tracked_bid()

        asyncio.run(pipeline.submit(tracked))

        assert tracked.is_pending
        assert tracked.attempts == 0


class TestTxConfig:
    """Tests for fees and access lists."""

    def test_fee_overrides_applied(self, chain):
        pipeline = make_pipeline(chain, TxConfig().with_fee_overrides(50, 2))

        asyncio.run(pipeline.submit(tracked_bid()))

        assert chain.sent[0].max_fee_per_gas == 50
        assert chain.sent[0].max_priority_fee_per_gas == 2

    def test_priority_above_max_rejected(self):
        with pytest.raises(ValueError):
            FeeOverrides(max_fee_per_gas=1, max_priority_fee_per_gas=2)

    def test_generated_access_list(self, chain):
        pipeline = make_pipeline(chain, TxConfig().generate_access_list())

        asyncio.run(pipeline.submit(tracked_bid()))

        assert chain.sent[0].access_list == [
            {"address": CCA, "storageKeys": ["0x" + "00" * 31 + "01"]}
        ]

    def test_provided_access_list(self, chain):
        provided = [{"address": CCA, "storageKeys": []}]
        pipeline = make_pipeline(chain, TxConfig().provided_access_list(provided))

        asyncio.run(pipeline.submit(tracked_bid()))

        assert chain.sent[0].access_list == provided

    def test_from_settings(self):
        settings = BotSettings(
            rpc_url="http://localhost:8545",
            private_key=PRIVATE_KEY,
            bids=[BidParams(max_bid=1500, amount=1, owner=OWNER)],
            max_fee_per_gas=100,
            max_priority_fee_per_gas=3,
            generate_access_list=True,
        )

        config = TxConfig.from_settings(settings)

        assert config.fees == FeeOverrides(100, 3)
        assert config.access_list_mode == AccessListMode.GENERATE

    def test_from_default_settings(self):
        settings = BotSettings(
            rpc_url="http://localhost:8545",
            private_key=PRIVATE_KEY,
            bids=[BidParams(max_bid=1500, amount=1, owner=OWNER)],
        )

        config = TxConfig.from_settings(settings)

        assert config.fees is None
        assert config.access_list_mode == AccessListMode.NONE


class TestSubmitFailures:
    """Tests for step attribution of failures."""

    @pytest.mark.parametrize(
        "fail_step, config, expected",
        [
            ("read", None, PipelineStep.PREPARE),
            ("create_access_list", TxConfig().generate_access_list(), PipelineStep.BUILD),
            ("call", None, PipelineStep.SIMULATE),
            ("send_transaction", None, PipelineStep.SEND),
            ("wait_for_receipt", None, PipelineStep.SEND),
        ],
    )
    def test_failure_step(self, chain, fail_step, config, expected):
        pipeline = make_pipeline(chain, config)
        chain.fail_next(fail_step, error="node unavailable")

        result = asyncio.run(pipeline.submit(tracked_bid()))

        assert not result.ok
        assert result.step == expected
        assert result.retryable
        assert result.error.startswith(f"{expected.name.lower()} failed")
        assert "node unavailable" in result.error

    def test_simulation_failure_sends_nothing(self, chain):
        pipeline = make_pipeline(chain)
        chain.fail_next("call")

        asyncio.run(pipeline.submit(tracked_bid()))

        assert chain.sent == []

    def test_retry_after_transient_failure(self, chain):
        pipeline = make_pipeline(chain)
        chain.fail_next("send_transaction")

        first = asyncio.run(pipeline.submit(tracked_bid()))
        second = asyncio.run(pipeline.submit(tracked_bid()))

        assert not first.ok
        assert second.ok

    def test_insertion_point_error_not_retryable(self, chain):
        class BrokenListClient(AuctionClient):
            async def resolve_insertion_point(self, params, bid_price):
                raise InsertionPointError("bid price 1 is below floor price 1000")

        pipeline = make_pipeline(chain, client_cls=BrokenListClient)

        result = asyncio.run(pipeline.submit(tracked_bid()))

        assert not result.ok
        assert result.step == PipelineStep.PREPARE
        assert not result.retryable
        assert "below floor" in result.error
