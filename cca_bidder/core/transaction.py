"""
Transaction Pipeline - turn a tracked bid into a confirmed submitBid.

Each attempt runs four steps, any of which may fail on its own:
1. Prepare  - align the price and resolve the insertion point
2. Build    - submitBid request with value, fees and access list
3. Simulate - dry-run against current state to catch reverts
4. Send     - broadcast and wait for the receipt

Nothing is carried between attempts except the tracked bid's retry
bookkeeping; the insertion point is always recomputed.
"""

from dataclasses import dataclass, field, replace
from enum import IntEnum
from typing import List, Optional

from cca_bidder.chain.provider import ChainProvider, ContractCall, TxRequest
from cca_bidder.core.auction import (
    AuctionClient,
    AuctionParams,
    InsertionPointError,
    SubmitBidParams,
)
from cca_bidder.core.config import BotSettings
from cca_bidder.core.registry import TrackedBid
from cca_bidder.utils.logger import get_logger

logger = get_logger("pipeline")


# =============================================================================
# Transaction Configuration
# =============================================================================


class AccessListMode(IntEnum):
    """How a bid transaction declares the storage it touches."""
    NONE = 0        # No access list
    PROVIDED = 1    # Caller-supplied list
    GENERATE = 2    # Dry-run to generate one per attempt


@dataclass(frozen=True)
class FeeOverrides:
    """EIP-1559 fee caps, in wei."""
    max_fee_per_gas: int
    max_priority_fee_per_gas: int

    def __post_init__(self):
        if self.max_priority_fee_per_gas > self.max_fee_per_gas:
            raise ValueError("max_priority_fee_per_gas cannot exceed max_fee_per_gas")


@dataclass(frozen=True)
class TxConfig:
    """Optional fee and access-list settings applied to every bid."""
    fees: Optional[FeeOverrides] = None
    access_list_mode: AccessListMode = AccessListMode.NONE
    access_list: List[dict] = field(default_factory=list)

    @classmethod
    def from_settings(cls, settings: BotSettings) -> "TxConfig":
        config = cls()
        if settings.max_fee_per_gas is not None:
            config = config.with_fee_overrides(
                settings.max_fee_per_gas, settings.max_priority_fee_per_gas
            )
        if settings.generate_access_list:
            config = config.generate_access_list()
        return config

    def with_fee_overrides(self, max_fee_per_gas: int, max_priority_fee_per_gas: int) -> "TxConfig":
        return replace(self, fees=FeeOverrides(max_fee_per_gas, max_priority_fee_per_gas))

    def generate_access_list(self) -> "TxConfig":
        return replace(self, access_list_mode=AccessListMode.GENERATE, access_list=[])

    def provided_access_list(self, access_list: List[dict]) -> "TxConfig":
        return replace(self, access_list_mode=AccessListMode.PROVIDED, access_list=list(access_list))


# =============================================================================
# Builder
# =============================================================================


class TxBuilder:
    """Builds submitBid transaction requests."""

    def __init__(
        self,
        provider: ChainProvider,
        sender: str,
        cca_address: str,
        config: Optional[TxConfig] = None,
    ):
        self.provider = provider
        self.sender = sender
        self.cca_address = cca_address
        self.config = config or TxConfig()

    def submit_bid_call(self, bid: SubmitBidParams) -> ContractCall:
        return ContractCall(
            "CCA",
            self.cca_address,
            "submitBid",
            (bid.max_price, bid.amount, bid.owner, bid.prev_tick_price, b""),
        )

    async def build_submit_bid_request(self, bid: SubmitBidParams) -> TxRequest:
        """Base request carrying the bid amount as value, with config applied."""
        tx = TxRequest(
            sender=self.sender,
            call=self.submit_bid_call(bid),
            value=bid.amount,
        )
        return await self.apply_config(tx)

    async def apply_config(self, tx: TxRequest) -> TxRequest:
        cfg = self.config
        if cfg.fees is not None:
            tx = tx.with_fees(cfg.fees.max_fee_per_gas, cfg.fees.max_priority_fee_per_gas)

        if cfg.access_list_mode == AccessListMode.PROVIDED:
            tx = tx.with_access_list(cfg.access_list)
        elif cfg.access_list_mode == AccessListMode.GENERATE:
            tx = tx.with_access_list(await self.provider.create_access_list(tx))
        return tx


# =============================================================================
# Pipeline
# =============================================================================


class PipelineStep(IntEnum):
    """Steps of one submission attempt."""
    PREPARE = 0
    BUILD = 1
    SIMULATE = 2
    SEND = 3


@dataclass(frozen=True)
class SubmitResult:
    """
    Outcome of one submission attempt.

    Attributes:
        tx_hash: Confirmed hash on success
        error: Failure message otherwise
        step: Step that failed
        retryable: False when retrying cannot help (bad insertion point)
    """
    tx_hash: Optional[str] = None
    error: str = ""
    step: Optional[PipelineStep] = None
    retryable: bool = True

    @property
    def ok(self) -> bool:
        return self.tx_hash is not None


class TransactionPipeline:
    """Runs prepare -> build -> simulate -> send for one bid at a time."""

    def __init__(
        self,
        auction: AuctionClient,
        params: AuctionParams,
        builder: TxBuilder,
    ):
        self.auction = auction
        self.params = params
        self.builder = builder
        self.provider = auction.provider

    async def prepare(self, tracked: TrackedBid) -> SubmitBidParams:
        return await self.auction.prepare_submit_bid(tracked.bid_params, self.params)

    async def build(self, submit: SubmitBidParams) -> TxRequest:
        return await self.builder.build_submit_bid_request(submit)

    async def simulate(self, tx: TxRequest) -> None:
        await self.provider.call(tx)

    async def send(self, tx: TxRequest) -> str:
        tx_hash = await self.provider.send_transaction(tx)
        receipt = await self.provider.wait_for_receipt(tx_hash)
        logger.info(f"Bid confirmed in block {receipt.block_number}: {receipt.tx_hash}")
        return receipt.tx_hash

    async def submit(self, tracked: TrackedBid) -> SubmitResult:
        """
        Run one attempt for a tracked bid.

        Errors are returned, not raised, so one bid's failure never stops
        the others in the same block.
        """
        owner = tracked.bid_params.owner
        attempt = tracked.attempts + 1
        step = PipelineStep.PREPARE
        try:
            submit = await self.prepare(tracked)
            logger.debug(
                f"[{owner} #{attempt}] prepared price={submit.max_price} "
                f"prev_tick={submit.prev_tick_price}"
            )

            step = PipelineStep.BUILD
            tx = await self.build(submit)
            logger.debug(f"[{owner} #{attempt}] built transaction request")

            step = PipelineStep.SIMULATE
            await self.simulate(tx)
            logger.debug(f"[{owner} #{attempt}] simulation succeeded")

            step = PipelineStep.SEND
            tx_hash = await self.send(tx)
        except InsertionPointError as e:
            return SubmitResult(error=f"{step.name.lower()} failed: {e}", step=step, retryable=False)
        except Exception as e:
            return SubmitResult(error=f"{step.name.lower()} failed: {e}", step=step)

        return SubmitResult(tx_hash=tx_hash)


__all__ = [
    "AccessListMode",
    "FeeOverrides",
    "TxConfig",
    "TxBuilder",
    "PipelineStep",
    "SubmitResult",
    "TransactionPipeline",
]
