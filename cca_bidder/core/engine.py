"""
Bid Engine - block-driven driver of the bid lifecycle.

The BlockConsumer receives one block header at a time and:
- Ignores blocks before the contributor period ends
- Submits every pending bid, in registry order, during SUBMIT
- Waits for the auction's end block, then runs settlement
- Produces a Completion once DONE (and returns it again afterwards)

Several phases may complete within one block; the consumer loops over
the phase handlers until the phase stops changing.

AuctionBot wires the consumer to a block source, turns the end or
failure of that source, or a failure while processing a block, into a
Completion, and always reports the summary.
"""

from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import AsyncIterator, Callable, Optional

from cca_bidder.chain.provider import BlockHeader, ChainProvider
from cca_bidder.core.auction import AuctionClient
from cca_bidder.core.config import BotSettings
from cca_bidder.core.phases import Phase, PhaseTracker, SettlementHandler, UnimplementedSettlement
from cca_bidder.core.registry import BidRegistry, BidSummary, TrackedBid
from cca_bidder.core.report import log_summary, persist_summary
from cca_bidder.core.transaction import TransactionPipeline, TxBuilder, TxConfig
from cca_bidder.core.validate import PreflightValidator
from cca_bidder.utils.logger import block_context, get_logger

logger = get_logger("engine")


# =============================================================================
# Completion
# =============================================================================


class ShutdownReason(IntEnum):
    """Why the engine stopped."""
    ALL_BIDS_PROCESSED = 0
    AUCTION_ENDED_WITH_PENDING = 1
    BLOCK_STREAM_ENDED = 2
    BLOCK_STREAM_ENDED_WITH_PENDING = 3
    BLOCK_STREAM_ERROR = 4
    BLOCK_STREAM_ERROR_WITH_PENDING = 5
    ENGINE_ERROR = 6
    ENGINE_ERROR_WITH_PENDING = 7

    @property
    def has_pending(self) -> bool:
        """Bids were still pending, i.e. unresolved exposure remains."""
        return self in (
            ShutdownReason.AUCTION_ENDED_WITH_PENDING,
            ShutdownReason.BLOCK_STREAM_ENDED_WITH_PENDING,
            ShutdownReason.BLOCK_STREAM_ERROR_WITH_PENDING,
            ShutdownReason.ENGINE_ERROR_WITH_PENDING,
        )

    @property
    def is_abnormal(self) -> bool:
        return self >= ShutdownReason.BLOCK_STREAM_ENDED


@dataclass(frozen=True)
class Completion:
    """Final disposition of a run."""
    reason: ShutdownReason
    summary: BidSummary
    block_number: Optional[int] = None
    error: Optional[str] = None


# =============================================================================
# Block Consumer
# =============================================================================


class BlockConsumer:
    """
    Drives the phase tracker, registry, and pipeline from block headers.
    """

    def __init__(
        self,
        registry: BidRegistry,
        pipeline: TransactionPipeline,
        settlement: Optional[SettlementHandler] = None,
        wait_for_end_block: bool = True,
    ):
        """
        Args:
            registry: Bids to submit
            pipeline: Submission pipeline shared by all bids
            settlement: Post-auction hooks (defaults to no on-chain work)
            wait_for_end_block: Hold in AWAIT_END until the end block; when
                False, finish as soon as every bid is terminal
        """
        self.registry = registry
        self.pipeline = pipeline
        self.settlement = settlement or UnimplementedSettlement()
        self.wait_for_end_block = wait_for_end_block
        self.tracker = PhaseTracker(registry.window)
        self._completion: Optional[Completion] = None
        self._last_block: Optional[int] = None

        self._handlers = {
            Phase.SUBMIT: self._handle_submit,
            Phase.AWAIT_END: self._handle_await_end,
            Phase.EXIT: self._handle_exit,
            Phase.AWAIT_CLAIM: self._handle_await_claim,
            Phase.CLAIM: self._handle_claim,
        }

    @property
    def phase(self) -> Phase:
        return self.tracker.phase

    @property
    def completion(self) -> Optional[Completion]:
        return self._completion

    def has_pending_bids(self) -> bool:
        return self.registry.has_pending()

    def summary(self) -> BidSummary:
        return self.registry.summary()

    async def handle_block(self, header: BlockHeader) -> Optional[Completion]:
        """
        Process one block.

        Returns:
            None while the run continues, the Completion once DONE
        """
        if self._completion is not None:
            return self._completion

        self._last_block = header.number
        with block_context(header.number):
            return await self._process_block(header.number)

    async def _process_block(self, block_number: int) -> Optional[Completion]:
        if not self.tracker.is_open(block_number):
            logger.info(
                f"contributor track active until {self.tracker.contributor_period_end_block}"
            )
            return None

        while not self.tracker.is_done:
            before = self.tracker.phase
            await self._handlers[before](block_number)
            if self.tracker.phase == before:
                return None

        return self._finish(block_number)

    # =========================================================================
    # Phase Handlers
    # =========================================================================

    async def _handle_submit(self, block_number: int) -> None:
        if self.tracker.is_ended(block_number):
            logger.warning(
                f"auction window closed with {len(self.registry.pending_bids())} bid(s) pending"
            )
            self.tracker.advance(Phase.EXIT)
            return

        for tracked in self.registry.pending_bids():
            await self._submit_bid(tracked)

        if self.registry.all_done():
            logger.info("all bids processed")
            self.tracker.advance(Phase.AWAIT_END)

    async def _submit_bid(self, tracked: TrackedBid) -> None:
        bid = tracked.bid_params
        logger.info(
            f"submitting bid owner={bid.owner} amount={bid.amount} "
            f"attempt={tracked.attempts + 1}/{tracked.max_retries}"
        )

        result = await self.pipeline.submit(tracked)
        if result.ok:
            tracked.mark_submitted(result.tx_hash)
            logger.info(f"bid submitted owner={bid.owner} tx={result.tx_hash}")
            return

        if not result.retryable:
            tracked.mark_failed(result.error)
            logger.error(f"bid failed without retry owner={bid.owner}: {result.error}")
            return

        status = tracked.record_failure(result.error)
        if status.retrying:
            logger.warning(
                f"bid retry scheduled owner={bid.owner} "
                f"attempts={status.attempts}/{tracked.max_retries}: {result.error}"
            )
        else:
            logger.error(
                f"bid failed permanently owner={bid.owner} "
                f"attempts={status.attempts}/{tracked.max_retries}: {result.error}"
            )

    async def _handle_await_end(self, block_number: int) -> None:
        if self.tracker.is_ended(block_number):
            logger.info(f"end block {self.tracker.end_block} reached")
            self.tracker.advance(Phase.EXIT)
        elif not self.wait_for_end_block:
            self.tracker.advance(Phase.EXIT)
        else:
            logger.info(f"awaiting end block {self.tracker.end_block}")

    async def _handle_exit(self, block_number: int) -> None:
        if await self.settlement.exit_bids(block_number, self.registry):
            self.tracker.advance(Phase.AWAIT_CLAIM)

    async def _handle_await_claim(self, block_number: int) -> None:
        if await self.settlement.await_claim(block_number, self.registry):
            self.tracker.advance(Phase.CLAIM)

    async def _handle_claim(self, block_number: int) -> None:
        if await self.settlement.claim(block_number, self.registry):
            self.tracker.advance(Phase.DONE)

    # =========================================================================
    # Completion
    # =========================================================================

    def _finish(self, block_number: int) -> Completion:
        summary = self.registry.summary()
        reason = (
            ShutdownReason.ALL_BIDS_PROCESSED
            if summary.pending == 0
            else ShutdownReason.AUCTION_ENDED_WITH_PENDING
        )
        self._completion = Completion(reason=reason, summary=summary, block_number=block_number)
        return self._completion

    def stream_ended(self) -> Completion:
        """Completion for a block source that stopped before DONE."""
        if self._completion is not None:
            return self._completion
        reason = (
            ShutdownReason.BLOCK_STREAM_ENDED_WITH_PENDING
            if self.has_pending_bids()
            else ShutdownReason.BLOCK_STREAM_ENDED
        )
        return Completion(reason=reason, summary=self.summary(), block_number=self._last_block)

    def stream_failed(self, error: BaseException) -> Completion:
        """Completion for a block source that raised."""
        if self._completion is not None:
            return self._completion
        reason = (
            ShutdownReason.BLOCK_STREAM_ERROR_WITH_PENDING
            if self.has_pending_bids()
            else ShutdownReason.BLOCK_STREAM_ERROR
        )
        return Completion(
            reason=reason,
            summary=self.summary(),
            block_number=self._last_block,
            error=str(error),
        )

    def engine_failed(self, error: BaseException) -> Completion:
        """Completion for a block whose processing raised (e.g. a settlement hook)."""
        if self._completion is not None:
            return self._completion
        reason = (
            ShutdownReason.ENGINE_ERROR_WITH_PENDING
            if self.has_pending_bids()
            else ShutdownReason.ENGINE_ERROR
        )
        return Completion(
            reason=reason,
            summary=self.summary(),
            block_number=self._last_block,
            error=str(error),
        )


# =============================================================================
# Auction Bot
# =============================================================================


class AuctionBot:
    """
    Runs a BlockConsumer against a block source until it completes.
    """

    def __init__(
        self,
        consumer: BlockConsumer,
        block_source: Callable[[], AsyncIterator[BlockHeader]],
        summary_dir: Optional[Path] = None,
    ):
        """
        Args:
            consumer: Engine to drive
            block_source: Factory for the async stream of block headers
            summary_dir: Where to persist the final summary (None disables)
        """
        self.consumer = consumer
        self.block_source = block_source
        self.summary_dir = summary_dir

    @classmethod
    async def build(
        cls,
        provider: ChainProvider,
        settings: BotSettings,
        settlement: Optional[SettlementHandler] = None,
    ) -> "AuctionBot":
        """
        Load the auction, validate the bid plan, and assemble the engine.

        Raises:
            PreflightError: the bid plan is invalid for this auction
        """
        logger.info(f"Configuration loaded: {len(settings.bids)} bid(s)")
        auction = AuctionClient(
            provider,
            cca_address=settings.cca_address,
            hook_address=settings.hook_address,
            soulbound_address=settings.soulbound_address,
        )
        params = await auction.load_params(provider.signer_address)

        PreflightValidator(params, settings.bids, settings.require_eligibility).ensure()

        registry = BidRegistry.from_params(params, settings.bids, settings.max_retries)
        builder = TxBuilder(
            provider,
            sender=provider.signer_address,
            cca_address=settings.cca_address,
            config=TxConfig.from_settings(settings),
        )
        pipeline = TransactionPipeline(auction, params, builder)
        consumer = BlockConsumer(
            registry,
            pipeline,
            settlement=settlement,
            wait_for_end_block=settings.wait_for_end_block,
        )
        return cls(consumer, provider.blocks, summary_dir=settings.summary_dir)

    async def run(self) -> Completion:
        """
        Consume blocks until the engine completes or the source stops.

        Returns:
            The Completion, which has also been logged and persisted
        """
        stream = self.block_source().__aiter__()
        try:
            while True:
                try:
                    header = await stream.__anext__()
                except StopAsyncIteration:
                    logger.warning("Block stream ended unexpectedly")
                    completion = self.consumer.stream_ended()
                    break
                except Exception as e:
                    logger.error(f"Block stream terminated: {e}")
                    completion = self.consumer.stream_failed(e)
                    break

                try:
                    completion = await self.consumer.handle_block(header)
                except Exception as e:
                    logger.error(f"Block {header.number} processing failed: {e}")
                    completion = self.consumer.engine_failed(e)
                    break
                if completion is not None:
                    break
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

        self.record_summary(completion)
        return completion

    def record_summary(self, completion: Completion) -> Optional[Path]:
        log_summary(completion.summary, completion.reason, completion.error)
        if self.summary_dir is None:
            return None
        try:
            path = persist_summary(
                completion.summary, completion.reason, self.summary_dir, completion.error
            )
        except OSError as e:
            logger.warning(f"Failed to persist bid summary: {e}")
            return None
        logger.info(f"Bid summary persisted to {path}")
        return path


__all__ = [
    "ShutdownReason",
    "Completion",
    "BlockConsumer",
    "AuctionBot",
]
