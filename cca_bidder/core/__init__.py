"""
CCA Bidder core.

This package provides the bid lifecycle:
- Tick alignment and auction reads
- Preflight validation of the bid plan
- Submission pipeline and per-bid retry tracking
- Phase tracking and the block-driven engine
"""

from cca_bidder.core.ticks import (
    align_price_to_tick,
    align_to_params,
    is_tick_aligned,
)

from cca_bidder.core.config import (
    BidParams,
    BotSettings,
    ConfigError,
    load_config,
    DEFAULT_MAX_RETRIES,
)

from cca_bidder.core.auction import (
    AuctionClient,
    AuctionParams,
    AuctionWindow,
    InsertionPointError,
    SubmitBidParams,
    Tick,
)

from cca_bidder.core.validate import PreflightError, PreflightValidator

from cca_bidder.core.registry import (
    BidOutcome,
    BidRegistry,
    BidStatus,
    BidSummary,
    RetryStatus,
    TrackedBid,
)

from cca_bidder.core.transaction import (
    AccessListMode,
    FeeOverrides,
    PipelineStep,
    SubmitResult,
    TransactionPipeline,
    TxBuilder,
    TxConfig,
)

from cca_bidder.core.phases import (
    Phase,
    PhaseTracker,
    SettlementHandler,
    UnimplementedSettlement,
)

from cca_bidder.core.engine import (
    AuctionBot,
    BlockConsumer,
    Completion,
    ShutdownReason,
)

__all__ = [
    # Ticks
    "align_price_to_tick",
    "align_to_params",
    "is_tick_aligned",
    # Config
    "BidParams",
    "BotSettings",
    "ConfigError",
    "load_config",
    "DEFAULT_MAX_RETRIES",
    # Auction
    "AuctionClient",
    "AuctionParams",
    "AuctionWindow",
    "InsertionPointError",
    "SubmitBidParams",
    "Tick",
    # Preflight
    "PreflightError",
    "PreflightValidator",
    # Registry
    "BidOutcome",
    "BidRegistry",
    "BidStatus",
    "BidSummary",
    "RetryStatus",
    "TrackedBid",
    # Pipeline
    "AccessListMode",
    "FeeOverrides",
    "PipelineStep",
    "SubmitResult",
    "TransactionPipeline",
    "TxBuilder",
    "TxConfig",
    # Phases
    "Phase",
    "PhaseTracker",
    "SettlementHandler",
    "UnimplementedSettlement",
    # Engine
    "AuctionBot",
    "BlockConsumer",
    "Completion",
    "ShutdownReason",
]
