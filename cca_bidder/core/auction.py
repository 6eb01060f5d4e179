"""
Auction Client - read side of the continuous clearing auction.

Responsibilities:
- Load the auction parameters in a single batched read
- Resolve where a new bid belongs in the on-chain tick list

The auction keeps its active prices in an ascending singly linked list
of ticks starting at the floor price. A bid must name the tick right
below its own price (prev_tick_price) so the contract can insert it in
order. The list changes as other bidders submit, so the insertion point
is resolved again on every attempt.
"""

from dataclasses import dataclass
from typing import List, Tuple

from cca_bidder.chain.provider import ChainProvider, ContractCall
from cca_bidder.core.config import BidParams
from cca_bidder.core.ticks import align_to_params, is_tick_aligned
from cca_bidder.utils.logger import get_logger

logger = get_logger("auction")


class InsertionPointError(ValueError):
    """A bid price cannot be placed in the tick list (below the floor)."""


# =============================================================================
# Data Structures
# =============================================================================


@dataclass(frozen=True)
class AuctionWindow:
    """Block boundaries that gate the bid engine's phases."""
    contributor_period_end_block: int
    end_block: int


@dataclass(frozen=True)
class AuctionParams:
    """
    Immutable snapshot of the auction, loaded once at start-up.

    Attributes:
        contributor_period_end_block: First block open to this bidding track
        end_block: Block at which the auction stops accepting bids
        floor_price: Lowest valid price (anchor of the tick grid)
        tick_spacing: Distance between adjacent valid prices
        max_bid_price: Highest valid price
        total_purchased: Amount the signer has already committed
        max_purchase_limit: Per-address allocation cap
        has_any_token: Whether the signer holds the eligibility token
    """
    contributor_period_end_block: int
    end_block: int
    floor_price: int
    tick_spacing: int
    max_bid_price: int
    total_purchased: int
    max_purchase_limit: int
    has_any_token: bool

    def __post_init__(self):
        if self.tick_spacing <= 0:
            raise ValueError(f"tick_spacing must be positive, got {self.tick_spacing}")
        if self.floor_price > self.max_bid_price:
            raise ValueError(
                f"floor_price ({self.floor_price}) exceeds max_bid_price ({self.max_bid_price})"
            )

    def window(self) -> AuctionWindow:
        return AuctionWindow(
            contributor_period_end_block=self.contributor_period_end_block,
            end_block=self.end_block,
        )

    def is_tick_aligned(self, price: int) -> bool:
        return is_tick_aligned(price, self.floor_price, self.tick_spacing)

    def remaining_allocation(self) -> int:
        return max(self.max_purchase_limit - self.total_purchased, 0)


@dataclass(frozen=True)
class SubmitBidParams:
    """Arguments of one submitBid call, recomputed on every attempt."""
    max_price: int
    amount: int
    owner: str
    prev_tick_price: int


@dataclass(frozen=True)
class Tick:
    """One node of the on-chain tick list."""
    price: int
    next: int
    currency_demand_q96: int = 0


# =============================================================================
# Auction Client
# =============================================================================


class AuctionClient:
    """
    Thin client over the auction contracts.

    Contract addresses are injected so tests and other deployments can
    supply their own.
    """

    def __init__(
        self,
        provider: ChainProvider,
        cca_address: str,
        hook_address: str,
        soulbound_address: str,
    ):
        self.provider = provider
        self.cca_address = cca_address
        self.hook_address = hook_address
        self.soulbound_address = soulbound_address

    def _cca(self, function: str, *args) -> ContractCall:
        return ContractCall("CCA", self.cca_address, function, tuple(args))

    def _hook(self, function: str, *args) -> ContractCall:
        return ContractCall("ValidationHook", self.hook_address, function, tuple(args))

    def _soulbound(self, function: str, *args) -> ContractCall:
        return ContractCall("Soulbound", self.soulbound_address, function, tuple(args))

    def param_calls(self, signer_address: str) -> List[ContractCall]:
        """The eight reads that make up AuctionParams, in decode order."""
        return [
            self._hook("CONTRIBUTOR_PERIOD_END_BLOCK"),
            self._hook("MAX_PURCHASE_LIMIT"),
            self._cca("floorPrice"),
            self._cca("tickSpacing"),
            self._cca("MAX_BID_PRICE"),
            self._cca("endBlock"),
            self._hook("totalPurchased", signer_address),
            self._soulbound("hasAnyToken", signer_address),
        ]

    async def load_params(self, signer_address: str) -> AuctionParams:
        """
        Load the auction parameters in one round trip.

        Args:
            signer_address: Address whose allocation and eligibility are read

        Returns:
            AuctionParams snapshot
        """
        (
            contributor_period_end_block,
            max_purchase_limit,
            floor_price,
            tick_spacing,
            max_bid_price,
            end_block,
            total_purchased,
            has_any_token,
        ) = await self.provider.batch_call(self.param_calls(signer_address))

        params = AuctionParams(
            contributor_period_end_block=int(contributor_period_end_block),
            end_block=int(end_block),
            floor_price=int(floor_price),
            tick_spacing=int(tick_spacing),
            max_bid_price=int(max_bid_price),
            total_purchased=int(total_purchased),
            max_purchase_limit=int(max_purchase_limit),
            has_any_token=bool(has_any_token),
        )
        logger.info(
            f"Auction params loaded: window=[{params.contributor_period_end_block}, "
            f"{params.end_block}), floor={params.floor_price}, spacing={params.tick_spacing}, "
            f"purchased={params.total_purchased}/{params.max_purchase_limit}"
        )
        return params

    async def get_tick(self, price: int) -> Tick:
        """Fetch the tick stored at a price."""
        raw = await self.provider.read(self._cca("ticks", price))
        next_price, demand = _unpack_tick(raw)
        return Tick(price=price, next=next_price, currency_demand_q96=demand)

    async def resolve_insertion_point(self, params: AuctionParams, bid_price: int) -> int:
        """
        Walk the tick list from the floor to find a bid's insertion point.

        One read per tick traversed; the result must not be reused across
        attempts since other bids keep changing the list.

        Args:
            params: Auction snapshot (for the floor price)
            bid_price: Aligned bid price

        Returns:
            prev_tick_price: the last tick whose next pointer is below bid_price

        Raises:
            InsertionPointError: bid_price is below the floor
        """
        floor_price = params.floor_price
        if bid_price < floor_price:
            raise InsertionPointError(
                f"bid price {bid_price} is below floor price {floor_price}"
            )

        prev = floor_price
        tick = await self.get_tick(prev)
        hops = 1
        while tick.next < bid_price:
            prev = tick.next
            tick = await self.get_tick(prev)
            hops += 1

        logger.debug(f"Insertion point for {bid_price} is {prev} after {hops} tick reads")
        return prev

    async def prepare_submit_bid(self, bid: BidParams, params: AuctionParams) -> SubmitBidParams:
        """Align the bid price and resolve its insertion point."""
        max_price = align_to_params(bid.max_bid, params)
        prev_tick_price = await self.resolve_insertion_point(params, max_price)
        return SubmitBidParams(
            max_price=max_price,
            amount=bid.amount,
            owner=bid.owner,
            prev_tick_price=prev_tick_price,
        )


def _unpack_tick(raw) -> Tuple[int, int]:
    """Accept the struct as a tuple/list or a mapping with named fields."""
    if isinstance(raw, dict):
        return int(raw["next"]), int(raw.get("currencyDemandQ96", 0))
    if isinstance(raw, (tuple, list)):
        if len(raw) == 1 and isinstance(raw[0], (tuple, list)):
            raw = raw[0]
        return int(raw[0]), int(raw[1]) if len(raw) > 1 else 0
    return int(raw), 0


__all__ = [
    "AuctionClient",
    "AuctionParams",
    "AuctionWindow",
    "SubmitBidParams",
    "Tick",
    "InsertionPointError",
]
