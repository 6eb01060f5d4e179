"""
Tick grid arithmetic.

The auction only accepts bid prices on a discrete grid anchored at the
floor price: valid prices are floor + k * tick_spacing, capped at the
auction's maximum bid price.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cca_bidder.core.auction import AuctionParams


def align_price_to_tick(price: int, floor: int, spacing: int, cap: int) -> int:
    """
    Snap a candidate price to the nearest valid tick.

    Prices at or above the cap return the cap, prices at or below the
    floor return the floor. In between, the price rounds to the nearest
    tick; an exact midpoint rounds down. The result never exceeds the cap.

    Args:
        price: Candidate price
        floor: Auction floor price (grid anchor)
        spacing: Tick spacing (must be > 0)
        cap: Maximum bid price

    Returns:
        Aligned price
    """
    if price >= cap:
        return cap

    if price <= floor:
        return floor

    rem = (price - floor) % spacing
    if rem == 0:
        return price

    down = price - rem
    up = down + spacing
    candidate = up if rem > spacing - rem else down
    return min(candidate, cap)


def align_to_params(price: int, params: "AuctionParams") -> int:
    """Align a price using the grid of a loaded auction."""
    return align_price_to_tick(
        price,
        params.floor_price,
        params.tick_spacing,
        params.max_bid_price,
    )


def is_tick_aligned(price: int, floor: int, spacing: int) -> bool:
    """Check that a price sits exactly on the grid anchored at the floor."""
    if price < floor:
        return False
    return (price - floor) % spacing == 0


__all__ = [
    "align_price_to_tick",
    "align_to_params",
    "is_tick_aligned",
]
