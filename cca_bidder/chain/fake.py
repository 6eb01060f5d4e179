"""
InMemoryChain - a scripted chain for tests and dry runs.

Models just enough of the auction contracts for the bid engine:
- Auction parameters served through batched reads
- The ascending tick linked list, mutated by confirmed bids
- Reverting simulations for invalid insertion points
- Injectable failures per pipeline step
- A scripted block sequence that may end or fail
"""

from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Sequence

from cca_bidder.chain.provider import (
    BlockHeader,
    ChainProvider,
    ContractCall,
    TxReceipt,
    TxRequest,
)
from cca_bidder.utils.logger import get_logger
from cca_bidder.utils.validation import MAX_UINT256

logger = get_logger("chain.fake")

# Tail pointer of the on-chain tick list
MAX_TICK_PTR = MAX_UINT256

DEFAULT_SIGNER = "0x00000000000000000000000000000000000000a1"


@dataclass
class FakeAuctionState:
    """Values returned for the auction's view functions."""
    contributor_period_end_block: int = 100
    end_block: int = 110
    floor_price: int = 1000
    tick_spacing: int = 100
    max_bid_price: int = 10_000
    max_purchase_limit: int = 10**18
    total_purchased: Dict[str, int] = field(default_factory=dict)
    token_holders: set = field(default_factory=set)


class InMemoryChain(ChainProvider):
    """
    In-memory ChainProvider.

    Failures are injected per step name: "read", "batch_call", "call",
    "create_access_list", "send_transaction", "wait_for_receipt".
    """

    def __init__(
        self,
        state: Optional[FakeAuctionState] = None,
        signer: str = DEFAULT_SIGNER,
        block_numbers: Iterable[int] = (),
        stream_error: Optional[Exception] = None,
    ):
        self.state = state or FakeAuctionState()
        self._signer = signer
        self.block_numbers = list(block_numbers)
        self.stream_error = stream_error

        self.ticks: Dict[int, int] = {self.state.floor_price: MAX_TICK_PTR}
        self.head = 0

        # Call accounting
        self.read_count = 0
        self.batch_count = 0
        self.simulations: List[TxRequest] = []
        self.sent: List[TxRequest] = []
        self.receipts: Dict[str, TxReceipt] = {}
        self._pending: Dict[str, TxRequest] = {}

        # Failure injection
        self._fail_times: Dict[str, int] = {}
        self._fail_always: Dict[str, str] = {}
        self._fail_errors: Dict[str, str] = {}

    @property
    def signer_address(self) -> str:
        return self._signer

    # =========================================================================
    # Scripting
    # =========================================================================

    def fail_next(self, step: str, times: int = 1, error: str = "injected failure") -> None:
        """Make the next `times` invocations of a step raise."""
        self._fail_times[step] = self._fail_times.get(step, 0) + times
        self._fail_errors[step] = error

    def fail_always(self, step: str, error: str = "injected failure") -> None:
        """Make every invocation of a step raise."""
        self._fail_always[step] = error

    def clear_failures(self) -> None:
        self._fail_times.clear()
        self._fail_always.clear()
        self._fail_errors.clear()

    def insert_tick(self, price: int) -> None:
        """Insert a tick as another bidder would."""
        if price in self.ticks:
            return
        prev = self.state.floor_price
        while self.ticks[prev] < price:
            prev = self.ticks[prev]
        self.ticks[price] = self.ticks[prev]
        self.ticks[prev] = price

    def tick_prices(self) -> List[int]:
        """Walk the tick list from the floor."""
        prices = []
        price = self.state.floor_price
        while price != MAX_TICK_PTR:
            prices.append(price)
            price = self.ticks[price]
        return prices

    def _maybe_fail(self, step: str) -> None:
        if step in self._fail_always:
            raise RuntimeError(f"{step}: {self._fail_always[step]}")
        remaining = self._fail_times.get(step, 0)
        if remaining > 0:
            self._fail_times[step] = remaining - 1
            raise RuntimeError(f"{step}: {self._fail_errors.get(step, 'injected failure')}")

    # =========================================================================
    # Reads
    # =========================================================================

    def _view(self, call: ContractCall) -> Any:
        s = self.state
        views = {
            ("ValidationHook", "CONTRIBUTOR_PERIOD_END_BLOCK"): lambda: s.contributor_period_end_block,
            ("ValidationHook", "MAX_PURCHASE_LIMIT"): lambda: s.max_purchase_limit,
            ("ValidationHook", "totalPurchased"): lambda: s.total_purchased.get(call.args[0], 0),
            ("CCA", "floorPrice"): lambda: s.floor_price,
            ("CCA", "tickSpacing"): lambda: s.tick_spacing,
            ("CCA", "MAX_BID_PRICE"): lambda: s.max_bid_price,
            ("CCA", "endBlock"): lambda: s.end_block,
            ("CCA", "ticks"): lambda: (self.ticks.get(call.args[0], 0), 0),
            ("Soulbound", "hasAnyToken"): lambda: call.args[0] in s.token_holders,
        }
        key = (call.contract, call.function)
        if key not in views:
            raise KeyError(f"unknown view {call.contract}.{call.function}")
        return views[key]()

    async def batch_call(self, calls: Sequence[ContractCall]) -> List[Any]:
        self._maybe_fail("batch_call")
        self.batch_count += 1
        return [self._view(c) for c in calls]

    async def read(self, call: ContractCall) -> Any:
        self._maybe_fail("read")
        self.read_count += 1
        return self._view(call)

    # =========================================================================
    # Transactions
    # =========================================================================

    def _check_submit_bid(self, tx: TxRequest) -> None:
        max_price, amount, _owner, prev_tick_price, _hook = tx.call.args
        if tx.value != amount:
            raise RuntimeError("execution reverted: value does not match amount")
        if prev_tick_price not in self.ticks:
            raise RuntimeError("execution reverted: TickPreviousPriceInvalid")
        if max_price in self.ticks:
            return
        if not (prev_tick_price < max_price <= self.ticks[prev_tick_price]):
            raise RuntimeError("execution reverted: TickPreviousPriceInvalid")

    async def call(self, tx: TxRequest) -> bytes:
        self._maybe_fail("call")
        self.simulations.append(tx)
        if tx.call.function == "submitBid":
            self._check_submit_bid(tx)
        return (len(self.sent) + 1).to_bytes(32, "big")

    async def create_access_list(self, tx: TxRequest) -> List[dict]:
        self._maybe_fail("create_access_list")
        return [{"address": tx.to, "storageKeys": ["0x" + "00" * 31 + "01"]}]

    async def send_transaction(self, tx: TxRequest) -> str:
        self._maybe_fail("send_transaction")
        self.sent.append(tx)
        tx_hash = "0x" + format(len(self.sent), "064x")
        self._pending[tx_hash] = tx
        return tx_hash

    async def wait_for_receipt(self, tx_hash: str) -> TxReceipt:
        self._maybe_fail("wait_for_receipt")
        tx = self._pending.pop(tx_hash)
        if tx.call.function == "submitBid":
            self._check_submit_bid(tx)
            self.insert_tick(tx.call.args[0])
        receipt = TxReceipt(tx_hash=tx_hash, block_number=self.head, status=1, gas_used=150_000)
        self.receipts[tx_hash] = receipt
        return receipt

    # =========================================================================
    # Blocks
    # =========================================================================

    async def blocks(self) -> AsyncIterator[BlockHeader]:
        for number in self.block_numbers:
            self.head = number
            yield BlockHeader(number=number)
        if self.stream_error is not None:
            raise self.stream_error


__all__ = [
    "InMemoryChain",
    "FakeAuctionState",
    "MAX_TICK_PTR",
    "DEFAULT_SIGNER",
]
