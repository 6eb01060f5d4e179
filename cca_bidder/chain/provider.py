"""
Chain Provider - the engine's only view of the blockchain.

The bid engine never talks to an RPC endpoint directly. Everything it
needs from the chain goes through this interface:
- Batched contract reads (auction parameters at start-up)
- Single contract reads (tick list traversal)
- Dry-run calls (simulation) and access-list generation
- Transaction submission and receipt confirmation
- A stream of new block headers

Implementations: Web3ChainProvider (live RPC), InMemoryChain (tests).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Any, AsyncIterator, List, Optional, Sequence, Tuple


# =============================================================================
# Data Structures
# =============================================================================


@dataclass(frozen=True)
class ContractCall:
    """
    A call to a named function of a known contract.

    Attributes:
        contract: ABI name ("CCA", "ValidationHook", "Soulbound")
        address: Contract address
        function: Function name in the ABI
        args: Positional arguments
    """
    contract: str
    address: str
    function: str
    args: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class TxRequest:
    """
    An unsigned transaction request built by the pipeline.

    The provider is responsible for nonce, gas limit, chain id, and
    signing; the request only carries what the bid decides.
    """
    sender: str
    call: ContractCall
    value: int = 0
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None
    access_list: Optional[List[dict]] = None

    @property
    def to(self) -> str:
        return self.call.address

    def with_fees(self, max_fee_per_gas: int, max_priority_fee_per_gas: int) -> "TxRequest":
        return replace(
            self,
            max_fee_per_gas=max_fee_per_gas,
            max_priority_fee_per_gas=max_priority_fee_per_gas,
        )

    def with_access_list(self, access_list: List[dict]) -> "TxRequest":
        return replace(self, access_list=list(access_list))


@dataclass(frozen=True)
class TxReceipt:
    """Confirmed transaction receipt."""
    tx_hash: str
    block_number: int
    status: int = 1
    gas_used: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status == 1


@dataclass(frozen=True)
class BlockHeader:
    """The subset of a block header the engine needs."""
    number: int
    hash: Optional[str] = None
    timestamp: Optional[int] = None


# =============================================================================
# Provider Interface
# =============================================================================


class ChainProvider(ABC):
    """Capabilities the bid engine requires from a chain connection."""

    @property
    @abstractmethod
    def signer_address(self) -> str:
        """Address transactions are sent from."""

    @abstractmethod
    async def batch_call(self, calls: Sequence[ContractCall]) -> List[Any]:
        """Execute several view calls in one round trip, results in order."""

    @abstractmethod
    async def read(self, call: ContractCall) -> Any:
        """Execute a single view call and return its decoded result."""

    @abstractmethod
    async def call(self, tx: TxRequest) -> bytes:
        """Execute a transaction against current state without broadcasting it."""

    @abstractmethod
    async def create_access_list(self, tx: TxRequest) -> List[dict]:
        """Dry-run a transaction and return the storage slots it touches."""

    @abstractmethod
    async def send_transaction(self, tx: TxRequest) -> str:
        """Sign and broadcast a transaction, returning its hash."""

    @abstractmethod
    async def wait_for_receipt(self, tx_hash: str) -> TxReceipt:
        """Wait until a transaction is mined."""

    @abstractmethod
    def blocks(self) -> AsyncIterator[BlockHeader]:
        """Stream new block headers until the source ends or fails."""


__all__ = [
    "ContractCall",
    "TxRequest",
    "TxReceipt",
    "BlockHeader",
    "ChainProvider",
]
