"""
Chain access layer.

The engine depends only on ChainProvider; Web3ChainProvider talks to a
live RPC endpoint and InMemoryChain backs tests.
"""

from cca_bidder.chain.provider import (
    BlockHeader,
    ChainProvider,
    ContractCall,
    TxReceipt,
    TxRequest,
)
from cca_bidder.chain.fake import FakeAuctionState, InMemoryChain

__all__ = [
    "BlockHeader",
    "ChainProvider",
    "ContractCall",
    "TxReceipt",
    "TxRequest",
    "FakeAuctionState",
    "InMemoryChain",
]
