"""
Web3ChainProvider - live chain access through web3.py.

Implements ChainProvider on top of AsyncWeb3:
- Batched reads through Multicall3 aggregate3
- Local signing with eth-account, EIP-1559 fees
- Block headers from a newHeads subscription (ws/wss) or an aligned
  polling loop (http/https)
"""

import asyncio
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from eth_account import Account
from web3 import AsyncHTTPProvider, AsyncWeb3, WebSocketProvider

from cca_bidder.chain.abi import ABIS, MULTICALL3_ADDRESS, output_types
from cca_bidder.chain.provider import (
    BlockHeader,
    ChainProvider,
    ContractCall,
    TxReceipt,
    TxRequest,
)
from cca_bidder.utils.logger import get_logger

logger = get_logger("chain")


# =============================================================================
# Constants
# =============================================================================

DEFAULT_POLL_INTERVAL = 12.0  # seconds, one mainnet slot
ALIGN_INTERVAL = 0.25  # seconds between head checks while aligning
GAS_LIMIT_MULTIPLIER = 1.2
RECEIPT_TIMEOUT = 180  # seconds


def _is_websocket(url: str) -> bool:
    return url.startswith("ws://") or url.startswith("wss://")


def _to_hex(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return AsyncWeb3.to_hex(value)


class Web3ChainProvider(ChainProvider):
    """
    ChainProvider backed by a JSON-RPC endpoint.

    The connection is opened by connect() (or by entering the provider as
    an async context manager) and reused for every call and for the
    block stream.
    """

    def __init__(
        self,
        rpc_url: str,
        private_key: str,
        multicall_address: str = MULTICALL3_ADDRESS,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        """
        Args:
            rpc_url: http(s) or ws(s) endpoint
            private_key: Hex private key of the signer
            multicall_address: Multicall3 deployment used for batched reads
            poll_interval: Seconds between head checks over HTTP
        """
        self.rpc_url = rpc_url
        self.poll_interval = poll_interval
        self.account = Account.from_key(private_key)
        self.multicall_address = AsyncWeb3.to_checksum_address(multicall_address)
        self.w3: Optional[AsyncWeb3] = None
        self._chain_id: Optional[int] = None
        self._contracts: Dict[tuple, Any] = {}

    @property
    def signer_address(self) -> str:
        return self.account.address

    @property
    def uses_subscription(self) -> bool:
        return _is_websocket(self.rpc_url)

    # =========================================================================
    # Connection
    # =========================================================================

    async def connect(self) -> None:
        """Open the RPC connection."""
        if self.uses_subscription:
            self.w3 = AsyncWeb3(WebSocketProvider(self.rpc_url))
            await self.w3.provider.connect()
        else:
            self.w3 = AsyncWeb3(AsyncHTTPProvider(self.rpc_url))

        self._chain_id = await self.w3.eth.chain_id
        logger.info(f"Connected to chain {self._chain_id} via {self.rpc_url.split('://')[0]}")

    async def disconnect(self) -> None:
        """Close the RPC connection."""
        if self.w3 is None:
            return
        if self.uses_subscription:
            await self.w3.provider.disconnect()
        self.w3 = None
        self._contracts.clear()
        logger.info("Disconnected from chain")

    async def __aenter__(self) -> "Web3ChainProvider":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    def _require_connection(self) -> AsyncWeb3:
        if self.w3 is None:
            raise ConnectionError("Not connected to chain, call connect() first")
        return self.w3

    def _contract(self, name: str, address: str):
        w3 = self._require_connection()
        key = (name, address)
        if key not in self._contracts:
            self._contracts[key] = w3.eth.contract(
                address=AsyncWeb3.to_checksum_address(address),
                abi=ABIS[name],
            )
        return self._contracts[key]

    def _function(self, call: ContractCall):
        contract = self._contract(call.contract, call.address)
        return getattr(contract.functions, call.function)(*call.args)

    def _encode(self, call: ContractCall) -> str:
        contract = self._contract(call.contract, call.address)
        return contract.encode_abi(call.function, args=list(call.args))

    # =========================================================================
    # Reads
    # =========================================================================

    async def batch_call(self, calls: Sequence[ContractCall]) -> List[Any]:
        """Aggregate view calls through Multicall3, failing if any call reverts."""
        w3 = self._require_connection()
        multicall = self._contract("Multicall3", self.multicall_address)
        payload = [
            (AsyncWeb3.to_checksum_address(c.address), False, self._encode(c))
            for c in calls
        ]
        results = await multicall.functions.aggregate3(payload).call()

        decoded: List[Any] = []
        for c, (success, data) in zip(calls, results):
            if not success:
                raise RuntimeError(f"multicall entry {c.contract}.{c.function} reverted")
            values = w3.codec.decode(output_types(c.contract, c.function), data)
            decoded.append(values[0] if len(values) == 1 else tuple(values))
        logger.debug(f"Batched {len(calls)} reads in one call")
        return decoded

    async def read(self, call: ContractCall) -> Any:
        return await self._function(call).call()

    # =========================================================================
    # Transactions
    # =========================================================================

    def _tx_dict(self, tx: TxRequest) -> Dict[str, Any]:
        tx_dict: Dict[str, Any] = {
            "from": AsyncWeb3.to_checksum_address(tx.sender),
            "to": AsyncWeb3.to_checksum_address(tx.to),
            "data": self._encode(tx.call),
            "value": tx.value,
        }
        if tx.max_fee_per_gas is not None:
            tx_dict["maxFeePerGas"] = tx.max_fee_per_gas
            tx_dict["maxPriorityFeePerGas"] = tx.max_priority_fee_per_gas
        if tx.access_list is not None:
            tx_dict["accessList"] = tx.access_list
        return tx_dict

    async def call(self, tx: TxRequest) -> bytes:
        w3 = self._require_connection()
        return bytes(await w3.eth.call(self._tx_dict(tx)))

    async def create_access_list(self, tx: TxRequest) -> List[dict]:
        w3 = self._require_connection()
        response = await w3.eth.create_access_list(self._tx_dict(tx))
        access_list = [
            {
                "address": entry["address"],
                "storageKeys": [_to_hex(k) for k in entry["storageKeys"]],
            }
            for entry in response["accessList"]
        ]
        logger.debug(f"Generated access list with {len(access_list)} entries")
        return access_list

    async def _default_fees(self) -> Dict[str, int]:
        w3 = self._require_connection()
        latest = await w3.eth.get_block("latest")
        priority = await w3.eth.max_priority_fee
        return {
            "maxFeePerGas": latest["baseFeePerGas"] * 2 + priority,
            "maxPriorityFeePerGas": priority,
        }

    async def send_transaction(self, tx: TxRequest) -> str:
        w3 = self._require_connection()
        tx_dict = self._tx_dict(tx)
        if "maxFeePerGas" not in tx_dict:
            tx_dict.update(await self._default_fees())

        tx_dict["nonce"] = await w3.eth.get_transaction_count(self.account.address, "pending")
        tx_dict["chainId"] = self._chain_id
        gas_estimate = await w3.eth.estimate_gas(tx_dict)
        tx_dict["gas"] = int(gas_estimate * GAS_LIMIT_MULTIPLIER)

        signed = self.account.sign_transaction(tx_dict)
        tx_hash = await w3.eth.send_raw_transaction(signed.raw_transaction)
        logger.info(f"Broadcast transaction {_to_hex(tx_hash)} (nonce {tx_dict['nonce']})")
        return _to_hex(tx_hash)

    async def wait_for_receipt(self, tx_hash: str) -> TxReceipt:
        w3 = self._require_connection()
        receipt = await w3.eth.wait_for_transaction_receipt(tx_hash, timeout=RECEIPT_TIMEOUT)
        result = TxReceipt(
            tx_hash=_to_hex(receipt["transactionHash"]),
            block_number=receipt["blockNumber"],
            status=receipt["status"],
            gas_used=receipt["gasUsed"],
        )
        if not result.succeeded:
            raise RuntimeError(f"transaction {result.tx_hash} reverted in block {result.block_number}")
        return result

    # =========================================================================
    # Blocks
    # =========================================================================

    @staticmethod
    def _header(block: Any) -> BlockHeader:
        number = block["number"]
        if isinstance(number, str):
            number = int(number, 16)
        timestamp = block.get("timestamp")
        if isinstance(timestamp, str):
            timestamp = int(timestamp, 16)
        return BlockHeader(number=number, hash=_to_hex(block.get("hash")), timestamp=timestamp)

    def blocks(self) -> AsyncIterator[BlockHeader]:
        if self.uses_subscription:
            return self._subscribe_blocks()
        return self._poll_blocks()

    async def _subscribe_blocks(self) -> AsyncIterator[BlockHeader]:
        w3 = self._require_connection()
        subscription_id = await w3.eth.subscribe("newHeads")
        logger.info(f"Subscribed to new heads ({subscription_id})")
        async for message in w3.socket.process_subscriptions():
            yield self._header(message["result"])

    async def _align_polling(self) -> int:
        """Wait for the head to move so polling starts right after a new block."""
        w3 = self._require_connection()
        start = await w3.eth.block_number
        current = start
        while current <= start:
            await asyncio.sleep(ALIGN_INTERVAL)
            current = await w3.eth.block_number
        await asyncio.sleep(ALIGN_INTERVAL)
        return current

    async def _poll_blocks(self) -> AsyncIterator[BlockHeader]:
        w3 = self._require_connection()
        last = await self._align_polling() - 1
        logger.info(f"Polling for blocks every {self.poll_interval}s from block {last + 1}")
        while True:
            head = await w3.eth.block_number
            for number in range(last + 1, head + 1):
                yield self._header(await w3.eth.get_block(number))
            last = max(last, head)
            await asyncio.sleep(self.poll_interval)


__all__ = [
    "Web3ChainProvider",
    "DEFAULT_POLL_INTERVAL",
]
