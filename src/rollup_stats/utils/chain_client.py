"""
Async JSON-RPC client for historical log retrieval.

Wraps AsyncWeb3 and exposes the three capabilities the scanner needs:
current block height, decoded logs for a block range and block timestamps.
"""

import logging
from collections.abc import Sequence
from typing import Any

from web3 import AsyncWeb3, Web3
from web3.providers import AsyncHTTPProvider

from ..models import LogEvent
from .contract_utility import ContractUtility


class ChainClient:
    """
    Read-only client for the rollup contract.

    Log queries use one ``eth_getLogs`` call per range with a topic0 OR-filter
    over the requested events, and decode results against the bundled ABI.
    """

    def __init__(
        self,
        rpc_url: str,
        contract_address: str,
        request_timeout: int = 30,
        contract_utility: ContractUtility | None = None,
        w3: AsyncWeb3 | None = None
    ) -> None:
        """
        Initialize the chain client.

        Args:
            rpc_url: HTTP RPC endpoint URL
            contract_address: Address of the contract to query
            request_timeout: HTTP request timeout in seconds
            contract_utility: ABI helper (defaults to the bundled rollup ABI)
            w3: Preconfigured AsyncWeb3 instance (mainly for tests)
        """
        self.rpc_url = rpc_url
        self.contract_address = Web3.to_checksum_address(contract_address)
        self.contract_utility = contract_utility or ContractUtility()

        self.w3 = w3 or AsyncWeb3(AsyncHTTPProvider(
            rpc_url,
            request_kwargs={'timeout': request_timeout}
        ))

        self.contract = self.w3.eth.contract(
            address=self.contract_address,
            abi=self.contract_utility.abi
        )

        # topic0 -> event name
        self._topics: dict[str, str] = {
            self.contract_utility.event_topic(name): name
            for name in self.contract_utility.event_names()
        }

        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    async def get_block_number(self) -> int:
        """Return the current block height."""
        return await self.w3.eth.block_number

    async def get_block_timestamp(self, block_number: int) -> int:
        """Return the timestamp (seconds since epoch) of a block."""
        block = await self.w3.eth.get_block(block_number)
        return int(block["timestamp"])

    async def get_logs(
        self,
        event_names: Sequence[str],
        from_block: int,
        to_block: int
    ) -> list[LogEvent]:
        """
        Fetch and decode logs of the given events in an inclusive block range.

        Args:
            event_names: ABI names of the events to match
            from_block: First block of the range
            to_block: Last block of the range

        Returns:
            Decoded events in provider order

        Raises:
            ValueError: If an event name is not part of the ABI
            Exception: Transport or provider errors are propagated
        """
        topics = [self.contract_utility.event_topic(name) for name in event_names]

        raw_logs = await self.w3.eth.get_logs({
            "address": self.contract_address,
            "fromBlock": from_block,
            "toBlock": to_block,
            "topics": [topics],
        })

        return [self.decode_log(raw_log) for raw_log in raw_logs]

    def decode_log(self, raw_log: Any) -> LogEvent:
        """
        Decode a raw log receipt into a LogEvent.

        Raises:
            ValueError: If the log does not match a known event
        """
        log_topics = raw_log["topics"]
        if not log_topics:
            raise ValueError("Cannot decode anonymous log without topics")

        topic0 = to_hex_str(log_topics[0])
        event_name = self._topics.get(topic0)
        if event_name is None:
            raise ValueError(f"Unknown event topic: {topic0}")

        event_obj = getattr(self.contract.events, event_name)
        event_data = event_obj().process_log(raw_log)

        return LogEvent(
            contract_address=Web3.to_checksum_address(event_data["address"]),
            event_name=event_name,
            args=dict(event_data["args"]),
            block_number=int(event_data["blockNumber"]),
            transaction_hash=to_hex_str(event_data["transactionHash"]),
            log_index=int(event_data["logIndex"])
        )


def to_hex_str(value: Any) -> str:
    """
    Normalize bytes or hex strings to lowercase 0x-prefixed hex.

    Providers return HexBytes, raw bytes or plain strings depending on
    middleware, so topics and hashes are normalized before comparison.
    """
    if isinstance(value, (bytes, bytearray)):
        return Web3.to_hex(value)
    hex_str = str(value).lower()
    return hex_str if hex_str.startswith('0x') else '0x' + hex_str
