#!/usr/bin/env python3
"""Configuration management for the rollup stats scanner.

This module provides type-safe configuration dataclasses with validation.
Configuration is loaded from environment variables with sensible defaults
where appropriate.
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from urllib.parse import urlparse

from web3 import Web3

# Get logger for this module
logger = logging.getLogger(__name__)


class ScanMode(Enum):
    """Which event taxonomy a run scans or reports on."""
    PROOFS = "proofs"
    SLASH = "slash"
    EXIT = "exit"


@dataclass(frozen=True, slots=True)
class ChainConfig:
    """Configuration for the scanned chain.

    Attributes:
        rpc_url: HTTP(S) RPC endpoint
        contract_address: Checksummed address of the rollup contract
    """

    rpc_url: str
    contract_address: str

    def __post_init__(self) -> None:
        """Validate chain configuration."""
        if not self.rpc_url:
            raise ValueError("RPC URL is required (SEPOLIA_RPC_URL)")

        parsed = urlparse(self.rpc_url)
        if parsed.scheme not in ('http', 'https'):
            raise ValueError(
                f"Invalid RPC URL scheme: {parsed.scheme}. "
                "Expected http or https"
            )

        if not self.contract_address:
            raise ValueError(
                "Rollup contract address is required (ROLLUP_CONTRACT_ADDRESS)"
            )

        if not Web3.is_address(self.contract_address):
            raise ValueError(
                f"Invalid rollup contract address: {self.contract_address}"
            )

        checksummed = Web3.to_checksum_address(self.contract_address)
        if checksummed != self.contract_address:
            # Use object.__setattr__ since dataclass is frozen
            object.__setattr__(self, 'contract_address', checksummed)


@dataclass(frozen=True, slots=True)
class ScanConfig:
    """Configuration for block range scanning."""
    from_block: int = 0
    to_block: int | None = None  # None means latest
    chunk_size: int = 10_000  # blocks per getLogs query
    timestamp_batch_size: int = 10  # concurrent block lookups per batch
    request_timeout: int = 30  # HTTP request timeout in seconds

    def __post_init__(self) -> None:
        """Validate scan configuration."""
        if self.from_block < 0:
            raise ValueError(f"Start block must be non-negative, got {self.from_block}")
        if self.to_block is not None:
            if self.to_block < 0:
                raise ValueError(f"End block must be non-negative, got {self.to_block}")
            if self.to_block < self.from_block:
                raise ValueError(
                    f"End block {self.to_block} is before start block {self.from_block}"
                )

        if self.chunk_size <= 0:
            raise ValueError(f"Chunk size must be positive, got {self.chunk_size}")

        if self.timestamp_batch_size <= 0:
            raise ValueError(
                f"Timestamp batch size must be positive, got {self.timestamp_batch_size}"
            )
        if self.timestamp_batch_size > 100:
            raise ValueError(
                f"Timestamp batch size too high (max 100), got {self.timestamp_batch_size}"
            )

        if self.request_timeout <= 0:
            raise ValueError(f"Request timeout must be positive, got {self.request_timeout}")
        if self.request_timeout > 300:
            raise ValueError(f"Request timeout too long (max 300s), got {self.request_timeout}")


@dataclass(frozen=True, slots=True)
class StatsConfig:
    """Main configuration for a scan run.

    Attributes:
        chain: Chain endpoint and contract
        scan: Block range and batching settings
        data_dir: Directory where snapshots are written
    """

    chain: ChainConfig
    scan: ScanConfig
    data_dir: Path

    @classmethod
    def from_env(cls) -> "StatsConfig":
        """Load configuration from environment variables.

        Returns:
            StatsConfig instance with loaded values

        Raises:
            ValueError: If required environment variables are missing or invalid
        """
        rpc_url = os.environ.get("SEPOLIA_RPC_URL", "")
        if not rpc_url:
            raise ValueError(
                "SEPOLIA_RPC_URL environment variable is required. "
                "This should be an RPC endpoint for the Sepolia network."
            )

        contract_address = os.environ.get("ROLLUP_CONTRACT_ADDRESS", "")
        if not contract_address:
            raise ValueError(
                "ROLLUP_CONTRACT_ADDRESS environment variable is required. "
                "This should be the Aztec rollup contract address."
            )

        chain_config = ChainConfig(
            rpc_url=rpc_url,
            contract_address=contract_address
        )

        end_block = os.environ.get("END_BLOCK", "latest").strip()

        scan_config = ScanConfig(
            from_block=_int_from_env("START_BLOCK", 0),
            to_block=None if end_block in ("", "latest") else _parse_int("END_BLOCK", end_block),
            chunk_size=_int_from_env("CHUNK_SIZE", 10_000),
            timestamp_batch_size=_int_from_env("TIMESTAMP_BATCH_SIZE", 10),
            request_timeout=_int_from_env("REQUEST_TIMEOUT", 30)
        )

        return cls(
            chain=chain_config,
            scan=scan_config,
            data_dir=data_dir_from_env()
        )

    def with_block_range(self, from_block: int | None, to_block: int | None) -> "StatsConfig":
        """Create a new config with the block range overridden.

        Args:
            from_block: New start block, or None to keep the current one
            to_block: New end block, or None to keep the current one

        Returns:
            New StatsConfig instance
        """
        scan_config = ScanConfig(
            from_block=self.scan.from_block if from_block is None else from_block,
            to_block=self.scan.to_block if to_block is None else to_block,
            chunk_size=self.scan.chunk_size,
            timestamp_batch_size=self.scan.timestamp_batch_size,
            request_timeout=self.scan.request_timeout
        )

        return StatsConfig(
            chain=self.chain,
            scan=scan_config,
            data_dir=self.data_dir
        )

    def log_config(self) -> None:
        """Log the configuration in a readable format for debugging."""
        logger.info("=" * 60)
        logger.info("Rollup Stats Configuration")
        logger.info("=" * 60)

        logger.info("Chain:")
        logger.info(f"  RPC URL: {self.chain.rpc_url}")
        logger.info(f"  Contract: {self.chain.contract_address}")

        logger.info("Scan Settings:")
        logger.info(f"  Start Block: {self.scan.from_block}")
        logger.info(f"  End Block: {self.scan.to_block if self.scan.to_block is not None else 'latest'}")
        logger.info(f"  Chunk Size: {self.scan.chunk_size} blocks")
        logger.info(f"  Timestamp Batch Size: {self.scan.timestamp_batch_size}")
        logger.info(f"  Request Timeout: {self.scan.request_timeout} seconds")

        logger.info("Output:")
        logger.info(f"  Data Directory: {self.data_dir}")

        logger.info("=" * 60)


def data_dir_from_env() -> Path:
    """Resolve the snapshot directory (DATA_DIR, default ./data)."""
    return Path(os.environ.get("DATA_DIR", "data"))


def _int_from_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    return _parse_int(name, raw)


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
