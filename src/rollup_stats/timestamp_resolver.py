"""
Batched block timestamp resolution.
"""

import asyncio
import logging
from collections.abc import Iterable
from typing import Protocol

DEFAULT_BATCH_SIZE = 10

# Get logger for this module
logger = logging.getLogger(__name__)


class TimestampResolutionError(RuntimeError):
    """Raised when any block of a batch could not be resolved."""

    def __init__(self, block_numbers: list[int], cause: BaseException) -> None:
        super().__init__(
            f"Failed to resolve timestamps for blocks "
            f"{block_numbers[0]}-{block_numbers[-1]}: {cause}"
        )
        self.block_numbers = block_numbers


class BlockSource(Protocol):
    async def get_block_timestamp(self, block_number: int) -> int: ...


class BlockTimestampResolver:
    """
    Resolves block numbers to timestamps in bounded concurrent batches.

    All lookups of a batch run concurrently; the next batch starts once the
    whole batch is done. A single failed lookup fails the whole resolution.
    """

    def __init__(self, client: BlockSource, batch_size: int = DEFAULT_BATCH_SIZE) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.client = client
        self.batch_size = batch_size

    async def resolve(self, block_numbers: Iterable[int]) -> dict[int, int]:
        """
        Resolve the timestamps of a set of blocks.

        Args:
            block_numbers: Block numbers, duplicates allowed

        Returns:
            Mapping of block number to timestamp (seconds since epoch)

        Raises:
            TimestampResolutionError: If any lookup fails
        """
        unique_blocks = sorted(set(block_numbers))
        timestamps: dict[int, int] = {}

        if not unique_blocks:
            return timestamps

        logger.info(f"Fetching timestamps for {len(unique_blocks)} blocks...")

        for start in range(0, len(unique_blocks), self.batch_size):
            batch = unique_blocks[start:start + self.batch_size]
            try:
                results = await asyncio.gather(
                    *(self.client.get_block_timestamp(block) for block in batch)
                )
            except Exception as e:
                logger.error(f"Timestamp batch {batch[0]}-{batch[-1]} failed: {e}")
                raise TimestampResolutionError(batch, e) from e

            timestamps.update(zip(batch, (int(ts) for ts in results)))
            logger.debug(f"Resolved {len(timestamps)}/{len(unique_blocks)} block timestamps")

        return timestamps
