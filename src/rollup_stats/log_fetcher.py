"""
Chunked historical log retrieval.

Splits a block range into fixed-size windows and queries them one at a time
so a rate-limited provider never sees more than one request in flight.
"""

import logging
from collections.abc import Iterator, Sequence
from typing import Protocol

from .models import BlockWindow, FailedWindow, FetchResult, LogEvent

DEFAULT_CHUNK_SIZE = 10_000

# Get logger for this module
logger = logging.getLogger(__name__)


class LogSource(Protocol):
    async def get_logs(
        self,
        event_names: Sequence[str],
        from_block: int,
        to_block: int
    ) -> list[LogEvent]: ...


def split_block_range(
    from_block: int,
    to_block: int,
    chunk_size: int = DEFAULT_CHUNK_SIZE
) -> Iterator[BlockWindow]:
    """
    Partition ``[from_block, to_block]`` into consecutive inclusive windows.

    Every window holds ``chunk_size`` blocks except possibly the last one.

    Raises:
        ValueError: On a negative start, an inverted range or a non-positive chunk size
    """
    if from_block < 0:
        raise ValueError(f"from_block must be non-negative, got {from_block}")
    if to_block < from_block:
        raise ValueError(f"to_block {to_block} is before from_block {from_block}")
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")

    start = from_block
    while start <= to_block:
        end = min(start + chunk_size - 1, to_block)
        yield BlockWindow(start, end)
        start = end + 1


class ChunkedLogFetcher:
    """
    Best-effort log scanner over a block range.

    A window whose query fails is logged, recorded in the result's
    ``failed_windows`` and skipped; there is no retry.
    """

    def __init__(
        self,
        client: LogSource,
        event_names: Sequence[str],
        chunk_size: int = DEFAULT_CHUNK_SIZE
    ) -> None:
        """
        Initialize the fetcher.

        Args:
            client: Source of decoded logs
            event_names: Events queried in every window
            chunk_size: Maximum number of blocks per window
        """
        if not event_names:
            raise ValueError("At least one event name is required")
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")

        self.client = client
        self.event_names = tuple(event_names)
        self.chunk_size = chunk_size

    async def fetch(self, from_block: int, to_block: int) -> FetchResult:
        """
        Retrieve all matching events in ``[from_block, to_block]``.

        Args:
            from_block: First block (inclusive)
            to_block: Last block (inclusive)

        Returns:
            FetchResult with events in window order, then provider order
        """
        windows = list(split_block_range(from_block, to_block, self.chunk_size))
        events: list[LogEvent] = []
        failed: list[FailedWindow] = []
        label = "/".join(self.event_names)

        logger.info(
            f"Scanning blocks {from_block} to {to_block} "
            f"({to_block - from_block + 1} blocks, {len(windows)} windows) for {label}"
        )

        for window in windows:
            logger.info(f"Querying blocks {window.from_block} to {window.to_block}...")
            try:
                window_events = await self.client.get_logs(
                    self.event_names,
                    window.from_block,
                    window.to_block
                )
            except Exception as e:
                logger.warning(f"Error querying blocks {window}: {e}")
                failed.append(FailedWindow(window=window, error=str(e)))
                continue

            logger.info(f"Found {len(window_events)} {label} events in this chunk")
            events.extend(window_events)

        if failed:
            logger.warning(
                f"{len(failed)} of {len(windows)} windows failed; "
                "results may be incomplete"
            )

        return FetchResult(
            events=tuple(events),
            windows_total=len(windows),
            failed_windows=tuple(failed)
        )
