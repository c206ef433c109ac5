import logging
from datetime import datetime, timezone
from pathlib import Path

from .aggregators import PROOF_EVENT, SLASH_EVENT, ProofAggregator, SlashAggregator
from .config import ScanMode, StatsConfig
from .eligibility import current_timestamp
from .exit_aggregator import EXIT_EVENTS, ExitAggregator, split_exit_events
from .log_fetcher import ChunkedLogFetcher
from .models import BlockWindow, ExitStats, FetchResult, ProofStats, ScanSnapshot, SlashStats
from .snapshot import SnapshotWriter
from .timestamp_resolver import BlockTimestampResolver
from .utils.chain_client import ChainClient

# Get logger for this module
logger = logging.getLogger(__name__)


class RollupStatsScanner:
    """
    Runs one scan pipeline (proofs, slashes or exits) over the configured
    block range and persists the resulting snapshot.
    """

    def __init__(
        self,
        config: StatsConfig,
        client: ChainClient | None = None,
        writer: SnapshotWriter | None = None
    ) -> None:
        """
        Initialize the scanner.

        :param config: Scan configuration
        :param client: Chain client (built from the config when omitted)
        :param writer: Snapshot writer (writes to ``config.data_dir`` when omitted)
        """
        self.config = config
        self.client = client or ChainClient(
            rpc_url=config.chain.rpc_url,
            contract_address=config.chain.contract_address,
            request_timeout=config.scan.request_timeout
        )
        self.writer = writer or SnapshotWriter(config.data_dir)

    async def resolve_block_range(self) -> BlockWindow:
        """
        Determine the inclusive range to scan, resolving 'latest' on-chain.

        :raises ValueError: If the resulting range is empty
        """
        from_block = self.config.scan.from_block
        to_block = self.config.scan.to_block
        if to_block is None:
            to_block = await self.client.get_block_number()
            logger.info(f"Resolved latest block: {to_block}")

        if to_block < from_block:
            raise ValueError(
                f"Start block {from_block} is after the end block {to_block}"
            )
        return BlockWindow(from_block, to_block)

    async def _fetch(self, event_names: tuple[str, ...], block_range: BlockWindow) -> FetchResult:
        fetcher = ChunkedLogFetcher(
            self.client,
            event_names,
            chunk_size=self.config.scan.chunk_size
        )
        result = await fetcher.fetch(block_range.from_block, block_range.to_block)
        if not result.complete:
            logger.warning(
                f"Scan incomplete: {len(result.failed_windows)} of "
                f"{result.windows_total} windows could not be retrieved"
            )
        return result

    async def scan_proofs(self) -> ScanSnapshot:
        block_range = await self.resolve_block_range()
        result = await self._fetch((PROOF_EVENT,), block_range)

        aggregator = ProofAggregator().consume_all(result.events)
        aggregator.log_metrics()
        stats = aggregator.summarize()

        logger.info(f"Total proofs submitted: {stats.total_proofs}")
        logger.info(f"Unique provers: {stats.unique_provers}")

        return self._snapshot(ScanMode.PROOFS, block_range, result, stats)

    async def scan_slashes(self) -> ScanSnapshot:
        block_range = await self.resolve_block_range()
        result = await self._fetch((SLASH_EVENT,), block_range)

        aggregator = SlashAggregator().consume_all(result.events)
        aggregator.log_metrics()
        stats = aggregator.summarize()

        logger.info(f"Total slashes: {stats.total_slashes}")
        logger.info(f"Unique attesters slashed: {stats.unique_attesters}")

        return self._snapshot(ScanMode.SLASH, block_range, result, stats)

    async def scan_exits(self, now: int | None = None) -> ScanSnapshot:
        """
        Scan the withdrawal lifecycle.

        :param now: Evaluation time for exit eligibility (defaults to wall clock)
        :raises TimestampResolutionError: If block timestamps cannot be fetched
        """
        block_range = await self.resolve_block_range()
        result = await self._fetch(EXIT_EVENTS, block_range)

        initiated, finalized = split_exit_events(result.events)
        logger.info(
            f"Found {len(initiated)} initiated and {len(finalized)} finalized withdrawals"
        )

        resolver = BlockTimestampResolver(
            self.client,
            batch_size=self.config.scan.timestamp_batch_size
        )
        timestamps = await resolver.resolve(event.block_number for event in initiated)

        aggregator = ExitAggregator(now if now is not None else current_timestamp())
        aggregator.consume(initiated, finalized, timestamps)
        aggregator.log_metrics()
        stats = aggregator.summarize()

        logger.info(f"Total pending exits: {stats.total_pending}")
        logger.info(f"  - Can finalize now: {stats.pending_can_finalize}")
        logger.info(f"  - Cannot finalize yet: {stats.pending_cannot_finalize}")

        return self._snapshot(ScanMode.EXIT, block_range, result, stats)

    def _snapshot(
        self,
        mode: ScanMode,
        block_range: BlockWindow,
        result: FetchResult,
        stats: ProofStats | SlashStats | ExitStats
    ) -> ScanSnapshot:
        return ScanSnapshot(
            kind=mode.value,
            scanned_at=datetime.now(timezone.utc),
            block_range=block_range,
            stats=stats,
            failed_windows=result.failed_windows
        )

    async def run(self, mode: ScanMode) -> Path:
        """
        Scan the given taxonomy and write its snapshot.

        :param mode: Which pipeline to run
        :return: Path of the written snapshot
        """
        logger.info(f"Starting {mode.value} scan of {self.config.chain.contract_address}")

        if mode is ScanMode.PROOFS:
            snapshot = await self.scan_proofs()
        elif mode is ScanMode.SLASH:
            snapshot = await self.scan_slashes()
        else:
            snapshot = await self.scan_exits()

        return self.writer.write(snapshot)
