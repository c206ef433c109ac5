"""
Rollup stats package.

Historical prover, slashing and exit statistics for the Aztec rollup contract.
"""

from .config import ScanMode, StatsConfig
from .log_fetcher import ChunkedLogFetcher
from .scanner import RollupStatsScanner
from .snapshot import SnapshotWriter
from .timestamp_resolver import BlockTimestampResolver

__all__ = [
    "BlockTimestampResolver",
    "ChunkedLogFetcher",
    "RollupStatsScanner",
    "ScanMode",
    "SnapshotWriter",
    "StatsConfig",
]
__version__ = "0.1.0"
