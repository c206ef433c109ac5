#!/usr/bin/env python3
"""Entry point for the rollup stats scanner.

``scan`` walks the configured block range and writes a snapshot to the data
directory; ``report`` prints the latest snapshot of a kind.
"""

import argparse
import asyncio
import logging
import os
import sys

from dotenv import load_dotenv

# Configure logging before any other imports create loggers
def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the application.

    Args:
        level: Logging level as string (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    log_level: int = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

# Get logger for this module
logger = logging.getLogger(__name__)

from rollup_stats.config import ScanMode, StatsConfig, data_dir_from_env
from rollup_stats.eligibility import current_timestamp
from rollup_stats.report import (
    SnapshotNotFoundError,
    find_latest_snapshot,
    render_exit_report,
    render_proof_report,
    render_slash_report,
)
from rollup_stats.scanner import RollupStatsScanner
from rollup_stats.snapshot import load_snapshot


def build_parser() -> argparse.ArgumentParser:
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="Aztec rollup prover, slashing and exit statistics",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Environment Variables:
  SEPOLIA_RPC_URL         - RPC endpoint for the scanned chain
  ROLLUP_CONTRACT_ADDRESS - Rollup contract address
  START_BLOCK             - First block to scan (default: 0)
  END_BLOCK               - Last block to scan (default: latest)
  CHUNK_SIZE              - Blocks per log query (default: 10000)
  TIMESTAMP_BATCH_SIZE    - Concurrent block lookups (default: 10)
  REQUEST_TIMEOUT         - HTTP timeout in seconds (default: 30)
  DATA_DIR                - Snapshot directory (default: ./data)
  LOG_LEVEL               - Logging level (can be overridden with --log-level)
        """
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging level (default: INFO)"
    )

    commands = parser.add_subparsers(dest="command", required=True)
    modes = [mode.value for mode in ScanMode]

    scan = commands.add_parser("scan", help="Scan the chain and write a snapshot")
    scan.add_argument("mode", choices=modes, nargs="?", default=ScanMode.PROOFS.value)
    scan.add_argument("--from-block", type=int, default=None, help="Override START_BLOCK")
    scan.add_argument("--to-block", type=int, default=None, help="Override END_BLOCK")

    report = commands.add_parser("report", help="Print the latest snapshot")
    report.add_argument("mode", choices=modes, nargs="?", default=ScanMode.PROOFS.value)

    return parser


async def run_scan(args: argparse.Namespace) -> None:
    config: StatsConfig = StatsConfig.from_env()
    if args.from_block is not None or args.to_block is not None:
        config = config.with_block_range(args.from_block, args.to_block)
    logger.info("Configuration loaded successfully")
    config.log_config()

    scanner = RollupStatsScanner(config)
    await scanner.run(ScanMode(args.mode))


def run_report(args: argparse.Namespace) -> None:
    mode = ScanMode(args.mode)
    path = find_latest_snapshot(data_dir_from_env(), mode)
    print(f"Reading stats from: {path.name}\n")

    data = load_snapshot(path)
    if mode is ScanMode.EXIT:
        lines = render_exit_report(data, current_timestamp())
    elif mode is ScanMode.SLASH:
        lines = render_slash_report(data)
    else:
        lines = render_proof_report(data)
    print("\n".join(lines))


def main() -> None:
    """Main entry point.

    Raises:
        SystemExit: 1 on configuration, missing snapshot or runtime errors
    """
    load_dotenv()
    args: argparse.Namespace = build_parser().parse_args()

    setup_logging(args.log_level)

    try:
        if args.command == "scan":
            asyncio.run(run_scan(args))
        else:
            run_report(args)

    except SnapshotNotFoundError as e:
        logger.error(str(e))
        sys.exit(1)

    except ValueError as e:
        logger.error(f"Configuration Error: {e}")
        logger.error("Please check your environment variables:")
        logger.error("  - SEPOLIA_RPC_URL: RPC endpoint for the scanned chain")
        logger.error("  - ROLLUP_CONTRACT_ADDRESS: Rollup contract address")
        logger.error("  - START_BLOCK / END_BLOCK: Block range to scan")
        sys.exit(1)

    except KeyboardInterrupt:
        logger.info("\nReceived interrupt signal, shutting down...")
        sys.exit(1)

    except Exception as e:
        logger.error(f"Fatal Error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
