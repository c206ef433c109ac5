#!/usr/bin/env python3
"""End-to-end tests for RollupStatsScanner with an in-memory chain."""

from pathlib import Path

import pytest

from rollup_stats.config import ChainConfig, ScanConfig, ScanMode, StatsConfig
from rollup_stats.eligibility import EXIT_DELAY_SECONDS
from rollup_stats.models import LogEvent
from rollup_stats.scanner import RollupStatsScanner
from rollup_stats.snapshot import SnapshotWriter, load_snapshot
from rollup_stats.timestamp_resolver import TimestampResolutionError

CONTRACT = "0x85BfE05492aFC3D04Ff3B2ca6771ACF6f853d90d"
T0 = 1_000_000


class FakeChain:
    """Serves pre-built events by block number and event name."""

    def __init__(
        self,
        events: list[LogEvent],
        latest: int = 1_000,
        timestamps: dict[int, int] | None = None,
        failing_ranges: set[tuple[int, int]] | None = None,
        failing_blocks: set[int] | None = None
    ) -> None:
        self.events = events
        self.latest = latest
        self.timestamps = timestamps or {}
        self.failing_ranges = failing_ranges or set()
        self.failing_blocks = failing_blocks or set()
        self.log_queries: list[tuple[int, int]] = []

    async def get_block_number(self) -> int:
        return self.latest

    async def get_logs(self, event_names, from_block, to_block):
        self.log_queries.append((from_block, to_block))
        if (from_block, to_block) in self.failing_ranges:
            raise ConnectionError("429 Too Many Requests")
        return [
            event for event in self.events
            if event.event_name in event_names and from_block <= event.block_number <= to_block
        ]

    async def get_block_timestamp(self, block_number: int) -> int:
        if block_number in self.failing_blocks:
            raise ConnectionError(f"block {block_number} unavailable")
        return self.timestamps[block_number]


def make_event(name: str, block: int, tx: str = "0x01", **args) -> LogEvent:
    return LogEvent(
        contract_address=CONTRACT,
        event_name=name,
        args=args,
        block_number=block,
        transaction_hash=tx
    )


def make_config(data_dir: Path, from_block: int = 0, to_block: int | None = None, chunk_size: int = 10_000) -> StatsConfig:
    return StatsConfig(
        chain=ChainConfig(rpc_url="https://test.rpc", contract_address=CONTRACT),
        scan=ScanConfig(from_block=from_block, to_block=to_block, chunk_size=chunk_size),
        data_dir=data_dir
    )


class TestBlockRange:
    """Tests for block range resolution."""

    @pytest.mark.asyncio
    async def test_latest_resolved_from_chain(self, tmp_path):
        scanner = RollupStatsScanner(make_config(tmp_path, from_block=10), client=FakeChain([], latest=500))

        block_range = await scanner.resolve_block_range()

        assert (block_range.from_block, block_range.to_block) == (10, 500)

    @pytest.mark.asyncio
    async def test_start_after_latest_rejected(self, tmp_path):
        scanner = RollupStatsScanner(make_config(tmp_path, from_block=900), client=FakeChain([], latest=500))

        with pytest.raises(ValueError, match="after the end block"):
            await scanner.resolve_block_range()


class TestProofScan:

    @pytest.mark.asyncio
    async def test_single_proof_in_single_block_range(self, tmp_path):
        """Range [100,100] with one proof for 0xA at L2 block 5."""
        chain = FakeChain([make_event("L2ProofVerified", 100, tx="0xt1", blockNumber=5, proverId="0xA")])
        scanner = RollupStatsScanner(make_config(tmp_path, 100, 100), client=chain)

        path = await scanner.run(ScanMode.PROOFS)
        data = load_snapshot(path)

        assert path.name.startswith("prover-stats-")
        assert data["blockRange"] == {"from": 100, "to": 100}
        assert data["summary"] == {"totalProofs": 1, "uniqueProvers": 1}
        assert data["provers"] == [{
            "address": "0xA",
            "proofCount": 1,
            "blocks": [{"blockNumber": "5", "txHash": "0xt1", "ethBlockNumber": 100}]
        }]
        assert data["complete"] is True

    @pytest.mark.asyncio
    async def test_failed_window_marks_snapshot_incomplete(self, tmp_path):
        events = [
            make_event("L2ProofVerified", 5, blockNumber=1, proverId="0xA"),
            make_event("L2ProofVerified", 15, blockNumber=2, proverId="0xB"),
            make_event("L2ProofVerified", 25, blockNumber=3, proverId="0xA"),
        ]
        chain = FakeChain(events, failing_ranges={(10, 19)})
        scanner = RollupStatsScanner(make_config(tmp_path, 0, 29, chunk_size=10), client=chain)

        snapshot = await scanner.scan_proofs()

        assert chain.log_queries == [(0, 9), (10, 19), (20, 29)]
        assert snapshot.complete is False
        assert snapshot.stats.total_proofs == 2
        assert snapshot.stats.provers[0].address == "0xA"
        assert snapshot.to_dict()["failedWindows"][0]["from"] == 10


class TestSlashScan:

    @pytest.mark.asyncio
    async def test_two_slashes_summed(self, tmp_path):
        chain = FakeChain([
            make_event("Slashed", 10, attester="0xA", amount=10),
            make_event("Slashed", 11, attester="0xA", amount=20),
        ])
        scanner = RollupStatsScanner(make_config(tmp_path, 0, 100), client=chain)

        data = load_snapshot(await scanner.run(ScanMode.SLASH))

        assert data["summary"] == {
            "totalSlashes": 2,
            "totalAmountSlashed": "30",
            "uniqueAttesters": 1
        }
        assert data["attesters"][0]["totalAmountSlashed"] == "30"


class TestExitScan:

    @pytest.fixture
    def chain(self):
        return FakeChain(
            [make_event("WithdrawInitiated", 50, attester="0xA", recipient="0xR", amount=500)],
            timestamps={50: T0}
        )

    @pytest.mark.asyncio
    async def test_exit_exactly_mature(self, tmp_path, chain):
        scanner = RollupStatsScanner(make_config(tmp_path, 0, 100), client=chain)

        snapshot = await scanner.scan_exits(now=T0 + EXIT_DELAY_SECONDS)

        assert snapshot.stats.pending_exits[0].can_finalize is True
        assert snapshot.stats.pending_can_finalize == 1
        assert snapshot.stats.pending_cannot_finalize == 0

    @pytest.mark.asyncio
    async def test_exit_one_second_early(self, tmp_path, chain):
        scanner = RollupStatsScanner(make_config(tmp_path, 0, 100), client=chain)

        snapshot = await scanner.scan_exits(now=T0 + EXIT_DELAY_SECONDS - 1)

        assert snapshot.stats.pending_exits[0].can_finalize is False
        assert snapshot.stats.pending_cannot_finalize == 1

    @pytest.mark.asyncio
    async def test_initiated_and_finalized_fetched_together(self, tmp_path):
        chain = FakeChain(
            [
                make_event("WithdrawInitiated", 10, tx="0xi1", attester="0xA", recipient="0xR", amount=1),
                make_event("WithdrawFinalised", 20, tx="0xf1", attester="0xA", recipient="0xR", amount=1),
                make_event("WithdrawInitiated", 30, tx="0xi2", attester="0xA", recipient="0xR", amount=2),
            ],
            timestamps={10: T0, 30: T0 + 100}
        )
        scanner = RollupStatsScanner(make_config(tmp_path, 0, 100), client=chain)

        snapshot = await scanner.scan_exits(now=T0)
        data = snapshot.to_dict()

        assert data["summary"]["totalInitiated"] == 2
        assert data["summary"]["totalFinalized"] == 1
        assert data["summary"]["totalPending"] == 1
        assert [exit_["txHash"] for exit_ in data["pendingExits"]] == ["0xi2"]

    @pytest.mark.asyncio
    async def test_timestamp_failure_is_fatal(self, tmp_path):
        chain = FakeChain(
            [make_event("WithdrawInitiated", 50, attester="0xA", recipient="0xR", amount=1)],
            failing_blocks={50}
        )
        writer = SnapshotWriter(tmp_path)
        scanner = RollupStatsScanner(make_config(tmp_path, 0, 100), client=chain, writer=writer)

        with pytest.raises(TimestampResolutionError):
            await scanner.run(ScanMode.EXIT)

        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_exit_snapshot_written(self, tmp_path, chain):
        scanner = RollupStatsScanner(make_config(tmp_path, 0, 100), client=chain)

        path = await scanner.run(ScanMode.EXIT)
        data = load_snapshot(path)

        assert path.name.startswith("exit-stats-")
        assert data["pendingExits"][0]["exitableAt"] == T0 + EXIT_DELAY_SECONDS
        assert data["pendingExits"][0]["amount"] == "500"
