#!/usr/bin/env python3
"""Unit tests for exit aggregation and eligibility derivation."""

import pytest

from rollup_stats.eligibility import (
    EXIT_DELAY_SECONDS,
    can_finalize,
    count_eligibility,
    days_remaining,
    maturation_progress,
    maturation_timestamp,
    recompute_eligibility,
)
from rollup_stats.exit_aggregator import ExitAggregator, split_exit_events
from rollup_stats.models import LogEvent, PendingExit

CONTRACT = "0x85BfE05492aFC3D04Ff3B2ca6771ACF6f853d90d"
T0 = 1_000_000


def initiated(attester: str, amount: int, block: int, tx: str = "0xi") -> LogEvent:
    return LogEvent(
        contract_address=CONTRACT,
        event_name="WithdrawInitiated",
        args={"attester": attester, "recipient": f"{attester}-r", "amount": amount},
        block_number=block,
        transaction_hash=tx
    )


def finalized(attester: str, amount: int, block: int, tx: str = "0xf") -> LogEvent:
    return LogEvent(
        contract_address=CONTRACT,
        event_name="WithdrawFinalised",
        args={"attester": attester, "recipient": f"{attester}-r", "amount": amount},
        block_number=block,
        transaction_hash=tx
    )


def pending_exit(exitable_at: int, attester: str = "0xA") -> PendingExit:
    return PendingExit(
        attester=attester,
        recipient="0xR",
        amount=1,
        tx_hash="0x1",
        eth_block_number=1,
        initiated_at=exitable_at - EXIT_DELAY_SECONDS,
        exitable_at=exitable_at,
        can_finalize=False
    )


class TestEligibility:
    """Tests for the pure eligibility helpers."""

    def test_exit_delay_is_fourteen_days(self):
        assert EXIT_DELAY_SECONDS == 1_209_600

    def test_maturation_timestamp(self):
        assert maturation_timestamp(T0) == T0 + 1_209_600

    @pytest.mark.parametrize("now,expected", [
        (T0 + EXIT_DELAY_SECONDS - 1, False),
        (T0 + EXIT_DELAY_SECONDS, True),
        (T0 + EXIT_DELAY_SECONDS + 1, True),
    ])
    def test_can_finalize_boundary(self, now, expected):
        assert can_finalize(maturation_timestamp(T0), now) is expected

    def test_recompute_is_idempotent(self):
        exits = [pending_exit(T0 + i * 100) for i in range(5)]

        first = recompute_eligibility(exits, T0 + 250)
        second = recompute_eligibility(first, T0 + 250)

        assert [e.can_finalize for e in first] == [e.can_finalize for e in second]
        assert [e.can_finalize for e in first] == [True, True, True, False, False]

    def test_moving_now_flips_only_exits_in_between(self):
        exits = [pending_exit(T0 + i * 100) for i in range(6)]

        before = recompute_eligibility(exits, T0 + 150)
        after = recompute_eligibility(exits, T0 + 350)

        flipped = [
            b.exitable_at for b, a in zip(before, after)
            if b.can_finalize != a.can_finalize
        ]
        assert flipped == [T0 + 200, T0 + 300]

    def test_recompute_does_not_mutate_input(self):
        exits = (pending_exit(T0),)

        recompute_eligibility(exits, T0 + 1)

        assert exits[0].can_finalize is False

    def test_count_eligibility(self):
        exits = recompute_eligibility([pending_exit(T0), pending_exit(T0 + 10)], T0 + 5)

        counts = count_eligibility(exits)

        assert (counts.can_finalize, counts.cannot_finalize) == (1, 1)

    @pytest.mark.parametrize("remaining,expected_days", [
        (0, 0),
        (-5, 0),
        (1, 1),
        (86_400, 1),
        (86_401, 2),
        (EXIT_DELAY_SECONDS, 14),
    ])
    def test_days_remaining(self, remaining, expected_days):
        assert days_remaining(T0 + remaining, T0) == expected_days

    def test_maturation_progress_clamped(self):
        exitable_at = maturation_timestamp(T0)

        assert maturation_progress(exitable_at, T0 - 100) == 0.0
        assert maturation_progress(exitable_at, T0 + EXIT_DELAY_SECONDS // 2) == pytest.approx(0.5)
        assert maturation_progress(exitable_at, exitable_at + 100) == 1.0


class TestExitAggregator:
    """Tests for ExitAggregator."""

    def test_single_initiated_exactly_mature(self):
        """Exit is finalizable at exactly initiation + 14 days."""
        now = T0 + EXIT_DELAY_SECONDS
        stats = ExitAggregator(now).consume([initiated("0xA", 500, 10)], [], {10: T0}).summarize()

        assert stats.total_pending == 1
        assert stats.pending_can_finalize == 1
        assert stats.pending_cannot_finalize == 0
        exit_ = stats.pending_exits[0]
        assert exit_.can_finalize is True
        assert exit_.exitable_at == T0 + 1_209_600
        assert exit_.amount == 500

    def test_single_initiated_one_second_early(self):
        now = T0 + EXIT_DELAY_SECONDS - 1
        stats = ExitAggregator(now).consume([initiated("0xA", 500, 10)], [], {10: T0}).summarize()

        assert stats.pending_exits[0].can_finalize is False
        assert stats.pending_can_finalize == 0
        assert stats.pending_cannot_finalize == 1

    def test_pending_is_newest_tail_of_initiated(self):
        """Finalizations consume the oldest initiated withdrawals first."""
        events = [initiated("0xA", amount, block, tx=f"0x{block}") for amount, block in
                  [(100, 1), (200, 2), (300, 3)]]
        timestamps = {1: T0, 2: T0 + 10, 3: T0 + 20}

        stats = ExitAggregator(T0).consume(events, [finalized("0xA", 100, 5)], timestamps).summarize()

        assert [e.tx_hash for e in stats.pending_exits] == ["0x2", "0x3"]
        assert stats.total_pending == 2

    @pytest.mark.parametrize("n_initiated,n_finalized", [
        (0, 0), (1, 0), (3, 1), (2, 2), (1, 3), (0, 2), (5, 0),
    ])
    def test_pending_count_invariant(self, n_initiated, n_finalized):
        init_events = [initiated("0xA", 1, i) for i in range(n_initiated)]
        final_events = [finalized("0xA", 1, 100 + i) for i in range(n_finalized)]
        timestamps = {i: T0 + i for i in range(n_initiated)}

        stats = ExitAggregator(T0).consume(init_events, final_events, timestamps).summarize()

        expected = max(0, n_initiated - n_finalized)
        assert len([e for e in stats.pending_exits if e.attester == "0xA"]) == expected
        assert stats.total_pending == expected

    def test_more_finalized_than_initiated(self):
        """Finalizations for withdrawals outside the range give no pending exits."""
        stats = ExitAggregator(T0).consume(
            [initiated("0xA", 50, 1)],
            [finalized("0xA", 50, 2), finalized("0xA", 70, 3)],
            {1: T0}
        ).summarize()

        record = stats.attesters[0]
        assert record.pending_count == -1
        assert stats.pending_exits == ()
        assert stats.total_finalized == 2

    def test_finalized_only_attester_counted(self):
        stats = ExitAggregator(T0).consume([], [finalized("0xB", 5, 1)], {}).summarize()

        assert stats.unique_attesters == 1
        assert stats.attesters[0].finalized_count == 1
        assert stats.attesters[0].total_finalized_amount == 5

    def test_amounts_accumulated_exactly(self):
        big = 2**130
        stats = ExitAggregator(T0).consume(
            [initiated("0xA", big, 1), initiated("0xA", big + 1, 2)],
            [finalized("0xA", big, 3)],
            {1: T0, 2: T0}
        ).summarize()

        record = stats.attesters[0].to_dict()
        assert record["totalInitiatedAmount"] == str(2 * big + 1)
        assert record["totalFinalizedAmount"] == str(big)

    def test_pending_sorted_by_maturation(self):
        events = [
            initiated("0xA", 1, 3, tx="0xa3"),
            initiated("0xB", 1, 1, tx="0xb1"),
            initiated("0xC", 1, 2, tx="0xc2"),
        ]
        timestamps = {1: T0, 2: T0 + 50, 3: T0 + 100}

        stats = ExitAggregator(T0).consume(events, [], timestamps).summarize()

        assert [e.tx_hash for e in stats.pending_exits] == ["0xb1", "0xc2", "0xa3"]

    def test_attesters_sorted_by_initiated_count_stable(self):
        events = [
            initiated("0xB", 1, 1),
            initiated("0xA", 1, 1),
            initiated("0xC", 1, 1),
            initiated("0xC", 1, 1),
        ]

        stats = ExitAggregator(T0).consume(events, [], {1: T0}).summarize()

        assert [a.address for a in stats.attesters] == ["0xC", "0xB", "0xA"]

    def test_missing_timestamp_raises(self):
        with pytest.raises(KeyError):
            ExitAggregator(T0).consume([initiated("0xA", 1, 99)], [], {})

    def test_summary_serialization(self):
        stats = ExitAggregator(T0 + EXIT_DELAY_SECONDS).consume(
            [initiated("0xA", 500, 10, tx="0x10")], [], {10: T0}
        ).summarize()

        data = stats.to_dict()
        assert data["summary"] == {
            "totalInitiated": 1,
            "totalFinalized": 0,
            "totalPending": 1,
            "pendingCanFinalize": 1,
            "pendingCannotFinalize": 0,
            "uniqueAttesters": 1
        }
        assert data["pendingExits"][0] == {
            "attester": "0xA",
            "recipient": "0xA-r",
            "amount": "500",
            "txHash": "0x10",
            "ethBlockNumber": 10,
            "initiatedAt": T0,
            "exitableAt": T0 + EXIT_DELAY_SECONDS,
            "canFinalize": True
        }

    def test_pending_exit_round_trips_from_snapshot(self):
        stats = ExitAggregator(T0).consume([initiated("0xA", 2**129, 10)], [], {10: T0}).summarize()

        rebuilt = PendingExit.from_dict(stats.pending_exits[0].to_dict())

        assert rebuilt == stats.pending_exits[0]


class TestSplitExitEvents:
    """Tests for split_exit_events."""

    def test_preserves_order_within_type(self):
        events = [
            initiated("0xA", 1, 1, tx="i1"),
            finalized("0xA", 1, 2, tx="f1"),
            initiated("0xA", 1, 3, tx="i2"),
            finalized("0xA", 1, 4, tx="f2"),
        ]

        init_events, final_events = split_exit_events(events)

        assert [e.transaction_hash for e in init_events] == ["i1", "i2"]
        assert [e.transaction_hash for e in final_events] == ["f1", "f2"]

    def test_ignores_other_events(self):
        other = LogEvent(CONTRACT, "Slashed", {"attester": "0xA", "amount": 1}, 1, "0x1")

        assert split_exit_events([other]) == ([], [])
