#!/usr/bin/env python3
"""Data models for the rollup statistics scanner.

This module provides immutable data classes for the decoded contract events,
the per-actor records produced by the aggregators and the scan snapshot that
gets persisted at the end of a run.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True, slots=True)
class LogEvent:
    """A decoded contract event log.

    Attributes:
        contract_address: Checksummed address of the emitting contract
        event_name: ABI name of the event (e.g. 'L2ProofVerified')
        args: Decoded event arguments keyed by ABI input name
        block_number: Block number where the event was emitted
        transaction_hash: Hash of the emitting transaction (with 0x prefix)
        log_index: Index of the log entry in the block
    """

    contract_address: str
    event_name: str
    args: dict[str, Any]
    block_number: int
    transaction_hash: str
    log_index: int = 0

    def __str__(self) -> str:
        """Human-readable string representation."""
        return (
            f"LogEvent({self.event_name}, "
            f"block={self.block_number}, "
            f"tx={self.transaction_hash[:10]}...)"
        )


@dataclass(frozen=True, slots=True)
class BlockWindow:
    """An inclusive range of blocks queried in a single log request."""

    from_block: int
    to_block: int

    @property
    def size(self) -> int:
        return self.to_block - self.from_block + 1

    def __str__(self) -> str:
        return f"{self.from_block}-{self.to_block}"


@dataclass(frozen=True, slots=True)
class FailedWindow:
    """A window whose log query failed and was skipped."""

    window: BlockWindow
    error: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "from": self.window.from_block,
            "to": self.window.to_block,
            "error": self.error
        }


@dataclass(frozen=True, slots=True)
class FetchResult:
    """Outcome of a chunked log scan.

    A scan is best-effort: windows that failed are listed in
    ``failed_windows`` and contributed no events.

    Attributes:
        events: Retrieved events in window order, then provider order
        windows_total: Number of windows the range was split into
        failed_windows: Windows that were skipped because the query failed
    """

    events: tuple[LogEvent, ...]
    windows_total: int
    failed_windows: tuple[FailedWindow, ...] = ()

    @property
    def complete(self) -> bool:
        """True if every window was retrieved successfully."""
        return not self.failed_windows


@dataclass(frozen=True, slots=True)
class ProofReference:
    """A single proof submission by a prover."""

    l2_block_number: int
    tx_hash: str
    eth_block_number: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "blockNumber": str(self.l2_block_number),
            "txHash": self.tx_hash,
            "ethBlockNumber": self.eth_block_number
        }


@dataclass(frozen=True, slots=True)
class ProverRecord:
    """Proof statistics for a single prover address."""

    address: str
    proof_count: int
    blocks: tuple[ProofReference, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "proofCount": self.proof_count,
            "blocks": [block.to_dict() for block in self.blocks]
        }


@dataclass(frozen=True, slots=True)
class SlashDetail:
    """A single slashing of an attester."""

    amount: int
    tx_hash: str
    eth_block_number: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "amount": str(self.amount),
            "txHash": self.tx_hash,
            "ethBlockNumber": self.eth_block_number
        }


@dataclass(frozen=True, slots=True)
class AttesterSlashRecord:
    """Slashing statistics for a single attester address."""

    address: str
    slash_count: int
    total_amount_slashed: int
    slashes: tuple[SlashDetail, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "slashCount": self.slash_count,
            "totalAmountSlashed": str(self.total_amount_slashed),
            "slashes": [slash.to_dict() for slash in self.slashes]
        }


@dataclass(frozen=True, slots=True)
class InitiatedWithdrawal:
    """A WithdrawInitiated event with its resolved maturation time.

    Attributes:
        recipient: Address receiving the withdrawn stake
        amount: Withdrawn amount in base units
        tx_hash: Hash of the initiating transaction
        eth_block_number: Block of the initiating transaction
        initiated_at: Timestamp of that block
        exitable_at: Timestamp after which the withdrawal can be finalized
        can_finalize: Whether ``exitable_at`` had passed at scan time
    """

    recipient: str
    amount: int
    tx_hash: str
    eth_block_number: int
    initiated_at: int
    exitable_at: int
    can_finalize: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "recipient": self.recipient,
            "amount": str(self.amount),
            "txHash": self.tx_hash,
            "ethBlockNumber": self.eth_block_number,
            "initiatedAt": self.initiated_at,
            "exitableAt": self.exitable_at,
            "canFinalize": self.can_finalize
        }


@dataclass(frozen=True, slots=True)
class FinalizedWithdrawal:
    """A WithdrawFinalised event."""

    recipient: str
    amount: int
    tx_hash: str
    eth_block_number: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "recipient": self.recipient,
            "amount": str(self.amount),
            "txHash": self.tx_hash,
            "ethBlockNumber": self.eth_block_number
        }


@dataclass(frozen=True, slots=True)
class AttesterExitRecord:
    """Withdrawal lifecycle statistics for a single attester address."""

    address: str
    initiated_count: int
    finalized_count: int
    total_initiated_amount: int
    total_finalized_amount: int
    initiated: tuple[InitiatedWithdrawal, ...]
    finalized: tuple[FinalizedWithdrawal, ...]

    @property
    def pending_count(self) -> int:
        """Initiated minus finalized; may be negative for partial ranges."""
        return self.initiated_count - self.finalized_count

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "initiatedCount": self.initiated_count,
            "finalizedCount": self.finalized_count,
            "totalInitiatedAmount": str(self.total_initiated_amount),
            "totalFinalizedAmount": str(self.total_finalized_amount),
            "initiated": [withdrawal.to_dict() for withdrawal in self.initiated],
            "finalized": [withdrawal.to_dict() for withdrawal in self.finalized]
        }


@dataclass(frozen=True, slots=True)
class PendingExit:
    """An initiated withdrawal not yet matched by a finalization."""

    attester: str
    recipient: str
    amount: int
    tx_hash: str
    eth_block_number: int
    initiated_at: int
    exitable_at: int
    can_finalize: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "attester": self.attester,
            "recipient": self.recipient,
            "amount": str(self.amount),
            "txHash": self.tx_hash,
            "ethBlockNumber": self.eth_block_number,
            "initiatedAt": self.initiated_at,
            "exitableAt": self.exitable_at,
            "canFinalize": self.can_finalize
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PendingExit":
        """Rebuild a pending exit from its snapshot representation."""
        return cls(
            attester=data["attester"],
            recipient=data.get("recipient", ""),
            amount=int(data["amount"]),
            tx_hash=data.get("txHash", ""),
            eth_block_number=int(data.get("ethBlockNumber", 0)),
            initiated_at=int(data["initiatedAt"]),
            exitable_at=int(data["exitableAt"]),
            can_finalize=bool(data.get("canFinalize", False))
        )


@dataclass(frozen=True, slots=True)
class ProofStats:
    """Summary of a proof scan."""

    total_proofs: int
    unique_provers: int
    provers: tuple[ProverRecord, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": {
                "totalProofs": self.total_proofs,
                "uniqueProvers": self.unique_provers
            },
            "provers": [prover.to_dict() for prover in self.provers]
        }


@dataclass(frozen=True, slots=True)
class SlashStats:
    """Summary of a slashing scan."""

    total_slashes: int
    total_amount_slashed: int
    unique_attesters: int
    attesters: tuple[AttesterSlashRecord, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": {
                "totalSlashes": self.total_slashes,
                "totalAmountSlashed": str(self.total_amount_slashed),
                "uniqueAttesters": self.unique_attesters
            },
            "attesters": [attester.to_dict() for attester in self.attesters]
        }


@dataclass(frozen=True, slots=True)
class ExitStats:
    """Summary of a withdrawal lifecycle scan."""

    total_initiated: int
    total_finalized: int
    total_pending: int
    pending_can_finalize: int
    pending_cannot_finalize: int
    unique_attesters: int
    pending_exits: tuple[PendingExit, ...]
    attesters: tuple[AttesterExitRecord, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": {
                "totalInitiated": self.total_initiated,
                "totalFinalized": self.total_finalized,
                "totalPending": self.total_pending,
                "pendingCanFinalize": self.pending_can_finalize,
                "pendingCannotFinalize": self.pending_cannot_finalize,
                "uniqueAttesters": self.unique_attesters
            },
            "pendingExits": [exit_.to_dict() for exit_ in self.pending_exits],
            "attesters": [attester.to_dict() for attester in self.attesters]
        }


@dataclass(frozen=True, slots=True)
class ScanSnapshot:
    """Everything persisted for one scan.

    Attributes:
        kind: Snapshot family ('proofs', 'slash' or 'exit')
        scanned_at: Wall-clock time the scan finished
        block_range: Scanned inclusive block range
        stats: Aggregated statistics for the taxonomy
        failed_windows: Windows skipped during the scan
    """

    kind: str
    scanned_at: datetime
    block_range: BlockWindow
    stats: ProofStats | SlashStats | ExitStats
    failed_windows: tuple[FailedWindow, ...] = field(default=())

    @property
    def complete(self) -> bool:
        return not self.failed_windows

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON document written to disk."""
        return {
            "scannedAt": self.scanned_at.isoformat(),
            "blockRange": {
                "from": self.block_range.from_block,
                "to": self.block_range.to_block
            },
            "complete": self.complete,
            "failedWindows": [failed.to_dict() for failed in self.failed_windows],
            **self.stats.to_dict()
        }
