#!/usr/bin/env python3
"""Console reports built from the latest snapshot of each kind.

Renderers return the report as a list of lines; the CLI prints them. Exit
eligibility is always recomputed against the caller's ``now`` because the
flag stored in the snapshot reflects the scan time.
"""

import math
from datetime import datetime
from pathlib import Path
from typing import Any

from web3 import Web3

from .config import ScanMode
from .eligibility import (
    can_finalize,
    count_eligibility,
    days_remaining,
    maturation_progress,
    recompute_eligibility,
)
from .models import PendingExit
from .snapshot import SNAPSHOT_PREFIXES

SCAN_COMMANDS: dict[ScanMode, str] = {
    ScanMode.PROOFS: "python main.py scan proofs",
    ScanMode.SLASH: "python main.py scan slash",
    ScanMode.EXIT: "python main.py scan exit",
}

MODE_NAMES: dict[ScanMode, str] = {
    ScanMode.PROOFS: "prover",
    ScanMode.SLASH: "slash",
    ScanMode.EXIT: "exit",
}

MAX_BAR_LENGTH = 50
RULE_WIDTH = 80


class SnapshotNotFoundError(FileNotFoundError):
    """No snapshot exists yet for the requested report."""


def find_latest_snapshot(data_dir: Path, mode: ScanMode) -> Path:
    """
    Return the most recently modified snapshot of a kind.

    Raises:
        SnapshotNotFoundError: If the data directory or matching files are missing
    """
    data_dir = Path(data_dir)
    command = SCAN_COMMANDS[mode]

    if not data_dir.is_dir():
        raise SnapshotNotFoundError(
            f"No data directory found. Run the indexer first with: {command}"
        )

    prefix = SNAPSHOT_PREFIXES[mode]
    candidates = [
        path for path in data_dir.iterdir()
        if path.is_file() and path.name.startswith(prefix) and path.suffix == ".json"
    ]
    if not candidates:
        raise SnapshotNotFoundError(
            f"No {MODE_NAMES[mode]} stats files found. Run the indexer first with: {command}"
        )

    return max(candidates, key=lambda path: path.stat().st_mtime)


def format_ether(amount: Any) -> str:
    """Format a base-unit amount (int or decimal string) as ETH."""
    value = Web3.from_wei(int(amount), "ether")
    text = f"{value:f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text if "." in text else f"{text}.0"


def short_address(address: str) -> str:
    return f"{address[:6]}...{address[-4:]}"


def _bar(count: int, max_count: int) -> str:
    if max_count <= 0:
        return ""
    return "█" * math.ceil(count / max_count * MAX_BAR_LENGTH)


def _percentage(part: int, total: int) -> str:
    return f"{part / total * 100:.2f}" if total > 0 else "0.00"


def _header(title: str, data: dict[str, Any]) -> list[str]:
    scanned_at = datetime.fromisoformat(data["scannedAt"]).astimezone()
    lines = [
        "=" * RULE_WIDTH,
        title,
        "=" * RULE_WIDTH,
        f"Scanned at: {scanned_at.strftime('%Y-%m-%d %H:%M:%S')}",
        f"Block range: {data['blockRange']['from']} to {data['blockRange']['to']}",
    ]
    if not data.get("complete", True):
        failed = data.get("failedWindows", [])
        lines.append(f"WARNING: {len(failed)} block windows failed; results may be incomplete")
    return lines


def render_proof_report(data: dict[str, Any]) -> list[str]:
    summary = data["summary"]
    provers = data["provers"]
    total = summary["totalProofs"]

    lines = _header("AZTEC TESTNET PROVER STATISTICS", data)
    lines += [
        f"Total proofs: {total}",
        f"Unique provers: {summary['uniqueProvers']}",
        "",
    ]

    if not provers:
        lines.append("No proof events found in the scanned block range.")
        return lines

    lines += ["Proofs by Prover:", "-" * RULE_WIDTH]
    for prover in provers:
        recent = ", ".join(block["blockNumber"] for block in prover["blocks"][:5])
        more = "..." if len(prover["blocks"]) > 5 else ""
        lines += [
            prover["address"],
            f"  Proofs: {prover['proofCount']} ({_percentage(prover['proofCount'], total)}%)",
            f"  Recent blocks: {recent}{more}",
            "",
        ]

    lines += ["", "Distribution Chart:", "-" * RULE_WIDTH]
    max_count = max(prover["proofCount"] for prover in provers)
    for prover in provers:
        lines.append(
            f"{short_address(prover['address'])} "
            f"{_bar(prover['proofCount'], max_count)} {prover['proofCount']}"
        )
    return lines


def render_slash_report(data: dict[str, Any]) -> list[str]:
    summary = data["summary"]
    attesters = data["attesters"]
    total = summary["totalSlashes"]

    lines = _header("AZTEC TESTNET SLASH STATISTICS", data)
    lines += [
        f"Total slashes: {total}",
        f"Total amount slashed: {format_ether(summary['totalAmountSlashed'])} ETH",
        f"Unique attesters slashed: {summary['uniqueAttesters']}",
        "",
    ]

    if not attesters:
        lines.append("No slashing events found in the scanned block range.")
        return lines

    lines += ["Slashes by Attester:", "-" * RULE_WIDTH]
    for attester in attesters:
        recent = ", ".join(
            f"{format_ether(slash['amount'])} ETH" for slash in attester["slashes"][:3]
        )
        more = "..." if len(attester["slashes"]) > 3 else ""
        lines += [
            attester["address"],
            f"  Slashes: {attester['slashCount']} ({_percentage(attester['slashCount'], total)}%)",
            f"  Total slashed: {format_ether(attester['totalAmountSlashed'])} ETH",
            f"  Recent slashes: {recent}{more}",
            "",
        ]

    lines += ["", "Slash Distribution Chart:", "-" * RULE_WIDTH]
    max_count = max(attester["slashCount"] for attester in attesters)
    for attester in attesters:
        lines.append(
            f"{short_address(attester['address'])} "
            f"{_bar(attester['slashCount'], max_count)} {attester['slashCount']}"
        )
    return lines


def render_exit_report(data: dict[str, Any], now: int) -> list[str]:
    summary = data["summary"]
    pending = recompute_eligibility(
        (PendingExit.from_dict(entry) for entry in data["pendingExits"]), now
    )
    counts = count_eligibility(pending)

    lines = _header("AZTEC TESTNET EXIT STATISTICS", data)
    lines += [
        f"Total withdrawals initiated: {summary['totalInitiated']}",
        f"Total withdrawals finalized: {summary['totalFinalized']}",
        f"Total pending exits: {summary['totalPending']}",
        f"  - Can finalize now: {counts.can_finalize}",
        f"  - Cannot finalize yet: {counts.cannot_finalize}",
        f"Unique attesters: {summary['uniqueAttesters']}",
        "",
    ]

    if not pending:
        lines += ["No pending exits found.", ""]
    else:
        lines += ["Pending Exits Timeline:", "-" * RULE_WIDTH]
        for exit_ in pending:
            amount = f"{format_ether(exit_.amount)} ETH"
            if can_finalize(exit_.exitable_at, now):
                lines.append(f"[CAN FINALIZE] {short_address(exit_.attester)}: {amount}")
            else:
                exit_date = datetime.fromtimestamp(exit_.exitable_at).strftime("%Y-%m-%d")
                lines.append(
                    f"[{exit_date} - {days_remaining(exit_.exitable_at, now)}d left] "
                    f"{short_address(exit_.attester)}: {amount}"
                )
        lines.append("")

        lines += ["Exit Timeline Visualization:", "-" * RULE_WIDTH]
        for exit_ in pending:
            progress = maturation_progress(exit_.exitable_at, now)
            filled = "█" * math.floor(progress * MAX_BAR_LENGTH)
            if progress >= 1:
                lines.append(f"{short_address(exit_.attester)} [{filled}] READY")
            else:
                empty = "░" * (MAX_BAR_LENGTH - len(filled))
                lines.append(
                    f"{short_address(exit_.attester)} [{filled}{empty}] {progress * 100:.0f}%"
                )
        lines.append("")

    if data["attesters"]:
        lines += ["Exits by Attester:", "-" * RULE_WIDTH]
        for attester in data["attesters"]:
            pending_count = attester["initiatedCount"] - attester["finalizedCount"]
            lines += [
                attester["address"],
                f"  Initiated: {attester['initiatedCount']}, "
                f"Finalized: {attester['finalizedCount']}, Pending: {pending_count}",
                f"  Amount: {format_ether(attester['totalInitiatedAmount'])} ETH initiated, "
                f"{format_ether(attester['totalFinalizedAmount'])} ETH finalized",
                "",
            ]
    return lines
