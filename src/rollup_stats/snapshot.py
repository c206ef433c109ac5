"""
Write-once snapshot persistence.

Each scan produces one ``<prefix>-<epoch-ms>.json`` file. Files are created
exclusively and never rewritten.
"""

import json
import logging
import time
from pathlib import Path
from typing import Any

from .config import ScanMode
from .models import ScanSnapshot

SNAPSHOT_PREFIXES: dict[ScanMode, str] = {
    ScanMode.PROOFS: "prover-stats-",
    ScanMode.SLASH: "slash-stats-",
    ScanMode.EXIT: "exit-stats-",
}

# Get logger for this module
logger = logging.getLogger(__name__)


class SnapshotWriter:
    """Serializes scan snapshots to timestamp-named JSON files."""

    def __init__(self, data_dir: Path) -> None:
        self.data_dir = Path(data_dir)
        self._last_stamp = 0

    def _next_stamp(self) -> int:
        stamp = max(time.time_ns() // 1_000_000, self._last_stamp + 1)
        self._last_stamp = stamp
        return stamp

    def write(self, snapshot: ScanSnapshot) -> Path:
        """
        Persist a snapshot.

        Args:
            snapshot: The snapshot to write

        Returns:
            Path of the created file
        """
        mode = ScanMode(snapshot.kind)
        prefix = SNAPSHOT_PREFIXES[mode]
        payload = json.dumps(snapshot.to_dict(), indent=2)

        self.data_dir.mkdir(parents=True, exist_ok=True)

        while True:
            path = self.data_dir / f"{prefix}{self._next_stamp()}.json"
            try:
                with path.open("x", encoding="utf-8") as file:
                    file.write(payload)
            except FileExistsError:
                logger.debug(f"Snapshot {path.name} already exists, bumping timestamp")
                continue
            break

        logger.info(f"Detailed data saved to: {path}")
        return path


def load_snapshot(path: Path) -> dict[str, Any]:
    """Read a snapshot document."""
    with Path(path).open(encoding="utf-8") as file:
        return json.load(file)
