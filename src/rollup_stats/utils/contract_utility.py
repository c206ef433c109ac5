import json
from pathlib import Path
from typing import Any

from web3 import Web3


class ContractUtility:
    """
    Utility for ABI loading and event topic lookup.

    The rollup ABI ships with the package under ``contracts/``; only the
    events the scanner decodes are included.
    """

    def __init__(self, contract_name: str = "Rollup") -> None:
        """
        Initialize the ContractUtility.

        Args:
            contract_name: Name of the contract ABI file (without .json extension)
        """
        self.contract_name = contract_name
        self.abi = self.get_contract_abi(contract_name)

    @staticmethod
    def get_contract_abi(contract_name: str) -> list[dict[str, Any]]:
        """Fetches ABI of the given contract from the contracts folder.

        Args:
            contract_name: Name of the contract (without .json extension)

        Returns:
            List of ABI dictionaries for the contract

        Raises:
            FileNotFoundError: If the contract file doesn't exist
            json.JSONDecodeError: If the contract file is invalid JSON
        """
        contract_path: Path = (
            Path(__file__).parent.parent
            / "contracts"
            / f"{contract_name}.json"
        ).resolve()

        with contract_path.open() as file:
            contract_data: dict[str, Any] = json.load(file)

        return contract_data["abi"]

    def get_event_abi(self, event_name: str) -> dict[str, Any]:
        """Return the ABI entry of an event.

        Raises:
            ValueError: If the event is not part of the ABI
        """
        for entry in self.abi:
            if entry.get("type") == "event" and entry.get("name") == event_name:
                return entry
        raise ValueError(f"Event {event_name} not found in {self.contract_name} ABI")

    def event_signature(self, event_name: str) -> str:
        """Canonical signature, e.g. ``Slashed(address,uint256)``."""
        event_abi = self.get_event_abi(event_name)
        input_types = ",".join(arg["type"] for arg in event_abi.get("inputs", []))
        return f"{event_name}({input_types})"

    def event_topic(self, event_name: str) -> str:
        """Keccak-256 topic of an event as lowercase 0x-prefixed hex."""
        return Web3.to_hex(Web3.keccak(text=self.event_signature(event_name)))

    def event_names(self) -> list[str]:
        return [entry["name"] for entry in self.abi if entry.get("type") == "event"]
