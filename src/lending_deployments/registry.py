"""Persistent address registry for lending-deployments library."""

import json
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from .ledger import AddressLedger
from .paths import get_registry_path


def load_registry_file(registry_path: Path) -> Dict[str, Dict[str, Dict[str, Any]]]:
    """
    Load the registry file or return an empty dict.

    Args:
        registry_path: Path to deployed-contracts.json

    Returns:
        Dictionary mapping contract id -> network -> {"address", "deployer"}
        Empty dict if file doesn't exist

    Raises:
        json.JSONDecodeError: If the file exists but is corrupted. Recorded
            addresses are never silently discarded.
    """
    try:
        with open(registry_path) as f:
            return json.load(f)
    except FileNotFoundError:
        return {}


def save_registry_file(
    registry: Dict[str, Dict[str, Dict[str, Any]]], registry_path: Path
) -> None:
    """
    Save the registry to disk.

    Creates parent directories if they don't exist.
    """
    registry_path.parent.mkdir(parents=True, exist_ok=True)
    with open(registry_path, "w") as f:
        json.dump(registry, f, indent=2)


class JsonRegistry:
    """Deployed addresses across sessions, stored as one JSON file for all networks."""

    def __init__(self, registry_path: Optional[Union[Path, str]] = None):
        self.path = Path(registry_path) if registry_path is not None else get_registry_path()

    def networks(self) -> list[str]:
        registry = load_registry_file(self.path)
        return sorted({network for entry in registry.values() for network in entry})

    def load(self, network: str) -> Mapping[str, str]:
        """
        Get the recorded addresses for a network.

        Returns:
            Mapping of contract id -> address, in file order
        """
        registry = load_registry_file(self.path)
        return {
            contract_id: networks[network]["address"]
            for contract_id, networks in registry.items()
            if network in networks
        }

    def load_ledger(self, network: str) -> AddressLedger:
        """Continue a session from the addresses recorded for a network."""
        return AddressLedger.from_snapshot(self.load(network))

    def save(
        self,
        network: str,
        snapshot: Mapping[str, str],
        deployer: Optional[str] = None,
        replace: bool = False,
    ) -> Path:
        """
        Merge deployed addresses into the registry file.

        Entries for other networks are left untouched. Contracts in the
        snapshot get a new address and deployer on this network; other
        contracts recorded on this network are kept unless replace is set.

        Args:
            network: Network the contracts were deployed to
            snapshot: Contract id -> address to record
            deployer: Account that deployed the snapshot's contracts
            replace: Drop every address previously recorded for this network

        Returns:
            Path of the registry file
        """
        registry = load_registry_file(self.path)

        if replace:
            for contract_id in list(registry):
                registry[contract_id].pop(network, None)
                if not registry[contract_id]:
                    del registry[contract_id]

        for contract_id, address in snapshot.items():
            registry.setdefault(contract_id, {})[network] = {
                "address": address,
                "deployer": deployer,
            }

        save_registry_file(registry, self.path)
        return self.path
