"""Unit tests for the persistent address registry."""

import json
from pathlib import Path

import pytest

from lending_deployments.registry import JsonRegistry, load_registry_file, save_registry_file

from ..conftest import DEPLOYER, make_address


@pytest.fixture
def registry_file(tmp_path: Path) -> Path:
    """Registry with entries on two networks."""
    path = tmp_path / "deployed-contracts.json"
    path.write_text(
        json.dumps(
            {
                "PoolAddressesProvider": {
                    "sepolia": {"address": make_address(1), "deployer": DEPLOYER},
                    "mainnet": {"address": make_address(2), "deployer": DEPLOYER},
                },
                "Pool": {
                    "sepolia": {"address": make_address(3), "deployer": DEPLOYER},
                },
            }
        )
    )
    return path


class TestLoadRegistryFile:
    """Test the load_registry_file function."""

    def test_loads_existing_file(self, registry_file: Path):
        """Test loading an existing registry file."""
        registry = load_registry_file(registry_file)

        assert registry["Pool"]["sepolia"]["address"] == make_address(3)
        assert set(registry["PoolAddressesProvider"]) == {"sepolia", "mainnet"}

    def test_returns_empty_dict_when_file_missing(self, tmp_path: Path):
        """Test that a missing file is an empty registry."""
        assert load_registry_file(tmp_path / "does_not_exist.json") == {}

    def test_corrupted_file_raises(self, tmp_path: Path):
        """Test that a corrupted registry is reported instead of discarded."""
        corrupted = tmp_path / "corrupted.json"
        corrupted.write_text("{ invalid json")

        with pytest.raises(json.JSONDecodeError):
            load_registry_file(corrupted)


class TestSaveRegistryFile:
    """Test the save_registry_file function."""

    def test_creates_parent_directories(self, tmp_path: Path):
        """Test that missing directories are created."""
        path = tmp_path / "nested" / "dir" / "deployed-contracts.json"

        save_registry_file({"Pool": {"hardhat": {"address": make_address(1)}}}, path)

        assert json.loads(path.read_text()) == {"Pool": {"hardhat": {"address": make_address(1)}}}

    def test_overwrites_existing_file(self, registry_file: Path):
        """Test that saving replaces the file contents."""
        save_registry_file({}, registry_file)

        assert load_registry_file(registry_file) == {}


class TestJsonRegistry:
    """Test reading and merging per-network addresses."""

    def test_load_filters_by_network(self, registry_file: Path):
        """Test that only the requested network's addresses are returned."""
        registry = JsonRegistry(registry_file)

        assert registry.load("sepolia") == {
            "PoolAddressesProvider": make_address(1),
            "Pool": make_address(3),
        }
        assert registry.load("mainnet") == {"PoolAddressesProvider": make_address(2)}
        assert registry.load("hardhat") == {}

    def test_networks(self, registry_file: Path):
        """Test listing networks with recorded addresses."""
        assert JsonRegistry(registry_file).networks() == ["mainnet", "sepolia"]

    def test_load_ledger(self, registry_file: Path):
        """Test continuing a session from recorded addresses."""
        ledger = JsonRegistry(registry_file).load_ledger("sepolia")

        assert ledger.get("Pool") == make_address(3)
        assert len(ledger) == 2

    def test_save_merges_without_touching_other_networks(self, registry_file: Path):
        """Test that saving one network keeps the other network's entries."""
        registry = JsonRegistry(registry_file)

        registry.save(
            "mainnet",
            {"PoolAddressesProvider": make_address(20), "Pool": make_address(21)},
            deployer=DEPLOYER,
        )

        assert registry.load("mainnet") == {
            "PoolAddressesProvider": make_address(20),
            "Pool": make_address(21),
        }
        assert registry.load("sepolia")["Pool"] == make_address(3)

    def test_save_records_deployer(self, tmp_path: Path):
        """Test the stored entry layout."""
        path = tmp_path / "deployed-contracts.json"

        returned = JsonRegistry(path).save("hardhat", {"Pool": make_address(1)}, deployer=DEPLOYER)

        assert returned == path
        assert load_registry_file(path) == {
            "Pool": {"hardhat": {"address": make_address(1), "deployer": DEPLOYER}}
        }

    def test_default_path(self, tmp_path: Path, monkeypatch):
        """Test that the registry defaults to the working directory."""
        monkeypatch.chdir(tmp_path)

        registry = JsonRegistry()

        assert registry.path == tmp_path / ".lending-deployments" / "deployed-contracts.json"

    def test_save_with_replace_drops_network_entries(self, registry_file: Path):
        """Test that replacing a network removes contracts missing from the snapshot."""
        registry = JsonRegistry(registry_file)

        registry.save("sepolia", {"Pool": make_address(30)}, deployer=DEPLOYER, replace=True)

        assert registry.load("sepolia") == {"Pool": make_address(30)}
        assert registry.load("mainnet") == {"PoolAddressesProvider": make_address(2)}

    def test_replace_removes_emptied_contracts(self, registry_file: Path):
        """Test that a contract recorded only on the replaced network disappears from the file."""
        JsonRegistry(registry_file).save(
            "sepolia", {"PriceOracle": make_address(31)}, deployer=DEPLOYER, replace=True
        )

        registry = load_registry_file(registry_file)
        assert set(registry) == {"PoolAddressesProvider", "PriceOracle"}
        assert set(registry["PoolAddressesProvider"]) == {"mainnet"}
