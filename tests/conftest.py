"""Shared pytest fixtures for lending-deployments tests."""

import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest
import responses

from lending_deployments.constants import PROTOCOL_LIBRARIES
from lending_deployments.linker import library_placeholder
from lending_deployments.types import DeploymentNode, DeployRequest, SessionContext

RPC_URL = "http://rpc.example.com"
DEPLOYER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

INITIALIZE_ABI = {
    "type": "function",
    "name": "initialize",
    "inputs": [
        {"name": "pool", "type": "address"},
        {"name": "treasury", "type": "address"},
        {"name": "underlyingAsset", "type": "address"},
        {"name": "incentivesController", "type": "address"},
        {"name": "decimals", "type": "uint8"},
        {"name": "name", "type": "string"},
        {"name": "symbol", "type": "string"},
        {"name": "params", "type": "bytes"},
    ],
    "outputs": [],
}


BLOCK = {
    "number": "0x1",
    "hash": "0x" + "11" * 32,
    "parentHash": "0x" + "00" * 32,
    "timestamp": "0x6553f100",
    "gasLimit": "0x1c9c380",
    "gasUsed": "0x0",
    "baseFeePerGas": "0x3b9aca00",
    "miner": "0x" + "00" * 20,
    "transactions": [],
}

FIXED_RESULTS = {
    "eth_estimateGas": "0x100000",
    "eth_gasPrice": "0x3b9aca00",
    "eth_maxPriorityFeePerGas": "0x3b9aca00",
    "eth_blockNumber": "0x1",
    "eth_getTransactionCount": "0x0",
    "net_version": "31337",
}


def make_address(n: int) -> str:
    """Deterministic 20 byte address for tests."""
    return "0x" + f"{n:040x}"


RATE_PARAM_NAMES = [
    "optimalUtilizationRate",
    "baseVariableBorrowRate",
    "variableRateSlope1",
    "variableRateSlope2",
    "stableRateSlope1",
    "stableRateSlope2",
]


def constructor_abi(*address_names: str) -> Dict[str, Any]:
    """Constructor ABI entry taking one address per name."""
    return {
        "type": "constructor",
        "inputs": [{"name": name, "type": "address"} for name in address_names],
    }


def _library_source(name: str) -> str:
    return PROTOCOL_LIBRARIES[name].split(":")[0]


def _links(*libraries: str) -> Dict[str, Dict[str, List[Dict[str, int]]]]:
    return {_library_source(lib): {lib: [{"start": 3, "length": 20}]} for lib in libraries}


def _bytecode(*libraries: str) -> str:
    body = "".join(library_placeholder(PROTOCOL_LIBRARIES[lib]) for lib in libraries)
    return "0x608060" + body + "00"


def write_artifact(
    artifacts_dir: Path,
    source_name: str,
    contract_name: str,
    abi: Optional[List[Dict[str, Any]]] = None,
    bytecode: str = "0x6080604052",
    link_references: Optional[Dict[str, Any]] = None,
) -> Path:
    """Write a Hardhat artifact and its debug file."""
    contract_dir = artifacts_dir / source_name
    contract_dir.mkdir(parents=True, exist_ok=True)
    artifact_path = contract_dir / f"{contract_name}.json"
    artifact_path.write_text(
        json.dumps(
            {
                "_format": "hh-sol-artifact-1",
                "contractName": contract_name,
                "sourceName": source_name,
                "abi": abi or [],
                "bytecode": bytecode,
                "deployedBytecode": bytecode,
                "linkReferences": link_references or {},
                "deployedLinkReferences": {},
            }
        )
    )

    depth = len(Path(source_name).parts)
    (contract_dir / f"{contract_name}.dbg.json").write_text(
        json.dumps(
            {
                "_format": "hh-sol-dbg-1",
                "buildInfo": "/".join([".."] * depth) + "/build-info/abc123.json",
            }
        )
    )
    return artifact_path


@pytest.fixture
def context() -> SessionContext:
    """Session on the local hardhat network."""
    return SessionContext(network="hardhat", chain_id=31337, sender=DEPLOYER)


@pytest.fixture
def make_node() -> Callable[..., DeploymentNode]:
    """
    Factory for nodes with in-memory deploy functions.

    Every deploy appends its request to ``calls`` and returns a fresh
    address, so tests can check ordering and resolved inputs.
    """
    counter = iter(range(1, 10_000))
    calls: List[DeployRequest] = []

    def factory(node_id: str, dependencies=(), fail: bool = False, **kwargs) -> DeploymentNode:
        def deploy(request: DeployRequest) -> str:
            calls.append(request)
            if fail:
                raise RuntimeError(f"{node_id} reverted")
            return make_address(next(counter))

        return DeploymentNode(id=node_id, deploy_fn=deploy, dependencies=dependencies, **kwargs)

    factory.calls = calls
    return factory


@pytest.fixture
def artifacts_dir(tmp_path: Path) -> Path:
    """Hardhat artifacts tree with the protocol's contracts."""
    root = tmp_path / "artifacts"

    write_artifact(
        root,
        "contracts/protocol/configuration/PoolAddressesProvider.sol",
        "PoolAddressesProvider",
        abi=[{"type": "constructor", "inputs": [{"name": "marketId", "type": "string"}]}],
    )
    write_artifact(
        root,
        "contracts/protocol/configuration/PoolAddressesProviderRegistry.sol",
        "PoolAddressesProviderRegistry",
    )
    write_artifact(root, _library_source("ReserveLogic"), "ReserveLogic")
    write_artifact(
        root,
        _library_source("GenericLogic"),
        "GenericLogic",
        bytecode=_bytecode("ReserveLogic"),
        link_references=_links("ReserveLogic"),
    )
    write_artifact(
        root,
        _library_source("ValidationLogic"),
        "ValidationLogic",
        bytecode=_bytecode("ReserveLogic", "GenericLogic"),
        link_references=_links("ReserveLogic", "GenericLogic"),
    )
    write_artifact(
        root,
        "contracts/protocol/pool/Pool.sol",
        "Pool",
        bytecode=_bytecode("ValidationLogic", "ReserveLogic", "GenericLogic"),
        link_references=_links("ValidationLogic", "ReserveLogic", "GenericLogic"),
    )
    write_artifact(root, "contracts/protocol/pool/PoolConfigurator.sol", "PoolConfigurator")
    write_artifact(
        root, "contracts/protocol/pool/PoolCollateralManager.sol", "PoolCollateralManager"
    )
    write_artifact(root, "contracts/misc/PriceOracle.sol", "PriceOracle")
    write_artifact(root, "contracts/misc/RateOracle.sol", "RateOracle")
    write_artifact(
        root,
        "contracts/misc/AaveProtocolDataProvider.sol",
        "AaveProtocolDataProvider",
        abi=[{"type": "constructor", "inputs": [{"name": "provider", "type": "address"}]}],
    )
    write_artifact(
        root,
        "contracts/deployments/StableAndVariableTokensHelper.sol",
        "StableAndVariableTokensHelper",
        abi=[constructor_abi("pool", "addressesProvider")],
    )
    write_artifact(
        root,
        "contracts/deployments/ATokensAndRatesHelper.sol",
        "ATokensAndRatesHelper",
        abi=[constructor_abi("pool", "addressesProvider", "poolConfigurator")],
    )
    write_artifact(
        root,
        "contracts/misc/AaveOracle.sol",
        "AaveOracle",
        abi=[
            {
                "type": "constructor",
                "inputs": [
                    {"name": "assets", "type": "address[]"},
                    {"name": "sources", "type": "address[]"},
                    {"name": "fallbackOracle", "type": "address"},
                    {"name": "baseCurrency", "type": "address"},
                    {"name": "baseCurrencyUnit", "type": "uint256"},
                ],
            }
        ],
    )
    write_artifact(
        root,
        "contracts/protocol/pool/DefaultReserveInterestRateStrategy.sol",
        "DefaultReserveInterestRateStrategy",
        abi=[
            {
                "type": "constructor",
                "inputs": [{"name": "provider", "type": "address"}]
                + [{"name": name, "type": "uint256"} for name in RATE_PARAM_NAMES],
            }
        ],
    )
    write_artifact(root, "contracts/mocks/WETH9Mocked.sol", "WETHMocked")
    write_artifact(
        root,
        "contracts/mocks/flashloan/MockFlashLoanReceiver.sol",
        "MockFlashLoanReceiver",
        abi=[constructor_abi("provider")],
    )
    write_artifact(
        root, "contracts/protocol/tokenization/AToken.sol", "AToken", abi=[INITIALIZE_ABI]
    )

    build_info_dir = root / "build-info"
    build_info_dir.mkdir(parents=True)
    (build_info_dir / "abc123.json").write_text(
        json.dumps(
            {
                "solcVersion": "0.8.10",
                "solcLongVersion": "0.8.10+commit.fc410830",
                "input": {"language": "Solidity", "sources": {}, "settings": {}},
            }
        )
    )
    return root


class FakeNode:
    """
    JSON-RPC node served through ``responses``.

    Deploy transactions get sequential contract addresses; calls to
    addresses in ``reverting`` produce failed receipts, as do deploys
    while ``fail_deploys`` is set. Gas, fee and block queries get fixed
    answers.
    """

    def __init__(self, chain_id: int = 31337, accounts: Optional[List[str]] = None):
        self.chain_id = chain_id
        self.accounts = accounts if accounts is not None else [DEPLOYER]
        self.transactions: List[Dict[str, Any]] = []
        self.receipts: Dict[str, Dict[str, Any]] = {}
        self.reverting: set = set()
        self.fail_deploys = False
        self.methods: List[str] = []

    def deployed_addresses(self) -> List[str]:
        return [
            receipt["contractAddress"]
            for receipt in self.receipts.values()
            if receipt["contractAddress"]
        ]

    def _send(self, tx: Dict[str, Any]) -> str:
        self.transactions.append(tx)
        n = len(self.transactions)
        tx_hash = "0x" + f"{n:064x}"
        is_deploy = tx.get("to") is None
        if is_deploy:
            failed = self.fail_deploys
        else:
            failed = tx["to"].lower() in self.reverting
        self.receipts[tx_hash] = {
            "transactionHash": tx_hash,
            "transactionIndex": "0x0",
            "blockHash": BLOCK["hash"],
            "blockNumber": hex(n),
            "from": tx["from"],
            "to": None if is_deploy else tx["to"],
            "cumulativeGasUsed": "0x5208",
            "gasUsed": "0x5208",
            "effectiveGasPrice": "0x3b9aca00",
            "logs": [],
            "logsBloom": "0x" + "00" * 256,
            "type": "0x2",
            "status": "0x0" if failed else "0x1",
            "contractAddress": make_address(0xC0 + n) if is_deploy else None,
        }
        return tx_hash

    def handle(self, request):
        body = json.loads(request.body)
        method = body["method"]
        params = body.get("params", [])
        self.methods.append(method)

        if method == "eth_chainId":
            result: Any = hex(self.chain_id)
        elif method == "eth_accounts":
            result = self.accounts
        elif method == "eth_sendTransaction":
            result = self._send(params[0])
        elif method == "eth_getTransactionReceipt":
            result = self.receipts.get(params[0])
        elif method == "eth_getBlockByNumber":
            result = BLOCK
        elif method in FIXED_RESULTS:
            result = FIXED_RESULTS[method]
        else:
            return (200, {}, json.dumps({"jsonrpc": "2.0", "id": body["id"], "error": {
                "code": -32601, "message": f"method {method} not found"}}))

        return (200, {}, json.dumps({"jsonrpc": "2.0", "id": body["id"], "result": result}))


@pytest.fixture
def fake_node():
    """Fake JSON-RPC node answering on RPC_URL."""
    node = FakeNode()
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        rsps.add_callback(
            responses.POST, RPC_URL, callback=node.handle, content_type="application/json"
        )
        yield node
