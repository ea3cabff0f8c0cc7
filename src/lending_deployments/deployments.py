"""Main API for lending-deployments library."""

import logging
import os
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from .artifacts import ArtifactStore
from .chain import JsonRpcChainClient
from .constants import DEPLOYER_ADDRESS_ENV, ETHERSCAN_API_KEY_ENV, NETWORK_CONFIG
from .executor import DeploymentGraphExecutor, Verifier
from .ledger import AddressLedger
from .linker import link_references_from_artifact
from .registry import JsonRegistry
from .types import ConstructorArgs, DeploymentNode, DeployRequest, SessionContext
from .verifier import EtherscanVerifier

logger = logging.getLogger(__name__)


class ContractDeployer:
    """Builds deployment nodes backed by compiled artifacts and a chain client."""

    def __init__(self, chain: JsonRpcChainClient, artifacts: ArtifactStore):
        self.chain = chain
        self.artifacts = artifacts

    def contract_node(
        self,
        contract_id: str,
        artifact_name: Optional[str] = None,
        dependencies: Sequence[str] = (),
        constructor_args: ConstructorArgs = (),
        init_args: Optional[Sequence[Any]] = None,
        libraries: Optional[Mapping[str, str]] = None,
        aliases: Sequence[str] = (),
        verify: bool = False,
    ) -> DeploymentNode:
        """
        Create a node that deploys a compiled contract.

        Args:
            contract_id: Identifier recorded in the ledger
            artifact_name: Artifact to deploy (defaults to contract_id)
            dependencies: Identifiers whose addresses the node needs, in order
            constructor_args: Arguments, or a callable building them from the
                dependency addresses
            init_args: Arguments for initialize() after deployment
            libraries: Overrides for library identifiers, keyed by library
                name or fully qualified name (defaults to the library name)
            aliases: Extra identifiers recorded with the same address
            verify: Submit the contract to the block explorer after deployment

        Returns:
            DeploymentNode ready for the executor

        Raises:
            ArtifactNotFoundError: If the artifact does not exist
        """
        artifact_name = artifact_name or contract_id
        artifact = self.artifacts.read_artifact(artifact_name)

        def deploy(request: DeployRequest) -> str:
            return self.chain.deploy_contract(
                artifact.abi, request.bytecode, request.constructor_args
            )

        def initialize(address: str, args: Sequence[Any]) -> bool:
            return self.chain.call_initialize(address, artifact.abi, args)

        return DeploymentNode(
            id=contract_id,
            deploy_fn=deploy,
            dependencies=tuple(dependencies),
            init_args=tuple(init_args) if init_args is not None else None,
            initialize_fn=initialize if init_args is not None else None,
            constructor_args=constructor_args,
            bytecode=artifact.bytecode,
            link_references=link_references_from_artifact(artifact, libraries),
            aliases=tuple(aliases),
            verify=verify,
            artifact_name=artifact_name,
        )


def deploy_nodes(
    nodes: Iterable[DeploymentNode],
    ledger: Optional[AddressLedger] = None,
    context: Optional[SessionContext] = None,
    verifier: Optional[Verifier] = None,
    max_workers: int = 1,
) -> AddressLedger:
    """
    Run a set of nodes with a new executor and return the ledger.

    Raises the executor's errors unchanged; the partial ledger is available
    on runtime errors as ``error.ledger``.
    """
    executor = DeploymentGraphExecutor(
        ledger=ledger, context=context, verifier=verifier, max_workers=max_workers
    )
    return executor.run(nodes)


class DeploymentSession:
    """Everything one deployment run against one network needs."""

    def __init__(
        self,
        context: SessionContext,
        chain: JsonRpcChainClient,
        artifacts: ArtifactStore,
        registry: JsonRegistry,
        verifier: Optional[Verifier] = None,
    ):
        self.context = context
        self.chain = chain
        self.artifacts = artifacts
        self.registry = registry
        self.verifier = verifier
        self.deployer = ContractDeployer(chain, artifacts)
        self.executor: Optional[DeploymentGraphExecutor] = None

    def ledger(self, fresh: bool = False) -> AddressLedger:
        """Ledger to continue from: the registry's addresses, or empty if fresh."""
        if fresh:
            return AddressLedger.fresh()
        return self.registry.load_ledger(self.context.network)

    def deploy(
        self,
        nodes: Iterable[DeploymentNode],
        fresh: bool = False,
        max_workers: int = 1,
    ) -> AddressLedger:
        """
        Deploy nodes and persist every committed address.

        The registry is written even when the run fails, since committed
        entries describe contracts that already exist on chain. Only the
        contracts committed by this run are written, so addresses loaded
        from the registry keep their recorded deployer. A fresh session
        replaces the network's recorded addresses once it has committed
        its first contract; validation errors never touch the registry.

        Args:
            nodes: Deployment nodes, in declaration order
            fresh: Start a new session instead of continuing from the registry
            max_workers: Concurrent deploys per topological level

        Returns:
            Ledger with every committed address
        """
        self.executor = DeploymentGraphExecutor(
            ledger=self.ledger(fresh),
            context=self.context,
            verifier=self.verifier,
            max_workers=max_workers,
        )
        ledger = self.executor.ledger
        initial_size = len(ledger)
        try:
            return self.executor.run(nodes)
        finally:
            committed = {
                contract_id: ledger.get(contract_id) for contract_id in ledger.ids()[initial_size:]
            }
            if committed:
                path = self.registry.save(
                    self.context.network,
                    committed,
                    deployer=self.context.sender,
                    replace=fresh,
                )
                logger.info("Saved %d address(es) to %s", len(committed), path)


def create_session(
    network: str,
    rpc_url: Optional[str] = None,
    sender: Optional[str] = None,
    artifacts_dir: Union[Path, str] = "artifacts",
    registry_path: Optional[Union[Path, str]] = None,
    etherscan_api_key: Optional[str] = None,
    check_chain_id: bool = True,
) -> DeploymentSession:
    """
    Build a deployment session from arguments and environment.

    Args:
        network: Network name from NETWORK_CONFIG
        rpc_url: RPC URL (defaults to the network's RPC environment variable)
        sender: Deployer address (defaults to $DEPLOYER_ADDRESS, then the
            node's first account)
        artifacts_dir: Hardhat artifacts directory
        registry_path: Address registry file (defaults to
            ./.lending-deployments/deployed-contracts.json)
        etherscan_api_key: Explorer API key (defaults to $ETHERSCAN_API_KEY).
            Verification is disabled without one.
        check_chain_id: Compare the node's chain id with the network's

    Returns:
        DeploymentSession

    Raises:
        ValueError: If the network is unknown, no RPC URL is available, the
            node has no accounts, or the chain id does not match
    """
    if network not in NETWORK_CONFIG:
        raise ValueError(
            f"Unknown network '{network}', expected one of: {', '.join(NETWORK_CONFIG)}"
        )
    network_config = NETWORK_CONFIG[network]

    if rpc_url is None:
        rpc_url = os.environ.get(network_config["default_rpc_env"])
    if rpc_url is None:
        raise ValueError(
            f"RPC URL required: set ${network_config['default_rpc_env']} "
            "or pass rpc_url parameter"
        )

    if sender is None:
        sender = os.environ.get(DEPLOYER_ADDRESS_ENV)
    if etherscan_api_key is None:
        etherscan_api_key = os.environ.get(ETHERSCAN_API_KEY_ENV)

    # Sender is resolved after the client exists when it comes from the node
    context = SessionContext(
        network=network, chain_id=network_config["chain_id"], sender=sender or ""
    )
    chain = JsonRpcChainClient(rpc_url, context)

    if check_chain_id:
        node_chain_id = chain.chain_id()
        if node_chain_id != context.chain_id:
            raise ValueError(
                f"RPC endpoint reports chain id {node_chain_id}, "
                f"expected {context.chain_id} for '{network}'"
            )

    if not sender:
        accounts = chain.accounts()
        if not accounts:
            raise ValueError(
                f"No deployer: set ${DEPLOYER_ADDRESS_ENV} or unlock an account on the node"
            )
        context = SessionContext(network=network, chain_id=context.chain_id, sender=accounts[0])
        chain.context = context

    artifacts = ArtifactStore(artifacts_dir)

    verifier = None
    if etherscan_api_key and network_config["explorer_api_url"]:
        verifier = EtherscanVerifier(network_config["explorer_api_url"], etherscan_api_key, artifacts)

    logger.info("Deployment session on %s as %s", network, context.sender)
    return DeploymentSession(context, chain, artifacts, JsonRegistry(registry_path), verifier)
