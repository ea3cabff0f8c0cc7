"""
lending-deployments: dependency-ordered deployment of lending protocol contracts
"""

from importlib.metadata import PackageNotFoundError, version

from .deployments import ContractDeployer, DeploymentSession, create_session, deploy_nodes
from .exceptions import (
    ArtifactNotFoundError,
    ChainClientError,
    CyclicDependencyError,
    DeploymentCancelledError,
    DeploymentError,
    DeploymentFailedError,
    DuplicateIdentifierError,
    InitializationFailedError,
    TransactionTimeoutError,
    UnresolvedDependencyError,
    UnresolvedLinkReferenceError,
    VerificationError,
)
from .executor import DeploymentGraphExecutor
from .ledger import AddressLedger
from .linker import library_placeholder, link_bytecode
from .types import DeploymentNode, DeployRequest, NodeStage, SessionContext

try:
    __version__ = version("lending-deployments")
except PackageNotFoundError:
    __version__ = None

__all__ = [
    "AddressLedger",
    "ContractDeployer",
    "DeploymentGraphExecutor",
    "DeploymentNode",
    "DeploymentSession",
    "DeployRequest",
    "NodeStage",
    "SessionContext",
    "create_session",
    "deploy_nodes",
    "library_placeholder",
    "link_bytecode",
    "DeploymentError",
    "DuplicateIdentifierError",
    "UnresolvedDependencyError",
    "UnresolvedLinkReferenceError",
    "CyclicDependencyError",
    "DeploymentFailedError",
    "InitializationFailedError",
    "DeploymentCancelledError",
    "ArtifactNotFoundError",
    "ChainClientError",
    "TransactionTimeoutError",
    "VerificationError",
]
