"""Custom exception classes for lending-deployments library."""

from typing import Any, Optional, Sequence


class DeploymentError(Exception):
    """Base exception for deployment-related errors."""

    pass


class DuplicateIdentifierError(DeploymentError, ValueError):
    """Raised when a contract identifier is registered twice in one session."""

    def __init__(self, contract_id: str, message: Optional[str] = None):
        self.contract_id = contract_id
        super().__init__(
            message or f"Contract '{contract_id}' is already registered in this session"
        )


class UnresolvedDependencyError(DeploymentError, ValueError):
    """Raised when a contract identifier has no address in the ledger."""

    def __init__(self, contract_id: str, message: Optional[str] = None):
        self.contract_id = contract_id
        super().__init__(message or f"No address recorded for contract '{contract_id}'")


class UnresolvedLinkReferenceError(DeploymentError, ValueError):
    """Raised when a bytecode placeholder cannot be resolved to an address."""

    def __init__(
        self,
        placeholder: str,
        contract_id: Optional[str] = None,
        message: Optional[str] = None,
    ):
        self.placeholder = placeholder
        self.contract_id = contract_id
        if message is None:
            if contract_id is None:
                message = f"Bytecode placeholder '{placeholder}' has no link reference"
            else:
                message = (
                    f"Library '{contract_id}' for placeholder '{placeholder}' "
                    "has not been deployed"
                )
        super().__init__(message)


class CyclicDependencyError(DeploymentError, ValueError):
    """Raised when the deployment graph contains a cycle."""

    def __init__(self, cycle: Sequence[str]):
        self.cycle = list(cycle)
        super().__init__(f"Circular dependency detected: {' -> '.join(self.cycle)}")


class DeploymentFailedError(DeploymentError, RuntimeError):
    """
    Raised when a node fails while the executor is running it.

    Entries committed before the failure stay in ``ledger``; they describe
    contracts that exist on chain.
    """

    stage_name = "deploying"

    def __init__(self, node_id: str, cause: BaseException, ledger: Any = None):
        self.node_id = node_id
        self.cause = cause
        self.ledger = ledger
        super().__init__(f"{self.stage_name.capitalize()} '{node_id}' failed: {cause}")


class InitializationFailedError(DeploymentFailedError):
    """Raised when post-deploy initialization fails. The address is still committed."""

    stage_name = "initializing"


class DeploymentCancelledError(DeploymentError, RuntimeError):
    """Raised when a run is cancelled before the next deploy call begins."""

    def __init__(self, pending: Sequence[str], ledger: Any = None):
        self.pending = list(pending)
        self.ledger = ledger
        super().__init__(f"Deployment cancelled with {len(self.pending)} contract(s) pending")


class ArtifactNotFoundError(DeploymentError, FileNotFoundError):
    """Raised when a compiled contract artifact is not found."""

    pass


class ChainClientError(DeploymentError, RuntimeError):
    """Raised when the JSON-RPC endpoint rejects or fails a request."""

    pass


class TransactionTimeoutError(ChainClientError):
    """Raised when a transaction receipt does not appear in time."""

    pass


class VerificationError(DeploymentError, RuntimeError):
    """Raised when block explorer verification fails."""

    pass
