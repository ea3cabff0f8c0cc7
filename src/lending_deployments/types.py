"""Data types and dataclasses for lending-deployments library."""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .ledger import AddressLedger
from .linker import link_bytecode

ConstructorArgs = Union[Sequence[Any], Callable[[Tuple[str, ...]], Sequence[Any]]]


@dataclass(frozen=True)
class SessionContext:
    """Target network and deployment identity shared by every call in a session."""

    network: str  # e.g., "sepolia"
    chain_id: int
    sender: str  # Address that signs every deployment transaction


@dataclass(frozen=True)
class ContractArtifact:
    """Compiled contract metadata read from a Hardhat artifact."""

    contract_name: str
    source_name: str  # e.g., "contracts/protocol/pool/Pool.sol"
    abi: List[Dict[str, Any]]
    bytecode: str
    # {source path: {library name: [{"start": int, "length": int}, ...]}}
    link_references: Dict[str, Dict[str, List[Dict[str, int]]]] = field(default_factory=dict)

    @property
    def fully_qualified_name(self) -> str:
        return f"{self.source_name}:{self.contract_name}"


@dataclass(frozen=True)
class DeployRequest:
    """Resolved inputs handed to a node's deploy function."""

    contract_id: str
    dependency_addresses: Tuple[str, ...]
    constructor_args: Tuple[Any, ...] = ()
    bytecode: Optional[str] = None  # Linked bytecode, if the node carries any


class NodeStage(Enum):
    """
    Lifecycle stages of a deployment node.

    PENDING -> RESOLVING -> DEPLOYING -> INITIALIZING -> COMMITTED, or FAILED
    from any running stage.
    """

    PENDING = "pending"
    RESOLVING = "resolving"
    DEPLOYING = "deploying"
    INITIALIZING = "initializing"
    COMMITTED = "committed"
    FAILED = "failed"


_NEXT_STAGE = {
    NodeStage.PENDING: NodeStage.RESOLVING,
    NodeStage.RESOLVING: NodeStage.DEPLOYING,
    NodeStage.DEPLOYING: NodeStage.INITIALIZING,
    NodeStage.INITIALIZING: NodeStage.COMMITTED,
}


@dataclass
class NodeState:
    """Progress of one node through a run."""

    stage: NodeStage = NodeStage.PENDING
    failed_stage: Optional[NodeStage] = None
    address: Optional[str] = None
    error: Optional[BaseException] = None

    def advance(self) -> None:
        """Move to the next stage. Stages are never skipped or re-entered."""
        if self.stage not in _NEXT_STAGE:
            raise ValueError(f"Cannot advance from terminal stage {self.stage.value}")
        self.stage = _NEXT_STAGE[self.stage]

    def fail(self, error: BaseException) -> None:
        if self.stage in (NodeStage.PENDING, NodeStage.COMMITTED, NodeStage.FAILED):
            raise ValueError(f"Cannot fail from stage {self.stage.value}")
        self.failed_stage = self.stage
        self.stage = NodeStage.FAILED
        self.error = error


@dataclass(frozen=True, eq=False)
class DeploymentNode:
    """
    A unit of deployment work.

    The executor treats ``deploy_fn`` as opaque: it receives a
    :class:`DeployRequest` and must return the deployed address. When
    ``init_args`` is set, ``initialize_fn(address, init_args)`` runs after the
    deploy; returning ``False`` counts as a failed initialization.
    """

    id: str
    deploy_fn: Callable[[DeployRequest], str]
    dependencies: Tuple[str, ...] = ()
    init_args: Optional[Tuple[Any, ...]] = None
    initialize_fn: Optional[Callable[[str, Sequence[Any]], Any]] = None
    constructor_args: ConstructorArgs = ()
    bytecode: Optional[str] = None
    link_references: Mapping[str, str] = field(default_factory=dict)
    aliases: Tuple[str, ...] = ()
    verify: bool = False
    artifact_name: Optional[str] = None

    def __post_init__(self):
        if not self.id:
            raise ValueError("Deployment node id must be a non-empty string")
        object.__setattr__(self, "dependencies", tuple(self.dependencies))
        object.__setattr__(self, "aliases", tuple(self.aliases))
        object.__setattr__(self, "link_references", MappingProxyType(dict(self.link_references)))
        if self.init_args is not None:
            object.__setattr__(self, "init_args", tuple(self.init_args))
            if self.initialize_fn is None:
                raise ValueError(f"Node '{self.id}' has init_args but no initialize_fn")
        if self.link_references and self.bytecode is None:
            raise ValueError(f"Node '{self.id}' has link references but no bytecode")

    @property
    def identifiers(self) -> Tuple[str, ...]:
        """The node id followed by its aliases."""
        return (self.id,) + self.aliases

    @property
    def name(self) -> str:
        """Artifact name used for verification."""
        return self.artifact_name or self.id

    def required_ids(self) -> Tuple[str, ...]:
        """Dependencies followed by link targets not already listed, without repeats."""
        seen: Dict[str, None] = dict.fromkeys(self.dependencies)
        for contract_id in sorted(set(self.link_references.values())):
            seen.setdefault(contract_id, None)
        return tuple(seen)

    def resolve_dependency_addresses(self, ledger: AddressLedger) -> Tuple[str, ...]:
        """
        Look up dependency addresses in declared order.

        Raises:
            UnresolvedDependencyError: If any dependency has no ledger entry
        """
        return tuple(ledger.get(dep) for dep in self.dependencies)

    def resolve_constructor_args(self, dependency_addresses: Tuple[str, ...]) -> Tuple[Any, ...]:
        if callable(self.constructor_args):
            return tuple(self.constructor_args(dependency_addresses))
        return tuple(self.constructor_args)

    def linked_bytecode(self, ledger: AddressLedger) -> Optional[str]:
        """
        Return the node's bytecode with library placeholders resolved.

        Raises:
            UnresolvedLinkReferenceError: If a library has no ledger entry
        """
        if self.bytecode is None:
            return None
        if not self.link_references:
            return self.bytecode
        return link_bytecode(self.bytecode, self.link_references, ledger)
