"""Dependency-ordered execution of deployment nodes."""

import heapq
import logging
import threading
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from .exceptions import (
    CyclicDependencyError,
    DeploymentCancelledError,
    DeploymentFailedError,
    DuplicateIdentifierError,
    InitializationFailedError,
    UnresolvedDependencyError,
    UnresolvedLinkReferenceError,
)
from .ledger import AddressLedger
from .types import DeploymentNode, DeployRequest, NodeStage, NodeState, SessionContext

logger = logging.getLogger(__name__)

# Depth-first search marks
_UNVISITED, _IN_PROGRESS, _DONE = 0, 1, 2

# (address, request, initialization error)
_Outcome = Tuple[str, DeployRequest, Optional[BaseException]]


class Verifier(Protocol):
    def verify(self, contract_name: str, address: str, constructor_args: Sequence[Any]) -> Any:
        ...


class DeploymentGraphExecutor:
    """
    Deploys a set of nodes in dependency order and records their addresses.

    Runs are sequential by default, since every deployment shares the
    sender's nonce sequence. ``max_workers > 1`` deploys nodes of the same
    topological level concurrently; only use it with a chain client that
    manages nonces itself.

    Validation errors (duplicates, unresolved references, cycles) are raised
    before any deploy call. Once deploying, a failure stops the run and
    leaves every address committed so far in :attr:`ledger`.
    """

    def __init__(
        self,
        ledger: Optional[AddressLedger] = None,
        context: Optional[SessionContext] = None,
        verifier: Optional[Verifier] = None,
        max_workers: int = 1,
    ):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")

        self.ledger = ledger if ledger is not None else AddressLedger()
        self.context = context
        self.verifier = verifier
        self.max_workers = max_workers
        self.states: Dict[str, NodeState] = {}
        self.order: List[str] = []
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        """Stop the run before the next deploy call. In-flight deploys finish."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def plan(self, nodes: Iterable[DeploymentNode]) -> List[DeploymentNode]:
        """
        Validate nodes against the ledger and compute their execution order.

        Ties between independent nodes are broken by declaration order, so
        the same node list always yields the same order.

        Raises:
            DuplicateIdentifierError: If an id or alias is declared twice or
                is already in the ledger
            UnresolvedDependencyError: If a dependency is neither scheduled
                nor in the ledger
            UnresolvedLinkReferenceError: If a library is neither scheduled
                nor in the ledger
            CyclicDependencyError: If the dependency graph has a cycle
        """
        nodes = list(nodes)
        owners = self._index_identifiers(nodes)
        edges = self._build_edges(nodes, owners)
        self._check_cycles(nodes, edges)
        return self._topological_order(nodes, edges)

    def run(self, nodes: Iterable[DeploymentNode]) -> AddressLedger:
        """
        Deploy every node and return the ledger.

        Raises:
            DeploymentFailedError: If resolving or deploying a node fails
            InitializationFailedError: If initialization fails; the node's
                address is committed before this is raised
            DeploymentCancelledError: If cancel() was called
        """
        self.order = []
        self.states = {}
        ordered = self.plan(nodes)
        self.order = [node.id for node in ordered]
        self.states = {node.id: NodeState() for node in ordered}

        network = self.context.network if self.context else "unknown network"
        logger.info("Deploying %d contract(s) to %s", len(ordered), network)
        logger.debug("Execution order: %s", ", ".join(self.order))

        if self.max_workers == 1:
            for position, node in enumerate(ordered):
                self._check_cancelled(ordered[position:])
                self._commit(node, self._execute(node))
        else:
            self._run_levels(ordered)

        logger.info("Deployment session complete: %d address(es) recorded", len(self.ledger))
        return self.ledger

    def _index_identifiers(self, nodes: List[DeploymentNode]) -> Dict[str, str]:
        """Map every id and alias to the id of the node that declares it."""
        owners: Dict[str, str] = {}
        for node in nodes:
            for identifier in node.identifiers:
                if identifier in owners:
                    raise DuplicateIdentifierError(
                        identifier, f"Contract '{identifier}' is declared more than once"
                    )
                if identifier in self.ledger:
                    raise DuplicateIdentifierError(identifier)
                owners[identifier] = node.id
        return owners

    def _build_edges(
        self, nodes: List[DeploymentNode], owners: Dict[str, str]
    ) -> Dict[str, List[str]]:
        """Map node id -> ids of scheduled nodes it waits on, in first-use order."""
        edges: Dict[str, List[str]] = {}
        for node in nodes:
            for dep in node.dependencies:
                if dep not in owners and dep not in self.ledger:
                    raise UnresolvedDependencyError(
                        dep,
                        f"Contract '{node.id}' depends on '{dep}', "
                        "which is neither deployed nor scheduled",
                    )
            for placeholder, target in sorted(node.link_references.items()):
                if target not in owners and target not in self.ledger:
                    raise UnresolvedLinkReferenceError(placeholder, target)

            waits_on = [owners[ref] for ref in node.required_ids() if ref in owners]
            edges[node.id] = list(dict.fromkeys(waits_on))
        return edges

    def _check_cycles(self, nodes: List[DeploymentNode], edges: Dict[str, List[str]]) -> None:
        marks = {node.id: _UNVISITED for node in nodes}

        for root in nodes:
            if marks[root.id] != _UNVISITED:
                continue
            path = [root.id]
            stack = [iter(edges[root.id])]
            marks[root.id] = _IN_PROGRESS

            while stack:
                next_id = next(stack[-1], None)
                if next_id is None:
                    marks[path.pop()] = _DONE
                    stack.pop()
                elif marks[next_id] == _IN_PROGRESS:
                    raise CyclicDependencyError(path[path.index(next_id):] + [next_id])
                elif marks[next_id] == _UNVISITED:
                    marks[next_id] = _IN_PROGRESS
                    path.append(next_id)
                    stack.append(iter(edges[next_id]))

    def _topological_order(
        self, nodes: List[DeploymentNode], edges: Dict[str, List[str]]
    ) -> List[DeploymentNode]:
        position = {node.id: i for i, node in enumerate(nodes)}
        remaining = {node.id: len(edges[node.id]) for node in nodes}
        dependents: Dict[str, List[str]] = defaultdict(list)
        for node_id, waits_on in edges.items():
            for dep in waits_on:
                dependents[dep].append(node_id)

        ready = [position[node_id] for node_id, count in remaining.items() if count == 0]
        heapq.heapify(ready)
        ordered: List[DeploymentNode] = []

        while ready:
            node = nodes[heapq.heappop(ready)]
            ordered.append(node)
            for dependent in dependents[node.id]:
                remaining[dependent] -= 1
                if remaining[dependent] == 0:
                    heapq.heappush(ready, position[dependent])

        return ordered

    def _levels(self, ordered: List[DeploymentNode]) -> List[List[DeploymentNode]]:
        scheduled = {identifier: node.id for node in ordered for identifier in node.identifiers}
        depth: Dict[str, int] = {}
        levels: Dict[int, List[DeploymentNode]] = defaultdict(list)

        for node in ordered:
            waits_on = [scheduled[ref] for ref in node.required_ids() if ref in scheduled]
            depth[node.id] = 1 + max((depth[dep] for dep in waits_on), default=-1)
            levels[depth[node.id]].append(node)

        return [levels[level] for level in sorted(levels)]

    def _run_levels(self, ordered: List[DeploymentNode]) -> None:
        levels = self._levels(ordered)

        for index, level in enumerate(levels):
            self._check_cancelled([node for later in levels[index:] for node in later])

            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                futures = [pool.submit(self._execute, node) for node in level]

            failure: Optional[DeploymentFailedError] = None
            outcomes = []
            for node, future in zip(level, futures):
                try:
                    outcomes.append((node, future.result()))
                except DeploymentFailedError as e:
                    failure = failure or e

            for node, outcome in outcomes:
                try:
                    self._commit(node, outcome)
                except InitializationFailedError as e:
                    failure = failure or e

            if failure is not None:
                raise failure

    def _check_cancelled(self, pending: List[DeploymentNode]) -> None:
        if self._cancelled.is_set():
            logger.warning("Deployment cancelled, %d contract(s) not deployed", len(pending))
            raise DeploymentCancelledError([node.id for node in pending], self.ledger)

    def _execute(self, node: DeploymentNode) -> _Outcome:
        """Resolve, deploy and initialize one node. Nothing is committed here."""
        state = self.states[node.id]

        state.advance()  # resolving
        try:
            dependency_addresses = node.resolve_dependency_addresses(self.ledger)
            request = DeployRequest(
                contract_id=node.id,
                dependency_addresses=dependency_addresses,
                constructor_args=node.resolve_constructor_args(dependency_addresses),
                bytecode=node.linked_bytecode(self.ledger),
            )
        except Exception as e:
            state.fail(e)
            raise DeploymentFailedError(node.id, e, self.ledger) from e

        state.advance()  # deploying
        logger.debug("Deploying %s", node.id)
        try:
            address = node.deploy_fn(request)
        except Exception as e:
            state.fail(e)
            logger.error("Deployment of %s failed: %s", node.id, e)
            raise DeploymentFailedError(node.id, e, self.ledger) from e
        state.address = address

        state.advance()  # initializing
        init_error: Optional[BaseException] = None
        if node.init_args is not None:
            try:
                if node.initialize_fn(address, node.init_args) is False:
                    init_error = RuntimeError(f"initialize() on {address} reported failure")
            except Exception as e:
                init_error = e

        return address, request, init_error

    def _commit(self, node: DeploymentNode, outcome: _Outcome) -> None:
        address, request, init_error = outcome
        state = self.states[node.id]

        for identifier in node.identifiers:
            self.ledger.put(identifier, address)

        if init_error is not None:
            state.fail(init_error)
            logger.warning(
                "%s deployed at %s but initialization failed: %s", node.id, address, init_error
            )
            raise InitializationFailedError(node.id, init_error, self.ledger) from init_error

        state.advance()  # committed
        logger.info("Deployed %s at %s", node.id, address)

        if node.verify and self.verifier is not None:
            try:
                self.verifier.verify(node.name, address, request.constructor_args)
            except Exception as e:
                logger.warning("Verification of %s at %s failed: %s", node.name, address, e)
