"""Library linking for compiled contract bytecode."""

import logging
import re
from typing import TYPE_CHECKING, Dict, Mapping, Optional

from eth_utils import is_hex_address, keccak

from .constants import PLACEHOLDER_HASH_LENGTH, PLACEHOLDER_PREFIX, PLACEHOLDER_SUFFIX
from .exceptions import UnresolvedDependencyError, UnresolvedLinkReferenceError

if TYPE_CHECKING:
    from .ledger import AddressLedger
    from .types import ContractArtifact

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(
    re.escape(PLACEHOLDER_PREFIX)
    + f"[0-9a-fA-F]{{{PLACEHOLDER_HASH_LENGTH}}}"
    + re.escape(PLACEHOLDER_SUFFIX)
)


def library_placeholder(fully_qualified_name: str) -> str:
    """
    Compute the placeholder solc embeds for an unlinked library.

    Args:
        fully_qualified_name: "<source path>:<library name>", e.g.
            "contracts/protocol/libraries/logic/GenericLogic.sol:GenericLogic"

    Returns:
        40 character placeholder, e.g. "__$52a8a86ab43135662ff256bbc95497e8e3$__"
    """
    digest = keccak(text=fully_qualified_name).hex()
    return f"{PLACEHOLDER_PREFIX}{digest[:PLACEHOLDER_HASH_LENGTH]}{PLACEHOLDER_SUFFIX}"


def find_placeholders(bytecode: str) -> list[str]:
    """Return the distinct placeholders in bytecode, in order of first appearance."""
    return list(dict.fromkeys(PLACEHOLDER_PATTERN.findall(bytecode)))


def canonical_address(address: str) -> str:
    """
    Encode an address the way it is embedded in bytecode.

    Raises:
        ValueError: If address is not a 20 byte hex address
    """
    if not is_hex_address(address):
        raise ValueError(f"Cannot link non-hex address {address!r}")
    return address[2:].lower() if address.startswith(("0x", "0X")) else address.lower()


def link_bytecode(
    bytecode: str,
    references: Mapping[str, str],
    ledger: "AddressLedger",
) -> str:
    """
    Replace library placeholders with deployed library addresses.

    Pure: the input bytecode and ledger are left untouched, and the same
    inputs always produce the same output.

    Args:
        bytecode: Hex bytecode, with or without 0x prefix
        references: Maps placeholder token -> contract identifier
        ledger: Ledger holding the library addresses

    Returns:
        New bytecode with every placeholder replaced

    Raises:
        UnresolvedLinkReferenceError: If a referenced library has no address,
            or a placeholder in the bytecode has no reference
    """
    resolved: Dict[str, str] = {}
    for placeholder in sorted(references):
        contract_id = references[placeholder]
        try:
            address = ledger.get(contract_id)
        except UnresolvedDependencyError:
            raise UnresolvedLinkReferenceError(placeholder, contract_id) from None
        try:
            resolved[placeholder] = canonical_address(address)
        except ValueError as e:
            raise UnresolvedLinkReferenceError(
                placeholder, contract_id, f"Library '{contract_id}' has unlinkable address: {e}"
            ) from e

    linked = bytecode
    for placeholder, encoded in resolved.items():
        if placeholder not in linked:
            logger.debug(
                "Placeholder %s for %s not present in bytecode", placeholder, references[placeholder]
            )
            continue
        linked = linked.replace(placeholder, encoded)

    leftover = find_placeholders(linked)
    if leftover:
        raise UnresolvedLinkReferenceError(leftover[0])

    return linked


def link_references_from_artifact(
    artifact: "ContractArtifact",
    library_ids: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """
    Build the placeholder -> identifier map for an artifact's libraries.

    Args:
        artifact: Compiled artifact with Hardhat ``linkReferences``
        library_ids: Optional identifier overrides, keyed by fully qualified
            name or bare library name. Defaults to the library name.

    Returns:
        Dictionary mapping placeholder -> contract identifier
    """
    library_ids = library_ids or {}
    references: Dict[str, str] = {}

    for source_name in sorted(artifact.link_references):
        for library_name in sorted(artifact.link_references[source_name]):
            fqn = f"{source_name}:{library_name}"
            contract_id = library_ids.get(fqn, library_ids.get(library_name, library_name))
            references[library_placeholder(fqn)] = contract_id

    return references
