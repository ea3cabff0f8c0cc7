"""Session address ledger for lending-deployments library."""

from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Optional

from .exceptions import DuplicateIdentifierError, UnresolvedDependencyError


class AddressLedger:
    """
    Append-only mapping of contract identifiers to deployed addresses.

    One ledger is one deployment session: an identifier is written at most
    once and entries keep insertion order. Starting over for an identifier
    means starting a fresh session with :meth:`fresh`.
    """

    def __init__(self, entries: Optional[Mapping[str, str]] = None):
        self._entries: Dict[str, str] = {}
        for contract_id, address in (entries or {}).items():
            self.put(contract_id, address)

    @classmethod
    def from_snapshot(cls, snapshot: Mapping[str, str]) -> "AddressLedger":
        """Continue a session from a previously persisted snapshot."""
        return cls(snapshot)

    @classmethod
    def fresh(cls) -> "AddressLedger":
        """Start an empty session."""
        return cls()

    def put(self, contract_id: str, address: str) -> None:
        """
        Record the address of a deployed contract.

        Raises:
            DuplicateIdentifierError: If the identifier is already recorded
        """
        if contract_id in self._entries:
            raise DuplicateIdentifierError(contract_id)
        self._entries[contract_id] = address

    def get(self, contract_id: str) -> str:
        """
        Get the address recorded for a contract.

        Raises:
            UnresolvedDependencyError: If the identifier is not recorded
        """
        try:
            return self._entries[contract_id]
        except KeyError:
            raise UnresolvedDependencyError(contract_id) from None

    def snapshot(self) -> Mapping[str, str]:
        """Immutable, insertion-ordered copy of the current entries."""
        return MappingProxyType(dict(self._entries))

    def ids(self) -> List[str]:
        return list(self._entries)

    def __contains__(self, contract_id: object) -> bool:
        return contract_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

    def __repr__(self) -> str:
        return f"AddressLedger({self._entries!r})"
