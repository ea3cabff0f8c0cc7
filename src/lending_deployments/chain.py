"""Chain client for lending-deployments library."""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Sequence

import requests
from eth_abi import encode
from web3 import HTTPProvider, Web3
from web3.exceptions import TimeExhausted, Web3Exception

from .constants import RECEIPT_POLL_INTERVAL, RECEIPT_TIMEOUT, RPC_TIMEOUT
from .exceptions import ChainClientError, TransactionTimeoutError
from .types import SessionContext

logger = logging.getLogger(__name__)


def abi_type(param: Dict[str, Any]) -> str:
    """
    Canonical ABI type string for an ABI input, expanding tuples.

    Example: {"type": "tuple[]", "components": [{"type": "address"}, {"type": "uint256"}]}
    becomes "(address,uint256)[]".
    """
    param_type = param["type"]
    if not param_type.startswith("tuple"):
        return param_type
    inner = ",".join(abi_type(component) for component in param["components"])
    return f"({inner}){param_type[len('tuple'):]}"


def encode_constructor_args(abi: List[Dict[str, Any]], args: Sequence[Any]) -> bytes:
    """
    ABI-encode constructor arguments, as block explorers expect them.

    Raises:
        ValueError: If the argument count does not match the constructor
    """
    constructor = next((item for item in abi if item.get("type") == "constructor"), None)
    inputs = constructor.get("inputs", []) if constructor else []
    if len(inputs) != len(args):
        raise ValueError(f"Constructor takes {len(inputs)} argument(s), got {len(args)}")
    if not inputs:
        return b""
    return encode([abi_type(param) for param in inputs], list(args))


@contextmanager
def _rpc_errors(action: str) -> Iterator[None]:
    try:
        yield
    except TimeExhausted as e:
        raise TransactionTimeoutError(f"{action} timed out: {e}") from e
    except (Web3Exception, ValueError, requests.RequestException) as e:
        raise ChainClientError(f"{action} failed: {e}") from e


class JsonRpcChainClient:
    """
    Sends deployment transactions through a node's JSON-RPC endpoint with web3.py.

    Transactions are signed by the node (``eth_sendTransaction``), so the
    session sender must be an account the node manages, as with Hardhat,
    Anvil or a node-side signer.
    """

    def __init__(
        self,
        rpc_url: str,
        context: SessionContext,
        timeout: float = RPC_TIMEOUT,
        receipt_timeout: float = RECEIPT_TIMEOUT,
        poll_interval: float = RECEIPT_POLL_INTERVAL,
    ):
        self.rpc_url = rpc_url
        self.context = context
        self.receipt_timeout = receipt_timeout
        self.poll_interval = poll_interval
        self.w3 = Web3(HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))

    def chain_id(self) -> int:
        with _rpc_errors("eth_chainId"):
            return self.w3.eth.chain_id

    def accounts(self) -> List[str]:
        """Accounts the node can sign for."""
        with _rpc_errors("eth_accounts"):
            return list(self.w3.eth.accounts)

    def wait_for_receipt(self, tx_hash: Any) -> Dict[str, Any]:
        """
        Wait until the transaction is mined.

        Raises:
            TransactionTimeoutError: If no receipt appears within receipt_timeout
        """
        with _rpc_errors("Waiting for receipt"):
            return self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.receipt_timeout, poll_latency=self.poll_interval
            )

    def deploy_contract(
        self,
        abi: List[Dict[str, Any]],
        bytecode: str,
        constructor_args: Sequence[Any] = (),
    ) -> str:
        """
        Deploy linked bytecode and return the checksummed contract address.

        Raises:
            ChainClientError: If the transaction reverts or the RPC call fails
            TransactionTimeoutError: If the transaction is not mined in time
        """
        if not bytecode.startswith("0x"):
            bytecode = f"0x{bytecode}"

        with _rpc_errors("Deployment"):
            factory = self.w3.eth.contract(abi=abi, bytecode=bytecode)
            tx_hash = factory.constructor(*constructor_args).transact({"from": self.context.sender})
        logger.debug(
            "Deployment transaction sent on %s: %s", self.context.network, Web3.to_hex(tx_hash)
        )

        receipt = self.wait_for_receipt(tx_hash)
        if receipt["status"] != 1:
            raise ChainClientError(f"Deployment transaction {Web3.to_hex(tx_hash)} reverted")
        if not receipt.get("contractAddress"):
            raise ChainClientError(f"Receipt for {Web3.to_hex(tx_hash)} has no contract address")

        return Web3.to_checksum_address(receipt["contractAddress"])

    def call_initialize(
        self,
        address: str,
        abi: List[Dict[str, Any]],
        args: Sequence[Any],
        function_name: str = "initialize",
    ) -> bool:
        """
        Call the initializer of a deployed contract.

        Returns:
            True if the transaction succeeded, False if it reverted
        """
        with _rpc_errors(function_name):
            contract = self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)
            function = getattr(contract.functions, function_name)
            tx_hash = function(*args).transact({"from": self.context.sender})

        receipt = self.wait_for_receipt(tx_hash)
        succeeded = receipt["status"] == 1
        if not succeeded:
            logger.warning(
                "%s on %s reverted (tx %s)", function_name, address, Web3.to_hex(tx_hash)
            )
        return succeeded
