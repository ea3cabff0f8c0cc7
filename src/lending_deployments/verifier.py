"""Block explorer source verification for lending-deployments library."""

import json
import logging
import time
from typing import Any, Dict, Sequence

import requests

from .artifacts import ArtifactStore
from .chain import encode_constructor_args
from .constants import RPC_TIMEOUT
from .exceptions import VerificationError

logger = logging.getLogger(__name__)


class EtherscanVerifier:
    """
    Submits standard JSON input verification to an Etherscan-compatible API.

    Verification is best effort: the executor logs failures and carries on.
    """

    def __init__(
        self,
        api_url: str,
        api_key: str,
        artifacts: ArtifactStore,
        poll_attempts: int = 10,
        poll_interval: float = 5.0,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.artifacts = artifacts
        self.poll_attempts = poll_attempts
        self.poll_interval = poll_interval

    def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = requests.post(
                self.api_url, data={"apikey": self.api_key, **payload}, timeout=RPC_TIMEOUT
            )
        except requests.RequestException as e:
            raise VerificationError(f"Network error during verification: {e}") from e

        if response.status_code != 200:
            raise VerificationError(
                f"Verification request failed with status {response.status_code}"
            )
        return response.json()

    def submit(self, contract_name: str, address: str, constructor_args: Sequence[Any]) -> str:
        """
        Submit a contract for verification.

        Returns:
            Explorer GUID to poll, or "already verified"

        Raises:
            VerificationError: If the explorer rejects the submission
        """
        artifact = self.artifacts.read_artifact(contract_name)
        build_info = self.artifacts.read_build_info(contract_name)

        result = self._post(
            {
                "module": "contract",
                "action": "verifysourcecode",
                "contractaddress": address,
                "sourceCode": json.dumps(build_info["input"]),
                "codeformat": "solidity-standard-json-input",
                "contractname": artifact.fully_qualified_name,
                "compilerversion": f"v{build_info['solcLongVersion']}",
                "constructorArguements": encode_constructor_args(
                    artifact.abi, constructor_args
                ).hex(),
            }
        )

        if result.get("status") != "1":
            message = str(result.get("result", ""))
            if "already verified" in message.lower():
                return "already verified"
            raise VerificationError(f"Verification of {contract_name} rejected: {message}")

        return result["result"]

    def check_status(self, guid: str) -> bool:
        """
        Poll a submission until the explorer reaches a verdict.

        Returns:
            True once verified, False if still pending after poll_attempts

        Raises:
            VerificationError: If the explorer reports a failure
        """
        for _ in range(self.poll_attempts):
            result = self._post(
                {"module": "contract", "action": "checkverifystatus", "guid": guid}
            )
            message = str(result.get("result", ""))

            if result.get("status") == "1" or "already verified" in message.lower():
                return True
            if "pending" not in message.lower():
                raise VerificationError(f"Verification {guid} failed: {message}")

            time.sleep(self.poll_interval)

        return False

    def verify(self, contract_name: str, address: str, constructor_args: Sequence[Any]) -> bool:
        """Submit and wait for verification. Returns True once verified."""
        guid = self.submit(contract_name, address, constructor_args)
        if guid == "already verified":
            logger.info("%s at %s is already verified", contract_name, address)
            return True

        verified = self.check_status(guid)
        if verified:
            logger.info("Verified %s at %s", contract_name, address)
        else:
            logger.warning("Verification of %s at %s still pending", contract_name, address)
        return verified
