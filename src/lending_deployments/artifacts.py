"""Compiled artifact access for lending-deployments library."""

import json
from pathlib import Path
from typing import Any, Dict, List, Union

from .exceptions import ArtifactNotFoundError
from .types import ContractArtifact


def parse_hardhat_artifact(file_path: Path) -> ContractArtifact:
    """
    Parse a Hardhat artifact JSON file.

    Args:
        file_path: Path to <ContractName>.json inside an artifacts tree

    Returns:
        ContractArtifact with abi, bytecode and link references

    Raises:
        ArtifactNotFoundError: If the file has no bytecode (interfaces, abstract contracts)
    """
    with open(file_path) as f:
        data = json.load(f)

    bytecode = data.get("bytecode")
    if not bytecode or bytecode == "0x":
        raise ArtifactNotFoundError(f"Artifact has no deployable bytecode: {file_path}")

    return ContractArtifact(
        contract_name=data["contractName"],
        source_name=data.get("sourceName", ""),
        abi=data["abi"],
        bytecode=bytecode,
        link_references=data.get("linkReferences", {}),
    )


class ArtifactStore:
    """Read-only view of a Hardhat ``artifacts/`` directory."""

    def __init__(self, artifacts_dir: Union[Path, str]):
        """
        Initialize the artifact store.

        Args:
            artifacts_dir: Hardhat artifacts directory

        Raises:
            ArtifactNotFoundError: If the directory does not exist
        """
        self.artifacts_dir = Path(artifacts_dir)
        if not self.artifacts_dir.is_dir():
            raise ArtifactNotFoundError(f"Artifacts directory not found at {self.artifacts_dir}")
        self._cache: Dict[str, ContractArtifact] = {}

    def artifact_path(self, contract_name: str) -> Path:
        """
        Locate the artifact file for a contract.

        Accepts a bare contract name or a fully qualified
        "<source path>:<contract name>".

        Raises:
            ArtifactNotFoundError: If no artifact matches
            ValueError: If a bare name matches several artifacts
        """
        if ":" in contract_name:
            source_name, name = contract_name.rsplit(":", 1)
            path = self.artifacts_dir / source_name / f"{name}.json"
            if not path.exists():
                raise ArtifactNotFoundError(f"Artifact '{contract_name}' not found at {path}")
            return path

        matches: List[Path] = [
            path
            for path in sorted(self.artifacts_dir.rglob(f"{contract_name}.json"))
            if "build-info" not in path.parts
        ]
        if not matches:
            raise ArtifactNotFoundError(
                f"Artifact '{contract_name}' not found under {self.artifacts_dir}"
            )
        if len(matches) > 1:
            raise ValueError(
                f"Artifact name '{contract_name}' is ambiguous, use a fully qualified name: "
                + ", ".join(str(p.relative_to(self.artifacts_dir)) for p in matches)
            )
        return matches[0]

    def read_artifact(self, contract_name: str) -> ContractArtifact:
        """Read and cache the compiled artifact for a contract."""
        if contract_name not in self._cache:
            self._cache[contract_name] = parse_hardhat_artifact(self.artifact_path(contract_name))
        return self._cache[contract_name]

    def read_build_info(self, contract_name: str) -> Dict[str, Any]:
        """
        Read the compiler build info behind an artifact.

        Returns:
            Build info dict with solcVersion, solcLongVersion and the
            standard JSON "input"

        Raises:
            ArtifactNotFoundError: If the debug file or build info is missing
        """
        artifact_path = self.artifact_path(contract_name)
        dbg_path = artifact_path.with_name(f"{artifact_path.stem}.dbg.json")
        if not dbg_path.exists():
            raise ArtifactNotFoundError(f"Debug file not found at {dbg_path}")

        with open(dbg_path) as f:
            build_info_ref = json.load(f)["buildInfo"]

        build_info_path = (dbg_path.parent / build_info_ref).resolve()
        if not build_info_path.exists():
            raise ArtifactNotFoundError(f"Build info not found at {build_info_path}")

        with open(build_info_path) as f:
            return json.load(f)
