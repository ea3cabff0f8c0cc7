"""Path management utilities for lending-deployments library."""

from pathlib import Path
from typing import Optional, Union


def get_default_registry_dir() -> Path:
    """
    Get default registry directory (current working directory).

    Returns:
        Path to ./.lending-deployments
    """
    return Path.cwd() / ".lending-deployments"


def get_registry_path(registry_root: Optional[Union[Path, str]] = None) -> Path:
    """
    Get the address registry file path.

    Args:
        registry_root: Custom registry directory (defaults to ./.lending-deployments)

    Returns:
        Path to deployed-contracts.json
    """
    if registry_root is None:
        registry_root = get_default_registry_dir()
    else:
        registry_root = Path(registry_root).absolute()

    return registry_root / "deployed-contracts.json"
