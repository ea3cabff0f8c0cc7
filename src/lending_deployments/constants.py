"""Configuration constants for lending-deployments library."""

# Network configuration based on ethereum-lists/chains
NETWORK_CONFIG = {
    "mainnet": {
        "chain_id": 1,
        "chain_name": "Ethereum Mainnet",
        "block_explorer_url": "https://etherscan.io",
        "explorer_api_url": "https://api.etherscan.io/api",
        "default_rpc_env": "MAINNET_RPC_URL",
    },
    "sepolia": {
        "chain_id": 11155111,
        "chain_name": "Sepolia",
        "block_explorer_url": "https://sepolia.etherscan.io",
        "explorer_api_url": "https://api-sepolia.etherscan.io/api",
        "default_rpc_env": "SEPOLIA_RPC_URL",
    },
    "hardhat": {
        "chain_id": 31337,
        "chain_name": "Hardhat Network",
        "block_explorer_url": None,
        "explorer_api_url": None,
        "default_rpc_env": "HARDHAT_RPC_URL",
    },
}

DEPLOYER_ADDRESS_ENV = "DEPLOYER_ADDRESS"
ETHERSCAN_API_KEY_ENV = "ETHERSCAN_API_KEY"

# Solidity >= 0.5 library placeholder: __$ + 34 hex chars of keccak256(fqn) + $__
PLACEHOLDER_PREFIX = "__$"
PLACEHOLDER_SUFFIX = "$__"
PLACEHOLDER_HASH_LENGTH = 34

# Seconds
RPC_TIMEOUT = 30
RECEIPT_TIMEOUT = 120
RECEIPT_POLL_INTERVAL = 1.0

# Fully qualified names of the protocol libraries linked into the Pool
PROTOCOL_LIBRARIES = {
    "ReserveLogic": "contracts/protocol/libraries/logic/ReserveLogic.sol:ReserveLogic",
    "GenericLogic": "contracts/protocol/libraries/logic/GenericLogic.sol:GenericLogic",
    "ValidationLogic": "contracts/protocol/libraries/logic/ValidationLogic.sol:ValidationLogic",
}
