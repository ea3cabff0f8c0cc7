"""Deployment plan of the lending protocol's core contracts."""

from dataclasses import astuple, dataclass
from typing import List, Optional, Sequence

from .constants import PROTOCOL_LIBRARIES
from .deployments import ContractDeployer
from .types import DeploymentNode

TOKEN_DECIMALS = 18
TOKEN_PARAMS = bytes.fromhex("10")


@dataclass(frozen=True)
class RateStrategyParams:
    """Interest rate curve of a reserve, in ray units (1e27 = 100%)."""

    optimal_utilization_rate: int
    base_variable_borrow_rate: int
    variable_rate_slope1: int
    variable_rate_slope2: int
    stable_rate_slope1: int
    stable_rate_slope2: int


def build_library_nodes(deployer: ContractDeployer, verify: bool = False) -> List[DeploymentNode]:
    """
    Nodes for the logic libraries linked into the Pool.

    GenericLogic links ReserveLogic, and ValidationLogic links both; the
    order follows from the artifacts' link references.
    """
    return [
        deployer.contract_node(name, artifact_name=fqn, verify=verify)
        for name, fqn in PROTOCOL_LIBRARIES.items()
    ]


def build_helper_nodes(deployer: ContractDeployer, verify: bool = False) -> List[DeploymentNode]:
    """Nodes for the batch helpers used when configuring reserves."""
    return [
        deployer.contract_node(
            "StableAndVariableTokensHelper",
            dependencies=["Pool", "PoolAddressesProvider"],
            constructor_args=list,
            verify=verify,
        ),
        deployer.contract_node(
            "ATokensAndRatesHelper",
            dependencies=["Pool", "PoolAddressesProvider", "PoolConfigurator"],
            constructor_args=list,
            verify=verify,
        ),
    ]


def build_protocol_nodes(
    deployer: ContractDeployer,
    market_id: str,
    verify: bool = False,
    include_mocks: bool = False,
) -> List[DeploymentNode]:
    """
    Nodes for the protocol's core contracts.

    Implementation contracts are recorded twice, under their own name and
    with an "Impl" alias, so proxy setup can find the implementation after
    the proxy address replaces it in later sessions.

    Args:
        deployer: Node factory bound to a chain and artifact store
        market_id: Market identifier passed to PoolAddressesProvider
        verify: Submit every contract to the block explorer
        include_mocks: Also deploy WETHMocked and MockFlashLoanReceiver
            for test networks

    Returns:
        Nodes in declaration order
    """
    nodes = [
        deployer.contract_node("PoolAddressesProvider", constructor_args=[market_id], verify=verify),
        deployer.contract_node("PoolAddressesProviderRegistry", verify=verify),
        *build_library_nodes(deployer, verify=verify),
        deployer.contract_node("Pool", aliases=["PoolImpl"], verify=verify),
        deployer.contract_node("PoolConfigurator", aliases=["PoolConfiguratorImpl"], verify=verify),
        deployer.contract_node(
            "PoolCollateralManager", aliases=["PoolCollateralManagerImpl"], verify=verify
        ),
        deployer.contract_node("PriceOracle", verify=verify),
        deployer.contract_node("RateOracle", verify=verify),
        deployer.contract_node(
            "AaveProtocolDataProvider",
            dependencies=["PoolAddressesProvider"],
            constructor_args=lambda addresses: [addresses[0]],
            verify=verify,
        ),
        *build_helper_nodes(deployer, verify=verify),
    ]

    if include_mocks:
        nodes.append(deployer.contract_node("WETHMocked", verify=verify))
        nodes.append(mock_flash_loan_receiver_node(deployer, verify=verify))

    return nodes


def aave_oracle_node(
    deployer: ContractDeployer,
    assets: Sequence[str],
    sources: Sequence[str],
    base_currency: str,
    base_currency_unit: int,
    fallback_oracle: str = "PriceOracle",
    verify: bool = False,
) -> DeploymentNode:
    """
    Node for the AaveOracle, reading prices from one aggregator per asset.

    Args:
        deployer: Node factory bound to a chain and artifact store
        assets: Asset addresses, paired with sources by position
        sources: Price aggregator addresses
        base_currency: Address of the currency prices are quoted in
        base_currency_unit: One unit of the base currency, e.g. 10**18
        fallback_oracle: Identifier of the oracle used when a source fails
        verify: Submit the contract to the block explorer

    Raises:
        ValueError: If assets and sources differ in length
    """
    if len(assets) != len(sources):
        raise ValueError(f"Got {len(assets)} asset(s) but {len(sources)} price source(s)")

    return deployer.contract_node(
        "AaveOracle",
        dependencies=[fallback_oracle],
        constructor_args=lambda addresses: [
            list(assets),
            list(sources),
            addresses[0],
            base_currency,
            base_currency_unit,
        ],
        verify=verify,
    )


def interest_rate_strategy_node(
    deployer: ContractDeployer,
    contract_id: str,
    params: RateStrategyParams,
    verify: bool = False,
) -> DeploymentNode:
    """
    Node for a DefaultReserveInterestRateStrategy bound to the addresses provider.

    Each strategy is recorded under its own identifier, e.g. "rateStrategyStableOne".
    """
    return deployer.contract_node(
        contract_id,
        artifact_name="DefaultReserveInterestRateStrategy",
        dependencies=["PoolAddressesProvider"],
        constructor_args=lambda addresses: [addresses[0], *astuple(params)],
        verify=verify,
    )


def mock_flash_loan_receiver_node(
    deployer: ContractDeployer, verify: bool = False
) -> DeploymentNode:
    return deployer.contract_node(
        "MockFlashLoanReceiver",
        dependencies=["PoolAddressesProvider"],
        constructor_args=list,
        verify=verify,
    )


def a_token_node(
    deployer: ContractDeployer,
    contract_id: str,
    pool: str,
    underlying_asset: str,
    treasury: str,
    incentives_controller: str,
    name: str,
    symbol: str,
    artifact_name: str = "AToken",
    verify: bool = False,
) -> DeploymentNode:
    """
    Node for an AToken implementation initialized right after deployment.

    Use artifact_name="DelegationAwareAToken" for the delegation-aware variant.
    """
    return deployer.contract_node(
        contract_id,
        artifact_name=artifact_name,
        init_args=[
            pool,
            treasury,
            underlying_asset,
            incentives_controller,
            TOKEN_DECIMALS,
            name,
            symbol,
            TOKEN_PARAMS,
        ],
        verify=verify,
    )


def debt_token_node(
    deployer: ContractDeployer,
    contract_id: str,
    artifact_name: str,
    pool: Optional[str] = None,
    underlying_asset: Optional[str] = None,
    incentives_controller: Optional[str] = None,
    name: Optional[str] = None,
    symbol: Optional[str] = None,
    verify: bool = False,
) -> DeploymentNode:
    """
    Node for a stable or variable debt token.

    Without a pool the token is a bare implementation for proxies;
    with one it is initialized right after deployment.
    """
    init_args = None
    if pool is not None:
        init_args = [
            pool,
            underlying_asset,
            incentives_controller,
            TOKEN_DECIMALS,
            name,
            symbol,
            TOKEN_PARAMS,
        ]
    return deployer.contract_node(
        contract_id, artifact_name=artifact_name, init_args=init_args, verify=verify
    )
