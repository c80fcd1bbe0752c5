"""Per-network deployment tables.

- Token lists, pools, markets and preconfigured addresses for every network we deploy to

- ``hardhat`` is the local test network where tokens, the access control manager
  and the price oracle are mocks deployed by us

- Live networks use the token and access control manager addresses below
"""

from typing import NamedTuple

from kredly_deploy.config import (
    DeploymentConfig,
    InterestRateModel,
    LeTokenConfig,
    PoolConfig,
    TokenConfig,
    pool_registry_permissions,
)
from kredly_deploy.units import convert_to_unit


class NetworkSettings(NamedTuple):
    #: Network name as used in the configuration tables
    name: str

    chain_id: int

    #: Default JSON-RPC endpoint, can be overridden with JSON_RPC_URL
    rpc_url: str | None

    #: Live networks get deployment files saved and skip mock deployments
    live: bool


NETWORKS: dict[str, NetworkSettings] = {
    "hardhat": NetworkSettings(name="hardhat", chain_id=31337, rpc_url="http://127.0.0.1:8545", live=False),
    "sepolia": NetworkSettings(name="sepolia", chain_id=11155111, rpc_url="https://rpc2.sepolia.org", live=True),
    "mantle": NetworkSettings(name="mantle", chain_id=5000, rpc_url="https://mantle.drpc.org", live=True),
    "mantle_sepolia": NetworkSettings(name="mantle_sepolia", chain_id=5003, rpc_url="https://rpc.sepolia.mantle.xyz", live=True),
}


#: Named account indices, the same on every network
NAMED_ACCOUNTS: dict[str, int] = {
    "deployer": 0,
    "acc1": 1,
    "acc2": 2,
    "proxyAdmin": 3,
    "acc3": 4,
    "SwapRouter": 5,
}


PRECONFIGURED_ADDRESSES: dict[str, dict[str, str]] = {
    "hardhat": {
        "LeTreasury": "account:deployer",
    },
    "mantle": {
        "AccessControlManager": "0x5DE2f6501fB48F4838832233Aea564c8fa940d03",
        "SwapRouter": "",
        "Shortfall": "0xf37530A8a810Fcb501AA0Ecd0B0699388F0F2209",
        "LeTreasury": "account:deployer",
        "priceOracle": "0x4d9F3111cD9b69b98777e7d252DC4A167AA20317",
    },
    "mantle_sepolia": {
        "AccessControlManager": "0x3836D5FE9818597dF1758f64C4960c2a22bfb296",
        "SwapRouter": "",
        "Shortfall": "0x48f9d844364095B1B0B9429A18ec9B4fA5c6Af41",
        "LeTreasury": "account:deployer",
        "priceOracle": "0x4b410Dd703C4d1eE8771A6d42aD0BB3d11df0B2f",
    },
    "sepolia": {
        "AccessControlManager": "0x659024D7099078397F3b533992C7D835a08F75de",
        "LeTreasury": "account:deployer",
        "priceOracle": "0xd5860e5667cb25AB2D15D7E74104CfCc7BD88f3f",
    },
}


def _tokens(is_mock: bool) -> tuple[TokenConfig, ...]:
    # Live networks share the same token addresses
    return (
        TokenConfig(symbol="MNT", name="MNT", decimals=18, is_mock=is_mock, token_address="0x00a92853EC3084F3C52A6c6C2D744cb98b4bcAc3", faucet_initial_liquidity=is_mock),
        TokenConfig(symbol="WETH", name="wrappedETH", decimals=18, is_mock=is_mock, token_address="0x5351197Fc3bc4301F885E2085abe17C14724FdD4", faucet_initial_liquidity=is_mock),
        TokenConfig(symbol="KRAI", name="KRAI", decimals=18, is_mock=is_mock, token_address="0x12710030e9EfDb9b085b7446C50a8aaAb3Aa7921", faucet_initial_liquidity=is_mock),
        TokenConfig(symbol="USDC", name="USDC", decimals=6, is_mock=is_mock, token_address="0x448ca23a0C9d64fEcD4852B29Df0b3193f026300", faucet_initial_liquidity=is_mock),
    )


def _core_pool_market(asset: str, decimals: int, receiver: str) -> LeTokenConfig:
    return LeTokenConfig(
        name=f"{asset} (KredlyCorePool)",
        symbol=f"le{asset}_KredlyCorePool",
        asset=asset,
        rate_model=InterestRateModel.jump_rate,
        base_rate_per_year=convert_to_unit("0.02", 18),
        multiplier_per_year=convert_to_unit("0.1", 18),
        jump_multiplier_per_year=convert_to_unit("3", 18),
        kink=convert_to_unit("0.8", 18),
        collateral_factor=convert_to_unit("0.65", 18),
        liquidation_threshold=convert_to_unit("0.7", 18),
        reserve_factor=convert_to_unit("0.2", 18),
        initial_supply=convert_to_unit(10_000, decimals),
        supply_cap=convert_to_unit(500_000, decimals),
        borrow_cap=convert_to_unit(200_000, decimals),
        le_token_receiver=receiver,
        reduce_reserves_block_delta=100,
    )


def _core_pool(network: str) -> PoolConfig:
    receiver = PRECONFIGURED_ADDRESSES[network]["LeTreasury"]
    return PoolConfig(
        id="KredlyCorePool",
        name="Kredly Core Pool",
        close_factor=convert_to_unit("0.5", 18),
        liquidation_incentive=convert_to_unit("1.1", 18),
        min_liquidatable_collateral=convert_to_unit("100", 18),
        le_tokens=(
            _core_pool_market("MNT", 18, receiver),
            _core_pool_market("WETH", 18, receiver),
            _core_pool_market("KRAI", 18, receiver),
            # USDC has 6 decimals
            _core_pool_market("USDC", 6, receiver),
        ),
        rewards=(),
    )


def _network_config(network: str, mock_tokens: bool) -> DeploymentConfig:
    return DeploymentConfig(
        network=network,
        tokens=_tokens(mock_tokens),
        pools=(_core_pool(network),),
        access_control=tuple(pool_registry_permissions()),
        preconfigured_addresses=PRECONFIGURED_ADDRESSES[network],
    )


NETWORK_CONFIGS: dict[str, DeploymentConfig] = {
    "hardhat": _network_config("hardhat", mock_tokens=True),
    "sepolia": _network_config("sepolia", mock_tokens=False),
    "mantle": _network_config("mantle", mock_tokens=False),
    "mantle_sepolia": _network_config("mantle_sepolia", mock_tokens=False),
}
