"""Deployment configuration data model.

- The configuration of each network is an immutable :py:class:`DeploymentConfig`
  built from the static tables in :py:mod:`kredly_deploy.networks`

- Configuration is validated when it is loaded, so a bad table
  fails before the first transaction is broadcast

Example:

.. code-block:: python

    from kredly_deploy.config import load_deployment_config

    config = load_deployment_config("sepolia")
    for pool in config.pools:
        print(pool.id, [m.symbol for m in pool.le_tokens])

"""

import enum
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable

from kredly_deploy.units import ZERO_ADDRESS

#: Target sentinel meaning "apply to all current and future contracts"
ANY_CONTRACT = ZERO_ADDRESS

#: Assuming a block is mined every 3 seconds
BLOCKS_PER_YEAR = 10_512_000

#: Caller sentinel for the address that signs the deployment
DEPLOYER_ACCOUNT = "account:deployer"


class ConfigurationError(Exception):
    """The network configuration tables are inconsistent."""


class UnknownNetwork(ConfigurationError):
    """No configuration for the requested network."""


class InterestRateModel(enum.IntEnum):
    """Interest rate model kinds a market can use."""

    #: Linear model: base rate plus utilisation multiplier
    white_paper = 0

    #: Kinked model with a jump multiplier above the kink utilisation
    jump_rate = 1


def normalise_symbol(symbol: str) -> str:
    """Token symbols compare case-insensitively with surrounding whitespace ignored."""
    return symbol.strip().lower()


@dataclass(frozen=True, slots=True)
class TokenConfig:
    """An underlying asset usable as collateral or borrow asset."""

    symbol: str

    #: Deploy a ``MockToken`` on the local network instead of using ``token_address``
    is_mock: bool

    #: Token contract on a live network
    token_address: str = ""

    name: str | None = None

    decimals: int = 18

    #: Mint the initial market supply from the mock token faucet before registering the market
    faucet_initial_liquidity: bool = False


@dataclass(frozen=True, slots=True)
class LeTokenConfig:
    """One interest-bearing market inside a pool.

    All rates and factors are 18 decimal mantissas.
    Supply figures are in the underlying token raw units.
    """

    name: str

    #: Unique across the network, used as the deployment name suffix
    symbol: str

    #: Must match a :py:attr:`TokenConfig.symbol`
    asset: str

    rate_model: InterestRateModel
    base_rate_per_year: int
    multiplier_per_year: int
    jump_multiplier_per_year: int
    kink: int
    collateral_factor: int
    liquidation_threshold: int
    reserve_factor: int
    initial_supply: int
    supply_cap: int
    borrow_cap: int

    #: Address reference that receives the initial supply LeTokens
    le_token_receiver: str

    reduce_reserves_block_delta: int = 100


@dataclass(frozen=True, slots=True)
class RewardConfig:
    """Reward token emission schedule for a pool.

    ``markets`` lists underlying asset symbols of the pool markets.
    ``markets``, ``supply_speeds`` and ``borrow_speeds`` are parallel arrays.
    """

    asset: str
    markets: tuple[str, ...]
    supply_speeds: tuple[int, ...]
    borrow_speeds: tuple[int, ...]


@dataclass(frozen=True, slots=True)
class PoolConfig:
    """A risk-isolated lending pool."""

    #: Stable identifier, used as the comptroller deployment name suffix
    id: str

    name: str
    close_factor: int
    liquidation_incentive: int
    min_liquidatable_collateral: int
    le_tokens: tuple[LeTokenConfig, ...] = ()
    rewards: tuple[RewardConfig, ...] = ()


@dataclass(frozen=True, slots=True)
class AccessControlEntry:
    """One ``giveCallPermission`` grant."""

    #: Address reference of the caller
    caller: str

    #: Address reference of the target contract, or :py:data:`ANY_CONTRACT`
    target: str

    #: Solidity method signature
    method: str


@dataclass(frozen=True)
class DeploymentConfig:
    """Everything needed to deploy the protocol on one network."""

    network: str
    tokens: tuple[TokenConfig, ...]
    pools: tuple[PoolConfig, ...]
    access_control: tuple[AccessControlEntry, ...]

    #: Externally managed addresses, values are address references
    preconfigured_addresses: dict[str, str] = field(default_factory=dict)

    def preconfigured(self, key: str, default: str = "") -> str:
        """Get a preconfigured address reference.

        Empty values fall back to ``default``, usually the name
        of a contract deployed by this harness.
        """
        return self.preconfigured_addresses.get(key) or default


def pool_registry_permissions() -> list[AccessControlEntry]:
    """Comptroller setters the pool registry calls while adding pools and markets."""
    methods = [
        "setCollateralFactor(address,uint256,uint256)",
        "setMarketSupplyCaps(address[],uint256[])",
        "setMarketBorrowCaps(address[],uint256[])",
        "setLiquidationIncentive(uint256)",
        "setCloseFactor(uint256)",
        "setMinLiquidatableCollateral(uint256)",
        "supportMarket(address)",
    ]
    return [AccessControlEntry(caller="PoolRegistry", target=ANY_CONTRACT, method=m) for m in methods]


def deployer_permissions(target: str = ANY_CONTRACT) -> list[AccessControlEntry]:
    """Registry administration methods the deployer calls."""
    methods = [
        "swapPoolsAssets(address[],uint256[],address[][])",
        "addPool(string,address,uint256,uint256,uint256)",
        "addMarket(AddMarketInput)",
        "setRewardTokenSpeeds(address[],uint256[],uint256[])",
        "setReduceReservesBlockDelta(uint256)",
    ]
    return [AccessControlEntry(caller=DEPLOYER_ACCOUNT, target=target, method=m) for m in methods]


def _duplicates(values: Iterable[str]) -> list[str]:
    return [value for value, count in Counter(values).items() if count > 1]


def validate_deployment_config(config: DeploymentConfig):
    """Check cross references inside the configuration.

    :raise ConfigurationError:
        On the first inconsistency found
    """
    token_symbols = {normalise_symbol(t.symbol) for t in config.tokens}

    dupes = _duplicates(normalise_symbol(t.symbol) for t in config.tokens)
    if dupes:
        raise ConfigurationError(f"{config.network}: duplicate token symbols {dupes}")

    dupes = _duplicates(p.id for p in config.pools)
    if dupes:
        raise ConfigurationError(f"{config.network}: duplicate pool ids {dupes}")

    dupes = _duplicates(m.symbol for p in config.pools for m in p.le_tokens)
    if dupes:
        raise ConfigurationError(f"{config.network}: duplicate market symbols {dupes}")

    for pool in config.pools:
        pool_assets = set()
        for market in pool.le_tokens:
            if normalise_symbol(market.asset) not in token_symbols:
                raise ConfigurationError(f"{config.network}: market {market.symbol} in pool {pool.id} uses unknown asset {market.asset}")
            if not isinstance(market.rate_model, InterestRateModel):
                raise ConfigurationError(f"{config.network}: market {market.symbol} has unknown rate model {market.rate_model!r}")
            pool_assets.add(normalise_symbol(market.asset))

        for idx, reward in enumerate(pool.rewards):
            lengths = (len(reward.markets), len(reward.supply_speeds), len(reward.borrow_speeds))
            if len(set(lengths)) != 1:
                raise ConfigurationError(
                    f"{config.network}: reward #{idx} of pool {pool.id} has mismatching array lengths: "
                    f"markets {lengths[0]}, supply speeds {lengths[1]}, borrow speeds {lengths[2]}"
                )
            if normalise_symbol(reward.asset) not in token_symbols:
                raise ConfigurationError(f"{config.network}: reward #{idx} of pool {pool.id} uses unknown reward token {reward.asset}")
            for market_asset in reward.markets:
                if normalise_symbol(market_asset) not in pool_assets:
                    raise ConfigurationError(f"{config.network}: reward #{idx} of pool {pool.id} refers to {market_asset}, which has no market in the pool")


def load_deployment_config(network: str) -> DeploymentConfig:
    """Get the validated configuration of a network.

    :param network:
        One of ``hardhat``, ``sepolia``, ``mantle``, ``mantle_sepolia``

    :raise UnknownNetwork:
        The network has no configuration table
    """
    # Static tables import the data model from here
    from kredly_deploy.networks import NETWORK_CONFIGS

    config = NETWORK_CONFIGS.get(network)
    if config is None:
        raise UnknownNetwork(f"No deployment configuration for network {network}, we have {list(NETWORK_CONFIGS.keys())}")
    validate_deployment_config(config)
    return config
