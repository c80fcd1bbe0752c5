"""Deploy the Kredly isolated lending protocol.

Runs the deployment steps of a network in dependency order:

1. Mock tokens, access control manager and price oracle (local network)
2. Pool registry and pool lens
3. Comptroller beacon and a comptroller proxy per pool
4. Interest rate models, LeToken beacon and a LeToken proxy per market
5. Reward distributors
6. Protocol share reserve
7. Access control grants
8. Pool, market and reward registration

Every step can be run again. Pools, markets and reward distributors
that already have a deployment record are skipped, see :py:mod:`kredly_deploy.diff`.

Example:

.. code-block:: python

    context = create_deployment_context(web3, "hardhat", Path("artifacts"))
    summary = run_deployment(context)
    print(context.registry.format_table())

"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, NamedTuple

from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.exceptions import ContractLogicError

from kredly_deploy.accounts import NamedAccounts
from kredly_deploy.address import resolve_address
from kredly_deploy.artifacts import ArtifactStore
from kredly_deploy.config import (
    BLOCKS_PER_YEAR,
    DeploymentConfig,
    InterestRateModel,
    LeTokenConfig,
    PoolConfig,
    deployer_permissions,
    load_deployment_config,
    normalise_symbol,
)
from kredly_deploy.deployments import Deployments, ProxyOptions, TransactionFailed
from kredly_deploy.diff import unregistered_le_tokens, unregistered_pools, unregistered_rewards_distributors
from kredly_deploy.naming import (
    comptroller_name,
    le_token_name,
    mock_token_name,
    rate_model_name,
    rewards_distributor_name,
)
from kredly_deploy.networks import NETWORKS
from kredly_deploy.permissions import grant_permissions
from kredly_deploy.registry import DeploymentRegistry
from kredly_deploy.tokens import find_token, token_address
from kredly_deploy.units import ADDRESS_ONE, ZERO_ADDRESS

logger = logging.getLogger(__name__)

#: Maximum loop iterations the comptroller, reward distributors and reserve allow
MAX_LOOPS_LIMIT = 100

#: LeTokens always have 8 decimals
LE_TOKEN_DECIMALS = 8

#: Price the mock oracle gives to every mock token
MOCK_PRICE = 10**18

#: Generic ERC-20 ABI for underlying tokens
ERC20_ARTIFACT = "@openzeppelin/contracts/token/ERC20/ERC20.sol:ERC20"


@dataclass
class DeploymentContext:
    """Everything a deployment step needs."""

    config: DeploymentConfig
    deployments: Deployments
    accounts: NamedAccounts

    #: Live networks skip the mock deployments
    live: bool

    max_loops_limit: int = MAX_LOOPS_LIMIT

    @property
    def registry(self) -> DeploymentRegistry:
        return self.deployments.registry

    @property
    def deployer(self) -> str:
        return self.deployments.deployer_address

    def resolve(self, reference: str) -> str:
        """Resolve an address reference, see :py:func:`kredly_deploy.address.resolve_address`."""
        return resolve_address(reference, self.accounts, self.registry)

    @property
    def access_control_manager(self) -> str:
        return self.resolve(self.config.preconfigured("AccessControlManager", "AccessControlManager"))

    @property
    def price_oracle(self) -> str:
        return self.resolve(self.config.preconfigured("priceOracle", "mockPriceOracle"))


@dataclass
class MarketRegistrationReport:
    """Outcome of registering markets in the pool registry.

    A failing market does not stop the others from being registered.
    """

    registered: list[str] = field(default_factory=list)

    #: Already listed in their comptroller
    skipped: list[str] = field(default_factory=list)

    #: Market symbol -> error message
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return len(self.failed) == 0


class DeploymentStep(NamedTuple):
    name: str
    func: Callable[[DeploymentContext], object]
    tags: frozenset[str]

    #: Run only on the local test network
    local_only: bool = False


@dataclass
class DeploymentSummary:
    """What :py:func:`run_deployment` did."""

    steps: list[str] = field(default_factory=list)
    markets: MarketRegistrationReport | None = None


def deploy_mock_tokens(ctx: DeploymentContext):
    """Deploy a ``MockToken`` for each mock token in the token list."""
    for token in ctx.config.tokens:
        if token.is_mock:
            ctx.deployments.deploy(
                mock_token_name(token.symbol),
                contract="MockToken",
                args=[token.name or token.symbol, token.symbol, token.decimals],
                skip_if_already_deployed=True,
            )


def deploy_access_control_manager(ctx: DeploymentContext):
    if ctx.config.preconfigured("AccessControlManager"):
        logger.info("Using preconfigured AccessControlManager")
        return
    ctx.deployments.deploy("AccessControlManager")


def deploy_mock_price_oracle(ctx: DeploymentContext):
    """Deploy a mock price oracle and give every mock token a price of 1."""
    if ctx.config.preconfigured("priceOracle"):
        logger.info("Using preconfigured price oracle")
        return

    ctx.deployments.deploy("mockPriceOracle", contract="MockPriceOracle")
    oracle = ctx.deployments.get_contract("mockPriceOracle")
    for token in ctx.config.tokens:
        if token.is_mock:
            ctx.deployments.transact(oracle.functions.setPrice(token_address(token, ctx.registry), MOCK_PRICE))


def deploy_pool_registry(ctx: DeploymentContext):
    ctx.deployments.deploy(
        "PoolRegistry",
        proxy=ProxyOptions(owner=ctx.deployer, args=(ctx.access_control_manager,)),
    )


def deploy_pool_lens(ctx: DeploymentContext):
    ctx.deployments.deploy("PoolLens")


def deploy_comptrollers(ctx: DeploymentContext) -> list[str]:
    """Deploy the comptroller beacon and a beacon proxy for every new pool.

    :return:
        Deployed comptroller names
    """
    pool_registry = ctx.registry.get("PoolRegistry").address
    acm = ctx.access_control_manager

    implementation = ctx.deployments.deploy("ComptrollerImpl", contract="Comptroller", args=[pool_registry])
    beacon = ctx.deployments.deploy("ComptrollerBeacon", contract="UpgradeableBeacon", args=[implementation.address])

    deployed = []
    for pool in unregistered_pools(ctx.config.pools, ctx.registry):
        logger.info("Deploying a proxy for Comptroller of the pool %s", pool.name)
        init_data = ctx.deployments.encode_function_data("Comptroller", "initialize", [ctx.max_loops_limit, acm])
        result = ctx.deployments.deploy(comptroller_name(pool), contract="BeaconProxy", args=[beacon.address, init_data])
        deployed.append(result.name)
    return deployed


def deploy_rate_model(ctx: DeploymentContext, market: LeTokenConfig) -> str:
    """Deploy the interest rate model of a market, or reuse one with identical parameters.

    :return:
        Rate model address
    """
    name = rate_model_name(market)
    logger.info("Deploying interest rate model %s", name)
    if market.rate_model == InterestRateModel.jump_rate:
        result = ctx.deployments.deploy(
            name,
            contract="KinkedRateModelV2",
            args=[
                BLOCKS_PER_YEAR,
                market.base_rate_per_year,
                market.multiplier_per_year,
                market.jump_multiplier_per_year,
                market.kink,
                ctx.access_control_manager,
            ],
        )
    else:
        result = ctx.deployments.deploy(
            name,
            contract="LinearInterestRateModel",
            args=[BLOCKS_PER_YEAR, market.base_rate_per_year, market.multiplier_per_year],
        )
    return result.address


def deploy_le_tokens(ctx: DeploymentContext) -> list[str]:
    """Deploy the LeToken beacon and a beacon proxy for every new market.

    :return:
        Deployed market names
    """
    acm = ctx.access_control_manager
    treasury = ctx.resolve(ctx.config.preconfigured("LeTreasury", "account:deployer"))
    timelock = ctx.config.preconfigured("NormalTimelock")
    admin = ctx.resolve(timelock) if timelock else ctx.deployer

    implementation = ctx.deployments.deploy("LeTokenImpl", contract="LeToken")
    beacon = ctx.deployments.deploy("LeTokenBeacon", contract="UpgradeableBeacon", args=[implementation.address])

    deployed = []
    for pool in unregistered_le_tokens(ctx.config.pools, ctx.registry):
        comptroller = ctx.registry.get(comptroller_name(pool)).address

        for market in pool.le_tokens:
            token = find_token(market.asset, ctx.config.tokens)
            underlying = token_address(token, ctx.registry)
            rate_model = deploy_rate_model(ctx, market)

            logger.info("Deploying LeToken proxy for %s", market.symbol)
            underlying_decimals = ctx.deployments.get_contract_at(ERC20_ARTIFACT, underlying).functions.decimals().call()
            init_args = [
                underlying,
                comptroller,
                rate_model,
                10 ** (underlying_decimals + 18 - LE_TOKEN_DECIMALS),
                market.name,
                market.symbol,
                LE_TOKEN_DECIMALS,
                admin,
                acm,
                [ADDRESS_ONE, treasury],
                market.reserve_factor,
            ]
            init_data = ctx.deployments.encode_function_data("LeToken", "initialize", init_args)
            result = ctx.deployments.deploy(le_token_name(market), contract="BeaconProxy", args=[beacon.address, init_data])
            deployed.append(result.name)
    return deployed


def deploy_rewards_distributors(ctx: DeploymentContext) -> list[str]:
    """Deploy a reward distributor proxy for every new pool reward.

    :return:
        Deployed distributor names
    """
    acm = ctx.access_control_manager
    ctx.deployments.deploy("RewardsDistributorImpl", contract="RewardsDistributor", skip_if_already_deployed=True)

    deployed = []
    for pool, indices in unregistered_rewards_distributors(ctx.config.pools, ctx.registry):
        comptroller = ctx.registry.get(comptroller_name(pool)).address
        for idx in indices:
            reward = pool.rewards[idx]
            reward_token = token_address(find_token(reward.asset, ctx.config.tokens), ctx.registry)
            result = ctx.deployments.deploy(
                rewards_distributor_name(pool, idx),
                contract="RewardsDistributor",
                proxy=ProxyOptions(
                    owner=ctx.deployer,
                    args=(comptroller, reward_token, ctx.max_loops_limit, acm),
                    implementation_name="RewardsDistributorImpl",
                ),
            )
            deployed.append(result.name)
    return deployed


def deploy_protocol_share_reserve(ctx: DeploymentContext):
    """Deploy the protocol share reserve and point it to the pool registry."""
    ctx.deployments.deploy(
        "ProtocolShareReserve",
        proxy=ProxyOptions(owner=ctx.deployer, args=(ctx.access_control_manager, ctx.max_loops_limit)),
    )
    reserve = ctx.deployments.get_contract("ProtocolShareReserve")
    pool_registry = ctx.registry.get("PoolRegistry").address
    if reserve.functions.poolRegistry().call() != pool_registry:
        ctx.deployments.transact(reserve.functions.setPoolRegistry(pool_registry))


def grant_access_control(ctx: DeploymentContext) -> int:
    """Issue the configured grants and the deployer's pool registry grants.

    :return:
        Number of grants issued
    """
    acm = ctx.deployments.get_contract_at("AccessControlManager", ctx.access_control_manager)
    entries = list(ctx.config.access_control) + deployer_permissions(target="PoolRegistry")
    return grant_permissions(ctx.deployments, acm, entries, ctx.accounts)


def is_pool_registered(pool_registry, comptroller: str) -> bool:
    """Does the pool registry already know the comptroller."""
    # (name, creator, comptroller, blockPosted, timestampPosted)
    pool = pool_registry.functions.getPoolByComptroller(comptroller).call()
    return pool[2] != ZERO_ADDRESS


def register_pools(ctx: DeploymentContext) -> list[str]:
    """Set the price oracle of new comptrollers and add them to the pool registry.

    :return:
        Registered pool ids
    """
    pool_registry = ctx.deployments.get_contract("PoolRegistry")
    oracle = ctx.price_oracle

    registered = []
    for pool in ctx.config.pools:
        comptroller_address = ctx.registry.get(comptroller_name(pool)).address
        if is_pool_registered(pool_registry, comptroller_address):
            logger.info("Pool %s already registered", pool.id)
            continue

        logger.info("Registering %s", comptroller_name(pool))
        comptroller = ctx.deployments.get_contract_at("Comptroller", comptroller_address)
        ctx.deployments.transact(comptroller.functions.setPriceOracle(oracle))
        ctx.deployments.transact(
            pool_registry.functions.addPool(
                pool.name,
                comptroller_address,
                pool.close_factor,
                pool.liquidation_incentive,
                pool.min_liquidatable_collateral,
            )
        )
        registered.append(pool.id)
    return registered


def _register_market(ctx: DeploymentContext, pool_registry, market: LeTokenConfig, le_token: str):
    token = find_token(market.asset, ctx.config.tokens)
    underlying = token_address(token, ctx.registry)

    if token.is_mock and token.faucet_initial_liquidity and not ctx.live:
        mock = ctx.deployments.get_contract_at("MockToken", underlying)
        ctx.deployments.transact(mock.functions.faucet(market.initial_supply))

    erc20 = ctx.deployments.get_contract_at(ERC20_ARTIFACT, underlying)
    ctx.deployments.transact(erc20.functions.approve(pool_registry.address, market.initial_supply))

    # AddMarketInput struct
    add_market_input = (
        le_token,
        market.collateral_factor,
        market.liquidation_threshold,
        market.initial_supply,
        ctx.resolve(market.le_token_receiver),
        market.supply_cap,
        market.borrow_cap,
    )
    ctx.deployments.transact(pool_registry.functions.addMarket(add_market_input))


def register_markets(ctx: DeploymentContext) -> MarketRegistrationReport:
    """Add every deployed market to the pool registry.

    A market whose transactions fail is logged and recorded in the report,
    and the remaining markets are still registered.
    """
    pool_registry = ctx.deployments.get_contract("PoolRegistry")
    report = MarketRegistrationReport()

    for pool in ctx.config.pools:
        comptroller = ctx.deployments.get_contract_at("Comptroller", ctx.registry.get(comptroller_name(pool)).address)
        listed = set(comptroller.functions.getAllMarkets().call())

        for market in pool.le_tokens:
            le_token = ctx.registry.get(le_token_name(market)).address
            if le_token in listed:
                report.skipped.append(market.symbol)
                continue

            try:
                _register_market(ctx, pool_registry, market, le_token)
                report.registered.append(market.symbol)
            except (TransactionFailed, ContractLogicError) as e:
                logger.warning("add market error %s: %s", market.symbol, e)
                report.failed[market.symbol] = str(e)

    logger.info("Markets registered: %d, skipped: %d, failed: %d", len(report.registered), len(report.skipped), len(report.failed))
    return report


def _reward_market_addresses(ctx: DeploymentContext, pool: PoolConfig, assets: tuple[str, ...]) -> list[str]:
    by_asset = {normalise_symbol(m.asset): m for m in pool.le_tokens}
    return [ctx.registry.get(le_token_name(by_asset[normalise_symbol(a)])).address for a in assets]


def configure_rewards(ctx: DeploymentContext):
    """Attach reward distributors to their comptrollers and set emission speeds."""
    for pool in ctx.config.pools:
        if not pool.rewards:
            continue

        comptroller = ctx.deployments.get_contract_at("Comptroller", ctx.registry.get(comptroller_name(pool)).address)
        attached = set(comptroller.functions.getRewardDistributors().call())

        for idx, reward in enumerate(pool.rewards):
            name = rewards_distributor_name(pool, idx)
            distributor = ctx.deployments.get_contract(name)
            if distributor.address not in attached:
                logger.info("Adding %s to comptroller of %s", name, pool.id)
                ctx.deployments.transact(comptroller.functions.addRewardsDistributor(distributor.address))

            markets = _reward_market_addresses(ctx, pool, reward.markets)
            ctx.deployments.transact(distributor.functions.setRewardTokenSpeeds(markets, list(reward.supply_speeds), list(reward.borrow_speeds)))


def set_protocol_share_reserve(ctx: DeploymentContext):
    """Point every market to the protocol share reserve and set its reserve reduction interval."""
    reserve = ctx.registry.get("ProtocolShareReserve").address
    for pool in ctx.config.pools:
        for market in pool.le_tokens:
            le_token = ctx.deployments.get_contract_at("LeToken", ctx.registry.get(le_token_name(market)).address)
            if le_token.functions.protocolShareReserve().call() != reserve:
                ctx.deployments.transact(le_token.functions.setProtocolShareReserve(reserve))
            if le_token.functions.reduceReservesBlockDelta().call() != market.reduce_reserves_block_delta:
                ctx.deployments.transact(le_token.functions.setReduceReservesBlockDelta(market.reduce_reserves_block_delta))


DEFAULT_STEPS: tuple[DeploymentStep, ...] = (
    DeploymentStep("MockTokens", deploy_mock_tokens, frozenset({"MockTokens"}), local_only=True),
    DeploymentStep("AccessControlManager", deploy_access_control_manager, frozenset({"AccessControlManager"}), local_only=True),
    DeploymentStep("MockPriceOracle", deploy_mock_price_oracle, frozenset({"MockPriceOracle"}), local_only=True),
    DeploymentStep("PoolRegistry", deploy_pool_registry, frozenset({"PoolRegistry", "il"})),
    DeploymentStep("PoolLens", deploy_pool_lens, frozenset({"PoolLens", "il"})),
    DeploymentStep("Comptrollers", deploy_comptrollers, frozenset({"Comptrollers", "il"})),
    DeploymentStep("LeTokens", deploy_le_tokens, frozenset({"LeTokens", "il"})),
    DeploymentStep("RewardsDistributors", deploy_rewards_distributors, frozenset({"Rewards", "il"})),
    DeploymentStep("ProtocolShareReserve", deploy_protocol_share_reserve, frozenset({"ProtocolShareReserve", "Rewards", "il"})),
    DeploymentStep("AccessControl", grant_access_control, frozenset({"AccessControl", "il"})),
    DeploymentStep("RegisterPools", register_pools, frozenset({"Register", "il"})),
    DeploymentStep("RegisterMarkets", register_markets, frozenset({"Register", "il"})),
    DeploymentStep("ConfigureRewards", configure_rewards, frozenset({"Rewards", "il"})),
    DeploymentStep("SetProtocolShareReserve", set_protocol_share_reserve, frozenset({"ProtocolShareReserve", "il"})),
)


def run_deployment(
    ctx: DeploymentContext,
    steps: tuple[DeploymentStep, ...] | list[DeploymentStep] = DEFAULT_STEPS,
    tags: set[str] | None = None,
) -> DeploymentSummary:
    """Run deployment steps in order.

    Steps are run one at a time and the first failure aborts the run.
    Run again to continue, already deployed contracts are reused.

    :param tags:
        Only run steps that have one of these tags.

        If not given, run all steps.
    """
    summary = DeploymentSummary()
    for step in steps:
        if tags and not (step.tags & tags):
            continue
        if step.local_only and ctx.live:
            logger.info("Skipping %s on live network %s", step.name, ctx.config.network)
            continue

        logger.info("Running deployment step %s on %s", step.name, ctx.config.network)
        result = step.func(ctx)
        if isinstance(result, MarketRegistrationReport):
            summary.markets = result
        summary.steps.append(step.name)
    return summary


def create_deployment_context(
    web3: Web3,
    network: str,
    artifacts_path: Path,
    deployments_path: Path | None = None,
    signer: LocalAccount | None = None,
    gas: int | None = None,
) -> DeploymentContext:
    """Wire up configuration, registry, accounts and the deployer for a network.

    :param deployments_path:
        Root folder for deployment files.

        Ignored on the local network, where deployments are kept in memory.

    :param signer:
        Private key account for live networks.

        If not given, use the node's first unlocked account.
    """
    config = load_deployment_config(network)
    settings = NETWORKS[network]

    if settings.live:
        assert deployments_path is not None, f"Live network {network} needs a deployments folder"
        registry = DeploymentRegistry.open(deployments_path, network)
    else:
        registry = DeploymentRegistry()

    accounts = NamedAccounts(web3, signer=signer)
    deployer = signer if signer is not None else accounts.deployer
    deployments = Deployments(web3, registry, ArtifactStore(artifacts_path), deployer=deployer, gas=gas)
    return DeploymentContext(config=config, deployments=deployments, accounts=accounts, live=settings.live)
