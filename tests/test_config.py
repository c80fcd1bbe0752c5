"""Configuration loading and validation."""

import dataclasses

import pytest

from kredly_deploy.config import (
    ConfigurationError,
    RewardConfig,
    UnknownNetwork,
    load_deployment_config,
    validate_deployment_config,
)
from kredly_deploy.networks import NETWORK_CONFIGS, NETWORKS


@pytest.mark.parametrize("network", list(NETWORKS.keys()))
def test_network_configs_valid(network):
    config = load_deployment_config(network)
    assert config.network == network
    assert len(config.pools) == 1
    assert len(config.pools[0].le_tokens) == 4


def test_only_local_network_uses_mocks():
    assert all(t.is_mock for t in NETWORK_CONFIGS["hardhat"].tokens)
    assert not any(t.is_mock for t in NETWORK_CONFIGS["sepolia"].tokens)


def test_unknown_network():
    with pytest.raises(UnknownNetwork):
        load_deployment_config("goerli")


def test_preconfigured_fallback():
    config = load_deployment_config("hardhat")
    assert config.preconfigured("AccessControlManager", "AccessControlManager") == "AccessControlManager"
    assert config.preconfigured("LeTreasury") == "account:deployer"

    config = load_deployment_config("mantle")
    # Empty value falls back
    assert config.preconfigured("SwapRouter", "SwapRouter") == "SwapRouter"


def _replace_pool(config, **kwargs):
    pool = dataclasses.replace(config.pools[0], **kwargs)
    return dataclasses.replace(config, pools=(pool,))


def test_unknown_market_asset():
    config = load_deployment_config("hardhat")
    bad_market = dataclasses.replace(config.pools[0].le_tokens[0], asset="DOGE", symbol="leDOGE")
    config = _replace_pool(config, le_tokens=config.pools[0].le_tokens + (bad_market,))
    with pytest.raises(ConfigurationError, match="unknown asset DOGE"):
        validate_deployment_config(config)


def test_duplicate_market_symbol():
    config = load_deployment_config("hardhat")
    markets = config.pools[0].le_tokens
    config = _replace_pool(config, le_tokens=markets + (markets[0],))
    with pytest.raises(ConfigurationError, match="duplicate market symbols"):
        validate_deployment_config(config)


def test_duplicate_token_symbol_ignores_case():
    config = load_deployment_config("hardhat")
    token = dataclasses.replace(config.tokens[0], symbol=" mnt ")
    config = dataclasses.replace(config, tokens=config.tokens + (token,))
    with pytest.raises(ConfigurationError, match="duplicate token symbols"):
        validate_deployment_config(config)


def test_reward_arrays_must_match():
    config = load_deployment_config("hardhat")
    reward = RewardConfig(asset="KRAI", markets=("USDC", "WETH"), supply_speeds=(1,), borrow_speeds=(1, 2))
    config = _replace_pool(config, rewards=(reward,))
    with pytest.raises(ConfigurationError, match="mismatching array lengths"):
        validate_deployment_config(config)


def test_reward_market_must_exist_in_pool():
    config = load_deployment_config("hardhat")
    config = _replace_pool(config, le_tokens=config.pools[0].le_tokens[:1])
    reward = RewardConfig(asset="KRAI", markets=("USDC",), supply_speeds=(1,), borrow_speeds=(1,))
    config = _replace_pool(config, rewards=(reward,))
    with pytest.raises(ConfigurationError, match="has no market in the pool"):
        validate_deployment_config(config)


def test_valid_reward():
    config = load_deployment_config("hardhat")
    reward = RewardConfig(asset="KRAI", markets=("usdc", "WETH"), supply_speeds=(1, 2), borrow_speeds=(3, 4))
    validate_deployment_config(_replace_pool(config, rewards=(reward,)))
