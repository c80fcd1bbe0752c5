"""Environment settings."""

from pathlib import Path

import pytest
from eth_account import Account

from kredly_deploy.config import ConfigurationError, UnknownNetwork
from kredly_deploy.settings import DeploySettings


def test_defaults():
    settings = DeploySettings.from_env({})
    assert settings.network == "hardhat"
    assert settings.json_rpc_url == "http://127.0.0.1:8545"
    assert settings.artifacts_path == Path("artifacts")
    assert settings.deployments_path == Path("deployments")
    assert settings.tags is None
    assert settings.get_signer() is None


def test_live_network():
    account = Account.create()
    settings = DeploySettings.from_env(
        {
            "NETWORK": "mantle_sepolia",
            "JSON_RPC_URL": "http://localhost:9999",
            "DEPLOYER_PRIVATE_KEY": account.key.hex(),
            "TAGS": "PoolRegistry, Comptrollers",
        }
    )
    assert settings.network_settings.chain_id == 5003
    assert settings.json_rpc_url == "http://localhost:9999"
    assert settings.tags == {"PoolRegistry", "Comptrollers"}
    assert settings.get_signer().address == account.address


def test_live_network_needs_key():
    with pytest.raises(ConfigurationError, match="PRIVATE_KEY"):
        DeploySettings.from_env({"NETWORK": "mantle"})


def test_unknown_network():
    with pytest.raises(UnknownNetwork):
        DeploySettings.from_env({"NETWORK": "goerli"})
