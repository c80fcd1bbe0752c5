"""Token lookups."""

import pytest

from kredly_deploy.config import load_deployment_config
from kredly_deploy.registry import DeploymentNotFound, DeploymentRecord, DeploymentRegistry
from kredly_deploy.tokens import TokenNotFound, find_token, token_address


def test_find_token_normalises_symbol():
    tokens = load_deployment_config("hardhat").tokens
    assert find_token(" usdc ", tokens).symbol == "USDC"
    assert find_token("WETH", tokens).name == "wrappedETH"


def test_token_not_found():
    tokens = load_deployment_config("hardhat").tokens
    with pytest.raises(TokenNotFound, match="Token DOGE is not found in the config"):
        find_token("DOGE", tokens)


def test_mock_token_address():
    usdc = find_token("USDC", load_deployment_config("hardhat").tokens)
    registry = DeploymentRegistry()
    with pytest.raises(DeploymentNotFound):
        token_address(usdc, registry)

    registry.save(DeploymentRecord(name="MockUSDC", address="0x0000000000000000000000000000000000001234"))
    assert token_address(usdc, registry) == "0x0000000000000000000000000000000000001234"


def test_live_token_address():
    usdc = find_token("USDC", load_deployment_config("sepolia").tokens)
    assert token_address(usdc, DeploymentRegistry()) == "0x448ca23a0C9d64fEcD4852B29Df0b3193f026300"
