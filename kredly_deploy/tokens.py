"""Underlying token lookups."""

from kredly_deploy.config import TokenConfig, normalise_symbol
from kredly_deploy.naming import mock_token_name
from kredly_deploy.registry import DeploymentRegistry


class TokenNotFound(Exception):
    """Token symbol is not in the network token list."""


def find_token(symbol: str, tokens: tuple[TokenConfig, ...] | list[TokenConfig]) -> TokenConfig:
    """Find a token configuration by its symbol.

    Matching ignores case and surrounding whitespace,
    so ``" usdc "`` finds ``USDC``.

    :raise TokenNotFound:
        No token with the symbol
    """
    wanted = normalise_symbol(symbol)
    for token in tokens:
        if normalise_symbol(token.symbol) == wanted:
            return token
    raise TokenNotFound(f"Token {symbol} is not found in the config")


def token_address(token: TokenConfig, registry: DeploymentRegistry) -> str:
    """Address of the token contract.

    Mock tokens resolve to the ``Mock<symbol>`` deployment,
    others to the configured address.

    :raise kredly_deploy.registry.DeploymentNotFound:
        Mock token has not been deployed yet
    """
    if token.is_mock:
        return registry.get(mock_token_name(token.symbol)).address
    return token.token_address
