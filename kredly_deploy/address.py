"""Address references.

Configuration values can point to an address in three ways:

- ``0x...`` literal address, used as is
- ``account:<role>`` a named account, see :py:class:`kredly_deploy.accounts.NamedAccounts`
- any other string is a deployment name looked up from the deployment registry

An empty reference means the address is not set.
"""

from kredly_deploy.accounts import NamedAccounts, UnknownAccount
from kredly_deploy.registry import DeploymentRegistry
from kredly_deploy.units import ZERO_ADDRESS

__all__ = ["ACCOUNT_PREFIX", "UnknownAccount", "UnresolvedAddress", "resolve_address"]

ACCOUNT_PREFIX = "account:"


class UnresolvedAddress(Exception):
    """Reference points to a deployment that does not exist yet."""


def resolve_address(
    reference: str,
    accounts: NamedAccounts,
    registry: DeploymentRegistry,
) -> str:
    """Turn an address reference to an address.

    :param reference:
        Literal address, ``account:<role>``, deployment name or empty string

    :return:
        Address, or zero address for an empty reference

    :raise UnknownAccount:
        ``account:<role>`` names an unknown role

    :raise UnresolvedAddress:
        No deployment under the referenced name
    """
    assert isinstance(reference, str), f"Address reference must be a string, got {type(reference)}: {reference}"

    if reference == "":
        return ZERO_ADDRESS

    if reference.startswith(ACCOUNT_PREFIX):
        return accounts.get_address(reference[len(ACCOUNT_PREFIX):])

    if reference.startswith("0x"):
        return reference

    if not registry.has(reference):
        raise UnresolvedAddress(f"Cannot resolve address for {reference}: nothing deployed under this name")

    return registry.get(reference).address
