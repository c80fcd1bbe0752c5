"""Access control grants.

Give call permissions through the protocol ``AccessControlManager``:
``giveCallPermission(target, method, caller)``.

No check is made whether a grant already exists, re-granting
is left to the access control manager.
"""

import logging
from dataclasses import dataclass

from web3.contract import Contract

from kredly_deploy.address import resolve_address
from kredly_deploy.config import AccessControlEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ResolvedGrant:
    """A grant with caller and target resolved to addresses."""

    caller: str
    target: str
    method: str


def resolve_grants(entries, accounts, registry) -> list[ResolvedGrant]:
    """Resolve caller and target references of access control entries.

    :raise kredly_deploy.address.UnresolvedAddress:
        Caller or target has not been deployed
    """
    grants = []
    for entry in entries:
        assert isinstance(entry, AccessControlEntry), f"Expected AccessControlEntry, got {entry}"
        target = resolve_address(entry.target, accounts, registry)
        caller = resolve_address(entry.caller, accounts, registry)
        grants.append(ResolvedGrant(caller=caller, target=target, method=entry.method))
    return grants


def give_call_permissions(deployments, access_control_manager: Contract, grants: list[ResolvedGrant]) -> int:
    """Send one ``giveCallPermission`` transaction per grant.

    :return:
        Number of transactions sent
    """
    for grant in grants:
        logger.info("Giving %s permission to call %s on %s", grant.caller, grant.method, grant.target)
        deployments.transact(access_control_manager.functions.giveCallPermission(grant.target, grant.method, grant.caller))
    return len(grants)


def grant_permissions(deployments, access_control_manager: Contract, entries, accounts) -> int:
    """Resolve and issue access control entries.

    :param deployments:
        :py:class:`kredly_deploy.deployments.Deployments` used to send the transactions

    :param access_control_manager:
        AccessControlManager contract instance

    :param entries:
        :py:class:`AccessControlEntry` list, targets can be :py:data:`kredly_deploy.config.ANY_CONTRACT`

    :param accounts:
        :py:class:`kredly_deploy.accounts.NamedAccounts` for ``account:`` references

    :return:
        Number of grants issued
    """
    grants = resolve_grants(entries, accounts, deployments.registry)
    return give_call_permissions(deployments, access_control_manager, grants)
