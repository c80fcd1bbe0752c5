"""Access control grant resolution."""

import pytest

from kredly_deploy.address import UnresolvedAddress
from kredly_deploy.config import ANY_CONTRACT, AccessControlEntry, deployer_permissions, pool_registry_permissions
from kredly_deploy.permissions import ResolvedGrant, resolve_grants
from kredly_deploy.registry import DeploymentRecord, DeploymentRegistry
from kredly_deploy.units import ZERO_ADDRESS

POOL_REGISTRY = "0x0000000000000000000000000000000000001000"


@pytest.fixture()
def registry() -> DeploymentRegistry:
    registry = DeploymentRegistry()
    registry.save(DeploymentRecord(name="PoolRegistry", address=POOL_REGISTRY))
    return registry


def test_any_contract_target(accounts, registry):
    grants = resolve_grants(pool_registry_permissions(), accounts, registry)
    assert len(grants) == 7
    assert all(g.target == ZERO_ADDRESS and g.caller == POOL_REGISTRY for g in grants)
    assert "supportMarket(address)" in {g.method for g in grants}


def test_deployer_grants(web3, accounts, registry):
    grants = resolve_grants(deployer_permissions(target="PoolRegistry"), accounts, registry)
    assert grants[1] == ResolvedGrant(caller=web3.eth.accounts[0], target=POOL_REGISTRY, method="addPool(string,address,uint256,uint256,uint256)")


def test_caller_not_deployed(accounts):
    entry = AccessControlEntry(caller="PoolRegistry", target=ANY_CONTRACT, method="setCloseFactor(uint256)")
    with pytest.raises(UnresolvedAddress):
        resolve_grants([entry], accounts, DeploymentRegistry())
