"""Find what is not deployed yet.

Compare the configured pools, markets and reward distributors
against the deployment registry and return only the missing ones.
A deployment counts as present when its name, see :py:mod:`kredly_deploy.naming`,
is recorded in the registry.

- Running the pipeline again after a partial failure continues where it stopped

- Changing configuration fields of an already deployed entity does not redeploy it,
  upgrades go through proxy upgrades instead

All functions preserve the input order and do not modify the registry.
"""

import dataclasses
import logging

from kredly_deploy.config import PoolConfig
from kredly_deploy.naming import comptroller_name, le_token_name, rewards_distributor_name
from kredly_deploy.registry import DeploymentRegistry

logger = logging.getLogger(__name__)


def unregistered_pools(pools: tuple[PoolConfig, ...] | list[PoolConfig], registry: DeploymentRegistry) -> list[PoolConfig]:
    """Pools whose comptroller proxy has not been deployed."""
    result = [pool for pool in pools if not registry.has(comptroller_name(pool))]
    logger.info("%d / %d pools need a comptroller", len(result), len(pools))
    return result


def unregistered_le_tokens(pools: tuple[PoolConfig, ...] | list[PoolConfig], registry: DeploymentRegistry) -> list[PoolConfig]:
    """Pools with at least one market proxy not deployed.

    :return:
        Pool configurations with their ``le_tokens`` pruned
        to the markets that still need deploying
    """
    result = []
    for pool in pools:
        missing = tuple(m for m in pool.le_tokens if not registry.has(le_token_name(m)))
        if missing:
            result.append(dataclasses.replace(pool, le_tokens=missing))
    logger.info("%d markets to deploy in %d pools", sum(len(p.le_tokens) for p in result), len(result))
    return result


def unregistered_rewards_distributors(pools: tuple[PoolConfig, ...] | list[PoolConfig], registry: DeploymentRegistry) -> list[tuple[PoolConfig, list[int]]]:
    """Pools with reward distributors not deployed.

    The deployment name of a distributor contains its index in ``pool.rewards``,
    so the indices are returned along with the pool instead of pruning the rewards list.

    :return:
        ``(pool, missing reward indices)`` for pools with at least one missing distributor
    """
    result = []
    for pool in pools:
        missing = [idx for idx in range(len(pool.rewards)) if not registry.has(rewards_distributor_name(pool, idx))]
        if missing:
            result.append((pool, missing))
    return result
