"""Deployment names.

Deployment names are the idempotency keys of the harness: a contract whose
name is present in the deployment registry is never deployed again.
All names are functions of configuration fields only.
"""

from kredly_deploy.config import InterestRateModel, LeTokenConfig, PoolConfig

#: One basis point as an 18 decimal mantissa
BPS_MANTISSA = 10**14


def mantissa_to_bps(mantissa: int | str) -> int:
    """Convert an 18 decimal rate mantissa to basis points.

    Truncates toward zero, so ``199999999999999`` is ``1`` bps.
    """
    return int(mantissa) // BPS_MANTISSA


def mock_token_name(symbol: str) -> str:
    return f"Mock{symbol}"


def comptroller_name(pool: PoolConfig) -> str:
    """Name of the pool comptroller beacon proxy."""
    return f"Comptroller_{pool.id}"


def le_token_name(market: LeTokenConfig) -> str:
    """Name of the market beacon proxy."""
    return f"LeToken_{market.symbol}"


def rewards_distributor_name(pool: PoolConfig, index: int) -> str:
    """Name of the reward distributor proxy for ``pool.rewards[index]``."""
    return f"RewardsDistributor_{pool.id}_{index}"


def rate_model_name(market: LeTokenConfig) -> str:
    """Name of the interest rate model contract a market uses.

    Markets with the same model kind and basis point parameters
    share a single rate model deployment.

    Example:

    .. code-block:: python

        # 2% base, 10% slope, 300% jump, 80% kink
        assert rate_model_name(market) == "KinkedRateModelV2_base200bps_slope1000bps_jump30000bps_kink8000bps"
    """
    if market.rate_model == InterestRateModel.jump_rate:
        b, m, j, k = map(mantissa_to_bps, (market.base_rate_per_year, market.multiplier_per_year, market.jump_multiplier_per_year, market.kink))
        return f"KinkedRateModelV2_base{b}bps_slope{m}bps_jump{j}bps_kink{k}bps"
    else:
        b, m = map(mantissa_to_bps, (market.base_rate_per_year, market.multiplier_per_year))
        return f"WhitePaperInterestRateModel_base{b}bps_slope{m}bps"
