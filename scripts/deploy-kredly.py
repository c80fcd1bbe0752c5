"""Deploy Kredly isolated lending pools.

- Deploys registry, comptrollers, markets, reward distributors and the protocol share reserve
- Registers pools and markets
- Can be run again, already deployed contracts are reused

To run against a local Hardhat node:

.. code-block:: shell

    npx hardhat compile
    npx hardhat node &
    python scripts/deploy-kredly.py

To deploy on Mantle Sepolia:

.. code-block:: shell

    export NETWORK=mantle_sepolia
    export PRIVATE_KEY=...
    export JSON_RPC_URL=...
    python scripts/deploy-kredly.py

"""

import logging
import sys

from web3 import HTTPProvider, Web3

from kredly_deploy.orchestrator import create_deployment_context, run_deployment
from kredly_deploy.settings import DeploySettings
from kredly_deploy.utils import setup_console_logging

logger = logging.getLogger(__name__)


def main():
    setup_console_logging()
    settings = DeploySettings.from_env()

    web3 = Web3(HTTPProvider(settings.json_rpc_url))
    chain_id = web3.eth.chain_id
    expected_chain_id = settings.network_settings.chain_id
    assert chain_id == expected_chain_id, f"Connected to chain {chain_id}, but {settings.network} is {expected_chain_id}"

    print(f"Deploying to {settings.network}, chain {chain_id}, last block {web3.eth.block_number:,}")

    ctx = create_deployment_context(
        web3,
        settings.network,
        settings.artifacts_path,
        deployments_path=settings.deployments_path,
        signer=settings.get_signer(),
    )
    print(f"Deployer is {ctx.deployer}")

    summary = run_deployment(ctx, tags=settings.tags)

    print(ctx.registry.format_table())
    print(f"Steps run: {', '.join(summary.steps)}")

    if summary.markets and not summary.markets.ok:
        for symbol, error in summary.markets.failed.items():
            print(f"Market {symbol} was not registered: {error}")
        sys.exit(1)


if __name__ == "__main__":
    main()
