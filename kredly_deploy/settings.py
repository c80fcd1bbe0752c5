"""Deployment settings from environment variables.

- ``NETWORK``: network name, default ``hardhat``
- ``JSON_RPC_URL``: node to connect, defaults to the network's public RPC
- ``PRIVATE_KEY`` or ``DEPLOYER_PRIVATE_KEY``: deployer key, needed on live networks
- ``ARTIFACTS_PATH``: compiled contracts, default ``artifacts``
- ``DEPLOYMENTS_PATH``: deployment files, default ``deployments``
- ``TAGS``: comma separated deployment step tags to run, default all
"""

import os
from dataclasses import dataclass
from pathlib import Path

from eth_account import Account
from eth_account.signers.local import LocalAccount

from kredly_deploy.config import ConfigurationError, UnknownNetwork
from kredly_deploy.networks import NETWORKS, NetworkSettings


@dataclass(frozen=True, slots=True)
class DeploySettings:
    network: str
    json_rpc_url: str
    private_key: str | None
    artifacts_path: Path
    deployments_path: Path
    tags: frozenset[str] | None

    @property
    def network_settings(self) -> NetworkSettings:
        return NETWORKS[self.network]

    def get_signer(self) -> LocalAccount | None:
        """Deployer account from the private key, or None to use the node's accounts."""
        if not self.private_key:
            return None
        return Account.from_key(self.private_key)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "DeploySettings":
        """Read settings from environment variables.

        :param environ:
            Use this instead of ``os.environ``

        :raise UnknownNetwork:
            ``NETWORK`` is not one of the supported networks

        :raise ConfigurationError:
            Missing RPC URL or private key
        """
        if environ is None:
            environ = dict(os.environ)

        network = environ.get("NETWORK", "hardhat")
        if network not in NETWORKS:
            raise UnknownNetwork(f"Unknown network {network}, supported: {', '.join(NETWORKS)}")
        network_settings = NETWORKS[network]

        json_rpc_url = environ.get("JSON_RPC_URL") or network_settings.rpc_url
        if not json_rpc_url:
            raise ConfigurationError(f"JSON_RPC_URL missing for network {network}")

        private_key = environ.get("PRIVATE_KEY") or environ.get("DEPLOYER_PRIVATE_KEY")
        if network_settings.live and not private_key:
            raise ConfigurationError(f"PRIVATE_KEY needed to deploy on live network {network}")

        tags_env = environ.get("TAGS", "").strip()
        tags = frozenset(t.strip() for t in tags_env.split(",") if t.strip()) if tags_env else None

        return cls(
            network=network,
            json_rpc_url=json_rpc_url,
            private_key=private_key,
            artifacts_path=Path(environ.get("ARTIFACTS_PATH", "artifacts")),
            deployments_path=Path(environ.get("DEPLOYMENTS_PATH", "deployments")),
            tags=tags,
        )
