"""Named accounts.

Maps role names like ``deployer`` or ``proxyAdmin`` to addresses of the active network.

- On the local test network roles are indices into the node's unlocked accounts

- On live networks the only account is the private key signer,
  so only index 0 (``deployer``) resolves
"""

import logging

from eth_account.signers.local import LocalAccount
from eth_typing import ChecksumAddress
from web3 import Web3

from kredly_deploy.networks import NAMED_ACCOUNTS

logger = logging.getLogger(__name__)


class UnknownAccount(Exception):
    """Role name is not a named account on this network."""


class NamedAccounts:
    """Role name to address table for one network."""

    def __init__(
        self,
        web3: Web3,
        signer: LocalAccount | None = None,
        indices: dict[str, int] | None = None,
    ):
        """
        :param web3:
            Connection to the active network

        :param signer:
            Private key account used to sign deployments on live networks.

            If not given, use the node's unlocked accounts.

        :param indices:
            Role name to account index. Defaults to :py:data:`kredly_deploy.networks.NAMED_ACCOUNTS`.
        """
        self.web3 = web3
        self.signer = signer
        self.indices = indices if indices is not None else NAMED_ACCOUNTS
        self._accounts: list[str] | None = None

    def __repr__(self):
        return f"<NamedAccounts {list(self.indices.keys())}, signer {self.signer and self.signer.address}>"

    @property
    def accounts(self) -> list[str]:
        """Available account addresses, in index order."""
        if self._accounts is None:
            if self.signer is not None:
                self._accounts = [self.signer.address]
            else:
                self._accounts = list(self.web3.eth.accounts)
        return self._accounts

    def get_address(self, name: str) -> ChecksumAddress:
        """Resolve a role name.

        :raise UnknownAccount:
            The role is not configured or the network has no account at its index
        """
        index = self.indices.get(name)
        if index is None:
            raise UnknownAccount(f"No named account {name}, we know {list(self.indices.keys())}")

        accounts = self.accounts
        if index >= len(accounts):
            raise UnknownAccount(f"Named account {name} is index {index}, but only {len(accounts)} accounts available")

        return Web3.to_checksum_address(accounts[index])

    @property
    def deployer(self) -> ChecksumAddress:
        return self.get_address("deployer")
